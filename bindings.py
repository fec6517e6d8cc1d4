# -*- coding: utf-8 -*-
########################
# bindings.py
########################
# Purpose:
# - Immutable mapping from logical action names to exactly one physical input source.
# - Parses calibration and config payloads into that mapping.
#
# Design notes:
# - Bindings are a closed sum type: KeyboardBinding | GamepadBinding(ButtonSource | AxisSource).
#   Consumers dispatch with isinstance and raise TypeError for anything else.
# - A BindingSet is either the full cardinal layout (up, down, left, right, button2)
#   or the collapsed layout (forward, down, button2). left is back, right is forward.
# - Replacing a BindingSet is wholesale. There is no merge.
# - No Qt usage.
#
########################
# Interfaces:
# Public dataclasses:
# - KeyboardBinding(key: str)
# - ButtonSource(index: int)
# - AxisSource(index: int, sign: int)
# - GamepadBinding(device_index: int, source: ButtonSource | AxisSource)
# - BindingSet(button2: Binding, down: Binding, forward: Optional[Binding], up: Optional[Binding],
#              left: Optional[Binding], right: Optional[Binding])
#   - directional_actions() -> dict[str, Binding]
#   - gamepad_indices() -> set[int]
#   - to_dict() -> dict
#
# Public functions:
# - normalize_key_name(key: str) -> str
# - default_keyboard_bindings() -> BindingSet
# - binding_from_dict(payload: dict) -> Binding
# - binding_set_from_dict(payload: dict) -> BindingSet
#
# Inputs:
# - Calibration collaborator payloads and the optional "bindings" config section.
#
# Outputs:
# - BindingSet consumed by DevicePoller.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Union


CARDINAL_ACTIONS = ("up", "down", "left", "right")
COLLAPSED_ACTIONS = ("forward", "down")


def normalize_key_name(key: str) -> str:
    """
    Normalize a key identifier so bindings and callbacks compare equal.

    Letters compare case-insensitively ("D" and "d" are the same key).
    The space bar stays a single space. Named keys are lowercased ("ArrowUp" -> "arrowup").
    """
    text = str(key)
    if text == " ":
        return text
    stripped = text.strip()
    if stripped.lower() == "space":
        return " "
    return stripped.lower()


@dataclass(frozen=True)
class KeyboardBinding:
    key: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", normalize_key_name(self.key))


@dataclass(frozen=True)
class ButtonSource:
    index: int


@dataclass(frozen=True)
class AxisSource:
    index: int
    sign: int

    def __post_init__(self) -> None:
        if int(self.sign) not in (-1, 1):
            raise ValueError("AxisSource.sign must be -1 or +1")


@dataclass(frozen=True)
class GamepadBinding:
    device_index: int
    source: Union[ButtonSource, AxisSource]


Binding = Union[KeyboardBinding, GamepadBinding]


@dataclass(frozen=True)
class BindingSet:
    button2: Binding
    down: Binding
    forward: Optional[Binding] = None
    up: Optional[Binding] = None
    left: Optional[Binding] = None
    right: Optional[Binding] = None

    def __post_init__(self) -> None:
        has_cardinal = any(binding is not None for binding in (self.up, self.left, self.right))
        if has_cardinal and self.forward is not None:
            raise ValueError("BindingSet must use either forward or up/left/right, not both")
        if not has_cardinal and self.forward is None:
            raise ValueError("BindingSet needs a forward binding or a right binding")
        if has_cardinal and self.right is None:
            raise ValueError("BindingSet cardinal layout needs a right binding")

    @property
    def is_collapsed(self) -> bool:
        return self.forward is not None

    def directional_actions(self) -> Dict[str, Binding]:
        """
        Directional bindings keyed by cardinal action name.

        The collapsed layout reports its forward binding under "right".
        """
        actions: Dict[str, Binding] = {"down": self.down}
        if self.forward is not None:
            actions["right"] = self.forward
            return actions
        for action_name in ("up", "left", "right"):
            binding = getattr(self, action_name)
            if binding is not None:
                actions[action_name] = binding
        return actions

    def gamepad_indices(self) -> Set[int]:
        indices: Set[int] = set()
        for binding in list(self.directional_actions().values()) + [self.button2]:
            if isinstance(binding, GamepadBinding):
                indices.add(int(binding.device_index))
        return indices

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for action_name in ("forward", "up", "down", "left", "right", "button2"):
            binding = getattr(self, action_name)
            if binding is not None:
                payload[action_name] = binding_to_dict(binding)
        return payload


def default_keyboard_bindings() -> BindingSet:
    """Defaults used when calibration is skipped: d = forward, s = down, space = button 2."""
    return BindingSet(
        forward=KeyboardBinding("d"),
        down=KeyboardBinding("s"),
        button2=KeyboardBinding(" "),
    )


def binding_to_dict(binding: Binding) -> Dict[str, Any]:
    if isinstance(binding, KeyboardBinding):
        return {"keyboard": binding.key}
    if isinstance(binding, GamepadBinding):
        source = binding.source
        if isinstance(source, ButtonSource):
            return {"gamepad": int(binding.device_index), "button": int(source.index)}
        if isinstance(source, AxisSource):
            return {"gamepad": int(binding.device_index), "axis": int(source.index), "sign": int(source.sign)}
        raise TypeError(f"Unknown gamepad source: {source!r}")
    raise TypeError(f"Unknown binding: {binding!r}")


def binding_from_dict(payload: Dict[str, Any]) -> Binding:
    """
    Parse one binding payload.

    Accepted shapes:
      {"keyboard": "d"}
      {"gamepad": 0, "button": 1}
      {"gamepad": 0, "axis": 1, "sign": 1}
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Binding must be an object: {payload!r}")

    if "keyboard" in payload:
        key_value = payload.get("keyboard")
        if not isinstance(key_value, str) or not key_value:
            raise ValueError(f"Keyboard binding needs a non-empty key: {payload!r}")
        return KeyboardBinding(key_value)

    if "gamepad" in payload:
        try:
            device_index = int(payload["gamepad"])
            if "button" in payload:
                return GamepadBinding(device_index=device_index, source=ButtonSource(index=int(payload["button"])))
            if "axis" in payload:
                return GamepadBinding(
                    device_index=device_index,
                    source=AxisSource(index=int(payload["axis"]), sign=int(payload.get("sign", 1))),
                )
        except (TypeError, ValueError) as exception:
            raise ValueError(f"Invalid gamepad binding {payload!r}: {exception}") from exception
        raise ValueError(f"Gamepad binding needs a button or an axis: {payload!r}")

    raise ValueError(f"Binding needs a keyboard or gamepad source: {payload!r}")


def binding_set_from_dict(payload: Dict[str, Any]) -> BindingSet:
    if not isinstance(payload, dict):
        raise ValueError("Bindings must be an object")

    parsed: Dict[str, Binding] = {}
    for action_name in ("forward", "up", "down", "left", "right", "button2"):
        action_payload = payload.get(action_name)
        if action_payload is None:
            continue
        parsed[action_name] = binding_from_dict(action_payload)

    if "button2" not in parsed or "down" not in parsed:
        raise ValueError("Bindings need at least down and button2")

    return BindingSet(**parsed)


def _run_unit_tests() -> None:
    defaults = default_keyboard_bindings()
    assert defaults.is_collapsed
    assert defaults.directional_actions()["right"] == KeyboardBinding("D")
    assert defaults.button2 == KeyboardBinding("Space")

    payload = {
        "up": {"keyboard": "W"},
        "down": {"gamepad": 0, "axis": 1, "sign": 1},
        "left": {"keyboard": "a"},
        "right": {"keyboard": "d"},
        "button2": {"gamepad": 1, "button": 1},
    }
    parsed = binding_set_from_dict(payload)
    assert not parsed.is_collapsed
    assert parsed.gamepad_indices() == {0, 1}
    assert binding_set_from_dict(parsed.to_dict()) == parsed

    try:
        binding_set_from_dict({"down": {"keyboard": "s"}})
    except ValueError:
        pass
    else:
        raise AssertionError("missing button2 must be rejected")


if __name__ == "__main__":
    _run_unit_tests()
    print("bindings.py: ok")
