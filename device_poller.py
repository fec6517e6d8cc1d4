# -*- coding: utf-8 -*-
########################
# device_poller.py
########################
# Purpose:
# - Single input listener for training: keyboard edges by callback, gamepad state by per-tick snapshot.
# - Resolves the active BindingSet into one logical direction and a logical button 2 rising edge.
# - Emits DirectionEvent and Button2Event to subscribers.
#
# Design notes:
# - No Qt usage. qt_bridge.py feeds Qt key events into handle_key_down / handle_key_up.
# - This must be the only place that knows about physical sources. Downstream code sees Directions only.
# - SOCD cleaning: left+right -> horizontal neutral, up+down -> vertical neutral.
#   Vertical plus horizontal resolves to the diagonal, never two separate events.
# - Direction events are edge triggered. Button 2 is rising edge only.
# - Keyboard button 2 fires inside the key-down callback. Gamepad button 2 fires on the next tick.
# - Axis bindings use hysteresis: on above axis_press_threshold, re-armed below axis_release_threshold.
# - A missing or disconnected gamepad index reads as "nothing pressed", never an error.
# - Emitted timestamps never go backwards.
#
########################
# Interfaces:
# Public dataclasses:
# - GamepadSnapshot(connected: bool, buttons: tuple[bool, ...], axes: tuple[float, ...])
#
# Public protocols:
# - class DeviceSource(Protocol)
#   - on_key_down(callback: Callable[[str], None]) -> Optional[Callable[[], None]]
#   - on_key_up(callback: Callable[[str], None]) -> Optional[Callable[[], None]]
#   - poll_gamepads() -> Sequence[GamepadSnapshot | dict]
#
# Public classes:
# - class DevicePoller
#   - __init__(config: TrainerConfig, bindings: Optional[BindingSet] = None, clock_ms: Optional[Callable[[], float]] = None)
#   - on_direction(callback) / on_button2(callback) -> Callable[[], None]
#   - start(device: Optional[DeviceSource] = None) -> None
#   - stop() -> None
#   - set_bindings(bindings: BindingSet) -> None
#   - handle_key_down(key: str, timestamp_ms: Optional[float] = None) -> bool
#   - handle_key_up(key: str, timestamp_ms: Optional[float] = None) -> bool
#   - tick(now_ms: Optional[float] = None) -> None
#   - clear_pressed_state() -> None
#   - current_direction() -> Direction
#
# Public functions:
# - direction_from_stick(x: float, y: float, deadzone: float = 0.5) -> Direction
#
# Inputs:
# - Key identifiers from the device collaborator, gamepad snapshots from poll_gamepads().
#
# Outputs:
# - DirectionEvent / Button2Event consumed by AttemptController and presentation subscribers.
#
########################

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from bindings import (
    AxisSource,
    Binding,
    BindingSet,
    ButtonSource,
    GamepadBinding,
    KeyboardBinding,
    default_keyboard_bindings,
    normalize_key_name,
)
from input_models import Button2Event, Direction, DirectionEvent, direction_from_axes
from trainer_config import TrainerConfig

logger = logging.getLogger(__name__)


STICK_X_AXIS = 0
STICK_Y_AXIS = 1


@dataclass(frozen=True)
class GamepadSnapshot:
    connected: bool
    buttons: Tuple[bool, ...] = ()
    axes: Tuple[float, ...] = ()

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GamepadSnapshot":
        """
        Accepts the browser-like shape {connected, buttons: [{pressed}], axes: [float]}.
        Buttons may also be plain booleans.
        """
        buttons: List[bool] = []
        for button in payload.get("buttons") or []:
            if isinstance(button, dict):
                buttons.append(bool(button.get("pressed", False)))
            else:
                buttons.append(bool(button))
        axes: List[float] = []
        for axis_value in payload.get("axes") or []:
            try:
                axes.append(float(axis_value))
            except (TypeError, ValueError):
                axes.append(0.0)
        return cls(connected=bool(payload.get("connected", False)), buttons=tuple(buttons), axes=tuple(axes))

    def button_pressed(self, index: int) -> bool:
        if not self.connected or index < 0 or index >= len(self.buttons):
            return False
        return bool(self.buttons[index])

    def axis_value(self, index: int) -> float:
        if not self.connected or index < 0 or index >= len(self.axes):
            return 0.0
        return float(self.axes[index])


class DeviceSource(Protocol):
    def on_key_down(self, callback: Callable[[str], None]) -> Optional[Callable[[], None]]: ...

    def on_key_up(self, callback: Callable[[str], None]) -> Optional[Callable[[], None]]: ...

    def poll_gamepads(self) -> Sequence[Any]: ...


def direction_from_stick(x: float, y: float, deadzone: float = 0.5) -> Direction:
    """
    Digital direction from an analog stick.

    An axis counts when its magnitude exceeds the deadzone. Both axes over the deadzone
    give a diagonal. Positive x is forward, positive y is down.
    """
    horizontal = 0
    vertical = 0
    if abs(float(x)) > float(deadzone):
        horizontal = 1 if x > 0 else -1
    if abs(float(y)) > float(deadzone):
        vertical = 1 if y > 0 else -1
    return direction_from_axes(vertical, horizontal)


def _default_clock_ms() -> float:
    return time.perf_counter() * 1000.0


class DevicePoller:
    """
    Keyboard plus gamepad listener.

    This object never classifies anything. Its only job is to:
      - track which bound sources are pressed
      - resolve them into a Direction with SOCD cleaning
      - emit direction changes and button 2 rising edges with timestamps
    """

    def __init__(
        self,
        config: TrainerConfig,
        bindings: Optional[BindingSet] = None,
        clock_ms: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._bindings: BindingSet = bindings if bindings is not None else default_keyboard_bindings()
        self._clock_ms: Callable[[], float] = clock_ms if clock_ms is not None else _default_clock_ms

        self._device: Optional[DeviceSource] = None
        self._device_unsubscribers: List[Callable[[], None]] = []
        self._stopped = False

        self._direction_listeners: List[Callable[[DirectionEvent], None]] = []
        self._button2_listeners: List[Callable[[Button2Event], None]] = []

        self._pressed_keys: Set[str] = set()
        self._gamepads: List[GamepadSnapshot] = []
        # (device_index, axis_index, sign) -> latched on
        self._axis_latched: Dict[Tuple[int, int, int], bool] = {}
        self._gamepad_button2_was_active = False

        self._last_direction: Direction = Direction.NEUTRAL
        self._last_emitted_ms: Optional[float] = None

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def on_direction(self, callback: Callable[[DirectionEvent], None]) -> Callable[[], None]:
        self._direction_listeners.append(callback)
        return lambda: self._remove_listener(self._direction_listeners, callback)

    def on_button2(self, callback: Callable[[Button2Event], None]) -> Callable[[], None]:
        self._button2_listeners.append(callback)
        return lambda: self._remove_listener(self._button2_listeners, callback)

    @staticmethod
    def _remove_listener(listeners: List[Any], callback: Any) -> None:
        if callback in listeners:
            listeners.remove(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, device: Optional[DeviceSource] = None) -> None:
        """Begin listening. Keys held across a previous stop are forgotten."""
        self.stop()
        self._reset_pressed_state()
        self._last_direction = Direction.NEUTRAL
        self._stopped = False
        self._device = device
        if device is None:
            return

        for register, handler in (
            (device.on_key_down, self._on_device_key_down),
            (device.on_key_up, self._on_device_key_up),
        ):
            unsubscribe = register(handler)
            if callable(unsubscribe):
                self._device_unsubscribers.append(unsubscribe)

    def stop(self) -> None:
        """Cancel future callbacks and ticks. A tick already running is not interrupted."""
        self._stopped = True
        for unsubscribe in self._device_unsubscribers:
            unsubscribe()
        self._device_unsubscribers.clear()
        self._device = None

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def bindings(self) -> BindingSet:
        return self._bindings

    def set_bindings(self, bindings: BindingSet) -> None:
        """Replace the binding set wholesale. All derived pressed state is dropped."""
        self._bindings = bindings
        self._reset_pressed_state()
        self._last_direction = Direction.NEUTRAL
        logger.info("Bindings replaced: %s", bindings.to_dict())

    def clear_pressed_state(self, timestamp_ms: Optional[float] = None) -> None:
        """
        Forget every held source, e.g. on window focus loss.

        Emits a neutral direction if something was held.
        """
        self._reset_pressed_state()
        self._emit_direction_if_changed(self._timestamp_or_now(timestamp_ms))

    def _reset_pressed_state(self) -> None:
        self._pressed_keys.clear()
        self._gamepads = []
        self._axis_latched.clear()
        self._gamepad_button2_was_active = False

    def current_direction(self) -> Direction:
        return self._last_direction

    # ------------------------------------------------------------------
    # Keyboard path
    # ------------------------------------------------------------------

    def _on_device_key_down(self, key: str) -> None:
        self.handle_key_down(key)

    def _on_device_key_up(self, key: str) -> None:
        self.handle_key_up(key)

    def handle_key_down(self, key: str, timestamp_ms: Optional[float] = None) -> bool:
        """
        Handle a key-down edge.

        Returns True if the key is bound to a logical action.
        """
        if self._stopped:
            return False

        key_name = normalize_key_name(key)
        is_bound = self._is_key_bound(key_name)

        # Auto repeat or second press while held.
        if key_name in self._pressed_keys:
            return is_bound

        self._pressed_keys.add(key_name)
        if not is_bound:
            return False

        timestamp = self._timestamp_or_now(timestamp_ms)

        button2_binding = self._bindings.button2
        if isinstance(button2_binding, KeyboardBinding) and button2_binding.key == key_name:
            self._emit_button2(timestamp, source="keyboard")

        self._emit_direction_if_changed(timestamp)
        return True

    def handle_key_up(self, key: str, timestamp_ms: Optional[float] = None) -> bool:
        if self._stopped:
            return False

        key_name = normalize_key_name(key)
        self._pressed_keys.discard(key_name)
        if not self._is_key_bound(key_name):
            return False

        self._emit_direction_if_changed(self._timestamp_or_now(timestamp_ms))
        return True

    def _is_key_bound(self, key_name: str) -> bool:
        for binding in self._all_bindings():
            if isinstance(binding, KeyboardBinding) and binding.key == key_name:
                return True
        return False

    # ------------------------------------------------------------------
    # Gamepad path (once per tick)
    # ------------------------------------------------------------------

    def tick(self, now_ms: Optional[float] = None) -> None:
        if self._stopped:
            return

        timestamp = self._timestamp_or_now(now_ms)
        if self._device is not None:
            self.update_gamepads(self._device.poll_gamepads())

        self._update_axis_latches()

        gamepad_timestamp = timestamp + float(self._config.input.gamepad_latency_offset_ms)
        self._emit_direction_if_changed(gamepad_timestamp)

        button2_binding = self._bindings.button2
        if isinstance(button2_binding, GamepadBinding):
            is_active = self._is_binding_active(button2_binding)
            if is_active and not self._gamepad_button2_was_active:
                self._emit_button2(gamepad_timestamp, source="gamepad")
            self._gamepad_button2_was_active = is_active

    def update_gamepads(self, snapshots: Sequence[Any]) -> None:
        """Store the latest snapshot list. Dict payloads are converted, anything else reads as disconnected."""
        normalized: List[GamepadSnapshot] = []
        for snapshot in snapshots or []:
            if isinstance(snapshot, GamepadSnapshot):
                normalized.append(snapshot)
            elif isinstance(snapshot, dict):
                normalized.append(GamepadSnapshot.from_dict(snapshot))
            else:
                normalized.append(GamepadSnapshot(connected=False))
        self._gamepads = normalized

    def _gamepad(self, device_index: int) -> GamepadSnapshot:
        if 0 <= int(device_index) < len(self._gamepads):
            return self._gamepads[int(device_index)]
        return GamepadSnapshot(connected=False)

    def _update_axis_latches(self) -> None:
        press_threshold = float(self._config.input.axis_press_threshold)
        release_threshold = float(self._config.input.axis_release_threshold)

        for binding in self._all_bindings():
            if not isinstance(binding, GamepadBinding) or not isinstance(binding.source, AxisSource):
                continue
            latch_key = (int(binding.device_index), int(binding.source.index), int(binding.source.sign))
            value = self._gamepad(binding.device_index).axis_value(binding.source.index) * binding.source.sign
            latched = self._axis_latched.get(latch_key, False)
            if latched and value < release_threshold:
                latched = False
            elif not latched and value > press_threshold:
                latched = True
            self._axis_latched[latch_key] = latched

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _all_bindings(self) -> List[Binding]:
        return list(self._bindings.directional_actions().values()) + [self._bindings.button2]

    def _is_binding_active(self, binding: Binding) -> bool:
        if isinstance(binding, KeyboardBinding):
            return binding.key in self._pressed_keys
        if isinstance(binding, GamepadBinding):
            source = binding.source
            if isinstance(source, ButtonSource):
                return self._gamepad(binding.device_index).button_pressed(source.index)
            if isinstance(source, AxisSource):
                return self._axis_latched.get((int(binding.device_index), int(source.index), int(source.sign)), False)
            raise TypeError(f"Unknown gamepad source: {source!r}")
        raise TypeError(f"Unknown binding: {binding!r}")

    def resolve_direction(self) -> Direction:
        active_actions = {
            action_name
            for action_name, binding in self._bindings.directional_actions().items()
            if self._is_binding_active(binding)
        }
        if not active_actions:
            return self._stick_direction()

        vertical = int("down" in active_actions) - int("up" in active_actions)
        horizontal = int("right" in active_actions) - int("left" in active_actions)
        return direction_from_axes(vertical, horizontal)

    def _stick_direction(self) -> Direction:
        gamepad_indices = self._bindings.gamepad_indices()
        if not gamepad_indices:
            return Direction.NEUTRAL
        gamepad = self._gamepad(min(gamepad_indices))
        if not gamepad.connected:
            return Direction.NEUTRAL
        return direction_from_stick(
            gamepad.axis_value(STICK_X_AXIS),
            gamepad.axis_value(STICK_Y_AXIS),
            deadzone=float(self._config.input.analog_deadzone),
        )

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _timestamp_or_now(self, timestamp_ms: Optional[float]) -> float:
        if timestamp_ms is None:
            return float(self._clock_ms())
        return float(timestamp_ms)

    def _ordered_timestamp(self, timestamp_ms: float) -> float:
        value = float(timestamp_ms)
        if self._last_emitted_ms is not None and value < self._last_emitted_ms:
            value = self._last_emitted_ms
        self._last_emitted_ms = value
        return value

    def _emit_direction_if_changed(self, timestamp_ms: float) -> None:
        direction = self.resolve_direction()
        if direction == self._last_direction:
            return
        self._last_direction = direction
        event = DirectionEvent(direction=direction, timestamp_ms=self._ordered_timestamp(timestamp_ms))
        for listener in list(self._direction_listeners):
            listener(event)

    def _emit_button2(self, timestamp_ms: float, *, source: str) -> None:
        event = Button2Event(timestamp_ms=self._ordered_timestamp(timestamp_ms), source=source)
        for listener in list(self._button2_listeners):
            listener(event)


def _run_unit_tests() -> None:
    config = TrainerConfig()
    poller = DevicePoller(config, clock_ms=lambda: 0.0)
    directions: List[Direction] = []
    presses: List[float] = []
    poller.on_direction(lambda event: directions.append(event.direction))
    poller.on_button2(lambda event: presses.append(event.timestamp_ms))

    assert poller.handle_key_down("d", 0.0)
    assert poller.handle_key_down("s", 10.0)
    assert poller.handle_key_down(" ", 20.0)
    poller.handle_key_down(" ", 25.0)
    assert not poller.handle_key_down("q", 30.0)
    assert directions == [Direction.FORWARD, Direction.DOWN_FORWARD]
    assert presses == [20.0]

    assert direction_from_stick(0.9, 0.9) == Direction.DOWN_FORWARD
    assert direction_from_stick(0.9, 0.2) == Direction.FORWARD
    assert direction_from_stick(0.2, -0.3) == Direction.NEUTRAL


if __name__ == "__main__":
    _run_unit_tests()
    print("device_poller.py: ok")
