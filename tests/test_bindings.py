from __future__ import annotations

import pytest

from bindings import (
    AxisSource,
    BindingSet,
    ButtonSource,
    GamepadBinding,
    KeyboardBinding,
    binding_from_dict,
    binding_set_from_dict,
    default_keyboard_bindings,
    normalize_key_name,
)


def test_key_names_compare_case_insensitively() -> None:
    assert normalize_key_name("D") == "d"
    assert normalize_key_name("ArrowUp") == "arrowup"
    assert normalize_key_name(" ") == " "
    assert normalize_key_name("Space") == " "
    assert KeyboardBinding("S") == KeyboardBinding("s")


def test_default_bindings_are_collapsed_keyboard_layout() -> None:
    bindings = default_keyboard_bindings()

    assert bindings.is_collapsed
    assert bindings.directional_actions() == {"down": KeyboardBinding("s"), "right": KeyboardBinding("d")}
    assert bindings.button2 == KeyboardBinding(" ")
    assert bindings.gamepad_indices() == set()


def test_cardinal_layout_parses_mixed_sources() -> None:
    bindings = binding_set_from_dict(
        {
            "up": {"keyboard": "w"},
            "down": {"gamepad": 0, "axis": 1, "sign": 1},
            "left": {"keyboard": "a"},
            "right": {"gamepad": 0, "button": 15},
            "button2": {"gamepad": 2, "button": 1},
        }
    )

    assert not bindings.is_collapsed
    assert bindings.down == GamepadBinding(device_index=0, source=AxisSource(index=1, sign=1))
    assert bindings.right == GamepadBinding(device_index=0, source=ButtonSource(index=15))
    assert bindings.gamepad_indices() == {0, 2}
    assert binding_set_from_dict(bindings.to_dict()) == bindings


def test_layouts_cannot_be_mixed() -> None:
    with pytest.raises(ValueError):
        BindingSet(
            button2=KeyboardBinding(" "),
            down=KeyboardBinding("s"),
            forward=KeyboardBinding("d"),
            up=KeyboardBinding("w"),
        )


def test_cardinal_layout_requires_right() -> None:
    with pytest.raises(ValueError):
        BindingSet(button2=KeyboardBinding(" "), down=KeyboardBinding("s"), left=KeyboardBinding("a"))


def test_binding_set_requires_down_and_button2() -> None:
    with pytest.raises(ValueError):
        binding_set_from_dict({"forward": {"keyboard": "d"}, "down": {"keyboard": "s"}})


@pytest.mark.parametrize(
    "payload",
    [
        {"keyboard": ""},
        {"gamepad": 0},
        {"gamepad": 0, "axis": 1, "sign": 0},
        {"mouse": 1},
        "d",
    ],
)
def test_invalid_binding_payloads_are_rejected(payload) -> None:  # noqa: ANN001
    with pytest.raises(ValueError):
        binding_from_dict(payload)
