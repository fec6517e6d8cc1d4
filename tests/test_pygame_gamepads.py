from __future__ import annotations

from types import SimpleNamespace

import pygame_gamepads
from pygame_gamepads import DPAD_DOWN_BUTTON, DPAD_RIGHT_BUTTON, DPAD_UP_BUTTON, PygameGamepadSource


class FakeJoystickError(Exception):
    pass


class FakeJoystick:
    def __init__(self, buttons, hat=(0, 0), axes=(0.0, 0.0)) -> None:  # noqa: ANN001
        self.buttons = list(buttons)
        self.hat = hat
        self.axes = list(axes)
        self.initialized = False
        self.quit_called = False

    def init(self) -> None:
        self.initialized = True

    def quit(self) -> None:
        self.quit_called = True

    def get_name(self) -> str:
        return "Fake Pad"

    def get_numbuttons(self) -> int:
        return len(self.buttons)

    def get_button(self, index: int) -> int:
        return int(self.buttons[index])

    def get_numhats(self) -> int:
        return 1

    def get_hat(self, index: int):  # noqa: ANN201
        return self.hat

    def get_numaxes(self) -> int:
        return len(self.axes)

    def get_axis(self, index: int) -> float:
        return self.axes[index]


def build_fake_pygame(joysticks: list) -> SimpleNamespace:
    joystick_module = SimpleNamespace(
        init=lambda: None,
        quit=lambda: None,
        get_count=lambda: len(joysticks),
        Joystick=lambda index: joysticks[index],
    )
    return SimpleNamespace(
        init=lambda: None,
        joystick=joystick_module,
        event=SimpleNamespace(pump=lambda: None),
        error=FakeJoystickError,
    )


def test_hat_is_folded_into_dpad_buttons(monkeypatch) -> None:  # noqa: ANN001
    joystick = FakeJoystick(buttons=[0, 1, 0, 0], hat=(1, -1), axes=(0.25, -0.5))
    monkeypatch.setattr(pygame_gamepads, "_import_pygame", lambda: build_fake_pygame([joystick]))
    source = PygameGamepadSource()

    (snapshot,) = source.poll_gamepads()

    assert snapshot.connected
    assert len(snapshot.buttons) == 16
    assert snapshot.button_pressed(1)
    assert snapshot.button_pressed(DPAD_RIGHT_BUTTON)
    assert snapshot.button_pressed(DPAD_DOWN_BUTTON)
    assert not snapshot.button_pressed(DPAD_UP_BUTTON)
    assert snapshot.axes == (0.25, -0.5)
    assert joystick.initialized


def test_read_errors_mark_pad_disconnected(monkeypatch) -> None:  # noqa: ANN001
    class BrokenJoystick(FakeJoystick):
        def get_numbuttons(self) -> int:
            raise FakeJoystickError("unplugged")

    monkeypatch.setattr(pygame_gamepads, "_import_pygame", lambda: build_fake_pygame([BrokenJoystick(buttons=[])]))
    source = PygameGamepadSource()

    (snapshot,) = source.poll_gamepads()

    assert not snapshot.connected


def test_key_registration_is_a_no_op_and_close_releases_joysticks(monkeypatch) -> None:  # noqa: ANN001
    joystick = FakeJoystick(buttons=[0])
    monkeypatch.setattr(pygame_gamepads, "_import_pygame", lambda: build_fake_pygame([joystick]))
    source = PygameGamepadSource()

    assert source.on_key_down(lambda key: None) is None
    assert source.on_key_up(lambda key: None) is None
    source.poll_gamepads()
    source.close()

    assert joystick.quit_called
