# -*- coding: utf-8 -*-
########################
# pygame_gamepads.py
########################
# Purpose:
# - DeviceSource implementation that reads gamepads through pygame's joystick module.
# - Produces GamepadSnapshot lists in the standard layout DevicePoller expects.
#
# Design notes:
# - pygame is an optional extra. It is imported lazily on first use so the core and tests never need it.
# - Keyboard events come from Qt, so on_key_down / on_key_up register nothing here.
# - Hat 0 is folded into d-pad button indices 12 (up), 13 (down), 14 (left), 15 (right).
# - pygame reports hat y as +1 for up. Standard layout axis 1 is positive for down, which matches pygame sticks.
# - A pygame.error while polling marks the pad disconnected for that tick.
#
########################
# Interfaces:
# Public classes:
# - class PygameGamepadSource
#   - __init__(max_gamepads: int = 4)
#   - on_key_down(callback) -> None
#   - on_key_up(callback) -> None
#   - poll_gamepads() -> list[GamepadSnapshot]
#   - close() -> None
#
########################

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from device_poller import GamepadSnapshot

logger = logging.getLogger(__name__)


DPAD_UP_BUTTON = 12
DPAD_DOWN_BUTTON = 13
DPAD_LEFT_BUTTON = 14
DPAD_RIGHT_BUTTON = 15
STANDARD_BUTTON_COUNT = 16


def _import_pygame() -> Any:
    import pygame  # type: ignore

    return pygame


class PygameGamepadSource:
    def __init__(self, max_gamepads: int = 4) -> None:
        self._max_gamepads = max(1, int(max_gamepads))
        self._pygame: Optional[Any] = None
        self._joysticks: Dict[int, Any] = {}

    def _ensure_initialized(self) -> Any:
        if self._pygame is None:
            pygame = _import_pygame()
            pygame.init()
            pygame.joystick.init()
            self._pygame = pygame
            logger.info("pygame joystick subsystem initialized (%d device(s))", pygame.joystick.get_count())
        return self._pygame

    def on_key_down(self, callback: Callable[[str], None]) -> None:
        return None

    def on_key_up(self, callback: Callable[[str], None]) -> None:
        return None

    def _joystick(self, index: int) -> Any:
        pygame = self._ensure_initialized()
        joystick = self._joysticks.get(index)
        if joystick is None:
            joystick = pygame.joystick.Joystick(index)
            joystick.init()
            self._joysticks[index] = joystick
            logger.info("Gamepad %d connected: %s", index, joystick.get_name())
        return joystick

    def _snapshot(self, index: int) -> GamepadSnapshot:
        joystick = self._joystick(index)

        buttons: List[bool] = [bool(joystick.get_button(button)) for button in range(joystick.get_numbuttons())]
        if len(buttons) < STANDARD_BUTTON_COUNT:
            buttons.extend([False] * (STANDARD_BUTTON_COUNT - len(buttons)))

        if joystick.get_numhats() > 0:
            hat_x, hat_y = joystick.get_hat(0)
            buttons[DPAD_UP_BUTTON] = buttons[DPAD_UP_BUTTON] or hat_y > 0
            buttons[DPAD_DOWN_BUTTON] = buttons[DPAD_DOWN_BUTTON] or hat_y < 0
            buttons[DPAD_LEFT_BUTTON] = buttons[DPAD_LEFT_BUTTON] or hat_x < 0
            buttons[DPAD_RIGHT_BUTTON] = buttons[DPAD_RIGHT_BUTTON] or hat_x > 0

        axes = tuple(float(joystick.get_axis(axis)) for axis in range(joystick.get_numaxes()))
        return GamepadSnapshot(connected=True, buttons=tuple(buttons), axes=axes)

    def poll_gamepads(self) -> List[GamepadSnapshot]:
        pygame = self._ensure_initialized()
        try:
            pygame.event.pump()
        except pygame.error as exception:
            logger.warning("pygame event pump failed: %s", exception)
            return []

        count = min(pygame.joystick.get_count(), self._max_gamepads)
        for stale_index in [index for index in self._joysticks if index >= count]:
            del self._joysticks[stale_index]
            logger.info("Gamepad %d disconnected", stale_index)

        snapshots: List[GamepadSnapshot] = []
        for index in range(count):
            try:
                snapshots.append(self._snapshot(index))
            except pygame.error as exception:
                logger.warning("Gamepad %d read failed: %s", index, exception)
                self._joysticks.pop(index, None)
                snapshots.append(GamepadSnapshot(connected=False))
        return snapshots

    def close(self) -> None:
        for joystick in self._joysticks.values():
            joystick.quit()
        self._joysticks.clear()
        if self._pygame is not None:
            self._pygame.joystick.quit()
            self._pygame = None
