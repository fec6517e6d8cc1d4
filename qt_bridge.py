# -*- coding: utf-8 -*-
########################
# qt_bridge.py
########################
# Purpose:
# - Connects the Qt event loop to the Qt-free training core.
# - QtScheduler implements the Scheduler protocol with QTimer and QElapsedTimer.
# - QtTrainerBridge routes key events into DevicePoller and re-emits core events as Qt signals.
#
# Design notes:
# - This is the only module besides trainer.py that imports PyQt6.
# - Auto repeat key events are ignored before they reach the poller.
# - Window deactivation or focus loss clears held keys so nothing stays latched.
# - Timestamps for key events come from the same QElapsedTimer clock that drives the scheduler.
#
########################
# Interfaces:
# Public classes:
# - class QtScheduler(PyQt6.QtCore.QObject)
#   - now_ms() -> float
#   - call_later(delay_ms: float, callback) -> TimerHandle
#   - call_repeating(interval_ms: float, callback) -> TimerHandle
# - class QtTrainerBridge(PyQt6.QtCore.QObject)
#   - Signals:
#     - directionChanged(input_models.DirectionEvent)
#     - button2Pressed(input_models.Button2Event)
#     - attemptClassified(input_models.ClassificationResult)
#   - Methods:
#     - eventFilter(watched: QObject, event: QEvent) -> bool
#     - handle_key_press(event: QKeyEvent) -> bool
#     - handle_key_release(event: QKeyEvent) -> bool
#
# Public functions:
# - key_name_for_event(event: QKeyEvent) -> str
#
########################

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from PyQt6.QtCore import QElapsedTimer, QEvent, QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QKeyEvent

from attempt_controller import AttemptController
from tick_scheduler import TimerHandle


_SPECIAL_KEY_NAMES: Dict[int, str] = {
    int(Qt.Key.Key_Up): "arrowup",
    int(Qt.Key.Key_Down): "arrowdown",
    int(Qt.Key.Key_Left): "arrowleft",
    int(Qt.Key.Key_Right): "arrowright",
    int(Qt.Key.Key_Space): " ",
    int(Qt.Key.Key_Return): "enter",
    int(Qt.Key.Key_Enter): "enter",
    int(Qt.Key.Key_Shift): "shift",
    int(Qt.Key.Key_Control): "control",
    int(Qt.Key.Key_Alt): "alt",
    int(Qt.Key.Key_Tab): "tab",
}


def key_name_for_event(event: QKeyEvent) -> str:
    """
    Key identifier used by bindings.

    Arrows and modifiers get fixed names, everything else is the lowercased text.
    """
    key_code = int(event.key())
    special = _SPECIAL_KEY_NAMES.get(key_code)
    if special is not None:
        return special

    text = event.text() or ""
    if text.strip():
        return text.lower()
    return f"key_{key_code}"


class QtScheduler(QObject):
    """Scheduler backed by the Qt event loop. Must be used from the GUI thread."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._clock = QElapsedTimer()
        self._clock.start()
        self._timers: List[QTimer] = []

    def now_ms(self) -> float:
        return self._clock.nsecsElapsed() / 1_000_000.0

    def _make_timer(self, interval_ms: float, single_shot: bool) -> QTimer:
        timer = QTimer(self)
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(0, int(round(float(interval_ms)))))
        self._timers.append(timer)
        return timer

    def _release_timer(self, timer: QTimer) -> None:
        timer.stop()
        if timer in self._timers:
            self._timers.remove(timer)
        timer.deleteLater()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        timer = self._make_timer(delay_ms, single_shot=True)
        handle = TimerHandle(cancel_callback=lambda: self._release_timer(timer))

        def on_timeout() -> None:
            if not handle.active:
                return
            handle._mark_fired()
            self._release_timer(timer)
            callback()

        timer.timeout.connect(on_timeout)
        timer.start()
        return handle

    def call_repeating(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        if float(interval_ms) <= 0.0:
            raise ValueError("interval_ms must be positive")
        timer = self._make_timer(interval_ms, single_shot=False)
        handle = TimerHandle(cancel_callback=lambda: self._release_timer(timer))

        def on_timeout() -> None:
            if handle.active:
                callback()

        timer.timeout.connect(on_timeout)
        timer.start()
        return handle


class QtTrainerBridge(QObject):
    """
    Event filter plus signal fan-out for one AttemptController.

    Install it on the window that receives keyboard focus.
    """

    # "object" keeps the payload types out of the Qt meta type system.
    directionChanged = pyqtSignal(object)
    button2Pressed = pyqtSignal(object)
    attemptClassified = pyqtSignal(object)

    def __init__(
        self,
        controller: AttemptController,
        scheduler: QtScheduler,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._controller = controller
        self._scheduler = scheduler

        self._unsubscribers: List[Callable[[], None]] = [
            controller.on_direction(self.directionChanged.emit),
            controller.on_button2(self.button2Pressed.emit),
            controller.on_result(self.attemptClassified.emit),
        ]

    @property
    def controller(self) -> AttemptController:
        return self._controller

    def disconnect_controller(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    # ------------------------------------------------------------------
    # Key routing
    # ------------------------------------------------------------------

    def handle_key_press(self, event: QKeyEvent) -> bool:
        if event.isAutoRepeat():
            return False
        return self._controller.poller.handle_key_down(key_name_for_event(event), self._scheduler.now_ms())

    def handle_key_release(self, event: QKeyEvent) -> bool:
        if event.isAutoRepeat():
            return False
        return self._controller.poller.handle_key_up(key_name_for_event(event), self._scheduler.now_ms())

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802
        if event.type() == QEvent.Type.KeyPress and isinstance(event, QKeyEvent):
            if self.handle_key_press(event):
                return True
        if event.type() == QEvent.Type.KeyRelease and isinstance(event, QKeyEvent):
            if self.handle_key_release(event):
                return True
        if event.type() in (QEvent.Type.WindowDeactivate, QEvent.Type.FocusOut):
            self._controller.poller.clear_pressed_state(self._scheduler.now_ms())
        return super().eventFilter(watched, event)
