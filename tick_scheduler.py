# -*- coding: utf-8 -*-
########################
# tick_scheduler.py
########################
# Purpose:
# - Cancelable scheduled timers and the repeating poll tick, behind one small protocol.
# - Deterministic virtual clock for tests and headless runs.
#
# Design notes:
# - No Qt usage. The Qt-backed scheduler lives in qt_bridge.py.
# - Single threaded. Callbacks run to completion inside advance(); nothing runs concurrently.
# - Every timer is an explicit TimerHandle owned by whoever scheduled it. cancel() is idempotent.
# - Timers due at the same instant fire in scheduling order.
#
########################
# Interfaces:
# Public protocols:
# - class Scheduler(Protocol)
#   - now_ms() -> float
#   - call_later(delay_ms: float, callback: Callable[[], None]) -> TimerHandle
#   - call_repeating(interval_ms: float, callback: Callable[[], None]) -> TimerHandle
#
# Public classes:
# - class TimerHandle
#   - active -> bool
#   - cancel() -> None
# - class ManualScheduler
#   - __init__(start_ms: float = 0.0)
#   - advance(delta_ms: float) -> int
#   - advance_to(target_ms: float) -> int
#   - pending_count() -> int
# - class CooldownTimer
#   - __init__(scheduler: Scheduler, duration_ms: float)
#   - start() -> None
#   - cancel() -> None
#   - active -> bool
#
########################

from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Optional, Protocol, Tuple


class TimerHandle:
    def __init__(self, cancel_callback: Optional[Callable[[], None]] = None) -> None:
        self._active = True
        self._cancel_callback = cancel_callback

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._cancel_callback is not None:
            self._cancel_callback()

    def _mark_fired(self) -> None:
        self._active = False


class Scheduler(Protocol):
    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle: ...

    def call_repeating(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


class ManualScheduler:
    """
    Virtual clock scheduler.

    Time only moves when advance() or advance_to() is called, which makes cooldowns
    and tick cadence reproducible in tests.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = float(start_ms)
        self._sequence = itertools.count()
        # (due_ms, sequence, handle, callback, interval_ms or None)
        self._queue: List[Tuple[float, int, TimerHandle, Callable[[], None], Optional[float]]] = []

    def now_ms(self) -> float:
        return self._now_ms

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        due_ms = self._now_ms + max(0.0, float(delay_ms))
        heapq.heappush(self._queue, (due_ms, next(self._sequence), handle, callback, None))
        return handle

    def call_repeating(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        interval = float(interval_ms)
        if interval <= 0.0:
            raise ValueError("interval_ms must be positive")
        handle = TimerHandle()
        heapq.heappush(self._queue, (self._now_ms + interval, next(self._sequence), handle, callback, interval))
        return handle

    def pending_count(self) -> int:
        return sum(1 for item in self._queue if item[2].active)

    def advance(self, delta_ms: float) -> int:
        return self.advance_to(self._now_ms + max(0.0, float(delta_ms)))

    def advance_to(self, target_ms: float) -> int:
        """Fire every timer due at or before target_ms. Returns the number of callbacks run."""
        target = max(self._now_ms, float(target_ms))
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due_ms, _sequence, handle, callback, interval = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self._now_ms = due_ms
            if interval is None:
                handle._mark_fired()
            else:
                heapq.heappush(self._queue, (due_ms + interval, next(self._sequence), handle, callback, interval))
            callback()
            fired += 1
        self._now_ms = target
        return fired


class CooldownTimer:
    """One cancelable delay. active is True from start() until the delay elapses or cancel()."""

    def __init__(self, scheduler: Scheduler, duration_ms: float) -> None:
        self._scheduler = scheduler
        self._duration_ms = max(0.0, float(duration_ms))
        self._handle: Optional[TimerHandle] = None

    @property
    def duration_ms(self) -> float:
        return self._duration_ms

    @property
    def active(self) -> bool:
        return self._handle is not None and self._handle.active

    def start(self) -> None:
        self.cancel()
        if self._duration_ms <= 0.0:
            return
        self._handle = self._scheduler.call_later(self._duration_ms, self._on_elapsed)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None

    def _on_elapsed(self) -> None:
        self._handle = None


def _run_unit_tests() -> None:
    scheduler = ManualScheduler()
    ticks: List[float] = []
    tick_handle = scheduler.call_repeating(16, lambda: ticks.append(scheduler.now_ms()))
    scheduler.advance(50)
    assert ticks == [16.0, 32.0, 48.0]

    tick_handle.cancel()
    scheduler.advance(50)
    assert len(ticks) == 3

    cooldown = CooldownTimer(scheduler, 200)
    cooldown.start()
    assert cooldown.active
    scheduler.advance(199)
    assert cooldown.active
    scheduler.advance(1)
    assert not cooldown.active

    cooldown.start()
    cooldown.cancel()
    assert not cooldown.active
    assert scheduler.pending_count() == 0


if __name__ == "__main__":
    _run_unit_tests()
    print("tick_scheduler.py: ok")
