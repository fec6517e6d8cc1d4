# -*- coding: utf-8 -*-
########################
# input_buffer.py
########################
# Purpose:
# - Capped, time-boxed window of recent directional entries and button 2 presses.
# - Backing store for the template matching recognizer.
#
# Design notes:
# - No Qt usage. Pure input bookkeeping.
# - An entry is dropped when it is ttl_ms old or older (kept while now - timestamp < ttl_ms).
# - Consecutive identical directions are collapsed into the first one.
# - Purging happens before every read, so stale entries can never reach a recognizer.
#
########################
# Interfaces:
# Public classes:
# - class InputBuffer
#   - __init__(max_entries: int = 20, ttl_ms: float = 500.0)
#   - add_direction(direction: Direction, timestamp_ms: float, now_ms: float) -> bool
#   - record_button2(timestamp_ms: float, now_ms: float) -> None
#   - entries(now_ms: float) -> tuple[DirectionalEntry, ...]
#   - sequence(count: int = 4) -> list[Direction]
#   - last_button2_ms(now_ms: float) -> Optional[float]
#   - last_down_forward_ms(now_ms: float) -> Optional[float]
#   - sequence_text() -> str
#   - clear() -> None
#
# Inputs:
# - DirectionEvent and Button2Event timestamps from DevicePoller.
#
# Outputs:
# - DirectionalEntry windows for TemplateMatchRecognizer and for debugging output.
#
########################

from __future__ import annotations

from typing import List, Optional, Tuple

from input_models import Direction, DirectionalEntry


class InputBuffer:
    def __init__(self, max_entries: int = 20, ttl_ms: float = 500.0) -> None:
        self._max_entries = max(1, int(max_entries))
        self._ttl_ms = float(ttl_ms)
        self._entries: List[DirectionalEntry] = []
        self._button2_times_ms: List[float] = []

    def max_entries(self) -> int:
        return self._max_entries

    def ttl_ms(self) -> float:
        return self._ttl_ms

    def _is_fresh(self, timestamp_ms: float, now_ms: float) -> bool:
        return float(now_ms) - float(timestamp_ms) < self._ttl_ms

    def _purge(self, now_ms: float) -> None:
        self._entries = [entry for entry in self._entries if self._is_fresh(entry.timestamp_ms, now_ms)]
        self._button2_times_ms = [value for value in self._button2_times_ms if self._is_fresh(value, now_ms)]

    def add_direction(self, direction: Direction, timestamp_ms: float, now_ms: float) -> bool:
        """
        Append a direction unless it repeats the latest entry.

        Returns True if an entry was appended.
        """
        self._purge(now_ms)

        if self._entries and self._entries[-1].direction == direction:
            return False

        self._entries.append(DirectionalEntry(direction=direction, timestamp_ms=float(timestamp_ms)))
        while len(self._entries) > self._max_entries:
            self._entries.pop(0)
        return True

    def record_button2(self, timestamp_ms: float, now_ms: float) -> None:
        self._purge(now_ms)
        self._button2_times_ms.append(float(timestamp_ms))

    def entries(self, now_ms: float) -> Tuple[DirectionalEntry, ...]:
        self._purge(now_ms)
        return tuple(self._entries)

    def sequence(self, count: int = 4) -> List[Direction]:
        if int(count) <= 0:
            return []
        return [entry.direction for entry in self._entries[-int(count):]]

    def last_button2_ms(self, now_ms: float) -> Optional[float]:
        self._purge(now_ms)
        if not self._button2_times_ms:
            return None
        return self._button2_times_ms[-1]

    def last_down_forward_ms(self, now_ms: float) -> Optional[float]:
        self._purge(now_ms)
        for entry in reversed(self._entries):
            if entry.direction == Direction.DOWN_FORWARD:
                return entry.timestamp_ms
        return None

    def sequence_text(self) -> str:
        return " → ".join(entry.direction.value for entry in self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._button2_times_ms.clear()


def _run_unit_tests() -> None:
    buffer = InputBuffer(max_entries=3, ttl_ms=500.0)
    assert buffer.add_direction(Direction.FORWARD, 0.0, now_ms=0.0)
    assert not buffer.add_direction(Direction.FORWARD, 5.0, now_ms=5.0)
    buffer.add_direction(Direction.NEUTRAL, 10.0, now_ms=10.0)
    buffer.add_direction(Direction.DOWN, 20.0, now_ms=20.0)
    buffer.add_direction(Direction.DOWN_FORWARD, 30.0, now_ms=30.0)
    assert buffer.sequence(4) == [Direction.NEUTRAL, Direction.DOWN, Direction.DOWN_FORWARD]

    assert buffer.entries(now_ms=509.9) != ()
    assert buffer.entries(now_ms=530.0) == ()

    buffer.record_button2(600.0, now_ms=600.0)
    assert buffer.last_button2_ms(now_ms=600.0) == 600.0
    buffer.clear()
    assert buffer.last_button2_ms(now_ms=600.0) is None


if __name__ == "__main__":
    _run_unit_tests()
    print("input_buffer.py: ok")
