# -*- coding: utf-8 -*-
########################
# frame_quantizer.py
########################
# Purpose:
# - Single source of truth for converting millisecond timestamps into 60 Hz frame numbers.
# - Accumulates a sparse per-frame record of directions and buttons for the current attempt.
#
# Design notes:
# - No Qt usage. Keep this module pure and deterministic.
# - frame_of(t) = floor((t - session_start_ms) / frame_duration_ms).
# - Timestamps before session start are clamped to frame 0.
# - clear() drops the records but keeps session_start_ms, so frame numbers stay comparable
#   across attempts within one session.
#
########################
# Interfaces:
# Public classes:
# - class FrameQuantizer
#   - __init__(session_start_ms: float, frame_duration_ms: float = 1000/60)
#   - session_start_ms() -> float
#   - frame_duration_ms() -> float
#   - frame_of(timestamp_ms: float) -> int
#   - frame_start_ms(frame_number: int) -> float
#   - record_direction(direction: Direction, timestamp_ms: float) -> int
#   - record_button(button_id: ButtonId, timestamp_ms: float) -> int
#   - timeline() -> tuple[FrameRecord, ...]
#   - discard_before(frame_number: int) -> int
#   - is_empty() -> bool
#   - clear() -> None
#
# Inputs:
# - Resolved DirectionEvent and Button2Event timestamps from DevicePoller (milliseconds).
#
# Outputs:
# - Timeline consumed by MotionRecognizer and InputHistory.
#
########################

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from input_models import ButtonId, Direction, FrameRecord


DEFAULT_FRAME_DURATION_MS = 1000.0 / 60.0


@dataclass
class _FrameSlot:
    directions: List[Direction] = field(default_factory=list)
    buttons: List[ButtonId] = field(default_factory=list)
    direction_times_ms: Dict[Direction, float] = field(default_factory=dict)
    button_times_ms: Dict[ButtonId, float] = field(default_factory=dict)


class FrameQuantizer:
    def __init__(self, session_start_ms: float, frame_duration_ms: float = DEFAULT_FRAME_DURATION_MS) -> None:
        if float(frame_duration_ms) <= 0.0:
            raise ValueError("frame_duration_ms must be positive")
        self._session_start_ms = float(session_start_ms)
        self._frame_duration_ms = float(frame_duration_ms)
        self._slots: Dict[int, _FrameSlot] = {}

    def session_start_ms(self) -> float:
        return float(self._session_start_ms)

    def frame_duration_ms(self) -> float:
        return float(self._frame_duration_ms)

    def frame_of(self, timestamp_ms: float) -> int:
        elapsed_ms = float(timestamp_ms) - self._session_start_ms
        if elapsed_ms <= 0.0:
            return 0
        return int(math.floor(elapsed_ms / self._frame_duration_ms))

    def frame_start_ms(self, frame_number: int) -> float:
        return self._session_start_ms + int(frame_number) * self._frame_duration_ms

    def _slot_for(self, timestamp_ms: float) -> Tuple[int, _FrameSlot]:
        frame_number = self.frame_of(timestamp_ms)
        slot = self._slots.get(frame_number)
        if slot is None:
            slot = _FrameSlot()
            self._slots[frame_number] = slot
        return frame_number, slot

    def record_direction(self, direction: Direction, timestamp_ms: float) -> int:
        frame_number, slot = self._slot_for(timestamp_ms)
        if direction not in slot.directions:
            slot.directions.append(direction)
            slot.direction_times_ms[direction] = float(timestamp_ms)
        return frame_number

    def record_button(self, button_id: ButtonId, timestamp_ms: float) -> int:
        frame_number, slot = self._slot_for(timestamp_ms)
        if button_id not in slot.buttons:
            slot.buttons.append(button_id)
            slot.button_times_ms[button_id] = float(timestamp_ms)
        return frame_number

    def timeline(self) -> Tuple[FrameRecord, ...]:
        records: List[FrameRecord] = []
        for frame_number in sorted(self._slots.keys()):
            slot = self._slots[frame_number]
            records.append(
                FrameRecord(
                    frame_number=frame_number,
                    directions=frozenset(slot.directions),
                    buttons=frozenset(slot.buttons),
                    direction_times_ms=dict(slot.direction_times_ms),
                    button_times_ms=dict(slot.button_times_ms),
                )
            )
        return tuple(records)

    def discard_before(self, frame_number: int) -> int:
        """Drop records older than frame_number. Returns how many frames were dropped."""
        stale_frames = [number for number in self._slots.keys() if number < int(frame_number)]
        for number in stale_frames:
            del self._slots[number]
        return len(stale_frames)

    def is_empty(self) -> bool:
        return not self._slots

    def clear(self) -> None:
        # Do not reset session_start_ms. Frame numbering is continuous for the session.
        self._slots.clear()


def _run_unit_tests() -> None:
    quantizer = FrameQuantizer(session_start_ms=1000.0)
    assert quantizer.frame_of(1000.0) == 0
    assert quantizer.frame_of(1016.6) == 0
    assert quantizer.frame_of(1016.7) == 1
    assert quantizer.frame_of(500.0) == 0

    quantizer.record_direction(Direction.FORWARD, 1001.0)
    quantizer.record_direction(Direction.FORWARD, 1002.0)
    quantizer.record_button(ButtonId.BUTTON_2, 1040.0)
    timeline = quantizer.timeline()
    assert [record.frame_number for record in timeline] == [0, 2]
    assert timeline[0].directions == frozenset({Direction.FORWARD})
    assert timeline[0].direction_times_ms[Direction.FORWARD] == 1001.0

    quantizer.clear()
    assert quantizer.is_empty()
    assert quantizer.session_start_ms() == 1000.0
    assert quantizer.frame_of(1040.0) == 2


if __name__ == "__main__":
    _run_unit_tests()
    print("frame_quantizer.py: ok")
