# -*- coding: utf-8 -*-
########################
# input_history.py
########################
# Purpose:
# - Bounded history of direction and button 2 inputs for the presentation collaborator.
# - Provides a merged view where a down-forward and a button 2 in the same frame read as one "d/f+2" row.
#
# Design notes:
# - No Qt usage. Rendering is owned by the presentation side; this module only shapes rows.
# - Frame numbers come from the shared FrameQuantizer (floor), the same numbering the recognizer uses.
# - Only a down-forward row immediately followed by a button 2 row of the same frame is merged.
#
########################
# Interfaces:
# Public dataclasses:
# - HistoryEntry(kind: str, frame_number: int, timestamp_ms: float, direction: Optional[Direction],
#                delta_ms: Optional[float], same_frame: bool, combined: bool)
#   - label -> str
#   - display_frame -> str
#
# Public classes:
# - class InputHistory
#   - __init__(frame_of: Callable[[float], int], max_entries: int = 100)
#   - record_direction(direction: Direction, timestamp_ms: float) -> HistoryEntry
#   - record_button2(timestamp_ms: float, down_forward_ms: Optional[float] = None) -> HistoryEntry
#   - entries() -> list[HistoryEntry]
#   - last(count: int = 30) -> list[HistoryEntry]
#   - merged() -> list[HistoryEntry]
#   - clear() -> None
#
########################

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from input_models import Direction


KIND_DIRECTION = "direction"
KIND_BUTTON2 = "button2"


@dataclass(frozen=True)
class HistoryEntry:
    kind: str
    frame_number: int
    timestamp_ms: float
    direction: Optional[Direction] = None
    delta_ms: Optional[float] = None
    same_frame: bool = False
    combined: bool = False

    @property
    def label(self) -> str:
        if self.kind == KIND_BUTTON2:
            return "2"
        if self.direction is None:
            return ""
        if self.combined:
            return self.direction.symbol + "+2"
        return self.direction.symbol

    @property
    def arrow(self) -> str:
        if self.kind == KIND_BUTTON2:
            return "2"
        if self.direction is None:
            return ""
        if self.combined:
            return self.direction.arrow + "+2"
        return self.direction.arrow

    @property
    def display_frame(self) -> str:
        return f"{self.frame_number}f"

    @property
    def delta_text(self) -> str:
        if self.delta_ms is None:
            return ""
        sign = "-" if self.delta_ms < 0 else "+"
        return f"{sign}{abs(round(self.delta_ms, 2))}ms"


class InputHistory:
    def __init__(self, frame_of: Callable[[float], int], max_entries: int = 100) -> None:
        self._frame_of = frame_of
        self._max_entries = max(1, int(max_entries))
        self._entries: List[HistoryEntry] = []

    def _append(self, entry: HistoryEntry) -> HistoryEntry:
        self._entries.append(entry)
        if len(self._entries) > self._max_entries:
            del self._entries[: len(self._entries) - self._max_entries]
        return entry

    def record_direction(self, direction: Direction, timestamp_ms: float) -> HistoryEntry:
        return self._append(
            HistoryEntry(
                kind=KIND_DIRECTION,
                frame_number=self._frame_of(timestamp_ms),
                timestamp_ms=float(timestamp_ms),
                direction=direction,
            )
        )

    def record_button2(self, timestamp_ms: float, down_forward_ms: Optional[float] = None) -> HistoryEntry:
        frame_number = self._frame_of(timestamp_ms)
        delta_ms: Optional[float] = None
        same_frame = False
        if down_forward_ms is not None:
            delta_ms = float(timestamp_ms) - float(down_forward_ms)
            same_frame = frame_number == self._frame_of(down_forward_ms)

        return self._append(
            HistoryEntry(
                kind=KIND_BUTTON2,
                frame_number=frame_number,
                timestamp_ms=float(timestamp_ms),
                delta_ms=delta_ms,
                same_frame=same_frame,
            )
        )

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def last(self, count: int = 30) -> List[HistoryEntry]:
        if int(count) <= 0:
            return []
        return self._entries[-int(count):]

    def merged(self) -> List[HistoryEntry]:
        merged_entries: List[HistoryEntry] = []
        index = 0
        while index < len(self._entries):
            current = self._entries[index]
            following = self._entries[index + 1] if index + 1 < len(self._entries) else None
            if (
                current.kind == KIND_DIRECTION
                and current.direction == Direction.DOWN_FORWARD
                and following is not None
                and following.kind == KIND_BUTTON2
                and following.frame_number == current.frame_number
            ):
                merged_entries.append(replace(current, combined=True, delta_ms=following.delta_ms, same_frame=True))
                index += 2
                continue
            merged_entries.append(current)
            index += 1
        return merged_entries

    def clear(self) -> None:
        self._entries.clear()


def _run_unit_tests() -> None:
    history = InputHistory(lambda timestamp_ms: int(timestamp_ms // (1000.0 / 60.0)), max_entries=4)
    history.record_direction(Direction.FORWARD, 0.0)
    history.record_direction(Direction.DOWN_FORWARD, 20.0)
    history.record_button2(25.0, down_forward_ms=20.0)

    merged = history.merged()
    assert [entry.label for entry in merged] == ["f", "d/f+2"]
    assert merged[1].delta_text == "+5.0ms"

    for offset in range(5):
        history.record_direction(Direction.NEUTRAL, 100.0 + offset)
    assert len(history.entries()) == 4


if __name__ == "__main__":
    _run_unit_tests()
    print("input_history.py: ok")
