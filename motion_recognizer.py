# -*- coding: utf-8 -*-
########################
# motion_recognizer.py
########################
# Purpose:
# - Detect the trained motion (forward, optional neutral/down, then down-forward) in the current attempt.
# - Report the motion start and completion markers used by the timing classifier.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - One MotionRecognizer protocol, two strategies selected by configuration:
#   - StructuralScanRecognizer (default): scans the frame timeline, tolerant of extra frames.
#   - TemplateMatchRecognizer: exact short templates anchored at the end of the entry window.
# - A structural violation means "no motion detected". It is never a timing verdict.
#
########################
# Interfaces:
# Public dataclasses:
# - AttemptSnapshot(timeline: tuple[FrameRecord, ...], entries: tuple[DirectionalEntry, ...])
#
# Public protocols:
# - class MotionRecognizer(Protocol)
#   - name -> str
#   - recognize(snapshot: AttemptSnapshot) -> MotionMatch
#
# Public classes:
# - class StructuralScanRecognizer
#   - __init__(max_span_frames: int = 20)
# - class TemplateMatchRecognizer
#   - __init__(frame_of: Callable[[float], int], templates: Sequence[Sequence[Direction]] = DEFAULT_TEMPLATES)
#
# Public functions:
# - build_recognizer(config: TrainerConfig, frame_of: Callable[[float], int]) -> MotionRecognizer
#
# Inputs:
# - AttemptSnapshot built by AttemptController from FrameQuantizer and InputBuffer.
#
# Outputs:
# - MotionMatch for TimingClassifier.
#
########################

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Protocol, Sequence, Tuple

from input_models import Direction, DirectionalEntry, FrameRecord, MotionMatch
from trainer_config import TrainerConfig

logger = logging.getLogger(__name__)


# Only these may appear strictly between the forward frame and the down-forward frame.
ALLOWED_BETWEEN: FrozenSet[Direction] = frozenset({Direction.NEUTRAL, Direction.DOWN, Direction.FORWARD})

LONG_TEMPLATE: Tuple[Direction, ...] = (Direction.FORWARD, Direction.NEUTRAL, Direction.DOWN, Direction.DOWN_FORWARD)
SHORT_TEMPLATE: Tuple[Direction, ...] = (Direction.FORWARD, Direction.NEUTRAL, Direction.DOWN_FORWARD)
SHORT_ALT_TEMPLATE: Tuple[Direction, ...] = (Direction.FORWARD, Direction.DOWN, Direction.DOWN_FORWARD)
DEFAULT_TEMPLATES: Tuple[Tuple[Direction, ...], ...] = (LONG_TEMPLATE, SHORT_TEMPLATE, SHORT_ALT_TEMPLATE)


@dataclass(frozen=True)
class AttemptSnapshot:
    timeline: Tuple[FrameRecord, ...] = ()
    entries: Tuple[DirectionalEntry, ...] = ()


class MotionRecognizer(Protocol):
    @property
    def name(self) -> str: ...

    def recognize(self, snapshot: AttemptSnapshot) -> MotionMatch: ...


class StructuralScanRecognizer:
    """
    Timeline scan.

    1) earliest frame containing forward
    2) first later frame containing down-forward
    3) frames strictly between may only hold neutral, down or forward
    4) completion - start must not exceed max_span_frames
    """

    def __init__(self, max_span_frames: int = 20) -> None:
        self._max_span_frames = int(max_span_frames)

    @property
    def name(self) -> str:
        return "structural_scan"

    def recognize(self, snapshot: AttemptSnapshot) -> MotionMatch:
        timeline = snapshot.timeline
        if not timeline:
            return MotionMatch.not_detected("empty timeline")

        start_index = _first_index_with(timeline, Direction.FORWARD, 0)
        if start_index is None:
            return MotionMatch.not_detected("no forward")

        completion_index = _first_index_with(timeline, Direction.DOWN_FORWARD, start_index + 1)
        if completion_index is None:
            return MotionMatch.not_detected("no down-forward after forward")

        start_record = timeline[start_index]
        completion_record = timeline[completion_index]

        span = completion_record.frame_number - start_record.frame_number
        if span > self._max_span_frames:
            logger.debug("Motion span %d exceeds %d frames", span, self._max_span_frames)
            return MotionMatch.not_detected(f"span {span} exceeds {self._max_span_frames} frames")

        for record in timeline[start_index + 1:completion_index]:
            disallowed = record.directions - ALLOWED_BETWEEN
            if disallowed:
                found = ", ".join(sorted(direction.value for direction in disallowed))
                logger.debug("Disallowed direction(s) %s at frame %d", found, record.frame_number)
                return MotionMatch.not_detected(f"disallowed {found} at frame {record.frame_number}")

        return MotionMatch(
            detected=True,
            motion_start_frame=start_record.frame_number,
            motion_completion_frame=completion_record.frame_number,
            input_frames=span + 1,
            motion_start_ms=start_record.direction_times_ms.get(Direction.FORWARD),
            motion_completion_ms=completion_record.direction_times_ms.get(Direction.DOWN_FORWARD),
        )


def _first_index_with(timeline: Sequence[FrameRecord], direction: Direction, start_index: int) -> Optional[int]:
    for index in range(int(start_index), len(timeline)):
        if timeline[index].has_direction(direction):
            return index
    return None


class TemplateMatchRecognizer:
    """
    Exact template match on the buffered entry window.

    The window must end with one of the templates, longest first. No interleaved
    extra entries are tolerated.
    """

    def __init__(
        self,
        frame_of: Callable[[float], int],
        templates: Sequence[Sequence[Direction]] = DEFAULT_TEMPLATES,
    ) -> None:
        self._frame_of = frame_of
        self._templates: Tuple[Tuple[Direction, ...], ...] = tuple(
            sorted((tuple(template) for template in templates), key=len, reverse=True)
        )

    @property
    def name(self) -> str:
        return "template_match"

    def recognize(self, snapshot: AttemptSnapshot) -> MotionMatch:
        entries = snapshot.entries
        if not entries:
            return MotionMatch.not_detected("empty window")

        directions = tuple(entry.direction for entry in entries)
        for template in self._templates:
            if len(directions) < len(template):
                continue
            if directions[-len(template):] != template:
                continue

            start_entry = entries[-len(template)]
            completion_entry = entries[-1]
            start_frame = self._frame_of(start_entry.timestamp_ms)
            completion_frame = self._frame_of(completion_entry.timestamp_ms)
            return MotionMatch(
                detected=True,
                motion_start_frame=start_frame,
                motion_completion_frame=completion_frame,
                input_frames=completion_frame - start_frame + 1,
                motion_start_ms=start_entry.timestamp_ms,
                motion_completion_ms=completion_entry.timestamp_ms,
            )

        return MotionMatch.not_detected("window does not end with a motion template")


def build_recognizer(config: TrainerConfig, frame_of: Callable[[float], int]) -> MotionRecognizer:
    policy = config.attempt.recognizer_policy
    if policy == "template_match":
        return TemplateMatchRecognizer(frame_of)
    if policy == "structural_scan":
        return StructuralScanRecognizer(max_span_frames=config.timing.max_motion_span_frames)
    raise ValueError(f"Unknown recognizer policy: {policy}")


def _run_unit_tests() -> None:
    def record(frame_number: int, *directions: Direction) -> FrameRecord:
        return FrameRecord(frame_number=frame_number, directions=frozenset(directions))

    scan = StructuralScanRecognizer()
    match = scan.recognize(
        AttemptSnapshot(
            timeline=(
                record(0, Direction.FORWARD),
                record(1, Direction.NEUTRAL, Direction.DOWN, Direction.DOWN_FORWARD),
            )
        )
    )
    assert match.detected
    assert match.input_frames == 2

    blocked = scan.recognize(
        AttemptSnapshot(timeline=(record(0, Direction.FORWARD), record(1, Direction.UP), record(2, Direction.DOWN_FORWARD)))
    )
    assert not blocked.detected

    template = TemplateMatchRecognizer(lambda timestamp_ms: int(timestamp_ms // (1000.0 / 60.0)))
    entries = (
        DirectionalEntry(Direction.FORWARD, 0.0),
        DirectionalEntry(Direction.NEUTRAL, 10.0),
        DirectionalEntry(Direction.DOWN_FORWARD, 20.0),
    )
    found = template.recognize(AttemptSnapshot(entries=entries))
    assert found.detected
    assert (found.motion_start_frame, found.motion_completion_frame, found.input_frames) == (0, 1, 2)


if __name__ == "__main__":
    _run_unit_tests()
    print("motion_recognizer.py: ok")
