# -*- coding: utf-8 -*-
########################
# timing_classifier.py
########################
# Purpose:
# - Tier classification from motion completion and the button 2 press.
# - Two interchangeable policies behind one protocol:
#   - FrameCountPolicy (default): same-frame completion and input frame count.
#   - MillisecondWindowPolicy: nested inclusive millisecond windows on the completion to button delta.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - classify() is a pure function of its arguments and the constructor thresholds.
# - Every outcome is a ClassificationResult. Impossible frame counts map to MISS and are logged.
# - Confidence is a fixed value per tier, not a measurement.
#
########################
# Interfaces:
# Public dataclasses:
# - TierInfo(move_name: str, description: str, confidence: float)
# - MillisecondWindows(top_min_ms, top_max_ms, mid_min_ms, mid_max_ms, late_threshold_ms)
#   - classify_delta(delta_ms: float) -> Tier
#
# Public protocols:
# - class TimingClassifier(Protocol)
#   - name -> str
#   - classify(motion: MotionMatch, button: ButtonMarker) -> ClassificationResult
#
# Public classes:
# - class FrameCountPolicy
#   - __init__(startup_frames: int = 11)
# - class MillisecondWindowPolicy
#   - __init__(windows: MillisecondWindows, startup_frames: int = 11)
#
# Public functions:
# - tier_info(tier: Tier) -> TierInfo
# - describe_tier(tier: Tier) -> str
# - build_classifier(config: TrainerConfig) -> TimingClassifier
#
# Inputs:
# - MotionMatch from MotionRecognizer, ButtonMarker from AttemptController.
#
# Outputs:
# - ClassificationResult for presentation and persistence.
#
########################

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from input_models import ButtonMarker, ClassificationResult, MotionMatch, Tier
from trainer_config import TrainerConfig

logger = logging.getLogger(__name__)


# Fewest frames a motion can take: forward in one frame, down-forward plus button in the next.
MIN_INPUT_FRAMES = 2


@dataclass(frozen=True)
class TierInfo:
    move_name: str
    description: str
    confidence: float


_TIER_INFO: Dict[Tier, TierInfo] = {
    Tier.TOP: TierInfo(
        move_name="PEWGF",
        description="Perfect Electric Wind God Fist. Just-frame on the shortest motion!",
        confidence=1.0,
    ),
    Tier.MID: TierInfo(
        move_name="EWGF",
        description="Electric Wind God Fist. Just-frame executed!",
        confidence=0.9,
    ),
    Tier.LATE: TierInfo(
        move_name="WGF",
        description="Wind God Fist. Button was pressed too late.",
        confidence=0.4,
    ),
    Tier.MISS: TierInfo(
        move_name="Miss",
        description="Timing missed. Incorrect motion or early button.",
        confidence=0.0,
    ),
}


def tier_info(tier: Tier) -> TierInfo:
    return _TIER_INFO[tier]


def describe_tier(tier: Tier) -> str:
    return _TIER_INFO[tier].description


def _delta_ms(motion: MotionMatch, button: ButtonMarker) -> Optional[float]:
    if motion.motion_completion_ms is None or button.timestamp_ms is None:
        return None
    return float(button.timestamp_ms) - float(motion.motion_completion_ms)


class TimingClassifier(Protocol):
    @property
    def name(self) -> str: ...

    def classify(self, motion: MotionMatch, button: ButtonMarker) -> ClassificationResult: ...


class FrameCountPolicy:
    """
    Frame based tiers.

    - button frame before completion frame -> MISS
    - button frame after completion frame  -> LATE, total = button - start + 1
    - same frame: 2 input frames -> TOP, more -> MID, fewer -> MISS;
      total = input frames + startup frames
    """

    def __init__(self, startup_frames: int = 11) -> None:
        self._startup_frames = int(startup_frames)

    @property
    def name(self) -> str:
        return "frame_count"

    def _result(
        self,
        tier: Tier,
        *,
        total_frames: int = 0,
        input_frames: int = 0,
        delta_ms: Optional[float] = None,
    ) -> ClassificationResult:
        return ClassificationResult(
            tier=tier,
            total_frames=int(total_frames),
            input_frames=int(input_frames),
            confidence=_TIER_INFO[tier].confidence,
            delta_ms=delta_ms,
            policy=self.name,
        )

    def classify(self, motion: MotionMatch, button: ButtonMarker) -> ClassificationResult:
        if not motion.detected:
            return self._result(Tier.MISS)

        delta = _delta_ms(motion, button)
        input_frames = int(motion.input_frames)
        button_frame = int(button.frame_number)
        completion_frame = int(motion.motion_completion_frame)

        if button_frame < completion_frame:
            return self._result(Tier.MISS, input_frames=input_frames, delta_ms=delta)

        if button_frame > completion_frame:
            total_frames = button_frame - int(motion.motion_start_frame) + 1
            return self._result(Tier.LATE, total_frames=total_frames, input_frames=input_frames, delta_ms=delta)

        total_frames = input_frames + self._startup_frames
        if input_frames == MIN_INPUT_FRAMES:
            return self._result(Tier.TOP, total_frames=total_frames, input_frames=input_frames, delta_ms=delta)
        if input_frames > MIN_INPUT_FRAMES:
            return self._result(Tier.MID, total_frames=total_frames, input_frames=input_frames, delta_ms=delta)

        logger.warning("Same-frame completion with %d input frame(s); classifying as miss", input_frames)
        return self._result(Tier.MISS, input_frames=input_frames, delta_ms=delta)


@dataclass(frozen=True)
class MillisecondWindows:
    top_min_ms: float = 11.67
    top_max_ms: float = 21.67
    mid_min_ms: float = 5.84
    mid_max_ms: float = 27.5
    late_threshold_ms: float = 27.5

    def classify_delta(self, delta_ms: float) -> Tier:
        delta = float(delta_ms)
        if delta < 0.0:
            return Tier.MISS
        if self.top_min_ms <= delta <= self.top_max_ms:
            return Tier.TOP
        if self.mid_min_ms <= delta <= self.mid_max_ms:
            return Tier.MID
        if delta > self.late_threshold_ms:
            return Tier.LATE
        return Tier.MISS


class MillisecondWindowPolicy:
    """
    Millisecond window tiers on delta = button time - completion time.

    Frame fields are filled in from the motion markers so both policies produce
    comparable results.
    """

    def __init__(self, windows: Optional[MillisecondWindows] = None, startup_frames: int = 11) -> None:
        self._windows = windows if windows is not None else MillisecondWindows()
        self._startup_frames = int(startup_frames)

    @property
    def name(self) -> str:
        return "millisecond_window"

    def windows(self) -> MillisecondWindows:
        return self._windows

    def classify(self, motion: MotionMatch, button: ButtonMarker) -> ClassificationResult:
        delta = _delta_ms(motion, button)
        if not motion.detected or delta is None:
            return ClassificationResult(
                tier=Tier.MISS,
                total_frames=0,
                input_frames=int(motion.input_frames) if motion.detected else 0,
                confidence=_TIER_INFO[Tier.MISS].confidence,
                delta_ms=delta,
                policy=self.name,
            )

        tier = self._windows.classify_delta(delta)
        input_frames = int(motion.input_frames)
        if tier in (Tier.TOP, Tier.MID):
            total_frames = input_frames + self._startup_frames
        elif tier == Tier.LATE:
            total_frames = int(button.frame_number) - int(motion.motion_start_frame) + 1
        else:
            total_frames = 0

        return ClassificationResult(
            tier=tier,
            total_frames=total_frames,
            input_frames=input_frames,
            confidence=_TIER_INFO[tier].confidence,
            delta_ms=delta,
            policy=self.name,
        )


def build_classifier(config: TrainerConfig) -> TimingClassifier:
    policy = config.attempt.classifier_policy
    startup_frames = config.timing.startup_frames
    if policy == "millisecond_window":
        timing = config.timing
        windows = MillisecondWindows(
            top_min_ms=timing.top_window_min_ms,
            top_max_ms=timing.top_window_max_ms,
            mid_min_ms=timing.mid_window_min_ms,
            mid_max_ms=timing.mid_window_max_ms,
            late_threshold_ms=timing.late_threshold_ms,
        )
        return MillisecondWindowPolicy(windows, startup_frames=startup_frames)
    if policy == "frame_count":
        return FrameCountPolicy(startup_frames=startup_frames)
    raise ValueError(f"Unknown classifier policy: {policy}")


def _run_unit_tests() -> None:
    policy = FrameCountPolicy()
    motion = MotionMatch(detected=True, motion_start_frame=0, motion_completion_frame=1, input_frames=2)
    top = policy.classify(motion, ButtonMarker(frame_number=1))
    assert top.tier == Tier.TOP
    assert top.total_frames == 13
    assert top.confidence == 1.0

    late_motion = MotionMatch(detected=True, motion_start_frame=0, motion_completion_frame=5, input_frames=6)
    late = policy.classify(late_motion, ButtonMarker(frame_number=9))
    assert late.tier == Tier.LATE
    assert late.total_frames == 10

    early = policy.classify(late_motion, ButtonMarker(frame_number=3))
    assert early.tier == Tier.MISS

    windows = MillisecondWindows()
    assert windows.classify_delta(11.67) == Tier.TOP
    assert windows.classify_delta(21.67) == Tier.TOP
    assert windows.classify_delta(5.84) == Tier.MID
    assert windows.classify_delta(27.5) == Tier.MID
    assert windows.classify_delta(27.51) == Tier.LATE
    assert windows.classify_delta(5.0) == Tier.MISS
    assert windows.classify_delta(-0.01) == Tier.MISS


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_classifier.py: ok")
