# -*- coding: utf-8 -*-
########################
# input_models.py
########################
# Purpose:
# - Core data models for the input-to-classification pipeline.
# - Defines directions, buttons, per-frame records, motion markers and attempt results.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain enums and frozen dataclasses.
# - Direction values are fighting game notation strings so they read well in logs.
#
########################
# Interfaces:
# Public enums:
# - class Direction(enum.Enum): NEUTRAL | UP | DOWN | FORWARD | BACK | UP_FORWARD | UP_BACK | DOWN_FORWARD | DOWN_BACK
# - class ButtonId(enum.Enum): BUTTON_2
# - class Tier(enum.Enum): MISS | LATE | MID | TOP
#
# Public dataclasses:
# - FrameRecord(frame_number: int, directions: frozenset, buttons: frozenset, direction_times_ms: dict, button_times_ms: dict)
# - DirectionalEntry(direction: Direction, timestamp_ms: float)
# - DirectionEvent(direction: Direction, timestamp_ms: float)
# - Button2Event(timestamp_ms: float, source: str)
# - MotionMatch(detected: bool, motion_start_frame: int, motion_completion_frame: int, input_frames: int, ...)
# - ButtonMarker(frame_number: int, timestamp_ms: Optional[float])
# - ClassificationResult(tier: Tier, total_frames: int, input_frames: int, confidence: float, delta_ms: Optional[float], policy: str)
# - AttemptRecord(tier: Tier, delta_ms: Optional[float], total_frames: int, input_frames: int, timestamp_ms: float)
#   - from_dict(payload: dict) -> AttemptRecord / to_dict() -> dict
#
# Inputs/Outputs:
# - These types are exchanged between DevicePoller, FrameQuantizer, InputBuffer, MotionRecognizer,
#   TimingClassifier, AttemptController and the presentation and persistence collaborators.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class Direction(enum.Enum):
    NEUTRAL = "n"
    UP = "u"
    DOWN = "d"
    FORWARD = "f"
    BACK = "b"
    UP_FORWARD = "u/f"
    UP_BACK = "u/b"
    DOWN_FORWARD = "d/f"
    DOWN_BACK = "d/b"

    @property
    def arrow(self) -> str:
        return _DIRECTION_ARROWS[self]

    @property
    def symbol(self) -> str:
        # Neutral renders as a blank cell in notation.
        if self is Direction.NEUTRAL:
            return ""
        return self.value


_DIRECTION_ARROWS: Dict[Direction, str] = {
    Direction.NEUTRAL: "",
    Direction.UP: "↑",
    Direction.DOWN: "↓",
    Direction.FORWARD: "→",
    Direction.BACK: "←",
    Direction.UP_FORWARD: "↗",
    Direction.UP_BACK: "↖",
    Direction.DOWN_FORWARD: "↘",
    Direction.DOWN_BACK: "↙",
}


def direction_from_axes(vertical: int, horizontal: int) -> Direction:
    """
    Build a Direction from resolved axis signs.

    vertical:   -1 = up, 0 = none, +1 = down
    horizontal: -1 = back, 0 = none, +1 = forward
    """
    return _AXES_TO_DIRECTION[(int(vertical), int(horizontal))]


_AXES_TO_DIRECTION: Dict[Tuple[int, int], Direction] = {
    (0, 0): Direction.NEUTRAL,
    (-1, 0): Direction.UP,
    (1, 0): Direction.DOWN,
    (0, 1): Direction.FORWARD,
    (0, -1): Direction.BACK,
    (-1, 1): Direction.UP_FORWARD,
    (-1, -1): Direction.UP_BACK,
    (1, 1): Direction.DOWN_FORWARD,
    (1, -1): Direction.DOWN_BACK,
}


class ButtonId(enum.Enum):
    BUTTON_2 = "2"


class Tier(enum.Enum):
    MISS = "miss"
    LATE = "late"
    MID = "mid"
    TOP = "top"

    @property
    def is_success(self) -> bool:
        return self is not Tier.MISS


@dataclass(frozen=True)
class FrameRecord:
    frame_number: int
    directions: FrozenSet[Direction] = frozenset()
    buttons: FrozenSet[ButtonId] = frozenset()
    # First timestamp seen for each value inside this frame.
    direction_times_ms: Dict[Direction, float] = field(default_factory=dict, compare=False)
    button_times_ms: Dict[ButtonId, float] = field(default_factory=dict, compare=False)

    def has_direction(self, direction: Direction) -> bool:
        return direction in self.directions

    def has_button(self, button_id: ButtonId) -> bool:
        return button_id in self.buttons


@dataclass(frozen=True)
class DirectionalEntry:
    direction: Direction
    timestamp_ms: float


@dataclass(frozen=True)
class DirectionEvent:
    direction: Direction
    timestamp_ms: float


@dataclass(frozen=True)
class Button2Event:
    timestamp_ms: float
    source: str = "keyboard"


@dataclass(frozen=True)
class MotionMatch:
    detected: bool
    motion_start_frame: int = -1
    motion_completion_frame: int = -1
    input_frames: int = 0
    motion_start_ms: Optional[float] = None
    motion_completion_ms: Optional[float] = None
    reason: str = ""

    @classmethod
    def not_detected(cls, reason: str) -> "MotionMatch":
        return cls(detected=False, reason=str(reason))


@dataclass(frozen=True)
class ButtonMarker:
    frame_number: int
    timestamp_ms: Optional[float] = None


@dataclass(frozen=True)
class ClassificationResult:
    tier: Tier
    total_frames: int
    input_frames: int
    confidence: float
    delta_ms: Optional[float] = None
    policy: str = ""


@dataclass(frozen=True)
class AttemptRecord:
    tier: Tier
    delta_ms: Optional[float]
    total_frames: int
    input_frames: int
    timestamp_ms: float

    @classmethod
    def from_result(cls, result: ClassificationResult, *, timestamp_ms: float) -> "AttemptRecord":
        return cls(
            tier=result.tier,
            delta_ms=result.delta_ms,
            total_frames=int(result.total_frames),
            input_frames=int(result.input_frames),
            timestamp_ms=float(timestamp_ms),
        )

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AttemptRecord":
        delta_value = payload.get("delta_ms")
        return cls(
            tier=Tier(str(payload.get("tier", Tier.MISS.value))),
            delta_ms=None if delta_value is None else float(delta_value),
            total_frames=int(payload.get("total_frames", 0)),
            input_frames=int(payload.get("input_frames", 0)),
            timestamp_ms=float(payload.get("timestamp_ms", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "delta_ms": self.delta_ms,
            "total_frames": self.total_frames,
            "input_frames": self.input_frames,
            "timestamp_ms": self.timestamp_ms,
        }
