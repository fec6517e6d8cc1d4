from __future__ import annotations

from frame_quantizer import FrameQuantizer
from input_models import ButtonId, Direction

FRAME_MS = 1000.0 / 60.0


def test_frame_of_uses_floor_from_session_start() -> None:
    quantizer = FrameQuantizer(session_start_ms=100.0)

    assert quantizer.frame_of(100.0) == 0
    assert quantizer.frame_of(100.0 + FRAME_MS - 0.01) == 0
    assert quantizer.frame_of(100.0 + FRAME_MS + 0.01) == 1
    assert quantizer.frame_of(100.0 + 20 * FRAME_MS + 0.01) == 20


def test_timestamps_before_session_start_clamp_to_frame_zero() -> None:
    quantizer = FrameQuantizer(session_start_ms=100.0)

    assert quantizer.frame_of(0.0) == 0
    assert quantizer.frame_of(-50.0) == 0


def test_recording_is_idempotent_and_keeps_first_timestamp() -> None:
    quantizer = FrameQuantizer(session_start_ms=0.0)

    quantizer.record_direction(Direction.FORWARD, 1.0)
    quantizer.record_direction(Direction.FORWARD, 5.0)
    quantizer.record_button(ButtonId.BUTTON_2, 6.0)
    quantizer.record_button(ButtonId.BUTTON_2, 7.0)

    (record,) = quantizer.timeline()
    assert record.directions == frozenset({Direction.FORWARD})
    assert record.buttons == frozenset({ButtonId.BUTTON_2})
    assert record.direction_times_ms[Direction.FORWARD] == 1.0
    assert record.button_times_ms[ButtonId.BUTTON_2] == 6.0


def test_timeline_is_sorted_and_sparse() -> None:
    quantizer = FrameQuantizer(session_start_ms=0.0)

    quantizer.record_direction(Direction.DOWN_FORWARD, 5 * FRAME_MS + 1.0)
    quantizer.record_direction(Direction.FORWARD, 1.0)
    quantizer.record_direction(Direction.NEUTRAL, 2 * FRAME_MS + 1.0)

    assert [record.frame_number for record in quantizer.timeline()] == [0, 2, 5]


def test_discard_before_drops_only_older_frames() -> None:
    quantizer = FrameQuantizer(session_start_ms=0.0)
    for frame_number in (0, 3, 10):
        quantizer.record_direction(Direction.FORWARD, frame_number * FRAME_MS + 1.0)

    assert quantizer.discard_before(3) == 1
    assert [record.frame_number for record in quantizer.timeline()] == [3, 10]
    assert quantizer.discard_before(-5) == 0


def test_clear_keeps_session_start() -> None:
    quantizer = FrameQuantizer(session_start_ms=250.0)
    quantizer.record_direction(Direction.DOWN, 310.0)

    quantizer.clear()

    assert quantizer.is_empty()
    assert quantizer.timeline() == ()
    assert quantizer.session_start_ms() == 250.0
    assert quantizer.frame_of(310.0) == 3
