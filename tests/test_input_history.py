from __future__ import annotations

from input_history import InputHistory
from input_models import Direction

FRAME_MS = 1000.0 / 60.0


def frame_of(timestamp_ms: float) -> int:
    return int(timestamp_ms // FRAME_MS)


def test_down_forward_and_same_frame_button_merge() -> None:
    history = InputHistory(frame_of)
    history.record_direction(Direction.FORWARD, 1.0)
    history.record_direction(Direction.DOWN_FORWARD, 20.0)
    history.record_button2(22.5, down_forward_ms=20.0)

    merged = history.merged()

    assert [entry.label for entry in merged] == ["f", "d/f+2"]
    assert merged[1].arrow == "↘+2"
    assert merged[1].same_frame
    assert merged[1].delta_text == "+2.5ms"
    assert merged[1].display_frame == "1f"


def test_button_in_later_frame_stays_separate() -> None:
    history = InputHistory(frame_of)
    history.record_direction(Direction.DOWN_FORWARD, 20.0)
    button = history.record_button2(40.0, down_forward_ms=20.0)

    assert not button.same_frame
    assert [entry.label for entry in history.merged()] == ["d/f", "2"]


def test_negative_delta_text() -> None:
    history = InputHistory(frame_of)
    entry = history.record_button2(10.0, down_forward_ms=12.25)

    assert entry.delta_text == "-2.25ms"


def test_neutral_renders_blank() -> None:
    history = InputHistory(frame_of)
    entry = history.record_direction(Direction.NEUTRAL, 0.0)

    assert entry.label == ""
    assert entry.arrow == ""


def test_history_is_bounded() -> None:
    history = InputHistory(frame_of, max_entries=3)
    for index in range(5):
        history.record_direction(Direction.FORWARD if index % 2 else Direction.NEUTRAL, float(index))

    assert len(history.entries()) == 3
    assert [entry.timestamp_ms for entry in history.last(2)] == [3.0, 4.0]
    assert history.last(0) == []

    history.clear()
    assert history.entries() == []
