from __future__ import annotations

import pytest

from input_models import AttemptRecord, Tier
from session_stats import SessionStats


def attempt(tier: Tier, delta_ms, timestamp_ms: float = 0.0) -> AttemptRecord:  # noqa: ANN001
    return AttemptRecord(tier=tier, delta_ms=delta_ms, total_frames=0, input_frames=0, timestamp_ms=timestamp_ms)


def test_empty_session_reports_zeroes() -> None:
    summary = SessionStats().summary()

    assert summary.total == 0
    assert summary.mid_or_better_rate == 0.0
    assert summary.average_delta_ms == 0.0
    assert summary.std_dev_ms == 0.0
    assert all(rate == 0.0 for rate in summary.rates.values())


def test_rates_and_delta_statistics() -> None:
    stats = SessionStats(moving_average_window=2)
    for record in (
        attempt(Tier.TOP, 12.0),
        attempt(Tier.MID, 8.0),
        attempt(Tier.MISS, None),
        attempt(Tier.LATE, 40.0),
    ):
        stats.record(record)

    summary = stats.summary()

    assert summary.total == 4
    assert summary.counts[Tier.LATE] == 1
    assert summary.rates[Tier.TOP] == 25.0
    assert summary.mid_or_better_rate == 50.0
    assert summary.average_delta_ms == pytest.approx(20.0)
    assert summary.std_dev_ms == pytest.approx(14.236, abs=1e-3)
    assert summary.moving_average_ms == 40.0
    assert [record.tier for record in stats.recent()] == [Tier.MISS, Tier.LATE]


def test_export_and_import_restore_records() -> None:
    stats = SessionStats()
    stats.record(attempt(Tier.TOP, 15.0, timestamp_ms=100.0))
    stats.record(attempt(Tier.MISS, None, timestamp_ms=400.0))

    restored = SessionStats()
    restored.import_records(stats.export())

    assert restored.records() == stats.records()
    assert restored.export()[0]["tier"] == "top"


def test_import_rejects_bad_rows() -> None:
    stats = SessionStats()

    with pytest.raises(ValueError):
        stats.import_records([{"tier": "perfect"}])
    with pytest.raises(ValueError):
        stats.import_records(["top"])  # type: ignore[list-item]


def test_reset_clears_records() -> None:
    stats = SessionStats()
    stats.record(attempt(Tier.TOP, 15.0))

    stats.reset()

    assert stats.total() == 0
