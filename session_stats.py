# -*- coding: utf-8 -*-
########################
# session_stats.py
########################
# Purpose:
# - Running statistics over the AttemptRecords of one training session.
# - Tier counts and rates, delta mean / standard deviation / moving average, recent attempts.
#
# Design notes:
# - No Qt usage. Pure bookkeeping over AttemptRecord values.
# - Delta statistics only include attempts that have a delta (a motion was detected).
# - Rates are percentages of all attempts. The Mid rate counts Mid and Top together.
# - export() / import_records() use AttemptRecord.to_dict / from_dict so the persistence
#   collaborator can store sessions as plain JSON.
#
########################
# Interfaces:
# Public dataclasses:
# - StatsSummary(total, counts, rates, mid_or_better_rate, average_delta_ms, std_dev_ms, moving_average_ms)
#
# Public classes:
# - class SessionStats
#   - __init__(moving_average_window: int = 10)
#   - record(record: AttemptRecord) -> None
#   - records() -> list[AttemptRecord]
#   - total() -> int
#   - count(tier: Tier) -> int
#   - rate(tier: Tier) -> float
#   - mid_or_better_rate() -> float
#   - average_delta_ms() -> float
#   - std_dev_ms() -> float
#   - moving_average_ms(window: Optional[int] = None) -> float
#   - recent(count: Optional[int] = None) -> list[AttemptRecord]
#   - summary() -> StatsSummary
#   - export() -> list[dict]
#   - import_records(payload: list[dict]) -> None
#   - reset() -> None
#
########################

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from input_models import AttemptRecord, Tier


@dataclass(frozen=True)
class StatsSummary:
    total: int
    counts: Dict[Tier, int] = field(default_factory=dict)
    rates: Dict[Tier, float] = field(default_factory=dict)
    mid_or_better_rate: float = 0.0
    average_delta_ms: float = 0.0
    std_dev_ms: float = 0.0
    moving_average_ms: float = 0.0


class SessionStats:
    def __init__(self, moving_average_window: int = 10) -> None:
        self._moving_average_window = max(1, int(moving_average_window))
        self._records: List[AttemptRecord] = []

    def record(self, record: AttemptRecord) -> None:
        self._records.append(record)

    def records(self) -> List[AttemptRecord]:
        return list(self._records)

    def total(self) -> int:
        return len(self._records)

    def count(self, tier: Tier) -> int:
        return sum(1 for record in self._records if record.tier == tier)

    def rate(self, tier: Tier) -> float:
        if not self._records:
            return 0.0
        return self.count(tier) / len(self._records) * 100.0

    def mid_or_better_rate(self) -> float:
        if not self._records:
            return 0.0
        return (self.count(Tier.MID) + self.count(Tier.TOP)) / len(self._records) * 100.0

    def _deltas(self, records: List[AttemptRecord]) -> List[float]:
        return [float(record.delta_ms) for record in records if record.delta_ms is not None]

    def average_delta_ms(self) -> float:
        deltas = self._deltas(self._records)
        if not deltas:
            return 0.0
        return statistics.fmean(deltas)

    def std_dev_ms(self) -> float:
        deltas = self._deltas(self._records)
        if not deltas:
            return 0.0
        return statistics.pstdev(deltas)

    def moving_average_ms(self, window: Optional[int] = None) -> float:
        deltas = self._deltas(self.recent(window))
        if not deltas:
            return 0.0
        return statistics.fmean(deltas)

    def recent(self, count: Optional[int] = None) -> List[AttemptRecord]:
        size = self._moving_average_window if count is None else int(count)
        if size <= 0:
            return []
        return self._records[-size:]

    def summary(self) -> StatsSummary:
        return StatsSummary(
            total=self.total(),
            counts={tier: self.count(tier) for tier in Tier},
            rates={tier: self.rate(tier) for tier in Tier},
            mid_or_better_rate=self.mid_or_better_rate(),
            average_delta_ms=self.average_delta_ms(),
            std_dev_ms=self.std_dev_ms(),
            moving_average_ms=self.moving_average_ms(),
        )

    def export(self) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self._records]

    def import_records(self, payload: List[Dict[str, Any]]) -> None:
        """Replace the records with a previously exported list. Raises ValueError on a bad row."""
        parsed: List[AttemptRecord] = []
        for row in payload:
            if not isinstance(row, dict):
                raise ValueError(f"Attempt record must be an object: {row!r}")
            try:
                parsed.append(AttemptRecord.from_dict(row))
            except (TypeError, ValueError) as exception:
                raise ValueError(f"Invalid attempt record {row!r}: {exception}") from exception
        self._records = parsed

    def reset(self) -> None:
        self._records = []


def _run_unit_tests() -> None:
    stats = SessionStats(moving_average_window=2)
    assert stats.summary().total == 0
    assert stats.rate(Tier.TOP) == 0.0

    stats.record(AttemptRecord(Tier.TOP, 10.0, 13, 2, 0.0))
    stats.record(AttemptRecord(Tier.MID, 20.0, 15, 4, 300.0))
    stats.record(AttemptRecord(Tier.MISS, None, 0, 0, 600.0))
    stats.record(AttemptRecord(Tier.LATE, 60.0, 8, 3, 900.0))

    assert stats.count(Tier.TOP) == 1
    assert stats.rate(Tier.MISS) == 25.0
    assert stats.mid_or_better_rate() == 50.0
    assert stats.average_delta_ms() == 30.0
    assert stats.moving_average_ms() == 60.0

    restored = SessionStats()
    restored.import_records(stats.export())
    assert restored.records() == stats.records()


if __name__ == "__main__":
    _run_unit_tests()
    print("session_stats.py: ok")
