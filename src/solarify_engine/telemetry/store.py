"""Sample store interface and the in-memory implementation."""

from __future__ import annotations

import bisect
from datetime import datetime
from typing import Protocol, runtime_checkable

from solarify_engine.telemetry.models import PerformanceMetricSample, ensure_utc


@runtime_checkable
class SampleStore(Protocol):
    """Append-only storage of telemetry samples keyed by (equipment_id, timestamp)."""

    async def upsert_sample(self, sample: PerformanceMetricSample) -> bool:
        """Store the sample; return False if the key already existed."""
        ...

    async def get_samples(
        self, equipment_id: str, start: datetime, end: datetime,
    ) -> list[PerformanceMetricSample]:
        """Samples with start <= timestamp <= end, oldest first."""
        ...

    async def get_latest_sample(self, equipment_id: str) -> PerformanceMetricSample | None:
        ...


class InMemorySampleStore:
    """Keeps each equipment's samples sorted by timestamp."""

    def __init__(self) -> None:
        self._samples: dict[str, list[PerformanceMetricSample]] = {}
        self._timestamps: dict[str, list[datetime]] = {}

    async def upsert_sample(self, sample: PerformanceMetricSample) -> bool:
        timestamps = self._timestamps.setdefault(sample.equipment_id, [])
        samples = self._samples.setdefault(sample.equipment_id, [])
        idx = bisect.bisect_left(timestamps, sample.timestamp)
        if idx < len(timestamps) and timestamps[idx] == sample.timestamp:
            return False
        timestamps.insert(idx, sample.timestamp)
        samples.insert(idx, sample)
        return True

    async def get_samples(
        self, equipment_id: str, start: datetime, end: datetime,
    ) -> list[PerformanceMetricSample]:
        timestamps = self._timestamps.get(equipment_id, [])
        lo = bisect.bisect_left(timestamps, ensure_utc(start))
        hi = bisect.bisect_right(timestamps, ensure_utc(end))
        return list(self._samples.get(equipment_id, [])[lo:hi])

    async def get_latest_sample(self, equipment_id: str) -> PerformanceMetricSample | None:
        samples = self._samples.get(equipment_id)
        return samples[-1] if samples else None

    def count(self, equipment_id: str | None = None) -> int:
        if equipment_id is not None:
            return len(self._samples.get(equipment_id, []))
        return sum(len(s) for s in self._samples.values())
