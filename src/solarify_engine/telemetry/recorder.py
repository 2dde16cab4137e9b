"""Telemetry ingestion: validate, store, then evaluate alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from solarify_engine.alerts.engine import AlertEngine
from solarify_engine.alerts.models import Alert
from solarify_engine.errors import EngineError, ValidationError
from solarify_engine.logging.context import bound_context
from solarify_engine.telemetry.models import parse_sample
from solarify_engine.telemetry.store import SampleStore

logger = logging.getLogger(__name__)

STATUS_RECORDED = "recorded"
STATUS_DUPLICATE = "duplicate"
STATUS_FAILED = "failed"


@dataclass
class RecordResult:
    """Outcome of ingesting one sample."""

    status: str
    equipment_id: str | None = None
    timestamp: datetime | None = None
    alerts: list[Alert] = field(default_factory=list)
    error: dict[str, Any] | None = None

    @property
    def success(self) -> bool:
        return self.status != STATUS_FAILED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "equipmentId": self.equipment_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "alerts": [a.to_dict() for a in self.alerts],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BatchResult:
    results: list[RecordResult]

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.processed - self.successful

    @property
    def success_rate(self) -> float:
        """Percentage of successful items, two decimals. Empty batches score 0."""
        if not self.results:
            return 0.0
        return round(self.successful / self.processed * 100, 2)

    @property
    def alerts(self) -> list[Alert]:
        return [a for r in self.results for a in r.alerts]

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "successRate": self.success_rate,
            "alerts": [a.to_dict() for a in self.alerts],
        }


class PerformanceRecorder:
    """Stores samples idempotently and hands each one to the alert engine."""

    def __init__(self, store: SampleStore, alerts: AlertEngine) -> None:
        self._store = store
        self._alerts = alerts

    async def record(self, data: Any) -> RecordResult:
        """Ingest one sample.

        Raises ValidationError for malformed input. A sample whose
        (equipment_id, timestamp) is already stored is accepted as a no-op
        write, but is still evaluated for alerts: a retry after a failed
        evaluation must not lose the alert, and evaluation never opens a
        second alert for the same dimension.
        """
        sample = parse_sample(data)
        with bound_context(equipment_id=sample.equipment_id):
            inserted = await self._store.upsert_sample(sample)
            alerts = await self._alerts.evaluate(sample)
            logger.debug(
                "%s sample at %s (%d alerts)",
                "Recorded" if inserted else "Re-evaluated duplicate",
                sample.timestamp.isoformat(), len(alerts),
            )
            return RecordResult(
                status=STATUS_RECORDED if inserted else STATUS_DUPLICATE,
                equipment_id=sample.equipment_id,
                timestamp=sample.timestamp,
                alerts=alerts,
            )

    async def record_batch(self, items: list[Any]) -> BatchResult:
        """Ingest many samples; one item's failure never affects the others."""
        results: list[RecordResult] = []
        for index, item in enumerate(items):
            try:
                results.append(await self.record(item))
            except ValidationError as exc:
                results.append(RecordResult(
                    status=STATUS_FAILED,
                    equipment_id=_raw_equipment_id(item),
                    error=exc.to_dict(),
                ))
            except EngineError as exc:
                results.append(RecordResult(
                    status=STATUS_FAILED,
                    equipment_id=_raw_equipment_id(item),
                    error={"error": str(exc)},
                ))
            except Exception:
                logger.exception("Failed to record batch item %d", index)
                results.append(RecordResult(
                    status=STATUS_FAILED,
                    equipment_id=_raw_equipment_id(item),
                    error={"error": "Internal error while recording sample"},
                ))

        batch = BatchResult(results)
        logger.info(
            "Batch ingested: processed=%d successful=%d failed=%d",
            batch.processed, batch.successful, batch.failed,
        )
        return batch


def _raw_equipment_id(item: Any) -> str | None:
    if isinstance(item, dict):
        value = item.get("equipmentId", item.get("equipment_id"))
        return value if isinstance(value, str) else None
    return getattr(item, "equipment_id", None)
