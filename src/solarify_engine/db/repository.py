"""SQLite implementation of the sample and alert stores."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from solarify_engine.alerts.models import (
    Alert,
    AlertDimension,
    AlertState,
    Resolution,
)
from solarify_engine.compatibility.models import Severity
from solarify_engine.telemetry.models import (
    AlertThresholds,
    PerformanceMetricSample,
    ensure_utc,
)

logger = logging.getLogger(__name__)

# Fixed-width UTC format so that text ordering matches time ordering.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def to_db_time(value: datetime) -> str:
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class Repository:
    """Centralised data access for samples, thresholds and alerts."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    # ── Samples ─────────────────────────────────────────────

    async def upsert_sample(self, sample: PerformanceMetricSample) -> bool:
        async with self.db.execute(
            """INSERT OR IGNORE INTO performance_samples
               (equipment_id, recorded_at, equipment_type, status, sample_json)
               VALUES (?, ?, ?, ?, ?)""",
            (
                sample.equipment_id,
                to_db_time(sample.timestamp),
                sample.equipment_type.value,
                sample.realtime.status.value,
                sample.model_dump_json(by_alias=True),
            ),
        ) as cursor:
            inserted = cursor.rowcount == 1
        await self.db.commit()
        return inserted

    async def get_samples(
        self, equipment_id: str, start: datetime, end: datetime,
    ) -> list[PerformanceMetricSample]:
        async with self.db.execute(
            """SELECT sample_json FROM performance_samples
               WHERE equipment_id = ? AND recorded_at >= ? AND recorded_at <= ?
               ORDER BY recorded_at""",
            (equipment_id, to_db_time(start), to_db_time(end)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [PerformanceMetricSample.model_validate_json(r["sample_json"]) for r in rows]

    async def get_latest_sample(self, equipment_id: str) -> PerformanceMetricSample | None:
        async with self.db.execute(
            """SELECT sample_json FROM performance_samples
               WHERE equipment_id = ? ORDER BY recorded_at DESC LIMIT 1""",
            (equipment_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return PerformanceMetricSample.model_validate_json(row["sample_json"]) if row else None

    async def count_samples(self, equipment_id: str | None = None) -> int:
        if equipment_id is None:
            query, params = "SELECT COUNT(*) FROM performance_samples", ()
        else:
            query = "SELECT COUNT(*) FROM performance_samples WHERE equipment_id = ?"
            params = (equipment_id,)
        async with self.db.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    # ── Alert Thresholds ────────────────────────────────────

    async def get_thresholds(self, equipment_id: str) -> AlertThresholds | None:
        async with self.db.execute(
            "SELECT * FROM alert_thresholds WHERE equipment_id = ?", (equipment_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return AlertThresholds(
            min_efficiency=row["min_efficiency"],
            min_performance_ratio=row["min_performance_ratio"],
            max_temperature=row["max_temperature"],
            min_availability=row["min_availability"],
        )

    async def set_thresholds(self, equipment_id: str, thresholds: AlertThresholds) -> None:
        await self.db.execute(
            """INSERT OR REPLACE INTO alert_thresholds
               (equipment_id, min_efficiency, min_performance_ratio,
                max_temperature, min_availability, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                equipment_id,
                thresholds.min_efficiency,
                thresholds.min_performance_ratio,
                thresholds.max_temperature,
                thresholds.min_availability,
                to_db_time(datetime.now(timezone.utc)),
            ),
        )
        await self.db.commit()

    # ── Alerts ──────────────────────────────────────────────

    async def save_alert(self, alert: Alert) -> None:
        await self.db.execute(
            """INSERT INTO alerts
               (id, equipment_id, triggered_by, severity, state, created_at,
                current_value, threshold_value, unit, title, description,
                actions_json, acknowledged_at, resolved_at, resolution, last_violation_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   state = excluded.state,
                   acknowledged_at = excluded.acknowledged_at,
                   resolved_at = excluded.resolved_at,
                   resolution = excluded.resolution,
                   last_violation_at = excluded.last_violation_at""",
            (
                alert.id,
                alert.equipment_id,
                alert.triggered_by.value,
                alert.severity.value,
                alert.state.value,
                to_db_time(alert.created_at),
                alert.current_value,
                alert.threshold_value,
                alert.unit,
                alert.title,
                alert.description,
                json.dumps(alert.actions),
                to_db_time(alert.acknowledged_at) if alert.acknowledged_at else None,
                to_db_time(alert.resolved_at) if alert.resolved_at else None,
                alert.resolution.value if alert.resolution else None,
                to_db_time(alert.last_violation_at) if alert.last_violation_at else None,
            ),
        )
        await self.db.commit()

    async def get_alert(self, alert_id: str) -> Alert | None:
        async with self.db.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,)) as cursor:
            row = await cursor.fetchone()
        return _row_to_alert(row) if row else None

    async def get_open_alert(
        self, equipment_id: str, dimension: AlertDimension,
    ) -> Alert | None:
        async with self.db.execute(
            """SELECT * FROM alerts
               WHERE equipment_id = ? AND triggered_by = ? AND state != 'resolved'
               ORDER BY created_at LIMIT 1""",
            (equipment_id, dimension.value),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_alert(row) if row else None

    async def list_alerts(
        self, equipment_id: str | None = None, include_resolved: bool = False,
    ) -> list[Alert]:
        clauses: list[str] = []
        params: list[Any] = []
        if equipment_id is not None:
            clauses.append("equipment_id = ?")
            params.append(equipment_id)
        if not include_resolved:
            clauses.append("state != 'resolved'")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.db.execute(
            f"SELECT * FROM alerts {where} ORDER BY created_at, id", params,
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_alert(r) for r in rows]


def _row_to_alert(row: aiosqlite.Row) -> Alert:
    return Alert(
        id=row["id"],
        equipment_id=row["equipment_id"],
        triggered_by=AlertDimension(row["triggered_by"]),
        severity=Severity(row["severity"]),
        created_at=from_db_time(row["created_at"]),
        current_value=row["current_value"],
        threshold_value=row["threshold_value"],
        unit=row["unit"],
        title=row["title"],
        description=row["description"],
        actions=json.loads(row["actions_json"]),
        state=AlertState(row["state"]),
        acknowledged_at=from_db_time(row["acknowledged_at"]),
        resolved_at=from_db_time(row["resolved_at"]),
        resolution=Resolution(row["resolution"]) if row["resolution"] else None,
        last_violation_at=from_db_time(row["last_violation_at"]),
    )
