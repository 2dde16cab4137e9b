"""Threshold alerting with a per-equipment lifecycle."""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from solarify_engine.alerts.models import (
    Alert,
    AlertDimension,
    AlertState,
    Resolution,
)
from solarify_engine.alerts.store import AlertStore
from solarify_engine.compatibility.models import Severity
from solarify_engine.errors import NotFoundError
from solarify_engine.telemetry.models import (
    AlertThresholds,
    PerformanceMetricSample,
    parse_thresholds,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertRule:
    """How one dimension is measured and when it is violated."""

    dimension: AlertDimension
    severity: Severity
    unit: str
    title: str
    description: str
    actions: tuple[str, ...]
    value: Callable[[PerformanceMetricSample], float]
    limit: Callable[[AlertThresholds], float]
    upper_bound: bool = False

    def violated(self, value: float, limit: float) -> bool:
        return value > limit if self.upper_bound else value < limit


ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        dimension=AlertDimension.EFFICIENCY,
        severity=Severity.MEDIUM,
        unit="%",
        title="Low Efficiency Alert",
        description="Equipment efficiency below threshold",
        actions=("Check for shading or soiling", "Inspect connections", "Schedule maintenance"),
        value=lambda s: s.realtime.efficiency,
        limit=lambda t: t.min_efficiency,
    ),
    AlertRule(
        dimension=AlertDimension.PERFORMANCE_RATIO,
        severity=Severity.MEDIUM,
        unit="%",
        title="Low Performance Ratio Alert",
        description="Performance ratio below threshold",
        actions=("Compare against irradiance", "Check for soiling", "Inspect string connections"),
        value=lambda s: s.calculated.performance_ratio,
        limit=lambda t: t.min_performance_ratio,
    ),
    AlertRule(
        dimension=AlertDimension.TEMPERATURE,
        severity=Severity.HIGH,
        unit="°C",
        title="High Temperature Alert",
        description="Equipment temperature exceeds safe operating range",
        actions=("Check ventilation", "Inspect cooling systems", "Monitor for thermal damage"),
        value=lambda s: s.realtime.temperature,
        limit=lambda t: t.max_temperature,
        upper_bound=True,
    ),
    AlertRule(
        dimension=AlertDimension.AVAILABILITY,
        severity=Severity.HIGH,
        unit="%",
        title="Low Availability Alert",
        description="Equipment availability below threshold",
        actions=("Check communication link", "Review fault log", "Dispatch technician"),
        value=lambda s: s.calculated.availability,
        limit=lambda t: t.min_availability,
    ),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_alert_id() -> str:
    return uuid.uuid4().hex


def _is_newer(timestamp: datetime, reference: datetime | None) -> bool:
    return reference is None or timestamp > reference


class AlertEngine:
    """Opens, acknowledges and resolves alerts against per-equipment thresholds.

    At most one unresolved alert exists per (equipment, dimension). An open
    alert auto-resolves only on a sample that passes every threshold and is
    newer than the last sample that violated it.

    The check-then-create sequence runs under a lock keyed by equipment id,
    so concurrent samples for the same unit cannot race while different
    units never contend.
    """

    def __init__(
        self,
        store: AlertStore,
        auto_resolve: bool = True,
        id_factory: Callable[[], str] = _new_alert_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._auto_resolve = auto_resolve
        self._id_factory = id_factory
        self._clock = clock
        # Locks live only while a coroutine holds or awaits them.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, equipment_id: str) -> asyncio.Lock:
        lock = self._locks.get(equipment_id)
        if lock is None:
            lock = self._locks[equipment_id] = asyncio.Lock()
        return lock

    async def evaluate(
        self,
        sample: PerformanceMetricSample,
        thresholds: AlertThresholds | None = None,
    ) -> list[Alert]:
        """Check a sample against thresholds and return newly opened alerts."""
        equipment_id = sample.equipment_id
        async with self._lock(equipment_id):
            if thresholds is None:
                thresholds = await self._store.get_thresholds(equipment_id)
            if thresholds is None:
                return []

            checks = [
                (rule, rule.value(sample), rule.limit(thresholds)) for rule in ALERT_RULES
            ]
            healthy = not any(rule.violated(value, limit) for rule, value, limit in checks)

            opened: list[Alert] = []
            for rule, value, limit in checks:
                existing = await self._store.get_open_alert(equipment_id, rule.dimension)

                if rule.violated(value, limit):
                    if existing is not None:
                        if _is_newer(sample.timestamp, existing.last_violation_at):
                            existing.last_violation_at = sample.timestamp
                            await self._store.save_alert(existing)
                        continue
                    alert = Alert(
                        id=self._id_factory(),
                        equipment_id=equipment_id,
                        triggered_by=rule.dimension,
                        severity=rule.severity,
                        created_at=self._clock(),
                        current_value=value,
                        threshold_value=limit,
                        unit=rule.unit,
                        title=rule.title,
                        description=rule.description,
                        actions=list(rule.actions),
                        last_violation_at=sample.timestamp,
                    )
                    await self._store.save_alert(alert)
                    opened.append(alert)
                    logger.warning(
                        "Alert opened: %s on %s (value=%.2f%s threshold=%.2f%s)",
                        rule.dimension.value, equipment_id, value, rule.unit, limit, rule.unit,
                    )
                elif (
                    existing is not None
                    and self._auto_resolve
                    and healthy
                    and _is_newer(sample.timestamp, existing.last_violation_at)
                ):
                    existing.transition(AlertState.RESOLVED, self._clock())
                    existing.resolution = Resolution.AUTO
                    await self._store.save_alert(existing)
                    logger.info(
                        "Alert auto-resolved: %s on %s (id=%s)",
                        rule.dimension.value, equipment_id, existing.id,
                    )
            return opened

    async def _get_open(self, alert_id: str) -> Alert:
        alert = await self._store.get_alert(alert_id)
        if alert is None or not alert.is_open:
            raise NotFoundError(f"Alert not found or already resolved: {alert_id}")
        return alert

    async def acknowledge_alert(self, alert_id: str) -> Alert:
        """Acknowledge an open alert. Acknowledging twice is a no-op."""
        alert = await self._get_open(alert_id)
        async with self._lock(alert.equipment_id):
            alert = await self._get_open(alert_id)
            if alert.state == AlertState.ACKNOWLEDGED:
                return alert
            alert.transition(AlertState.ACKNOWLEDGED, self._clock())
            await self._store.save_alert(alert)
        logger.info("Alert acknowledged: %s", alert_id)
        return alert

    async def resolve_alert(self, alert_id: str) -> Alert:
        alert = await self._get_open(alert_id)
        async with self._lock(alert.equipment_id):
            alert = await self._get_open(alert_id)
            alert.transition(AlertState.RESOLVED, self._clock())
            alert.resolution = Resolution.OPERATOR
            await self._store.save_alert(alert)
        logger.info("Alert resolved by operator: %s", alert_id)
        return alert

    async def set_alert_thresholds(
        self, equipment_id: str, thresholds: AlertThresholds | dict[str, Any],
    ) -> AlertThresholds:
        """Validate and replace the whole threshold set for a unit."""
        parsed = parse_thresholds(thresholds)
        async with self._lock(equipment_id):
            await self._store.set_thresholds(equipment_id, parsed)
        logger.info("Alert thresholds updated for %s", equipment_id)
        return parsed

    async def get_alert_thresholds(self, equipment_id: str) -> AlertThresholds | None:
        return await self._store.get_thresholds(equipment_id)

    async def get_active_alerts(self, equipment_id: str | None = None) -> list[Alert]:
        """Unresolved (active or acknowledged) alerts, oldest first."""
        return await self._store.list_alerts(equipment_id)
