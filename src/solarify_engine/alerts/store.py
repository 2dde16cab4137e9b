"""Alert and threshold store interface and the in-memory implementation."""

from __future__ import annotations

import dataclasses
from typing import Protocol, runtime_checkable

from solarify_engine.alerts.models import Alert, AlertDimension
from solarify_engine.telemetry.models import AlertThresholds


@runtime_checkable
class AlertStore(Protocol):
    async def get_thresholds(self, equipment_id: str) -> AlertThresholds | None:
        ...

    async def set_thresholds(self, equipment_id: str, thresholds: AlertThresholds) -> None:
        ...

    async def get_alert(self, alert_id: str) -> Alert | None:
        ...

    async def save_alert(self, alert: Alert) -> None:
        """Insert a new alert or overwrite the stored state of an existing one."""
        ...

    async def get_open_alert(
        self, equipment_id: str, dimension: AlertDimension,
    ) -> Alert | None:
        ...

    async def list_alerts(
        self, equipment_id: str | None = None, include_resolved: bool = False,
    ) -> list[Alert]:
        """Alerts ordered by creation time."""
        ...


class InMemoryAlertStore:
    """Returns copies so callers never mutate stored alerts in place."""

    def __init__(self) -> None:
        self._thresholds: dict[str, AlertThresholds] = {}
        self._alerts: dict[str, Alert] = {}

    async def get_thresholds(self, equipment_id: str) -> AlertThresholds | None:
        return self._thresholds.get(equipment_id)

    async def set_thresholds(self, equipment_id: str, thresholds: AlertThresholds) -> None:
        self._thresholds[equipment_id] = thresholds

    async def get_alert(self, alert_id: str) -> Alert | None:
        alert = self._alerts.get(alert_id)
        return dataclasses.replace(alert) if alert is not None else None

    async def save_alert(self, alert: Alert) -> None:
        self._alerts[alert.id] = dataclasses.replace(alert)

    async def get_open_alert(
        self, equipment_id: str, dimension: AlertDimension,
    ) -> Alert | None:
        for alert in self._alerts.values():
            if (alert.equipment_id == equipment_id
                    and alert.triggered_by == dimension and alert.is_open):
                return dataclasses.replace(alert)
        return None

    async def list_alerts(
        self, equipment_id: str | None = None, include_resolved: bool = False,
    ) -> list[Alert]:
        alerts = [
            dataclasses.replace(a) for a in self._alerts.values()
            if (equipment_id is None or a.equipment_id == equipment_id)
            and (include_resolved or a.is_open)
        ]
        alerts.sort(key=lambda a: (a.created_at, a.id))
        return alerts
