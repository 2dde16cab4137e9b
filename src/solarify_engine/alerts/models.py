"""Alert lifecycle: state enum, transition table and the Alert record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from solarify_engine.compatibility.models import Severity
from solarify_engine.errors import InvalidTransitionError


class AlertState(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Resolution(str, Enum):
    OPERATOR = "operator"
    AUTO = "auto"


# Resolved is terminal.
TRANSITIONS: dict[AlertState, frozenset[AlertState]] = {
    AlertState.ACTIVE: frozenset({AlertState.ACKNOWLEDGED, AlertState.RESOLVED}),
    AlertState.ACKNOWLEDGED: frozenset({AlertState.RESOLVED}),
    AlertState.RESOLVED: frozenset(),
}


class AlertDimension(str, Enum):
    EFFICIENCY = "efficiency"
    PERFORMANCE_RATIO = "performance_ratio"
    TEMPERATURE = "temperature"
    AVAILABILITY = "availability"


@dataclass
class Alert:
    """An alert raised for one (equipment, dimension) threshold violation."""

    id: str
    equipment_id: str
    triggered_by: AlertDimension
    severity: Severity
    created_at: datetime
    current_value: float
    threshold_value: float
    unit: str
    title: str
    description: str
    actions: list[str] = field(default_factory=list)
    state: AlertState = AlertState.ACTIVE
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    resolution: Resolution | None = None
    # Timestamp of the newest sample seen in violation; gates auto-resolve.
    last_violation_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.state != AlertState.RESOLVED

    def transition(self, target: AlertState, at: datetime) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Alert {self.id} cannot move from {self.state.value} to {target.value}"
            )
        self.state = target
        if target == AlertState.ACKNOWLEDGED:
            self.acknowledged_at = at
        elif target == AlertState.RESOLVED:
            self.resolved_at = at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "equipmentId": self.equipment_id,
            "triggeredBy": self.triggered_by.value,
            "severity": self.severity.value,
            "state": self.state.value,
            "title": self.title,
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
            "details": {
                "currentValue": self.current_value,
                "thresholdValue": self.threshold_value,
                "unit": self.unit,
            },
            "actions": list(self.actions),
            "acknowledgedAt": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolvedAt": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution": self.resolution.value if self.resolution else None,
            "lastViolationAt": (
                self.last_violation_at.isoformat() if self.last_violation_at else None
            ),
        }
