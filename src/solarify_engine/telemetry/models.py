"""Telemetry data model for equipment performance samples."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from solarify_engine.compatibility.models import WireModel
from solarify_engine.errors import ValidationError


class EquipmentType(str, Enum):
    PANEL = "panel"
    INVERTER = "inverter"
    BATTERY = "battery"
    SYSTEM = "system"


class EquipmentStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    FAULT = "fault"
    OFFLINE = "offline"


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RealtimeReading(WireModel):
    power: float  # W
    voltage: float  # V
    current: float  # A
    temperature: float  # °C
    efficiency: float = Field(ge=0, le=100)
    status: EquipmentStatus


class EnvironmentalReading(WireModel):
    irradiance: float = Field(ge=0)  # W/m²
    ambient_temperature: float
    wind_speed: float = Field(ge=0)
    humidity: float = Field(ge=0, le=100)
    precipitation: bool = False


class CalculatedMetrics(WireModel):
    energy_produced: float  # kWh in the sample interval
    performance_ratio: float = Field(ge=0, le=100)
    capacity_utilization: float = Field(ge=0, le=100)
    degradation_rate: float = 0.0
    availability: float = Field(ge=0, le=100)


class QualityMetrics(WireModel):
    data_completeness: float = Field(ge=0, le=100)
    measurement_accuracy: float = Field(ge=0, le=100)
    signal_quality: float = Field(ge=0, le=100)
    last_calibration: datetime | None = None

    @property
    def score(self) -> float:
        """Mean of the three quality percentages."""
        return (self.data_completeness + self.measurement_accuracy + self.signal_quality) / 3


class PerformanceMetricSample(WireModel):
    """One immutable telemetry reading. Unique by (equipment_id, timestamp)."""

    equipment_id: str = Field(min_length=1)
    equipment_type: EquipmentType
    timestamp: datetime
    realtime: RealtimeReading
    environmental: EnvironmentalReading
    calculated: CalculatedMetrics
    quality: QualityMetrics

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def key(self) -> tuple[str, datetime]:
        return (self.equipment_id, self.timestamp)

    @property
    def is_online(self) -> bool:
        return self.realtime.status != EquipmentStatus.OFFLINE


class AlertThresholds(WireModel):
    min_efficiency: float = Field(ge=0, le=100)
    min_performance_ratio: float = Field(ge=0, le=100)
    max_temperature: float
    min_availability: float = Field(ge=0, le=100)


def parse_sample(data: Any, prefix: str = "") -> PerformanceMetricSample:
    """Validate a raw sample, reporting every invalid field at once."""
    if isinstance(data, PerformanceMetricSample):
        return data
    try:
        return PerformanceMetricSample.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(
            exc, prefix=prefix, message="Invalid performance sample",
        ) from exc


def parse_thresholds(data: Any, prefix: str = "thresholds") -> AlertThresholds:
    if isinstance(data, AlertThresholds):
        return data
    try:
        return AlertThresholds.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(
            exc, prefix=prefix, message="Invalid alert thresholds",
        ) from exc
