"""System configuration input models and compatibility result types.

Inputs are frozen pydantic models; alternatives are derived with
`model_copy(update=...)`. Wire names are camelCase; snake_case is accepted as
well.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from solarify_engine.errors import ValidationError


class WireModel(BaseModel):
    """Base for immutable, camelCase-aliased input models."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ShadingLevel(str, Enum):
    NONE = "none"
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"


# ── Equipment specs ─────────────────────────────────────────


class StcRating(WireModel):
    voltage: float = Field(gt=0)  # V at standard test conditions
    current: float = Field(0.0, ge=0)  # A


class PanelDimensions(WireModel):
    length: float = Field(ge=0)  # mm
    width: float = Field(ge=0)
    thickness: float = Field(0.0, ge=0)


class Panel(WireModel):
    id: str = ""
    manufacturer: str = ""
    model: str = ""
    wattage: float = Field(gt=0)
    efficiency: float = Field(20.0, ge=0, le=100)
    stc: StcRating
    temperature_coefficient: float = -0.35  # %/°C of voltage
    dimensions: PanelDimensions | None = None
    weight: float = Field(0.0, ge=0)  # kg
    certifications: list[str] = Field(default_factory=list)
    price_per_watt: float = Field(0.5, ge=0)
    warranty_years: int = Field(25, ge=0)


class VoltageRange(WireModel):
    min: float = Field(ge=0)
    max: float = Field(gt=0)

    @model_validator(mode="after")
    def _ordered(self) -> VoltageRange:
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class DCInput(WireModel):
    voltage_range: VoltageRange
    max_current: float | None = Field(None, ge=0)
    max_power: float | None = Field(None, gt=0)


class InverterEfficiency(WireModel):
    peak: float | None = Field(None, ge=0, le=100)
    cec: float | None = Field(None, ge=0, le=100)


class Inverter(WireModel):
    id: str = ""
    manufacturer: str = ""
    model: str = ""
    type: Literal["string", "micro", "hybrid", "central"] = "string"
    capacity: float = Field(gt=0)  # W AC
    dc_input: DCInput
    mppt_channels: int | None = Field(None, ge=1)
    efficiency: InverterEfficiency | None = None
    certifications: list[str] = Field(default_factory=list)
    price_per_watt: float = Field(0.3, ge=0)


class Battery(WireModel):
    id: str = ""
    manufacturer: str = ""
    model: str = ""
    capacity_kwh: float = Field(gt=0)
    nominal_voltage: float | None = Field(None, gt=0)
    certifications: list[str] = Field(default_factory=list)


class SizeLimits(WireModel):
    length: float = Field(ge=0)
    width: float = Field(ge=0)


class PanelSizeEnvelope(WireModel):
    min: SizeLimits
    max: SizeLimits


class NumericRange(WireModel):
    min: float
    max: float


class RackingCompatibility(WireModel):
    panel_sizes: PanelSizeEnvelope
    panel_weight: NumericRange | None = None
    roof_types: list[str] = Field(default_factory=list)
    roof_pitch: NumericRange | None = None


class LoadRatings(WireModel):
    wind_uplift: float = Field(ge=0)  # Pa
    snow_load: float = Field(ge=0)  # Pa


class RackingSystem(WireModel):
    id: str = ""
    manufacturer: str = ""
    model: str = ""
    compatibility: RackingCompatibility
    load_ratings: LoadRatings | None = None
    corrosion_resistance: str = "standard"
    price: float = Field(0.0, ge=0)


class MountingHardware(WireModel):
    id: str = ""
    model: str = ""
    panel_thickness: NumericRange | None = None
    corrosion_resistance: str = "standard"


class ElectricalComponent(WireModel):
    id: str = ""
    category: str
    rapid_shutdown: bool = False


class MonitoringDevice(WireModel):
    id: str = ""
    model: str = ""


# ── Layout and site ─────────────────────────────────────────


class Layout(WireModel):
    panels_per_string: int = Field(ge=1, le=30)
    strings_per_inverter: int = Field(ge=1, le=20)
    total_panels: int = Field(ge=1, le=1000)
    system_voltage: float = Field(ge=12, le=1500)
    total_capacity: float = Field(ge=0.1, le=10000)  # kW


class Location(WireModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    climate: str = "temperate"
    wind_zone: int = Field(1, ge=1, le=5)
    snow_load: float = Field(0.0, ge=0)  # Pa


class Installation(WireModel):
    roof_type: str
    roof_pitch: float = Field(ge=0, le=90)
    azimuth: float = Field(ge=0, le=360)
    tilt: float = Field(ge=0, le=90)
    shading: ShadingLevel = ShadingLevel.NONE
    location: Location


class SystemConfiguration(WireModel):
    """A proposed build. Immutable input to compatibility analysis."""

    panels: list[Panel] = Field(min_length=1)
    inverter: Inverter
    battery: Battery | None = None
    racking: RackingSystem | None = None
    mounting: list[MountingHardware] = Field(default_factory=list)
    electrical: list[ElectricalComponent] = Field(default_factory=list)
    monitoring: list[MonitoringDevice] = Field(default_factory=list)
    layout: Layout
    installation: Installation

    @property
    def panel(self) -> Panel:
        """The representative panel; mixed-panel strings are not modelled."""
        return self.panels[0]

    @property
    def string_voltage(self) -> float:
        return self.panel.stc.voltage * self.layout.panels_per_string

    @property
    def total_dc_power_w(self) -> float:
        return self.panel.wattage * self.layout.total_panels


def parse_system_configuration(data: Any, prefix: str = "system") -> SystemConfiguration:
    """Validate raw input, reporting every invalid field at once."""
    if isinstance(data, SystemConfiguration):
        return data
    try:
        return SystemConfiguration.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(
            exc, prefix=prefix, message="Invalid system configuration",
        ) from exc


# ── Results ─────────────────────────────────────────────────


@dataclass(frozen=True)
class CompatibilityIssue:
    """Uniform shape for issues and warnings from every checker."""

    type: str
    severity: Severity
    message: str
    category: str
    component: str | None = None
    resolution: str | None = None

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
        }
        if self.component is not None:
            data["component"] = self.component
        if self.resolution is not None:
            data["resolution"] = self.resolution
        return data


@dataclass
class CheckResult:
    """Outcome of one checker (electrical, physical, ...)."""

    domain: str
    issues: list[CompatibilityIssue] = field(default_factory=list)
    warnings: list[CompatibilityIssue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not any(i.is_critical for i in self.issues)

    @property
    def score(self) -> int:
        return int(self.summary.get("overallScore", 100))

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": [w.to_dict() for w in self.warnings],
            "summary": dict(self.summary),
        }


@dataclass
class CompatibilityResult:
    """Aggregate of all checkers for one SystemConfiguration."""

    passed: bool
    score: int
    issues: list[CompatibilityIssue]
    warnings: list[CompatibilityIssue]
    recommendations: list[str]
    checks: dict[str, CheckResult]

    @property
    def domain_scores(self) -> dict[str, int]:
        return {name: check.score for name, check in self.checks.items()}

    def has_issue(self, issue_type: str, component: str | None = None) -> bool:
        for issue in (*self.issues, *self.warnings):
            if issue.type == issue_type and (component is None or issue.component == component):
                return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "score": self.score,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": [w.to_dict() for w in self.warnings],
            "recommendations": list(self.recommendations),
            "summary": self.domain_scores,
        }
