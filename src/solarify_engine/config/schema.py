"""Pydantic configuration models for all engine settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

TimeframeName = Literal["day", "week", "month", "quarter", "year"]


class CompatibilityConfig(BaseModel):
    max_dc_ac_ratio: float = Field(1.5, gt=0)  # Above this: potential clipping warning
    min_dc_ac_ratio: float = Field(0.8, gt=0)
    target_dc_ac_ratio: float = Field(1.3, gt=0)  # Used when proposing a reduced array
    required_panel_certifications: list[str] = Field(
        default_factory=lambda: ["IEC 61215", "IEC 61730", "UL 1703"]
    )
    required_inverter_certifications: list[str] = Field(
        default_factory=lambda: ["UL 1741", "IEEE 1547"]
    )
    wind_uplift_pa_per_zone: float = 1200.0
    peak_sun_hours: float = Field(5.0, gt=0, le=24)
    max_alternatives: int = Field(5, ge=1)


class TelemetryConfig(BaseModel):
    max_batch_size: int = Field(1000, ge=1)  # Samples accepted in one ingest request


class AlertsConfig(BaseModel):
    auto_resolve: bool = True  # Resolve open alerts once a later sample is back within threshold


class AnalyticsConfig(BaseModel):
    min_samples: int = Field(6, ge=3)  # Below this analyze_performance raises InsufficientDataError
    default_timeframe: TimeframeName = "month"
    stable_band_pct: float = Field(1.0, ge=0)  # Trend changes inside this band count as stable


class ReliabilityConfig(BaseModel):
    lookback: TimeframeName = "quarter"
    failure_performance_ratio: float = Field(75.0, ge=0, le=100)
    min_availability: float = Field(90.0, ge=0, le=100)
    expected_samples_per_day: float = Field(24.0, gt=0)
    replacement_horizon_days: int = Field(90, ge=1)


class BenchmarkEntry(BaseModel):
    manufacturer: str
    model: str
    equipment_type: str = "panel"
    average_efficiency: float
    performance_ratio: float
    performance_ratio_std: float = Field(5.0, gt=0)
    degradation_rate: float = 0.5
    reliability_rating: float = Field(8.0, ge=0, le=10)


class CatalogConfig(BaseModel):
    path: str = ""  # Optional YAML equipment catalog; empty = no alternatives from catalog


class APIConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str = ""


class DBConfig(BaseModel):
    path: str = "solarify_engine.db"


class AppConfig(BaseModel):
    """Root configuration model containing all engine settings."""

    compatibility: CompatibilityConfig = CompatibilityConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    alerts: AlertsConfig = AlertsConfig()
    analytics: AnalyticsConfig = AnalyticsConfig()
    reliability: ReliabilityConfig = ReliabilityConfig()
    benchmarks: list[BenchmarkEntry] = Field(default_factory=list)
    catalog: CatalogConfig = CatalogConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()
    db: DBConfig = DBConfig()
