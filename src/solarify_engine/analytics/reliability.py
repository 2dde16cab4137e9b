"""Maintenance forecasting and reliability statistics.

Forecasts are linear extrapolations of the performance-ratio and
availability trends to configured failure thresholds. They are only as good
as the data behind them, so every forecast carries a confidence derived from
sample density and data quality.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from statistics import fmean
from typing import Any

from solarify_engine.analytics.analyzer import (
    PerformanceAnalyzer,
    Timeframe,
    annualised_decline,
    percent_change,
    trailing_mean,
)
from solarify_engine.config.schema import ReliabilityConfig
from solarify_engine.errors import InsufficientDataError
from solarify_engine.telemetry.models import (
    EquipmentStatus,
    PerformanceMetricSample,
    ensure_utc,
)

logger = logging.getLogger(__name__)

DOWN_STATES = frozenset({EquipmentStatus.FAULT, EquipmentStatus.OFFLINE})
HOURS_PER_YEAR = 8760.0

CLEANING_TREND_WINDOW = 30  # most recent samples
CLEANING_DECLINE_PCT = -2.0

HIGH_CONFIDENCE = 70.0
MEDIUM_CONFIDENCE = 40.0
MIN_SPREAD = 0.1


@dataclass
class MaintenancePrediction:
    type: str  # cleaning | inspection | component_replacement
    urgency: str  # low | medium | high
    timeframe: str
    confidence: float
    reason: str
    estimated_cost: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "urgency": self.urgency,
            "timeframe": self.timeframe,
            "confidence": round(self.confidence, 1),
            "reason": self.reason,
            "estimatedCost": self.estimated_cost,
        }


@dataclass
class ScheduleEntry:
    date: datetime
    task: str
    type: str  # preventive | corrective
    priority: int  # higher runs first

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "task": self.task,
            "type": self.type,
            "priority": self.priority,
        }


@dataclass
class MaintenanceForecast:
    equipment_id: str
    generated_at: datetime
    days_until_threshold: float | None
    limiting_factor: str | None  # performance_ratio | availability
    confidence: float  # 0-100
    confidence_level: str  # high | medium | low
    uncertain: bool
    band: tuple[float, float] | None
    predictions: list[MaintenancePrediction] = field(default_factory=list)
    schedule: list[ScheduleEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipmentId": self.equipment_id,
            "generatedAt": self.generated_at.isoformat(),
            "daysUntilThreshold": (
                round(self.days_until_threshold, 1)
                if self.days_until_threshold is not None else None
            ),
            "limitingFactor": self.limiting_factor,
            "confidence": round(self.confidence, 1),
            "confidenceLevel": self.confidence_level,
            "uncertain": self.uncertain,
            "band": (
                {"low": round(self.band[0], 1), "high": round(self.band[1], 1)}
                if self.band is not None else None
            ),
            "predictions": [p.to_dict() for p in self.predictions],
            "schedule": [s.to_dict() for s in self.schedule],
        }


@dataclass
class FailureEvent:
    started_at: datetime
    ended_at: datetime | None
    status: EquipmentStatus
    duration_hours: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "endedAt": self.ended_at.isoformat() if self.ended_at else None,
            "status": self.status.value,
            "durationHours": round(self.duration_hours, 2),
        }


@dataclass
class ReliabilityReport:
    equipment_id: str
    timeframe: Timeframe
    observed_hours: float
    availability: float  # %
    failure_count: int
    downtime_hours: float
    mtbf_hours: float | None
    mttr_hours: float | None
    annual_failure_rate: float
    failures: list[FailureEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipmentId": self.equipment_id,
            "timeframe": self.timeframe.value,
            "observedHours": round(self.observed_hours, 2),
            "reliability": {
                "availability": round(self.availability, 2),
                "mtbf": round(self.mtbf_hours, 2) if self.mtbf_hours is not None else None,
                "mttr": round(self.mttr_hours, 2) if self.mttr_hours is not None else None,
                "failureRate": round(self.annual_failure_rate, 3),
            },
            "failureCount": self.failure_count,
            "downtimeHours": round(self.downtime_hours, 2),
            "failures": [f.to_dict() for f in self.failures],
        }


def confidence_level(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def days_to_threshold(current: float, threshold: float, decline_per_year: float) -> float | None:
    """Days until a declining value reaches ``threshold``; None if not declining."""
    if current <= threshold:
        return 0.0
    if decline_per_year <= 0:
        return None
    return (current - threshold) / decline_per_year * 365


def efficiency_trend_pct(samples: list[PerformanceMetricSample]) -> float:
    """Percent change of mean efficiency between the two halves of ``samples``."""
    if len(samples) < 2:
        return 0.0
    half = len(samples) // 2
    return percent_change(
        fmean(s.realtime.efficiency for s in samples[:half]),
        fmean(s.realtime.efficiency for s in samples[half:]),
    )


class ReliabilityPredictor:
    """Predicts maintenance needs and reports reliability from stored samples."""

    def __init__(self, analyzer: PerformanceAnalyzer, config: ReliabilityConfig | None = None) -> None:
        self._analyzer = analyzer
        self._config = config or ReliabilityConfig()

    async def predict_maintenance_needs(
        self, equipment_id: str, now: datetime | None = None,
    ) -> MaintenanceForecast:
        cfg = self._config
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        analysis = await self._analyzer.analyze_performance(equipment_id, cfg.lookback, now)
        samples = analysis.samples

        pr_days = days_to_threshold(
            trailing_mean(samples, lambda s: s.calculated.performance_ratio),
            cfg.failure_performance_ratio,
            analysis.trends.degradation_rate,
        )
        availability_days = days_to_threshold(
            trailing_mean(samples, lambda s: s.calculated.availability),
            cfg.min_availability,
            annualised_decline(samples, lambda s: s.calculated.availability),
        )
        crossings = [
            (days, factor) for days, factor in (
                (pr_days, "performance_ratio"), (availability_days, "availability"),
            ) if days is not None
        ]
        days, limiting = min(crossings) if crossings else (None, None)

        expected = cfg.expected_samples_per_day * analysis.timeframe.days
        density = min(1.0, len(samples) / expected)
        confidence = density * analysis.summary.data_quality
        level = confidence_level(confidence)
        uncertain = level == "low"
        spread = max(MIN_SPREAD, 1 - confidence / 100)
        band = (max(0.0, days * (1 - spread)), days * (1 + spread)) if days is not None else None

        predictions: list[MaintenancePrediction] = []
        schedule: list[ScheduleEntry] = []

        if efficiency_trend_pct(samples[-CLEANING_TREND_WINDOW:]) < CLEANING_DECLINE_PCT:
            predictions.append(MaintenancePrediction(
                type="cleaning",
                urgency="medium",
                timeframe="1-2 weeks",
                confidence=confidence,
                reason="Efficiency decline suggests soiling accumulation",
                estimated_cost=200.0,
            ))
            schedule.append(ScheduleEntry(
                date=now + timedelta(days=7),
                task="Panel cleaning and inspection",
                type="preventive",
                priority=2,
            ))

        if days is not None and days <= cfg.replacement_horizon_days:
            predictions.append(MaintenancePrediction(
                type="component_replacement",
                urgency="high",
                timeframe=f"within {math.ceil(days)} days",
                confidence=confidence,
                reason=f"{limiting.replace('_', ' ').capitalize()} trending below the failure threshold",
                estimated_cost=1500.0,
            ))
            schedule.append(ScheduleEntry(
                date=now + timedelta(days=max(1.0, days / 2)),
                task="Replace or repair degrading component",
                type="corrective",
                priority=3,
            ))

        if uncertain:
            predictions.append(MaintenancePrediction(
                type="inspection",
                urgency="low",
                timeframe="1 month",
                confidence=confidence,
                reason="Insufficient or low-quality data for a reliable forecast",
                estimated_cost=150.0,
            ))
            schedule.append(ScheduleEntry(
                date=now + timedelta(days=30),
                task="Comprehensive system inspection",
                type="preventive",
                priority=1,
            ))

        schedule.sort(key=lambda e: (-e.priority, e.date))
        logger.info(
            "Maintenance forecast for %s: days=%s factor=%s confidence=%.0f (%s)",
            equipment_id, f"{days:.0f}" if days is not None else "n/a", limiting,
            confidence, level,
        )
        return MaintenanceForecast(
            equipment_id=equipment_id,
            generated_at=now,
            days_until_threshold=days,
            limiting_factor=limiting,
            confidence=confidence,
            confidence_level=level,
            uncertain=uncertain,
            band=band,
            predictions=predictions,
            schedule=schedule,
        )

    async def generate_reliability_report(
        self,
        equipment_id: str,
        timeframe: Timeframe | str | None = None,
        now: datetime | None = None,
    ) -> ReliabilityReport:
        """Availability, failures, MTBF and MTTR from the stored status series.

        Each interval between consecutive samples is attributed to the status
        of the earlier sample. A failure is any entry into fault or offline.
        """
        tf = Timeframe.parse(timeframe or self._config.lookback)
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        samples = await self._analyzer.load_window(equipment_id, tf, now)
        if len(samples) < 2:
            raise InsufficientDataError(equipment_id, len(samples), 2)

        failures: list[FailureEvent] = []
        downtime = 0.0
        current: FailureEvent | None = None
        previous_down = False

        for sample, following in zip(samples, samples[1:] + [None]):
            status = sample.realtime.status
            down = status in DOWN_STATES
            span = (
                (following.timestamp - sample.timestamp).total_seconds() / 3600
                if following is not None else 0.0
            )
            if down and not previous_down:
                current = FailureEvent(
                    started_at=sample.timestamp, ended_at=None, status=status, duration_hours=0.0,
                )
                failures.append(current)
            elif not down and previous_down and current is not None:
                current.ended_at = sample.timestamp
                current = None
            if down and current is not None:
                current.duration_hours += span
                downtime += span
            previous_down = down

        observed = (samples[-1].timestamp - samples[0].timestamp).total_seconds() / 3600
        uptime = observed - downtime
        repaired = [f for f in failures if f.ended_at is not None]

        if observed > 0:
            availability = uptime / observed * 100
            annual_rate = len(failures) / (observed / HOURS_PER_YEAR)
        else:
            availability = sum(
                1 for s in samples if s.realtime.status not in DOWN_STATES
            ) / len(samples) * 100
            annual_rate = 0.0

        return ReliabilityReport(
            equipment_id=equipment_id,
            timeframe=tf,
            observed_hours=observed,
            availability=availability,
            failure_count=len(failures),
            downtime_hours=downtime,
            mtbf_hours=uptime / len(failures) if failures else None,
            mttr_hours=(
                sum(f.duration_hours for f in repaired) / len(repaired) if repaired else None
            ),
            annual_failure_rate=annual_rate,
            failures=failures,
        )
