"""Performance analysis over a timeframe of stored samples.

Summary statistics are plain means over the window. Trends compare the first
and second half of the window; the degradation estimate compares the leading
and trailing thirds by performance ratio and annualises the difference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from statistics import fmean
from typing import Any, Callable

from solarify_engine.compatibility.models import Severity
from solarify_engine.config.schema import AnalyticsConfig
from solarify_engine.errors import InsufficientDataError, ValidationError
from solarify_engine.telemetry.models import PerformanceMetricSample, ensure_utc
from solarify_engine.telemetry.store import SampleStore

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 365.25 * 24 * 3600

# Issue thresholds
LOW_PERFORMANCE_RATIO = 75.0
CRITICAL_PERFORMANCE_RATIO = 60.0
LOW_UPTIME = 95.0
CRITICAL_UPTIME = 90.0
FAST_DEGRADATION = 1.0  # percentage points per year
SEVERE_DEGRADATION = 2.0
POOR_DATA_QUALITY = 80.0


class Timeframe(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def days(self) -> int:
        return TIMEFRAME_DAYS[self]

    @classmethod
    def parse(cls, value: Timeframe | str) -> Timeframe:
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError.single(
                "timeframe", f"must be one of: {allowed}",
            ) from None


TIMEFRAME_DAYS: dict[Timeframe, int] = {
    Timeframe.DAY: 1,
    Timeframe.WEEK: 7,
    Timeframe.MONTH: 30,
    Timeframe.QUARTER: 90,
    Timeframe.YEAR: 365,
}


@dataclass
class PerformanceSummary:
    sample_count: int
    total_energy_produced: float  # kWh
    average_efficiency: float  # %
    peak_power: float  # W
    uptime: float  # % of samples not offline
    performance_ratio: float  # %
    availability: float  # %
    data_quality: float  # %

    def to_dict(self) -> dict[str, Any]:
        return {
            "sampleCount": self.sample_count,
            "totalEnergyProduced": round(self.total_energy_produced, 2),
            "averageEfficiency": round(self.average_efficiency, 2),
            "peakPower": round(self.peak_power, 2),
            "uptime": round(self.uptime, 2),
            "performanceRatio": round(self.performance_ratio, 2),
            "availability": round(self.availability, 2),
            "dataQuality": round(self.data_quality, 2),
        }


@dataclass
class PerformanceTrends:
    efficiency_trend: str  # improving | stable | declining
    energy_production_trend: str  # increasing | stable | decreasing
    efficiency_change_pct: float
    energy_change_pct: float
    degradation_rate: float  # percentage points per year, positive = degrading

    def to_dict(self) -> dict[str, Any]:
        return {
            "efficiencyTrend": self.efficiency_trend,
            "energyProductionTrend": self.energy_production_trend,
            "efficiencyChangePct": round(self.efficiency_change_pct, 2),
            "energyChangePct": round(self.energy_change_pct, 2),
            "degradationRate": round(self.degradation_rate, 3),
        }


@dataclass
class PerformanceIssue:
    type: str
    severity: Severity
    description: str
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "description": self.description,
            "recommendation": self.recommendation,
        }


@dataclass
class PerformanceAnalysis:
    equipment_id: str
    timeframe: Timeframe
    analysis_date: datetime
    window_start: datetime
    window_end: datetime
    summary: PerformanceSummary
    trends: PerformanceTrends
    issues: list[PerformanceIssue] = field(default_factory=list)
    samples: list[PerformanceMetricSample] = field(default_factory=list, repr=False)

    def to_dict(self, include_recommendations: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "equipmentId": self.equipment_id,
            "timeframe": self.timeframe.value,
            "analysisDate": self.analysis_date.isoformat(),
            "window": {
                "start": self.window_start.isoformat(),
                "end": self.window_end.isoformat(),
            },
            "summary": self.summary.to_dict(),
            "trends": self.trends.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
        }
        if include_recommendations:
            data["recommendations"] = [i.recommendation for i in self.issues]
        return data


def percent_change(before: float, after: float) -> float:
    if before == 0:
        return 0.0
    return (after - before) / abs(before) * 100


def classify_trend(change_pct: float, band: float, up: str, down: str) -> str:
    if change_pct > band:
        return up
    if change_pct < -band:
        return down
    return "stable"


def annualised_decline(
    samples: list[PerformanceMetricSample],
    value: Callable[[PerformanceMetricSample], float],
) -> float:
    """Yearly drop of ``value`` between the leading and trailing thirds.

    Samples must be sorted oldest first. Returns 0 with fewer than three
    samples or when both thirds share the same mean timestamp.
    """
    k = len(samples) // 3
    if k == 0:
        return 0.0
    leading = samples[:k]
    trailing = samples[-k:]
    lead_t = fmean(s.timestamp.timestamp() for s in leading)
    trail_t = fmean(s.timestamp.timestamp() for s in trailing)
    years = (trail_t - lead_t) / SECONDS_PER_YEAR
    if years <= 0:
        return 0.0
    return (fmean(value(s) for s in leading) - fmean(value(s) for s in trailing)) / years


def trailing_mean(
    samples: list[PerformanceMetricSample],
    value: Callable[[PerformanceMetricSample], float],
) -> float:
    """Mean of ``value`` over the trailing third (the last sample when fewer than three)."""
    k = max(1, len(samples) // 3)
    return fmean(value(s) for s in samples[-k:])


def degradation_rate(samples: list[PerformanceMetricSample]) -> float:
    """Performance-ratio points lost per year; positive means degrading."""
    return annualised_decline(samples, lambda s: s.calculated.performance_ratio)


def summarise(samples: list[PerformanceMetricSample]) -> PerformanceSummary:
    return PerformanceSummary(
        sample_count=len(samples),
        total_energy_produced=sum(s.calculated.energy_produced for s in samples),
        average_efficiency=fmean(s.realtime.efficiency for s in samples),
        peak_power=max(s.realtime.power for s in samples),
        uptime=sum(1 for s in samples if s.is_online) / len(samples) * 100,
        performance_ratio=fmean(s.calculated.performance_ratio for s in samples),
        availability=fmean(s.calculated.availability for s in samples),
        data_quality=fmean(s.quality.score for s in samples),
    )


class PerformanceAnalyzer:
    """Derives performance summaries, trends and issues from stored samples."""

    def __init__(self, store: SampleStore, config: AnalyticsConfig | None = None) -> None:
        self._store = store
        self._config = config or AnalyticsConfig()

    @property
    def min_samples(self) -> int:
        return self._config.min_samples

    @property
    def default_timeframe(self) -> Timeframe:
        return Timeframe(self._config.default_timeframe)

    async def load_window(
        self, equipment_id: str, timeframe: Timeframe, now: datetime,
    ) -> list[PerformanceMetricSample]:
        start = now - timedelta(days=timeframe.days)
        return await self._store.get_samples(equipment_id, start, now)

    async def analyze_performance(
        self,
        equipment_id: str,
        timeframe: Timeframe | str | None = None,
        now: datetime | None = None,
    ) -> PerformanceAnalysis:
        """Analyse the window ending at ``now``.

        Raises InsufficientDataError when the window holds fewer than
        ``min_samples`` samples.
        """
        tf = Timeframe.parse(timeframe or self._config.default_timeframe)
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        samples = await self.load_window(equipment_id, tf, now)
        if len(samples) < self._config.min_samples:
            raise InsufficientDataError(equipment_id, len(samples), self._config.min_samples)

        summary = summarise(samples)
        trends = self._trends(samples)
        analysis = PerformanceAnalysis(
            equipment_id=equipment_id,
            timeframe=tf,
            analysis_date=now,
            window_start=now - timedelta(days=tf.days),
            window_end=now,
            summary=summary,
            trends=trends,
            issues=self._identify_issues(summary, trends),
            samples=samples,
        )
        logger.debug(
            "Analysed %s over %s: %d samples, PR=%.1f%%, degradation=%.2f/yr",
            equipment_id, tf.value, len(samples), summary.performance_ratio,
            trends.degradation_rate,
        )
        return analysis

    def _trends(self, samples: list[PerformanceMetricSample]) -> PerformanceTrends:
        half = len(samples) // 2
        first, second = samples[:half], samples[half:]
        band = self._config.stable_band_pct

        efficiency_change = percent_change(
            fmean(s.realtime.efficiency for s in first),
            fmean(s.realtime.efficiency for s in second),
        )
        energy_change = percent_change(
            fmean(s.calculated.energy_produced for s in first),
            fmean(s.calculated.energy_produced for s in second),
        )
        return PerformanceTrends(
            efficiency_trend=classify_trend(efficiency_change, band, "improving", "declining"),
            energy_production_trend=classify_trend(energy_change, band, "increasing", "decreasing"),
            efficiency_change_pct=efficiency_change,
            energy_change_pct=energy_change,
            degradation_rate=degradation_rate(samples),
        )

    def _identify_issues(
        self, summary: PerformanceSummary, trends: PerformanceTrends,
    ) -> list[PerformanceIssue]:
        issues: list[PerformanceIssue] = []

        if summary.performance_ratio < LOW_PERFORMANCE_RATIO:
            issues.append(PerformanceIssue(
                type="low_performance",
                severity=(Severity.HIGH if summary.performance_ratio < CRITICAL_PERFORMANCE_RATIO
                          else Severity.MEDIUM),
                description=f"Performance ratio {summary.performance_ratio:.1f}% is below expectations",
                recommendation="Inspect for soiling, shading or string faults",
            ))

        if summary.uptime < LOW_UPTIME:
            issues.append(PerformanceIssue(
                type="low_uptime",
                severity=Severity.HIGH if summary.uptime < CRITICAL_UPTIME else Severity.MEDIUM,
                description=f"Equipment was offline for {100 - summary.uptime:.1f}% of samples",
                recommendation="Investigate connectivity and fault history",
            ))

        if trends.degradation_rate > FAST_DEGRADATION:
            issues.append(PerformanceIssue(
                type="degradation",
                severity=(Severity.HIGH if trends.degradation_rate > SEVERE_DEGRADATION
                          else Severity.MEDIUM),
                description=(
                    f"Performance ratio degrading at {trends.degradation_rate:.2f} points per year"
                ),
                recommendation="Schedule an inspection and review warranty coverage",
            ))

        if summary.data_quality < POOR_DATA_QUALITY:
            issues.append(PerformanceIssue(
                type="data_quality",
                severity=Severity.LOW,
                description=f"Average data quality is {summary.data_quality:.1f}%",
                recommendation="Check monitoring hardware and sensor calibration",
            ))

        return issues
