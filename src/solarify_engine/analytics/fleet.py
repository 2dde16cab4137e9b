"""Fleet comparison, market benchmarking and real-time fleet snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from statistics import fmean, pstdev
from typing import Any

from solarify_engine.alerts.engine import AlertEngine
from solarify_engine.alerts.models import Alert
from solarify_engine.analytics.analyzer import PerformanceAnalyzer, Timeframe
from solarify_engine.analytics.benchmarks import Benchmark, BenchmarkCatalog
from solarify_engine.errors import InsufficientDataError, ValidationError
from solarify_engine.telemetry.models import EquipmentStatus, PerformanceMetricSample
from solarify_engine.telemetry.store import SampleStore

logger = logging.getLogger(__name__)

UNDERPERFORMER_SHARE = 0.9  # of fleet average
BOTTOM_SHARE = 0.8  # rankings beyond this fraction are the bottom 20 %
MIN_FLEET_AVAILABILITY = 95.0


@dataclass
class FleetEntry:
    equipment_id: str
    performance_ratio: float
    efficiency: float
    availability: float
    ranking: int = 0
    outlier: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipmentId": self.equipment_id,
            "performanceRatio": round(self.performance_ratio, 2),
            "efficiency": round(self.efficiency, 2),
            "availability": round(self.availability, 2),
            "ranking": self.ranking,
            "outlier": self.outlier,
        }


@dataclass
class FleetComparison:
    timeframe: Timeframe
    comparison: list[FleetEntry]
    skipped: list[dict[str, Any]] = field(default_factory=list)
    fleet_average: float | None = None
    fleet_std: float | None = None
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self, include_recommendations: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timeframe": self.timeframe.value,
            "comparison": [e.to_dict() for e in self.comparison],
            "skipped": list(self.skipped),
            "fleetAverage": round(self.fleet_average, 2) if self.fleet_average is not None else None,
            "fleetStd": round(self.fleet_std, 2) if self.fleet_std is not None else None,
            "insights": list(self.insights),
        }
        if include_recommendations:
            data["recommendations"] = list(self.recommendations)
        return data


@dataclass
class BenchmarkComparison:
    equipment_id: str
    benchmark: Benchmark
    performance_ratio: float
    performance_index: float  # 100 = on benchmark
    percentile: float
    ranking: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipmentId": self.equipment_id,
            "benchmark": self.benchmark.to_dict(),
            "performanceRatio": round(self.performance_ratio, 2),
            "performanceIndex": round(self.performance_index, 1),
            "percentile": round(self.percentile, 1),
            "ranking": self.ranking,
        }


@dataclass
class RealTimeSnapshot:
    current: list[PerformanceMetricSample]
    alerts: list[Alert]
    total_power: float
    average_efficiency: float
    system_status: str
    online_count: int
    total_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": [s.model_dump(mode="json", by_alias=True) for s in self.current],
            "alerts": [a.to_dict() for a in self.alerts],
            "summary": {
                "totalPower": round(self.total_power, 2),
                "averageEfficiency": round(self.average_efficiency, 2),
                "systemStatus": self.system_status,
                "onlineCount": self.online_count,
                "totalCount": self.total_count,
            },
        }


def percentile_ranking(percentile: float) -> str:
    if percentile >= 90:
        return "top_10"
    if percentile >= 60:
        return "above_average"
    if percentile >= 40:
        return "average"
    if percentile >= 10:
        return "below_average"
    return "bottom_10"


def _unique(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(i for i in ids if i))


class FleetComparator:
    """Compares units against each other and against market benchmarks."""

    def __init__(
        self,
        analyzer: PerformanceAnalyzer,
        benchmarks: BenchmarkCatalog,
        store: SampleStore,
        alerts: AlertEngine | None = None,
    ) -> None:
        self._analyzer = analyzer
        self._benchmarks = benchmarks
        self._store = store
        self._alerts = alerts

    async def compare_fleet_performance(
        self,
        equipment_ids: list[str],
        timeframe: Timeframe | str | None = None,
        now: datetime | None = None,
    ) -> FleetComparison:
        """Rank units by performance ratio; the result does not depend on input order."""
        ids = sorted(_unique(equipment_ids))
        if not ids:
            raise ValidationError.single("equipmentIds", "at least one equipment id is required")

        entries: list[FleetEntry] = []
        skipped: list[dict[str, Any]] = []
        tf: Timeframe | None = None
        for equipment_id in ids:
            try:
                analysis = await self._analyzer.analyze_performance(equipment_id, timeframe, now)
            except InsufficientDataError as exc:
                skipped.append({
                    "equipmentId": equipment_id, "found": exc.found, "required": exc.required,
                })
                continue
            tf = analysis.timeframe
            entries.append(FleetEntry(
                equipment_id=equipment_id,
                performance_ratio=analysis.summary.performance_ratio,
                efficiency=analysis.summary.average_efficiency,
                availability=analysis.summary.availability,
            ))

        entries.sort(key=lambda e: (-e.performance_ratio, e.equipment_id))
        for index, entry in enumerate(entries):
            entry.ranking = index + 1

        result = FleetComparison(
            timeframe=tf or Timeframe.parse(timeframe or self._analyzer.default_timeframe),
            comparison=entries,
            skipped=skipped,
        )
        if not entries:
            logger.info("Fleet comparison: no unit had enough data (%d skipped)", len(skipped))
            return result

        ratios = [e.performance_ratio for e in entries]
        average = fmean(ratios)
        std = pstdev(ratios) if len(ratios) > 1 else 0.0
        for entry in entries:
            entry.outlier = std > 0 and entry.performance_ratio < average - std

        result.fleet_average = average
        result.fleet_std = std
        result.insights = self._insights(entries, average)
        result.recommendations = self._recommendations(entries)
        logger.info(
            "Fleet comparison: %d ranked, %d skipped, average PR %.1f%%",
            len(entries), len(skipped), average,
        )
        return result

    @staticmethod
    def _insights(entries: list[FleetEntry], average: float) -> list[str]:
        ratios = [e.performance_ratio for e in entries]
        insights = [
            f"Fleet average performance ratio: {average:.1f}%",
            f"Performance spread: {max(ratios) - min(ratios):.1f}%",
        ]
        under = [e for e in entries if e.performance_ratio < average * UNDERPERFORMER_SHARE]
        if under:
            insights.append(f"{len(under)} systems performing below 90% of fleet average")
        outliers = [e.equipment_id for e in entries if e.outlier]
        if outliers:
            insights.append(f"Outliers more than one standard deviation below average: {', '.join(outliers)}")
        return insights

    @staticmethod
    def _recommendations(entries: list[FleetEntry]) -> list[str]:
        recommendations = []
        if any(e.ranking > len(entries) * BOTTOM_SHARE for e in entries):
            recommendations.append("Focus maintenance efforts on bottom 20% performing systems")
        if any(e.availability < MIN_FLEET_AVAILABILITY for e in entries):
            recommendations.append(
                "Investigate connectivity issues for systems with <95% availability"
            )
        return recommendations

    def get_market_benchmarks(
        self, manufacturer: str, model: str, equipment_type: str = "panel",
    ) -> Benchmark:
        return self._benchmarks.get(manufacturer, model, equipment_type)

    async def benchmark_equipment(
        self,
        equipment_id: str,
        manufacturer: str,
        model: str,
        equipment_type: str = "panel",
        timeframe: Timeframe | str | None = None,
        now: datetime | None = None,
    ) -> BenchmarkComparison:
        """Place a unit's performance ratio within its model's benchmark distribution."""
        analysis = await self._analyzer.analyze_performance(equipment_id, timeframe, now)
        benchmark = self.get_market_benchmarks(manufacturer, model, equipment_type)
        ratio = analysis.summary.performance_ratio
        percentile = benchmark.percentile(ratio)
        return BenchmarkComparison(
            equipment_id=equipment_id,
            benchmark=benchmark,
            performance_ratio=ratio,
            performance_index=(
                ratio / benchmark.performance_ratio * 100 if benchmark.performance_ratio else 0.0
            ),
            percentile=percentile,
            ranking=percentile_ranking(percentile),
        )

    async def get_real_time_performance(self, equipment_ids: list[str]) -> RealTimeSnapshot:
        """Latest sample per unit plus fleet totals.

        Units reporting normal or warning count as online. Status precedence
        is fault over warning over normal.
        """
        ids = _unique(equipment_ids)
        current: list[PerformanceMetricSample] = []
        alerts: list[Alert] = []
        total_power = 0.0
        efficiencies: list[float] = []
        statuses: set[EquipmentStatus] = set()

        for equipment_id in ids:
            latest = await self._store.get_latest_sample(equipment_id)
            if latest is None:
                continue
            current.append(latest)
            status = latest.realtime.status
            statuses.add(status)
            if status in (EquipmentStatus.NORMAL, EquipmentStatus.WARNING):
                total_power += latest.realtime.power
                efficiencies.append(latest.realtime.efficiency)
            if self._alerts is not None:
                alerts.extend(await self._alerts.get_active_alerts(equipment_id))

        if EquipmentStatus.FAULT in statuses:
            system_status = "fault"
        elif EquipmentStatus.WARNING in statuses:
            system_status = "warning"
        else:
            system_status = "normal"

        return RealTimeSnapshot(
            current=current,
            alerts=alerts,
            total_power=total_power,
            average_efficiency=fmean(efficiencies) if efficiencies else 0.0,
            system_status=system_status,
            online_count=len(efficiencies),
            total_count=len(ids),
        )
