"""Request/response contracts for the engine, independent of any transport.

``EquipmentService`` accepts plain dicts (decoded JSON) and returns plain
dicts; typed errors from ``solarify_engine.errors`` propagate to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import model_validator
from pydantic import ValidationError as PydanticValidationError

from solarify_engine.alerts.engine import AlertEngine
from solarify_engine.alerts.store import AlertStore
from solarify_engine.analytics.analyzer import PerformanceAnalyzer
from solarify_engine.analytics.benchmarks import BenchmarkCatalog
from solarify_engine.analytics.fleet import FleetComparator
from solarify_engine.analytics.reliability import ReliabilityPredictor
from solarify_engine.catalog import EquipmentCatalog
from solarify_engine.compatibility.engine import CompatibilityMatchingEngine
from solarify_engine.compatibility.models import WireModel, parse_system_configuration
from solarify_engine.compatibility.report import detailed_analysis, system_summary
from solarify_engine.config.schema import AppConfig, TimeframeName
from solarify_engine.errors import ValidationError
from solarify_engine.telemetry.recorder import BatchResult, PerformanceRecorder
from solarify_engine.telemetry.store import SampleStore

logger = logging.getLogger(__name__)

AnalysisType = Literal[
    "performance", "reliability", "comparison", "prediction", "benchmarking", "realtime",
]

# Analysis types that accept a list of units.
FLEET_ANALYSES = frozenset({"comparison", "realtime"})


class CompatibilityOptions(WireModel):
    include_recommendations: bool = True
    include_alternatives: bool = False
    detailed_analysis: bool = False


class CompatibilityRequest(WireModel):
    system: Any
    options: CompatibilityOptions = CompatibilityOptions()


class AnalyticsQuery(WireModel):
    equipment_id: str | None = None
    equipment_ids: list[str] | None = None
    timeframe: TimeframeName | None = None
    analysis_type: AnalysisType = "performance"
    include_alerts: bool = False
    include_recommendations: bool = False
    manufacturer: str | None = None
    model: str | None = None
    equipment_type: Literal["panel", "inverter", "battery"] = "panel"

    @model_validator(mode="after")
    def _targets(self) -> AnalyticsQuery:
        if self.analysis_type in FLEET_ANALYSES:
            if not (self.equipment_ids or self.equipment_id):
                raise ValueError(f"equipmentIds is required for {self.analysis_type} analysis")
        elif not self.equipment_id:
            raise ValueError(f"equipmentId is required for {self.analysis_type} analysis")
        return self

    @property
    def fleet_ids(self) -> list[str]:
        if self.equipment_ids:
            return list(self.equipment_ids)
        return [self.equipment_id] if self.equipment_id else []


class AlertActionRequest(WireModel):
    alert_id: str | None = None
    action: Literal["acknowledge", "resolve"] | None = None
    equipment_id: str | None = None
    thresholds: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _one_form(self) -> AlertActionRequest:
        is_action = self.alert_id is not None or self.action is not None
        is_thresholds = self.equipment_id is not None or self.thresholds is not None
        if is_action == is_thresholds:
            raise ValueError("provide either {alertId, action} or {equipmentId, thresholds}")
        if is_action and (self.alert_id is None or self.action is None):
            raise ValueError("alertId and action are both required")
        if is_thresholds and (self.equipment_id is None or self.thresholds is None):
            raise ValueError("equipmentId and thresholds are both required")
        return self


def _parse(model: type[WireModel], data: Any, message: str) -> Any:
    if data is None:
        data = {}
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, message=message) from exc


@dataclass
class EquipmentService:
    """Entry points for compatibility checks, telemetry, analytics and alerts."""

    config: AppConfig
    compatibility: CompatibilityMatchingEngine
    recorder: PerformanceRecorder
    alerts: AlertEngine
    analyzer: PerformanceAnalyzer
    predictor: ReliabilityPredictor
    fleet: FleetComparator

    # ── Compatibility ───────────────────────────────────────

    def check_compatibility(self, payload: Any) -> dict[str, Any]:
        request = _parse(CompatibilityRequest, payload, "Invalid compatibility request")
        system = parse_system_configuration(request.system, prefix="system")
        options = request.options

        result = self.compatibility.analyze(system)
        compatibility = result.to_dict()
        if not options.include_recommendations:
            compatibility.pop("recommendations")

        performance = result.checks["performance"].to_dict()
        if options.include_recommendations:
            performance["recommendations"] = list(result.checks["performance"].recommendations)

        response: dict[str, Any] = {
            "compatibility": compatibility,
            "systemSummary": system_summary(system),
            "analysis": {
                "electricalValidation": result.checks["electrical"].to_dict(),
                "physicalValidation": result.checks["physical"].to_dict(),
                "environmentalValidation": result.checks["environmental"].to_dict(),
                "performanceAnalysis": performance,
                "complianceCheck": result.checks["regulatory"].to_dict(),
            },
        }
        if options.include_alternatives:
            response["alternatives"] = [
                alt.to_dict() for alt in self.compatibility.generate_alternatives(system, result)
            ]
        if options.detailed_analysis:
            response["detailedAnalysis"] = detailed_analysis(
                system, self.config.compatibility.peak_sun_hours,
            )
        logger.info(
            "Compatibility check: passed=%s score=%d issues=%d alternatives=%d",
            result.passed, result.score, len(result.issues),
            len(response.get("alternatives", [])),
        )
        return response

    # ── Telemetry ───────────────────────────────────────────

    async def ingest_telemetry(self, payload: Any) -> dict[str, Any]:
        """Record one sample (dict) or a batch (list).

        A single malformed sample raises ValidationError; inside a batch each
        item's failure is reported in its own result.
        """
        if isinstance(payload, list):
            limit = self.config.telemetry.max_batch_size
            if len(payload) > limit:
                raise ValidationError.single(
                    "samples", f"batch of {len(payload)} exceeds the limit of {limit}",
                )
            batch = await self.recorder.record_batch(payload)
        else:
            batch = BatchResult([await self.recorder.record(payload)])
        return batch.to_dict()

    # ── Analytics ───────────────────────────────────────────

    async def query_analytics(
        self, payload: Any, now: datetime | None = None,
    ) -> dict[str, Any]:
        query: AnalyticsQuery = _parse(AnalyticsQuery, payload, "Invalid analytics query")
        timeframe = query.timeframe or self.analyzer.default_timeframe.value
        recs = query.include_recommendations

        if query.analysis_type == "performance":
            analysis = await self.analyzer.analyze_performance(query.equipment_id, timeframe, now)
            data = analysis.to_dict(include_recommendations=recs)
        elif query.analysis_type == "reliability":
            report = await self.predictor.generate_reliability_report(
                query.equipment_id, timeframe, now,
            )
            data = report.to_dict()
        elif query.analysis_type == "prediction":
            forecast = await self.predictor.predict_maintenance_needs(query.equipment_id, now)
            data = forecast.to_dict()
        elif query.analysis_type == "comparison":
            comparison = await self.fleet.compare_fleet_performance(query.fleet_ids, timeframe, now)
            data = comparison.to_dict(include_recommendations=recs)
        elif query.analysis_type == "realtime":
            snapshot = await self.fleet.get_real_time_performance(query.fleet_ids)
            data = snapshot.to_dict()
        else:
            comparison = await self.fleet.benchmark_equipment(
                query.equipment_id,
                query.manufacturer or "Unknown",
                query.model or "Unknown",
                query.equipment_type,
                timeframe,
                now,
            )
            data = comparison.to_dict()

        response: dict[str, Any] = {
            "analysisType": query.analysis_type,
            "timeframe": timeframe,
            "data": data,
        }
        if query.include_alerts:
            alerts = []
            for equipment_id in query.fleet_ids:
                alerts.extend(await self.alerts.get_active_alerts(equipment_id))
            response["alerts"] = [a.to_dict() for a in alerts]
        return response

    # ── Alerts ──────────────────────────────────────────────

    async def manage_alert(self, payload: Any) -> dict[str, Any]:
        request: AlertActionRequest = _parse(AlertActionRequest, payload, "Invalid alert request")
        if request.alert_id is not None:
            if request.action == "acknowledge":
                alert = await self.alerts.acknowledge_alert(request.alert_id)
            else:
                alert = await self.alerts.resolve_alert(request.alert_id)
            return {"alert": alert.to_dict()}

        thresholds = await self.alerts.set_alert_thresholds(request.equipment_id, request.thresholds)
        return {
            "equipmentId": request.equipment_id,
            "thresholds": thresholds.model_dump(by_alias=True),
        }

    async def list_alerts(self, equipment_id: str | None = None) -> dict[str, Any]:
        alerts = await self.alerts.get_active_alerts(equipment_id)
        return {"alerts": [a.to_dict() for a in alerts], "count": len(alerts)}


def build_service(
    config: AppConfig,
    samples: SampleStore,
    alert_store: AlertStore,
    catalog: EquipmentCatalog | None = None,
) -> EquipmentService:
    """Wire every engine explicitly from configuration and stores."""
    alerts = AlertEngine(alert_store, auto_resolve=config.alerts.auto_resolve)
    analyzer = PerformanceAnalyzer(samples, config.analytics)
    return EquipmentService(
        config=config,
        compatibility=CompatibilityMatchingEngine(config.compatibility, catalog),
        recorder=PerformanceRecorder(samples, alerts),
        alerts=alerts,
        analyzer=analyzer,
        predictor=ReliabilityPredictor(analyzer, config.reliability),
        fleet=FleetComparator(analyzer, BenchmarkCatalog(config.benchmarks), samples, alerts),
    )
