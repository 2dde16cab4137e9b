"""Tests for the transport-independent request/response service."""

from __future__ import annotations

import pytest

from solarify_engine.alerts.store import InMemoryAlertStore
from solarify_engine.config.schema import AppConfig, TelemetryConfig
from solarify_engine.errors import InsufficientDataError, NotFoundError, ValidationError
from solarify_engine.service import AlertActionRequest, EquipmentService, build_service
from solarify_engine.telemetry.store import InMemorySampleStore

from conftest import DEFAULT_THRESHOLDS, NOW


@pytest.fixture
def service(config: AppConfig) -> EquipmentService:
    return build_service(config, InMemorySampleStore(), InMemoryAlertStore())


class TestCheckCompatibility:
    def test_default_options(self, service, make_system) -> None:
        response = service.check_compatibility({"system": make_system()})
        assert response["compatibility"]["passed"] is True
        assert response["compatibility"]["score"] == 100
        assert set(response["analysis"]) == {
            "electricalValidation",
            "physicalValidation",
            "environmentalValidation",
            "performanceAnalysis",
            "complianceCheck",
        }
        assert response["systemSummary"]["panelCount"] == 12
        assert "alternatives" not in response
        assert "detailedAnalysis" not in response

    def test_alternatives_and_detail(self, service, make_system) -> None:
        response = service.check_compatibility({
            "system": make_system(layout={"panelsPerString": 3}),
            "options": {"includeAlternatives": True, "detailedAnalysis": True},
        })
        assert response["compatibility"]["passed"] is False
        assert response["alternatives"]
        assert all(a["compatibility"]["passed"] for a in response["alternatives"])
        assert "electricalAnalysis" in response["detailedAnalysis"]

    def test_without_recommendations(self, service, make_system) -> None:
        response = service.check_compatibility({
            "system": make_system(installation={"azimuth": 90}),
            "options": {"includeRecommendations": False},
        })
        assert "recommendations" not in response["compatibility"]
        assert "recommendations" not in response["analysis"]["performanceAnalysis"]

    def test_invalid_system_lists_fields(self, service, make_system) -> None:
        with pytest.raises(ValidationError) as exc_info:
            service.check_compatibility({"system": make_system(layout={"totalPanels": 0})})
        assert all(e.field.startswith("system.") for e in exc_info.value.errors)

    def test_missing_system(self, service) -> None:
        with pytest.raises(ValidationError):
            service.check_compatibility({"options": {}})


class TestIngestTelemetry:
    @pytest.mark.asyncio
    async def test_single_sample(self, service, make_sample) -> None:
        response = await service.ingest_telemetry(make_sample())
        assert response["processed"] == 1
        assert response["results"][0]["status"] == "recorded"

    @pytest.mark.asyncio
    async def test_single_invalid_sample_raises(self, service, make_sample) -> None:
        with pytest.raises(ValidationError):
            await service.ingest_telemetry(make_sample(efficiency=-5))

    @pytest.mark.asyncio
    async def test_batch_reports_each_item(self, service, make_sample, hourly_series) -> None:
        batch = hourly_series(3) + [make_sample(efficiency=500)]
        response = await service.ingest_telemetry(batch)
        assert response["processed"] == 4
        assert response["failed"] == 1
        assert response["successRate"] == 75.0

    @pytest.mark.asyncio
    async def test_batch_limit(self, hourly_series) -> None:
        config = AppConfig(telemetry=TelemetryConfig(max_batch_size=2))
        service = build_service(config, InMemorySampleStore(), InMemoryAlertStore())
        with pytest.raises(ValidationError) as exc_info:
            await service.ingest_telemetry(hourly_series(3))
        assert exc_info.value.errors[0].field == "samples"


class TestQueryAnalytics:
    @pytest.mark.asyncio
    async def test_performance(self, service, hourly_series) -> None:
        await service.ingest_telemetry(hourly_series(6, performance_ratio=70))
        response = await service.query_analytics(
            {"equipmentId": "INV-001", "timeframe": "week", "includeRecommendations": True},
            now=NOW,
        )
        assert response["analysisType"] == "performance"
        assert response["timeframe"] == "week"
        assert response["data"]["summary"]["performanceRatio"] == 70.0
        assert response["data"]["recommendations"]
        assert "alerts" not in response

    @pytest.mark.asyncio
    async def test_default_timeframe(self, service, hourly_series) -> None:
        await service.ingest_telemetry(hourly_series(6))
        response = await service.query_analytics({"equipmentId": "INV-001"}, now=NOW)
        assert response["timeframe"] == "month"
        assert "recommendations" not in response["data"]

    @pytest.mark.asyncio
    async def test_insufficient_data(self, service) -> None:
        with pytest.raises(InsufficientDataError):
            await service.query_analytics({"equipmentId": "INV-001"}, now=NOW)

    @pytest.mark.asyncio
    async def test_comparison(self, service, hourly_series) -> None:
        await service.ingest_telemetry(
            hourly_series(6, equipment_id="INV-A", performance_ratio=90)
            + hourly_series(6, equipment_id="INV-B", performance_ratio=80)
        )
        response = await service.query_analytics(
            {"analysisType": "comparison", "equipmentIds": ["INV-B", "INV-A"], "timeframe": "day"},
            now=NOW,
        )
        assert [e["equipmentId"] for e in response["data"]["comparison"]] == ["INV-A", "INV-B"]

    @pytest.mark.asyncio
    async def test_realtime(self, service, make_sample) -> None:
        await service.ingest_telemetry([
            make_sample(equipment_id="INV-A", power=1000),
            make_sample(equipment_id="INV-B", power=1500),
        ])
        response = await service.query_analytics(
            {"analysisType": "realtime", "equipmentIds": ["INV-A", "INV-B"]},
        )
        summary = response["data"]["summary"]
        assert summary["totalPower"] == 2500.0
        assert summary["totalCount"] == 2

    @pytest.mark.asyncio
    async def test_benchmarking_uses_stub(self, service, hourly_series) -> None:
        await service.ingest_telemetry(hourly_series(6))
        response = await service.query_analytics(
            {
                "equipmentId": "INV-001",
                "analysisType": "benchmarking",
                "manufacturer": "Acme",
                "model": "X-1",
                "timeframe": "day",
            },
            now=NOW,
        )
        assert response["data"]["benchmark"]["isStub"] is True

    @pytest.mark.asyncio
    async def test_include_alerts(self, service, make_sample) -> None:
        await service.manage_alert({"equipmentId": "INV-001", "thresholds": DEFAULT_THRESHOLDS})
        await service.ingest_telemetry(make_sample(efficiency=70))
        response = await service.query_analytics(
            {"analysisType": "realtime", "equipmentId": "INV-001", "includeAlerts": True},
        )
        assert [a["triggeredBy"] for a in response["alerts"]] == ["efficiency"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "query",
        [
            {},
            {"analysisType": "comparison"},
            {"equipmentId": "INV-001", "analysisType": "astrology"},
            {"equipmentId": "INV-001", "timeframe": "decade"},
        ],
    )
    async def test_invalid_query(self, service, query) -> None:
        with pytest.raises(ValidationError):
            await service.query_analytics(query, now=NOW)


class TestManageAlert:
    def test_request_forms(self) -> None:
        AlertActionRequest.model_validate({"alertId": "a1", "action": "resolve"})
        AlertActionRequest.model_validate({"equipmentId": "INV-001", "thresholds": {}})

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"alertId": "a1"},
            {"alertId": "a1", "action": "delete"},
            {"equipmentId": "INV-001"},
            {"alertId": "a1", "action": "resolve", "equipmentId": "INV-001", "thresholds": {}},
        ],
    )
    async def test_invalid_requests(self, service, payload) -> None:
        with pytest.raises(ValidationError):
            await service.manage_alert(payload)

    @pytest.mark.asyncio
    async def test_thresholds_then_lifecycle(self, service, make_sample) -> None:
        response = await service.manage_alert(
            {"equipmentId": "INV-001", "thresholds": DEFAULT_THRESHOLDS},
        )
        assert response["thresholds"]["minEfficiency"] == 85

        ingest = await service.ingest_telemetry(make_sample(temperature=95))
        [alert] = ingest["alerts"]
        assert alert["triggeredBy"] == "temperature"

        listed = await service.list_alerts("INV-001")
        assert listed["count"] == 1

        acked = await service.manage_alert({"alertId": alert["id"], "action": "acknowledge"})
        assert acked["alert"]["state"] == "acknowledged"
        resolved = await service.manage_alert({"alertId": alert["id"], "action": "resolve"})
        assert resolved["alert"]["state"] == "resolved"
        assert (await service.list_alerts())["count"] == 0

        with pytest.raises(NotFoundError):
            await service.manage_alert({"alertId": alert["id"], "action": "acknowledge"})
