"""Tests for performance analysis over stored samples."""

from __future__ import annotations

from datetime import timedelta

import pytest

from solarify_engine.analytics.analyzer import (
    PerformanceAnalyzer,
    Timeframe,
    classify_trend,
    percent_change,
)
from solarify_engine.compatibility.models import Severity
from solarify_engine.config.schema import AnalyticsConfig
from solarify_engine.errors import InsufficientDataError, ValidationError
from solarify_engine.telemetry.models import parse_sample

from conftest import NOW


@pytest.fixture
def analyzer(sample_store) -> PerformanceAnalyzer:
    return PerformanceAnalyzer(sample_store)


@pytest.fixture
def load(sample_store):
    async def _load(samples: list[dict]) -> None:
        for raw in samples:
            await sample_store.upsert_sample(parse_sample(raw))

    return _load


def _issue_types(analysis) -> dict[str, Severity]:
    return {i.type: i.severity for i in analysis.issues}


class TestHelpers:
    def test_percent_change(self) -> None:
        assert percent_change(80, 88) == pytest.approx(10.0)
        assert percent_change(0, 5) == 0.0

    def test_classify_trend(self) -> None:
        assert classify_trend(2.0, 1.0, "improving", "declining") == "improving"
        assert classify_trend(-2.0, 1.0, "improving", "declining") == "declining"
        assert classify_trend(0.5, 1.0, "improving", "declining") == "stable"

    def test_timeframe_parse(self) -> None:
        assert Timeframe.parse("quarter").days == 90
        with pytest.raises(ValidationError):
            Timeframe.parse("decade")


class TestAnalyzePerformance:
    @pytest.mark.asyncio
    async def test_healthy_unit(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(24))
        analysis = await analyzer.analyze_performance("INV-001", "month", NOW)

        summary = analysis.summary
        assert summary.sample_count == 24
        assert summary.total_energy_produced == pytest.approx(24.0)
        assert summary.average_efficiency == pytest.approx(95.0)
        assert summary.peak_power == 3000.0
        assert summary.uptime == 100.0
        assert summary.performance_ratio == pytest.approx(85.0)
        assert summary.data_quality == pytest.approx(95.0)

        assert analysis.trends.efficiency_trend == "stable"
        assert analysis.trends.energy_production_trend == "stable"
        assert analysis.trends.degradation_rate == 0.0
        assert analysis.issues == []
        assert analysis.window_start == NOW - timedelta(days=30)

    @pytest.mark.asyncio
    async def test_insufficient_data(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(5))
        with pytest.raises(InsufficientDataError) as exc_info:
            await analyzer.analyze_performance("INV-001", "month", NOW)
        assert exc_info.value.found == 5
        assert exc_info.value.required == 6

    @pytest.mark.asyncio
    async def test_unknown_unit_is_insufficient(self, analyzer) -> None:
        with pytest.raises(InsufficientDataError):
            await analyzer.analyze_performance("ghost", "week", NOW)

    @pytest.mark.asyncio
    async def test_min_samples_configurable(self, sample_store, load, hourly_series) -> None:
        await load(hourly_series(5))
        analyzer = PerformanceAnalyzer(sample_store, AnalyticsConfig(min_samples=3))
        analysis = await analyzer.analyze_performance("INV-001", "day", NOW)
        assert analysis.summary.sample_count == 5

    @pytest.mark.asyncio
    async def test_window_excludes_old_samples(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(10, end=NOW - timedelta(days=40), performance_ratio=50))
        await load(hourly_series(6))
        analysis = await analyzer.analyze_performance("INV-001", "month", NOW)
        assert analysis.summary.sample_count == 6
        assert analysis.summary.performance_ratio == pytest.approx(85.0)

    @pytest.mark.asyncio
    async def test_low_performance_ratio(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(6, performance_ratio=70))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert _issue_types(analysis) == {"low_performance": Severity.MEDIUM}

    @pytest.mark.asyncio
    async def test_critical_performance_ratio(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(6, performance_ratio=55))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert _issue_types(analysis)["low_performance"] == Severity.HIGH

    @pytest.mark.asyncio
    async def test_low_uptime(self, analyzer, load, hourly_series) -> None:
        statuses = ["normal"] * 8 + ["offline"] * 2
        await load(hourly_series(10, status=lambda i: statuses[i]))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert analysis.summary.uptime == pytest.approx(80.0)
        assert _issue_types(analysis)["low_uptime"] == Severity.HIGH

    @pytest.mark.asyncio
    async def test_declining_efficiency(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(12, efficiency=lambda i: 95 - i))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert analysis.trends.efficiency_trend == "declining"
        assert analysis.trends.efficiency_change_pct == pytest.approx(-6.486, abs=0.01)

    @pytest.mark.asyncio
    async def test_increasing_energy(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(6, energy=lambda i: 1.0 if i < 3 else 1.5))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert analysis.trends.energy_production_trend == "increasing"

    @pytest.mark.asyncio
    async def test_degradation(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(12, performance_ratio=lambda i: 85 - 0.1 * i))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert analysis.trends.degradation_rate > 2
        assert _issue_types(analysis)["degradation"] == Severity.HIGH

    @pytest.mark.asyncio
    async def test_poor_data_quality(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(6, quality=70))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        assert _issue_types(analysis) == {"data_quality": Severity.LOW}

    @pytest.mark.asyncio
    async def test_default_timeframe(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(6))
        analysis = await analyzer.analyze_performance("INV-001", now=NOW)
        assert analysis.timeframe == Timeframe.MONTH

    @pytest.mark.asyncio
    async def test_to_dict(self, analyzer, load, hourly_series) -> None:
        await load(hourly_series(6, performance_ratio=70))
        analysis = await analyzer.analyze_performance("INV-001", "week", NOW)
        data = analysis.to_dict()
        assert data["summary"]["performanceRatio"] == 70.0
        assert data["recommendations"] == [analysis.issues[0].recommendation]
        assert "recommendations" not in analysis.to_dict(include_recommendations=False)
