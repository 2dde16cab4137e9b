"""Tests for the matching engine, alternative generation and report helpers."""

from __future__ import annotations

import pytest

from solarify_engine.catalog import InMemoryCatalog
from solarify_engine.compatibility.engine import CompatibilityMatchingEngine, aggregate_score
from solarify_engine.compatibility.models import (
    CompatibilityIssue,
    Inverter,
    Panel,
    Severity,
    parse_system_configuration,
)
from solarify_engine.compatibility.physics import (
    azimuth_deviation,
    dc_ac_ratio,
    estimated_annual_production,
    temperature_adjusted_voltage,
)
from solarify_engine.compatibility.report import detailed_analysis, system_summary
from solarify_engine.config.schema import CompatibilityConfig
from solarify_engine.errors import ValidationError


def _issue(severity: Severity) -> CompatibilityIssue:
    return CompatibilityIssue(type="x", severity=severity, message="", category="test")


@pytest.fixture
def engine() -> CompatibilityMatchingEngine:
    return CompatibilityMatchingEngine()


@pytest.fixture
def catalog(make_system) -> InMemoryCatalog:
    base = make_system()
    large = Inverter.model_validate({
        **base["inverter"], "id": "INV-8K", "model": "GT-8000", "capacity": 8000,
    })
    uncertified = Inverter.model_validate({
        **base["inverter"], "id": "INV-9K", "model": "GT-9000", "capacity": 9000,
        "certifications": [],
    })
    certified_panel = Panel.model_validate({**base["panels"][0], "id": "PNL-410"})
    return InMemoryCatalog(
        panels=[certified_panel],
        inverters=[Inverter.model_validate(base["inverter"]), large, uncertified],
    )


class TestPhysics:
    def test_azimuth_deviation_wraps(self) -> None:
        assert azimuth_deviation(350, 35) == 170
        assert azimuth_deviation(350, -33) == 10

    def test_temperature_adjusted_voltage(self) -> None:
        assert temperature_adjusted_voltage(480, -0.35, 25) == 480
        assert temperature_adjusted_voltage(480, -0.35, -10) == pytest.approx(538.8)
        assert temperature_adjusted_voltage(480, -0.35, 70) == pytest.approx(404.4)

    def test_dc_ac_ratio(self) -> None:
        assert dc_ac_ratio(11000, 6000) == pytest.approx(1.8333, rel=1e-3)
        assert dc_ac_ratio(1000, 0) == float("inf")

    def test_estimated_annual_production(self) -> None:
        assert estimated_annual_production(4800, 5.0) == pytest.approx(8760.0)


class TestAggregateScore:
    def test_no_findings(self) -> None:
        assert aggregate_score([], []) == 100

    def test_deductions(self) -> None:
        issues = [_issue(Severity.CRITICAL), _issue(Severity.HIGH)]
        warnings = [_issue(Severity.MEDIUM), _issue(Severity.LOW)]
        assert aggregate_score(issues, warnings) == 100 - 25 - 15 - 5 - 2

    def test_floored_at_zero(self) -> None:
        assert aggregate_score([_issue(Severity.CRITICAL)] * 5, []) == 0


class TestCompatibilityMatchingEngine:
    def test_compatible_system(self, engine, make_system) -> None:
        result = engine.analyze(make_system())
        assert result.passed
        assert result.score == 100
        assert result.issues == []
        assert set(result.checks) == {
            "electrical", "physical", "environmental", "regulatory", "performance",
        }

    def test_critical_issue_fails(self, engine, make_system) -> None:
        result = engine.analyze(make_system(layout={"panelsPerString": 3}))
        assert not result.passed
        assert result.has_issue("voltage_too_low", "inverter")
        assert result.score == 75

    def test_non_critical_issues_pass(self, engine, make_system) -> None:
        result = engine.analyze(make_system(panel={"certifications": []}))
        assert result.passed
        assert len(result.issues) == 3

    def test_issues_merged_in_domain_order(self, engine, make_system) -> None:
        result = engine.analyze(make_system(
            layout={"panelsPerString": 3},
            installation={"roofType": "clay_tile"},
            inverter={"certifications": ["UL 1741"]},
        ))
        categories = [i.category for i in result.issues]
        assert categories == ["electrical", "physical", "regulatory"]

    def test_recommendations_deduplicated(self, engine, make_system) -> None:
        result = engine.analyze(make_system(installation={"azimuth": 90, "shading": "moderate"}))
        assert len(result.recommendations) == len(set(result.recommendations))
        assert result.recommendations

    def test_deterministic(self, engine, make_system) -> None:
        data = make_system(installation={"azimuth": 100}, layout={"panelsPerString": 16})
        assert engine.analyze(data).to_dict() == engine.analyze(data).to_dict()

    def test_invalid_input(self, engine, make_system) -> None:
        with pytest.raises(ValidationError):
            engine.analyze(make_system(layout={"totalPanels": 0}))

    def test_to_dict_shape(self, engine, make_system) -> None:
        data = engine.analyze(make_system(installation={"tilt": 5})).to_dict()
        assert data["passed"] is True
        assert data["warnings"][0]["type"] == "suboptimal_tilt"
        assert data["summary"]["electrical"] == 100


class TestAlternatives:
    def test_string_reconfiguration_for_low_voltage(self, engine, make_system) -> None:
        config = parse_system_configuration(make_system(layout={"panelsPerString": 3}))
        alternatives = engine.generate_alternatives(config)
        string_alts = [a for a in alternatives if a.type == "optimized_string_configuration"]
        assert len(string_alts) == 1
        alt = string_alts[0]
        assert alt.changes["panelsPerString"] == 6
        assert alt.resolves == ["voltage_too_low"]
        assert alt.result.passed
        assert alt.impact["compatibility"] > 100

    def test_every_alternative_resolves_its_trigger(self, make_system, catalog) -> None:
        engine = CompatibilityMatchingEngine(catalog=catalog)
        config = parse_system_configuration(make_system(
            panel={"wattage": 550}, inverter={"capacity": 6000}, layout={"totalPanels": 20},
        ))
        alternatives = engine.generate_alternatives(config)
        assert alternatives
        for alt in alternatives:
            assert alt.resolves == ["high_oversizing"]
            assert not alt.result.has_issue("high_oversizing")

    def test_oversizing_alternatives_ranked(self, make_system, catalog) -> None:
        engine = CompatibilityMatchingEngine(catalog=catalog)
        config = parse_system_configuration(make_system(
            panel={"wattage": 550}, inverter={"capacity": 6000}, layout={"totalPanels": 20},
        ))
        alternatives = engine.generate_alternatives(config)
        types = [a.type for a in alternatives]
        assert "reduced_array" in types
        assert "alternative_inverter" in types
        # The 8 kW inverter clips less than a 14-panel array produces.
        assert alternatives[0].type == "alternative_inverter"
        assert alternatives[0].changes["inverterId"] == "INV-8K"
        reduced = next(a for a in alternatives if a.type == "reduced_array")
        assert reduced.changes["totalPanels"] == 14

    def test_uncertified_catalog_inverters_not_proposed(self, make_system, catalog) -> None:
        engine = CompatibilityMatchingEngine(catalog=catalog)
        config = parse_system_configuration(make_system(inverter={"certifications": []}))
        alternatives = engine.generate_alternatives(config)
        ids = {a.changes.get("inverterId") for a in alternatives}
        assert "INV-9K" not in ids
        assert "INV-8K" in ids

    def test_capped_at_max_alternatives(self, make_system, catalog) -> None:
        engine = CompatibilityMatchingEngine(
            CompatibilityConfig(max_alternatives=1), catalog=catalog,
        )
        config = parse_system_configuration(make_system(
            panel={"wattage": 550}, inverter={"capacity": 6000}, layout={"totalPanels": 20},
        ))
        assert len(engine.generate_alternatives(config)) == 1

    def test_compatible_system_has_no_alternatives(self, make_system, catalog) -> None:
        engine = CompatibilityMatchingEngine(catalog=catalog)
        assert engine.generate_alternatives(make_system()) == []

    def test_to_dict(self, engine, make_system) -> None:
        alt = engine.generate_alternatives(make_system(layout={"panelsPerString": 3}))[0]
        data = alt.to_dict()
        assert set(data) == {"type", "description", "changes", "resolves", "impact", "compatibility"}
        assert data["compatibility"]["passed"] is True


class TestReport:
    def test_system_summary(self, make_system) -> None:
        summary = system_summary(parse_system_configuration(make_system()))
        assert summary["systemSize"] == 4.8
        assert summary["panelCount"] == 12
        assert summary["panelModel"] == "SunWorks SW-400"
        # 0.5 $/W x 4800 W + 0.3 $/W x 4000 W
        assert summary["estimatedCost"] == 3600.0
        assert summary["keySpecifications"]["inverterEfficiency"] == 97.5

    def test_detailed_analysis(self, make_system) -> None:
        data = detailed_analysis(parse_system_configuration(make_system()))
        effects = data["electricalAnalysis"]["temperatureEffects"]
        assert effects["minOperatingVoltage"] == pytest.approx(404.4)
        assert effects["maxOperatingVoltage"] == pytest.approx(538.8)
        assert data["electricalAnalysis"]["systemRatios"]["dcAcRatio"] == 1.2
        assert data["performanceEstimation"]["expectedLifetime"] == 25
        # 21 % x 0.975 = 20.475, which rounds down in binary floating point
        assert data["performanceEstimation"]["systemEfficiency"] == pytest.approx(20.47)
