"""Alternative configuration generation.

Each triggering issue maps to one or more strategies through a fixed rule
table. Every candidate a strategy proposes is re-analysed by the engine and
kept only when the issue that triggered it is gone, so the suggestions are
always verified rather than guessed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterator

from solarify_engine.catalog import EquipmentCatalog
from solarify_engine.compatibility.models import (
    CompatibilityResult,
    Inverter,
    SystemConfiguration,
)
from solarify_engine.compatibility.physics import dc_ac_ratio, expected_production, system_cost
from solarify_engine.compatibility.regulatory import missing_certifications

if TYPE_CHECKING:
    from solarify_engine.compatibility.engine import CompatibilityMatchingEngine

logger = logging.getLogger(__name__)

MAX_PANELS_PER_STRING = 30
MAX_TOTAL_PANELS = 1000

RACKING_ISSUES = (
    "panel_size_incompatible",
    "roof_type_incompatible",
    "panel_weight_incompatible",
    "wind_load_insufficient",
    "snow_load_insufficient",
)


@dataclass
class AlternativeConfiguration:
    """A verified change to a configuration and its relative impact.

    Impact scores use 100 as the baseline of the original configuration.
    """

    type: str
    description: str
    changes: dict[str, Any]
    resolves: list[str]
    impact: dict[str, float]
    configuration: SystemConfiguration
    result: CompatibilityResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "changes": dict(self.changes),
            "resolves": list(self.resolves),
            "impact": dict(self.impact),
            "compatibility": {"passed": self.result.passed, "score": self.result.score},
        }


@dataclass
class _Candidate:
    type: str
    description: str
    changes: dict[str, Any]
    configuration: SystemConfiguration
    triggers: list[tuple[str, str | None]] = field(default_factory=list)

    @property
    def key(self) -> tuple[Any, ...]:
        return (self.type, tuple(sorted(
            (k, v) for k, v in self.changes.items() if k != "reason"
        )))


Strategy = Callable[[SystemConfiguration, CompatibilityResult], Iterator[_Candidate]]


class AlternativeConfigurationGenerator:
    """Proposes configurations that remove detected issues."""

    def __init__(
        self,
        engine: CompatibilityMatchingEngine,
        catalog: EquipmentCatalog | None = None,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._rules: dict[tuple[str, str | None], tuple[Strategy, ...]] = {
            ("voltage_too_low", "inverter"): (
                self._string_configuration, self._inverters_for_voltage,
            ),
            ("voltage_too_high", "inverter"): (
                self._string_configuration, self._inverters_for_voltage,
            ),
            ("current_too_high", "inverter"): (self._inverters_for_current,),
            ("missing_certification", "inverter"): (self._certified_inverters,),
            ("high_oversizing", "inverter"): (
                self._reduced_array, self._larger_inverters,
            ),
            ("missing_certification", "panel"): (self._certified_panels,),
            **{(issue, "racking"): (self._alternative_racking,) for issue in RACKING_ISSUES},
        }

    def generate(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> list[AlternativeConfiguration]:
        """Return verified alternatives ranked best first."""
        candidates: dict[tuple[Any, ...], _Candidate] = {}
        for issue in (*result.issues, *result.warnings):
            trigger = (issue.type, issue.component)
            for strategy in self._rules.get(trigger, ()):
                for candidate in strategy(config, result):
                    existing = candidates.setdefault(candidate.key, candidate)
                    if trigger not in existing.triggers:
                        existing.triggers.append(trigger)

        rules = self._engine.rules
        base_production = expected_production(config, rules.peak_sun_hours)
        base_cost = system_cost(config)
        alternatives: list[AlternativeConfiguration] = []

        for candidate in candidates.values():
            new_result = self._engine.analyze(candidate.configuration)
            resolved = [
                issue_type for issue_type, component in candidate.triggers
                if not new_result.has_issue(issue_type, component)
            ]
            if not resolved:
                logger.debug(
                    "Discarding %s candidate (%s): trigger not resolved",
                    candidate.type, candidate.description,
                )
                continue
            production = expected_production(candidate.configuration, rules.peak_sun_hours)
            cost = system_cost(candidate.configuration)
            alternatives.append(AlternativeConfiguration(
                type=candidate.type,
                description=candidate.description,
                changes=candidate.changes,
                resolves=sorted(set(resolved)),
                impact={
                    "compatibility": 100 + (new_result.score - result.score),
                    "performance": _ratio_pct(production, base_production),
                    "cost": _ratio_pct(cost, base_cost),
                },
                configuration=candidate.configuration,
                result=new_result,
            ))

        alternatives.sort(key=lambda a: (
            -a.impact["compatibility"],
            -a.impact["performance"],
            a.impact["cost"],
            a.type,
            a.description,
        ))
        logger.info(
            "Generated %d verified alternatives from %d candidates",
            len(alternatives), len(candidates),
        )
        return alternatives[:rules.max_alternatives]

    # ── Strategies ──────────────────────────────────────────

    def _string_configuration(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        """Nearest panels-per-string whose voltage sits strictly inside the window."""
        panel = config.panel
        layout = config.layout
        window = config.inverter.dc_input.voltage_range
        current = layout.panels_per_string

        fitting = [
            n for n in range(1, MAX_PANELS_PER_STRING + 1)
            if window.min < n * panel.stc.voltage < window.max
        ]
        if not fitting:
            return
        best = min(fitting, key=lambda n: (abs(n - current), n))

        total_panels = min(MAX_TOTAL_PANELS, best * layout.strings_per_inverter)
        string_voltage = best * panel.stc.voltage
        new_layout = layout.model_copy(update={
            "panels_per_string": best,
            "total_panels": total_panels,
            "system_voltage": min(1500.0, max(12.0, string_voltage)),
            "total_capacity": max(0.1, round(total_panels * panel.wattage / 1000, 3)),
        })
        yield _Candidate(
            type="optimized_string_configuration",
            description=f"{best} panels per string ({string_voltage:g}V) for inverter voltage matching",
            changes={
                "panelsPerString": best,
                "totalPanels": total_panels,
                "reason": "String voltage within inverter input window",
            },
            configuration=config.model_copy(update={"layout": new_layout}),
        )

    def _reduced_array(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        rules = self._engine.rules
        panel = config.panel
        target = math.floor(rules.target_dc_ac_ratio * config.inverter.capacity / panel.wattage)
        total_panels = max(1, min(MAX_TOTAL_PANELS, target))
        if total_panels >= config.layout.total_panels:
            return
        new_layout = config.layout.model_copy(update={
            "total_panels": total_panels,
            "total_capacity": max(0.1, round(total_panels * panel.wattage / 1000, 3)),
        })
        yield _Candidate(
            type="reduced_array",
            description=f"Reduce array to {total_panels} panels",
            changes={
                "totalPanels": total_panels,
                "reason": f"DC/AC ratio of {rules.target_dc_ac_ratio:g}",
            },
            configuration=config.model_copy(update={"layout": new_layout}),
        )

    def _inverter_candidates(
        self,
        config: SystemConfiguration,
        predicate: Callable[[Inverter], bool],
        reason: str,
    ) -> Iterator[_Candidate]:
        if self._catalog is None:
            return
        for inverter in self._catalog.list_inverters():
            if inverter.id == config.inverter.id or not predicate(inverter):
                continue
            yield _Candidate(
                type="alternative_inverter",
                description=f"Alternative inverter {inverter.manufacturer} {inverter.model}".strip(),
                changes={"inverterId": inverter.id, "reason": reason},
                configuration=config.model_copy(update={"inverter": inverter}),
            )

    def _inverters_for_voltage(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        voltage = config.string_voltage
        yield from self._inverter_candidates(
            config,
            lambda inv: inv.dc_input.voltage_range.min <= voltage <= inv.dc_input.voltage_range.max,
            "Input voltage window contains the string voltage",
        )

    def _inverters_for_current(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        current = config.panel.stc.current
        yield from self._inverter_candidates(
            config,
            lambda inv: inv.dc_input.max_current is None or inv.dc_input.max_current >= current,
            "Higher input current rating",
        )

    def _certified_inverters(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        required = self._engine.rules.required_inverter_certifications
        yield from self._inverter_candidates(
            config,
            lambda inv: not missing_certifications(inv.certifications, required),
            "Holds the required grid-interconnection certifications",
        )

    def _larger_inverters(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        dc_power = config.total_dc_power_w
        max_ratio = self._engine.rules.max_dc_ac_ratio
        yield from self._inverter_candidates(
            config,
            lambda inv: (inv.capacity > config.inverter.capacity
                         and dc_ac_ratio(dc_power, inv.capacity) <= max_ratio),
            "Larger AC capacity avoids clipping",
        )

    def _certified_panels(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        if self._catalog is None:
            return
        required = self._engine.rules.required_panel_certifications
        for panel in self._catalog.list_panels():
            if panel.id == config.panel.id or missing_certifications(panel.certifications, required):
                continue
            yield _Candidate(
                type="alternative_panel",
                description=f"Alternative panel {panel.manufacturer} {panel.model}".strip(),
                changes={"panelId": panel.id, "reason": "Holds the required certifications"},
                configuration=config.model_copy(update={"panels": [panel]}),
            )

    def _alternative_racking(
        self, config: SystemConfiguration, result: CompatibilityResult,
    ) -> Iterator[_Candidate]:
        if self._catalog is None:
            return
        current_id = config.racking.id if config.racking is not None else None
        for racking in self._catalog.list_racking():
            if racking.id == current_id:
                continue
            yield _Candidate(
                type="alternative_racking",
                description=f"Alternative racking {racking.manufacturer} {racking.model}".strip(),
                changes={"rackingId": racking.id, "reason": "Compatible with panel and site"},
                configuration=config.model_copy(update={"racking": racking}),
            )


def _ratio_pct(new: float, old: float) -> float:
    if old <= 0:
        return 100.0
    return round(100 * new / old, 1)
