"""Compatibility matching engine: composes the domain checkers."""

from __future__ import annotations

import logging
from typing import Any, Callable

from solarify_engine.catalog import EquipmentCatalog
from solarify_engine.compatibility.alternatives import (
    AlternativeConfiguration,
    AlternativeConfigurationGenerator,
)
from solarify_engine.compatibility.electrical import check_electrical
from solarify_engine.compatibility.environmental import check_environmental
from solarify_engine.compatibility.models import (
    CheckResult,
    CompatibilityIssue,
    CompatibilityResult,
    Severity,
    SystemConfiguration,
    parse_system_configuration,
)
from solarify_engine.compatibility.performance import check_site_performance
from solarify_engine.compatibility.physical import check_physical
from solarify_engine.compatibility.regulatory import check_regulatory
from solarify_engine.config.schema import CompatibilityConfig

logger = logging.getLogger(__name__)

Checker = Callable[[SystemConfiguration, CompatibilityConfig], CheckResult]

# Order is the order issues appear in the merged result.
CHECKS: tuple[tuple[str, Checker], ...] = (
    ("electrical", check_electrical),
    ("physical", check_physical),
    ("environmental", check_environmental),
    ("regulatory", check_regulatory),
    ("performance", check_site_performance),
)

ISSUE_DEDUCTIONS: dict[Severity, int] = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}

WARNING_DEDUCTIONS: dict[Severity, int] = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 10,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}


def aggregate_score(
    issues: list[CompatibilityIssue], warnings: list[CompatibilityIssue],
) -> int:
    deduction = sum(ISSUE_DEDUCTIONS[i.severity] for i in issues)
    deduction += sum(WARNING_DEDUCTIONS[w.severity] for w in warnings)
    return max(0, 100 - deduction)


class CompatibilityMatchingEngine:
    """Runs every checker over a configuration and merges the results.

    Analysis is pure: the same configuration and rules always produce the
    same result, and nothing is read from or written to a store.
    """

    def __init__(
        self,
        rules: CompatibilityConfig | None = None,
        catalog: EquipmentCatalog | None = None,
    ) -> None:
        self._rules = rules or CompatibilityConfig()
        self._catalog = catalog
        self._alternatives = AlternativeConfigurationGenerator(self, catalog)

    @property
    def rules(self) -> CompatibilityConfig:
        return self._rules

    def analyze(self, config: SystemConfiguration | dict[str, Any]) -> CompatibilityResult:
        """Analyse a configuration across all domains.

        Raw dicts are validated first; invalid input raises ValidationError
        listing every offending field.
        """
        config = parse_system_configuration(config)
        checks: dict[str, CheckResult] = {}
        issues: list[CompatibilityIssue] = []
        warnings: list[CompatibilityIssue] = []
        recommendations: list[str] = []

        for name, checker in CHECKS:
            check = checker(config, self._rules)
            checks[name] = check
            issues.extend(check.issues)
            warnings.extend(check.warnings)
            for rec in check.recommendations:
                if rec not in recommendations:
                    recommendations.append(rec)

        passed = not any(i.is_critical for i in issues)
        result = CompatibilityResult(
            passed=passed,
            score=aggregate_score(issues, warnings),
            issues=issues,
            warnings=warnings,
            recommendations=recommendations,
            checks=checks,
        )
        logger.debug(
            "Compatibility analysed: passed=%s score=%d issues=%d warnings=%d",
            result.passed, result.score, len(issues), len(warnings),
        )
        return result

    def generate_alternatives(
        self,
        config: SystemConfiguration | dict[str, Any],
        result: CompatibilityResult | None = None,
    ) -> list[AlternativeConfiguration]:
        config = parse_system_configuration(config)
        if result is None:
            result = self.analyze(config)
        return self._alternatives.generate(config, result)
