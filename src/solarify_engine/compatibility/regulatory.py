"""Regulatory compliance: required certifications and rapid shutdown."""

from __future__ import annotations

import re

from solarify_engine.compatibility.models import (
    CheckResult,
    CompatibilityIssue,
    Severity,
    SystemConfiguration,
)
from solarify_engine.config.schema import CompatibilityConfig

_WHITESPACE = re.compile(r"\s+")

RAPID_SHUTDOWN_CATEGORIES = frozenset({"dc_disconnect", "rapid_shutdown"})


def _normalise(cert: str) -> str:
    return _WHITESPACE.sub("", cert).casefold()


def has_certification(held: list[str], required: str) -> bool:
    """Substring match, ignoring whitespace and case ("UL1741-SA" holds "UL 1741")."""
    needle = _normalise(required)
    return any(needle in _normalise(cert) for cert in held)


def missing_certifications(held: list[str], required: list[str]) -> list[str]:
    return [cert for cert in required if not has_certification(held, cert)]


def check_regulatory(config: SystemConfiguration, rules: CompatibilityConfig) -> CheckResult:
    """Panels miss certs at high severity; inverters at critical.

    Grid-interconnection certification on the inverter is non-negotiable,
    so any missing inverter cert makes the system non-compliant.
    """
    result = CheckResult(domain="regulatory")
    panel = config.panel
    inverter = config.inverter

    panel_missing = missing_certifications(panel.certifications, rules.required_panel_certifications)
    for cert in panel_missing:
        result.issues.append(CompatibilityIssue(
            type="missing_certification",
            severity=Severity.HIGH,
            message=f"Panel missing required certification: {cert}",
            category="regulatory",
            component="panel",
            resolution="Select panels with proper certifications",
        ))

    inverter_missing = missing_certifications(
        inverter.certifications, rules.required_inverter_certifications,
    )
    for cert in inverter_missing:
        result.issues.append(CompatibilityIssue(
            type="missing_certification",
            severity=Severity.CRITICAL,
            message=f"Inverter missing required certification: {cert}",
            category="regulatory",
            component="inverter",
            resolution="Select inverter with proper grid-tie certifications",
        ))

    if inverter.type == "string":
        has_rapid_shutdown = any(
            e.rapid_shutdown or e.category.lower() in RAPID_SHUTDOWN_CATEGORIES
            for e in config.electrical
        )
        if not has_rapid_shutdown:
            result.issues.append(CompatibilityIssue(
                type="rapid_shutdown_missing",
                severity=Severity.HIGH,
                message="System may not comply with rapid shutdown requirements (NEC 690.12)",
                category="regulatory",
                component="electrical",
                resolution="Add rapid shutdown device or use module-level power electronics",
            ))

    if not result.issues:
        score = 100
    elif result.passed:
        score = 80
    else:
        score = 50

    result.summary = {
        "compliant": result.passed,
        "panelCertifications": list(panel.certifications),
        "inverterCertifications": list(inverter.certifications),
        "missingCertifications": (
            [f"panel: {c}" for c in panel_missing]
            + [f"inverter: {c}" for c in inverter_missing]
        ),
        "overallScore": score,
    }
    return result
