"""Environmental compatibility: corrosion, wind and snow loading at the site."""

from __future__ import annotations

from solarify_engine.compatibility.models import (
    CheckResult,
    CompatibilityIssue,
    Severity,
    SystemConfiguration,
)
from solarify_engine.config.schema import CompatibilityConfig

MARINE_CLIMATES = frozenset({"marine", "coastal"})
MARINE_GRADES = frozenset({"marine grade", "marine_grade", "marine-grade"})


def _is_marine_grade(rating: str) -> bool:
    return rating.strip().lower() in MARINE_GRADES


def check_environmental(config: SystemConfiguration, rules: CompatibilityConfig) -> CheckResult:
    result = CheckResult(domain="environmental")
    racking = config.racking
    location = config.installation.location

    if location.climate.strip().lower() in MARINE_CLIMATES:
        if racking is not None and not _is_marine_grade(racking.corrosion_resistance):
            result.warnings.append(CompatibilityIssue(
                type="corrosion_risk",
                severity=Severity.HIGH,
                message=(
                    "Non-marine grade materials may experience accelerated corrosion "
                    "in coastal environment"
                ),
                category="environmental",
                component="racking",
            ))
        if any(not _is_marine_grade(h.corrosion_resistance) for h in config.mounting):
            result.warnings.append(CompatibilityIssue(
                type="corrosion_risk",
                severity=Severity.MEDIUM,
                message="Some mounting hardware lacks marine-grade corrosion resistance",
                category="environmental",
                component="mounting",
            ))

    ratings = racking.load_ratings if racking is not None else None
    if ratings is not None:
        if location.wind_zone > 3:
            required = location.wind_zone * rules.wind_uplift_pa_per_zone
            if ratings.wind_uplift < required:
                result.issues.append(CompatibilityIssue(
                    type="wind_load_insufficient",
                    severity=Severity.CRITICAL,
                    message=(
                        f"Racking system wind load rating ({ratings.wind_uplift:g}Pa) "
                        f"insufficient for wind zone {location.wind_zone}"
                    ),
                    category="environmental",
                    component="racking",
                    resolution=(
                        "Select racking system with higher wind load rating "
                        "or add additional attachments"
                    ),
                ))
        if location.snow_load > 0 and ratings.snow_load < location.snow_load:
            result.issues.append(CompatibilityIssue(
                type="snow_load_insufficient",
                severity=Severity.HIGH,
                message=(
                    f"Racking system snow load rating ({ratings.snow_load:g}Pa) insufficient "
                    f"for location requirement ({location.snow_load:g}Pa)"
                ),
                category="environmental",
                component="racking",
                resolution="Select racking system with higher snow load rating",
            ))

    if result.issues:
        score = 70
    elif result.warnings:
        score = 85
    else:
        score = 100
    result.summary = {
        "climate": location.climate,
        "windZone": location.wind_zone,
        "snowLoad": location.snow_load,
        "overallScore": score,
    }
    return result
