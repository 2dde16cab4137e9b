"""Physical compatibility: panel dimensions and roof type against the racking system."""

from __future__ import annotations

from solarify_engine.compatibility.models import (
    CheckResult,
    CompatibilityIssue,
    Severity,
    SystemConfiguration,
)
from solarify_engine.config.schema import CompatibilityConfig


def _outside(value: float, low: float, high: float) -> bool:
    return value < low or value > high


def check_physical(config: SystemConfiguration, rules: CompatibilityConfig) -> CheckResult:
    """Check the panel against racking and mounting envelopes.

    Without a racking spec the racking checks are skipped: there is nothing
    to be incompatible with.
    """
    result = CheckResult(domain="physical")
    panel = config.panel
    racking = config.racking
    installation = config.installation

    if racking is not None:
        compat = racking.compatibility
        dims = panel.dimensions
        length = dims.length if dims else 0.0
        width = dims.width if dims else 0.0
        sizes = compat.panel_sizes

        if (_outside(length, sizes.min.length, sizes.max.length)
                or _outside(width, sizes.min.width, sizes.max.width)):
            result.issues.append(CompatibilityIssue(
                type="panel_size_incompatible",
                severity=Severity.HIGH,
                message=(
                    f"Panel dimensions ({length:g}x{width:g}mm) are outside racking "
                    "system compatibility range"
                ),
                category="physical",
                component="racking",
                resolution="Select compatible racking system or different panel size",
            ))

        if compat.panel_weight is not None and _outside(
            panel.weight, compat.panel_weight.min, compat.panel_weight.max,
        ):
            result.issues.append(CompatibilityIssue(
                type="panel_weight_incompatible",
                severity=Severity.MEDIUM,
                message=f"Panel weight ({panel.weight:g}kg) is outside racking system specifications",
                category="physical",
                component="racking",
                resolution="Verify structural load calculations and racking capacity",
            ))

        supported = {roof.strip().lower() for roof in compat.roof_types}
        if installation.roof_type.strip().lower() not in supported:
            result.issues.append(CompatibilityIssue(
                type="roof_type_incompatible",
                severity=Severity.CRITICAL,
                message=f"Racking system not compatible with {installation.roof_type} roof",
                category="physical",
                component="racking",
                resolution="Select compatible racking system for roof type",
            ))

        if compat.roof_pitch is not None and _outside(
            installation.roof_pitch, compat.roof_pitch.min, compat.roof_pitch.max,
        ):
            result.warnings.append(CompatibilityIssue(
                type="roof_pitch_out_of_range",
                severity=Severity.MEDIUM,
                message=(
                    f"Roof pitch ({installation.roof_pitch:g}°) is outside optimal range "
                    "for this racking system"
                ),
                category="physical",
                component="racking",
            ))

    thickness = panel.dimensions.thickness if panel.dimensions else 0.0
    for hardware in config.mounting[:1]:
        limits = hardware.panel_thickness
        if limits is not None and _outside(thickness, limits.min, limits.max):
            result.issues.append(CompatibilityIssue(
                type="panel_thickness_incompatible",
                severity=Severity.HIGH,
                message="Panel frame thickness is incompatible with mounting hardware",
                category="physical",
                component="mounting",
                resolution="Select compatible mounting clamps or different panels",
            ))

    result.summary = {
        "rackingChecked": racking is not None,
        "dimensionCompatible": not any(
            i.type == "panel_size_incompatible" for i in result.issues
        ),
        "roofCompatible": not any(
            i.type == "roof_type_incompatible" for i in result.issues
        ),
        "overallScore": 70 if result.issues else 100,
    }
    return result
