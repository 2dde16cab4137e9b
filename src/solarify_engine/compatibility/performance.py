"""Site performance analysis: orientation, shading and thermal losses.

Never fails a configuration; it only produces warnings and recommendations.
"""

from __future__ import annotations

from solarify_engine.compatibility.models import (
    CheckResult,
    CompatibilityIssue,
    Severity,
    ShadingLevel,
    SystemConfiguration,
)
from solarify_engine.compatibility.physics import (
    SHADING_LOSS_PCT,
    azimuth_deviation,
    azimuth_factor,
    estimated_annual_production,
    shading_factor,
    tilt_factor,
)
from solarify_engine.config.schema import CompatibilityConfig

HOT_CLIMATES = frozenset({"hot", "desert", "tropical", "arid"})


def _warning(issue_type: str, severity: Severity, message: str) -> CompatibilityIssue:
    return CompatibilityIssue(
        type=issue_type, severity=severity, message=message, category="performance",
    )


def check_site_performance(config: SystemConfiguration, rules: CompatibilityConfig) -> CheckResult:
    result = CheckResult(domain="performance")
    inst = config.installation
    latitude = inst.location.latitude

    az_dev = azimuth_deviation(inst.azimuth, latitude)
    if az_dev > 45:
        result.warnings.append(_warning(
            "suboptimal_azimuth", Severity.HIGH,
            f"Suboptimal azimuth ({inst.azimuth:g}°) may reduce energy production "
            f"by {round(az_dev * 0.5)}%",
        ))
        result.recommendations.append(
            "Consider adjusting panel orientation for optimal sun exposure"
        )

    optimal_tilt = abs(latitude)
    tilt_dev = abs(inst.tilt - optimal_tilt)
    if tilt_dev > 15:
        result.warnings.append(_warning(
            "suboptimal_tilt", Severity.MEDIUM,
            f"Suboptimal tilt angle may reduce energy production by {round(tilt_dev * 0.3)}%",
        ))
        result.recommendations.append(
            f"Consider tilt angle closer to {optimal_tilt:g}° for optimal annual production"
        )

    shading = ShadingLevel(inst.shading)
    if shading != ShadingLevel.NONE:
        result.warnings.append(_warning(
            "shading_loss",
            Severity.HIGH if shading == ShadingLevel.SIGNIFICANT else Severity.MEDIUM,
            f"{shading.value.capitalize()} shading may reduce system performance "
            f"by up to {SHADING_LOSS_PCT[shading]}%",
        ))
        if config.inverter.type == "string":
            result.recommendations.append(
                "Consider microinverters or power optimizers to mitigate shading losses"
            )

    if (inst.location.climate.strip().lower() in HOT_CLIMATES
            and config.panel.temperature_coefficient < -0.4):
        result.warnings.append(_warning(
            "temperature_losses", Severity.MEDIUM,
            "Panel temperature coefficient may result in significant hot weather losses",
        ))
        result.recommendations.append(
            "Consider panels with better temperature coefficients for hot climates"
        )

    inverter_load = config.layout.total_capacity / (config.inverter.capacity / 1000)
    if inverter_load < 0.3:
        result.warnings.append(_warning(
            "inverter_underloaded", Severity.LOW,
            "Inverter may operate at low efficiency due to oversizing",
        ))
        result.recommendations.append(
            "Consider smaller inverter or additional panels for better efficiency"
        )

    az = azimuth_factor(inst.azimuth, latitude)
    tilt = tilt_factor(inst.tilt, latitude)
    shade = shading_factor(shading)
    overall = az * tilt * shade
    production = estimated_annual_production(config.total_dc_power_w, rules.peak_sun_hours)

    result.summary = {
        "performanceFactors": {
            "azimuth": round(az, 4),
            "tilt": round(tilt, 4),
            "shading": shade,
            "overall": round(overall, 4),
        },
        "estimatedAnnualProduction": round(production * overall, 1),
        "performanceRatio": round(overall, 4),
        "overallScore": round(overall * 100),
    }
    return result
