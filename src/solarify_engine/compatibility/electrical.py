"""Electrical compatibility: string voltage/current against the inverter, DC/AC sizing."""

from __future__ import annotations

from solarify_engine.compatibility.models import (
    CheckResult,
    CompatibilityIssue,
    Severity,
    SystemConfiguration,
)
from solarify_engine.compatibility.physics import dc_ac_ratio
from solarify_engine.config.schema import CompatibilityConfig


def _issue(issue_type: str, severity: Severity, message: str, resolution: str) -> CompatibilityIssue:
    return CompatibilityIssue(
        type=issue_type,
        severity=severity,
        message=message,
        category="electrical",
        component="inverter",
        resolution=resolution,
    )


def check_electrical(config: SystemConfiguration, rules: CompatibilityConfig) -> CheckResult:
    """Validate the string against the inverter input window and the DC/AC ratio.

    Score rubric: 100 with nothing to report, 85 with warnings only, 60 once
    any issue is present.
    """
    result = CheckResult(domain="electrical")
    panel = config.panel
    inverter = config.inverter
    layout = config.layout

    string_voltage = config.string_voltage
    v_min = inverter.dc_input.voltage_range.min
    v_max = inverter.dc_input.voltage_range.max

    if string_voltage < v_min:
        result.issues.append(_issue(
            "voltage_too_low", Severity.CRITICAL,
            f"String voltage ({string_voltage:g}V) below inverter minimum ({v_min:g}V)",
            "Increase panels per string or select panels with higher voltage",
        ))
    if string_voltage > v_max:
        result.issues.append(_issue(
            "voltage_too_high", Severity.CRITICAL,
            f"String voltage ({string_voltage:g}V) exceeds inverter maximum ({v_max:g}V)",
            "Reduce panels per string or select panels with lower voltage",
        ))

    string_current = panel.stc.current
    max_current = inverter.dc_input.max_current
    if max_current is not None and string_current > max_current:
        result.issues.append(_issue(
            "current_too_high", Severity.HIGH,
            f"String current ({string_current:g}A) exceeds inverter maximum ({max_current:g}A)",
            "Select inverter with higher current rating",
        ))

    oversizing = dc_ac_ratio(config.total_dc_power_w, inverter.capacity)
    if oversizing > rules.max_dc_ac_ratio:
        result.warnings.append(_issue(
            "high_oversizing", Severity.MEDIUM,
            f"High DC/AC ratio ({oversizing:.2f}) may cause power clipping",
            "Reduce number of panels or select larger inverter",
        ))
    elif oversizing < rules.min_dc_ac_ratio:
        result.warnings.append(_issue(
            "low_dc_ac_ratio", Severity.LOW,
            f"Low DC/AC ratio ({oversizing:.2f}) may result in suboptimal inverter efficiency",
            "Consider a smaller inverter or additional panels",
        ))

    if inverter.mppt_channels and layout.strings_per_inverter > inverter.mppt_channels:
        result.warnings.append(_issue(
            "mppt_channels_exceeded", Severity.MEDIUM,
            f"Number of strings ({layout.strings_per_inverter}) exceeds "
            f"MPPT channels ({inverter.mppt_channels})",
            "Combine strings in parallel per MPPT or select an inverter with more trackers",
        ))

    if result.issues:
        score = 60
    elif result.warnings:
        score = 85
    else:
        score = 100

    result.summary = {
        "stringVoltage": round(string_voltage, 2),
        "stringCurrent": round(string_current, 2),
        "dcAcRatio": round(oversizing, 3),
        "voltageCompatible": v_min <= string_voltage <= v_max,
        "powerCompatible": oversizing <= rules.max_dc_ac_ratio,
        "overallScore": score,
    }
    return result
