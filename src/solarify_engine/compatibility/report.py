"""Report helpers for the compatibility response: system summary and detailed analysis."""

from __future__ import annotations

from typing import Any

from solarify_engine.compatibility.models import SystemConfiguration
from solarify_engine.compatibility.physics import (
    dc_ac_ratio,
    estimated_annual_production,
    inverter_efficiency,
    system_cost,
    system_efficiency,
    temperature_adjusted_voltage,
)

# Cell temperature extremes used for the operating voltage envelope.
COLD_CELL_TEMP_C = -10.0
HOT_CELL_TEMP_C = 70.0

DEFAULT_DEGRADATION_PCT = 0.5


def system_summary(config: SystemConfiguration) -> dict[str, Any]:
    panel = config.panel
    inverter = config.inverter
    return {
        "systemSize": config.layout.total_capacity,
        "panelCount": config.layout.total_panels,
        "panelModel": f"{panel.manufacturer} {panel.model}".strip(),
        "inverterModel": f"{inverter.manufacturer} {inverter.model}".strip(),
        "estimatedCost": round(system_cost(config), 2),
        "keySpecifications": {
            "totalDCPower": config.total_dc_power_w,
            "inverterACPower": inverter.capacity,
            "systemVoltage": config.layout.system_voltage,
            "panelEfficiency": panel.efficiency,
            "inverterEfficiency": inverter_efficiency(config),
        },
    }


def detailed_analysis(config: SystemConfiguration, peak_sun_hours: float = 5.0) -> dict[str, Any]:
    """Electrical envelope across temperature extremes plus a production estimate.

    The cold-cell voltage is the one that matters for the inverter maximum;
    the hot-cell voltage for the MPPT minimum.
    """
    panel = config.panel
    layout = config.layout
    string_voltage = config.string_voltage
    ratio = dc_ac_ratio(config.total_dc_power_w, config.inverter.capacity)
    coefficient = panel.temperature_coefficient
    cold_voltage = temperature_adjusted_voltage(string_voltage, coefficient, COLD_CELL_TEMP_C)
    hot_voltage = temperature_adjusted_voltage(string_voltage, coefficient, HOT_CELL_TEMP_C)

    return {
        "electricalAnalysis": {
            "stringConfiguration": {
                "voltage": round(string_voltage, 2),
                "current": panel.stc.current,
                "power": panel.wattage * layout.panels_per_string,
            },
            "temperatureEffects": {
                "minOperatingVoltage": round(min(cold_voltage, hot_voltage), 2),
                "maxOperatingVoltage": round(max(cold_voltage, hot_voltage), 2),
                "temperatureCoefficient": coefficient,
            },
            "systemRatios": {
                "dcAcRatio": round(ratio, 3),
                "oversizingFactor": round(max(ratio, 1.0), 3),
                "inverterUtilization": round(min(100.0, ratio * 100), 1),
            },
        },
        "performanceEstimation": {
            "estimatedAnnualProduction": round(
                estimated_annual_production(config.total_dc_power_w, peak_sun_hours), 1,
            ),
            "systemEfficiency": round(system_efficiency(config), 2),
            "degradationRate": DEFAULT_DEGRADATION_PCT,
            "expectedLifetime": panel.warranty_years,
        },
    }
