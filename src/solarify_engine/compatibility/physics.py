"""Pure numeric helpers for PV array modelling.

Simplified engineering approximations; they favour explainability over
precision and are deterministic for the same inputs.
"""

from __future__ import annotations

from solarify_engine.compatibility.models import ShadingLevel, SystemConfiguration

STC_CELL_TEMP_C = 25.0
DEFAULT_PANEL_EFFICIENCY = 20.0
DEFAULT_INVERTER_EFFICIENCY = 97.0

SHADING_FACTORS: dict[ShadingLevel, float] = {
    ShadingLevel.NONE: 1.0,
    ShadingLevel.MINIMAL: 0.95,
    ShadingLevel.MODERATE: 0.85,
    ShadingLevel.SIGNIFICANT: 0.70,
}

# Upper bound on production loss from shading, in percent.
SHADING_LOSS_PCT: dict[ShadingLevel, int] = {
    ShadingLevel.NONE: 0,
    ShadingLevel.MINIMAL: 5,
    ShadingLevel.MODERATE: 15,
    ShadingLevel.SIGNIFICANT: 30,
}


def temperature_adjusted_voltage(
    voltage: float,
    temp_coefficient_pct: float,
    cell_temp_c: float,
    reference_temp_c: float = STC_CELL_TEMP_C,
) -> float:
    """Shift an STC voltage to another cell temperature.

    ``temp_coefficient_pct`` is in %/°C and normally negative, so cold cells
    raise the voltage and hot cells lower it.
    """
    return voltage * (1 + temp_coefficient_pct * (cell_temp_c - reference_temp_c) / 100)


def optimal_azimuth(latitude: float) -> float:
    """Equator-facing azimuth: south (180°) in the north, north (0°) in the south."""
    return 180.0 if latitude > 0 else 0.0


def azimuth_deviation(azimuth: float, latitude: float) -> float:
    """Shortest angular distance from the optimal azimuth, 0–180°."""
    deviation = abs(azimuth - optimal_azimuth(latitude)) % 360
    return min(deviation, 360 - deviation)


def azimuth_factor(azimuth: float, latitude: float) -> float:
    deviation = azimuth_deviation(azimuth, latitude)
    return max(0.8, 1 - (deviation / 180) * 0.2)


def tilt_factor(tilt: float, latitude: float) -> float:
    deviation = abs(tilt - abs(latitude))
    return max(0.85, 1 - (deviation / 90) * 0.15)


def shading_factor(shading: ShadingLevel | str) -> float:
    return SHADING_FACTORS.get(ShadingLevel(shading), 1.0)


def site_factor(config: SystemConfiguration) -> float:
    """Combined azimuth × tilt × shading production factor for the site."""
    inst = config.installation
    return (
        azimuth_factor(inst.azimuth, inst.location.latitude)
        * tilt_factor(inst.tilt, inst.location.latitude)
        * shading_factor(inst.shading)
    )


def dc_ac_ratio(dc_power_w: float, ac_capacity_w: float) -> float:
    if ac_capacity_w <= 0:
        return float("inf")
    return dc_power_w / ac_capacity_w


def estimated_annual_production(dc_power_w: float, peak_sun_hours: float = 5.0) -> float:
    """Nameplate production estimate in kWh/year."""
    return dc_power_w * peak_sun_hours * 365 / 1000


def inverter_efficiency(config: SystemConfiguration) -> float:
    eff = config.inverter.efficiency
    if eff is not None:
        if eff.cec is not None:
            return eff.cec
        if eff.peak is not None:
            return eff.peak
    return DEFAULT_INVERTER_EFFICIENCY


def system_efficiency(config: SystemConfiguration) -> float:
    """Panel efficiency derated by inverter conversion efficiency (%)."""
    return config.panel.efficiency * (inverter_efficiency(config) / 100)


def expected_production(config: SystemConfiguration, peak_sun_hours: float = 5.0) -> float:
    """Site-adjusted AC production estimate in kWh/year.

    DC power above 1.3× the inverter rating is assumed to be clipped.
    """
    usable_dc = min(config.total_dc_power_w, config.inverter.capacity * 1.3)
    return (
        estimated_annual_production(usable_dc, peak_sun_hours)
        * site_factor(config)
        * inverter_efficiency(config) / 100
    )


def system_cost(config: SystemConfiguration) -> float:
    """Equipment cost estimate in USD (panels + inverter + racking)."""
    panel_cost = config.panel.price_per_watt * config.total_dc_power_w
    inverter_cost = config.inverter.price_per_watt * config.inverter.capacity
    racking_cost = config.racking.price if config.racking is not None else 0.0
    return panel_cost + inverter_cost + racking_cost
