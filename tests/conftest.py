"""Shared test fixtures for Solarify Engine."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Callable

import aiosqlite
import pytest
import pytest_asyncio

from solarify_engine.alerts.engine import AlertEngine
from solarify_engine.alerts.store import InMemoryAlertStore
from solarify_engine.config.manager import ConfigManager
from solarify_engine.config.schema import AppConfig
from solarify_engine.db.engine import init_db
from solarify_engine.db.repository import Repository
from solarify_engine.telemetry.store import InMemorySampleStore

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)

BASE_SYSTEM: dict[str, Any] = {
    "panels": [{
        "id": "PNL-400",
        "manufacturer": "SunWorks",
        "model": "SW-400",
        "wattage": 400,
        "efficiency": 21.0,
        "stc": {"voltage": 40, "current": 10},
        "temperatureCoefficient": -0.35,
        "dimensions": {"length": 1700, "width": 1000, "thickness": 35},
        "weight": 20,
        "certifications": ["IEC 61215", "IEC 61730", "UL 1703"],
        "pricePerWatt": 0.5,
        "warrantyYears": 25,
    }],
    "inverter": {
        "id": "INV-4K",
        "manufacturer": "GridTie",
        "model": "GT-4000",
        "type": "string",
        "capacity": 4000,
        "dcInput": {"voltageRange": {"min": 200, "max": 600}, "maxCurrent": 15},
        "mpptChannels": 2,
        "efficiency": {"peak": 98.0, "cec": 97.5},
        "certifications": ["UL 1741", "IEEE 1547"],
        "pricePerWatt": 0.3,
    },
    "racking": {
        "id": "RCK-STD",
        "manufacturer": "RoofRail",
        "model": "RR-100",
        "compatibility": {
            "panelSizes": {
                "min": {"length": 1500, "width": 900},
                "max": {"length": 2100, "width": 1100},
            },
            "panelWeight": {"min": 15, "max": 30},
            "roofTypes": ["composition_shingle", "metal"],
            "roofPitch": {"min": 10, "max": 45},
        },
        "loadRatings": {"windUplift": 2400, "snowLoad": 5400},
        "corrosionResistance": "standard",
    },
    "electrical": [{"id": "RSD-1", "category": "rapid_shutdown", "rapidShutdown": True}],
    "layout": {
        "panelsPerString": 12,
        "stringsPerInverter": 1,
        "totalPanels": 12,
        "systemVoltage": 480,
        "totalCapacity": 4.8,
    },
    "installation": {
        "roofType": "composition_shingle",
        "roofPitch": 25,
        "azimuth": 180,
        "tilt": 35,
        "shading": "none",
        "location": {
            "latitude": 35.0,
            "longitude": -110.0,
            "climate": "temperate",
            "windZone": 2,
            "snowLoad": 0,
        },
    },
}

DEFAULT_THRESHOLDS: dict[str, Any] = {
    "minEfficiency": 85,
    "minPerformanceRatio": 75,
    "maxTemperature": 80,
    "minAvailability": 90,
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


@pytest.fixture
def now() -> datetime:
    """A fixed analysis time shared by analytics tests."""
    return NOW


@pytest.fixture
def config() -> AppConfig:
    """Provide a default test configuration."""
    return AppConfig()


@pytest.fixture
def config_manager(tmp_path: Path) -> ConfigManager:
    """Provide a config manager with test paths."""
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("db:\n  path: ':memory:'\n")
    user = tmp_path / "config.yaml"
    mgr = ConfigManager(defaults_path=defaults, user_path=user)
    mgr.load()
    return mgr


@pytest.fixture
def make_system() -> Callable[..., dict[str, Any]]:
    """Build a compatible system dict; keyword sections are deep-merged in.

    ``panel=`` merges into the single panel entry.
    """

    def _make(panel: dict[str, Any] | None = None, **sections: Any) -> dict[str, Any]:
        system = _merge(BASE_SYSTEM, sections)
        if panel:
            system["panels"] = [_merge(system["panels"][0], panel)]
        return system

    return _make


@pytest.fixture
def make_sample() -> Callable[..., dict[str, Any]]:
    """Build a raw performance sample dict in wire format."""

    def _make(
        equipment_id: str = "INV-001",
        timestamp: datetime = NOW,
        efficiency: float = 95.0,
        performance_ratio: float = 85.0,
        availability: float = 99.0,
        temperature: float = 45.0,
        status: str = "normal",
        energy: float = 1.0,
        power: float = 3000.0,
        quality: float = 95.0,
    ) -> dict[str, Any]:
        return {
            "equipmentId": equipment_id,
            "equipmentType": "inverter",
            "timestamp": timestamp.isoformat(),
            "realtime": {
                "power": power,
                "voltage": 400.0,
                "current": power / 400.0,
                "temperature": temperature,
                "efficiency": efficiency,
                "status": status,
            },
            "environmental": {
                "irradiance": 850.0,
                "ambientTemperature": 25.0,
                "windSpeed": 3.0,
                "humidity": 40.0,
            },
            "calculated": {
                "energyProduced": energy,
                "performanceRatio": performance_ratio,
                "capacityUtilization": 75.0,
                "availability": availability,
            },
            "quality": {
                "dataCompleteness": quality,
                "measurementAccuracy": quality,
                "signalQuality": quality,
            },
        }

    return _make


@pytest.fixture
def hourly_series(make_sample) -> Callable[..., list[dict[str, Any]]]:
    """``count`` hourly samples ending one hour before ``end``, oldest first.

    Keyword arguments may be constants or callables taking the sample index.
    """

    def _make(
        count: int,
        equipment_id: str = "INV-001",
        end: datetime = NOW,
        step: timedelta = timedelta(hours=1),
        **fields: Any,
    ) -> list[dict[str, Any]]:
        samples = []
        for i in range(count):
            values = {k: (v(i) if callable(v) else v) for k, v in fields.items()}
            samples.append(make_sample(
                equipment_id=equipment_id,
                timestamp=end - step * (count - i),
                **values,
            ))
        return samples

    return _make


@pytest.fixture
def sample_store() -> InMemorySampleStore:
    return InMemorySampleStore()


@pytest.fixture
def alert_store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def alert_engine(alert_store: InMemoryAlertStore) -> AlertEngine:
    """Alert engine with a fixed clock and sequential ids."""
    counter = iter(range(1, 10_000))
    return AlertEngine(
        alert_store,
        id_factory=lambda: f"alert-{next(counter)}",
        clock=lambda: NOW,
    )


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """Provide a fresh database for each test."""
    conn = await init_db(tmp_path / "test.db")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def repo(db: aiosqlite.Connection) -> Repository:
    """Provide a repository with a fresh database."""
    return Repository(db)
