"""REST endpoints for compatibility, telemetry, analytics and alerts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Request

from solarify_engine import __version__
from solarify_engine.service import EquipmentService

router = APIRouter()
logger = logging.getLogger(__name__)

# Query parameters passed through to the analytics query unchanged.
ANALYTICS_PARAMS = (
    "equipmentId",
    "timeframe",
    "analysisType",
    "includeAlerts",
    "includeRecommendations",
    "manufacturer",
    "model",
    "equipmentType",
)


def _service(request: Request) -> EquipmentService:
    return request.app.state.service


def _ok(data: Any) -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Compatibility ────────────────────────────────────

@router.post("/equipment/compatibility")
async def check_compatibility(request: Request, payload: Any = Body(...)) -> dict:
    """Analyse a proposed system configuration."""
    return _ok(_service(request).check_compatibility(payload))


# ── Telemetry and analytics ──────────────────────────

@router.post("/equipment/performance")
async def ingest_performance(request: Request, payload: Any = Body(...)) -> dict:
    """Record one performance sample or a batch of samples."""
    return _ok(await _service(request).ingest_telemetry(payload))


@router.get("/equipment/performance")
async def query_performance(request: Request) -> dict:
    """Run an analytics query; ``equipmentIds`` may be repeated or comma-separated."""
    params = request.query_params
    query: dict[str, Any] = {k: params[k] for k in ANALYTICS_PARAMS if k in params}
    ids = [i.strip() for raw in params.getlist("equipmentIds") for i in raw.split(",")]
    if any(ids):
        query["equipmentIds"] = [i for i in ids if i]
    return _ok(await _service(request).query_analytics(query))


# ── Alerts ───────────────────────────────────────────

@router.put("/equipment/alerts")
async def update_alerts(request: Request, payload: Any = Body(...)) -> dict:
    """Acknowledge/resolve an alert or replace a unit's thresholds."""
    return _ok(await _service(request).manage_alert(payload))


@router.get("/equipment/alerts")
async def list_alerts(request: Request, equipmentId: str | None = None) -> dict:
    """List open (active or acknowledged) alerts."""
    return _ok(await _service(request).list_alerts(equipmentId))


# ── Health ───────────────────────────────────────────

@router.get("/health")
async def health(request: Request) -> dict:
    db = request.app.state.db
    database = "not_configured"
    if db is not None:
        try:
            async with db.execute("SELECT 1") as cursor:
                await cursor.fetchone()
            database = "ok"
        except Exception:
            logger.warning("Health check database query failed", exc_info=True)
            database = "unavailable"
    return {
        "status": "ok" if database != "unavailable" else "degraded",
        "version": __version__,
        "database": database,
    }
