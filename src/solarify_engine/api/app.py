"""FastAPI application factory for the equipment engine."""

from __future__ import annotations

import logging

import aiosqlite
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from solarify_engine import __version__
from solarify_engine.config.schema import AppConfig
from solarify_engine.errors import (
    EngineError,
    FieldError,
    InsufficientDataError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from solarify_engine.logging.context import bind_request, unbind_request
from solarify_engine.service import EquipmentService

logger = logging.getLogger(__name__)


def _error(status: int, error: str, details: object | None = None) -> JSONResponse:
    body: dict[str, object] = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status)


def create_app(
    config: AppConfig,
    service: EquipmentService,
    db: aiosqlite.Connection | None = None,
) -> FastAPI:
    """Create the API application around an already-wired service."""
    app = FastAPI(
        title="Solarify Equipment Engine",
        description="Equipment compatibility and performance analytics",
        version=__version__,
    )

    @app.middleware("http")
    async def request_log_context(request: Request, call_next):
        request_id = bind_request(
            request.method, request.url.path, request.headers.get("x-request-id"),
        )
        try:
            response = await call_next(request)
        finally:
            unbind_request()
        response.headers["X-Request-ID"] = request_id
        return response

    app.state.config = config
    app.state.service = service
    app.state.db = db

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, exc.message, [e.to_dict() for e in exc.errors])

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            FieldError(".".join(str(p) for p in err["loc"]), err["msg"]).to_dict()
            for err in exc.errors()
        ]
        return _error(400, "Invalid request data", details)

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(InsufficientDataError)
    async def insufficient_data(request: Request, exc: InsufficientDataError) -> JSONResponse:
        return _error(422, str(exc), {
            "equipmentId": exc.equipment_id, "found": exc.found, "required": exc.required,
        })

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(EngineError)
    async def engine_error(request: Request, exc: EngineError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

    from solarify_engine.api.routes import router as api_router

    app.include_router(api_router, prefix="/api")
    return app
