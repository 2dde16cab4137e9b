"""Structured logging setup using structlog.

Engine modules log through ``logging.getLogger(__name__)``; records are
rendered by a structlog ``ProcessorFormatter`` so context bound with
``solarify_engine.logging.context`` (equipment id, request id) lands in every line.
"""

from __future__ import annotations

import logging
import sys

import structlog

from solarify_engine import __version__

SERVICE_NAME = "solarify-engine"

# Third-party loggers held at a fixed level regardless of the engine level.
QUIET_LOGGERS: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "httpx": logging.WARNING,
}


def add_service_info(
    logger: object, method_name: str, event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_info,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def build_formatter(fmt: str = "json") -> structlog.stdlib.ProcessorFormatter:
    """Formatter for stdlib handlers; "console" renders coloured dev output."""
    if fmt == "console":
        final: list[structlog.types.Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        final = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    # Records from plain logging.getLogger() callers skip the structlog chain,
    # so they get the shared processors here instead.
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
    )


def setup_logging(level: str = "INFO", fmt: str = "json", log_file: str = "") -> None:
    """Configure structured logging for the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Output format - "json" for production, "console" for development.
        log_file: Optional file path for log output. Empty = stdout only.
    """
    structlog.configure(
        processors=[
            *shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = build_formatter(fmt)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
