"""Structured logging for the engine."""

from solarify_engine.logging.context import (
    bind_context,
    bind_request,
    bound_context,
    clear_context,
    unbind_context,
    unbind_request,
)
from solarify_engine.logging.structured import setup_logging

__all__ = [
    "bind_context",
    "bind_request",
    "bound_context",
    "clear_context",
    "setup_logging",
    "unbind_context",
    "unbind_request",
]
