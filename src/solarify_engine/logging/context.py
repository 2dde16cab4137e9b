"""Task-local log context: equipment ids during ingestion, request ids in the API."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

REQUEST_KEYS = ("request_id", "method", "path")


def bind_context(**kwargs: object) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


@contextmanager
def bound_context(**kwargs: object) -> Iterator[None]:
    """Bind keys for the duration of a block, restoring prior values after."""
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


def bind_request(method: str, path: str, request_id: str | None = None) -> str:
    """Start a fresh context for one API request and return its id."""
    clear_context()
    request_id = request_id or uuid.uuid4().hex[:12]
    bind_context(request_id=request_id, method=method, path=path)
    return request_id


def unbind_request() -> None:
    unbind_context(*REQUEST_KEYS)
