"""Typed errors raised by the engine.

Every failure is scoped to a single request or sample; callers receive one of
these types and translate it into their own transport's error shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError


class EngineError(Exception):
    """Base class for all engine errors."""


@dataclass(frozen=True)
class FieldError:
    """A single invalid input field."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ValidationError(EngineError):
    """Malformed or out-of-range input. Lists every violated field."""

    def __init__(self, errors: list[FieldError], message: str = "Invalid input") -> None:
        self.errors = list(errors)
        detail = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"{message} ({detail})" if detail else message)
        self.message = message

    @classmethod
    def from_pydantic(
        cls, exc: PydanticValidationError, prefix: str = "", message: str = "Invalid input",
    ) -> ValidationError:
        errors = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"])
            if prefix:
                loc = f"{prefix}.{loc}" if loc else prefix
            errors.append(FieldError(field=loc or "(root)", message=err["msg"]))
        return cls(errors, message=message)

    @classmethod
    def single(cls, field: str, message: str) -> ValidationError:
        return cls([FieldError(field, message)], message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "details": [e.to_dict() for e in self.errors],
        }


class NotFoundError(EngineError):
    """Unknown equipment or alert id (or an alert that is already resolved)."""


class InsufficientDataError(EngineError):
    """Too few samples in the requested window to analyse."""

    def __init__(self, equipment_id: str, found: int, required: int) -> None:
        self.equipment_id = equipment_id
        self.found = found
        self.required = required
        super().__init__(
            f"Insufficient data for {equipment_id}: {found} samples, {required} required"
        )


class InvalidTransitionError(EngineError):
    """An alert state transition that the lifecycle does not allow."""
