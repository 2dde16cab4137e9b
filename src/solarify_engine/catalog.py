"""Read-only equipment catalog lookups.

The catalog is an external collaborator; the engine only needs get-by-id and
list access. ``InMemoryCatalog`` backs tests and the YAML-file deployment.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml
from pydantic import ValidationError as PydanticValidationError

from solarify_engine.compatibility.models import Inverter, Panel, RackingSystem
from solarify_engine.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@runtime_checkable
class EquipmentCatalog(Protocol):
    """Protocol for catalog backends."""

    def get_panel(self, panel_id: str) -> Panel:
        ...

    def get_inverter(self, inverter_id: str) -> Inverter:
        ...

    def get_racking(self, racking_id: str) -> RackingSystem:
        ...

    def list_panels(self) -> list[Panel]:
        ...

    def list_inverters(self) -> list[Inverter]:
        ...

    def list_racking(self) -> list[RackingSystem]:
        ...


class InMemoryCatalog:
    """Catalog held in dictionaries keyed by equipment id."""

    def __init__(
        self,
        panels: list[Panel] | None = None,
        inverters: list[Inverter] | None = None,
        racking: list[RackingSystem] | None = None,
    ) -> None:
        self._panels = {p.id: p for p in panels or []}
        self._inverters = {i.id: i for i in inverters or []}
        self._racking = {r.id: r for r in racking or []}

    def get_panel(self, panel_id: str) -> Panel:
        try:
            return self._panels[panel_id]
        except KeyError:
            raise NotFoundError(f"Unknown panel: {panel_id}") from None

    def get_inverter(self, inverter_id: str) -> Inverter:
        try:
            return self._inverters[inverter_id]
        except KeyError:
            raise NotFoundError(f"Unknown inverter: {inverter_id}") from None

    def get_racking(self, racking_id: str) -> RackingSystem:
        try:
            return self._racking[racking_id]
        except KeyError:
            raise NotFoundError(f"Unknown racking system: {racking_id}") from None

    def list_panels(self) -> list[Panel]:
        return sorted(self._panels.values(), key=lambda p: p.id)

    def list_inverters(self) -> list[Inverter]:
        return sorted(self._inverters.values(), key=lambda i: i.id)

    def list_racking(self) -> list[RackingSystem]:
        return sorted(self._racking.values(), key=lambda r: r.id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryCatalog:
        try:
            return cls(
                panels=[Panel.model_validate(p) for p in data.get("panels") or []],
                inverters=[Inverter.model_validate(i) for i in data.get("inverters") or []],
                racking=[RackingSystem.model_validate(r) for r in data.get("racking") or []],
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, message="Invalid equipment catalog") from exc


def load_catalog(path: str | Path) -> InMemoryCatalog:
    """Load a catalog from a YAML file with panels/inverters/racking lists."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationError.single(str(path), "catalog file must contain a mapping")
    catalog = InMemoryCatalog.from_dict(data)
    logger.info(
        "Equipment catalog loaded from %s (%d panels, %d inverters, %d racking)",
        path, len(catalog.list_panels()), len(catalog.list_inverters()),
        len(catalog.list_racking()),
    )
    return catalog
