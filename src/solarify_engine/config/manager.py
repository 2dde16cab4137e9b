"""Configuration loading: YAML defaults, user overrides, then environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from solarify_engine.config.schema import AppConfig
from solarify_engine.errors import FieldError, ValidationError

logger = logging.getLogger(__name__)

# SOLARIFY_DB__PATH=/data/engine.db sets db.path; values are parsed as YAML scalars.
ENV_PREFIX = "SOLARIFY_"
ENV_NESTING = "__"


class ConfigManager:
    """Builds the engine configuration from layered sources.

    Later layers win: ``config.defaults.yaml``, then ``config.yaml``, then
    ``SOLARIFY_<SECTION>__<KEY>`` environment variables.
    """

    def __init__(
        self,
        defaults_path: Path | None = None,
        user_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._defaults_path = defaults_path or Path("config.defaults.yaml")
        self._user_path = user_path or Path("config.yaml")
        self._environ = os.environ if environ is None else environ
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            raise RuntimeError("Config not loaded. Call load() first.")
        return self._config

    def load(self) -> AppConfig:
        """Merge every layer and validate. Raises ValidationError naming bad keys."""
        merged = self._load_yaml(self._defaults_path)
        if self._user_path.exists():
            merged = self._deep_merge(merged, self._load_yaml(self._user_path))
        env = self._env_overrides()
        if env:
            logger.info("Applying %d environment overrides", len(env))
            for path in env:
                merged = self._deep_merge(merged, _nest(path, env[path]))
        try:
            self._config = AppConfig.model_validate(merged)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, message="Invalid configuration") from exc
        logger.info(
            "Configuration loaded (db=%s, benchmarks=%d, catalog=%s)",
            self._config.db.path,
            len(self._config.benchmarks),
            self._config.catalog.path or "none",
        )
        return self._config

    def _env_overrides(self) -> dict[tuple[str, ...], Any]:
        overrides: dict[tuple[str, ...], Any] = {}
        for name in sorted(self._environ):
            if not name.startswith(ENV_PREFIX):
                continue
            path = tuple(p.lower() for p in name[len(ENV_PREFIX):].split(ENV_NESTING) if p)
            if path:
                overrides[path] = yaml.safe_load(self._environ[name])
        return overrides

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValidationError(
                [FieldError(path.name, str(exc))], message="Unreadable configuration file",
            ) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError.single(path.name, "top level must be a mapping")
        return data

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge override into base, returning a new dict."""
        result = dict(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def _nest(path: tuple[str, ...], value: Any) -> dict[str, Any]:
    for key in reversed(path):
        value = {key: value}
    return value
