"""Configuration management for the engine."""

from solarify_engine.config.schema import AppConfig
from solarify_engine.config.manager import ConfigManager

__all__ = ["AppConfig", "ConfigManager"]
