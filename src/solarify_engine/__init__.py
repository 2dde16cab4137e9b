"""Solarify Engine: equipment compatibility and performance analytics."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("solarify-engine")
except Exception:
    __version__ = "dev"
