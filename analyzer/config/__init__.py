"""Configuration package."""

from analyzer.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
