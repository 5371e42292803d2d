"""Configuration package."""

from commitsync.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
