"""Configuration package."""

from tokei_badges.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
