from tokei_badges.api.v1 import badges, internal

__all__ = [
    "badges",
    "internal",
]
