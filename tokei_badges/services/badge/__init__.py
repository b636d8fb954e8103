"""
Badge package.

Module structure:
- options.py: query option parsing (category, style, color, logo, ranking)
- selection.py: statistic / ranked language selection and number formatting
- renderer.py: one SVG drawing function per style
"""

from tokei_badges.services.badge.options import BadgeOptions, BadgeStyle, Category
from tokei_badges.services.badge.renderer import Badge, build_badge, render, render_error
from tokei_badges.services.badge.selection import (
    SelectedValue,
    format_count,
    rank_languages,
    select_value,
)

__all__ = [
    "Badge",
    "BadgeOptions",
    "BadgeStyle",
    "Category",
    "SelectedValue",
    "build_badge",
    "format_count",
    "rank_languages",
    "render",
    "render_error",
    "select_value",
]
