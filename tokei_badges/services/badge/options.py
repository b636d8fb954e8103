"""Badge options parsed from the badge URL query string."""

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

from tokei_badges.core.exceptions import InvalidConfiguration

DEFAULT_COLOR = "#007ec6"
ERROR_COLOR = "#e05d44"

# shields.io named colors
NAMED_COLORS: dict[str, str] = {
    "brightgreen": "#4c1",
    "green": "#97ca00",
    "yellow": "#dfb317",
    "yellowgreen": "#a4a61d",
    "orange": "#fe7d37",
    "red": "#e05d44",
    "blue": "#007ec6",
    "grey": "#555",
    "gray": "#555",
    "lightgrey": "#9f9f9f",
    "lightgray": "#9f9f9f",
    "success": "#4c1",
    "important": "#fe7d37",
    "critical": "#e05d44",
    "informational": "#007ec6",
    "inactive": "#9f9f9f",
}

HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class Category(str, Enum):
    """Statistic shown on the badge."""

    CODE = "code"
    LINES = "lines"
    COMMENTS = "comments"
    BLANKS = "blanks"
    FILES = "files"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS: dict[Category, str] = {
    Category.CODE: "LoC",
    Category.LINES: "Total lines",
    Category.COMMENTS: "Comments",
    Category.BLANKS: "Blank lines",
    Category.FILES: "Files",
}


class BadgeStyle(str, Enum):
    """Visual style, mirroring the shields.io style names."""

    FLAT = "flat"
    FLAT_SQUARE = "flat-square"
    PLASTIC = "plastic"
    FOR_THE_BADGE = "for-the-badge"
    SOCIAL = "social"


def parse_color(value: str | None) -> str:
    """Named or hex color; anything unrecognised falls back to the default blue."""
    if not value:
        return DEFAULT_COLOR
    value = value.strip().lower()
    if value in NAMED_COLORS:
        return NAMED_COLORS[value]
    match = HEX_COLOR.match(value)
    if match:
        return f"#{match.group(1)}"
    return DEFAULT_COLOR


def parse_style(value: str | None) -> BadgeStyle:
    if not value:
        return BadgeStyle.FLAT
    try:
        return BadgeStyle(value.strip().lower())
    except ValueError:
        raise InvalidConfiguration(f"Unknown style: {value!r}") from None


def parse_category(value: str | None) -> Category:
    if not value:
        return Category.CODE
    try:
        return Category(value.strip().lower())
    except ValueError:
        raise InvalidConfiguration(f"Unknown category: {value!r}") from None


def parse_ranking(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        ranking = int(value)
    except ValueError:
        raise InvalidConfiguration(f"Ranking must be an integer, got {value!r}") from None
    if ranking < 1:
        raise InvalidConfiguration(f"Ranking must be positive, got {ranking}")
    return ranking


def parse_languages(value: str | None) -> tuple[str, ...]:
    """Comma-separated language filter, e.g. "Rust,Python"."""
    if not value:
        return ()
    return tuple(name.strip() for name in value.split(",") if name.strip())


def parse_logo(value: str | None) -> str | None:
    if not value:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidConfiguration("Logo must be an http(s) URL")
    return value


@dataclass(frozen=True)
class BadgeOptions:
    """Validated badge options."""

    category: Category = Category.CODE
    languages: tuple[str, ...] = ()
    label: str | None = None
    style: BadgeStyle = BadgeStyle.FLAT
    color: str = DEFAULT_COLOR
    logo: str | None = None
    ranking: int | None = None

    @classmethod
    def parse(
        cls,
        category: str | None = None,
        type: str | None = None,
        label: str | None = None,
        style: str | None = None,
        color: str | None = None,
        logo: str | None = None,
        ranking: str | None = None,
    ) -> "BadgeOptions":
        """
        Validate raw query values.

        Raises:
            InvalidConfiguration: unknown category/style, bad ranking or logo
        """
        return cls(
            category=parse_category(category),
            languages=parse_languages(type),
            label=label[:100] if label else None,
            style=parse_style(style),
            color=parse_color(color),
            logo=parse_logo(logo),
            ranking=parse_ranking(ranking),
        )
