"""
SVG badge rendering.

Each BadgeStyle has one drawing function; STYLE_RENDERERS is the single
dispatch point. Text width is approximated from character counts (Verdana
11px averages ~6.5px per character), which is close enough for badges.
"""

import html
import math
from collections.abc import Callable
from dataclasses import dataclass

from tokei_badges.services.badge.options import (
    ERROR_COLOR,
    BadgeOptions,
    BadgeStyle,
)
from tokei_badges.services.badge.selection import SelectedValue

CHAR_WIDTH = 6.5
PADDING = 10  # Padding on each side of label/value
LOGO_SIZE = 14
LOGO_GAP = 3

# for-the-badge: uppercase, bold, letter-spaced
WIDE_CHAR_WIDTH = 7.5
WIDE_PADDING = 12

FONT_FAMILY = "Verdana,Geneva,DejaVu Sans,sans-serif"
LABEL_BACKGROUND = "#555"


@dataclass(frozen=True)
class Badge:
    """Everything a badge shows, before it is drawn."""

    label: str
    value: int
    text: str
    color: str
    style: BadgeStyle
    logo: str | None = None

    @property
    def title(self) -> str:
        return f"{self.label}: {self.text}"


@dataclass(frozen=True)
class _Layout:
    label_width: int
    value_width: int
    label_x: float  # Center of the label text
    value_x: float  # Center of the value text
    logo_x: int

    @property
    def total_width(self) -> int:
        return self.label_width + self.value_width


def _text_width(text: str, char_width: float = CHAR_WIDTH) -> int:
    return math.ceil(len(text) * char_width)


def _layout(
    label: str,
    text: str,
    has_logo: bool,
    char_width: float = CHAR_WIDTH,
    padding: int = PADDING,
) -> _Layout:
    logo_width = LOGO_SIZE + LOGO_GAP if has_logo else 0
    label_text_width = _text_width(label, char_width)
    label_width = label_text_width + logo_width + padding * 2
    value_width = _text_width(text, char_width) + padding * 2
    return _Layout(
        label_width=label_width,
        value_width=value_width,
        label_x=padding + logo_width + label_text_width / 2,
        value_x=label_width + value_width / 2,
        logo_x=padding - 4 if has_logo else 0,
    )


def _svg_open(width: int, height: int, title: str) -> str:
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" '
        f'width="{width}" height="{height}" role="img" aria-label="{title}">'
        f"<title>{title}</title>"
    )


def _logo(badge: Badge, layout: _Layout, height: int) -> str:
    if not badge.logo:
        return ""
    y = (height - LOGO_SIZE) / 2
    href = html.escape(badge.logo, quote=True)
    return (
        f'<image x="{layout.logo_x}" y="{y:g}" width="{LOGO_SIZE}" height="{LOGO_SIZE}" '
        f'xlink:href="{href}" href="{href}"/>'
    )


def _shadowed_text(x: float, y: int, text: str) -> str:
    return (
        f'<text x="{x:g}" y="{y + 1}" fill="#010101" fill-opacity=".3">{text}</text>'
        f'<text x="{x:g}" y="{y}">{text}</text>'
    )


def _render_flat(badge: Badge, *, square: bool = False) -> str:
    label = html.escape(badge.label)
    text = html.escape(badge.text)
    title = html.escape(badge.title, quote=True)
    layout = _layout(badge.label, badge.text, bool(badge.logo))
    width = layout.total_width

    parts = [_svg_open(width, 20, title)]
    if square:
        parts.append("<g shape-rendering=\"crispEdges\">")
    else:
        parts.append(
            '<linearGradient id="s" x2="0" y2="100%">'
            '<stop offset="0" stop-color="#bbb" stop-opacity=".1"/>'
            '<stop offset="1" stop-opacity=".1"/>'
            "</linearGradient>"
            f'<clipPath id="r"><rect width="{width}" height="20" rx="3" fill="#fff"/></clipPath>'
            '<g clip-path="url(#r)">'
        )
    parts.append(
        f'<rect width="{layout.label_width}" height="20" fill="{LABEL_BACKGROUND}"/>'
        f'<rect x="{layout.label_width}" width="{layout.value_width}" height="20" '
        f'fill="{badge.color}"/>'
    )
    if not square:
        parts.append(f'<rect width="{width}" height="20" fill="url(#s)"/>')
    parts.append("</g>")
    parts.append(
        f'<g fill="#fff" text-anchor="middle" font-family="{FONT_FAMILY}" font-size="11">'
        + _logo(badge, layout, 20)
        + _shadowed_text(layout.label_x, 14, label)
        + _shadowed_text(layout.value_x, 14, text)
        + "</g></svg>"
    )
    return "".join(parts)


def _render_flat_square(badge: Badge) -> str:
    return _render_flat(badge, square=True)


def _render_plastic(badge: Badge) -> str:
    label = html.escape(badge.label)
    text = html.escape(badge.text)
    title = html.escape(badge.title, quote=True)
    layout = _layout(badge.label, badge.text, bool(badge.logo))
    width = layout.total_width

    return (
        _svg_open(width, 18, title)
        + '<linearGradient id="s" x2="0" y2="100%">'
        '<stop offset="0" stop-color="#fff" stop-opacity=".7"/>'
        '<stop offset=".1" stop-color="#aaa" stop-opacity=".1"/>'
        '<stop offset=".9" stop-color="#000" stop-opacity=".3"/>'
        '<stop offset="1" stop-color="#000" stop-opacity=".5"/>'
        "</linearGradient>"
        f'<clipPath id="r"><rect width="{width}" height="18" rx="4" fill="#fff"/></clipPath>'
        '<g clip-path="url(#r)">'
        f'<rect width="{layout.label_width}" height="18" fill="{LABEL_BACKGROUND}"/>'
        f'<rect x="{layout.label_width}" width="{layout.value_width}" height="18" '
        f'fill="{badge.color}"/>'
        f'<rect width="{width}" height="18" fill="url(#s)"/>'
        "</g>"
        f'<g fill="#fff" text-anchor="middle" font-family="{FONT_FAMILY}" font-size="11">'
        + _logo(badge, layout, 18)
        + _shadowed_text(layout.label_x, 13, label)
        + _shadowed_text(layout.value_x, 13, text)
        + "</g></svg>"
    )


def _render_for_the_badge(badge: Badge) -> str:
    label_raw = badge.label.upper()
    text_raw = badge.text.upper()
    label = html.escape(label_raw)
    text = html.escape(text_raw)
    title = html.escape(badge.title, quote=True)
    layout = _layout(label_raw, text_raw, bool(badge.logo), WIDE_CHAR_WIDTH, WIDE_PADDING)
    width = layout.total_width

    return (
        _svg_open(width, 28, title)
        + '<g shape-rendering="crispEdges">'
        f'<rect width="{layout.label_width}" height="28" fill="{LABEL_BACKGROUND}"/>'
        f'<rect x="{layout.label_width}" width="{layout.value_width}" height="28" '
        f'fill="{badge.color}"/>'
        "</g>"
        f'<g fill="#fff" text-anchor="middle" font-family="{FONT_FAMILY}" '
        'font-size="10" font-weight="bold" letter-spacing="1">'
        + _logo(badge, layout, 28)
        + f'<text x="{layout.label_x:g}" y="18">{label}</text>'
        + f'<text x="{layout.value_x:g}" y="18">{text}</text>'
        + "</g></svg>"
    )


def _render_social(badge: Badge) -> str:
    label = html.escape(badge.label)
    text = html.escape(badge.text)
    title = html.escape(badge.title, quote=True)
    layout = _layout(badge.label, badge.text, bool(badge.logo))
    # Count bubble sits 6px to the right of the label, with an arrow
    bubble_x = layout.label_width + 6
    width = bubble_x + layout.value_width

    return (
        _svg_open(width, 20, title)
        + '<linearGradient id="a" x2="0" y2="100%">'
        '<stop offset="0" stop-color="#fcfcfc" stop-opacity="0"/>'
        '<stop offset="1" stop-opacity=".1"/>'
        "</linearGradient>"
        '<g stroke="#d5d5d5">'
        f'<rect x=".5" y=".5" width="{layout.label_width - 1}" height="19" rx="2" fill="#fcfcfc"/>'
        f'<rect x=".5" y=".5" width="{layout.label_width - 1}" height="19" rx="2" fill="url(#a)"/>'
        f'<rect x="{bubble_x + 0.5:g}" y=".5" width="{layout.value_width - 1}" height="19" '
        'rx="2" fill="#fafafa"/>'
        f'<path d="M{bubble_x} 6.5 l-3 3.5 l3 3.5" fill="#fafafa"/>'
        "</g>"
        f'<g fill="#333" text-anchor="middle" font-family="{FONT_FAMILY}" font-size="11" '
        'font-weight="bold">'
        + _logo(badge, layout, 20)
        + f'<text x="{layout.label_x:g}" y="15" fill="#fff">{label}</text>'
        + f'<text x="{layout.label_x:g}" y="14">{label}</text>'
        + f'<text x="{bubble_x + layout.value_width / 2:g}" y="14">{text}</text>'
        + "</g></svg>"
    )


STYLE_RENDERERS: dict[BadgeStyle, Callable[[Badge], str]] = {
    BadgeStyle.FLAT: _render_flat,
    BadgeStyle.FLAT_SQUARE: _render_flat_square,
    BadgeStyle.PLASTIC: _render_plastic,
    BadgeStyle.FOR_THE_BADGE: _render_for_the_badge,
    BadgeStyle.SOCIAL: _render_social,
}


def build_badge(selected: SelectedValue, options: BadgeOptions) -> Badge:
    """Combine the selected value with the styling options."""
    return Badge(
        label=options.label or selected.label,
        value=selected.value,
        text=selected.text,
        color=options.color,
        style=options.style,
        logo=options.logo,
    )


def draw(badge: Badge) -> bytes:
    return STYLE_RENDERERS[badge.style](badge).encode()


def render(selected: SelectedValue, options: BadgeOptions) -> bytes:
    """Render the SVG document for a selected value."""
    return draw(build_badge(selected, options))


def render_error(message: str, style: BadgeStyle = BadgeStyle.FLAT) -> bytes:
    """Red "error" badge shown instead of a broken image."""
    return draw(Badge(label="error", value=0, text=message, color=ERROR_COLOR, style=style))
