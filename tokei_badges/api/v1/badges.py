"""
Badge endpoints.

Badges are embedded as images in third-party documents, so every failure
is rendered as an error badge with status 200 rather than an HTTP error.
"""

import hashlib
import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from tokei_badges.api.deps import get_coordinator
from tokei_badges.config import settings
from tokei_badges.core.exceptions import BadgeError
from tokei_badges.services.badge import BadgeOptions, BadgeStyle, render, render_error, select_value
from tokei_badges.services.badge.options import parse_style
from tokei_badges.services.coordinator import ComputeCoordinator
from tokei_badges.services.types import RepositoryIdentity, StatsSource

router = APIRouter(tags=["badges"])
logger = logging.getLogger(__name__)

SVG_MEDIA_TYPE = "image/svg+xml"
TOKEI_URL = "https://github.com/XAMPPRocky/tokei"


def _strip_suffix(name: str) -> str:
    for suffix in (".svg", ".git"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return name


def _etag(revision: str, request: Request) -> str:
    """Entity tag for a badge: the revision plus the options that shaped it."""
    query = sorted(request.query_params.multi_items())
    digest = hashlib.md5(f"{revision}:{query}".encode()).hexdigest()
    return f'"{digest}"'


def _etag_matches(request: Request, etag: str) -> bool:
    header = request.headers.get("if-none-match")
    if not header:
        return False
    candidates = {tag.strip().removeprefix("W/") for tag in header.split(",")}
    return etag in candidates or "*" in candidates


def _error_response(error: BadgeError, style: str | None) -> Response:
    try:
        badge_style = parse_style(style)
    except BadgeError:
        badge_style = BadgeStyle.FLAT
    return Response(
        content=render_error(error.badge_message, badge_style),
        media_type=SVG_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/")
async def index() -> RedirectResponse:
    """Point visitors at the counting engine's project page."""
    return RedirectResponse(TOKEI_URL, status_code=308)


@router.get("/b1/{host}/{namespace}/{name}")
async def get_badge(
    request: Request,
    host: str,
    namespace: str,
    name: str,
    category: str | None = Query(None),
    type: str | None = Query(None, description="Comma-separated language filter"),
    label: str | None = Query(None),
    style: str | None = Query(None),
    color: str | None = Query(None),
    logo: str | None = Query(None),
    ranking: str | None = Query(None),
    coordinator: ComputeCoordinator = Depends(get_coordinator),
) -> Response:
    """
    Render a line-count badge for a repository.

    Options are validated before any work is done, so an invalid badge URL
    never triggers a fetch.
    """
    identity = RepositoryIdentity(host=host, namespace=namespace, name=_strip_suffix(name))

    try:
        options = BadgeOptions.parse(
            category=category,
            type=type,
            label=label,
            style=style,
            color=color,
            logo=logo,
            ranking=ranking,
        )
        result = await coordinator.get_stats(identity)
        selected = select_value(result.entry, options)
    except BadgeError as e:
        logger.info(f"Badge for {identity} failed: {e.message}")
        return _error_response(e, style)

    etag = _etag(result.revision, request)
    if result.source is StatsSource.STALE:
        cache_control = "no-cache"
    else:
        cache_control = f"public, max-age={settings.badge_max_age}"
    headers = {"ETag": etag, "Cache-Control": cache_control}

    if _etag_matches(request, etag):
        return Response(status_code=304, headers=headers)

    return Response(content=render(selected, options), media_type=SVG_MEDIA_TYPE, headers=headers)
