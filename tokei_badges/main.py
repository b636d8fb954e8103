import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from tokei_badges.api.router import api_router
from tokei_badges.config import settings
from tokei_badges.core.database import async_session_maker, init_db
from tokei_badges.services import (
    ComputeCoordinator,
    CountingInvoker,
    RevisionResolver,
    SourceFetcher,
    StatisticsStore,
)
from tokei_badges.services.resolver import close_http_client


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    # Badge requests are logged by log_requests below
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def build_coordinator() -> ComputeCoordinator:
    """Wire the coordinator and its collaborators from settings."""
    resolver = RevisionResolver(
        timeout=settings.resolve_timeout,
        github_token=settings.github_token,
        gitlab_token=settings.gitlab_token,
        git_binary=settings.git_binary,
        cache_ttl=settings.revision_cache_ttl,
        cache_size=settings.revision_cache_size,
    )
    fetcher = SourceFetcher(
        git_binary=settings.git_binary,
        timeout=settings.fetch_timeout,
        work_dir=settings.work_dir,
    )
    counter = CountingInvoker(
        tokei_binary=settings.tokei_binary,
        timeout=settings.count_timeout,
        max_concurrent=settings.max_concurrent_counts,
    )
    return ComputeCoordinator(
        resolver,
        StatisticsStore(async_session_maker),
        fetcher,
        counter,
        max_in_flight=settings.max_in_flight,
        compute_timeout=settings.compute_budget,
        serve_stale_on_resolve_timeout=settings.serve_stale_on_resolve_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    setup_logging()
    logger.info("Tokei badge service starting up")
    if settings.debug:
        await init_db()
    app.state.coordinator = build_coordinator()
    yield
    # Shutdown
    await app.state.coordinator.close()
    await close_http_client()
    logger.info("Tokei badge service shutting down")


app = FastAPI(
    title="Tokei Badges",
    description="Lines-of-code badges for public git repositories",
    version="0.1.0",
    lifespan=lifespan,
)

# Trust X-Forwarded-Proto from the reverse proxy so redirects keep HTTPS
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log badge and internal requests, skipping health checks."""
    if request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)

    path = request.url.path
    if response.status_code >= 400 or path.startswith(("/b1/", "/internal/")):
        logger.info(f"{request.method} {path} → {response.status_code}")

    return response


app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
