"""Internal endpoints for operators.

Both require the shared secret in the X-Admin-Secret header.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tokei_badges.api.deps import get_coordinator, verify_admin_secret
from tokei_badges.core.database import get_db
from tokei_badges.domain import repo_stats_ops
from tokei_badges.schemas import CoordinatorStatus, PurgeResponse
from tokei_badges.services.coordinator import ComputeCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get(
    "/status",
    response_model=CoordinatorStatus,
    dependencies=[Depends(verify_admin_secret)],
)
async def get_status(
    coordinator: ComputeCoordinator = Depends(get_coordinator),
) -> CoordinatorStatus:
    """Coordinator counters and the computations currently in flight."""
    return CoordinatorStatus(**coordinator.snapshot())


@router.delete(
    "/cache/{revision}",
    response_model=PurgeResponse,
    dependencies=[Depends(verify_admin_secret)],
)
async def purge_revision(
    revision: str,
    db: AsyncSession = Depends(get_db),
) -> PurgeResponse:
    """
    Delete the stored statistics for one revision.

    The next badge request for that revision recomputes it, which is how
    results counted by an older engine version are refreshed.
    """
    purged = await repo_stats_ops.delete_by_hash(db, revision)
    await db.commit()
    logger.info(f"Purge of {revision} requested: {'removed' if purged else 'not cached'}")
    return PurgeResponse(revision=revision, purged=purged)
