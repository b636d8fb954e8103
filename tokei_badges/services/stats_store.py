"""
Statistics store used by the compute coordinator.

Wraps RepoStatsOperations with its own sessions (computations run outside
any request) and translates database failures into StoreUnavailable /
WriteConflict so the coordinator can decide how to degrade.
"""

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tokei_badges.core.exceptions import StoreUnavailable, WriteConflict
from tokei_badges.domain.repo_stats_operations import RepoStatsOperations, repo_stats_ops
from tokei_badges.models.repo_stats import LanguageStatsRow, RepoStats
from tokei_badges.services.types import AggregateStats, CacheEntry, LanguageStats

logger = logging.getLogger(__name__)


def to_cache_entry(repo: RepoStats, rows: list[LanguageStatsRow]) -> CacheEntry:
    """Convert stored rows back into an immutable CacheEntry."""
    return CacheEntry(
        aggregate=AggregateStats(
            lines=repo.lines,
            code=repo.code,
            comments=repo.comments,
            blanks=repo.blanks,
            files=repo.files,
        ),
        languages=tuple(
            LanguageStats(
                name=row.name,
                lines=row.lines,
                code=row.code,
                comments=row.comments,
                blanks=row.blanks,
            )
            for row in rows
        ),
    )


class StatisticsStore:
    """Revision -> CacheEntry mapping backed by the repo/stats tables."""

    def __init__(
        self,
        session_maker: Callable[[], AsyncSession],
        ops: RepoStatsOperations = repo_stats_ops,
    ) -> None:
        self._session_maker = session_maker
        self._ops = ops

    async def get(self, revision: str) -> CacheEntry | None:
        """Return the stored entry for a revision, or None on a miss."""
        try:
            async with self._session_maker() as session:
                found = await self._ops.get_by_hash(session, revision)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Reading {revision} failed: {e}") from e

        if found is None:
            return None
        try:
            return to_cache_entry(*found)
        except ValueError as e:
            # Rows that break the additive invariant are treated like an unreadable store
            raise StoreUnavailable(f"Stored stats for {revision} are inconsistent: {e}") from e

    async def put(self, revision: str, entry: CacheEntry) -> bool:
        """
        Persist an entry. Writing an already-stored revision is a no-op.

        Returns:
            True if the entry was created by this call.

        Raises:
            WriteConflict: a constraint rejected the write
            StoreUnavailable: the database could not be reached
        """
        try:
            async with self._session_maker() as session:
                try:
                    created = await self._ops.insert(session, revision, entry)
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except IntegrityError as e:
            raise WriteConflict(f"Writing {revision} conflicted: {e}") from e
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Writing {revision} failed: {e}") from e

        if created:
            logger.debug(f"Stored stats for {revision}")
        else:
            logger.debug(f"Stats for {revision} already stored")
        return created
