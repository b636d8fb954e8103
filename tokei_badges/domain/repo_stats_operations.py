"""Domain operations for the repo / stats tables."""

from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tokei_badges.models.repo_stats import LanguageStatsRow, RepoStats

if TYPE_CHECKING:
    from tokei_badges.services.types import CacheEntry


class RepoStatsOperations:
    """
    Operations for the revision-keyed statistics cache.

    Rows are content-addressed by commit hash, so there is no update
    operation: an entry is inserted once and only ever deleted by an
    explicit purge.
    """

    def __init__(self) -> None:
        self.model = RepoStats

    async def get_by_hash(
        self,
        db: AsyncSession,
        revision: str,
    ) -> tuple[RepoStats, list[LanguageStatsRow]] | None:
        """
        Fetch the aggregate row and language rows for a revision.

        Returns:
            (aggregate row, language rows ordered by name), or None on a miss.
        """
        result = await db.execute(select(RepoStats).where(RepoStats.hash == revision))  # type: ignore[arg-type]
        repo = result.scalar_one_or_none()
        if repo is None:
            return None

        statement = (
            select(LanguageStatsRow)
            .where(LanguageStatsRow.hash == revision)  # type: ignore[arg-type]
            .order_by(LanguageStatsRow.name)
        )
        result = await db.execute(statement)
        return repo, list(result.scalars().all())

    async def insert(
        self,
        db: AsyncSession,
        revision: str,
        entry: "CacheEntry",
    ) -> bool:
        """
        Insert an entry, ignoring a revision that is already stored.

        Language rows are only written by the caller whose repo insert won,
        so racing writers in different processes never duplicate them.

        Returns:
            True if this call created the entry, False if it already existed.
        """
        aggregate = entry.aggregate
        stmt = (
            pg_insert(self.model)
            .values(
                hash=revision,
                lines=aggregate.lines,
                files=aggregate.files,
                code=aggregate.code,
                blanks=aggregate.blanks,
                comments=aggregate.comments,
            )
            .on_conflict_do_nothing(index_elements=["hash"])
            .returning(RepoStats.hash)  # type: ignore[arg-type]
        )
        result = await db.execute(stmt)
        if result.scalar_one_or_none() is None:
            return False

        if entry.languages:
            await db.execute(
                insert(LanguageStatsRow).values(
                    [
                        {
                            "hash": revision,
                            "name": language.name,
                            "lines": language.lines,
                            "code": language.code,
                            "blanks": language.blanks,
                            "comments": language.comments,
                        }
                        for language in entry.languages
                    ]
                )
            )

        await db.flush()
        return True

    async def delete_by_hash(self, db: AsyncSession, revision: str) -> bool:
        """Administrative purge of one revision. Returns True if it existed."""
        await db.execute(
            delete(LanguageStatsRow).where(LanguageStatsRow.hash == revision)  # type: ignore[arg-type]
        )
        result = await db.execute(
            delete(RepoStats).where(RepoStats.hash == revision)  # type: ignore[arg-type]
        )
        await db.flush()
        return bool(result.rowcount)  # type: ignore[attr-defined]


repo_stats_ops = RepoStatsOperations()
