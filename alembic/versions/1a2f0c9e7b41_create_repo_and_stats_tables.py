"""create_repo_and_stats_tables

Revision ID: 1a2f0c9e7b41
Revises:
Create Date: 2026-10-19 10:12:31.418203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "1a2f0c9e7b41"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Aggregate counts, one row per revision
    op.create_table(
        "repo",
        sa.Column(
            "hash",
            sa.String(),
            nullable=False,
            comment="Commit hash the counts were computed for",
        ),
        sa.Column("lines", sa.BigInteger(), nullable=False),
        sa.Column("files", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.BigInteger(), nullable=False),
        sa.Column("blanks", sa.BigInteger(), nullable=False),
        sa.Column("comments", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("hash"),
    )

    # 2. Per-language counts, written together with the repo row
    op.create_table(
        "stats",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("hash", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("lines", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.BigInteger(), nullable=False),
        sa.Column("blanks", sa.BigInteger(), nullable=False),
        sa.Column("comments", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stats_hash", "stats", ["hash"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_stats_hash", table_name="stats")
    op.drop_table("stats")
    op.drop_table("repo")
