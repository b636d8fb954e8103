"""Statistics store tables: one aggregate row per revision, one row per language."""

from sqlalchemy import BigInteger, Column, String
from sqlmodel import Field, SQLModel


class RepoStats(SQLModel, table=True):
    """
    Aggregate line counts for one repository revision.

    Keyed by the commit hash alone: a revision denotes a byte-identical
    source tree, so rows are written once and never updated.
    """

    __tablename__ = "repo"

    hash: str = Field(sa_column=Column(String, primary_key=True, nullable=False))
    lines: int = Field(sa_type=BigInteger, nullable=False)
    files: int = Field(sa_type=BigInteger, nullable=False)
    code: int = Field(sa_type=BigInteger, nullable=False)
    blanks: int = Field(sa_type=BigInteger, nullable=False)
    comments: int = Field(sa_type=BigInteger, nullable=False)


class LanguageStatsRow(SQLModel, table=True):
    """
    Per-language line counts for one revision.

    The surrogate id only satisfies the ORM. There is no unique constraint
    on (hash, name): rows are only inserted by the writer that created the
    matching repo row.
    """

    __tablename__ = "stats"

    id: int | None = Field(
        default=None,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=True),
    )
    hash: str = Field(sa_type=String, nullable=False, index=True)
    name: str = Field(sa_type=String, nullable=False)
    lines: int = Field(sa_type=BigInteger, nullable=False)
    code: int = Field(sa_type=BigInteger, nullable=False)
    blanks: int = Field(sa_type=BigInteger, nullable=False)
    comments: int = Field(sa_type=BigInteger, nullable=False)
