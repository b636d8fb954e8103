"""Data types shared by the resolver, counter, store and coordinator."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class RepositoryIdentity:
    """Repository as named by a badge URL: /b1/{host}/{namespace}/{name}."""

    host: str
    namespace: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.namespace}/{self.name}"

    def __str__(self) -> str:
        return f"{self.host}:{self.slug}"


def _check_counts(owner: str, lines: int, code: int, comments: int, blanks: int) -> None:
    if min(lines, code, comments, blanks) < 0:
        raise ValueError(f"{owner}: counts must be non-negative")
    if lines != code + comments + blanks:
        raise ValueError(
            f"{owner}: lines ({lines}) != code + comments + blanks "
            f"({code} + {comments} + {blanks})"
        )


@dataclass(frozen=True)
class LanguageStats:
    """Line counts for one detected language."""

    name: str
    lines: int
    code: int
    comments: int
    blanks: int

    def __post_init__(self) -> None:
        _check_counts(self.name, self.lines, self.code, self.comments, self.blanks)

    @classmethod
    def from_counts(cls, name: str, code: int, comments: int, blanks: int) -> "LanguageStats":
        return cls(name, code + comments + blanks, code, comments, blanks)


@dataclass(frozen=True)
class AggregateStats:
    """Line counts for a whole repository revision."""

    lines: int
    code: int
    comments: int
    blanks: int
    files: int

    def __post_init__(self) -> None:
        _check_counts("aggregate", self.lines, self.code, self.comments, self.blanks)
        if self.files < 0:
            raise ValueError("aggregate: files must be non-negative")

    @classmethod
    def from_counts(cls, code: int, comments: int, blanks: int, files: int) -> "AggregateStats":
        return cls(code + comments + blanks, code, comments, blanks, files)


@dataclass(frozen=True)
class CacheEntry:
    """Everything stored for one revision. Immutable once written."""

    aggregate: AggregateStats
    languages: tuple[LanguageStats, ...] = field(default_factory=tuple)


class StatsSource(str, Enum):
    """Where a coordinator result came from."""

    CACHE = "cache"  # Store hit
    COMPUTED = "computed"  # This request started the computation
    JOINED = "joined"  # Joined a computation started by another request
    STALE = "stale"  # Last known revision served after a resolver timeout


@dataclass(frozen=True)
class StatsResult:
    """Statistics for a repository together with the revision they describe."""

    revision: str
    entry: CacheEntry
    source: StatsSource
