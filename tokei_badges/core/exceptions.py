"""Typed failures surfaced to the badge endpoint.

Every failure carries a short ``badge_message`` so the endpoint can render
it as an error badge instead of returning an HTTP error page.
"""


class BadgeError(Exception):
    """Base class for all failures that end up as an error badge."""

    badge_message = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ResolutionError(BadgeError):
    """Repository identity is malformed, unreachable or unknown to its host."""

    badge_message = "repo unavailable"


class RepositoryNotFound(ResolutionError):
    """The hosting provider does not know the repository."""

    badge_message = "repo not found"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Repository not found: {slug}")


class ResolutionTimeout(BadgeError):
    """The hosting provider did not answer within the resolve timeout."""

    badge_message = "host timeout"

    def __init__(self, slug: str, timeout: float):
        self.slug = slug
        self.timeout = timeout
        super().__init__(f"Resolving {slug} timed out after {timeout}s")


class CountingFailed(BadgeError):
    """The counting engine could not produce statistics."""

    badge_message = "count failed"


class FetchFailed(CountingFailed):
    """The source tree for a revision could not be fetched."""

    badge_message = "fetch failed"


class ComputeTimeout(BadgeError):
    """Fetch + count exceeded its budget."""

    badge_message = "timeout"

    def __init__(self, revision: str, stage: str, timeout: float):
        self.revision = revision
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"{stage} for {revision} timed out after {timeout}s")


class Overloaded(BadgeError):
    """Too many computations are already in flight."""

    badge_message = "busy, retry later"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"In-flight computation limit reached ({limit})")


class InvalidConfiguration(BadgeError):
    """Unknown category/style or malformed badge options."""

    badge_message = "invalid options"


class RankingOutOfRange(BadgeError):
    """Requested ranking exceeds the number of detected languages."""

    badge_message = "no such language"

    def __init__(self, ranking: int, available: int):
        self.ranking = ranking
        self.available = available
        super().__init__(f"Ranking {ranking} requested but only {available} languages present")


class StoreUnavailable(BadgeError):
    """The statistics store could not be reached."""

    badge_message = "storage unavailable"


class WriteConflict(StoreUnavailable):
    """Writing a cache entry violated a store constraint."""

    badge_message = "storage conflict"
