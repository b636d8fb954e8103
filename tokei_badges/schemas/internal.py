"""Response models for the internal endpoints."""

from typing import Any

from pydantic import BaseModel


class PurgeResponse(BaseModel):
    """Result of purging one cached revision."""

    revision: str
    purged: bool


class CoordinatorStatus(BaseModel):
    """Coordinator counters and in-flight computations."""

    cache: dict[str, int]
    compute: dict[str, int]
    in_flight: dict[str, Any]
