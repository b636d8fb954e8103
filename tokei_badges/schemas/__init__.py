from tokei_badges.schemas.internal import CoordinatorStatus, PurgeResponse

__all__ = [
    "CoordinatorStatus",
    "PurgeResponse",
]
