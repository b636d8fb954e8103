# Services package

from tokei_badges.services.coordinator import ComputeCoordinator
from tokei_badges.services.counter import CountingInvoker
from tokei_badges.services.fetcher import SourceFetcher
from tokei_badges.services.resolver import RevisionResolver
from tokei_badges.services.stats_store import StatisticsStore

__all__ = [
    "ComputeCoordinator",
    "CountingInvoker",
    "RevisionResolver",
    "SourceFetcher",
    "StatisticsStore",
]
