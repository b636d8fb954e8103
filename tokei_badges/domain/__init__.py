from tokei_badges.domain.repo_stats_operations import repo_stats_ops

__all__ = [
    "repo_stats_ops",
]
