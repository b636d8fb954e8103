from tokei_badges.models.repo_stats import LanguageStatsRow, RepoStats

__all__ = [
    "LanguageStatsRow",
    "RepoStats",
]
