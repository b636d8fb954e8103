"""Pick the value a badge displays from a cache entry."""

from dataclasses import dataclass

from tokei_badges.core.exceptions import InvalidConfiguration, RankingOutOfRange
from tokei_badges.services.badge.options import BadgeOptions, Category
from tokei_badges.services.types import CacheEntry, LanguageStats

BILLION = 1_000_000_000
MILLION = 1_000_000
THOUSAND = 1_000


@dataclass(frozen=True)
class SelectedValue:
    """What goes on the right-hand side of a badge."""

    label: str  # Default label; options.label overrides it
    value: int  # Statistic value (for rankings: the language's value)
    text: str  # Rendered text


def format_count(amount: int) -> str:
    """Abbreviate large counts: 1234 -> 1.2K, 5_600_000 -> 5.6M."""
    if amount >= BILLION:
        return f"{amount / BILLION:.1f}B"
    if amount >= MILLION:
        return f"{amount / MILLION:.1f}M"
    if amount >= THOUSAND:
        return f"{amount / THOUSAND:.1f}K"
    return str(amount)


def _filter_languages(
    languages: tuple[LanguageStats, ...] | list[LanguageStats],
    names: tuple[str, ...],
) -> list[LanguageStats]:
    if not names:
        return list(languages)
    wanted = {name.lower() for name in names}
    return [language for language in languages if language.name.lower() in wanted]


def rank_languages(
    languages: tuple[LanguageStats, ...] | list[LanguageStats],
    category: Category,
    ranking: int,
) -> LanguageStats:
    """
    The ``ranking``-th language by ``category``, 1-based.

    Sorted descending by the category value, ties by name ascending.

    Raises:
        InvalidConfiguration: category has no per-language value (files)
        RankingOutOfRange: fewer languages than ``ranking``
    """
    if category is Category.FILES:
        raise InvalidConfiguration("Languages cannot be ranked by files")
    if ranking < 1:
        raise InvalidConfiguration(f"Ranking must be positive, got {ranking}")
    ordered = sorted(languages, key=lambda lang: (-getattr(lang, category.value), lang.name))
    if ranking > len(ordered):
        raise RankingOutOfRange(ranking, len(ordered))
    return ordered[ranking - 1]


def select_value(entry: CacheEntry, options: BadgeOptions) -> SelectedValue:
    """
    Resolve the statistic or ranked language requested by ``options``.

    Raises:
        InvalidConfiguration: files combined with a language filter or ranking
        RankingOutOfRange: ranking beyond the detected languages
    """
    category = options.category

    if options.ranking is not None:
        candidates = _filter_languages(entry.languages, options.languages)
        language = rank_languages(candidates, category, options.ranking)
        label = "Top language" if options.ranking == 1 else f"#{options.ranking} language"
        return SelectedValue(label, getattr(language, category.value), language.name)

    if options.languages:
        if category is Category.FILES:
            raise InvalidConfiguration("Files cannot be filtered by language")
        matching = _filter_languages(entry.languages, options.languages)
        value = sum(getattr(language, category.value) for language in matching)
    else:
        value = getattr(entry.aggregate, category.value)

    return SelectedValue(category.label, value, format_count(value))
