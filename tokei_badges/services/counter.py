"""
Counting invoker: runs tokei on a source tree and parses its JSON report.

tokei is a black box here. Its JSON output maps language names to
{"code", "comments", "blanks", "reports", "children"}; a "Total" key holds
the grand total. Embedded languages (e.g. code blocks in Markdown) are
reported under "children" and are folded into their parent language.
"""

import asyncio
import json
import logging
from typing import Any

from tokei_badges.core.exceptions import ComputeTimeout, CountingFailed
from tokei_badges.services.process import CommandFailed, run_command
from tokei_badges.services.types import AggregateStats, CacheEntry, LanguageStats

logger = logging.getLogger(__name__)

TOTAL_KEY = "Total"


def _summarise(stats: dict[str, Any]) -> tuple[int, int, int]:
    """(code, comments, blanks) of a report including its nested blobs."""
    code = int(stats.get("code", 0))
    comments = int(stats.get("comments", 0))
    blanks = int(stats.get("blanks", 0))
    for blob in (stats.get("blobs") or {}).values():
        blob_code, blob_comments, blob_blanks = _summarise(blob)
        code += blob_code
        comments += blob_comments
        blanks += blob_blanks
    return code, comments, blanks


def parse_tokei_output(raw: bytes | str) -> CacheEntry:
    """
    Build a CacheEntry from ``tokei --output json``.

    Raises:
        CountingFailed: output is not a tokei JSON report
    """
    try:
        report = json.loads(raw)
        if not isinstance(report, dict):
            raise TypeError(f"expected an object, got {type(report).__name__}")

        languages: list[LanguageStats] = []
        files = 0
        for name, data in report.items():
            if name == TOTAL_KEY:
                continue
            code = int(data.get("code", 0))
            comments = int(data.get("comments", 0))
            blanks = int(data.get("blanks", 0))
            for child_reports in (data.get("children") or {}).values():
                for child in child_reports:
                    child_code, child_comments, child_blanks = _summarise(child["stats"])
                    code += child_code
                    comments += child_comments
                    blanks += child_blanks
            files += len(data.get("reports") or [])
            languages.append(LanguageStats.from_counts(name, code, comments, blanks))
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        raise CountingFailed(f"Unreadable tokei output: {e}") from e

    languages.sort(key=lambda language: language.name)
    aggregate = AggregateStats.from_counts(
        code=sum(language.code for language in languages),
        comments=sum(language.comments for language in languages),
        blanks=sum(language.blanks for language in languages),
        files=files,
    )
    return CacheEntry(aggregate=aggregate, languages=tuple(languages))


class CountingInvoker:
    """
    Invoke tokei with bounded concurrency.

    The semaphore caps how many tokei processes run at once, independently
    of how many computations are in flight.
    """

    def __init__(
        self,
        tokei_binary: str = "tokei",
        timeout: float = 60.0,
        max_concurrent: int = 4,
    ) -> None:
        self.tokei_binary = tokei_binary
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def count(self, path: str, revision: str = "") -> CacheEntry:
        """
        Count lines under ``path``.

        Raises:
            CountingFailed: tokei is missing, failed or produced garbage
            ComputeTimeout: tokei outlived the count timeout (process killed)
        """
        async with self._semaphore:
            logger.debug(f"Counting {path}")
            try:
                output = await run_command(
                    self.tokei_binary, "--output", "json", path, timeout=self.timeout
                )
            except TimeoutError as e:
                raise ComputeTimeout(revision or path, "count", self.timeout) from e
            except CommandFailed as e:
                raise CountingFailed(f"tokei failed on {revision or path}: {e.stderr}") from e

        return parse_tokei_output(output)
