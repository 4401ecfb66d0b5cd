"""Chunked pattern matching that turns file content into located matches.

Content is scanned in fixed windows with a trailing overlap so matches
that straddle a window boundary are still found. Line/column locations
are computed with a forward-only cursor, so locating every match in a
file costs O(len(content)) overall.
"""

import asyncio
import functools
import re
from dataclasses import dataclass

from ..search_logging import LogCategory, get_category_logger
from ..types import Match, SearchMode, SearchParams

logger = get_category_logger(LogCategory.MATCHER)

DEFAULT_CHUNK_SIZE = 512 * 1024
DEFAULT_CHUNK_OVERLAP = 1024
DEFAULT_YIELD_EVERY = 100

# Trailing "$N" on a regex query selects capture group N.
CAPTURE_GROUP_SUFFIX = re.compile(r"\s*\$(\d+)$")


@dataclass(frozen=True)
class CompiledQuery:
    """A compiled matching rule plus the group whose span is reported."""

    pattern: re.Pattern[str]
    group: int = 0


@functools.lru_cache(maxsize=128)
def compile_query(
    query: str,
    match_case: bool = False,
    whole_word: bool = False,
    search_mode: SearchMode = SearchMode.TEXT,
) -> CompiledQuery | None:
    """Build the matching rule for a query.

    Regex mode compiles the query as-is (minus a trailing ``$N`` group
    selector); text mode escapes every metacharacter and optionally wraps
    the result in word boundaries.

    Returns:
        The compiled query, or None when the query is empty, malformed or
        references a capture group the pattern does not define.
    """
    group = 0
    source = query

    if search_mode == SearchMode.REGEX:
        suffix = CAPTURE_GROUP_SUFFIX.search(source)
        if suffix:
            group = int(suffix.group(1))
            source = source[: suffix.start()]

    if not source:
        return None

    if search_mode == SearchMode.REGEX:
        expression = source
    else:
        expression = re.escape(source)
        if whole_word:
            expression = rf"\b{expression}\b"

    flags = 0 if match_case else re.IGNORECASE
    try:
        pattern = re.compile(expression, flags)
    except re.error as e:
        logger.debug(f"Invalid pattern {query!r}: {e}")
        return None

    if group > pattern.groups:
        logger.debug(f"Pattern {query!r} has no capture group {group}")
        return None

    return CompiledQuery(pattern=pattern, group=group)


class _LocationCursor:
    """Forward-only line/column cursor over a source string."""

    def __init__(self, source: str):
        self.source = source
        self.offset = 0
        self.line = 1
        self.column = 0

    def advance(self, target: int) -> None:
        if target < self.offset:
            self.offset, self.line, self.column = 0, 1, 0

        newlines = self.source.count("\n", self.offset, target)
        if newlines:
            self.line += newlines
            last_newline = self.source.rfind("\n", self.offset, target)
            self.column = target - last_newline - 1
        else:
            self.column += target - self.offset
        self.offset = target

    def locate(self, start: int, end: int) -> Match:
        self.advance(start)
        start_line, start_column = self.line, self.column
        self.advance(end)
        return Match(
            start=start,
            end=end,
            text=self.source[start:end],
            start_line=start_line,
            start_column=start_column,
            end_line=self.line,
            end_column=self.column,
        )


class PatternMatcher:
    """Find every match of a query inside one file's text.

    The scan yields to the event loop between windows and every
    ``yield_every`` matches within a window; the cancellation signal is
    checked at each of those points. On abort the matches found so far are
    returned and it is up to the caller to discard or keep them.

    Example:
        >>> matcher = PatternMatcher()
        >>> params = SearchParams(query="hello")
        >>> matches = await matcher.search_in_file("Hello World hello", params)
        >>> [m.text for m in matches]
        ['Hello', 'hello']
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        yield_every: int = DEFAULT_YIELD_EVERY,
    ):
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.yield_every = max(1, yield_every)

    @classmethod
    def from_config(cls, config) -> "PatternMatcher":
        return cls(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            yield_every=config.yield_every,
        )

    async def search_in_file(
        self,
        content: str,
        params: SearchParams,
        signal=None,
    ) -> list[Match]:
        """Return the matches of ``params.query`` in ``content``.

        Binary content (anything containing a NUL character) and invalid
        queries produce no matches rather than errors.
        """
        compiled = compile_query(
            params.query, params.match_case, params.whole_word, params.search_mode
        )
        if compiled is None:
            return []

        if "\0" in content:
            return []

        return await self.find_matches(content, compiled, signal)

    async def find_matches(
        self,
        content: str,
        compiled: CompiledQuery,
        signal=None,
    ) -> list[Match]:
        """Scan ``content`` window by window for ``compiled``.

        Results are in ascending offset order and never overlap.
        """
        matches: list[Match] = []
        length = len(content)
        step = self.chunk_size - self.chunk_overlap
        cursor = _LocationCursor(content)
        last_end = 0
        resume_at = 0
        window_start = 0

        while window_start < length:
            if _aborted(signal):
                return matches
            await asyncio.sleep(0)
            if _aborted(signal):
                return matches

            window_end = min(window_start + self.chunk_size, length)
            is_last = window_end >= length
            # Matches starting in the overlap are picked up by the next window.
            accept_before = length if is_last else window_start + step

            # Resume where the previous match ended, like an unchunked scan.
            scan_from = max(window_start, resume_at)
            found_in_window = 0
            for found in compiled.pattern.finditer(content, scan_from, window_end):
                found_in_window += 1
                if found_in_window % self.yield_every == 0:
                    await asyncio.sleep(0)
                    if _aborted(signal):
                        return matches

                if found.start() >= accept_before:
                    break

                # The window end truncates matches (and lookarounds) that run into
                # the overlap; re-match against the whole content.
                if not is_last and found.end() > accept_before:
                    found = compiled.pattern.match(content, found.start())
                    if found is None:
                        continue

                resume_at = found.end()
                start, end = found.span(compiled.group)
                if start < 0 or start == end:
                    continue
                # Covers identical start/end duplicates from the overlap.
                if start < last_end:
                    continue

                matches.append(cursor.locate(start, end))
                last_end = end

            if is_last:
                break
            window_start += step

        return matches


def _aborted(signal) -> bool:
    return signal is not None and signal.aborted
