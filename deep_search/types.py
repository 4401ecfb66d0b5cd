"""Core data types shared by the matcher, cache and workflow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Stable file identity (absolute POSIX path for the local file service).
FileId = str


class SearchMode(str, Enum):
    """How the query string is interpreted."""

    TEXT = "text"
    REGEX = "regex"


@dataclass(frozen=True)
class ScanParams:
    """Non-query parameters a cache node was scanned under.

    Two searches can share cached scans only when these are equal.
    """

    match_case: bool = False
    whole_word: bool = False
    include: str | None = None
    exclude: str | None = None
    search_mode: SearchMode = SearchMode.TEXT


@dataclass(frozen=True)
class SearchParams:
    """Full parameter set of one search request.

    Attributes:
        query: Search text or regular expression. In regex mode a trailing
            ``$N`` selects capture group N as the reported span.
        match_case: Case-sensitive matching.
        whole_word: Wrap text queries in word-boundary assertions.
        include: Comma-separated include globs (None = everything).
        exclude: Comma-separated exclude globs.
        search_mode: Text or regex interpretation of ``query``.
        search_in_results: Refinement depth; > 0 searches within the
            results of the previous global search instead of the workspace.
    """

    query: str
    match_case: bool = False
    whole_word: bool = False
    include: str | None = None
    exclude: str | None = None
    search_mode: SearchMode = SearchMode.TEXT
    search_in_results: int = 0

    @property
    def scan_params(self) -> ScanParams:
        return ScanParams(
            match_case=self.match_case,
            whole_word=self.whole_word,
            include=self.include,
            exclude=self.exclude,
            search_mode=self.search_mode,
        )

    @property
    def is_refinement(self) -> bool:
        return self.search_in_results > 0

    def invalidates_offsets(self, other: "SearchParams | None") -> bool:
        """Whether switching from ``other`` makes every cached match stale."""
        if other is None:
            return False
        return (
            self.match_case != other.match_case
            or self.whole_word != other.whole_word
            or self.search_mode != other.search_mode
        )


@dataclass(frozen=True)
class Match:
    """One located occurrence.

    Offsets index into the file's source text. Lines are 1-based and
    columns 0-based.
    """

    start: int
    end: int
    text: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "loc": {
                "start": {"line": self.start_line, "column": self.start_column},
                "end": {"line": self.end_line, "column": self.end_column},
            },
        }


@dataclass
class FileMatchSet:
    """Per-file scan outcome.

    The full source is retained so match offsets stay interpretable
    without re-reading the file.
    """

    file_id: FileId
    source: str
    matches: list[Match] = field(default_factory=list)
    error: str | None = None

    @property
    def has_matches(self) -> bool:
        return bool(self.matches)
