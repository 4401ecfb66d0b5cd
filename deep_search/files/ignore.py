"""Gitignore-compatible include/exclude matching using the pathspec library.

Query filters arrive as comma-separated glob lists (``"src/**, *.py"``).
Each entry is matched with gitwildmatch semantics relative to the
workspace root, so ``*.py`` matches at any depth and ``build/`` matches a
directory and everything below it.

Example usage:
    matcher = PathFilter(root, exclude_patterns=["*.png", ".git/"])
    matcher.load_gitignore()

    if matcher.is_included("src/app.py", include="src/**"):
        ...
"""

from collections.abc import Iterable
from pathlib import Path

import pathspec

from ..search_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.FILES)


def split_patterns(patterns: str | None) -> list[str]:
    """Split a comma-separated glob list, dropping blanks and comments."""
    if not patterns:
        return []
    return [
        part.strip()
        for part in patterns.split(",")
        if part.strip() and not part.strip().startswith("#")
    ]


def build_spec(patterns: Iterable[str]) -> pathspec.PathSpec | None:
    lines = [p for p in patterns if p]
    if not lines:
        return None
    return pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, lines)


class PathFilter:
    """Decide which workspace files are candidates for a search.

    Supports:
    - Default excludes (VCS folders, binary and media extensions)
    - The workspace root .gitignore
    - Per-query include and exclude glob lists
    """

    def __init__(
        self,
        project_root: Path | str,
        exclude_patterns: Iterable[str] | None = None,
    ):
        self.project_root = Path(project_root).resolve()
        self._base_patterns: list[str] = list(exclude_patterns or [])
        self._base_spec = build_spec(self._base_patterns)

    def load_gitignore(self, ignore_file: Path | str = ".gitignore") -> int:
        """Add patterns from an ignore file to the base excludes.

        Returns:
            Number of patterns loaded.
        """
        ignore_path = Path(ignore_file)
        if not ignore_path.is_absolute():
            ignore_path = self.project_root / ignore_path

        if not ignore_path.exists():
            return 0

        try:
            lines = ignore_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Could not read {ignore_path}: {e}")
            return 0

        loaded = [
            line.strip()
            for line in lines
            if line.strip() and not line.lstrip().startswith("#")
        ]
        self._base_patterns.extend(loaded)
        self._base_spec = build_spec(self._base_patterns)
        return len(loaded)

    def relative(self, path: Path | str) -> str | None:
        """Workspace-relative POSIX path, or None when outside the root."""
        path = Path(path)
        if path.is_absolute():
            try:
                path = path.relative_to(self.project_root)
            except ValueError:
                return None
        return path.as_posix()

    def is_ignored(self, relative_path: str) -> bool:
        """Whether the base excludes reject a workspace-relative path."""
        return self._base_spec is not None and self._base_spec.match_file(
            relative_path
        )

    def is_included(
        self,
        path: Path | str,
        include: str | None = None,
        exclude: str | None = None,
    ) -> bool:
        """Whether ``path`` passes the base excludes and the query filters."""
        relative_path = self.relative(path)
        if relative_path is None:
            return False
        return self.compile(include, exclude).accepts(relative_path)

    def compile(
        self, include: str | None, exclude: str | None
    ) -> "CompiledFilter":
        """Pre-build the query specs for filtering many paths."""
        return CompiledFilter(
            self,
            build_spec(split_patterns(include)),
            build_spec(split_patterns(exclude)),
        )

    @property
    def patterns(self) -> list[str]:
        return self._base_patterns.copy()


class CompiledFilter:
    """A PathFilter bound to one include/exclude pair."""

    def __init__(
        self,
        base: PathFilter,
        include_spec: pathspec.PathSpec | None,
        exclude_spec: pathspec.PathSpec | None,
    ):
        self.base = base
        self.include_spec = include_spec
        self.exclude_spec = exclude_spec

    def prunes_directory(self, relative_dir: str) -> bool:
        """Whether a whole directory can be skipped during the walk."""
        dir_path = relative_dir.rstrip("/") + "/"
        if self.base.is_ignored(dir_path):
            return True
        return self.exclude_spec is not None and self.exclude_spec.match_file(dir_path)

    def accepts(self, relative_path: str) -> bool:
        if self.base.is_ignored(relative_path):
            return False
        if self.exclude_spec is not None and self.exclude_spec.match_file(
            relative_path
        ):
            return False
        return self.include_spec is None or self.include_spec.match_file(
            relative_path
        )
