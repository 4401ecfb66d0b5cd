"""File lookup and read service consumed by the search workflow.

The workflow only depends on the ``FileService`` protocol. ``LocalFileService``
is the reference implementation over a directory on disk; editor
integrations provide their own (open buffers, remote file systems).
"""

import asyncio
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..errors import FileReadError, FileTooLargeError
from ..search_logging import LogCategory, get_category_logger
from ..types import FileId
from .ignore import PathFilter

logger = get_category_logger(LogCategory.FILES)


@runtime_checkable
class FileService(Protocol):
    """External collaborator that enumerates and reads workspace files."""

    async def find_files(
        self, include: str | None, exclude: str | None
    ) -> list[FileId]:
        """Candidate files for the given filters. Returns [] on failure."""
        ...

    async def read_file(
        self, file_id: FileId, ignore_size_limit: bool = False
    ) -> str:
        """File content.

        Raises:
            FileTooLargeError: The file exceeds the size ceiling and
                ``ignore_size_limit`` is not set.
        """
        ...


class LocalFileService:
    """FileService over a local workspace directory.

    File ids are absolute POSIX paths. Enumeration and reads run in worker
    threads so the event loop stays responsive.

    Example:
        >>> service = LocalFileService(Path("/path/to/project"))
        >>> files = await service.find_files("src/**", "*.min.js")
        >>> text = await service.read_file(files[0])
    """

    def __init__(
        self,
        project_root: Path | str,
        max_file_size: int = 1048576,
        exclude_patterns: list[str] | None = None,
        use_gitignore: bool = True,
    ):
        self.project_root = Path(project_root).resolve()
        self.max_file_size = max_file_size
        self.path_filter = PathFilter(self.project_root, exclude_patterns)
        if use_gitignore:
            loaded = self.path_filter.load_gitignore()
            if loaded:
                logger.debug(f"Loaded {loaded} .gitignore patterns")

    @classmethod
    def from_config(cls, project_root: Path | str, config) -> "LocalFileService":
        return cls(
            project_root,
            max_file_size=config.max_file_size,
            exclude_patterns=list(config.exclude_patterns),
            use_gitignore=config.use_gitignore,
        )

    async def find_files(
        self, include: str | None, exclude: str | None
    ) -> list[FileId]:
        try:
            return await asyncio.to_thread(self._walk, include, exclude)
        except Exception as e:
            logger.error(f"File lookup failed under {self.project_root}: {e}")
            return []

    def _walk(self, include: str | None, exclude: str | None) -> list[FileId]:
        compiled = self.path_filter.compile(include, exclude)
        found: list[FileId] = []

        for dirpath, dirnames, filenames in os.walk(self.project_root):
            current = Path(dirpath)
            relative_dir = current.relative_to(self.project_root).as_posix()
            prefix = "" if relative_dir == "." else f"{relative_dir}/"

            dirnames[:] = sorted(
                name for name in dirnames if not compiled.prunes_directory(prefix + name)
            )
            for name in sorted(filenames):
                if compiled.accepts(prefix + name):
                    found.append((current / name).as_posix())

        logger.debug(
            f"Found {len(found)} files (include={include!r}, exclude={exclude!r})"
        )
        return found

    async def read_file(
        self, file_id: FileId, ignore_size_limit: bool = False
    ) -> str:
        return await asyncio.to_thread(self._read, file_id, ignore_size_limit)

    def _read(self, file_id: FileId, ignore_size_limit: bool) -> str:
        path = Path(file_id)
        try:
            size = path.stat().st_size
            if not ignore_size_limit and size > self.max_file_size:
                raise FileTooLargeError(file_id, size, self.max_file_size)
            return path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            raise FileReadError(file_id, str(e)) from e
