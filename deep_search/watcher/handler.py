"""File system watching that keeps the search cache in sync with disk."""

import asyncio
import os
from pathlib import Path
from typing import Any, Protocol

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..files.ignore import PathFilter
from ..search_logging import LogCategory, get_category_logger
from ..types import FileId

logger = get_category_logger(LogCategory.WATCHER)


class CacheMaintainer(Protocol):
    def invalidate_file(self, file_id: FileId) -> None: ...

    def remove_file(self, file_id: FileId) -> None: ...


class CacheInvalidationHandler(FileSystemEventHandler):
    """Translate watchdog events into cache maintenance calls.

    Watchdog delivers events on its observer thread; every call into the
    target is marshalled onto ``loop`` so the cache is only touched from
    the event loop thread.
    """

    def __init__(
        self,
        target: CacheMaintainer,
        loop: asyncio.AbstractEventLoop,
        path_filter: PathFilter | None = None,
    ):
        super().__init__()
        self.target = target
        self.loop = loop
        self.path_filter = path_filter

        # Stats
        self.events_received = 0
        self.events_ignored = 0
        self.invalidations = 0
        self.removals = 0

    def on_created(self, event: Any) -> None:
        if not event.is_directory:
            self._invalidate(event.src_path)

    def on_modified(self, event: Any) -> None:
        if not event.is_directory:
            self._invalidate(event.src_path)

    def on_deleted(self, event: Any) -> None:
        if not event.is_directory:
            self._remove(event.src_path)

    def on_moved(self, event: Any) -> None:
        if not event.is_directory:
            self._remove(event.src_path)
            self._invalidate(event.dest_path)

    def _invalidate(self, raw_path: str | bytes) -> None:
        file_id = self._file_id(raw_path)
        if file_id is None:
            return
        self.invalidations += 1
        logger.debug(f"Invalidating {file_id}")
        self.loop.call_soon_threadsafe(self.target.invalidate_file, file_id)

    def _remove(self, raw_path: str | bytes) -> None:
        file_id = self._file_id(raw_path)
        if file_id is None:
            return
        self.removals += 1
        logger.debug(f"Removing {file_id}")
        self.loop.call_soon_threadsafe(self.target.remove_file, file_id)

    def _file_id(self, raw_path: str | bytes) -> FileId | None:
        self.events_received += 1
        path = Path(os.fsdecode(raw_path))

        if self.path_filter is not None:
            relative = self.path_filter.relative(path)
            if relative is None or self.path_filter.is_ignored(relative):
                self.events_ignored += 1
                return None

        return path.as_posix()

    def get_stats(self) -> dict[str, Any]:
        return {
            "events_received": self.events_received,
            "events_ignored": self.events_ignored,
            "invalidations": self.invalidations,
            "removals": self.removals,
        }


class SearchWatcher:
    """Watch a workspace root and invalidate cached scans on change.

    Example:
        >>> watcher = SearchWatcher(root, coordinator)
        >>> watcher.start()
        >>> ...
        >>> watcher.stop()
    """

    def __init__(
        self,
        project_root: Path | str,
        target: CacheMaintainer,
        path_filter: PathFilter | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        # Normalize symlinks (macOS /var -> /private/var) so ids match the file service
        self.project_root = Path(os.path.realpath(project_root))
        self.target = target
        self.path_filter = path_filter
        self.loop = loop
        self.observer: Any = None
        self.event_handler: CacheInvalidationHandler | None = None

    @property
    def is_running(self) -> bool:
        return self.observer is not None

    def start(self) -> None:
        """Start watching. Must run inside the event loop unless ``loop`` was given."""
        if self.observer is not None:
            return

        loop = self.loop or asyncio.get_running_loop()
        self.event_handler = CacheInvalidationHandler(
            self.target, loop, path_filter=self.path_filter
        )
        observer = Observer()
        observer.schedule(self.event_handler, str(self.project_root), recursive=True)
        observer.start()
        self.observer = observer
        logger.info(f"Watching {self.project_root} for changes")

    def stop(self) -> None:
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join(timeout=5)
        self.observer = None
        logger.debug("Stopped file watcher")
