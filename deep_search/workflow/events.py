"""Lifecycle events emitted by the search workflow.

The event set is fixed: every event is a frozen dataclass and
``WorkflowEvent`` is their union, so consumers dispatch with ``match`` or
``isinstance`` instead of comparing event-name strings.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from ..search_logging import LogCategory, get_category_logger
from ..types import FileId, Match

logger = get_category_logger(LogCategory.WORKFLOW)


@dataclass(frozen=True)
class StartEvent:
    kind: ClassVar[str] = "start"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class ProgressEvent:
    kind: ClassVar[str] = "progress"

    completed: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "completed": self.completed, "total": self.total}


@dataclass(frozen=True)
class ResultEvent:
    """Matches of one file; ``error`` is set when the file could not be scanned."""

    kind: ClassVar[str] = "result"

    file_id: FileId
    source: str
    matches: tuple[Match, ...] = field(default_factory=tuple)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.kind,
            "file": self.file_id,
            "source": self.source,
            "matches": [match.to_dict() for match in self.matches],
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class SearchPausedEvent:
    kind: ClassVar[str] = "search-paused"

    limit: int
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "limit": self.limit, "count": self.count}


@dataclass(frozen=True)
class SkippedLargeFilesEvent:
    kind: ClassVar[str] = "skipped-large-files"

    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "count": self.count}


@dataclass(frozen=True)
class DoneEvent:
    kind: ClassVar[str] = "done"

    total_matches: int = 0
    files_scanned: int = 0
    files_failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "total_matches": self.total_matches,
            "files_scanned": self.files_scanned,
            "files_failed": self.files_failed,
        }


@dataclass(frozen=True)
class StopEvent:
    kind: ClassVar[str] = "stop"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class ErrorEvent:
    kind: ClassVar[str] = "error"

    cause: BaseException

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "cause": str(self.cause)}


WorkflowEvent = (
    StartEvent
    | ProgressEvent
    | ResultEvent
    | SearchPausedEvent
    | SkippedLargeFilesEvent
    | DoneEvent
    | StopEvent
    | ErrorEvent
)

EventListener = Callable[[WorkflowEvent], None]


class EventBus:
    """Synchronous fan-out of workflow events to registered listeners.

    A failing listener is logged and skipped; it never interrupts the
    emitting run or the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: WorkflowEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {event.kind}: {e}")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
