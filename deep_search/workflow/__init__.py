"""Search workflow and its lifecycle events."""

from .events import (
    DoneEvent,
    ErrorEvent,
    EventBus,
    ProgressEvent,
    ResultEvent,
    SearchPausedEvent,
    SkippedLargeFilesEvent,
    StartEvent,
    StopEvent,
    WorkflowEvent,
)
from .search_workflow import SearchWorkflow, WorkflowState

__all__ = [
    "DoneEvent",
    "ErrorEvent",
    "EventBus",
    "ProgressEvent",
    "ResultEvent",
    "SearchPausedEvent",
    "SearchWorkflow",
    "SkippedLargeFilesEvent",
    "StartEvent",
    "StopEvent",
    "WorkflowEvent",
    "WorkflowState",
]
