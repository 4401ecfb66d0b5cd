"""Debounced front end for the search workflow."""

import asyncio
import contextlib
from typing import Any

from ..config.models import SearchConfig
from ..files.file_service import FileService
from ..search_logging import LogCategory, get_category_logger
from ..types import FileId, SearchParams
from ..workflow.events import EventBus, EventListener
from ..workflow.search_workflow import SearchWorkflow

logger = get_category_logger(LogCategory.COORDINATOR)


class DebouncedSearchCoordinator:
    """Collapse bursts of parameter updates into one workflow run.

    Every ``set_params`` call restarts the quiet window; once ``delay``
    seconds pass without another update the active run is stopped and a
    new one starts with the latest parameters. Workflow events are
    re-emitted unchanged to the coordinator's own listeners.
    """

    def __init__(self, workflow: SearchWorkflow, delay: float = 0.3):
        self.workflow = workflow
        self.delay = delay
        self.events = EventBus()
        self._unsubscribe = workflow.subscribe(self.events.emit)

        self._params: SearchParams | None = None
        self._pending: asyncio.Task[Any] | None = None
        self._active: asyncio.Task[Any] | None = None

        # Statistics
        self._updates = 0
        self._runs_started = 0

    @classmethod
    def from_config(
        cls, file_service: FileService, config: SearchConfig
    ) -> "DebouncedSearchCoordinator":
        workflow = SearchWorkflow(file_service, config=config)
        return cls(workflow, delay=config.debounce_seconds)

    @property
    def params(self) -> SearchParams | None:
        return self._params

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def subscribe(self, listener: EventListener):
        return self.events.subscribe(listener)

    def set_params(self, params: SearchParams) -> bool:
        """Buffer a parameter update. Returns False when nothing changed.

        Must be called from within the running event loop.
        """
        if params == self._params:
            return False

        self._updates += 1
        self._apply(params)
        self._cancel_pending()

        if not params.query:
            self.workflow.stop()
            return True

        self._pending = asyncio.create_task(self._restart_after_delay(params))
        return True

    async def run_now(self, params: SearchParams) -> None:
        """Start a run immediately and wait for it to settle."""
        self._cancel_pending()
        self._apply(params)
        if not params.query:
            self.workflow.stop()
            return
        await self._start(params)

    async def flush(self) -> None:
        """Wait for the pending restart (if any) and the run it starts."""
        if self._pending is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._pending
        if self._active is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._active

    async def shutdown(self) -> None:
        """Drop pending restarts and stop the active run."""
        self._cancel_pending()
        self.workflow.stop()
        if self._active is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._active
        self._active = None
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Workflow passthroughs
    # ------------------------------------------------------------------

    def stop(self) -> bool:
        self._cancel_pending()
        return self.workflow.stop()

    def continue_search(self) -> bool:
        return self.workflow.continue_search()

    async def scan_large_files(self) -> None:
        self._cancel_pending()
        await self.workflow.scan_large_files()

    def clear_all(self) -> None:
        self.workflow.clear_cache()

    def remove_file(self, file_id: FileId) -> None:
        self.workflow.remove_file(file_id)

    def invalidate_file(self, file_id: FileId) -> None:
        self.workflow.invalidate_file(file_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, params: SearchParams) -> None:
        previous = self._params
        self._params = params
        if params.invalidates_offsets(previous):
            logger.debug("Match options changed; clearing search cache")
            self.workflow.clear_cache()

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _restart_after_delay(self, params: SearchParams) -> None:
        await asyncio.sleep(self.delay)
        await self._start(params)

    async def _start(self, params: SearchParams) -> None:
        self.workflow.stop()
        self._runs_started += 1
        logger.debug(f"Starting search for {params.query!r}")
        task = asyncio.create_task(self.workflow.run(params))
        task.add_done_callback(self._on_run_done)
        self._active = task
        await asyncio.shield(task)

    def _on_run_done(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Search run failed: {error}")

    def get_stats(self) -> dict[str, Any]:
        """Get coordinator statistics."""
        return {
            "delay": self.delay,
            "pending": self.has_pending,
            "updates": self._updates,
            "runs_started": self._runs_started,
            "state": self.workflow.state.value,
        }
