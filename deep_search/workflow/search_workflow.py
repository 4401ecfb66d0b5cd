"""Search orchestrator: file-set resolution, cache reuse and throttled scanning.

One call to ``run`` resolves the candidate files (a fresh workspace
enumeration, or the results of the nearest global search for a
refinement), attaches the search to a cache node, replays whatever that
node already knows, and scans the rest through the ScanPipeline.

Only one run is logically active. Every run owns a ``_RunContext`` whose
signal is aborted when the run is superseded or stopped; all callbacks
check their own context before emitting events or touching the cache, so
a stale completion can never leak into the run that replaced it.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from enum import Enum

from ..cache.search_cache import CacheNode, SearchCache
from ..config.models import SearchConfig
from ..errors import DeepSearchError, FileTooLargeError, WorkflowStateError
from ..files.file_service import FileService
from ..matching.pattern_matcher import PatternMatcher
from ..performance.timing import PerformanceAggregator, PerformanceTimer
from ..pipeline.scan_pipeline import ScanPipeline, ScanSignal
from ..search_logging import LogCategory, get_category_logger
from ..types import FileId, FileMatchSet, SearchParams
from .events import (
    DoneEvent,
    ErrorEvent,
    EventBus,
    EventListener,
    ProgressEvent,
    ResultEvent,
    SearchPausedEvent,
    SkippedLargeFilesEvent,
    StartEvent,
    StopEvent,
    WorkflowEvent,
)

logger = get_category_logger(LogCategory.WORKFLOW)


class WorkflowState(str, Enum):
    """Lifecycle states of the search workflow."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    DONE = "done"
    STOPPED = "stopped"
    ERRORED = "errored"


@dataclass
class _RunContext:
    params: SearchParams
    signal: ScanSignal = field(default_factory=ScanSignal)
    resume: asyncio.Event = field(default_factory=asyncio.Event)
    node_id: int | None = None
    total_matches: int = 0
    limit_index: int = 0
    total: int = 0
    completed: int = 0
    files_failed: int = 0
    skipped_large: set[FileId] = field(default_factory=set)


class SearchWorkflow:
    """Run searches against a FileService, reusing the SearchCache.

    State machine: ``IDLE -> RUNNING -> (PAUSED <-> RUNNING) ->
    DONE | STOPPED | ERRORED``.

    Example:
        >>> workflow = SearchWorkflow(LocalFileService(root))
        >>> workflow.subscribe(print)
        >>> await workflow.run(SearchParams(query="TODO"))
    """

    def __init__(
        self,
        file_service: FileService,
        cache: SearchCache | None = None,
        matcher: PatternMatcher | None = None,
        pipeline: ScanPipeline | None = None,
        config: SearchConfig | None = None,
        events: EventBus | None = None,
    ):
        self.config = config or SearchConfig()
        self.file_service = file_service
        self.cache = cache or SearchCache(max_size=self.config.cache_max_size)
        self.matcher = matcher or PatternMatcher.from_config(self.config)
        self.pipeline = pipeline or ScanPipeline(concurrency=self.config.concurrency)
        self.events = events or EventBus()
        self.match_limits: tuple[int, ...] = tuple(self.config.match_limits)
        self.performance = PerformanceAggregator()

        self._state = WorkflowState.IDLE
        self._run: _RunContext | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (WorkflowState.RUNNING, WorkflowState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self._state == WorkflowState.PAUSED

    @property
    def current_params(self) -> SearchParams | None:
        return self._run.params if self._run else None

    @property
    def skipped_large_files(self) -> frozenset[FileId]:
        return frozenset(self._run.skipped_large) if self._run else frozenset()

    def subscribe(self, listener: EventListener):
        """Register an event listener; returns the unsubscribe callable."""
        return self.events.subscribe(listener)

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def run(self, params: SearchParams) -> None:
        """Run one search, superseding any active run.

        Raises:
            WorkflowStateError: ``params.query`` is empty.
        """
        if not params.query:
            raise WorkflowStateError("Cannot run a search with an empty query")

        if self.is_running:
            self.stop()

        ctx = _RunContext(params=params)
        self._run = ctx
        self._state = WorkflowState.RUNNING
        self._emit(ctx, StartEvent())

        with PerformanceTimer(f"search_run[{params.query!r}]"):
            try:
                files, scope = await self._resolve_files(params)
                if ctx.signal.aborted:
                    return
                node = self._setup_node(params, scope)
                ctx.node_id = node.node_id
            except Exception as e:
                if ctx.signal.aborted:
                    return
                logger.error(f"Search setup failed for {params.query!r}: {e}")
                self._state = WorkflowState.ERRORED
                self.events.emit(ErrorEvent(cause=e))
                return

            self._replay_cached(ctx, files)
            pending = [
                file_id
                for file_id in dict.fromkeys(files)
                if self.cache.should_process(file_id, ctx.node_id)
            ]
            logger.debug(
                f"Scanning {len(pending)}/{len(files)} files for {params.query!r} "
                f"(node={ctx.node_id})"
            )
            await self._scan(ctx, pending, ignore_size_limit=False)

    def stop(self) -> bool:
        """Abort the active run. Returns False when nothing was running."""
        ctx = self._run
        if ctx is None or not self.is_running:
            return False

        ctx.signal.abort("stopped")
        ctx.resume.set()
        self._state = WorkflowState.STOPPED
        logger.debug(f"Stopped search for {ctx.params.query!r}")
        self.events.emit(StopEvent())
        return True

    def continue_search(self) -> bool:
        """Resume a paused run up to the next match-count threshold."""
        ctx = self._run
        if ctx is None or self._state != WorkflowState.PAUSED:
            return False

        if ctx.limit_index < len(self.match_limits):
            ctx.limit_index += 1
        self._state = WorkflowState.RUNNING
        ctx.resume.set()
        return True

    async def scan_large_files(self) -> None:
        """Scan the files the last run skipped as oversized.

        Reads ignore the size ceiling; results are recorded in the last
        run's cache node exactly like a normal scan.
        """
        previous = self._run
        if previous is None or not previous.skipped_large:
            return

        finished_previous = self._state == WorkflowState.DONE
        if self.is_running:
            self.stop()

        files = sorted(previous.skipped_large)
        ctx = _RunContext(
            params=previous.params,
            node_id=previous.node_id,
            total_matches=previous.total_matches,
            limit_index=previous.limit_index,
            skipped_large=set(files),
        )
        self._run = ctx
        self._state = WorkflowState.RUNNING
        self._emit(ctx, StartEvent())

        with PerformanceTimer(f"scan_large_files[{len(files)}]"):
            await self._scan(
                ctx,
                files,
                ignore_size_limit=True,
                mark_complete=finished_previous,
            )

    # ------------------------------------------------------------------
    # Cache maintenance passthroughs
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()

    def remove_file(self, file_id: FileId) -> None:
        self.cache.remove_file(file_id)

    def invalidate_file(self, file_id: FileId) -> None:
        self.cache.invalidate_file(file_id)

    # ------------------------------------------------------------------
    # Resolution and cache setup
    # ------------------------------------------------------------------

    async def _resolve_files(
        self, params: SearchParams
    ) -> tuple[list[FileId], CacheNode | None]:
        """Candidate files plus the cache node that defines their scope."""
        if params.is_refinement:
            current = self.cache.current_node
            scope = self.cache.get_nearest_global_ancestor(current) if current else None
            if scope is not None:
                logger.debug(
                    f"Refinement scope: {len(scope.results)} files of {scope.query!r}"
                )
                return list(scope.results), scope
            if current is not None:
                logger.info(
                    f"No global ancestor for refinement; using {len(current.results)} "
                    f"results of {current.query!r}"
                )
                return list(current.results), None
            logger.info("No previous results to refine; scanning the workspace")

        files = await self.file_service.find_files(params.include, params.exclude)
        return list(files), None

    def _setup_node(self, params: SearchParams, scope: CacheNode | None) -> CacheNode:
        scan_params = params.scan_params

        if params.is_refinement and scope is not None:
            existing = self.cache.find_child(
                scope, params.query, scan_params, is_global=False
            )
            if existing is not None:
                self.cache.set_current(existing.node_id)
                return existing
            return self.cache.create_node(
                params.query, scan_params, require_global=False, explicit_parent=scope
            )

        require_global = not params.is_refinement
        node = self.cache.find_compatible_node(params.query, scan_params, require_global)
        if node is not None and node.query == params.query:
            return node

        best = self.cache.find_longest_prefix(params.query, scan_params, require_global)
        if best is not None and best.query == params.query:
            self.cache.set_current(best.node_id)
            return best
        return self.cache.create_node(
            params.query, scan_params, require_global, explicit_parent=best
        )

    def _replay_cached(self, ctx: _RunContext, files: list[FileId]) -> None:
        """Re-emit results this node already holds for files in scope."""
        replayed = 0
        for file_id in dict.fromkeys(files):
            cached = self.cache.cached_result(file_id, ctx.node_id)
            if cached is None:
                continue
            ctx.total_matches += len(cached.matches)
            self._emit(
                ctx,
                ResultEvent(
                    file_id=file_id,
                    source=cached.source,
                    matches=tuple(cached.matches),
                ),
            )
            replayed += 1
        if replayed:
            logger.debug(f"Replayed {replayed} cached results for {ctx.params.query!r}")

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def _scan(
        self,
        ctx: _RunContext,
        files: list[FileId],
        ignore_size_limit: bool,
        mark_complete: bool = True,
    ) -> None:
        ctx.total = len(files)
        self._emit(ctx, ProgressEvent(completed=0, total=ctx.total))

        await self.pipeline.run(
            files,
            functools.partial(
                self._scan_file, ctx, ignore_size_limit=ignore_size_limit
            ),
            concurrency=self.config.concurrency,
            signal=ctx.signal,
            on_before_each_item=functools.partial(self._check_pause, ctx),
        )

        if ctx.signal.aborted or self._run is not ctx:
            return

        if ignore_size_limit:
            self._emit(ctx, SkippedLargeFilesEvent(count=len(ctx.skipped_large)))

        if mark_complete and not ctx.skipped_large and ctx.files_failed == 0:
            self.cache.mark_complete(ctx.node_id)

        self._state = WorkflowState.DONE
        logger.info(
            f"Search {ctx.params.query!r} done: {ctx.total_matches} matches, "
            f"{ctx.completed} files scanned, {ctx.files_failed} failed, "
            f"{len(ctx.skipped_large)} skipped as too large",
            extra={"match_count": ctx.total_matches, "operation": "search_run"},
        )
        self.performance.log_report(logging.DEBUG)
        self.performance.reset()
        self._emit(
            ctx,
            DoneEvent(
                total_matches=ctx.total_matches,
                files_scanned=ctx.completed,
                files_failed=ctx.files_failed,
            ),
        )

    async def _scan_file(
        self, ctx: _RunContext, file_id: FileId, ignore_size_limit: bool = False
    ) -> None:
        if ctx.signal.aborted:
            return

        try:
            with self.performance.track("read_file"):
                content = await self.file_service.read_file(
                    file_id, ignore_size_limit=ignore_size_limit
                )
            if ctx.signal.aborted:
                return

            with self.performance.track("match_file"):
                matches = await self.matcher.search_in_file(
                    content, ctx.params, ctx.signal
                )
            if ctx.signal.aborted:
                return

            self.cache.add_result(
                file_id,
                FileMatchSet(file_id=file_id, source=content, matches=matches),
                ctx.node_id,
            )
            ctx.skipped_large.discard(file_id)

            if matches:
                ctx.total_matches += len(matches)
                self._emit(
                    ctx,
                    ResultEvent(file_id=file_id, source=content, matches=tuple(matches)),
                )
        except FileTooLargeError as e:
            if ctx.signal.aborted:
                return
            logger.debug(f"Skipping large file: {e.message}")
            ctx.skipped_large.add(file_id)
            self._emit(ctx, SkippedLargeFilesEvent(count=len(ctx.skipped_large)))
        except Exception as e:
            if ctx.signal.aborted:
                return
            ctx.files_failed += 1
            reason = e.message if isinstance(e, DeepSearchError) else str(e)
            logger.warning(
                f"Failed to scan {file_id}: {reason}", extra={"file_id": file_id}
            )
            self._emit(ctx, ResultEvent(file_id=file_id, source="", error=reason))
        finally:
            if not ctx.signal.aborted:
                ctx.completed += 1
                self._emit(ctx, ProgressEvent(completed=ctx.completed, total=ctx.total))

    async def _check_pause(self, ctx: _RunContext) -> None:
        """Block scheduling while the run sits at a match-count threshold."""
        if ctx.signal.aborted or ctx.limit_index >= len(self.match_limits):
            return

        limit = self.match_limits[ctx.limit_index]
        if ctx.total_matches < limit:
            return

        ctx.resume.clear()
        self._state = WorkflowState.PAUSED
        logger.info(f"Pausing at {ctx.total_matches} matches (limit {limit})")
        self._emit(ctx, SearchPausedEvent(limit=limit, count=ctx.total_matches))
        await ctx.resume.wait()

    def _emit(self, ctx: _RunContext, event: WorkflowEvent) -> None:
        if ctx.signal.aborted or self._run is not ctx:
            return
        self.events.emit(event)
