"""Click-based command line interface for deep-search."""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from .. import __version__
from ..config import ConfigLoader, SearchConfig
from ..coordinator.debounce import DebouncedSearchCoordinator
from ..errors import DeepSearchError, ErrorCategory, wrap_unexpected
from ..files.file_service import LocalFileService
from ..performance.timing import PerformanceTimer
from ..search_logging import get_logger, setup_logging
from ..types import SearchMode, SearchParams
from ..watcher.handler import SearchWatcher
from ..workflow.events import (
    DoneEvent,
    ErrorEvent,
    ResultEvent,
    SearchPausedEvent,
    SkippedLargeFilesEvent,
    StopEvent,
    WorkflowEvent,
)
from ..workflow.search_workflow import SearchWorkflow
from .output import OutputConfig, OutputManager

EXIT_MATCHES = 0
EXIT_NO_MATCHES = 1
EXIT_ERROR = 2


@dataclass
class SearchSummary:
    """Counters collected from the events of one command."""

    matches: int = 0
    files_with_matches: int = 0
    failed: int = 0
    skipped_large: int = 0
    scanned: int = 0
    stopped: bool = False
    error: BaseException | None = None

    def reset(self) -> None:
        self.matches = 0
        self.files_with_matches = 0
        self.failed = 0
        self.skipped_large = 0
        self.scanned = 0
        self.stopped = False
        self.error = None


class EventPrinter:
    """Render workflow events through an OutputManager."""

    def __init__(self, output: OutputManager, summary: SearchSummary):
        self.output = output
        self.summary = summary

    def __call__(self, event: WorkflowEvent) -> None:
        match event:
            case ResultEvent(error=str() as error):
                self.summary.failed += 1
                self.output.warning(f"{self.output.display_path(event.file_id)}: {error}")
            case ResultEvent():
                self.summary.matches += len(event.matches)
                self.summary.files_with_matches += 1
                for match in event.matches:
                    self.output.match(event.file_id, match, event.source)
            case SkippedLargeFilesEvent(count=count):
                self.summary.skipped_large = count
            case DoneEvent():
                self.summary.scanned += event.files_scanned
            case StopEvent():
                self.summary.stopped = True
            case ErrorEvent(cause=cause):
                self.summary.error = cause
                self.output.error(f"Search failed: {cause}")
            case SearchPausedEvent(limit=limit, count=count):
                self.output.warning(f"Paused at {count} matches (limit {limit})", force=True)


def common_options(f: Any) -> Any:
    """Options shared by every command."""
    f = click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")(f)
    f = click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")(f)
    f = click.option("--no-color", is_flag=True, help="Disable colored output")(f)
    f = click.option(
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Configuration file path (default: <path>/.deep-search.json)",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Also write debug logs to this file",
    )(f)
    return f


def search_options(f: Any) -> Any:
    """Options that shape the search parameters."""
    f = click.option("--regex", "-e", is_flag=True, help="Treat QUERY as a regular expression")(f)
    f = click.option("--match-case", "-s", is_flag=True, help="Case-sensitive matching")(f)
    f = click.option("--whole-word", "-w", is_flag=True, help="Match whole words only")(f)
    f = click.option("--include", "-i", help="Comma-separated globs of files to search")(f)
    f = click.option("--exclude", "-x", help="Comma-separated globs of files to skip")(f)
    return f


def path_argument(f: Any) -> Any:
    return click.argument(
        "path",
        default=".",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
    )(f)


def _prepare(
    path: Path,
    config_file: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> SearchConfig:
    root = path.resolve()
    config = ConfigLoader(root, config_file).load()
    setup_logging(
        level=config.log_level,
        quiet=quiet,
        verbose=verbose,
        log_file=log_file,
        project_path=root,
        log_format=config.log_format,
    )
    return config


def _build_params(
    query: str,
    regex: bool,
    match_case: bool,
    whole_word: bool,
    include: str | None,
    exclude: str | None,
    search_in_results: int = 0,
) -> SearchParams:
    return SearchParams(
        query=query,
        match_case=match_case,
        whole_word=whole_word,
        include=include or None,
        exclude=exclude or None,
        search_mode=SearchMode.REGEX if regex else SearchMode.TEXT,
        search_in_results=search_in_results,
    )


def _fail(output: OutputManager, error: Exception, verbose: bool) -> None:
    wrapped = wrap_unexpected(error)
    output.error(wrapped.format(use_color=output.config.use_color))
    if verbose and not isinstance(error, DeepSearchError):
        get_logger().exception("Unhandled error")
    sys.exit(wrapped.exit_code)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Deep Search - incremental text and regex search over a workspace."""


@cli.command()
@click.argument("query")
@path_argument
@search_options
@click.option(
    "--auto-continue",
    is_flag=True,
    help="Keep scanning past match-count pause thresholds",
)
@click.option(
    "--scan-large",
    is_flag=True,
    help="Also scan files skipped for exceeding the size limit",
)
@click.option("--json", "json_lines", is_flag=True, help="Emit JSON lines")
@common_options
def search(
    query: str,
    path: Path,
    regex: bool,
    match_case: bool,
    whole_word: bool,
    include: str | None,
    exclude: str | None,
    auto_continue: bool,
    scan_large: bool,
    json_lines: bool,
    verbose: bool,
    quiet: bool,
    no_color: bool,
    config_file: Path | None,
    log_file: Path | None,
) -> None:
    """Search PATH (default: current directory) for QUERY.

    Exits 0 when matches were found, 1 when none were, 2 on error.
    """
    output = OutputManager(
        OutputConfig.from_flags(
            verbose=verbose,
            quiet=quiet,
            no_color=no_color,
            json_lines=json_lines,
            root=path.resolve(),
        )
    )

    try:
        config = _prepare(path, config_file, verbose, quiet, log_file)
        params = _build_params(query, regex, match_case, whole_word, include, exclude)
        summary = asyncio.run(
            run_search(path.resolve(), config, params, output, auto_continue, scan_large)
        )
    except Exception as e:
        _fail(output, e, verbose)
        return

    if summary.error is not None:
        sys.exit(EXIT_ERROR)
    sys.exit(EXIT_MATCHES if summary.matches else EXIT_NO_MATCHES)


async def run_search(
    root: Path,
    config: SearchConfig,
    params: SearchParams,
    output: OutputManager,
    auto_continue: bool = False,
    scan_large: bool = False,
) -> SearchSummary:
    """Run one search to completion and print its events."""
    if not params.query:
        raise DeepSearchError(
            category=ErrorCategory.VALIDATION,
            message="Query must not be empty",
            suggestion="Pass a non-empty search string",
        )

    workflow = SearchWorkflow(LocalFileService.from_config(root, config), config=config)
    summary = SearchSummary()
    workflow.subscribe(EventPrinter(output, summary))

    def on_pause(event: WorkflowEvent) -> None:
        if not isinstance(event, SearchPausedEvent):
            return
        if auto_continue:
            workflow.continue_search()
        else:
            output.info("Stopping; pass --auto-continue to collect every match")
            workflow.stop()

    workflow.subscribe(on_pause)

    with PerformanceTimer("cli_search", auto_log=False) as timer:
        await workflow.run(params)
        if scan_large and summary.skipped_large and not summary.stopped:
            output.info(f"Scanning {summary.skipped_large} large files")
            await workflow.scan_large_files()

    output.summary(
        matches=summary.matches,
        files_with_matches=summary.files_with_matches,
        scanned=summary.scanned,
        failed=summary.failed,
        skipped_large=summary.skipped_large,
        duration_ms=timer.duration_ms,
    )
    return summary


@cli.command()
@path_argument
@search_options
@click.option(
    "--watch/--no-watch",
    default=True,
    help="Invalidate cached scans when files change on disk",
)
@common_options
def interactive(
    path: Path,
    regex: bool,
    match_case: bool,
    whole_word: bool,
    include: str | None,
    exclude: str | None,
    watch: bool,
    verbose: bool,
    quiet: bool,
    no_color: bool,
    config_file: Path | None,
    log_file: Path | None,
) -> None:
    """Read queries from stdin, one per line, and search PATH as you type.

    \b
    A line starting with '>' searches within the previous results
    (one '>' per nesting level). Commands:
      :continue  resume a paused search
      :stop      stop the active search
      :large     scan files skipped for their size
      :clear     drop every cached search
      :quit      exit
    """
    output = OutputManager(
        OutputConfig.from_flags(
            verbose=verbose, quiet=quiet, no_color=no_color, root=path.resolve()
        )
    )
    try:
        config = _prepare(path, config_file, verbose, quiet, log_file)
        options = {
            "regex": regex,
            "match_case": match_case,
            "whole_word": whole_word,
            "include": include,
            "exclude": exclude,
        }
        asyncio.run(run_interactive(path.resolve(), config, options, output, watch))
    except Exception as e:
        _fail(output, e, verbose)


def parse_interactive_line(line: str, options: dict[str, Any]) -> SearchParams:
    """Turn one input line into SearchParams; leading '>' marks refinement depth."""
    depth = len(line) - len(line.lstrip(">"))
    query = line[depth:].strip()
    return _build_params(query, search_in_results=depth, **options)


async def run_interactive(
    root: Path,
    config: SearchConfig,
    options: dict[str, Any],
    output: OutputManager,
    watch: bool = True,
    stream: Any = None,
) -> None:
    """Drive a debounced coordinator from lines of ``stream`` (default stdin)."""
    stream = stream or sys.stdin
    service = LocalFileService.from_config(root, config)
    coordinator = DebouncedSearchCoordinator.from_config(service, config)
    summary = SearchSummary()
    printer = EventPrinter(output, summary)

    def on_event(event: WorkflowEvent) -> None:
        printer(event)
        if isinstance(event, DoneEvent):
            output.summary(
                matches=summary.matches,
                files_with_matches=summary.files_with_matches,
                scanned=summary.scanned,
                failed=summary.failed,
                skipped_large=summary.skipped_large,
            )
            summary.reset()
        elif isinstance(event, StopEvent):
            summary.reset()

    coordinator.subscribe(on_event)

    watcher = SearchWatcher(root, coordinator, path_filter=service.path_filter)
    if watch:
        watcher.start()

    try:
        while True:
            line = await asyncio.to_thread(stream.readline)
            if not line:
                break
            line = line.rstrip("\n")

            command = line.strip()
            if command == ":quit":
                break
            if command == ":continue":
                coordinator.continue_search()
            elif command == ":stop":
                coordinator.stop()
            elif command == ":large":
                await coordinator.scan_large_files()
            elif command == ":clear":
                coordinator.clear_all()
                output.info("Cache cleared")
            else:
                summary.reset()
                coordinator.set_params(parse_interactive_line(line, options))

        await coordinator.flush()
    finally:
        watcher.stop()
        await coordinator.shutdown()
