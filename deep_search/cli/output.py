"""Terminal rendering for search results.

Supports the NO_COLOR environment variable, the --no-color flag, quiet
mode and a JSON-lines mode for piping into other tools.

Following the NO_COLOR standard: https://no-color.org/
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

import click

from ..types import Match


def should_use_color(
    explicit_flag: bool | None = None,
    stream: TextIO | None = None,
) -> bool:
    """Determine if color output should be used.

    Priority order:
    1. Explicit --no-color flag (if passed)
    2. NO_COLOR environment variable (standard convention)
    3. TTY detection (only colorize if output is a terminal)

    Args:
        explicit_flag: True = force colors, False = force no colors,
            None = auto-detect.
        stream: Output stream to check for TTY. Defaults to stdout.
    """
    if explicit_flag is not None:
        return explicit_flag

    # Any value (including empty) means "no color"
    if "NO_COLOR" in os.environ:
        return False

    if "FORCE_COLOR" in os.environ:
        return True

    if stream is None:
        stream = sys.stdout
    if hasattr(stream, "isatty") and not stream.isatty():
        return False

    return True


@dataclass
class OutputConfig:
    """Configuration for CLI output behavior.

    Attributes:
        use_color: Whether to use ANSI color codes in output.
        quiet: Suppress everything except matches and errors.
        verbose: Enable detailed debug output.
        json_lines: Emit one JSON object per event instead of text.
        root: Paths are printed relative to this directory when possible.
        stream: Output stream (default: stdout).
        err_stream: Error stream (default: stderr).
    """

    use_color: bool = True
    quiet: bool = False
    verbose: bool = False
    json_lines: bool = False
    root: Path | None = None
    stream: TextIO = field(default_factory=lambda: sys.stdout)
    err_stream: TextIO = field(default_factory=lambda: sys.stderr)

    @classmethod
    def from_flags(
        cls,
        verbose: bool = False,
        quiet: bool = False,
        no_color: bool = False,
        json_lines: bool = False,
        root: Path | None = None,
    ) -> "OutputConfig":
        use_color = False if json_lines else should_use_color(
            explicit_flag=False if no_color else None
        )
        return cls(
            use_color=use_color,
            quiet=quiet,
            verbose=verbose,
            json_lines=json_lines,
            root=root,
        )


class OutputManager:
    """Centralized output handler for the search CLI.

    Example:
        >>> output = OutputManager(OutputConfig.from_flags(no_color=True))
        >>> output.match("/repo/app.py", match)
        app.py:3:4: hello
        >>> output.error("Something went wrong")
        [FAIL] Something went wrong
    """

    COLORS = {
        "green": "\033[92m",
        "red": "\033[91m",
        "yellow": "\033[93m",
        "magenta": "\033[95m",
        "cyan": "\033[96m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "reset": "\033[0m",
    }

    SYMBOLS = {
        "success": {"color": "\033[92m✓\033[0m", "plain": "[OK]"},
        "error": {"color": "\033[91m✗\033[0m", "plain": "[FAIL]"},
        "warning": {"color": "\033[93m⚠\033[0m", "plain": "[WARN]"},
        "info": {"color": "\033[94mℹ\033[0m", "plain": "[INFO]"},
    }

    def __init__(self, config: OutputConfig | None = None):
        self.config = config or OutputConfig()

    def _get_symbol(self, symbol_type: str) -> str:
        symbol_data = self.SYMBOLS.get(symbol_type, self.SYMBOLS["info"])
        return symbol_data["color"] if self.config.use_color else symbol_data["plain"]

    def _colorize(self, text: str, color: str) -> str:
        if not self.config.use_color:
            return text
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"

    def _output(
        self,
        message: str,
        symbol_type: str | None = None,
        err: bool = False,
        force: bool = False,
    ) -> None:
        """Output a message with optional symbol prefix.

        Status messages go to stderr in JSON mode so stdout stays parseable.
        """
        if self.config.quiet and not err and not force:
            return

        to_err = err or self.config.json_lines
        stream = self.config.err_stream if to_err else self.config.stream
        line = f"{self._get_symbol(symbol_type)} {message}" if symbol_type else message
        click.echo(line, file=stream)

    def display_path(self, file_id: str) -> str:
        """``file_id`` relative to the configured root when it lies below it."""
        if self.config.root is None:
            return file_id
        try:
            return Path(file_id).relative_to(self.config.root).as_posix()
        except ValueError:
            return file_id

    def match(self, file_id: str, match: Match, source: str = "") -> None:
        """Print one match as ``path:line:col: text`` (1-based column)."""
        if self.config.json_lines:
            line_text = self._line_preview(source, match) if source else match.text
            self.json(
                {"type": "match", "file": file_id, "line": line_text, **match.to_dict()}
            )
            return

        path = self._colorize(self.display_path(file_id), "magenta")
        location = f"{match.start_line}:{match.start_column + 1}"
        line_text = self._line_preview(source, match) if source else match.text
        click.echo(f"{path}:{location}: {line_text}", file=self.config.stream)

    def _line_preview(self, source: str, match: Match) -> str:
        line_start = source.rfind("\n", 0, match.start) + 1
        line_end = source.find("\n", match.start)
        if line_end == -1:
            line_end = len(source)
        end = min(match.end, line_end)
        before = source[line_start : match.start]
        hit = self._colorize(source[match.start : end], "red")
        after = source[end:line_end]
        return f"{before}{hit}{after}".strip()

    def json(self, payload: dict[str, Any]) -> None:
        click.echo(json.dumps(payload, ensure_ascii=False), file=self.config.stream)

    def success(self, message: str, force: bool = False) -> None:
        self._output(message, symbol_type="success", force=force)

    def error(self, message: str) -> None:
        """Output an error message (always shown, even in quiet mode)."""
        self._output(message, symbol_type="error", err=True, force=True)

    def warning(self, message: str, force: bool = False) -> None:
        self._output(message, symbol_type="warning", force=force)

    def info(self, message: str) -> None:
        self._output(message, symbol_type="info")

    def debug(self, message: str) -> None:
        if not self.config.verbose:
            return
        self._output(f"DEBUG: {self._colorize(message, 'dim')}")

    def plain(self, message: str, force: bool = False) -> None:
        self._output(message, force=force)

    def summary(
        self,
        matches: int,
        files_with_matches: int = 0,
        scanned: int = 0,
        failed: int = 0,
        skipped_large: int = 0,
        duration_ms: float | None = None,
    ) -> None:
        """Output a summary line with counts."""
        parts = [f"{matches} matches", f"{files_with_matches} files"]
        if scanned > 0:
            parts.append(f"{scanned} scanned")
        if failed > 0:
            parts.append(f"{failed} failed")
        if skipped_large > 0:
            parts.append(f"{skipped_large} skipped (too large)")
        if duration_ms is not None:
            if duration_ms < 1000:
                parts.append(f"{duration_ms:.0f}ms")
            else:
                parts.append(f"{duration_ms/1000:.1f}s")

        summary_text = " | ".join(parts)

        if failed > 0:
            self._output(summary_text, symbol_type="error", force=True)
        elif skipped_large > 0:
            self._output(summary_text, symbol_type="warning", force=True)
        else:
            self._output(summary_text, symbol_type="success", force=True)
