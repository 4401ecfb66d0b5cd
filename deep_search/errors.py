"""Structured error types with recovery suggestions.

Per-file scan failures are recovered inside the workflow and never reach
callers; these types cover the conditions that do cross a component
boundary (oversized reads, lookup failures, bad configuration).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Categories of search errors for organization and handling."""

    FILE_SYSTEM = "file_system"  # Unreadable, missing or oversized files
    CONFIGURATION = "configuration"  # Invalid settings
    VALIDATION = "validation"  # Invalid arguments
    SEARCH = "search"  # Workflow-level failures
    RUNTIME = "runtime"  # Unexpected errors


@dataclass
class DeepSearchError(Exception):
    """Base class for structured errors with recovery suggestions.

    Attributes:
        category: Error category for grouping.
        message: Human-readable error message.
        suggestion: Optional actionable recovery suggestion.
        details: Optional additional details dict.
        exit_code: Exit code to use when this error terminates the CLI.
    """

    category: ErrorCategory
    message: str
    suggestion: str | None = None
    details: dict[str, Any] | None = field(default_factory=dict)
    exit_code: int = 2

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def format(self, use_color: bool = True) -> str:
        """Format the error for display.

        Args:
            use_color: Whether to include ANSI color codes.

        Returns:
            Formatted error string with suggestion if available.
        """
        red = "\033[91m" if use_color else ""
        cyan = "\033[96m" if use_color else ""
        dim = "\033[2m" if use_color else ""
        reset = "\033[0m" if use_color else ""

        lines = [f"{red}Error:{reset} {self.message}"]

        if self.suggestion:
            lines.append(f"{cyan}Suggestion:{reset} {self.suggestion}")

        if self.details:
            for key, value in self.details.items():
                lines.append(f"{dim}  {key}: {value}{reset}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format(use_color=False)


class FileTooLargeError(DeepSearchError):
    """A file exceeds the configured size ceiling."""

    def __init__(self, file_id: str, size: int, limit: int):
        self.file_id = file_id
        self.size = size
        self.limit = limit
        super().__init__(
            category=ErrorCategory.FILE_SYSTEM,
            message=f"File too large to scan: {file_id} ({size} > {limit} bytes)",
            suggestion="Scan oversized files explicitly with scan_large_files()",
            details={"file": file_id, "size": size, "limit": limit},
        )


class FileReadError(DeepSearchError):
    """A file could not be read."""

    def __init__(self, file_id: str, original_error: str | None = None):
        self.file_id = file_id
        message = f"Cannot read {file_id}"
        if original_error:
            message = f"{message}: {original_error}"
        super().__init__(
            category=ErrorCategory.FILE_SYSTEM,
            message=message,
            suggestion="Verify the file exists and you have read permissions",
            details={"file": file_id},
        )


class FileLookupError(DeepSearchError):
    """The candidate file set could not be resolved."""

    def __init__(self, message: str, root: str | None = None):
        super().__init__(
            category=ErrorCategory.FILE_SYSTEM,
            message=message,
            suggestion="Check the workspace path and the include/exclude patterns",
            details={"root": root} if root else None,
        )


class ConfigurationError(DeepSearchError):
    """Error in a configuration file or settings."""

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            category=ErrorCategory.CONFIGURATION,
            message=message,
            suggestion=suggestion
            or "Check your configuration file syntax and field values",
            details={"config_file": config_file} if config_file else None,
        )


class WorkflowStateError(DeepSearchError):
    """A workflow operation was invoked in a state that does not allow it."""

    def __init__(self, message: str, state: str | None = None):
        super().__init__(
            category=ErrorCategory.SEARCH,
            message=message,
            details={"state": state} if state else None,
        )


def wrap_unexpected(error: Exception) -> DeepSearchError:
    """Wrap an arbitrary exception in a DeepSearchError for display."""
    if isinstance(error, DeepSearchError):
        return error
    return DeepSearchError(
        category=ErrorCategory.RUNTIME,
        message=f"Unexpected error: {error}",
        suggestion="Run with --verbose for details",
        details={"type": type(error).__name__},
    )
