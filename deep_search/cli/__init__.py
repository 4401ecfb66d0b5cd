"""Command line interface.

Modules:
    output: OutputManager for match lines, JSON lines and summaries
    main: click command group (search, interactive)
"""

from .output import OutputConfig, OutputManager, should_use_color

__all__ = ["OutputConfig", "OutputManager", "should_use_color"]
