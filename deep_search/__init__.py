"""Deep Search - incremental text and regex search over a workspace.

Previous searches are kept in a prefix tree: repeating a query replays its
cached results, and refinement searches look only inside the result set of
the global search they refine.
"""

__version__ = "0.1.0"

from .cache.search_cache import CacheNode, SearchCache
from .config import SearchConfig, load_config
from .coordinator.debounce import DebouncedSearchCoordinator
from .errors import DeepSearchError, FileTooLargeError
from .files.file_service import FileService, LocalFileService
from .matching.pattern_matcher import PatternMatcher
from .pipeline.scan_pipeline import ScanPipeline, ScanSignal
from .types import FileMatchSet, Match, SearchMode, SearchParams
from .workflow.search_workflow import SearchWorkflow, WorkflowState

__all__ = [
    "__version__",
    "CacheNode",
    "DebouncedSearchCoordinator",
    "DeepSearchError",
    "FileMatchSet",
    "FileService",
    "FileTooLargeError",
    "LocalFileService",
    "Match",
    "PatternMatcher",
    "ScanPipeline",
    "ScanSignal",
    "SearchCache",
    "SearchConfig",
    "SearchMode",
    "SearchParams",
    "SearchWorkflow",
    "WorkflowState",
    "load_config",
]
