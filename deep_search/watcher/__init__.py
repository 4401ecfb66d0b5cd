"""File system watching for cache invalidation."""

from .handler import CacheInvalidationHandler, SearchWatcher

__all__ = ["CacheInvalidationHandler", "SearchWatcher"]
