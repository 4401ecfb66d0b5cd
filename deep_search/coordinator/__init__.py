from .debounce import DebouncedSearchCoordinator

__all__ = ["DebouncedSearchCoordinator"]
