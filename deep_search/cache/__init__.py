"""Tree cache of prior searches."""

from .search_cache import (
    CacheNode,
    SearchCache,
    enumerate_leaves,
    find_compatible_node,
    find_longest_prefix_node,
    is_compatible,
    nearest_global_ancestor,
)

__all__ = [
    "CacheNode",
    "SearchCache",
    "enumerate_leaves",
    "find_compatible_node",
    "find_longest_prefix_node",
    "is_compatible",
    "nearest_global_ancestor",
]
