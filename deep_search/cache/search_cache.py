"""Tree-structured cache of prior searches.

Each node records which files were scanned for one query under one
parameter set, and which of them matched. A node's children are searches
whose query textually extends the node's query, so typing one more
character can start from the most specific compatible scan instead of
from nothing.

Nodes live in an arena keyed by integer id; parent/child links are ids.
The tree walks (compatibility lookup, nearest global ancestor, leaf
enumeration) are plain functions over the arena so they can be tested
without a SearchCache instance.

Example usage:
    cache = SearchCache(max_size=20)

    node = cache.find_compatible_node("foo", params)
    if node is None or node.query != "foo":
        node = cache.create_node("foo", params)

    if cache.should_process(file_id, node.node_id):
        cache.add_result(file_id, match_set, node.node_id)

    # Invalidate on file change
    cache.invalidate_file(file_id)
"""

import itertools
from collections import deque
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..search_logging import LogCategory, get_category_logger
from ..types import FileId, FileMatchSet, ScanParams

logger = get_category_logger(LogCategory.CACHE)

DEFAULT_MAX_SIZE = 20


@dataclass
class CacheNode:
    """One previously executed (or in-flight) search.

    Attributes:
        node_id: Stable arena id.
        query: Search string of this node.
        params: Filter set the node was scanned under.
        is_global: True when the candidate scope was the whole workspace
            rather than a previous search's results.
        depth: Distance from the root (root = 0).
        parent_id: Arena id of the parent, None for the root.
        children: Child ids keyed by child query.
        results: Files with at least one match.
        processed_files: Every file scanned under this node.
        excluded_files: Files scanned with zero matches.
        is_complete: True once every candidate file was scanned.
    """

    node_id: int
    query: str
    params: ScanParams
    is_global: bool = True
    depth: int = 0
    parent_id: int | None = None
    children: dict[str, int] = field(default_factory=dict)
    results: dict[FileId, FileMatchSet] = field(default_factory=dict)
    processed_files: set[FileId] = field(default_factory=set)
    excluded_files: set[FileId] = field(default_factory=set)
    is_complete: bool = False

    @property
    def is_leaf(self) -> bool:
        return not self.children


NodeArena = Mapping[int, CacheNode]


def is_compatible(
    node: CacheNode, query: str, params: ScanParams, require_global: bool = True
) -> bool:
    """Whether ``node`` can seed a search for ``query`` under ``params``.

    The query must textually extend the node's query, every non-query
    parameter must be equal, and a global search may only reuse global
    nodes.
    """
    if not query.startswith(node.query):
        return False
    if require_global and not node.is_global:
        return False
    return node.params == params


def find_longest_prefix_node(
    nodes: NodeArena,
    root_id: int | None,
    query: str,
    params: ScanParams,
    require_global: bool = True,
) -> int | None:
    """Breadth-first search for the compatible node with the longest query.

    Only compatible nodes are expanded, so every node on the path to the
    result is itself a compatible prefix. Ties in prefix length keep the
    first node discovered.
    """
    if root_id is None or root_id not in nodes:
        return None

    best_id: int | None = None
    best_length = -1
    queue = deque([root_id])

    while queue:
        node = nodes[queue.popleft()]
        if not is_compatible(node, query, params, require_global):
            continue

        if len(node.query) > best_length:
            best_id = node.node_id
            best_length = len(node.query)

        queue.extend(child_id for child_id in node.children.values() if child_id in nodes)

    return best_id


def find_compatible_node(
    nodes: NodeArena,
    root_id: int | None,
    current_id: int | None,
    query: str,
    params: ScanParams,
    require_global: bool = True,
) -> int | None:
    """Find the node a search for ``query`` should build on.

    The current node and its direct children are tried first; otherwise
    the whole tree is searched from the root for the longest compatible
    prefix.
    """
    if root_id is None:
        return None

    current = nodes.get(current_id) if current_id is not None else None
    if current is not None and is_compatible(current, query, params, require_global):
        for child_id in current.children.values():
            child = nodes.get(child_id)
            if child is not None and is_compatible(child, query, params, require_global):
                return child_id
        return current_id

    return find_longest_prefix_node(nodes, root_id, query, params, require_global)


def iter_ancestors(nodes: NodeArena, start_id: int | None) -> Iterator[CacheNode]:
    """Yield ``start_id`` and then each of its ancestors up to the root."""
    node_id = start_id
    while node_id is not None and node_id in nodes:
        node = nodes[node_id]
        yield node
        node_id = node.parent_id


def nearest_global_ancestor(nodes: NodeArena, start_id: int | None) -> int | None:
    """Closest node at or above ``start_id`` whose scope was the workspace."""
    for node in iter_ancestors(nodes, start_id):
        if node.is_global:
            return node.node_id
    return None


def ancestor_at_depth(
    nodes: NodeArena, start_id: int | None, depth: int
) -> int | None:
    if depth < 0:
        return None
    for node in iter_ancestors(nodes, start_id):
        if node.depth == depth:
            return node.node_id
        if node.depth < depth:
            break
    return None


def enumerate_leaves(nodes: NodeArena, root_id: int | None) -> list[int]:
    """Leaf ids in pre-order (depth-first, children in insertion order)."""
    leaves: list[int] = []
    if root_id is None or root_id not in nodes:
        return leaves

    stack = [root_id]
    while stack:
        node = nodes[stack.pop()]
        live_children = [cid for cid in node.children.values() if cid in nodes]
        if not live_children:
            leaves.append(node.node_id)
        else:
            stack.extend(reversed(live_children))
    return leaves


def subtree_ids(nodes: NodeArena, node_id: int) -> list[int]:
    """``node_id`` and all of its descendants."""
    ids: list[int] = []
    stack = [node_id]
    while stack:
        current = stack.pop()
        if current not in nodes:
            continue
        ids.append(current)
        stack.extend(nodes[current].children.values())
    return ids


class SearchCache:
    """Arena-backed tree of prior searches with a bounded node count.

    Only one root exists at a time. When the node count exceeds
    ``max_size``, leaf nodes are evicted in pre-order until the bound
    holds. The node just created goes last: it is evicted only when it is
    the sole leaf (a single chain of extended queries). Lookups and
    mutations are in-memory and never raise: absence is None or an empty
    container.

    Attributes:
        max_size: Maximum number of nodes kept in the tree.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._nodes: dict[int, CacheNode] = {}
        self._root_id: int | None = None
        self._current_id: int | None = None
        self._ids = itertools.count()

        # Statistics
        self._evictions = 0

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> NodeArena:
        return self._nodes

    @property
    def size(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> CacheNode | None:
        return self._nodes.get(self._root_id) if self._root_id is not None else None

    @property
    def current_node(self) -> CacheNode | None:
        if self._current_id is None:
            return None
        return self._nodes.get(self._current_id)

    def get(self, node_id: int | None) -> CacheNode | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def parent_of(self, node: CacheNode) -> CacheNode | None:
        return self.get(node.parent_id)

    def contains(self, node_id: int | None) -> bool:
        return node_id is not None and node_id in self._nodes

    def set_current(self, node_id: int) -> None:
        if node_id in self._nodes:
            self._current_id = node_id

    # ------------------------------------------------------------------
    # Lookup and creation
    # ------------------------------------------------------------------

    def find_compatible_node(
        self, query: str, params: ScanParams, require_global: bool = True
    ) -> CacheNode | None:
        """Most specific node whose scan can seed a search for ``query``.

        A found node becomes the current node.
        """
        node_id = find_compatible_node(
            self._nodes,
            self._root_id,
            self._current_id,
            query,
            params,
            require_global,
        )
        if node_id is None:
            return None
        self._current_id = node_id
        return self._nodes[node_id]

    def find_longest_prefix(
        self, query: str, params: ScanParams, require_global: bool = True
    ) -> CacheNode | None:
        """Tree-wide longest compatible prefix, ignoring the current node."""
        return self.get(
            find_longest_prefix_node(
                self._nodes, self._root_id, query, params, require_global
            )
        )

    def find_child(
        self, parent: CacheNode, query: str, params: ScanParams, is_global: bool
    ) -> CacheNode | None:
        """Existing child of ``parent`` for exactly this query and params."""
        child = self.get(parent.children.get(query))
        if child is None or child.params != params or child.is_global != is_global:
            return None
        return child

    def create_node(
        self,
        query: str,
        params: ScanParams,
        require_global: bool = True,
        explicit_parent: CacheNode | None = None,
    ) -> CacheNode:
        """Create a node for ``query`` and make it current.

        The node attaches to ``explicit_parent`` when given, otherwise to the
        most specific compatible node. Without a parent it becomes the new
        root and replaces the whole tree. The new node always starts empty:
        match offsets recorded for the parent's query do not hold for a
        different query.
        """
        parent: CacheNode | None = None
        if explicit_parent is not None and explicit_parent.node_id in self._nodes:
            parent = explicit_parent
        else:
            parent = self.find_compatible_node(query, params, require_global)

        node = CacheNode(
            node_id=next(self._ids),
            query=query,
            params=params,
            is_global=require_global,
            depth=parent.depth + 1 if parent else 0,
            parent_id=parent.node_id if parent else None,
        )

        if parent is not None:
            replaced = parent.children.get(query)
            if replaced is not None:
                self._drop_subtree(replaced)
            parent.children[query] = node.node_id
        else:
            if self._nodes:
                logger.debug(f"Replacing cache tree of {len(self._nodes)} nodes")
            self._nodes.clear()
            self._root_id = node.node_id

        self._nodes[node.node_id] = node
        self._current_id = node.node_id
        logger.debug(
            f"Created cache node {node.node_id} for {query!r} "
            f"(depth={node.depth}, global={node.is_global})"
        )

        self._prune(protected=node.node_id)
        return node

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def add_result(
        self, file_id: FileId, match_set: FileMatchSet, node_id: int | None = None
    ) -> None:
        """Record the scan outcome of one file. Idempotent per file.

        Files with matches go to ``results``, files without go to
        ``excluded_files``; either way the file is marked processed.
        Defaults to the current node.
        """
        node = self.get(self._current_id if node_id is None else node_id)
        if node is None:
            return

        if match_set.has_matches:
            node.results[file_id] = match_set
            node.excluded_files.discard(file_id)
        else:
            node.results.pop(file_id, None)
            node.excluded_files.add(file_id)

        node.processed_files.add(file_id)

    def mark_complete(self, node_id: int | None = None) -> None:
        node = self.get(self._current_id if node_id is None else node_id)
        if node is not None:
            node.is_complete = True

    def should_process(self, file_id: FileId, node_id: int | None = None) -> bool:
        """False when the file was already scanned under the node."""
        node = self.get(self._current_id if node_id is None else node_id)
        if node is None:
            return True
        return (
            file_id not in node.processed_files and file_id not in node.excluded_files
        )

    def cached_result(
        self, file_id: FileId, node_id: int | None = None
    ) -> FileMatchSet | None:
        node = self.get(self._current_id if node_id is None else node_id)
        if node is None or file_id not in node.processed_files:
            return None
        return node.results.get(file_id)

    # ------------------------------------------------------------------
    # File maintenance
    # ------------------------------------------------------------------

    def remove_file(self, file_id: FileId) -> None:
        """Purge a deleted file from every node."""
        for node in self._nodes.values():
            node.results.pop(file_id, None)
            node.processed_files.discard(file_id)
            node.excluded_files.discard(file_id)

    def invalidate_file(self, file_id: FileId) -> None:
        """Force a modified file to be re-scanned.

        ``results`` entries are kept so the file stays in scope for nested
        searches until the re-scan replaces or removes them.
        """
        for node in self._nodes.values():
            node.processed_files.discard(file_id)
            node.excluded_files.discard(file_id)

    def clear(self) -> None:
        self._nodes.clear()
        self._root_id = None
        self._current_id = None

    # ------------------------------------------------------------------
    # Tree walks
    # ------------------------------------------------------------------

    def get_nearest_global_ancestor(
        self, start: CacheNode | None = None
    ) -> CacheNode | None:
        """Closest global node at or above ``start`` (default: current)."""
        start_id = start.node_id if start is not None else self._current_id
        return self.get(nearest_global_ancestor(self._nodes, start_id))

    def get_ancestor_at_depth(
        self, depth: int, start: CacheNode | None = None
    ) -> CacheNode | None:
        start_id = start.node_id if start is not None else self._current_id
        return self.get(ancestor_at_depth(self._nodes, start_id, depth))

    def leaves(self) -> list[CacheNode]:
        return [self._nodes[i] for i in enumerate_leaves(self._nodes, self._root_id)]

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def _prune(self, protected: int | None = None) -> None:
        while len(self._nodes) > self.max_size:
            candidates = [
                leaf_id
                for leaf_id in enumerate_leaves(self._nodes, self._root_id)
                if leaf_id != protected
            ]
            if not candidates:
                candidates = enumerate_leaves(self._nodes, self._root_id)
            if not candidates:
                break
            self._remove_node(candidates[0])
            self._evictions += 1

    def _remove_node(self, node_id: int) -> None:
        node = self._nodes.pop(node_id)
        parent = self.parent_of(node)
        if parent is not None and parent.children.get(node.query) == node_id:
            del parent.children[node.query]
        if self._root_id == node_id:
            self._root_id = None
        if self._current_id == node_id:
            self._current_id = node.parent_id if parent is not None else None
        logger.debug(f"Evicted cache node {node_id} ({node.query!r})")

    def _drop_subtree(self, node_id: int) -> None:
        for descendant in reversed(subtree_ids(self._nodes, node_id)):
            self._remove_node(descendant)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": len(self._nodes),
            "max_size": self.max_size,
            "evictions": self._evictions,
            "root_query": self.root.query if self.root else None,
            "current_query": self.current_node.query if self.current_node else None,
        }
