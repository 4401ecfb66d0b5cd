"""Unit tests for the search cache tree."""

import pytest

from deep_search.cache.search_cache import (
    CacheNode,
    SearchCache,
    enumerate_leaves,
    find_compatible_node,
    find_longest_prefix_node,
    is_compatible,
    nearest_global_ancestor,
)
from deep_search.types import FileMatchSet, Match, ScanParams, SearchMode

PARAMS = ScanParams()


def match_set(file_id: str, *texts: str) -> FileMatchSet:
    matches = []
    offset = 0
    for text in texts:
        matches.append(
            Match(
                start=offset,
                end=offset + len(text),
                text=text,
                start_line=1,
                start_column=offset,
                end_line=1,
                end_column=offset + len(text),
            )
        )
        offset += len(text) + 1
    return FileMatchSet(file_id=file_id, source=" ".join(texts), matches=matches)


class TestCompatibility:
    """Tests for is_compatible and the pure tree walks."""

    def test_prefix_and_params_must_match(self) -> None:
        """Test compatibility needs a query prefix and equal params."""
        node = CacheNode(node_id=0, query="fo", params=PARAMS)

        assert is_compatible(node, "foo", PARAMS)
        assert is_compatible(node, "fo", PARAMS)
        assert not is_compatible(node, "bar", PARAMS)
        assert not is_compatible(node, "foo", ScanParams(match_case=True))
        assert not is_compatible(node, "foo", ScanParams(include="*.py"))
        assert not is_compatible(
            node, "foo", ScanParams(search_mode=SearchMode.REGEX)
        )

    def test_global_search_skips_refinement_nodes(self) -> None:
        """Test global searches ignore refinement nodes."""
        node = CacheNode(node_id=0, query="fo", params=PARAMS, is_global=False)
        assert not is_compatible(node, "foo", PARAMS, require_global=True)
        assert is_compatible(node, "foo", PARAMS, require_global=False)

    def test_longest_prefix_over_arena(self) -> None:
        """Test the longest compatible prefix wins."""
        nodes = {
            0: CacheNode(node_id=0, query="f", params=PARAMS, children={"fo": 1, "fx": 2}),
            1: CacheNode(node_id=1, query="fo", params=PARAMS, depth=1, parent_id=0, children={"foo": 3}),
            2: CacheNode(node_id=2, query="fx", params=PARAMS, depth=1, parent_id=0),
            3: CacheNode(node_id=3, query="foo", params=PARAMS, depth=2, parent_id=1),
        }
        assert find_longest_prefix_node(nodes, 0, "food", PARAMS) == 3
        assert find_longest_prefix_node(nodes, 0, "fob", PARAMS) == 1
        assert find_longest_prefix_node(nodes, 0, "zzz", PARAMS) is None
        assert find_longest_prefix_node(nodes, None, "foo", PARAMS) is None

    def test_compatible_node_prefers_current_child(self) -> None:
        """Test lookup starts from the current node."""
        nodes = {
            0: CacheNode(node_id=0, query="f", params=PARAMS, children={"fo": 1}),
            1: CacheNode(node_id=1, query="fo", params=PARAMS, depth=1, parent_id=0),
        }
        assert find_compatible_node(nodes, 0, 0, "foo", PARAMS) == 1
        assert find_compatible_node(nodes, 0, 1, "foo", PARAMS) == 1
        assert find_compatible_node(nodes, 0, None, "fa", PARAMS) == 0

    def test_leaves_in_pre_order(self) -> None:
        """Test leaves are enumerated in pre-order."""
        nodes = {
            0: CacheNode(node_id=0, query="", params=PARAMS, children={"a": 1, "b": 2}),
            1: CacheNode(node_id=1, query="a", params=PARAMS, children={"ab": 3}),
            2: CacheNode(node_id=2, query="b", params=PARAMS),
            3: CacheNode(node_id=3, query="ab", params=PARAMS),
        }
        assert enumerate_leaves(nodes, 0) == [3, 2]

    def test_nearest_global_ancestor(self) -> None:
        """Test the nearest global ancestor lookup."""
        nodes = {
            0: CacheNode(node_id=0, query="foo", params=PARAMS, children={"bar": 1}),
            1: CacheNode(node_id=1, query="bar", params=PARAMS, is_global=False, parent_id=0),
        }
        assert nearest_global_ancestor(nodes, 1) == 0
        assert nearest_global_ancestor(nodes, 0) == 0
        assert nearest_global_ancestor(nodes, None) is None


class TestNodeCreation:
    """Tests for SearchCache.create_node and lookup."""

    def test_first_node_becomes_root(self) -> None:
        """Test the first node becomes root and current."""
        cache = SearchCache()
        node = cache.create_node("foo", PARAMS)

        assert cache.root is node
        assert cache.current_node is node
        assert node.depth == 0
        assert node.parent_id is None

    def test_extending_query_attaches_child(self) -> None:
        """Test extended queries attach as children."""
        cache = SearchCache()
        root = cache.create_node("f", PARAMS)
        child = cache.create_node("fo", PARAMS)
        grandchild = cache.create_node("foo", PARAMS)

        assert child.parent_id == root.node_id
        assert grandchild.parent_id == child.node_id
        assert grandchild.depth == 2
        assert root.children == {"fo": child.node_id}
        assert cache.parent_of(grandchild) is child
        assert cache.parent_of(root) is None

    def test_unrelated_query_replaces_tree(self) -> None:
        """Test an unrelated query starts a new tree."""
        cache = SearchCache()
        cache.create_node("foo", PARAMS)
        cache.create_node("foobar", PARAMS)

        node = cache.create_node("zzz", PARAMS)

        assert cache.root is node
        assert cache.size == 1

    def test_find_compatible_never_returns_non_prefix(self) -> None:
        """Test lookup never returns a non-prefix node."""
        cache = SearchCache()
        cache.create_node("foo", PARAMS)
        cache.create_node("foobar", PARAMS)

        for query in ["foob", "foobarbaz", "fo", "xyz", "foo"]:
            found = cache.find_compatible_node(query, PARAMS)
            if found is not None:
                assert query.startswith(found.query)
                assert found.params == PARAMS

    def test_find_compatible_rejects_param_mismatch(self) -> None:
        """Test lookup rejects nodes with other params."""
        cache = SearchCache()
        cache.create_node("foo", PARAMS)
        assert cache.find_compatible_node("foobar", ScanParams(whole_word=True)) is None

    def test_find_compatible_sets_current(self) -> None:
        """Test a successful lookup moves the current node."""
        cache = SearchCache()
        root = cache.create_node("f", PARAMS)
        cache.create_node("fo", PARAMS)
        cache.set_current(root.node_id)

        found = cache.find_compatible_node("fox", PARAMS)
        assert found.query == "fo"
        assert cache.current_node is found

    def test_explicit_parent_for_refinement(self) -> None:
        """Test refinements attach under an explicit parent."""
        cache = SearchCache()
        scope = cache.create_node("import", PARAMS)
        refinement = cache.create_node(
            "react", PARAMS, require_global=False, explicit_parent=scope
        )

        assert refinement.parent_id == scope.node_id
        assert refinement.is_global is False
        assert cache.get_nearest_global_ancestor() is scope
        assert cache.find_child(scope, "react", PARAMS, is_global=False) is refinement

    def test_replacing_child_drops_its_subtree(self) -> None:
        """Test replacing a child drops its subtree."""
        cache = SearchCache()
        scope = cache.create_node("a", PARAMS)
        old = cache.create_node("x", PARAMS, require_global=False, explicit_parent=scope)
        nested = cache.create_node("xy", PARAMS, require_global=False, explicit_parent=old)

        new = cache.create_node("x", PARAMS, require_global=False, explicit_parent=scope)

        assert not cache.contains(old.node_id)
        assert not cache.contains(nested.node_id)
        assert scope.children == {"x": new.node_id}

    def test_ancestor_at_depth(self) -> None:
        """Test ancestor lookup by depth."""
        cache = SearchCache()
        root = cache.create_node("a", PARAMS)
        cache.create_node("ab", PARAMS)
        cache.create_node("abc", PARAMS)

        assert cache.get_ancestor_at_depth(0) is root
        assert cache.get_ancestor_at_depth(5) is None


class TestResults:
    """Tests for result bookkeeping."""

    def test_add_result_with_matches(self) -> None:
        """Test files with matches go to results."""
        cache = SearchCache()
        node = cache.create_node("foo", PARAMS)
        cache.add_result("/a", match_set("/a", "foo"))

        assert "/a" in node.results
        assert "/a" in node.processed_files
        assert "/a" not in node.excluded_files
        assert not cache.should_process("/a")

    def test_add_result_without_matches(self) -> None:
        """Test files without matches go to excluded files."""
        cache = SearchCache()
        node = cache.create_node("foo", PARAMS)
        cache.add_result("/b", FileMatchSet(file_id="/b", source="bar"))

        assert "/b" not in node.results
        assert "/b" in node.excluded_files
        assert "/b" in node.processed_files
        assert cache.cached_result("/b") is None

    def test_add_result_is_idempotent(self) -> None:
        """Test recording the same file twice."""
        cache = SearchCache()
        node = cache.create_node("foo", PARAMS)
        first = match_set("/a", "foo", "foo")
        cache.add_result("/a", first)
        cache.add_result("/b", FileMatchSet(file_id="/b", source=""))

        snapshot = (dict(node.results), set(node.excluded_files), set(node.processed_files))
        cache.add_result("/a", first)
        cache.add_result("/b", FileMatchSet(file_id="/b", source=""))

        assert (dict(node.results), set(node.excluded_files), set(node.processed_files)) == snapshot

    def test_add_result_to_missing_node_is_ignored(self) -> None:
        """Test results for an unknown node are ignored."""
        cache = SearchCache()
        cache.add_result("/a", match_set("/a", "foo"), node_id=42)
        assert cache.size == 0

    def test_new_node_starts_empty(self) -> None:
        """Test a new child starts without results."""
        cache = SearchCache()
        cache.create_node("foo", PARAMS)
        cache.add_result("/a", match_set("/a", "foo"))

        child = cache.create_node("foob", PARAMS)
        assert child.results == {}
        assert cache.should_process("/a")

    def test_remove_file_purges_every_node(self) -> None:
        """Test remove_file purges the file everywhere."""
        cache = SearchCache()
        root = cache.create_node("f", PARAMS)
        cache.add_result("/a", match_set("/a", "f"))
        child = cache.create_node("fo", PARAMS)
        cache.add_result("/a", match_set("/a", "fo"))

        cache.remove_file("/a")

        for node in (root, child):
            assert "/a" not in node.results
            assert "/a" not in node.processed_files
            assert "/a" not in node.excluded_files

    def test_invalidate_keeps_results_but_forces_rescan(self) -> None:
        """Test invalidation keeps results but forces a rescan."""
        cache = SearchCache()
        node = cache.create_node("foo", PARAMS)
        cache.add_result("/a", match_set("/a", "foo"))
        cache.add_result("/b", FileMatchSet(file_id="/b", source=""))

        cache.invalidate_file("/a")
        cache.invalidate_file("/b")

        assert "/a" in node.results
        assert cache.should_process("/a")
        assert cache.should_process("/b")
        assert cache.cached_result("/a") is None

    def test_clear(self) -> None:
        """Test clear empties the cache."""
        cache = SearchCache()
        cache.create_node("foo", PARAMS)
        cache.clear()

        assert cache.size == 0
        assert cache.root is None
        assert cache.current_node is None


class TestEviction:
    """Tests for the node-count bound."""

    def test_twenty_first_node_evicts_one_leaf(self) -> None:
        """Test exceeding the bound evicts one leaf."""
        cache = SearchCache(max_size=20)
        scope = cache.create_node("base", PARAMS)
        for i in range(19):
            cache.create_node(f"q{i}", PARAMS, require_global=False, explicit_parent=scope)
        assert cache.size == 20

        before = dict(cache.nodes)
        newest = cache.create_node("q-new", PARAMS, require_global=False, explicit_parent=scope)

        assert cache.size == 20
        evicted = set(before) - set(cache.nodes)
        assert len(evicted) == 1
        evicted_node = before[evicted.pop()]
        assert evicted_node.is_leaf
        assert evicted_node.query == "q0"
        assert cache.contains(newest.node_id)
        assert cache.contains(scope.node_id)

    def test_eviction_never_removes_inner_nodes(self) -> None:
        """Test eviction keeps every node's parent."""
        cache = SearchCache(max_size=5)
        query = ""
        for ch in "abcdefgh":
            query += ch
            cache.create_node(query, PARAMS)

            assert cache.size <= 5
            for node in cache.nodes.values():
                if node.parent_id is not None:
                    assert cache.contains(node.parent_id)

    def test_new_node_survives_when_other_leaves_exist(self) -> None:
        """Test the new node is kept while other leaves exist."""
        cache = SearchCache(max_size=2)
        scope = cache.create_node("a", PARAMS)
        cache.create_node("x", PARAMS, require_global=False, explicit_parent=scope)
        newest = cache.create_node("y", PARAMS, require_global=False, explicit_parent=scope)

        assert cache.contains(newest.node_id)
        assert list(scope.children) == ["y"]

    def test_chain_evicts_new_leaf_as_last_resort(self) -> None:
        """Test a pure chain evicts the new leaf last."""
        cache = SearchCache(max_size=1)
        root = cache.create_node("a", PARAMS)
        newest = cache.create_node("ab", PARAMS)

        assert cache.size == 1
        assert not cache.contains(newest.node_id)
        assert cache.current_node is root

    def test_invalid_max_size(self) -> None:
        """Test max_size below 1 is rejected."""
        with pytest.raises(ValueError):
            SearchCache(max_size=0)

    def test_stats(self) -> None:
        """Test cache statistics."""
        cache = SearchCache(max_size=2)
        cache.create_node("a", PARAMS)
        cache.create_node("ab", PARAMS)
        cache.create_node("abc", PARAMS)

        stats = cache.get_stats()
        assert stats["size"] == 2
        assert stats["evictions"] == 1
        assert stats["root_query"] == "a"
        assert stats["current_query"] == "ab"
