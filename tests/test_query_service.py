"""Tests for QueryService (core/query_service.py) against a real LMDB file.

Coverage:
* Round trip and idempotence of set_key / get_key.
* Missing buckets and keys on the read paths.
* Automatic creation of intermediate buckets on the write path.
* Tagging and ordering of list_keys results.
* Ordering of the dump_tree snapshot at every depth.
* Atomicity of set_key when a step fails.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from bucketq.core.models import BucketListing, Leaf, SubBucket, TreeLeaf, TreeNode
from bucketq.core.query_service import QueryService
from bucketq.exceptions import (
    BucketNotFoundError,
    IncompatibleValueError,
    InvalidBucketPathError,
    KeyNotFoundError,
    KeyRequiredError,
)
from bucketq.infra.lmdb_store import LmdbBucketStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_buckets(store: LmdbBucketStore, *paths: tuple[bytes, ...]) -> None:
    with store.write() as tx:
        for path in paths:
            first, *rest = path
            bucket = tx.create_bucket_if_not_exists(first)
            for name in rest:
                bucket = bucket.create_bucket_if_not_exists(name)


# ---------------------------------------------------------------------------
# set_key / get_key
# ---------------------------------------------------------------------------

class TestSetAndGet:
    def test_round_trip(self, service: QueryService) -> None:
        service.set_key("foo", "k1", "value1")
        assert service.get_key("foo", "k1") == b"value1"

    def test_round_trip_nested(self, service: QueryService) -> None:
        service.set_key("a.b.c", "k", "v")
        assert service.get_key("a.b.c", "k") == b"v"

    def test_round_trip_binary_value(self, service: QueryService) -> None:
        payload = bytes(range(256))
        service.set_key("bin", "blob", payload)
        assert service.get_key("bin", "blob") == payload

    def test_empty_value_is_stored(self, service: QueryService) -> None:
        service.set_key("foo", "empty", "")
        assert service.get_key("foo", "empty") == b""

    def test_overwrite_replaces_value(self, service: QueryService) -> None:
        service.set_key("foo", "k", "old")
        service.set_key("foo", "k", "new")
        assert service.get_key("foo", "k") == b"new"

    def test_set_is_idempotent(self, service: QueryService) -> None:
        service.set_key("a.b", "k", "v")
        first = (service.list_buckets(), service.list_keys("a"), service.list_keys("a.b"))
        service.set_key("a.b", "k", "v")
        second = (service.list_buckets(), service.list_keys("a"), service.list_keys("a.b"))
        assert first == second

    def test_set_creates_only_top_level_bucket_at_root(self, service: QueryService) -> None:
        service.set_key("a.b.c", "k", "v")
        assert service.list_buckets() == [BucketListing(name=b"a")]

    def test_set_creates_missing_intermediates(self, service: QueryService) -> None:
        service.set_key("a", "x", "1")
        service.set_key("a.b.c", "k", "v")
        assert service.list_keys("a") == [SubBucket(name=b"b"), Leaf(key=b"x", value=b"1")]
        assert service.list_keys("a.b") == [SubBucket(name=b"c")]

    def test_custom_separator(self, store: LmdbBucketStore) -> None:
        service = QueryService(store, separator="/")
        service.set_key("a.b/c", "k", "v")
        assert service.list_buckets() == [BucketListing(name=b"a.b")]
        assert service.get_key("a.b/c", "k") == b"v"

    def test_get_missing_key(self, service: QueryService) -> None:
        service.set_key("foo", "k1", "value1")
        with pytest.raises(KeyNotFoundError, match='key "nope" in bucket "foo" does not exist'):
            service.get_key("foo", "nope")

    def test_get_key_naming_sub_bucket_is_missing(self, service: QueryService) -> None:
        service.set_key("foo.sub", "k", "v")
        with pytest.raises(KeyNotFoundError):
            service.get_key("foo", "sub")

    def test_get_missing_bucket(self, service: QueryService) -> None:
        with pytest.raises(BucketNotFoundError, match='bucket "foo" does not exist'):
            service.get_key("foo", "k")

    def test_get_missing_intermediate_bucket(self, service: QueryService) -> None:
        service.set_key("a.c", "k", "v")
        with pytest.raises(BucketNotFoundError, match='bucket "a.b.c" does not exist'):
            service.get_key("a.b.c", "k")


# ---------------------------------------------------------------------------
# set_key failures roll back
# ---------------------------------------------------------------------------

class TestSetAtomicity:
    def test_empty_key_leaves_no_buckets_behind(self, service: QueryService) -> None:
        with pytest.raises(KeyRequiredError):
            service.set_key("fresh.sub", "", "v")
        assert service.list_buckets() == []

    def test_bucket_over_value_is_rejected(self, service: QueryService) -> None:
        service.set_key("x", "y", "leaf")
        with pytest.raises(IncompatibleValueError):
            service.set_key("x.y.z", "k", "v")
        assert service.get_key("x", "y") == b"leaf"
        assert service.list_keys("x") == [Leaf(key=b"y", value=b"leaf")]

    def test_value_over_bucket_is_rejected(self, service: QueryService) -> None:
        service.set_key("x.y", "k", "v")
        with pytest.raises(IncompatibleValueError):
            service.set_key("x", "y", "leaf")
        assert service.get_key("x.y", "k") == b"v"

    @pytest.mark.parametrize("path", ["", "a..b", "a."])
    def test_malformed_path_is_rejected(self, service: QueryService, path: str) -> None:
        with pytest.raises(InvalidBucketPathError):
            service.set_key(path, "k", "v")
        assert service.list_buckets() == []


# ---------------------------------------------------------------------------
# list_buckets
# ---------------------------------------------------------------------------

class TestListBuckets:
    def test_empty_store(self, service: QueryService) -> None:
        assert service.list_buckets() == []

    def test_names_in_key_order(self, service: QueryService) -> None:
        for name in ("zeta", "alpha", "mid"):
            service.set_key(name, "k", "v")
        assert [b.name for b in service.list_buckets()] == [b"alpha", b"mid", b"zeta"]

    def test_stats_only_when_requested(self, service: QueryService) -> None:
        service.set_key("foo", "k", "v")
        assert service.list_buckets()[0].stats is None
        stats = service.list_buckets(with_stats=True)[0].stats
        assert stats is not None
        assert stats.key_count == 1

    def test_stats_include_nested_buckets(self, service: QueryService) -> None:
        service.set_key("foo", "a", "1")
        service.set_key("foo", "b", "2")
        service.set_key("foo.sub", "c", "3")
        stats = service.list_buckets(with_stats=True)[0].stats
        assert stats is not None
        # a, b, the "sub" marker, and c
        assert stats.key_count == 4
        assert stats.depth >= 1
        assert stats.leaf_pages >= 2


# ---------------------------------------------------------------------------
# list_keys
# ---------------------------------------------------------------------------

class TestListKeys:
    def test_children_tagged_in_key_order(self, service: QueryService, store: LmdbBucketStore) -> None:
        service.set_key("bar", "k2", "two")
        service.set_key("bar", "k1", "one")
        _make_buckets(store, (b"bar", b"b2"), (b"bar", b"b1"))
        assert service.list_keys("bar") == [
            SubBucket(name=b"b1"),
            SubBucket(name=b"b2"),
            Leaf(key=b"k1", value=b"one"),
            Leaf(key=b"k2", value=b"two"),
        ]

    def test_each_child_listed_once(self, service: QueryService) -> None:
        for key in ("a", "b", "c"):
            service.set_key("bar", key, key)
            service.set_key("bar", key, key * 2)
        children = service.list_keys("bar")
        assert [c.name for c in children] == [b"a", b"b", b"c"]

    def test_empty_bucket(self, service: QueryService, store: LmdbBucketStore) -> None:
        _make_buckets(store, (b"empty",))
        assert service.list_keys("empty") == []

    def test_missing_bucket(self, service: QueryService) -> None:
        with pytest.raises(BucketNotFoundError):
            service.list_keys("nope")

    def test_missing_intermediate(self, service: QueryService) -> None:
        service.set_key("a", "k", "v")
        with pytest.raises(BucketNotFoundError):
            service.list_keys("a.b.c")

    def test_path_through_value_is_missing(self, service: QueryService) -> None:
        service.set_key("a", "b", "v")
        with pytest.raises(BucketNotFoundError):
            service.list_keys("a.b")


# ---------------------------------------------------------------------------
# dump_tree
# ---------------------------------------------------------------------------

class TestDumpTree:
    def test_empty_store(self, service: QueryService) -> None:
        assert service.dump_tree() == TreeNode(name=None)

    def test_structure(self, service: QueryService, store: LmdbBucketStore) -> None:
        service.set_key("root", "z", "last")
        service.set_key("root", "a", "x")
        service.set_key("root.m", "inner", "12345")
        _make_buckets(store, (b"root", b"b"), (b"other",))

        tree = service.dump_tree()

        assert tree == TreeNode(
            name=None,
            buckets=(
                TreeNode(name=b"other"),
                TreeNode(
                    name=b"root",
                    buckets=(
                        TreeNode(name=b"b"),
                        TreeNode(name=b"m", leaves=(TreeLeaf(key=b"inner", size=5),)),
                    ),
                    leaves=(TreeLeaf(key=b"a", size=1), TreeLeaf(key=b"z", size=4)),
                ),
            ),
        )

    def test_buckets_sorted_at_every_depth(self, service: QueryService) -> None:
        for path in ("c.z", "c.a", "a.y", "a.b", "b"):
            service.set_key(path, "k", "v")

        def _check(node: TreeNode) -> None:
            names = [child.name for child in node.buckets]
            assert names == sorted(names)
            for child in node.buckets:
                _check(child)

        tree = service.dump_tree()
        assert [n.name for n in tree.buckets] == [b"a", b"b", b"c"]
        _check(tree)

    def test_uses_a_single_read_transaction(self) -> None:
        store = MagicMock()
        tx = store.read.return_value.__enter__.return_value
        tx.children.return_value = iter([])

        QueryService(store).dump_tree()

        store.read.assert_called_once_with()
        store.write.assert_not_called()
