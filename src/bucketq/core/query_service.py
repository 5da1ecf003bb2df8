"""Core query service: the five store operations.

This is the central service class consumed by the CLI layer.  It
depends on a :class:`~bucketq.core.protocols.BucketStore` injected at
construction time (dependency inversion), keeping the core free of any
``lmdb`` import.

Guarantees
----------
* No ``print()`` and no writes to stdout; results are returned as
  immutable models and rendered by the CLI layer.
* Every operation runs in exactly one transaction.  Reads always roll
  back; :meth:`QueryService.set_key` commits only if every step succeeds.
* Only :class:`~bucketq.exceptions.BucketqError` subclasses escape.
"""

from __future__ import annotations

import logging
import os

from bucketq.core.models import (
    BucketListing,
    Child,
    Leaf,
    SubBucket,
    TreeLeaf,
    TreeNode,
)
from bucketq.core.protocols import Bucket, BucketStore, Transaction
from bucketq.core.resolver import DEFAULT_SEPARATOR, BucketResolver
from bucketq.exceptions import BucketNotFoundError, KeyNotFoundError

logger = logging.getLogger(__name__)


class QueryService:
    """List, read, write and dump buckets of an open store.

    Parameters
    ----------
    store:
        Any object satisfying the :class:`BucketStore` protocol.
    separator:
        String separating bucket names in a bucket path.
    """

    def __init__(self, store: BucketStore, *, separator: str = DEFAULT_SEPARATOR) -> None:
        self._store: BucketStore = store
        self._resolver = BucketResolver(separator)

    @property
    def separator(self) -> str:
        return self._resolver.separator

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_buckets(self, *, with_stats: bool = False) -> list[BucketListing]:
        """Return the top-level buckets in key order."""
        listings: list[BucketListing] = []
        with self._store.read() as tx:
            for child in tx.children():
                if not isinstance(child, SubBucket):
                    continue
                stats = None
                if with_stats:
                    bucket = tx.bucket(child.name)
                    stats = bucket.stats() if bucket is not None else None
                listings.append(BucketListing(name=child.name, stats=stats))
        return listings

    def list_keys(self, path: str) -> list[Child]:
        """Return the direct children of the bucket at *path* in key order.

        Raises
        ------
        BucketNotFoundError
            If any segment of *path* does not name a bucket.
        """
        with self._store.read() as tx:
            bucket = self._require_bucket(tx, path)
            return list(bucket.children())

    def get_key(self, path: str, key: str) -> bytes:
        """Return the value stored at *key* in the bucket at *path*.

        Raises
        ------
        BucketNotFoundError
            If any segment of *path* does not name a bucket.
        KeyNotFoundError
            If *key* holds no value (absent, or a nested bucket).
        """
        with self._store.read() as tx:
            bucket = self._require_bucket(tx, path)
            value = bucket.get(os.fsencode(key))
            if value is None:
                raise KeyNotFoundError(f'key "{key}" in bucket "{path}" does not exist')
            return value

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_key(self, path: str, key: str, value: str | bytes) -> None:
        """Store *value* at *key*, creating every bucket along *path*.

        Runs in one write transaction; nothing is persisted unless every
        bucket creation and the final put succeed.
        """
        raw = value if isinstance(value, bytes) else os.fsencode(value)
        with self._store.write() as tx:
            bucket = self._resolver.resolve_or_create(tx, path)
            bucket.put(os.fsencode(key), raw)
        logger.debug("set %r in bucket %r (%d bytes)", key, path, len(raw))

    # ------------------------------------------------------------------
    # Tree dump
    # ------------------------------------------------------------------

    def dump_tree(self) -> TreeNode:
        """Snapshot the whole hierarchy in a single read transaction.

        Each level lists its sub-buckets sorted by name, then its leaves
        in key order.
        """
        with self._store.read() as tx:
            return self._walk(tx, None)

    def _walk(self, parent: Transaction | Bucket, name: bytes | None) -> TreeNode:
        bucket_names: list[bytes] = []
        leaves: list[TreeLeaf] = []
        for child in parent.children():
            if isinstance(child, Leaf):
                leaves.append(TreeLeaf(key=child.key, size=len(child.value)))
            else:
                bucket_names.append(child.name)

        nodes: list[TreeNode] = []
        for bucket_name in sorted(bucket_names):
            bucket = parent.bucket(bucket_name)
            if bucket is None:
                continue
            nodes.append(self._walk(bucket, bucket_name))
        return TreeNode(name=name, buckets=tuple(nodes), leaves=tuple(leaves))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_bucket(self, tx: Transaction, path: str) -> Bucket:
        bucket = self._resolver.resolve(tx, path)
        if bucket is None:
            raise BucketNotFoundError(f'bucket "{path}" does not exist')
        return bucket
