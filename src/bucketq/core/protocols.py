"""Protocols (interfaces) consumed by the core layer.

These define the contracts that the storage adapter must satisfy.  Core
code depends ONLY on these protocols and never on ``lmdb``, preserving
the dependency inversion principle.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import Protocol

from bucketq.core.models import BucketStats, Child


class Bucket(Protocol):
    """A bucket handle, valid only inside the transaction that opened it."""

    def bucket(self, name: bytes) -> Bucket | None:
        """Return the nested bucket *name*, or ``None``.

        ``None`` covers an empty name, a missing name, and a name that
        holds a value rather than a bucket.
        """
        ...  # pragma: no cover

    def create_bucket_if_not_exists(self, name: bytes) -> Bucket:
        """Return the nested bucket *name*, creating it when absent.

        Raises
        ------
        InvalidBucketPathError
            When *name* is empty.
        IncompatibleValueError
            When *name* already holds a value.
        """
        ...  # pragma: no cover

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored at *key*, or ``None`` if there is none."""
        ...  # pragma: no cover

    def put(self, key: bytes, value: bytes) -> None:
        """Store *value* at *key*, replacing any previous value.

        Raises
        ------
        KeyRequiredError
            When *key* is empty.
        IncompatibleValueError
            When *key* names a nested bucket.
        """
        ...  # pragma: no cover

    def children(self) -> Iterator[Child]:
        """Yield every direct child in key order."""
        ...  # pragma: no cover

    def stats(self) -> BucketStats:
        """Return statistics aggregated over this bucket and its descendants."""
        ...  # pragma: no cover


class Transaction(Protocol):
    """A read-only or read-write view over the whole store.

    The transaction itself acts as the root bucket: its children are the
    top-level buckets.
    """

    @property
    def writable(self) -> bool:
        ...  # pragma: no cover

    def bucket(self, name: bytes) -> Bucket | None:
        ...  # pragma: no cover

    def create_bucket_if_not_exists(self, name: bytes) -> Bucket:
        ...  # pragma: no cover

    def children(self) -> Iterator[Child]:
        ...  # pragma: no cover


class BucketStore(Protocol):
    """Contract for the embedded transactional store.

    ``read()`` transactions are always rolled back when the block exits.
    ``write()`` transactions commit when the block exits cleanly and are
    rolled back when it raises.

    Implementations must map all backend-specific exceptions to
    :class:`~bucketq.exceptions.BucketqError` subclasses.
    """

    def read(self) -> AbstractContextManager[Transaction]:
        ...  # pragma: no cover

    def write(self) -> AbstractContextManager[Transaction]:
        ...  # pragma: no cover
