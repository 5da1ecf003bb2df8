"""Domain models for bucketq.

All models are **frozen** dataclasses: immutable value objects with no
behaviour beyond data access.  They carry zero I/O, zero dependencies on
external packages, and remain valid after the transaction that produced
them has ended.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Union


# ---------------------------------------------------------------------------
# Bucket paths
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class BucketPath:
    """An operator-supplied bucket path split into byte segments.

    ``"a.b.c"`` with separator ``"."`` becomes ``(b"a", b"b", b"c")``.
    Segments may be empty when the text is malformed (``"a..b"``); it is
    up to the resolver to reject them.
    """

    text: str
    """The path exactly as the operator typed it."""

    segments: tuple[bytes, ...]

    @classmethod
    def parse(cls, text: str, separator: str) -> BucketPath:
        """Split *text* on *separator*.

        Raises :class:`ValueError` when *separator* is empty; callers in
        the core layer translate it to a domain error.
        """
        if not separator:
            raise ValueError("bucket separator must not be empty")
        return cls(
            text=text,
            segments=tuple(os.fsencode(part) for part in text.split(separator)),
        )

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return self.text


# ---------------------------------------------------------------------------
# Direct children of a bucket
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SubBucket:
    """A child whose name denotes a nested bucket."""

    name: bytes


@dataclass(frozen=True, slots=True)
class Leaf:
    """A child whose name maps to a stored value."""

    key: bytes
    value: bytes

    @property
    def name(self) -> bytes:
        return self.key


Child = Union[SubBucket, Leaf]
"""One direct entry of a bucket, tagged once while iterating."""


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class BucketStats:
    """Page and size statistics for a bucket and everything nested in it.

    Counts are summed over the bucket and its sub-buckets; ``depth`` is
    the deepest B+tree among them.
    """

    key_count: int = 0
    """Records stored, including the markers of nested buckets."""

    depth: int = 0
    """B+tree depth.  Zero for a bucket that has never held a record."""

    branch_pages: int = 0
    branch_overflow_pages: int = 0
    leaf_pages: int = 0
    leaf_overflow_pages: int = 0

    branch_alloc: int = 0
    """Bytes allocated for branch pages."""

    branch_inuse: int = 0
    """Estimated bytes of branch pages holding data."""

    leaf_alloc: int = 0
    """Bytes allocated for leaf and overflow pages."""

    leaf_inuse: int = 0
    """Estimated bytes of leaf pages holding data."""

    page_size: int = 0

    def __add__(self, other: BucketStats) -> BucketStats:
        return BucketStats(
            key_count=self.key_count + other.key_count,
            depth=max(self.depth, other.depth),
            branch_pages=self.branch_pages + other.branch_pages,
            branch_overflow_pages=self.branch_overflow_pages + other.branch_overflow_pages,
            leaf_pages=self.leaf_pages + other.leaf_pages,
            leaf_overflow_pages=self.leaf_overflow_pages + other.leaf_overflow_pages,
            branch_alloc=self.branch_alloc + other.branch_alloc,
            branch_inuse=self.branch_inuse + other.branch_inuse,
            leaf_alloc=self.leaf_alloc + other.leaf_alloc,
            leaf_inuse=self.leaf_inuse + other.leaf_inuse,
            page_size=self.page_size or other.page_size,
        )


@dataclass(frozen=True, slots=True)
class BucketListing:
    """A top-level bucket name with optional statistics."""

    name: bytes
    stats: BucketStats | None = None


# ---------------------------------------------------------------------------
# Tree snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TreeLeaf:
    """A leaf key and the length of its value in bytes."""

    key: bytes
    size: int


@dataclass(frozen=True, slots=True)
class TreeNode:
    """One bucket level of the dumped hierarchy.

    ``buckets`` is sorted by name; ``leaves`` keeps the store's key
    order.  The root node has ``name=None``.
    """

    name: bytes | None
    buckets: tuple[TreeNode, ...] = ()
    leaves: tuple[TreeLeaf, ...] = ()
