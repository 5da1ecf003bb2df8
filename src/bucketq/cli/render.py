"""Plain-text rendering of query results to standard output.

Keys, bucket names and values are arbitrary bytes, so every renderer
writes to a binary stream and copies them verbatim.  Rich is never
involved here: stdout must stay byte-exact for piping.
"""

from __future__ import annotations

from typing import BinaryIO

from bucketq.core.models import BucketListing, BucketStats, Child, SubBucket, TreeNode
from bucketq.exceptions import ShortWriteError

INDENT = b"  "


def _count(value: int, width: int) -> str:
    """Right-align *value* in *width* columns; zero renders as blanks."""
    return f"{value:{width}d}" if value else " " * width


def _stats_lines(stats: BucketStats) -> list[str]:
    return [
        "",
        f"  Keys:  {_count(stats.key_count, 10)}",
        f"  Depth: {_count(stats.depth, 10)}",
        "",
        f"  Logical Branch Pages:           {_count(stats.branch_pages, 6)}",
        f"  Physical Branch Overflow Pages: {_count(stats.branch_overflow_pages, 6)}",
        f"  Logical Leaf Pages:             {_count(stats.leaf_pages, 6)}",
        f"  Physical Leaf Overflow Pages:   {_count(stats.leaf_overflow_pages, 6)}",
        "",
        f"  Bytes allocated for physical branch pages: {_count(stats.branch_alloc, 12)}",
        f"  Bytes in-use for branch data:              {_count(stats.branch_inuse, 12)}",
        f"  Bytes allocated for physical leaf pages:   {_count(stats.leaf_alloc, 12)}",
        f"  Bytes in-use for leaf data:                {_count(stats.leaf_inuse, 12)}",
        "",
    ]


def render_buckets(listings: list[BucketListing], out: BinaryIO) -> None:
    """One name per line, followed by a stats block when present."""
    for listing in listings:
        out.write(listing.name + b"\n")
        if listing.stats is not None:
            for line in _stats_lines(listing.stats):
                out.write(line.encode("ascii") + b"\n")


def render_keys(children: list[Child], out: BinaryIO, *, verbose: bool = False) -> None:
    """Leaf keys only, or every child tagged as bucket or value."""
    for child in children:
        if isinstance(child, SubBucket):
            if verbose:
                out.write(child.name + b" (bucket)\n")
            continue
        if verbose:
            out.write(child.key + b" -> " + child.value + b"\n")
        else:
            out.write(child.key + b"\n")


def write_value(value: bytes, out: BinaryIO, *, verbose: bool = False) -> None:
    """Write *value* exactly as stored; verbose mode adds one newline.

    Raises
    ------
    ShortWriteError
        If the stream accepted fewer bytes than *value* holds.
    """
    written = out.write(value)
    if written is not None and written != len(value):
        raise ShortWriteError(f"only wrote {written} of {len(value)} bytes")
    if verbose:
        out.write(b"\n")


def render_tree(node: TreeNode, out: BinaryIO, depth: int = 0) -> None:
    """Depth-first: each sub-bucket and its contents, then the leaves."""
    indent = INDENT * depth
    for bucket in node.buckets:
        out.write(indent + b"* " + (bucket.name or b"") + b"\n")
        render_tree(bucket, out, depth + 1)
    for leaf in node.leaves:
        out.write(indent + b" - " + leaf.key + f" ({leaf.size} bytes)\n".encode("ascii"))
