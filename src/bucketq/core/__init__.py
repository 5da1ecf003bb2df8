"""Core / service layer: pure business logic and data transformations.

Rules
-----
* No ``print()`` calls.
* No direct store access; only the protocols in ``core.protocols``.
* No imports from ``cli`` or ``infra``.
* All functions must be fully typed and deterministic.
"""

from bucketq.core.models import (
    BucketListing,
    BucketPath,
    BucketStats,
    Child,
    Leaf,
    SubBucket,
    TreeLeaf,
    TreeNode,
)
from bucketq.core.protocols import Bucket, BucketStore, Transaction
from bucketq.core.query_service import QueryService
from bucketq.core.resolver import DEFAULT_SEPARATOR, BucketResolver

__all__: list[str] = [
    "DEFAULT_SEPARATOR",
    "Bucket",
    "BucketListing",
    "BucketPath",
    "BucketResolver",
    "BucketStats",
    "BucketStore",
    "Child",
    "Leaf",
    "QueryService",
    "SubBucket",
    "Transaction",
    "TreeLeaf",
    "TreeNode",
]
