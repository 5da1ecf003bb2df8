"""Infrastructure layer: external system integration.

This layer wraps all interaction with LMDB and the filesystem.  Every
raw third-party exception must be caught here and re-raised as a
:class:`~bucketq.exceptions.BucketqError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from bucketq.infra.lmdb_store import (
    LmdbBucket,
    LmdbBucketStore,
    LmdbTransaction,
    check_readable,
    open_store,
)

__all__: list[str] = [
    "LmdbBucket",
    "LmdbBucketStore",
    "LmdbTransaction",
    "check_readable",
    "open_store",
]
