"""Bucket path resolution.

Walks a separator-delimited bucket path from the root of a transaction
down to the addressed bucket.  Reads use :meth:`BucketResolver.resolve`,
which never creates anything; writes use
:meth:`BucketResolver.resolve_or_create`, which materializes every
missing segment.
"""

from __future__ import annotations

from bucketq.core.models import BucketPath
from bucketq.core.protocols import Bucket, Transaction
from bucketq.exceptions import InvalidBucketPathError

DEFAULT_SEPARATOR = "."


class BucketResolver:
    """Resolve bucket paths split on a fixed *separator*.

    Raises
    ------
    InvalidBucketPathError
        If *separator* is empty.
    """

    def __init__(self, separator: str = DEFAULT_SEPARATOR) -> None:
        if not separator:
            raise InvalidBucketPathError(
                "bucket separator must not be empty",
                hint="Pass a non-empty string to -sep.",
            )
        self.separator: str = separator

    def parse(self, path: str) -> BucketPath:
        return BucketPath.parse(path, self.separator)

    def resolve(self, tx: Transaction, path: str | BucketPath) -> Bucket | None:
        """Return the bucket at *path*, or ``None`` if any segment is missing.

        An empty segment, or a segment naming a value instead of a
        bucket, counts as missing.
        """
        parsed = path if isinstance(path, BucketPath) else self.parse(path)
        first, *rest = parsed.segments

        bucket = tx.bucket(first)
        if bucket is None:
            return None

        for segment in rest:
            bucket = bucket.bucket(segment)
            if bucket is None:
                return None
        return bucket

    def resolve_or_create(self, tx: Transaction, path: str | BucketPath) -> Bucket:
        """Return the bucket at *path*, creating every missing segment.

        Raises
        ------
        InvalidBucketPathError
            If any segment is empty.
        IncompatibleValueError
            If a segment names an existing value.
        """
        parsed = path if isinstance(path, BucketPath) else self.parse(path)
        if not all(parsed.segments):
            raise InvalidBucketPathError(
                f"invalid bucket: {parsed.text!r}",
                hint=f"Bucket names between {self.separator!r} separators must not be empty.",
            )

        first, *rest = parsed.segments
        bucket = tx.create_bucket_if_not_exists(first)
        for segment in rest:
            bucket = bucket.create_bucket_if_not_exists(segment)
        return bucket
