"""Custom exception hierarchy for bucketq.

All exceptions that cross layer boundaries must inherit from
:class:`BucketqError`.  Raw ``lmdb`` exceptions must NEVER propagate
beyond the infrastructure layer: they must be caught and re-raised as
a typed subclass defined here.

Hierarchy
---------
BucketqError
├── FileOpenError
├── StoreOpenError
├── BucketNotFoundError
├── KeyNotFoundError
├── KeyRequiredError
├── IncompatibleValueError
├── InvalidBucketPathError
├── ShortWriteError
├── TransactionError
└── EnvironmentError
"""

from __future__ import annotations


class BucketqError(Exception):
    """Base exception for all bucketq errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    prefix: str = "error: "
    """Leading text the CLI prints before the message on stderr."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Opening the database --------------------------------------------------

class FileOpenError(BucketqError):
    """Raised when the database path does not exist or cannot be read."""

    prefix = "error opening db: "


class StoreOpenError(BucketqError):
    """Raised when the store rejects the file or its lock cannot be taken."""

    prefix = "error opening db: "


# --- Lookups ---------------------------------------------------------------

class BucketNotFoundError(BucketqError):
    """Raised when a bucket path does not resolve during a read."""


class KeyNotFoundError(BucketqError):
    """Raised when a key holds no value in the resolved bucket."""


# --- Writes ----------------------------------------------------------------

class KeyRequiredError(BucketqError):
    """Raised when a write is attempted with an empty key."""


class IncompatibleValueError(BucketqError):
    """Raised when a name already holds the other kind of child.

    A bucket cannot be created over a value and a value cannot be
    written over a bucket.
    """


class InvalidBucketPathError(BucketqError):
    """Raised when a bucket path or separator is malformed."""


# --- Output / transactions -------------------------------------------------

class ShortWriteError(BucketqError):
    """Raised when fewer bytes than expected reached standard output."""


class TransactionError(BucketqError):
    """Raised when the store fails to begin, commit or roll back."""


# --- Environment / tooling -------------------------------------------------

class EnvironmentError(BucketqError):
    """Raised when a required runtime dependency is not available."""
