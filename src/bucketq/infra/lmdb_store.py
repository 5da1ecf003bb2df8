"""LMDB-backed implementation of :class:`~bucketq.core.protocols.BucketStore`.

This module is the **only** place in the codebase that imports ``lmdb``.
All ``lmdb`` exceptions are caught here and re-raised as typed
:class:`~bucketq.exceptions.BucketqError` subclasses: nothing raw
escapes the infrastructure boundary.

Record layout
-------------
Every bucket shares one LMDB named database, ``bucketq``, so the number
of buckets is bounded only by the map size.  A record is keyed by its
parent bucket path and its own name::

    >H segment count | (>H length, segment bytes) per parent segment | name

The count and lengths make the key injective, and all direct children
of a bucket share the encoded parent path as a prefix, sorted by name.
Each record value is tagged by its first byte:

* ``0x00``: the key names a nested bucket (no payload).
* ``0x01``: the key maps to a value; the payload follows the tag.
"""

from __future__ import annotations

import logging
import struct
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import lmdb

from bucketq.config import StoreConfig
from bucketq.core.models import BucketStats, Child, Leaf, SubBucket
from bucketq.exceptions import (
    FileOpenError,
    IncompatibleValueError,
    InvalidBucketPathError,
    KeyRequiredError,
    StoreOpenError,
    TransactionError,
)

logger = logging.getLogger(__name__)

DB_NAME = b"bucketq"
TAG_BUCKET = b"\x00"
TAG_VALUE = b"\x01"

_LENGTH = struct.Struct(">H")

# mdb.c PAGEHDRSZ, NODESIZE, MDB_MINKEYS and sizeof(pgno_t), plus the
# 2-byte slot each node takes.
_PAGE_HEADER = 16
_NODE_HEADER = 8
_NODE_SLOT = 2
_MIN_KEYS = 2
_OVERFLOW_POINTER = 8

_LOCK_RETRY_INTERVAL = 0.05


def record_prefix(path: tuple[bytes, ...]) -> bytes:
    """Return the key prefix shared by every direct child of *path*."""
    return _LENGTH.pack(len(path)) + b"".join(
        _LENGTH.pack(len(segment)) + segment for segment in path
    )


def record_key(path: tuple[bytes, ...], name: bytes) -> bytes:
    """Return the key of the record *name* inside the bucket at *path*."""
    return record_prefix(path) + name


def _describe(path: tuple[bytes, ...]) -> str:
    return ".".join(segment.decode("utf-8", "backslashreplace") for segment in path)


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


@contextmanager
def _translated(action: str) -> Iterator[None]:
    """Re-raise any ``lmdb.Error`` raised in the block as TransactionError."""
    try:
        yield
    except lmdb.Error as exc:
        raise TransactionError(f"{action}: {exc}") from exc


def estimate_stats(records: list[tuple[int, int]], page_size: int) -> BucketStats:
    """Estimate the B+tree a bucket's records would occupy on their own.

    *records* holds ``(key length, value length)`` pairs as stored.  Leaf
    nodes are packed into pages the way LMDB lays them out, values too
    large for a node move to overflow pages, and branch levels are added
    until a single root page remains.
    """
    if not records:
        return BucketStats(page_size=page_size)

    usable = page_size - _PAGE_HEADER
    node_max = ((usable // _MIN_KEYS) & ~1) - _NODE_SLOT

    leaf_bytes = 0
    overflow_pages = 0
    key_bytes = 0
    for key_len, value_len in records:
        key_bytes += key_len
        node = _NODE_HEADER + key_len + value_len
        if node > node_max:
            overflow_pages += _ceil_div(_PAGE_HEADER + value_len, page_size)
            node = _NODE_HEADER + key_len + _OVERFLOW_POINTER
        leaf_bytes += node + _NODE_SLOT
    leaf_pages = _ceil_div(leaf_bytes, usable)

    entry = _NODE_HEADER + _NODE_SLOT + key_bytes // len(records)
    per_page = max(_MIN_KEYS, usable // entry)
    depth = 1
    branch_pages = 0
    branch_inuse = 0
    children = leaf_pages
    while children > 1:
        pages = _ceil_div(children, per_page)
        branch_pages += pages
        branch_inuse += pages * _PAGE_HEADER + children * entry
        depth += 1
        children = pages

    return BucketStats(
        key_count=len(records),
        depth=depth,
        branch_pages=branch_pages,
        branch_overflow_pages=0,
        leaf_pages=leaf_pages,
        leaf_overflow_pages=overflow_pages,
        branch_alloc=branch_pages * page_size,
        branch_inuse=branch_inuse,
        leaf_alloc=(leaf_pages + overflow_pages) * page_size,
        leaf_inuse=leaf_pages * _PAGE_HEADER + leaf_bytes,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# Bucket handle
# ---------------------------------------------------------------------------

class LmdbBucket:
    """A bucket inside an open :class:`LmdbTransaction`.

    Satisfies :class:`~bucketq.core.protocols.Bucket` structurally.  The
    handle holds no LMDB resources of its own; it is a key prefix read
    through the transaction.
    """

    def __init__(self, tx: LmdbTransaction, path: tuple[bytes, ...]) -> None:
        self._tx = tx
        self._prefix = record_prefix(path)
        self.path: tuple[bytes, ...] = path

    # ------------------------------------------------------------------
    # Nested buckets
    # ------------------------------------------------------------------

    def bucket(self, name: bytes) -> LmdbBucket | None:
        if not name:
            return None
        raw = self._get_raw(name)
        if raw is None or raw[:1] != TAG_BUCKET:
            return None
        return LmdbBucket(self._tx, self.path + (name,))

    def create_bucket_if_not_exists(self, name: bytes) -> LmdbBucket:
        if not name:
            raise InvalidBucketPathError("bucket name required")
        raw = self._get_raw(name)
        if raw is not None:
            if raw[:1] != TAG_BUCKET:
                raise IncompatibleValueError(
                    f'cannot create bucket "{_describe(self.path + (name,))}": '
                    "key already holds a value",
                )
            return LmdbBucket(self._tx, self.path + (name,))

        self._put_raw(name, TAG_BUCKET)
        logger.debug("created bucket %s", _describe(self.path + (name,)))
        return LmdbBucket(self._tx, self.path + (name,))

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def get(self, key: bytes) -> bytes | None:
        if not key:
            return None
        raw = self._get_raw(key)
        if raw is None or raw[:1] != TAG_VALUE:
            return None
        return raw[1:]

    def put(self, key: bytes, value: bytes) -> None:
        if not key:
            raise KeyRequiredError("key required")
        raw = self._get_raw(key)
        if raw is not None and raw[:1] == TAG_BUCKET:
            raise IncompatibleValueError(
                f'cannot write key "{key.decode("utf-8", "backslashreplace")}": '
                f'it is a bucket in "{_describe(self.path)}"',
            )
        self._put_raw(key, TAG_VALUE + value)

    # ------------------------------------------------------------------
    # Iteration / stats
    # ------------------------------------------------------------------

    def children(self) -> Iterator[Child]:
        for key, raw in self._records():
            yield _decode_child(key[len(self._prefix):], raw)

    def stats(self) -> BucketStats:
        records: list[tuple[int, int]] = []
        nested: list[bytes] = []
        for key, raw in self._records():
            records.append((len(key), len(raw)))
            if raw[:1] == TAG_BUCKET:
                nested.append(key[len(self._prefix):])

        total = estimate_stats(records, self._tx.page_size)
        for name in nested:
            total = total + LmdbBucket(self._tx, self.path + (name,)).stats()
        return total

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def _records(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield ``(full key, raw value)`` for each direct child in key order."""
        db = self._tx.db
        if db is None or len(self._prefix) > self._tx.max_key_size:
            return
        with _translated("iterate bucket"):
            cursor = self._tx.raw.cursor(db=db)
            if not cursor.set_range(self._prefix):
                return
            for key, raw in cursor.iternext(keys=True, values=True):
                if not key.startswith(self._prefix):
                    return
                yield bytes(key), bytes(raw)

    def _key(self, name: bytes) -> bytes | None:
        key = self._prefix + name
        if len(key) > self._tx.max_key_size:
            return None
        return key

    def _get_raw(self, name: bytes) -> bytes | None:
        key = self._key(name)
        if key is None or self._tx.db is None:
            return None
        with _translated("read key"):
            return self._tx.raw.get(key, db=self._tx.db)

    def _put_raw(self, name: bytes, raw: bytes) -> None:
        key = self._key(name)
        if key is None:
            raise InvalidBucketPathError(
                f'"{_describe(self.path + (name,))}" is too long',
                hint=(
                    "A bucket path and key together are limited to "
                    f"{self._tx.max_key_size - _LENGTH.size * (len(self.path) + 1)} bytes."
                ),
            )
        db = self._tx.writable_db()
        with _translated("write key"):
            self._tx.raw.put(key, raw, db=db)


def _decode_child(name: bytes, raw: bytes) -> Child:
    if raw[:1] == TAG_BUCKET:
        return SubBucket(name=name)
    return Leaf(key=name, value=raw[1:])


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class LmdbTransaction:
    """A read-only or read-write LMDB transaction acting as the root bucket.

    Satisfies :class:`~bucketq.core.protocols.Transaction` structurally.
    """

    def __init__(self, env: Any, raw: Any, *, writable: bool) -> None:
        self._env = env
        self.raw: Any = raw
        self._writable = writable
        self._page_size: int | None = None
        self.max_key_size: int = env.max_key_size()
        self.db: Any = self._open_db(create=False)
        self._root = LmdbBucket(self, ())

    @property
    def writable(self) -> bool:
        return self._writable

    @property
    def page_size(self) -> int:
        if self._page_size is None:
            with _translated("read page size"):
                self._page_size = self._env.stat()["psize"]
        return self._page_size

    # ------------------------------------------------------------------
    # Root bucket delegation
    # ------------------------------------------------------------------

    def bucket(self, name: bytes) -> LmdbBucket | None:
        return self._root.bucket(name)

    def create_bucket_if_not_exists(self, name: bytes) -> LmdbBucket:
        return self._root.create_bucket_if_not_exists(name)

    def children(self) -> Iterator[Child]:
        return self._root.children()

    # ------------------------------------------------------------------
    # Database handle
    # ------------------------------------------------------------------

    def _open_db(self, *, create: bool) -> Any:
        """Return the records database, or ``None`` if it was never created.

        The handle is opened inside this transaction and must not outlive
        it.
        """
        try:
            return self._env.open_db(DB_NAME, txn=self.raw, create=create)
        except lmdb.NotFoundError:
            return None
        except lmdb.Error as exc:
            raise TransactionError(f"open records database: {exc}") from exc

    def writable_db(self) -> Any:
        """Return the records database for writing, creating it on first use."""
        if not self._writable:
            raise TransactionError("cannot write in a read-only transaction")
        if self.db is None:
            self.db = self._open_db(create=True)
        return self.db

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def commit(self) -> None:
        with _translated("commit"):
            self.raw.commit()
        logger.debug("transaction committed")

    def rollback(self) -> None:
        with _translated("rollback"):
            self.raw.abort()
        logger.debug("transaction rolled back")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class LmdbBucketStore:
    """Concrete :class:`BucketStore` backed by a single-file LMDB environment.

    Usage::

        with LmdbBucketStore.open(Path("app.db"), StoreConfig()) as store:
            with store.read() as tx:
                ...
    """

    def __init__(self, env: Any, path: Path) -> None:
        self._env = env
        self.path: Path = path

    @classmethod
    def open(cls, path: Path, config: StoreConfig) -> LmdbBucketStore:
        """Open the environment stored in the file at *path*.

        Lock contention is retried until ``config.open_timeout`` elapses.

        Raises
        ------
        StoreOpenError
            When LMDB rejects the file or the lock cannot be acquired.
        """
        deadline = time.monotonic() + config.open_timeout
        while True:
            try:
                env = lmdb.open(
                    str(path),
                    subdir=False,
                    map_size=config.map_size,
                    max_dbs=1,
                    create=False,
                    lock=True,
                )
                break
            except lmdb.LockError as exc:
                if time.monotonic() >= deadline:
                    raise StoreOpenError(
                        f"timed out waiting for lock on {path}: {exc}",
                    ) from exc
                time.sleep(_LOCK_RETRY_INTERVAL)
            except lmdb.Error as exc:
                raise StoreOpenError(
                    f"{path}: {exc}",
                    hint="The file does not look like an LMDB database.",
                ) from exc
        logger.debug("opened store %s (map_size=%d)", path, config.map_size)
        return cls(env, path)

    def close(self) -> None:
        self._env.close()
        logger.debug("closed store %s", self.path)

    def __enter__(self) -> LmdbBucketStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _begin(self, *, write: bool) -> LmdbTransaction:
        with _translated("begin transaction"):
            raw = self._env.begin(write=write)
        try:
            return LmdbTransaction(self._env, raw, writable=write)
        except BaseException:
            raw.abort()
            raise

    @contextmanager
    def read(self) -> Iterator[LmdbTransaction]:
        tx = self._begin(write=False)
        try:
            yield tx
        finally:
            try:
                tx.rollback()
            except TransactionError:
                # A read has nothing to undo; keep any error already raised.
                logger.warning("ignoring failed rollback of read transaction", exc_info=True)

    @contextmanager
    def write(self) -> Iterator[LmdbTransaction]:
        tx = self._begin(write=True)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise
        tx.commit()


def check_readable(path: Path) -> None:
    """Raise :class:`FileOpenError` unless *path* opens as a regular file."""
    try:
        with path.open("rb"):
            pass
    except OSError as exc:
        raise FileOpenError(str(exc)) from exc


@contextmanager
def open_store(path: str | Path, config: StoreConfig | None = None) -> Iterator[LmdbBucketStore]:
    """Verify *path*, open it as a store and close it on every exit path."""
    db_path = Path(path)
    check_readable(db_path)
    store = LmdbBucketStore.open(db_path, config or StoreConfig())
    with store:
        yield store
