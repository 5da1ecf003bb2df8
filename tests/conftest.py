"""Shared pytest fixtures and configuration for the bucketq test suite.

Guidelines
----------
* Every store lives in ``tmp_path``: tests never touch a shared file.
* Core tests that do not need LMDB use mocked protocol objects.
* Store output is captured through ``BytesIO``; diagnostics via ``capsys``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from bucketq.config import StoreConfig
from bucketq.core.query_service import QueryService
from bucketq.infra.lmdb_store import LmdbBucketStore, open_store

TEST_CONFIG = StoreConfig(map_size=16 * 1024 * 1024, open_timeout=0.0)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BUCKETQ_MAP_SIZE",
        "BUCKETQ_OPEN_TIMEOUT",
        "BUCKETQ_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """An empty file that LMDB initialises on first open."""
    path = tmp_path / "test.db"
    path.touch()
    return path


@pytest.fixture
def store(db_path: Path) -> Iterator[LmdbBucketStore]:
    with open_store(db_path, TEST_CONFIG) as opened:
        yield opened


@pytest.fixture
def service(store: LmdbBucketStore) -> QueryService:
    return QueryService(store)


@pytest.fixture
def seed(db_path: Path) -> Callable[..., Path]:
    """Return a helper that writes ``{bucket_path: {key: value}}`` and closes.

    LMDB must not be opened twice in one process, so CLI tests seed the
    file through this helper and let the CLI open it afterwards.
    """

    def _seed(
        data: dict[str, dict[str, str | bytes]],
        *,
        empty_buckets: tuple[tuple[bytes, ...], ...] = (),
    ) -> Path:
        with open_store(db_path, TEST_CONFIG) as opened:
            svc = QueryService(opened)
            for bucket, entries in data.items():
                for key, value in entries.items():
                    svc.set_key(bucket, key, value)
            with opened.write() as tx:
                for path in empty_buckets:
                    first, *rest = path
                    bucket = tx.create_bucket_if_not_exists(first)
                    for name in rest:
                        bucket = bucket.create_bucket_if_not_exists(name)
        return db_path

    return _seed
