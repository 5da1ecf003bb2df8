"""Store tuning read from the environment.

Values are read once at CLI start-up.  Invalid numbers fall back to the
default and out-of-range values are clamped; both cases are logged as
warnings so a typo in the environment never aborts an inspection.

Environment
-----------
``BUCKETQ_MAP_SIZE``      maximum size of the memory map, in bytes
``BUCKETQ_OPEN_TIMEOUT``  seconds to keep retrying a contended open
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MIN_MAP_SIZE = 1 << 20            # 1 MiB
MAX_MAP_SIZE = 1 << 40            # 1 TiB
DEFAULT_MAP_SIZE = 1 << 30        # 1 GiB
MAX_OPEN_TIMEOUT = 60.0
DEFAULT_OPEN_TIMEOUT = 1.0


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """Options used when opening the LMDB environment."""

    map_size: int = DEFAULT_MAP_SIZE
    open_timeout: float = DEFAULT_OPEN_TIMEOUT

    @classmethod
    def from_env(cls) -> StoreConfig:
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                logger.warning("ignoring invalid %s=%r, using %d", name, raw, default)
                return default

        def _float(name: str, default: float) -> float:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                logger.warning("ignoring invalid %s=%r, using %s", name, raw, default)
                return default

        map_size = _int("BUCKETQ_MAP_SIZE", DEFAULT_MAP_SIZE)
        open_timeout = _float("BUCKETQ_OPEN_TIMEOUT", DEFAULT_OPEN_TIMEOUT)

        # Clamp
        adjusted: dict[str, float] = {}
        if not MIN_MAP_SIZE <= map_size <= MAX_MAP_SIZE:
            adjusted["map_size"] = map_size
            map_size = min(MAX_MAP_SIZE, max(MIN_MAP_SIZE, map_size))
        if not 0.0 <= open_timeout <= MAX_OPEN_TIMEOUT:
            adjusted["open_timeout"] = open_timeout
            open_timeout = min(MAX_OPEN_TIMEOUT, max(0.0, open_timeout))
        if adjusted:
            logger.warning(
                "store config clamped: %s -> map_size=%d open_timeout=%s",
                adjusted,
                map_size,
                open_timeout,
            )
        return cls(map_size=map_size, open_timeout=open_timeout)
