"""Process-wide logging setup.

Diagnostics are written to stderr only; stdout is reserved for store
output, which must stay byte-exact.
"""

from __future__ import annotations

import logging
import os
import sys

DEFAULT_LEVEL = "WARNING"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> int:
    """Attach a stderr handler to the ``bucketq`` logger.

    *level* defaults to ``BUCKETQ_LOG_LEVEL`` and then ``WARNING``.
    Unknown level names fall back to the default.  Returns the numeric
    level that was applied.  Calling it again replaces the handler.
    """
    name = (level or os.environ.get("BUCKETQ_LOG_LEVEL") or DEFAULT_LEVEL).upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.getLevelName(DEFAULT_LEVEL)

    root = logging.getLogger("bucketq")
    for handler in list(root.handlers):
        if getattr(handler, "_bucketq", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._bucketq = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(numeric)
    return numeric
