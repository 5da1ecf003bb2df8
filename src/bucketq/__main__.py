"""Allow ``python -m bucketq`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m bucketq`` behaves identically to the ``bucketq``
console script.
"""

from __future__ import annotations

from bucketq.cli.app import cli

if __name__ == "__main__":
    cli()
