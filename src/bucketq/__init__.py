"""bucketq: inspect and edit nested-bucket key-value stores.

Built on the LMDB Python binding with a strict layered architecture.
"""

from bucketq.version import __version__

__all__: list[str] = ["__version__"]
