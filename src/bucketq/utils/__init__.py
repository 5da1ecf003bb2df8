"""Shared utilities: cross-cutting concerns.

Rules
-----
* No business logic.
* No store access.
* Importable by any layer.
"""
