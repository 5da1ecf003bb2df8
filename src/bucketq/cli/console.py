"""CLI console helpers with optional Rich support.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version``) and every
store operation remain functional even when Rich is not installed.

Everything printed here goes to stderr.  Store output never passes
through the console; see :mod:`bucketq.cli.render`.
"""

from __future__ import annotations

import sys
from typing import Any

from bucketq.exceptions import EnvironmentError


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``EnvironmentError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise EnvironmentError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def get_rich_console() -> Any:
	"""Create a Rich console instance targeting stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=True)


def rich_available() -> bool:
	"""Return whether Rich can be imported."""
	try:
		_load_rich_console_class()
	except EnvironmentError:
		return False
	return True


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy with Rich fallback.

	Text is never parsed as markup: keys and bucket names may contain
	square brackets.  *style* applies to the whole line under Rich and is
	dropped by the plain fallback.
	"""

	def print(self, *objects: object, style: str | None = None) -> None:
		"""Render with Rich when available, else plain stderr print."""
		try:
			rich_console = get_rich_console()
		except EnvironmentError:
			print(*objects, file=sys.stderr)
			return
		rich_console.print(
			*objects,
			style=style,
			markup=False,
			emoji=False,
			highlight=False,
			soft_wrap=True,
		)


console = _ConsoleProxy()
