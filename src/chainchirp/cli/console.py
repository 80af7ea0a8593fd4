"""CLI console helpers with optional Rich support.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version``, the error
boundary) remain functional even when Rich is not installed.

Two proxies are exported: :data:`console` writes to stdout (command
output) and :data:`err_console` writes to stderr (errors, spinners).
"""

from __future__ import annotations

import functools
import re
import sys
from contextlib import AbstractContextManager, nullcontext
from typing import Any, TextIO

from chainchirp.exceptions import MissingDependencyError

_MARKUP = re.compile(r"\[/?[a-z][a-z0-9 _#.,=-]*\]")


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``MissingDependencyError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise MissingDependencyError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


@functools.lru_cache(maxsize=None)
def get_rich_console(*, stderr: bool = False) -> Any:
	"""Return the shared Rich console for stdout or stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=stderr, highlight=False)


def strip_markup(text: str) -> str:
	"""Remove Rich markup tags for plain-text output."""
	return _MARKUP.sub("", text)


def escape_markup(text: str) -> str:
	"""Escape square brackets in untrusted text before it is printed as markup."""
	try:
		from rich.markup import escape
	except ModuleNotFoundError:
		return text
	return escape(text)


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy with Rich fallback."""

	def __init__(self, *, stderr: bool) -> None:
		self._stderr = stderr

	@property
	def stream(self) -> TextIO:
		return sys.stderr if self._stderr else sys.stdout

	def _rich(self) -> Any | None:
		try:
			return get_rich_console(stderr=self._stderr)
		except MissingDependencyError:
			return None

	@property
	def is_terminal(self) -> bool:
		rich_console = self._rich()
		if rich_console is not None:
			return bool(rich_console.is_terminal)
		return self.stream.isatty()

	def print(self, *objects: object) -> None:
		"""Render with Rich when available, else plain print."""
		rich_console = self._rich()
		if rich_console is None:
			plain = [strip_markup(o) if isinstance(o, str) else o for o in objects]
			print(*plain, file=self.stream)
			return
		rich_console.print(*objects)

	def clear(self) -> None:
		rich_console = self._rich()
		if rich_console is not None:
			rich_console.clear()

	def status(self, message: str) -> AbstractContextManager[Any]:
		"""Spinner while work runs; a no-op off a terminal or without Rich."""
		rich_console = self._rich()
		if rich_console is None or not rich_console.is_terminal:
			return nullcontext()
		return rich_console.status(message)


console = _ConsoleProxy(stderr=False)
err_console = _ConsoleProxy(stderr=True)
