"""Rich-backed implementation of :class:`~chainchirp.core.protocols.Output`.

Human output goes through the console proxies; JSON is written to
stdout verbatim so Rich never wraps or highlights it.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from contextlib import AbstractContextManager
from datetime import datetime
from typing import TYPE_CHECKING, Any

from chainchirp.cli.console import console, err_console, escape_markup

if TYPE_CHECKING:
    from chainchirp.cli.console import _ConsoleProxy


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dump_json(document: Mapping[str, Any], *, compact: bool = False) -> str:
    if compact:
        return json.dumps(document, default=_json_default, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(document, default=_json_default, indent=2, ensure_ascii=False)


class RichOutput:
    """Output sink for the command runner.

    Parameters
    ----------
    out, err:
        Console proxies for stdout and stderr.
    """

    def __init__(
        self,
        *,
        out: _ConsoleProxy = console,
        err: _ConsoleProxy = err_console,
    ) -> None:
        self._out = out
        self._err = err

    def status(self, message: str) -> AbstractContextManager[Any]:
        return self._err.status(message)

    def clear(self) -> None:
        if self._out.is_terminal:
            self._out.clear()

    def render(self, renderable: Any) -> None:
        self._out.print(renderable)

    def footer(self, items: Sequence[tuple[str, str]]) -> None:
        self._out.print()
        for label, value in items:
            self._out.print(f"  [dim]{label}:[/dim] {value}")

    def tick_error(self, message: str, *, tick: int, consecutive_failures: int) -> None:
        self._out.print()
        self._out.print(f"[bold red]Error:[/bold red] {escape_markup(message)}")
        self._out.print(
            f"  [dim]Tick {tick}, {consecutive_failures} consecutive "
            f"failure(s). Retrying on next interval.[/dim]"
        )

    def error(self, message: str, *, hint: str | None = None) -> None:
        self._err.print(f"[bold red]Error:[/bold red] {escape_markup(message)}")
        if hint:
            self._err.print(f"[yellow]Hint:[/yellow] {escape_markup(hint)}")

    def json(self, document: Mapping[str, Any], *, compact: bool = False) -> None:
        stream = self._out.stream
        stream.write(dump_json(document, compact=compact) + "\n")
        stream.flush()
