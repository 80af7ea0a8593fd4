"""Protocols (interfaces) and callable shapes consumed by the core layer.

These define the contracts that infrastructure adapters and command
modules must satisfy.  Core code depends ONLY on these protocols, never
on concrete implementations.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from contextlib import AbstractContextManager
from typing import Any, Protocol, TypeVar

from chainchirp.core.models import ResultEnvelope

T = TypeVar("T")

Parser = Callable[[Any], Any]
"""Turns one provider's decoded JSON body into a canonical record."""

Operation = Callable[[], Awaitable[ResultEnvelope[T]]]
"""A fetch-and-normalize unit of work, already bound to its options."""

HumanRenderer = Callable[[T, ResultEnvelope[T], T | None], Any]
"""``(data, envelope, previous) -> renderable`` for human output."""

JsonFormatter = Callable[[T, ResultEnvelope[T]], dict[str, Any]]
"""``(data, envelope) -> dict`` for machine-readable output."""

DiffFn = Callable[[T, T], dict[str, Any]]
"""``(previous, current) -> delta`` for same-shaped records."""


class JsonTransport(Protocol):
    """Contract for HTTP backends used by :class:`FetchClient`.

    Any object that implements :meth:`get_json` with the correct
    signature satisfies this protocol structurally (no explicit
    inheritance required).
    """

    async def get_json(
        self,
        provider_id: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float,
    ) -> Any:
        """Perform one GET request and return the decoded JSON body.

        Implementations must map all backend-specific exceptions to
        :class:`~chainchirp.exceptions.ProviderFailure`.

        Raises
        ------
        ProviderFailure
            On connection errors, timeouts, non-2xx responses or
            bodies that are not valid JSON.
        """
        ...  # pragma: no cover


class Output(Protocol):
    """Sink the command runner writes to.

    The CLI supplies a Rich-backed implementation; tests supply a
    recorder.  Only the sink knows about styling.
    """

    def status(self, message: str) -> AbstractContextManager[Any]:
        """Context manager showing *message* while a one-shot fetch runs."""
        ...  # pragma: no cover

    def clear(self) -> None:
        """Clear the screen between watch ticks when stdout is a terminal."""
        ...  # pragma: no cover

    def render(self, renderable: Any) -> None:
        """Write human-readable output to stdout."""
        ...  # pragma: no cover

    def footer(self, items: Sequence[tuple[str, str]]) -> None:
        """Write ``label: value`` lines below a human watch tick."""
        ...  # pragma: no cover

    def tick_error(self, message: str, *, tick: int, consecutive_failures: int) -> None:
        """Report a failed watch tick on stdout; the loop keeps running."""
        ...  # pragma: no cover

    def error(self, message: str, *, hint: str | None = None) -> None:
        """Write a one-shot failure message to stderr."""
        ...  # pragma: no cover

    def json(self, document: Mapping[str, Any], *, compact: bool = False) -> None:
        """Write one JSON document to stdout."""
        ...  # pragma: no cover
