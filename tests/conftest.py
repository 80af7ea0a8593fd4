"""Shared pytest fixtures and configuration for the chainchirp test suite.

Guidelines
----------
* No internet access in any test.
* HTTP is faked at the transport boundary (``httpx.MockTransport`` or
  :class:`StubTransport`).
* Core tests must be pure: no side effects, injected clocks.
* Tests must not depend on OS state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from contextlib import nullcontext
from typing import Any

import httpx
import pytest

from chainchirp.exceptions import ProviderFailure
from chainchirp.infra.http_transport import HttpxTransport


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Output recorder
# ---------------------------------------------------------------------------

class RecordingOutput:
    """In-memory :class:`~chainchirp.core.protocols.Output` implementation."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]

    def of(self, kind: str) -> list[Any]:
        return [payload for k, payload in self.events if k == kind]

    def status(self, message: str) -> Any:
        self.events.append(("status", message))
        return nullcontext()

    def clear(self) -> None:
        self.events.append(("clear", None))

    def render(self, renderable: Any) -> None:
        self.events.append(("render", renderable))

    def footer(self, items: Sequence[tuple[str, str]]) -> None:
        self.events.append(("footer", list(items)))

    def tick_error(self, message: str, *, tick: int, consecutive_failures: int) -> None:
        self.events.append(("tick_error", (message, tick, consecutive_failures)))

    def error(self, message: str, *, hint: str | None = None) -> None:
        self.events.append(("error", (message, hint)))

    def json(self, document: Mapping[str, Any], *, compact: bool = False) -> None:
        self.events.append(("json", dict(document)))


@pytest.fixture()
def recording_output() -> RecordingOutput:
    return RecordingOutput()


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class StubTransport:
    """:class:`~chainchirp.core.protocols.JsonTransport` answering per provider id.

    Each value in *responses* is either a body to return, an exception
    instance to raise, or a coroutine function called with the URL.
    """

    def __init__(self, responses: Mapping[str, Any]) -> None:
        self.responses = dict(responses)
        self.calls: list[tuple[str, str]] = []

    async def get_json(
        self,
        provider_id: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float,
    ) -> Any:
        self.calls.append((provider_id, url))
        if provider_id not in self.responses:
            raise ProviderFailure(provider_id, "HTTP 404 Not Found")
        outcome = self.responses[provider_id]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(url)
        return outcome

    def providers_called(self) -> list[str]:
        return [provider_id for provider_id, _ in self.calls]


Route = Any
"""A JSON body, an ``int`` status code, or an ``httpx.Response``."""


def mock_http(routes: Mapping[str, Route]) -> tuple[HttpxTransport, list[httpx.Request]]:
    """Build an :class:`HttpxTransport` served by ``httpx.MockTransport``.

    *routes* is keyed by ``host + path`` (query strings ignored), e.g.
    ``"mempool.space/api/v1/fees/recommended"``.  Unknown routes answer 404.
    Returns the transport and the list that records every request.
    """
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        route = routes.get(f"{request.url.host}{request.url.path}")
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, int):
            return httpx.Response(route)
        return httpx.Response(200, json=route)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxTransport(client), seen


@pytest.fixture()
def http_routes() -> Callable[[Mapping[str, Route]], tuple[HttpxTransport, list[httpx.Request]]]:
    return mock_http
