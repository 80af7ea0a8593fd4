"""Tests for FetchClient (core/fetch_client.py).

The transport is a :class:`StubTransport`; no network is involved.
Coverage:

* First success wins and later providers are never called.
* Failures are collected in chain order and raised together.
* Parser errors and timeouts count as provider failures.
* Per-provider paths and parsers.
* Registry errors and health checks.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from chainchirp.core.fetch_client import FetchClient, RequestOptions
from chainchirp.core.models import FailureRecord, ProviderSpec
from chainchirp.exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    ProviderFailure,
)
from conftest import StubTransport


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PROVIDERS = (
    ProviderSpec("a", "https://a.example/api", health_path="/ping"),
    ProviderSpec("b", "https://b.example", health_path="/status"),
    ProviderSpec("c", "https://c.example"),
)


def _client(responses: dict[str, Any], *, timeout: float = 8.0) -> tuple[FetchClient, StubTransport]:
    transport = StubTransport(responses)
    return FetchClient(transport, PROVIDERS, timeout=timeout), transport


def _fetch(client: FetchClient, *ids: str, options: RequestOptions | None = None) -> Any:
    return asyncio.run(client.fetch("/thing", options, ids))


# ---------------------------------------------------------------------------
# Ordered failover
# ---------------------------------------------------------------------------

class TestFailover:
    def test_first_provider_success_short_circuits(self) -> None:
        client, transport = _client({"a": {"v": 1}, "b": {"v": 2}})
        assert _fetch(client, "a", "b") == {"v": 1}
        assert transport.providers_called() == ["a"]

    def test_falls_back_to_next_provider(self) -> None:
        client, transport = _client({
            "a": ProviderFailure("a", "HTTP 500 Internal Server Error"),
            "b": {"v": 2},
        })
        assert _fetch(client, "a", "b") == {"v": 2}
        assert transport.providers_called() == ["a", "b"]

    def test_chain_order_is_respected(self) -> None:
        client, transport = _client({"a": {"v": 1}, "b": {"v": 2}})
        assert _fetch(client, "b", "a") == {"v": 2}
        assert transport.providers_called() == ["b"]

    def test_all_failed_collects_records_in_order(self) -> None:
        client, transport = _client({
            "a": ProviderFailure("a", "HTTP 500"),
            "b": ProviderFailure("b", "request failed (ConnectError: refused)"),
        })
        with pytest.raises(AllProvidersFailedError) as exc_info:
            _fetch(client, "a", "b")
        assert exc_info.value.failures == (
            FailureRecord("a", "HTTP 500"),
            FailureRecord("b", "request failed (ConnectError: refused)"),
        )
        assert "a: HTTP 500" in str(exc_info.value)
        assert transport.providers_called() == ["a", "b"]

    def test_each_provider_is_tried_once(self) -> None:
        client, transport = _client({"a": ProviderFailure("a", "HTTP 429")})
        with pytest.raises(AllProvidersFailedError):
            _fetch(client, "a")
        assert transport.providers_called() == ["a"]


# ---------------------------------------------------------------------------
# Parsing and timeouts
# ---------------------------------------------------------------------------

class TestAttempts:
    def test_parser_is_applied(self) -> None:
        client, _ = _client({"a": {"v": 21}})
        options = RequestOptions(parser=lambda body: body["v"] * 2)
        assert _fetch(client, "a", options=options) == 42

    def test_parser_error_counts_as_failure(self) -> None:
        client, transport = _client({"a": {"unexpected": True}, "b": {"v": 7}})
        options = RequestOptions(parser=lambda body: body["v"])
        assert _fetch(client, "a", "b", options=options) == 7
        assert transport.providers_called() == ["a", "b"]

    def test_parser_error_reason(self) -> None:
        client, _ = _client({"a": {"unexpected": True}})
        options = RequestOptions(parser=lambda body: body["v"])
        with pytest.raises(AllProvidersFailedError) as exc_info:
            _fetch(client, "a", options=options)
        assert exc_info.value.failures[0].reason.startswith("unexpected response (KeyError")

    def test_per_provider_parser_overrides_default(self) -> None:
        client, _ = _client({"a": ProviderFailure("a", "HTTP 500"), "b": {"price": "5"}})
        options = RequestOptions(
            parser=lambda body: body["v"],
            parsers={"b": lambda body: float(body["price"])},
        )
        assert _fetch(client, "a", "b", options=options) == 5.0

    def test_per_provider_path(self) -> None:
        client, transport = _client({"a": ProviderFailure("a", "HTTP 404"), "b": {}})
        _fetch(client, "a", "b", options=RequestOptions(paths={"b": "/other?x=1"}))
        assert transport.calls == [
            ("a", "https://a.example/api/thing"),
            ("b", "https://b.example/other?x=1"),
        ]

    def test_slow_provider_times_out(self) -> None:
        async def slow(url: str) -> Any:
            await asyncio.sleep(5)
            return {"v": 1}

        client, _ = _client({"a": slow, "b": {"v": 2}}, timeout=0.05)
        assert _fetch(client, "a", "b") == {"v": 2}

    def test_timeout_reason(self) -> None:
        async def slow(url: str) -> Any:
            await asyncio.sleep(5)

        client, _ = _client({"a": slow}, timeout=0.05)
        with pytest.raises(AllProvidersFailedError) as exc_info:
            _fetch(client, "a")
        assert exc_info.value.failures[0].reason == "timed out after 0.05s"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    def test_unknown_provider(self) -> None:
        client, transport = _client({})
        with pytest.raises(ConfigurationError, match="Unknown provider: nope"):
            _fetch(client, "a", "nope")
        assert transport.calls == []

    def test_empty_chain(self) -> None:
        client, _ = _client({})
        with pytest.raises(ConfigurationError):
            _fetch(client)

    def test_providers_property_is_a_copy(self) -> None:
        client, _ = _client({})
        providers = client.providers
        assert set(providers) == {"a", "b", "c"}
        providers.pop("a")  # type: ignore[attr-defined]
        assert "a" in client.providers

    def test_timeout_property(self) -> None:
        client, _ = _client({}, timeout=3.5)
        assert client.timeout == 3.5


class TestHealthCheck:
    def test_reports_reachability_for_providers_with_health_path(self) -> None:
        client, transport = _client({"a": "ok", "b": ProviderFailure("b", "HTTP 503")})
        health = asyncio.run(client.health_check())
        assert health == {"a": True, "b": False}
        assert ("a", "https://a.example/api/ping") in transport.calls

    def test_subset(self) -> None:
        client, _ = _client({"a": "ok"})
        assert asyncio.run(client.health_check(["a", "c"])) == {"a": True}
