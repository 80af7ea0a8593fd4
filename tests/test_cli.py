"""End-to-end CLI tests (cli/app.py).

:func:`main` is driven with an explicit *argv* and an ``httpx``
transport backed by ``httpx.MockTransport``; nothing touches the network.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from chainchirp.cli import app as app_module
from chainchirp.cli import exit_codes
from chainchirp.cli.app import main
from chainchirp.exceptions import ConfigurationError, InvalidIntervalError
from conftest import mock_http


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FEES_ROUTE = "mempool.space/api/v1/fees/recommended"
FEES_BODY = {"fastestFee": 21, "halfHourFee": 15, "hourFee": 11, "economyFee": 5, "minimumFee": 2}
COIN_ROUTE = "api.coingecko.com/api/v3/coins/bitcoin"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CHAINCHIRP_CURRENCY", "CHAINCHIRP_TIMEOUT", "CHAINCHIRP_MAX_FAILURES", "DEBUG"):
        monkeypatch.delenv(name, raising=False)


def _run(argv: list[str], routes: dict[str, Any]) -> int:
    transport, _ = mock_http(routes)
    return main(argv, transport=transport)


# ---------------------------------------------------------------------------
# One-shot commands
# ---------------------------------------------------------------------------

class TestOnce:
    def test_fees_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["fees", "--json"], {FEES_ROUTE: FEES_BODY}) == exit_codes.SUCCESS
        document = json.loads(capsys.readouterr().out)
        assert document["fastest"] == 21
        assert document["unit"] == "sat/vB"
        assert isinstance(document["executionTime"], int)
        assert "timestamp" in document

    def test_fees_human(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["fees"], {FEES_ROUTE: FEES_BODY}) == exit_codes.SUCCESS
        out = capsys.readouterr().out
        assert "Bitcoin Fee Estimates" in out
        assert "21 sat/vB" in out

    def test_failure_json_lists_providers(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["fees", "--json"], {}) == exit_codes.GENERAL_ERROR
        document = json.loads(capsys.readouterr().out)
        assert document["kind"] == "AllProvidersFailedError"
        assert document["command"] == "fees"
        assert [f["provider"] for f in document["failures"]] == ["mempool", "blockstream"]

    def test_failure_human_goes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["mempool"], {}) == exit_codes.GENERAL_ERROR
        captured = capsys.readouterr()
        assert "Failed to fetch mempool info" in captured.err
        assert captured.out == ""

    def test_currency_option(self, capsys: pytest.CaptureFixture[str]) -> None:
        routes = {"api.coingecko.com/api/v3/simple/price": {"bitcoin": {"eur": 59000.0}}}
        assert _run(["price", "--currency", "EUR", "--json"], routes) == exit_codes.SUCCESS
        document = json.loads(capsys.readouterr().out)
        assert (document["price"], document["currency"]) == (59000.0, "eur")

    def test_unsupported_currency_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["price", "--currency", "doge"])
        assert exc_info.value.code == 2

    def test_block_hash_and_recent_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            main(["block", "--hash", "ab" * 32, "--recent", "3"])

    def test_price_detailed_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        routes = {COIN_ROUTE: {"market_data": {
            "current_price": {"usd": 64000.0},
            "high_24h": {"usd": 65000.0},
            "low_24h": {"usd": 63000.0},
            "total_volume": {"usd": 3.1e10},
            "market_cap": {"usd": 1.26e12},
            "ath": {"usd": 73738.0},
            "atl": {"usd": 67.81},
        }}}
        assert _run(["price", "--detailed", "--json"], routes) == exit_codes.SUCCESS
        document = json.loads(capsys.readouterr().out)
        assert document["marketCap"] == 1.26e12
        assert (document["high24h"], document["low24h"]) == (65000.0, 63000.0)
        assert document["lastUpdated"] is None

    @pytest.mark.parametrize("height", ["0", "21"])
    def test_sparkline_height_bounds(self, height: str) -> None:
        with pytest.raises(ConfigurationError, match="--height"):
            _run(["sparkline", "--height", height], {})


# ---------------------------------------------------------------------------
# Watch options
# ---------------------------------------------------------------------------

class TestWatchOptions:
    def test_interval_below_minimum(self) -> None:
        with pytest.raises(InvalidIntervalError, match="Minimum: 10s"):
            _run(["fees", "--watch", "--interval", "3"], {})

    def test_interval_not_a_number(self) -> None:
        with pytest.raises(InvalidIntervalError, match="Invalid interval format"):
            _run(["price", "-w", "-i", "soon"], {})

    def test_interval_ignored_without_watch(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["fees", "--json", "--interval", "1"], {FEES_ROUTE: FEES_BODY}) == 0

    def test_negative_max_failures(self) -> None:
        with pytest.raises(ConfigurationError):
            _run(["fees", "--watch", "--max-failures", "-1"], {})

    def test_keyboard_interrupt_ends_watch_cleanly(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        def interrupted(coro: Any) -> int:
            coro.close()
            raise KeyboardInterrupt

        monkeypatch.setattr(app_module.asyncio, "run", interrupted)
        assert main(["fees", "--watch"]) == exit_codes.SUCCESS
        assert "Watch stopped" in capsys.readouterr().err

    def test_keyboard_interrupt_outside_watch_propagates(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def interrupted(coro: Any) -> int:
            coro.close()
            raise KeyboardInterrupt

        monkeypatch.setattr(app_module.asyncio, "run", interrupted)
        with pytest.raises(KeyboardInterrupt):
            main(["fees"])

    def test_watch_json_stops_after_failure_limit(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(["fees", "--watch", "--json", "--max-failures", "1"], {})
        assert code == exit_codes.GENERAL_ERROR
        captured = capsys.readouterr()
        [line] = captured.out.strip().splitlines()
        document = json.loads(line)
        assert document["tick"] == 1
        assert document["consecutiveFailures"] == 1
        assert "Stopping watch" in captured.err

    def test_count_ends_watch_after_that_many_refreshes(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(["fees", "--watch", "--json", "--count", "1"], {FEES_ROUTE: FEES_BODY})
        assert code == exit_codes.SUCCESS
        [line] = capsys.readouterr().out.strip().splitlines()
        document = json.loads(line)
        assert document["tick"] == 1
        assert document["changes"] == {}

    def test_count_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError, match="--count"):
            _run(["fees", "--watch", "--count", "0"], {})
