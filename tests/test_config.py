"""Tests for environment-driven settings (config.py)."""

from __future__ import annotations

import pytest

from chainchirp.config import Settings
from chainchirp.exceptions import ConfigurationError


class TestDefaults:
    def test_defaults_are_valid(self) -> None:
        settings = Settings()
        assert settings.request_timeout == 8.0
        assert settings.default_currency == "usd"
        assert settings.clear_screen is True
        assert settings.max_consecutive_failures == 0
        assert settings.debug is False
        assert settings.user_agent.startswith("chainchirp/")

    def test_empty_environment_gives_defaults(self) -> None:
        assert Settings.from_env({}) == Settings()


class TestFromEnv:
    def test_overrides(self) -> None:
        settings = Settings.from_env({
            "CHAINCHIRP_TIMEOUT": "2.5",
            "CHAINCHIRP_CURRENCY": " EUR ",
            "CHAINCHIRP_CLEAR_SCREEN": "no",
            "CHAINCHIRP_MAX_FAILURES": "5",
            "CHAINCHIRP_CACHE_SIZE": "64",
            "CHAINCHIRP_DEBUG": "true",
        })
        assert settings.request_timeout == 2.5
        assert settings.default_currency == "eur"
        assert settings.clear_screen is False
        assert settings.max_consecutive_failures == 5
        assert settings.cache_max_entries == 64
        assert settings.debug is True

    def test_generic_debug_flag(self) -> None:
        assert Settings.from_env({"DEBUG": "1"}).debug is True
        assert Settings.from_env({"DEBUG": "yes"}).debug is False

    def test_provider_url_overrides(self) -> None:
        settings = Settings.from_env({
            "CHAINCHIRP_MEMPOOL_URL": "http://localhost:8999/api/",
            "CHAINCHIRP_BLOCKCHAIN_INFO_URL": "https://mirror.example",
            "CHAINCHIRP_EMPTY_URL": "  ",
        })
        assert settings.provider_urls == {
            "mempool": "http://localhost:8999/api",
            "blockchain_info": "https://mirror.example",
        }

    def test_blank_numbers_use_defaults(self) -> None:
        assert Settings.from_env({"CHAINCHIRP_TIMEOUT": " "}).request_timeout == 8.0


class TestValidation:
    @pytest.mark.parametrize(
        ("name", "value", "message"),
        [
            ("CHAINCHIRP_TIMEOUT", "soon", "must be a number"),
            ("CHAINCHIRP_TIMEOUT", "0", "must be positive"),
            ("CHAINCHIRP_MAX_FAILURES", "1.5", "must be an integer"),
            ("CHAINCHIRP_MAX_FAILURES", "-1", "cannot be negative"),
            ("CHAINCHIRP_CACHE_SIZE", "0", "at least 1"),
            ("CHAINCHIRP_CURRENCY", "doge", "Unsupported currency"),
            ("CHAINCHIRP_CLEAR_SCREEN", "maybe", "must be a boolean"),
        ],
    )
    def test_invalid_values(self, name: str, value: str, message: str) -> None:
        with pytest.raises(ConfigurationError, match=message):
            Settings.from_env({name: value})

    def test_unsupported_currency_has_hint(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(default_currency="doge")
        assert exc_info.value.hint is not None
        assert "usd" in exc_info.value.hint
