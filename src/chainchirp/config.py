"""Runtime settings read from the environment.

Every knob has a default, so ``Settings()`` is a complete, working
configuration.  :meth:`Settings.from_env` overlays ``CHAINCHIRP_*``
variables on top of those defaults.

Variables
---------
``CHAINCHIRP_TIMEOUT``        per-attempt timeout in seconds (float)
``CHAINCHIRP_CURRENCY``       default fiat/crypto currency for market commands
``CHAINCHIRP_CLEAR_SCREEN``   clear the terminal between watch ticks (bool)
``CHAINCHIRP_MAX_FAILURES``   abort watch after N failed ticks in a row, 0 = never
``CHAINCHIRP_CACHE_SIZE``     maximum number of cache entries
``CHAINCHIRP_DEBUG``          verbose logging (``DEBUG=1`` is honoured too)
``CHAINCHIRP_<PROVIDER>_URL`` override one provider's base URL
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from chainchirp.exceptions import ConfigurationError
from chainchirp.version import __version__

SUPPORTED_CURRENCIES: tuple[str, ...] = ("usd", "eur", "gbp", "jpy", "btc", "eth")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

ENV_PREFIX = "CHAINCHIRP_"


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable process configuration."""

    request_timeout: float = 8.0
    default_currency: str = "usd"
    clear_screen: bool = True
    max_consecutive_failures: int = 0
    cache_max_entries: int = 512
    debug: bool = False
    user_agent: str = f"chainchirp/{__version__}"
    provider_urls: Mapping[str, str] = field(default_factory=dict)
    """Base URL overrides keyed by provider id."""

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"Request timeout must be positive (got {self.request_timeout})",
            )
        if self.default_currency not in SUPPORTED_CURRENCIES:
            raise ConfigurationError(
                f"Unsupported currency: {self.default_currency}",
                hint=f"Supported: {', '.join(SUPPORTED_CURRENCIES)}",
            )
        if self.max_consecutive_failures < 0:
            raise ConfigurationError("Max consecutive failures cannot be negative")
        if self.cache_max_entries < 1:
            raise ConfigurationError("Cache size must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from *environ* (defaults to ``os.environ``).

        Raises
        ------
        ConfigurationError
            If a variable is present but cannot be parsed.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        debug = _parse_bool(env, "CHAINCHIRP_DEBUG", default=False)
        if env.get("DEBUG") == "1":
            debug = True

        return cls(
            request_timeout=_parse_float(
                env, "CHAINCHIRP_TIMEOUT", default=defaults.request_timeout,
            ),
            default_currency=env.get(
                "CHAINCHIRP_CURRENCY", defaults.default_currency,
            ).strip().lower(),
            clear_screen=_parse_bool(
                env, "CHAINCHIRP_CLEAR_SCREEN", default=defaults.clear_screen,
            ),
            max_consecutive_failures=_parse_int(
                env, "CHAINCHIRP_MAX_FAILURES",
                default=defaults.max_consecutive_failures,
            ),
            cache_max_entries=_parse_int(
                env, "CHAINCHIRP_CACHE_SIZE", default=defaults.cache_max_entries,
            ),
            debug=debug,
            provider_urls=_provider_urls(env),
        )


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _parse_float(env: Mapping[str, str], name: str, *, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number (got {raw!r})",
        ) from None


def _parse_int(env: Mapping[str, str], name: str, *, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer (got {raw!r})",
        ) from None


def _parse_bool(env: Mapping[str, str], name: str, *, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{name} must be a boolean (got {raw!r})",
        hint="Use one of: 1, 0, true, false, yes, no, on, off",
    )


def _provider_urls(env: Mapping[str, str]) -> dict[str, str]:
    """Collect ``CHAINCHIRP_<PROVIDER>_URL`` overrides."""
    urls: dict[str, str] = {}
    for name, value in env.items():
        if not (name.startswith(ENV_PREFIX) and name.endswith("_URL")):
            continue
        provider_id = name[len(ENV_PREFIX):-len("_URL")].lower()
        if provider_id and value.strip():
            urls[provider_id] = value.strip().rstrip("/")
    return urls
