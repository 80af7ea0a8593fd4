"""Ordered multi-provider fetching with failure aggregation.

:class:`FetchClient` walks a caller-supplied fallback chain one provider
at a time.  Every attempt produces a tagged outcome (success with a
parsed value or failure with a reason), and the outcomes are folded to
the first success.  When the chain is exhausted the collected
:class:`~chainchirp.core.models.FailureRecord` sequence is raised as
:class:`~chainchirp.exceptions.AllProvidersFailedError`.

Guarantees
----------
* Providers are tried strictly in the given order; order is never
  re-ranked or learned.
* One attempt per provider; no retries of the same provider.
* No shared state is mutated; the client is safe to reuse across
  operations and watch ticks.
* The client is schema-agnostic: parsing is supplied per call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from chainchirp.core.models import FailureRecord, ProviderSpec
from chainchirp.core.protocols import JsonTransport, Parser
from chainchirp.exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    ProviderFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 8.0
"""Per-attempt timeout in seconds."""


def _identity(body: Any) -> Any:
    return body


@dataclass(frozen=True, slots=True)
class RequestOptions:
    """Per-call request description.

    ``parsers`` and ``paths`` are keyed by provider id and override
    ``parser`` and the endpoint path for that provider only.
    """

    params: Mapping[str, Any] = field(default_factory=dict)
    parser: Parser | None = None
    parsers: Mapping[str, Parser] = field(default_factory=dict)
    paths: Mapping[str, str] = field(default_factory=dict)

    def parser_for(self, provider_id: str) -> Parser:
        return self.parsers.get(provider_id) or self.parser or _identity

    def path_for(self, provider_id: str, default: str) -> str:
        return self.paths.get(provider_id, default)


# ---------------------------------------------------------------------------
# Tagged attempt outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AttemptSuccess:
    provider_id: str
    value: Any


@dataclass(frozen=True, slots=True)
class AttemptFailure:
    record: FailureRecord


AttemptOutcome = AttemptSuccess | AttemptFailure


def _join_url(base_url: str, path: str) -> str:
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class FetchClient:
    """Execute one logical request against an ordered provider chain.

    Parameters
    ----------
    transport:
        Any object satisfying the :class:`JsonTransport` protocol.
    providers:
        Registry of known providers.  Fallback chains refer to them by id.
    timeout:
        Upper bound in seconds for each single attempt.
    """

    def __init__(
        self,
        transport: JsonTransport,
        providers: Iterable[ProviderSpec],
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._transport: JsonTransport = transport
        self._providers: dict[str, ProviderSpec] = {p.id: p for p in providers}
        self._timeout: float = timeout

    # ------------------------------------------------------------------
    # Registry access
    # ------------------------------------------------------------------

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def providers(self) -> Mapping[str, ProviderSpec]:
        return dict(self._providers)

    def provider(self, provider_id: str) -> ProviderSpec:
        """Return the registered provider or raise :class:`ConfigurationError`."""
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ConfigurationError(
                f"Unknown provider: {provider_id}",
                hint=f"Known providers: {', '.join(sorted(self._providers))}",
            ) from None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(
        self,
        path: str,
        options: RequestOptions | None,
        provider_ids: Sequence[str],
    ) -> Any:
        """Return the parsed value from the first provider that succeeds.

        Raises
        ------
        ConfigurationError
            If *provider_ids* is empty or names an unknown provider.
        AllProvidersFailedError
            If every provider in the chain failed.
        """
        if not provider_ids:
            raise ConfigurationError(f"No providers given for {path}")
        chain = [self.provider(pid) for pid in provider_ids]
        opts = options or RequestOptions()

        failures: list[FailureRecord] = []
        for provider in chain:
            outcome = await self.attempt(provider, path, opts)
            if isinstance(outcome, AttemptSuccess):
                if failures:
                    logger.info(
                        "%s served by %s after %d failure(s)",
                        path, provider.id, len(failures),
                    )
                return outcome.value
            failures.append(outcome.record)

        raise AllProvidersFailedError(failures)

    async def attempt(
        self,
        provider: ProviderSpec,
        path: str,
        options: RequestOptions,
    ) -> AttemptOutcome:
        """Perform exactly one request against *provider* and tag the result."""
        url = _join_url(provider.base_url, options.path_for(provider.id, path))
        logger.debug("trying %s: GET %s", provider.id, url)

        try:
            body = await asyncio.wait_for(
                self._transport.get_json(
                    provider.id,
                    url,
                    params=options.params,
                    headers=dict(provider.headers),
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except ProviderFailure as exc:
            return self._failed(provider.id, exc.reason)
        except asyncio.TimeoutError:
            return self._failed(provider.id, f"timed out after {self._timeout:g}s")

        try:
            value = options.parser_for(provider.id)(body)
        except Exception as exc:  # noqa: BLE001
            return self._failed(
                provider.id,
                f"unexpected response ({type(exc).__name__}: {exc})",
            )
        return AttemptSuccess(provider_id=provider.id, value=value)

    async def health_check(
        self,
        provider_ids: Sequence[str] | None = None,
    ) -> dict[str, bool]:
        """Probe the health path of each provider concurrently.

        Providers without a health path are left out of the result.
        """
        ids = list(provider_ids) if provider_ids is not None else list(self._providers)
        probed = [
            self.provider(pid) for pid in ids
            if self.provider(pid).health_path is not None
        ]
        outcomes = await asyncio.gather(
            *(self.attempt(p, p.health_path or "", RequestOptions()) for p in probed)
        )
        return {
            provider.id: isinstance(outcome, AttemptSuccess)
            for provider, outcome in zip(probed, outcomes)
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _failed(provider_id: str, reason: str) -> AttemptFailure:
        logger.info("provider %s failed: %s", provider_id, reason)
        return AttemptFailure(FailureRecord(provider_id=provider_id, reason=reason))
