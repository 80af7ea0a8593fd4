"""httpx-backed implementation of :class:`~chainchirp.core.protocols.JsonTransport`.

This module is the **only** place in the codebase that imports ``httpx``.
Every httpx exception is caught here and re-raised as
:class:`~chainchirp.exceptions.ProviderFailure`; nothing raw escapes the
infrastructure boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from chainchirp.exceptions import ProviderFailure
from chainchirp.version import __version__

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT: str = f"chainchirp/{__version__}"


class HttpxTransport:
    """GET-and-decode JSON over a shared :class:`httpx.AsyncClient`.

    Usage::

        async with HttpxTransport() as transport:
            body = await transport.get_json("mempool", url, timeout=8.0)

    Parameters
    ----------
    client:
        Pre-built client, mainly for tests (``httpx.MockTransport``).
        When omitted a client is created and owned by this transport.
    user_agent:
        ``User-Agent`` header sent with every request.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client: bool = client is None
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            follow_redirects=True,
        )

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Protocol method
    # ------------------------------------------------------------------

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

        Raises
        ------
        ProviderFailure
            On timeouts, connection errors, non-2xx status codes and
            bodies that are not valid JSON.
        """
        try:
            response = await self._client.get(
                url,
                params=_query_params(params),
                headers=dict(headers or {}),
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise ProviderFailure(
                provider_id, f"timed out after {timeout:g}s",
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderFailure(
                provider_id, f"request failed ({type(exc).__name__}: {exc})",
            ) from exc

        logger.debug("%s answered %s for %s", provider_id, response.status_code, url)
        if not response.is_success:
            raise ProviderFailure(
                provider_id,
                f"HTTP {response.status_code} {response.reason_phrase}".rstrip(),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderFailure(provider_id, "invalid JSON in response body") from exc


def _query_params(params: Mapping[str, Any] | None) -> dict[str, str] | None:
    """Render booleans the way the upstream APIs expect (``true``/``false``)."""
    if not params:
        return None
    rendered: dict[str, str] = {}
    for key, value in params.items():
        if isinstance(value, bool):
            rendered[key] = "true" if value else "false"
        else:
            rendered[key] = str(value)
    return rendered
