"""Read-through TTL cache sitting in front of :class:`FetchClient`.

One :class:`CacheLayer` lives for the whole process and is shared by
every operation through the application context.  Entries are keyed by
an opaque string built from the operation name and its parameters (see
:func:`make_key`).

Policy
------
* A key whose entry is younger than the caller's TTL is a hit: the
  stored value is returned with zero network activity.
* Otherwise the fetch function runs; success replaces the entry
  wholesale, failure stores nothing.
* The map is bounded: least-recently-used entries are evicted beyond
  ``max_entries`` and expired entries are swept on every store, so
  identifier-keyed lookups (one entry per block hash) cannot grow
  without limit in a long watch session.

Access is serialized by the single event loop; no locking is done.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from chainchirp.core.models import CacheEntry
from chainchirp.exceptions import CacheableOperationError, ChainchirpError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ENTRIES: int = 512


def make_key(operation: str, **params: Any) -> str:
    """Build a cache key from an operation name and its parameters.

    Parameters are sorted so keyword order never changes the key::

        >>> make_key("block.by_hash", hash="00ab")
        'block.by_hash?hash=00ab'
    """
    if not params:
        return operation
    joined = "&".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{operation}?{joined}"


class CacheLayer:
    """Process-local, read-through TTL cache with an LRU bound.

    Parameters
    ----------
    max_entries:
        Upper bound on stored entries.  Must be positive.
    clock:
        Monotonic clock returning seconds.  Injected by tests.
    """

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._max_entries: int = max_entries
        self._clock: Callable[[], float] = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        fetch_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Return the cached value for *key* or fetch, store and return it.

        Freshness is judged against the *ttl* of this call, so two
        operations sharing a key may tolerate different staleness.

        Raises
        ------
        ChainchirpError
            Any chainchirp error raised by *fetch_fn*, unchanged.
        CacheableOperationError
            When *fetch_fn* fails with any other exception.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock(), ttl):
            self._entries.move_to_end(key)
            logger.debug("cache hit: %s", key)
            return entry.value

        logger.debug("cache miss: %s", key)
        try:
            value = await fetch_fn()
        except ChainchirpError:
            raise
        except Exception as exc:
            raise CacheableOperationError(
                f"Fetch for {key} failed: {exc}",
            ) from exc

        self._store(key, value, ttl)
        return value

    def sweep(self) -> int:
        """Remove entries past the TTL they were stored with; return the count."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_entries": self._max_entries,
            "keys": list(self._entries),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _store(self, key: str, value: Any, ttl: float) -> None:
        self.sweep()
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("cache evicted: %s", evicted)
