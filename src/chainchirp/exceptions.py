"""Custom exception hierarchy for chainchirp.

All exceptions that cross layer boundaries must inherit from
:class:`ChainchirpError`.  Raw third-party exceptions (e.g. from httpx)
must NEVER propagate beyond the infrastructure layer; they must be
caught and re-raised as a typed subclass defined here.

Hierarchy
---------
ChainchirpError
├── ConfigurationError
│   └── InvalidIntervalError
├── ProviderFailure
├── AllProvidersFailedError
├── CacheableOperationError
├── CommandExecutionError
└── MissingDependencyError
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chainchirp.core.models import FailureRecord


class ChainchirpError(Exception):
    """Base exception for all chainchirp errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Configuration ---------------------------------------------------------

class ConfigurationError(ChainchirpError):
    """Raised when settings, provider ids or command options are invalid."""


class InvalidIntervalError(ConfigurationError):
    """Raised when a watch interval is outside the allowed range."""


# --- Fetching --------------------------------------------------------------

class ProviderFailure(ChainchirpError):
    """A single attempt against one provider failed.

    Covers connection errors, timeouts, non-success status codes and
    bodies that could not be decoded or parsed.
    """

    def __init__(self, provider_id: str, reason: str) -> None:
        super().__init__(f"{provider_id}: {reason}")
        self.provider_id: str = provider_id
        self.reason: str = reason


class AllProvidersFailedError(ChainchirpError):
    """Every provider in a fallback chain failed.

    The first failure is treated as the primary cause because the first
    provider in a chain is the preferred source.
    """

    def __init__(self, failures: Sequence[FailureRecord]) -> None:
        self.failures: tuple[FailureRecord, ...] = tuple(failures)
        if self.failures:
            primary = self.failures[0]
            message = f"All providers failed. {primary.provider_id}: {primary.reason}"
        else:
            message = "All providers failed."
        tried = ", ".join(record.provider_id for record in self.failures)
        super().__init__(
            message,
            hint=f"Tried: {tried}. Check your network connection." if tried else None,
        )


# --- Caching ---------------------------------------------------------------

class CacheableOperationError(ChainchirpError):
    """Raised when a cached fetch function fails with a non-chainchirp error.

    Failed fetches are never cached.
    """


# --- Command execution -----------------------------------------------------

class CommandExecutionError(ChainchirpError):
    """Top-level failure of a command, surfaced to the one-shot caller."""


# --- Environment -----------------------------------------------------------

class MissingDependencyError(ChainchirpError):
    """Raised when an optional runtime dependency cannot be imported."""
