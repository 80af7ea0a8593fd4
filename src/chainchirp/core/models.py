"""Domain models for chainchirp.

All models are **frozen** dataclasses: immutable value objects with no
behaviour beyond data access.  They carry zero I/O, zero dependencies on
external packages, and must remain pure across the entire lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from chainchirp.exceptions import AllProvidersFailedError, ChainchirpError

T = TypeVar("T")


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Providers and failures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """One upstream data source."""

    id: str
    """Stable identifier used in fallback chains (e.g. ``mempool``)."""

    base_url: str
    """Base URL without a trailing slash."""

    name: str = ""
    """Display name, defaults to :attr:`id`."""

    health_path: str | None = None
    """Path probed by ``chainchirp doctor``, or ``None`` to skip."""

    headers: tuple[tuple[str, str], ...] = ()
    """Extra request headers sent to this provider only."""

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True, slots=True)
class FailureRecord:
    """Why one provider attempt failed."""

    provider_id: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"provider": self.provider_id, "reason": self.reason}


# ---------------------------------------------------------------------------
# Result envelope
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Serializable description of a failed operation."""

    kind: str
    """Exception class name (e.g. ``AllProvidersFailedError``)."""

    message: str
    hint: str | None = None
    failures: tuple[FailureRecord, ...] = ()

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        hint = exc.hint if isinstance(exc, ChainchirpError) else None
        failures = exc.failures if isinstance(exc, AllProvidersFailedError) else ()
        return cls(
            kind=type(exc).__name__,
            message=str(exc) or type(exc).__name__,
            hint=hint,
            failures=failures,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "kind": self.kind}
        if self.hint:
            payload["hint"] = self.hint
        if self.failures:
            payload["failures"] = [record.to_dict() for record in self.failures]
        return payload


@dataclass(frozen=True, slots=True)
class ResultEnvelope(Generic[T]):
    """Uniform success/failure wrapper returned by every operation.

    Exactly one of :attr:`data` and :attr:`error` is set, determined by
    :attr:`success`.
    """

    success: bool
    data: T | None
    error: ErrorInfo | None
    timestamp: datetime
    execution_time_ms: int

    def __post_init__(self) -> None:
        if self.success and (self.data is None or self.error is not None):
            raise ValueError("successful envelope must carry data and no error")
        if not self.success and (self.error is None or self.data is not None):
            raise ValueError("failed envelope must carry an error and no data")

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        execution_time_ms: int = 0,
        timestamp: datetime | None = None,
    ) -> ResultEnvelope[T]:
        return cls(
            success=True,
            data=data,
            error=None,
            timestamp=timestamp or utc_now(),
            execution_time_ms=execution_time_ms,
        )

    @classmethod
    def fail(
        cls,
        error: ErrorInfo | BaseException,
        *,
        execution_time_ms: int = 0,
        timestamp: datetime | None = None,
    ) -> ResultEnvelope[T]:
        info = error if isinstance(error, ErrorInfo) else ErrorInfo.from_exception(error)
        return cls(
            success=False,
            data=None,
            error=info,
            timestamp=timestamp or utc_now(),
            execution_time_ms=execution_time_ms,
        )


# ---------------------------------------------------------------------------
# Cache and watch state
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value; replaced wholesale, never partially updated."""

    value: T
    stored_at: float
    """Clock reading (seconds) when the value was stored."""

    ttl: float
    """Lifetime in seconds the value was stored with."""

    def is_fresh(self, now: float, ttl: float | None = None) -> bool:
        """Whether the entry is younger than *ttl*, or its own :attr:`ttl`."""
        limit = self.ttl if ttl is None else ttl
        return now - self.stored_at < limit


@dataclass(slots=True)
class WatchState(Generic[T]):
    """Transient state of one running watch loop.

    Owned exclusively by that loop and discarded when it ends.
    """

    previous: T | None = None
    """Data of the last *successful* tick."""

    tick_count: int = 0
    consecutive_failures: int = 0


# ---------------------------------------------------------------------------
# Chain records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FeeEstimate:
    """Recommended fee rates in sat/vB."""

    fastest: float
    half_hour: float
    hour: float
    economy: float
    minimum: float
    timestamp: datetime = field(default_factory=utc_now)
    unit: str = "sat/vB"


@dataclass(frozen=True, slots=True)
class MempoolInfo:
    count: int
    vsize: int
    total_fees: int
    """Total fees of all mempool transactions in sats."""

    fee_histogram: tuple[tuple[float, int], ...]
    """``(fee rate in sat/vB, vsize)`` buckets as served, highest rate first."""

    congestion_level: str
    """``low``, ``medium`` or ``high``."""


@dataclass(frozen=True, slots=True)
class BlockData:
    height: int
    hash: str
    timestamp: int
    """Block time as a unix timestamp."""

    tx_count: int
    size: int
    weight: int
    difficulty: float


@dataclass(frozen=True, slots=True)
class HashrateData:
    current: float
    """Hashrate expressed in :attr:`unit`."""

    unit: str
    difficulty: float
    adjustment_progress: float
    """Percent of the current difficulty epoch already mined."""

    estimated_seconds_to_adjustment: int
    next_adjustment_date: datetime


@dataclass(frozen=True, slots=True)
class HalvingData:
    current_block_height: int
    halving_block_height: int
    blocks_remaining: int
    estimated_date: datetime
    days_remaining: int
    current_reward: float
    next_reward: float


# ---------------------------------------------------------------------------
# Market records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PriceData:
    price: float
    currency: str
    source: str
    """Id of the provider that answered."""

    change_percent_24h: float | None = None
    market_cap: float | None = None


@dataclass(frozen=True, slots=True)
class MarketSummary:
    """Price with the surrounding market figures, from one coin document."""

    price: float
    currency: str
    change_24h: float
    change_percent_24h: float
    high_24h: float
    low_24h: float
    volume_24h: float
    market_cap: float
    ath: float
    atl: float
    last_updated: datetime | None = None


@dataclass(frozen=True, slots=True)
class VolumeData:
    volume_24h: float
    volume_change_24h: float
    volume_change_percent_24h: float
    currency: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PriceChangeData:
    current: float
    change_24h: float
    change_percent_1h: float
    change_percent_24h: float
    change_percent_7d: float
    change_percent_30d: float
    currency: str


@dataclass(frozen=True, slots=True)
class HighLowData:
    current: float
    high_24h: float
    low_24h: float
    ath: float
    ath_date: datetime | None
    atl: float
    atl_date: datetime | None
    currency: str

    @property
    def ath_change_percent(self) -> float:
        return (self.current - self.ath) / self.ath * 100 if self.ath else 0.0

    @property
    def atl_change_percent(self) -> float:
        return (self.current - self.atl) / self.atl * 100 if self.atl else 0.0


@dataclass(frozen=True, slots=True)
class SparklineData:
    prices: tuple[float, ...]
    timeframe: str
    currency: str

    @property
    def first(self) -> float:
        return self.prices[0] if self.prices else 0.0

    @property
    def last(self) -> float:
        return self.prices[-1] if self.prices else 0.0
