"""Bitcoin chain operations: fees, mempool, blocks, hashrate and halving.

Each public coroutine returns one canonical record and raises a
:class:`~chainchirp.exceptions.ChainchirpError` subclass on failure.
Provider-specific JSON is turned into records by the module-level
``parse_*`` functions, which are pure and tested on their own.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

from chainchirp.core.cache import CacheLayer, make_key
from chainchirp.core.fetch_client import FetchClient, RequestOptions
from chainchirp.core.models import (
    BlockData,
    FeeEstimate,
    HalvingData,
    HashrateData,
    MempoolInfo,
    utc_now,
)
from chainchirp.exceptions import AllProvidersFailedError, ConfigurationError
from chainchirp.infra.providers import BLOCKCHAIN_INFO, BLOCKSTREAM, MEMPOOL

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Protocol constants
# ---------------------------------------------------------------------------

HALVING_INTERVAL: int = 210_000
INITIAL_REWARD: float = 50.0
TARGET_BLOCK_SECONDS: int = 600
DIFFICULTY_EPOCH: int = 2016
MAX_BLOCK_VSIZE: int = 1_000_000

# Cache lifetimes in seconds.
FEES_TTL: float = 30
MEMPOOL_TTL: float = 15
BLOCK_TTL: float = 30
RECENT_BLOCKS_TTL: float = 15
BLOCK_BY_HASH_TTL: float = 300
HASHRATE_TTL: float = 300
HALVING_TTL: float = 600

MAX_RECENT_BLOCKS: int = 10

_BLOCK_HASH = re.compile(r"^[0-9a-fA-F]{64}$")


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------

def congestion_level(count: int, vsize: int) -> str:
    """Classify mempool load from transaction count and virtual size."""
    score = count + vsize / 1_000_000
    if score < 5000:
        return "low"
    if score < 20000:
        return "medium"
    return "high"


def next_block_fee_floor(histogram: Sequence[tuple[float, int]]) -> float | None:
    """Lowest fee rate still inside the next block's worth of mempool vsize.

    ``None`` when the whole mempool fits in one block.
    """
    filled = 0
    for rate, size in sorted(histogram, key=lambda bucket: bucket[0], reverse=True):
        filled += size
        if filled >= MAX_BLOCK_VSIZE:
            return rate
    return None


def blocks_to_clear(histogram: Sequence[tuple[float, int]]) -> int:
    """Full blocks needed to mine everything in *histogram*."""
    return math.ceil(sum(size for _, size in histogram) / MAX_BLOCK_VSIZE)


def hashrate_from_difficulty(difficulty: float) -> float:
    """Network hashrate in H/s implied by *difficulty* at a 10 minute target."""
    return difficulty * 2**32 / TARGET_BLOCK_SECONDS


def scale_hashrate(hashes_per_second: float) -> tuple[float, str]:
    if hashes_per_second >= 1e18:
        return round(hashes_per_second / 1e18, 2), "EH/s"
    return round(hashes_per_second / 1e12, 2), "TH/s"


def block_reward(epoch: int) -> float:
    return INITIAL_REWARD / 2**epoch


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_mempool_fees(body: dict[str, Any]) -> FeeEstimate:
    """Parse mempool.space ``/v1/fees/recommended``."""
    return FeeEstimate(
        fastest=float(body["fastestFee"]),
        half_hour=float(body["halfHourFee"]),
        hour=float(body["hourFee"]),
        economy=float(body["economyFee"]),
        minimum=float(body["minimumFee"]),
    )


def parse_blockstream_fees(body: dict[str, Any]) -> FeeEstimate:
    """Parse Blockstream ``/fee-estimates``, keyed by confirmation target."""
    if not isinstance(body, dict) or not body:
        raise ValueError("empty fee estimate table")

    def pick(*targets: str, default: float) -> float:
        for target in targets:
            value = body.get(target)
            if value:
                return round(float(value), 1)
        return default

    return FeeEstimate(
        fastest=pick("1", "2", default=20),
        half_hour=pick("3", "6", default=15),
        hour=pick("6", "12", default=10),
        economy=pick("144", "504", default=5),
        minimum=pick("1008", default=1),
    )


def parse_mempool_info(body: dict[str, Any]) -> MempoolInfo:
    """Parse the ``/mempool`` summary served by mempool.space and Blockstream."""
    count = int(body["count"])
    vsize = int(body["vsize"])
    histogram = tuple(
        (float(rate), int(size)) for rate, size in body.get("fee_histogram") or ()
    )
    return MempoolInfo(
        count=count,
        vsize=vsize,
        total_fees=int(body.get("total_fee") or 0),
        fee_histogram=histogram,
        congestion_level=congestion_level(count, vsize),
    )


def parse_unconfirmed(body: dict[str, Any]) -> MempoolInfo:
    """Parse blockchain.info unconfirmed transactions; only the count is known."""
    count = body.get("unconfirmed_count")
    if count is None:
        count = len(body["txs"])
    return MempoolInfo(
        count=int(count),
        vsize=0,
        total_fees=0,
        fee_histogram=(),
        congestion_level=congestion_level(int(count), 0),
    )


def parse_block(body: dict[str, Any]) -> BlockData:
    """Parse one Esplora-style block (mempool.space and Blockstream)."""
    return BlockData(
        height=int(body["height"]),
        hash=str(body["id"]),
        timestamp=int(body["timestamp"]),
        tx_count=int(body["tx_count"]),
        size=int(body["size"]),
        weight=int(body["weight"]),
        difficulty=float(body.get("difficulty") or 0),
    )


def parse_blocks(body: list[dict[str, Any]]) -> tuple[BlockData, ...]:
    if not isinstance(body, list) or not body:
        raise ValueError("no blocks returned")
    return tuple(parse_block(item) for item in body)


def parse_latest_block(body: list[dict[str, Any]]) -> BlockData:
    return parse_blocks(body)[0]


def parse_blockchain_info_latest(body: dict[str, Any]) -> BlockData:
    """Parse blockchain.info ``/latestblock``; size and difficulty are unknown."""
    return BlockData(
        height=int(body["height"]),
        hash=str(body["hash"]),
        timestamp=int(body["time"]),
        tx_count=len(body.get("txIndexes") or ()),
        size=0,
        weight=0,
        difficulty=0.0,
    )


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------

def parse_difficulty_adjustment(body: dict[str, Any]) -> tuple[float, int]:
    """Parse mempool.space ``/v1/difficulty-adjustment`` into (progress %, blocks left)."""
    return float(body["progressPercent"]), int(body["remainingBlocks"])


def build_hashrate(
    block: BlockData,
    adjustment: tuple[float, int] | None,
    now: datetime,
) -> HashrateData:
    """Combine the latest block with an optional difficulty adjustment.

    Without the adjustment progress is estimated from the block height's
    position inside the 2016-block epoch.
    """
    current, unit = scale_hashrate(hashrate_from_difficulty(block.difficulty))
    if adjustment is not None:
        progress, remaining_blocks = adjustment
    else:
        into_epoch = block.height % DIFFICULTY_EPOCH
        progress = into_epoch / DIFFICULTY_EPOCH * 100
        remaining_blocks = DIFFICULTY_EPOCH - into_epoch
    seconds = remaining_blocks * TARGET_BLOCK_SECONDS
    return HashrateData(
        current=current,
        unit=unit,
        difficulty=block.difficulty,
        adjustment_progress=round(progress, 2),
        estimated_seconds_to_adjustment=seconds,
        next_adjustment_date=now + timedelta(seconds=seconds),
    )


def build_halving(height: int, now: datetime) -> HalvingData:
    epoch = height // HALVING_INTERVAL
    next_height = (epoch + 1) * HALVING_INTERVAL
    blocks_remaining = next_height - height
    seconds = blocks_remaining * TARGET_BLOCK_SECONDS
    return HalvingData(
        current_block_height=height,
        halving_block_height=next_height,
        blocks_remaining=blocks_remaining,
        estimated_date=now + timedelta(seconds=seconds),
        days_remaining=math.ceil(seconds / 86400),
        current_reward=block_reward(epoch),
        next_reward=block_reward(epoch + 1),
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ChainService:
    """Cached chain lookups backed by a shared :class:`FetchClient`.

    Parameters
    ----------
    client:
        Fetch client holding the provider registry.
    cache:
        Process-wide cache layer.
    now:
        Wall clock used for estimated dates.  Injected by tests.
    """

    def __init__(
        self,
        client: FetchClient,
        cache: CacheLayer,
        *,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._client = client
        self._cache = cache
        self._now = now

    async def fees(self) -> FeeEstimate:
        return await self._cache.get_or_fetch(
            make_key("fees"), FEES_TTL, self._fetch_fees,
        )

    async def mempool(self) -> MempoolInfo:
        return await self._cache.get_or_fetch(
            make_key("mempool"), MEMPOOL_TTL, self._fetch_mempool,
        )

    async def current_block(self) -> BlockData:
        return await self._cache.get_or_fetch(
            make_key("block.current"), BLOCK_TTL, self._fetch_current_block,
        )

    async def recent_blocks(self, count: int = MAX_RECENT_BLOCKS) -> tuple[BlockData, ...]:
        """Return up to *count* most recent blocks, newest first."""
        if not 1 <= count <= MAX_RECENT_BLOCKS:
            raise ConfigurationError(
                f"Block count must be between 1 and {MAX_RECENT_BLOCKS} (got {count})",
            )

        async def fetch() -> tuple[BlockData, ...]:
            blocks = await self._client.fetch(
                "/blocks",
                RequestOptions(parser=parse_blocks),
                (MEMPOOL, BLOCKSTREAM),
            )
            return blocks[:count]

        return await self._cache.get_or_fetch(
            make_key("block.recent", count=count), RECENT_BLOCKS_TTL, fetch,
        )

    async def block_by_hash(self, block_hash: str) -> BlockData:
        if not _BLOCK_HASH.match(block_hash):
            raise ConfigurationError(
                f"Invalid block hash: {block_hash}",
                hint="A block hash is 64 hexadecimal characters.",
            )
        block_hash = block_hash.lower()

        async def fetch() -> BlockData:
            return await self._client.fetch(
                f"/block/{block_hash}",
                RequestOptions(parser=parse_block),
                (MEMPOOL, BLOCKSTREAM),
            )

        return await self._cache.get_or_fetch(
            make_key("block.by_hash", hash=block_hash), BLOCK_BY_HASH_TTL, fetch,
        )

    async def hashrate(self) -> HashrateData:
        return await self._cache.get_or_fetch(
            make_key("hashrate"), HASHRATE_TTL, self._fetch_hashrate,
        )

    async def halving(self) -> HalvingData:
        return await self._cache.get_or_fetch(
            make_key("halving"), HALVING_TTL, self._fetch_halving,
        )

    # ------------------------------------------------------------------
    # Fetchers
    # ------------------------------------------------------------------

    async def _fetch_fees(self) -> FeeEstimate:
        return await self._client.fetch(
            "/v1/fees/recommended",
            RequestOptions(
                parser=parse_mempool_fees,
                parsers={BLOCKSTREAM: parse_blockstream_fees},
                paths={BLOCKSTREAM: "/fee-estimates"},
            ),
            (MEMPOOL, BLOCKSTREAM),
        )

    async def _fetch_mempool(self) -> MempoolInfo:
        return await self._client.fetch(
            "/mempool",
            RequestOptions(
                parser=parse_mempool_info,
                parsers={BLOCKCHAIN_INFO: parse_unconfirmed},
                paths={BLOCKCHAIN_INFO: "/unconfirmed-transactions?format=json"},
            ),
            (MEMPOOL, BLOCKSTREAM, BLOCKCHAIN_INFO),
        )

    async def _fetch_current_block(self) -> BlockData:
        return await self._client.fetch(
            "/blocks",
            RequestOptions(
                parser=parse_latest_block,
                parsers={BLOCKCHAIN_INFO: parse_blockchain_info_latest},
                paths={BLOCKCHAIN_INFO: "/latestblock"},
            ),
            (MEMPOOL, BLOCKSTREAM, BLOCKCHAIN_INFO),
        )

    async def _fetch_hashrate(self) -> HashrateData:
        adjustment, block = await asyncio.gather(
            self._client.fetch(
                "/v1/difficulty-adjustment",
                RequestOptions(parser=parse_difficulty_adjustment),
                (MEMPOOL,),
            ),
            # blockchain.info does not report difficulty, so it is left out.
            self._client.fetch(
                "/blocks", RequestOptions(parser=parse_latest_block),
                (MEMPOOL, BLOCKSTREAM),
            ),
            return_exceptions=True,
        )
        if isinstance(block, BaseException):
            raise block
        if isinstance(adjustment, AllProvidersFailedError):
            logger.info("difficulty adjustment unavailable, estimating from height")
            adjustment = None
        elif isinstance(adjustment, BaseException):
            raise adjustment
        return build_hashrate(block, adjustment, self._now())

    async def _fetch_halving(self) -> HalvingData:
        block = await self.current_block()
        return build_halving(block.height, self._now())
