"""Registry of the public data providers chainchirp knows about.

Fallback chains in the services refer to providers by id only; the
base URLs live here and can be overridden per provider through
``CHAINCHIRP_<PROVIDER>_URL``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace

from chainchirp.core.models import ProviderSpec

# Chain data
MEMPOOL = "mempool"
BLOCKSTREAM = "blockstream"
BLOCKCHAIN_INFO = "blockchain_info"

# Market data
COINGECKO = "coingecko"
BINANCE = "binance"
COINBASE = "coinbase"
KRAKEN = "kraken"


DEFAULT_PROVIDERS: tuple[ProviderSpec, ...] = (
    ProviderSpec(
        id=MEMPOOL,
        base_url="https://mempool.space/api",
        name="mempool.space",
        health_path="/blocks/tip/height",
    ),
    ProviderSpec(
        id=BLOCKSTREAM,
        base_url="https://blockstream.info/api",
        name="Blockstream",
        health_path="/blocks/tip/height",
    ),
    ProviderSpec(
        id=BLOCKCHAIN_INFO,
        base_url="https://blockchain.info",
        name="blockchain.info",
        health_path="/latestblock",
    ),
    ProviderSpec(
        id=COINGECKO,
        base_url="https://api.coingecko.com/api/v3",
        name="CoinGecko",
        health_path="/ping",
    ),
    ProviderSpec(
        id=BINANCE,
        base_url="https://api.binance.com/api/v3",
        name="Binance",
        health_path="/ping",
    ),
    ProviderSpec(
        id=COINBASE,
        base_url="https://api.coinbase.com/v2",
        name="Coinbase",
        health_path="/time",
    ),
    ProviderSpec(
        id=KRAKEN,
        base_url="https://api.kraken.com/0/public",
        name="Kraken",
        health_path="/SystemStatus",
    ),
)


def build_providers(
    overrides: Mapping[str, str] | None = None,
) -> tuple[ProviderSpec, ...]:
    """Return the default registry with base URL *overrides* applied.

    Overrides for unknown ids are ignored.
    """
    if not overrides:
        return DEFAULT_PROVIDERS
    return tuple(
        replace(spec, base_url=overrides[spec.id]) if spec.id in overrides else spec
        for spec in DEFAULT_PROVIDERS
    )
