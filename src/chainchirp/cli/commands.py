"""Per-command :class:`~chainchirp.core.runner.CommandSpec` builders.

Each builder binds one service operation to its human renderer, JSON
formatter and diff function.  Renderers return Rich markup strings (or
a Rich table) and receive the previous successful value in watch mode,
which they use to show what moved since the last tick.
"""

from __future__ import annotations

import argparse
import functools
from typing import Any

from chainchirp.cli import formatting as fmt
from chainchirp.context import AppContext
from chainchirp.core.diff import field_delta
from chainchirp.core.envelope import capture
from chainchirp.core.models import (
    BlockData,
    FeeEstimate,
    HalvingData,
    HashrateData,
    HighLowData,
    MarketSummary,
    MempoolInfo,
    PriceChangeData,
    PriceData,
    ResultEnvelope,
    SparklineData,
    VolumeData,
)
from chainchirp.core.protocols import HumanRenderer, JsonFormatter
from chainchirp.core.runner import CommandSpec
from chainchirp.services.chain import blocks_to_clear, next_block_fee_floor

# Interval rule family per command.
INTERVAL_TYPES: dict[str, str] = {
    "price": "market",
    "volume": "market",
    "change": "market",
    "highlow": "market",
    "sparkline": "market",
    "fees": "fees",
    "mempool": "mempool",
    "block": "block",
    "hashrate": "hashrate",
    "halving": "halving",
}


def _title(text: str, suffix: str = "") -> str:
    return f"\n[green]✓[/green] [bold]{text}[/bold]{suffix}\n"


def _line(label: str, value: str) -> str:
    return f"  [dim]◦ {label}:[/dim] {value}"


def _moved(current: float, previous: float | None, *, unit: str = "") -> str:
    """`` (+5 sat/vB)`` style suffix, empty when nothing moved."""
    if previous is None or current == previous:
        return ""
    delta = current - previous
    return f" [dim]({fmt.format_change_markup(delta)}{unit})[/dim]"


def _latency(envelope: ResultEnvelope[Any]) -> str:
    return _line("Latency", f"{envelope.execution_time_ms}ms")


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------

_FEE_ROWS: tuple[tuple[str, str], ...] = (
    ("fastest", "Next Block (Fastest)"),
    ("half_hour", "~30 Minutes"),
    ("hour", "~1 Hour"),
    ("economy", "~24 Hours (Economy)"),
    ("minimum", "Low Priority"),
)

FEE_DELTA_FIELDS: dict[str, str] = {
    "fastest": "fastestChange",
    "half_hour": "halfHourChange",
    "hour": "hourChange",
    "economy": "economyChange",
    "minimum": "minimumChange",
}


def render_fees(
    data: FeeEstimate,
    envelope: ResultEnvelope[FeeEstimate],
    previous: FeeEstimate | None,
) -> str:
    moved = _moved(data.fastest, previous.fastest if previous else None, unit=" sat/vB")
    lines = [_title("Bitcoin Fee Estimates", moved)]
    for attr, label in _FEE_ROWS:
        lines.append(_line(label, fmt.fee_with_level(getattr(data, attr))))
    lines.append("")
    lines.append(_latency(envelope))
    return "\n".join(lines)


def fees_to_json(data: FeeEstimate, envelope: ResultEnvelope[FeeEstimate]) -> dict[str, Any]:
    return {
        "fastest": data.fastest,
        "halfHour": data.half_hour,
        "hour": data.hour,
        "economy": data.economy,
        "minimum": data.minimum,
        "unit": data.unit,
    }


def fees_diff(previous: FeeEstimate, current: FeeEstimate) -> dict[str, Any]:
    return field_delta(previous, current, FEE_DELTA_FIELDS, ndigits=2)


# ---------------------------------------------------------------------------
# Mempool
# ---------------------------------------------------------------------------

HISTOGRAM_ROWS: int = 10


def _histogram_lines(histogram: tuple[tuple[float, int], ...]) -> list[str]:
    rows = histogram[:HISTOGRAM_ROWS]
    peak = max(size for _, size in rows)
    lines = ["", "  [bold]Fee histogram[/bold] [dim](sat/vB)[/dim]"]
    for rate, size in rows:
        lines.append(
            f"  {f'{rate:g}+':>7} {fmt.format_vsize(size):>10} "
            f"[cyan]{fmt.histogram_bar(size, peak)}[/cyan]"
        )
    if len(histogram) > HISTOGRAM_ROWS:
        lines.append(f"  [dim]... {len(histogram) - HISTOGRAM_ROWS} lower buckets[/dim]")

    floor = next_block_fee_floor(histogram)
    lines.append("")
    lines.append(_line(
        "Next block floor",
        fmt.fee_with_level(floor) if floor is not None else "everything fits in one block",
    ))
    lines.append(_line("Blocks to clear", f"~{blocks_to_clear(histogram)}"))
    return lines


def mempool_renderer(detailed: bool = False) -> HumanRenderer[MempoolInfo]:
    """Mempool view; *detailed* adds the fee histogram and what it implies."""

    def render(
        data: MempoolInfo,
        envelope: ResultEnvelope[MempoolInfo],
        previous: MempoolInfo | None,
    ) -> str:
        moved = _moved(data.count, previous.count if previous else None, unit=" txs")
        level = data.congestion_level
        lines = [
            _title("Bitcoin Mempool Status"),
            _line("Transactions", f"{data.count:,}{moved}"),
            _line("Size", fmt.format_vsize(data.vsize)),
            _line("Total fees", fmt.format_sats(data.total_fees)),
            _line("Congestion", f"{fmt.level_symbol(level)} {level.capitalize()}"),
        ]
        if detailed:
            if data.fee_histogram:
                lines += _histogram_lines(data.fee_histogram)
            else:
                lines += ["", "  [dim]No fee histogram from this provider.[/dim]"]
        lines += ["", _latency(envelope)]
        return "\n".join(lines)

    return render


def mempool_to_json(data: MempoolInfo, envelope: ResultEnvelope[MempoolInfo]) -> dict[str, Any]:
    return {
        "count": data.count,
        "vsize": data.vsize,
        "totalFees": data.total_fees,
        "congestionLevel": data.congestion_level,
        "feeHistogram": [list(bucket) for bucket in data.fee_histogram],
    }


def mempool_diff(previous: MempoolInfo, current: MempoolInfo) -> dict[str, Any]:
    delta = field_delta(
        previous, current,
        {"count": "countChange", "vsize": "vsizeChange", "total_fees": "totalFeesChange"},
    )
    if previous.congestion_level != current.congestion_level:
        delta["congestionLevelChange"] = f"{previous.congestion_level} -> {current.congestion_level}"
    return delta


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

def _block_lines(block: BlockData) -> list[str]:
    return [
        _line("Height", f"{block.height:,}"),
        _line("Hash", block.hash),
        _line("Mined", fmt.format_age(block.timestamp)),
        _line("Transactions", f"{block.tx_count:,}"),
        _line("Size", fmt.format_bytes(block.size) if block.size else "unknown"),
        _line("Difficulty", fmt.format_difficulty(block.difficulty) if block.difficulty else "unknown"),
    ]


def render_block(
    data: BlockData,
    envelope: ResultEnvelope[BlockData],
    previous: BlockData | None,
) -> str:
    suffix = ""
    if previous is not None and data.height > previous.height:
        suffix = f" [dim](+{data.height - previous.height} new)[/dim]"
    return "\n".join([_title("Latest Bitcoin Block", suffix), *_block_lines(data), "", _latency(envelope)])


def render_blocks(
    data: tuple[BlockData, ...],
    envelope: ResultEnvelope[tuple[BlockData, ...]],
    previous: tuple[BlockData, ...] | None,
) -> Any:
    from rich.table import Table

    table = Table(
        title=f"Recent Bitcoin Blocks ({len(data)})",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Height", justify="right", style="bold")
    table.add_column("Age")
    table.add_column("Txs", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Hash", overflow="ellipsis", max_width=24)
    for block in data:
        table.add_row(
            f"{block.height:,}",
            fmt.format_age(block.timestamp),
            f"{block.tx_count:,}",
            fmt.format_bytes(block.size),
            block.hash,
        )
    return table


def block_to_json(data: BlockData, envelope: ResultEnvelope[BlockData]) -> dict[str, Any]:
    return _block_dict(data)


def _block_dict(block: BlockData) -> dict[str, Any]:
    return {
        "height": block.height,
        "hash": block.hash,
        "blockTime": block.timestamp,
        "txCount": block.tx_count,
        "size": block.size,
        "weight": block.weight,
        "difficulty": block.difficulty,
    }


def blocks_to_json(
    data: tuple[BlockData, ...],
    envelope: ResultEnvelope[tuple[BlockData, ...]],
) -> dict[str, Any]:
    return {"blocks": [_block_dict(block) for block in data], "count": len(data)}


def block_diff(previous: BlockData, current: BlockData) -> dict[str, Any]:
    return field_delta(previous, current, {"height": "heightChange", "tx_count": "txCountChange"})


# ---------------------------------------------------------------------------
# Hashrate
# ---------------------------------------------------------------------------

def render_hashrate(
    data: HashrateData,
    envelope: ResultEnvelope[HashrateData],
    previous: HashrateData | None,
) -> str:
    moved = ""
    if previous is not None and previous.unit == data.unit:
        moved = _moved(data.current, previous.current, unit=f" {data.unit}")
    lines = [
        _title("Bitcoin Network Hashrate"),
        _line("Hashrate", f"{data.current:,.2f} {data.unit}{moved}"),
        _line("Difficulty", fmt.format_difficulty(data.difficulty)),
        _line("Epoch progress", f"{data.adjustment_progress:.2f}%"),
        _line("Next adjustment", (
            f"{fmt.format_duration(data.estimated_seconds_to_adjustment)} "
            f"({fmt.format_datetime(data.next_adjustment_date)})"
        )),
        "",
        _latency(envelope),
    ]
    return "\n".join(lines)


def hashrate_to_json(data: HashrateData, envelope: ResultEnvelope[HashrateData]) -> dict[str, Any]:
    return {
        "current": data.current,
        "unit": data.unit,
        "difficulty": data.difficulty,
        "adjustmentProgress": data.adjustment_progress,
        "estimatedTimeToAdjustment": data.estimated_seconds_to_adjustment,
        "nextAdjustmentDate": data.next_adjustment_date.isoformat(),
    }


def hashrate_diff(previous: HashrateData, current: HashrateData) -> dict[str, Any]:
    fields = {"difficulty": "difficultyChange", "adjustment_progress": "adjustmentProgressChange"}
    if previous.unit == current.unit:
        fields = {"current": "currentChange", **fields}
    return field_delta(previous, current, fields, ndigits=2)


# ---------------------------------------------------------------------------
# Halving
# ---------------------------------------------------------------------------

def render_halving(
    data: HalvingData,
    envelope: ResultEnvelope[HalvingData],
    previous: HalvingData | None,
) -> str:
    lines = [
        _title("Bitcoin Halving Countdown"),
        _line("Current height", f"{data.current_block_height:,}"),
        _line("Halving height", f"{data.halving_block_height:,}"),
        _line("Blocks remaining", f"{data.blocks_remaining:,}"),
        _line("Estimated date", f"{fmt.format_datetime(data.estimated_date)} (~{data.days_remaining} days)"),
        _line("Reward", f"{data.current_reward:g} BTC → {data.next_reward:g} BTC"),
        "",
        _latency(envelope),
    ]
    return "\n".join(lines)


def halving_to_json(data: HalvingData, envelope: ResultEnvelope[HalvingData]) -> dict[str, Any]:
    return {
        "currentBlockHeight": data.current_block_height,
        "halvingBlockHeight": data.halving_block_height,
        "blocksRemaining": data.blocks_remaining,
        "estimatedDate": data.estimated_date.isoformat(),
        "daysRemaining": data.days_remaining,
        "currentReward": data.current_reward,
        "nextReward": data.next_reward,
    }


def halving_diff(previous: HalvingData, current: HalvingData) -> dict[str, Any]:
    return field_delta(
        previous, current,
        {"blocks_remaining": "blocksRemainingChange", "days_remaining": "daysRemainingChange"},
    )


# ---------------------------------------------------------------------------
# Price and volume
# ---------------------------------------------------------------------------

def render_price(
    data: PriceData,
    envelope: ResultEnvelope[PriceData],
    previous: PriceData | None,
) -> str:
    moved = _moved(data.price, previous.price if previous else None)
    lines = [
        _title("Bitcoin Price"),
        _line("Price", f"{fmt.format_price(data.price, data.currency)}{moved}"),
    ]
    if data.change_percent_24h is not None:
        lines.append(_line("24h change", fmt.format_change_markup(data.change_percent_24h, percent=True)))
    if data.market_cap is not None:
        lines.append(_line("Market cap", fmt.format_compact(data.market_cap, data.currency)))
    lines += [_line("Source", data.source), "", _latency(envelope)]
    return "\n".join(lines)


def price_to_json(data: PriceData, envelope: ResultEnvelope[PriceData]) -> dict[str, Any]:
    return {
        "price": data.price,
        "currency": data.currency,
        "source": data.source,
        "changePercent24h": data.change_percent_24h,
        "marketCap": data.market_cap,
    }


def price_diff(previous: PriceData, current: PriceData) -> dict[str, Any]:
    delta = field_delta(previous, current, {"price": "priceChange"}, ndigits=2)
    if previous.price:
        delta["priceChangePercent"] = round((current.price - previous.price) / previous.price * 100, 4)
    return delta


def render_market_summary(
    data: MarketSummary,
    envelope: ResultEnvelope[MarketSummary],
    previous: MarketSummary | None,
) -> str:
    price = functools.partial(fmt.format_price, currency=data.currency)
    compact = functools.partial(fmt.format_compact, currency=data.currency)
    moved = _moved(data.price, previous.price if previous else None)
    lines = [
        _title("Bitcoin Market Data"),
        _line("Price", f"{price(data.price)}{moved}"),
        _line("24h change", (
            f"{fmt.format_change_markup(data.change_percent_24h, percent=True)} "
            f"({fmt.format_change_markup(data.change_24h)} {data.currency.upper()})"
        )),
        _line("24h range", f"{price(data.low_24h)} - {price(data.high_24h)}"),
        _line("24h volume", compact(data.volume_24h)),
        _line("Market cap", compact(data.market_cap)),
        _line("All-time high", price(data.ath)),
        _line("All-time low", price(data.atl)),
    ]
    if data.last_updated is not None:
        lines.append(_line("Updated", fmt.format_datetime(data.last_updated)))
    lines += ["", _latency(envelope)]
    return "\n".join(lines)


def market_summary_to_json(
    data: MarketSummary,
    envelope: ResultEnvelope[MarketSummary],
) -> dict[str, Any]:
    return {
        "price": data.price,
        "currency": data.currency,
        "change24h": data.change_24h,
        "changePercent24h": data.change_percent_24h,
        "high24h": data.high_24h,
        "low24h": data.low_24h,
        "volume24h": data.volume_24h,
        "marketCap": data.market_cap,
        "ath": data.ath,
        "atl": data.atl,
        "lastUpdated": data.last_updated.isoformat() if data.last_updated else None,
    }


def market_summary_diff(previous: MarketSummary, current: MarketSummary) -> dict[str, Any]:
    return field_delta(
        previous, current,
        {"price": "priceChange", "volume_24h": "volumeChange", "market_cap": "marketCapChange"},
        ndigits=2,
    )


def render_volume(
    data: VolumeData,
    envelope: ResultEnvelope[VolumeData],
    previous: VolumeData | None,
) -> str:
    lines = [
        _title("Bitcoin 24h Trading Volume"),
        _line("Volume", fmt.format_compact(data.volume_24h, data.currency)),
        _line("Change (est.)", (
            f"{fmt.format_change_markup(data.volume_change_percent_24h, percent=True)} "
            f"({fmt.format_compact(data.volume_change_24h, data.currency)})"
        )),
        _line("Updated", fmt.format_datetime(data.timestamp)),
        "",
        _latency(envelope),
    ]
    return "\n".join(lines)


def volume_to_json(data: VolumeData, envelope: ResultEnvelope[VolumeData]) -> dict[str, Any]:
    return {
        "volume24h": data.volume_24h,
        "volumeChange24h": data.volume_change_24h,
        "volumeChangePercent24h": data.volume_change_percent_24h,
        "currency": data.currency,
        "updatedAt": data.timestamp.isoformat(),
    }


def volume_diff(previous: VolumeData, current: VolumeData) -> dict[str, Any]:
    return field_delta(previous, current, {"volume_24h": "volumeChange"}, ndigits=2)


# ---------------------------------------------------------------------------
# Change, high/low and sparkline
# ---------------------------------------------------------------------------

def change_renderer(detailed: bool = False) -> HumanRenderer[PriceChangeData]:
    """Price change view; *detailed* adds the 7d and 30d rows."""

    def render(
        data: PriceChangeData,
        envelope: ResultEnvelope[PriceChangeData],
        previous: PriceChangeData | None,
    ) -> str:
        moved = _moved(data.current, previous.current if previous else None)
        lines = [
            _title("Bitcoin Price Change"),
            _line("Price", f"{fmt.format_price(data.current, data.currency)}{moved}"),
            _line("24h", f"{fmt.format_change_markup(data.change_24h)} {data.currency.upper()}"),
            _line("1h", fmt.format_change_markup(data.change_percent_1h, percent=True)),
            _line("24h %", fmt.format_change_markup(data.change_percent_24h, percent=True)),
        ]
        if detailed:
            lines.append(_line("7d", fmt.format_change_markup(data.change_percent_7d, percent=True)))
            lines.append(_line("30d", fmt.format_change_markup(data.change_percent_30d, percent=True)))
        lines += ["", _latency(envelope)]
        return "\n".join(lines)

    return render


def change_to_json(data: PriceChangeData, envelope: ResultEnvelope[PriceChangeData]) -> dict[str, Any]:
    return {
        "current": data.current,
        "change24h": data.change_24h,
        "changePercent1h": data.change_percent_1h,
        "changePercent24h": data.change_percent_24h,
        "changePercent7d": data.change_percent_7d,
        "changePercent30d": data.change_percent_30d,
        "currency": data.currency,
    }


def change_diff(previous: PriceChangeData, current: PriceChangeData) -> dict[str, Any]:
    return field_delta(
        previous, current,
        {"current": "currentChange", "change_percent_24h": "changePercent24hChange"},
        ndigits=4,
    )


def render_highlow(
    data: HighLowData,
    envelope: ResultEnvelope[HighLowData],
    previous: HighLowData | None,
) -> str:
    price = functools.partial(fmt.format_price, currency=data.currency)
    moved = _moved(data.current, previous.current if previous else None)
    lines = [
        _title("Bitcoin High / Low"),
        _line("Current", f"{price(data.current)}{moved}"),
        _line("24h high", price(data.high_24h)),
        _line("24h low", price(data.low_24h)),
        _line("All-time high", (
            f"{price(data.ath)} on {fmt.format_datetime(data.ath_date)} "
            f"({fmt.format_change_markup(data.ath_change_percent, percent=True)})"
        )),
        _line("All-time low", (
            f"{price(data.atl)} on {fmt.format_datetime(data.atl_date)} "
            f"({fmt.format_change_markup(data.atl_change_percent, percent=True)})"
        )),
        "",
        _latency(envelope),
    ]
    return "\n".join(lines)


def highlow_to_json(data: HighLowData, envelope: ResultEnvelope[HighLowData]) -> dict[str, Any]:
    return {
        "current": data.current,
        "high24h": data.high_24h,
        "low24h": data.low_24h,
        "ath": data.ath,
        "athDate": data.ath_date.isoformat() if data.ath_date else None,
        "athChangePercent": round(data.ath_change_percent, 4),
        "atl": data.atl,
        "atlDate": data.atl_date.isoformat() if data.atl_date else None,
        "atlChangePercent": round(data.atl_change_percent, 4),
        "currency": data.currency,
    }


def highlow_diff(previous: HighLowData, current: HighLowData) -> dict[str, Any]:
    return field_delta(
        previous, current,
        {"current": "currentChange", "high_24h": "high24hChange", "low_24h": "low24hChange"},
        ndigits=2,
    )


def _chart_lines(data: SparklineData, width: int, height: int) -> list[str]:
    if height == 1:
        return [f"  {fmt.sparkline_markup(data.prices, width)}"]
    rows = fmt.sparkline_chart_markup(data.prices, width, height)
    price = functools.partial(fmt.format_compact, currency=data.currency)
    labels = {0: price(max(data.prices)), len(rows) - 1: price(min(data.prices))}
    return [
        f"  {row} [dim]{labels[index]}[/dim]" if index in labels else f"  {row}"
        for index, row in enumerate(rows)
    ]


def sparkline_renderer(width: int, height: int = 1) -> HumanRenderer[SparklineData]:
    """Price chart view, one line tall or *height* rows with max/min labels."""

    def render(
        data: SparklineData,
        envelope: ResultEnvelope[SparklineData],
        previous: SparklineData | None,
    ) -> str:
        change = (data.last - data.first) / data.first * 100 if data.first else 0.0
        price = functools.partial(fmt.format_price, currency=data.currency)
        lines = [
            _title(f"Bitcoin Price ({data.timeframe})"),
            *_chart_lines(data, width, height),
            "",
            _line("Range", f"{price(min(data.prices))} - {price(max(data.prices))}"),
            _line("Change", f"{price(data.first)} → {price(data.last)} ({fmt.format_change_markup(change, percent=True)})"),
            _line("Points", str(len(data.prices))),
            "",
            _latency(envelope),
        ]
        return "\n".join(lines)

    return render


def sparkline_json_formatter(width: int, height: int = 1) -> JsonFormatter[SparklineData]:
    def to_json(data: SparklineData, envelope: ResultEnvelope[SparklineData]) -> dict[str, Any]:
        document: dict[str, Any] = {
            "prices": list(data.prices),
            "timeframe": data.timeframe,
            "currency": data.currency,
            "min": min(data.prices),
            "max": max(data.prices),
            "first": data.first,
            "last": data.last,
            "sparkline": fmt.sparkline(data.prices, width),
            "width": width,
            "height": height,
        }
        if height > 1:
            document["chart"] = fmt.sparkline_chart(data.prices, width, height)
        return document

    return to_json


def sparkline_diff(previous: SparklineData, current: SparklineData) -> dict[str, Any]:
    return field_delta(previous, current, {"last": "lastChange"}, ndigits=2)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_command(ctx: AppContext, args: argparse.Namespace) -> CommandSpec[Any]:
    """Return the :class:`CommandSpec` for the parsed sub-command."""
    name: str = args.command
    currency: str = getattr(args, "currency", None) or ctx.settings.default_currency
    detailed: bool = getattr(args, "detailed", False)

    if name == "fees":
        return CommandSpec(
            name, functools.partial(capture, ctx.chain.fees),
            render_fees, fees_to_json, fees_diff, title="fee estimates",
        )
    if name == "mempool":
        return CommandSpec(
            name, functools.partial(capture, ctx.chain.mempool),
            mempool_renderer(detailed), mempool_to_json, mempool_diff, title="mempool info",
        )
    if name == "block":
        if args.hash:
            return CommandSpec(
                name, functools.partial(capture, ctx.chain.block_by_hash, args.hash),
                render_block, block_to_json, block_diff, title="block",
            )
        if args.recent is not None:
            return CommandSpec(
                name, functools.partial(capture, ctx.chain.recent_blocks, args.recent),
                render_blocks, blocks_to_json, title="recent blocks",
            )
        return CommandSpec(
            name, functools.partial(capture, ctx.chain.current_block),
            render_block, block_to_json, block_diff, title="current block",
        )
    if name == "hashrate":
        return CommandSpec(
            name, functools.partial(capture, ctx.chain.hashrate),
            render_hashrate, hashrate_to_json, hashrate_diff, title="hashrate",
        )
    if name == "halving":
        return CommandSpec(
            name, functools.partial(capture, ctx.chain.halving),
            render_halving, halving_to_json, halving_diff, title="halving data",
        )
    if name == "price":
        if detailed:
            return CommandSpec(
                name, functools.partial(capture, ctx.market.market_summary, currency),
                render_market_summary, market_summary_to_json, market_summary_diff,
                title="market data",
            )
        return CommandSpec(
            name, functools.partial(capture, ctx.market.price, currency),
            render_price, price_to_json, price_diff, title="price",
        )
    if name == "volume":
        return CommandSpec(
            name, functools.partial(capture, ctx.market.volume, currency),
            render_volume, volume_to_json, volume_diff, title="volume data",
        )
    if name == "change":
        return CommandSpec(
            name, functools.partial(capture, ctx.market.change, currency),
            change_renderer(detailed), change_to_json, change_diff, title="price changes",
        )
    if name == "highlow":
        return CommandSpec(
            name, functools.partial(capture, ctx.market.high_low, currency),
            render_highlow, highlow_to_json, highlow_diff, title="high/low data",
        )
    if name == "sparkline":
        height: int = getattr(args, "height", 1)
        return CommandSpec(
            name,
            functools.partial(capture, ctx.market.sparkline, currency, args.timeframe),
            sparkline_renderer(args.width, height),
            sparkline_json_formatter(args.width, height),
            sparkline_diff,
            title="sparkline data",
        )
    raise ValueError(f"unknown command: {name}")
