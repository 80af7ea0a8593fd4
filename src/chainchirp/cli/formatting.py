"""Number, unit and sparkline formatting for human output.

Functions return plain strings; the ones with a ``_markup`` suffix wrap
their result in Rich colour tags.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timezone

SPARK_CHARS: str = "▁▂▃▄▅▆▇█"
FLAT_CHAR: str = "─"
BAR_CHAR: str = "█"
MAX_CHART_HEIGHT: int = 20

CURRENCY_SYMBOLS: dict[str, str] = {
    "usd": "$",
    "eur": "€",
    "gbp": "£",
    "jpy": "¥",
}

LEVEL_SYMBOLS: dict[str, str] = {
    "low": "[green]●[/green]",
    "medium": "[yellow]●[/yellow]",
    "high": "[red]●[/red]",
}


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------

def fee_level(rate: float) -> str:
    """Classify a fee rate in sat/vB as ``low``, ``medium`` or ``high``."""
    if rate < 10:
        return "low"
    if rate < 50:
        return "medium"
    return "high"


def level_symbol(level: str) -> str:
    return LEVEL_SYMBOLS.get(level, "●")


def fee_with_level(rate: float) -> str:
    return f"{level_symbol(fee_level(rate))} {rate:g} sat/vB"


# ---------------------------------------------------------------------------
# Money and sizes
# ---------------------------------------------------------------------------

def format_price(value: float, currency: str = "usd", *, decimals: int = 2) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency)
    if currency == "jpy":
        decimals = 0
    if symbol is None:
        return f"{value:,.{max(decimals, 4)}f} {currency.upper()}"
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.{decimals}f}"


def format_compact(value: float, currency: str = "usd") -> str:
    """``1.23B USD`` style abbreviation for volumes and market caps."""
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:.2f}{suffix} {currency.upper()}"
    return f"{value:.2f} {currency.upper()}"


def format_change(value: float, *, percent: bool = False) -> str:
    sign = "+" if value >= 0 else ""
    suffix = "%" if percent else ""
    return f"{sign}{value:,.2f}{suffix}"


def format_change_markup(value: float, *, percent: bool = False) -> str:
    colour = "green" if value >= 0 else "red"
    return f"[{colour}]{format_change(value, percent=percent)}[/{colour}]"


def format_vsize(vsize: int) -> str:
    if vsize >= 1_000_000:
        return f"{vsize / 1_000_000:.2f} MvB"
    if vsize >= 1000:
        return f"{vsize / 1000:.2f} kvB"
    return f"{vsize} vB"


def format_sats(sats: int) -> str:
    if sats >= 100_000_000:
        return f"{sats / 100_000_000:.2f} BTC"
    if sats >= 1000:
        return f"{sats / 1000:.0f}K sats"
    return f"{sats} sats"


def format_bytes(size: int) -> str:
    if size >= 1_000_000:
        return f"{size / 1_000_000:.2f} MB"
    if size >= 1000:
        return f"{size / 1000:.2f} KB"
    return f"{size} B"


def format_difficulty(difficulty: float) -> str:
    if difficulty >= 1e12:
        return f"{difficulty / 1e12:.2f} T"
    if difficulty >= 1e9:
        return f"{difficulty / 1e9:.2f} G"
    return f"{difficulty:,.0f}"


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

def format_age(timestamp: int, now: datetime | None = None) -> str:
    """``42s ago``, ``5m 3s ago``, ``2h 10m ago`` or ``3d 4h ago``."""
    current = now or datetime.now(timezone.utc)
    seconds = max(0, int(current.timestamp()) - timestamp)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s ago"
    if seconds < 86400:
        return f"{seconds // 3600}h {seconds % 3600 // 60}m ago"
    return f"{seconds // 86400}d {seconds % 86400 // 3600}h ago"


def format_duration(seconds: int) -> str:
    if seconds < 3600:
        return f"{seconds // 60} minutes"
    if seconds < 86400:
        return f"{seconds // 3600}h {seconds % 3600 // 60}m"
    return f"{seconds // 86400}d {seconds % 86400 // 3600}h"


def format_datetime(value: datetime | None) -> str:
    if value is None:
        return "unknown"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


# ---------------------------------------------------------------------------
# Sparkline
# ---------------------------------------------------------------------------

def sparkline(prices: Sequence[float], width: int = 40) -> str:
    """Render *prices* as a ``width``-character block sparkline.

    A flat series renders as a horizontal rule; an empty one as ``""``.
    """
    if not prices or width < 1:
        return ""
    low, high = min(prices), max(prices)
    span = high - low
    if span == 0:
        return FLAT_CHAR * width

    step = width / len(prices)
    top = len(SPARK_CHARS) - 1
    chars = []
    for column in range(width):
        price = prices[min(math.floor(column / step), len(prices) - 1)]
        index = min(math.floor((price - low) / span * len(SPARK_CHARS)), top)
        chars.append(SPARK_CHARS[index])
    return "".join(chars)


def sparkline_markup(prices: Sequence[float], width: int = 40) -> str:
    line = sparkline(prices, width)
    if not line:
        return line
    colour = "green" if prices[-1] >= prices[0] else "red"
    return f"[{colour}]{line}[/{colour}]"


def sparkline_chart(prices: Sequence[float], width: int = 40, height: int = 8) -> list[str]:
    """Render *prices* as *height* rows of block characters, top row first.

    Each row is ``width`` characters and resolves eight levels, so the
    chart distinguishes ``height * 8`` price steps.  ``height == 1`` is
    the same as :func:`sparkline`.
    """
    if not prices or width < 1 or height < 1:
        return []
    if height == 1:
        return [sparkline(prices, width)]

    low, high = min(prices), max(prices)
    span = high - low
    if span == 0:
        middle = height // 2
        return [FLAT_CHAR * width if row == middle else " " * width for row in range(height)]

    steps = height * len(SPARK_CHARS)
    step = width / len(prices)
    levels = []
    for column in range(width):
        price = prices[min(math.floor(column / step), len(prices) - 1)]
        levels.append(1 + round((price - low) / span * (steps - 1)))

    rows = []
    for row in range(height - 1, -1, -1):
        base = row * len(SPARK_CHARS)
        cells = []
        for level in levels:
            fill = min(level - base, len(SPARK_CHARS))
            cells.append(SPARK_CHARS[fill - 1] if fill > 0 else " ")
        rows.append("".join(cells))
    return rows


def sparkline_chart_markup(
    prices: Sequence[float],
    width: int = 40,
    height: int = 8,
) -> list[str]:
    colour = "green" if prices and prices[-1] >= prices[0] else "red"
    return [f"[{colour}]{row}[/{colour}]" for row in sparkline_chart(prices, width, height)]


# ---------------------------------------------------------------------------
# Histograms
# ---------------------------------------------------------------------------

def histogram_bar(value: float, peak: float, width: int = 20) -> str:
    """Bar of up to *width* blocks, proportional to ``value / peak``."""
    if peak <= 0 or value <= 0:
        return ""
    return BAR_CHAR * min(width, math.floor(value / peak * width))
