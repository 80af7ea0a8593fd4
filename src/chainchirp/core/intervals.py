"""Watch-interval rules per command family.

Slow-moving data (halving, hashrate) allows and defaults to longer
intervals than fast-moving data (mempool, fees).
"""

from __future__ import annotations

from dataclasses import dataclass

from chainchirp.exceptions import InvalidIntervalError


@dataclass(frozen=True, slots=True)
class IntervalRule:
    minimum: int
    maximum: int
    default: int
    description: str


GLOBAL_RULE = IntervalRule(5, 3600, 30, "General update interval")

INTERVAL_RULES: dict[str, IntervalRule] = {
    "market": IntervalRule(5, 3600, 30, "Market data updates (price, volume, etc.)"),
    "mempool": IntervalRule(5, 300, 15, "Mempool status and fee updates"),
    "fees": IntervalRule(10, 600, 30, "Transaction fee estimates"),
    "hashrate": IntervalRule(30, 3600, 60, "Network hashrate and difficulty"),
    "halving": IntervalRule(60, 3600, 120, "Bitcoin halving countdown"),
    "block": IntervalRule(10, 600, 30, "Blockchain block data"),
}


def rule_for(command_type: str | None) -> IntervalRule:
    if command_type is None:
        return GLOBAL_RULE
    return INTERVAL_RULES.get(command_type, GLOBAL_RULE)


def normalize_interval(
    value: int | float | str | None,
    command_type: str | None = None,
) -> int:
    """Return a validated interval in seconds.

    ``None`` selects the rule's default.

    Raises
    ------
    InvalidIntervalError
        For non-integer values or values outside the rule's range.
    """
    rule = rule_for(command_type)
    if value is None:
        return rule.default

    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise InvalidIntervalError(f"Invalid interval format: {value}") from None
    if not numeric.is_integer() or numeric < 1:
        raise InvalidIntervalError(
            f"Interval must be a positive integer (provided: {value})",
        )

    seconds = int(numeric)
    if seconds < rule.minimum:
        raise InvalidIntervalError(
            f"Interval too small. Minimum: {rule.minimum}s (provided: {seconds}s)",
            hint=recommendation(command_type),
        )
    if seconds > rule.maximum:
        raise InvalidIntervalError(
            f"Interval too large. Maximum: {rule.maximum}s (provided: {seconds}s)",
            hint=recommendation(command_type),
        )
    return seconds


def format_interval(seconds: int) -> str:
    """Format seconds compactly: ``45s``, ``2m 5s``, ``1h 30m``."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        minutes, rest = divmod(seconds, 60)
        return f"{minutes}m {rest}s" if rest else f"{minutes}m"
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def recommendation(command_type: str | None = None) -> str:
    rule = rule_for(command_type)
    return (
        f"Recommended: {format_interval(rule.default)} "
        f"({format_interval(rule.minimum)} - {format_interval(rule.maximum)})"
    )
