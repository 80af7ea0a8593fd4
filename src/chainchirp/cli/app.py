"""CLI application entry point and command routing for chainchirp.

This module is the **sole error boundary** for the entire application.
It catches :class:`~chainchirp.exceptions.ChainchirpError`,
``KeyboardInterrupt`` and any unexpected ``Exception``, rendering
user-friendly messages via Rich and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here; all work is delegated to the services
  and to :class:`~chainchirp.core.runner.CommandRunner`.
* One event loop per process: :func:`main` calls :func:`asyncio.run`
  once per command.
* In watch mode SIGINT/SIGTERM ask the runner to stop, so the loop ends
  between ticks with exit code 0.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Iterator

from chainchirp.cli import exit_codes
from chainchirp.cli.console import err_console, escape_markup
from chainchirp.cli.formatting import MAX_CHART_HEIGHT
from chainchirp.cli.logging_setup import configure_logging
from chainchirp.config import SUPPORTED_CURRENCIES, Settings
from chainchirp.core.intervals import normalize_interval
from chainchirp.core.protocols import JsonTransport
from chainchirp.core.runner import CommandRunner, RunOptions
from chainchirp.exceptions import ChainchirpError, ConfigurationError
from chainchirp.services.chain import MAX_RECENT_BLOCKS
from chainchirp.services.market import SUPPORTED_TIMEFRAMES
from chainchirp.version import __version__

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser with one sub-command per query."""
    parser = argparse.ArgumentParser(
        prog="chainchirp",
        description="Bitcoin chain and market data in your terminal.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    debug = argparse.ArgumentParser(add_help=False)
    debug.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging on stderr.",
    )

    common = argparse.ArgumentParser(add_help=False, parents=[debug])
    common.add_argument("--json", action="store_true", help="Machine-readable JSON output.")
    common.add_argument(
        "-w", "--watch", action="store_true", help="Refresh continuously until Ctrl+C.",
    )
    common.add_argument(
        "-i", "--interval",
        default=None,
        metavar="SECONDS",
        help="Seconds between refreshes in watch mode (default depends on the command).",
    )
    common.add_argument(
        "--max-failures",
        type=int,
        default=None,
        metavar="N",
        help="Stop watching after N failed refreshes in a row (0 = never).",
    )
    common.add_argument(
        "--count",
        type=int,
        default=None,
        metavar="N",
        help="Stop watching after N refreshes (default: until Ctrl+C).",
    )

    market = argparse.ArgumentParser(add_help=False)
    market.add_argument(
        "-c", "--currency",
        type=str.lower,
        choices=SUPPORTED_CURRENCIES,
        default=None,
        help="Quote currency (default: CHAINCHIRP_CURRENCY or usd).",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    price = sub.add_parser("price", parents=[common, market], help="Current BTC price.")
    price.add_argument(
        "--detailed",
        action="store_true",
        help="Full market data: 24h high/low, volume, market cap, ATH and ATL.",
    )
    sub.add_parser("volume", parents=[common, market], help="24h trading volume.")
    change = sub.add_parser("change", parents=[common, market], help="Price change over 1h and 24h.")
    change.add_argument("--detailed", action="store_true", help="Also show 7d and 30d changes.")
    sub.add_parser("highlow", parents=[common, market], help="24h and all-time high/low.")

    spark = sub.add_parser("sparkline", parents=[common, market], help="Price history sparkline.")
    spark.add_argument("-t", "--timeframe", choices=SUPPORTED_TIMEFRAMES, default="7d")
    spark.add_argument("--width", type=int, default=40, help="Sparkline width in characters.")
    spark.add_argument(
        "--height",
        type=int,
        default=1,
        help=f"Chart height in rows (1-{MAX_CHART_HEIGHT}); 1 draws a one-line sparkline.",
    )

    sub.add_parser("fees", parents=[common], help="Recommended transaction fees.")
    mempool = sub.add_parser("mempool", parents=[common], help="Mempool size and congestion.")
    mempool.add_argument(
        "--detailed", action="store_true", help="Add the fee histogram and its analysis.",
    )
    sub.add_parser("hashrate", parents=[common], help="Network hashrate and difficulty epoch.")
    sub.add_parser("halving", parents=[common], help="Countdown to the next halving.")

    block = sub.add_parser("block", parents=[common], help="Latest, recent or specific block.")
    which = block.add_mutually_exclusive_group()
    which.add_argument("--hash", default=None, help="Look up one block by hash.")
    which.add_argument(
        "--recent",
        type=int,
        default=None,
        metavar="N",
        help=f"Show the N most recent blocks (1-{MAX_RECENT_BLOCKS}).",
    )

    sub.add_parser("doctor", parents=[debug], help="Check the environment and providers.")
    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _run_options(args: argparse.Namespace, settings: Settings) -> RunOptions:
    from chainchirp.cli.commands import INTERVAL_TYPES

    interval = normalize_interval(
        args.interval if args.watch else None, INTERVAL_TYPES[args.command],
    )
    max_failures = settings.max_consecutive_failures
    if args.max_failures is not None:
        if args.max_failures < 0:
            raise ConfigurationError("--max-failures cannot be negative")
        max_failures = args.max_failures
    if args.count is not None and args.count < 1:
        raise ConfigurationError("--count must be at least 1")
    _check_chart_size(args)
    return RunOptions(
        watch=args.watch,
        json=args.json,
        interval=interval,
        max_consecutive_failures=max_failures,
        max_ticks=args.count,
        clear_screen=settings.clear_screen,
    )


def _check_chart_size(args: argparse.Namespace) -> None:
    if getattr(args, "width", 1) < 1:
        raise ConfigurationError("--width must be at least 1")
    height = getattr(args, "height", 1)
    if not 1 <= height <= MAX_CHART_HEIGHT:
        raise ConfigurationError(
            f"--height must be between 1 and {MAX_CHART_HEIGHT}", hint="Try --height 8.",
        )


@contextlib.contextmanager
def _stop_on_signals(runner: CommandRunner) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``runner.stop`` where the loop supports it."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.stop)
        except (NotImplementedError, RuntimeError, ValueError):
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def _run_command(
    args: argparse.Namespace,
    settings: Settings,
    options: RunOptions,
    transport: JsonTransport | None,
) -> int:
    from chainchirp.cli.commands import build_command
    from chainchirp.cli.output import RichOutput
    from chainchirp.context import open_context

    runner = CommandRunner(RichOutput())
    async with open_context(settings, transport) as ctx:
        spec = build_command(ctx, args)
        if not options.watch:
            code = await runner.run(spec, options)
        else:
            with _stop_on_signals(runner):
                code = await runner.run(spec, options)
        logger.debug("cache after %s: %s", spec.name, ctx.cache.stats())
    if runner.stopped:
        err_console.print("\n[green]✓[/green] Watch stopped.")
    return code


def _handle_command(
    args: argparse.Namespace,
    settings: Settings,
    transport: JsonTransport | None = None,
) -> int:
    options = _run_options(args, settings)
    try:
        return asyncio.run(_run_command(args, settings, options, transport))
    except KeyboardInterrupt:
        if not options.watch:
            raise
        # Platforms without loop signal handlers end a watch here.
        err_console.print("\n[green]✓[/green] Watch stopped.")
        return exit_codes.SUCCESS


def _handle_doctor(settings: Settings) -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from chainchirp.cli.doctor import run_doctor

    return run_doctor(settings)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(
    argv: list[str] | None = None,
    *,
    transport: JsonTransport | None = None,
) -> int:
    """Run the chainchirp CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.
    transport:
        JSON transport override; tests pass one backed by
        ``httpx.MockTransport``.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return exit_codes.SUCCESS

    settings = Settings.from_env()
    configure_logging(settings.debug or args.debug)
    logger.debug("chainchirp %s: %s", __version__, args)

    if args.command == "doctor":
        return _handle_doctor(settings)

    return _handle_command(args, settings, transport)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except ChainchirpError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape_markup(str(exc))}")
        if exc.hint:
            err_console.print(f"[yellow]Hint:[/yellow] {escape_markup(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        logger.debug("unexpected error", exc_info=True)
        err_console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape_markup(str(exc))}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
