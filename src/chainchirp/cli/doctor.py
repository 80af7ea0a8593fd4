"""``chainchirp doctor``: environment and provider diagnostics.

Gathers runtime information and probes every configured provider's
health endpoint concurrently, then renders a Rich table summarising
whether chainchirp can do its job.

Unreachable providers are warnings, not failures: the fallback chains
exist precisely so that one provider being down is survivable.
"""

from __future__ import annotations

import asyncio
import platform
import sys

from chainchirp.cli import exit_codes
from chainchirp.cli.console import err_console
from chainchirp.config import Settings
from chainchirp.context import open_context
from chainchirp.core.protocols import JsonTransport
from chainchirp.version import __version__

Check = tuple[str, str, str]

OK = "[green]OK[/green]"
FAIL = "[red]FAIL[/red]"


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _chainchirp_version_check() -> Check:
    return "chainchirp", __version__, OK


def _python_version_check() -> Check:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    return "Python", version, OK if ok else "[red]FAIL (>=3.10 required)[/red]"


def _library_check(distribution: str) -> Check:
    """Return (label, value, status) for an installed library."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return distribution, version(distribution), OK
    except PackageNotFoundError:
        return distribution, "NOT INSTALLED", FAIL


def _os_check() -> Check:
    system_raw = platform.system()
    system_display = {"Darwin": "macOS"}.get(system_raw, system_raw)
    return "OS", f"{system_display} {platform.release()} ({platform.machine()})", OK


async def _provider_checks(
    settings: Settings,
    transport: JsonTransport | None,
) -> list[Check]:
    async with open_context(settings, transport) as ctx:
        health = await ctx.client.health_check()
        providers = ctx.client.providers
    return [
        (
            providers[pid].display_name,
            providers[pid].base_url,
            OK if reachable else "[yellow]WARN (unreachable)[/yellow]",
        )
        for pid, reachable in health.items()
    ]


def _status_plain(status: str) -> str:
    for word in ("FAIL", "WARN", "OK"):
        if word in status:
            return word
    return status


def _print_plain_doctor_table(checks: list[Check]) -> None:
    """Render doctor output without Rich."""
    print("\nchainchirp doctor", file=sys.stderr)
    print("=" * 72, file=sys.stderr)
    print(f"{'Component':<16} {'Value':<44} {'Status':<8}", file=sys.stderr)
    print("-" * 72, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<16} {value:<44} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor(
    settings: Settings | None = None,
    *,
    transport: JsonTransport | None = None,
) -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check failed,
        :data:`exit_codes.GENERAL_ERROR` otherwise.
    """
    checks = [
        _chainchirp_version_check(),
        _python_version_check(),
        _library_check("httpx"),
        _library_check("rich"),
        _os_check(),
    ]
    if not any("FAIL" in status for _, _, status in checks[:4]):
        checks += asyncio.run(_provider_checks(settings or Settings(), transport))

    has_failure = any("FAIL" in status for _, _, status in checks)
    has_warning = any("WARN" in status for _, _, status in checks)

    try:
        from rich.table import Table
    except ModuleNotFoundError:
        _print_plain_doctor_table(checks)
    else:
        table = Table(
            title="chainchirp doctor",
            show_header=True,
            header_style="bold cyan",
            border_style="dim",
        )
        table.add_column("Component", style="bold", min_width=12)
        table.add_column("Value", min_width=20)
        table.add_column("Status", justify="center", min_width=8)
        for label, value, status in checks:
            table.add_row(label, value, status)

        err_console.print()
        err_console.print(table)
        err_console.print()

    if has_failure:
        err_console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR
    if has_warning:
        err_console.print("[yellow]Some providers are unreachable; fallbacks will be used.[/yellow]")
    else:
        err_console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
