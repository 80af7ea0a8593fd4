"""Allow ``python -m chainchirp`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m chainchirp`` behaves identically to the ``chainchirp``
console script.
"""

from __future__ import annotations

from chainchirp.cli.app import cli

if __name__ == "__main__":
    cli()
