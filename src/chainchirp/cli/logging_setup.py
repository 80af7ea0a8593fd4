"""Logging configuration for the ``chainchirp`` logger tree.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by the CLI.  Logs always go to stderr so they
never interleave with JSON on stdout.
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "chainchirp"
_HANDLER_NAME = "chainchirp-cli"


def _build_handler() -> logging.Handler:
    try:
        from rich.logging import RichHandler

        from chainchirp.cli.console import get_rich_console
    except ModuleNotFoundError:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"),
        )
        return handler

    handler = RichHandler(
        console=get_rich_console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    return handler


def configure_logging(debug: bool = False) -> logging.Logger:
    """Install the CLI handler on the ``chainchirp`` logger.

    Calling it again replaces the previous handler, so tests and repeated
    ``main()`` calls do not stack handlers.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for existing in list(logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logger.removeHandler(existing)

    handler = _build_handler()
    handler.set_name(_HANDLER_NAME)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger
