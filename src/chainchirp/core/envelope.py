"""Wrap a fetch-and-normalize coroutine into a :class:`ResultEnvelope`."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from chainchirp.core.models import ResultEnvelope
from chainchirp.exceptions import ChainchirpError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def capture(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    clock: Callable[[], float] = time.perf_counter,
    **kwargs: Any,
) -> ResultEnvelope[T]:
    """Await ``fn(*args, **kwargs)`` and time it.

    Chainchirp errors become a failed envelope.  Anything else is left to
    propagate to the runner, which treats it as an unexpected fault.
    """
    started = clock()
    try:
        data = await fn(*args, **kwargs)
    except ChainchirpError as exc:
        elapsed = _elapsed_ms(started, clock())
        logger.debug("%s failed after %dms: %s", _name(fn), elapsed, exc)
        return ResultEnvelope.fail(exc, execution_time_ms=elapsed)
    return ResultEnvelope.ok(data, execution_time_ms=_elapsed_ms(started, clock()))


def _elapsed_ms(started: float, finished: float) -> int:
    return max(0, round((finished - started) * 1000))


def _name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", repr(fn))
