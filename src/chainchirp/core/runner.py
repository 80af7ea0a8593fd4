"""Four-mode command execution: once or watch, human or JSON.

A command contributes a :class:`CommandSpec`: an operation plus a human
renderer, a JSON formatter and a diff function.  :class:`CommandRunner`
picks the mode from the ``watch``/``json`` flags and drives the
operation:

============  ======  ===========  ==========================================
watch         json    mode         behaviour
============  ======  ===========  ==========================================
``False``     False   ONCE_HUMAN   run once, render, exit 0 / error, exit 1
``False``     True    ONCE_JSON    run once, one JSON document, exit 0 / 1
``True``      False   WATCH_HUMAN  loop; renderer also gets previous data
``True``      True    WATCH_JSON   loop; one JSON line per tick with changes
============  ======  ===========  ==========================================

Watch loops run the first tick immediately and then wait ``interval``
seconds between ticks.  A failed tick is reported and the loop goes on;
only successful ticks replace the value deltas are computed against.
A tick whose renderer or formatter raises counts as a failed tick.
The loop ends cleanly when :meth:`CommandRunner.stop` is called.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from chainchirp.core.diff import compute_delta
from chainchirp.core.intervals import format_interval
from chainchirp.core.models import ErrorInfo, ResultEnvelope, WatchState
from chainchirp.core.protocols import (
    DiffFn,
    HumanRenderer,
    JsonFormatter,
    Operation,
    Output,
)
from chainchirp.exceptions import ChainchirpError, CommandExecutionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS: int = 0
FAILURE: int = 1


class RunMode(enum.Enum):
    ONCE_HUMAN = "once-human"
    ONCE_JSON = "once-json"
    WATCH_HUMAN = "watch-human"
    WATCH_JSON = "watch-json"

    @property
    def is_watch(self) -> bool:
        return self in (RunMode.WATCH_HUMAN, RunMode.WATCH_JSON)

    @property
    def is_json(self) -> bool:
        return self in (RunMode.ONCE_JSON, RunMode.WATCH_JSON)


def select_mode(*, watch: bool, json: bool) -> RunMode:
    """Map the two process flags to a :class:`RunMode`."""
    if watch:
        return RunMode.WATCH_JSON if json else RunMode.WATCH_HUMAN
    return RunMode.ONCE_JSON if json else RunMode.ONCE_HUMAN


def _no_delta(previous: Any, current: Any) -> dict[str, Any]:
    return {}


@dataclass(frozen=True, slots=True)
class CommandSpec(Generic[T]):
    """Everything the runner needs from one command."""

    name: str
    operation: Operation[T]
    render: HumanRenderer[T]
    to_json: JsonFormatter[T]
    diff: DiffFn[T] = _no_delta
    title: str = ""
    """Noun used in messages, e.g. ``fee estimates``."""

    @property
    def label(self) -> str:
        return self.title or self.name


@dataclass(frozen=True, slots=True)
class RunOptions:
    watch: bool = False
    json: bool = False
    interval: float = 30
    """Seconds between watch ticks; ignored in one-shot modes."""

    max_consecutive_failures: int = 0
    """Abort a watch loop after this many failed ticks in a row; 0 never aborts."""

    max_ticks: int | None = None
    """Stop a watch loop after this many ticks; ``None`` runs until stopped."""

    clear_screen: bool = True

    @property
    def mode(self) -> RunMode:
        return select_mode(watch=self.watch, json=self.json)


class CommandRunner:
    """Drive a :class:`CommandSpec` in the mode selected by :class:`RunOptions`.

    Parameters
    ----------
    output:
        Any object satisfying the :class:`Output` protocol.
    """

    def __init__(self, output: Output) -> None:
        self._output: Output = output
        self._stop: asyncio.Event = asyncio.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Ask a running watch loop to end after its current tick."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def run(self, spec: CommandSpec[T], options: RunOptions) -> int:
        """Execute *spec* and return the process exit code."""
        mode = options.mode
        logger.debug("running %s in %s mode", spec.name, mode.value)
        if mode is RunMode.ONCE_HUMAN:
            return await self._once_human(spec)
        if mode is RunMode.ONCE_JSON:
            return await self._once_json(spec)
        return await self._watch(spec, options)

    # ------------------------------------------------------------------
    # One-shot modes
    # ------------------------------------------------------------------

    async def _once_human(self, spec: CommandSpec[T]) -> int:
        with self._output.status(f"Fetching {spec.label}..."):
            envelope = await self._invoke(spec)

        if envelope.success:
            self._output.render(spec.render(envelope.data, envelope, None))
            return SUCCESS

        error = _error_of(envelope)
        self._output.error(f"Failed to fetch {spec.label}: {error.message}", hint=error.hint)
        return FAILURE

    async def _once_json(self, spec: CommandSpec[T]) -> int:
        envelope = await self._invoke(spec)
        if envelope.success:
            self._output.json(self._success_document(spec, envelope))
            return SUCCESS
        self._output.json(self._failure_document(spec, envelope))
        return FAILURE

    # ------------------------------------------------------------------
    # Watch loop
    # ------------------------------------------------------------------

    async def _watch(self, spec: CommandSpec[T], options: RunOptions) -> int:
        state: WatchState[T] = WatchState()
        json_mode = options.json

        while True:
            state.tick_count += 1
            envelope = await self._invoke(spec)
            if envelope.success:
                envelope = self._emit_tick(spec, envelope, state, options)

            if envelope.success:
                state.previous = envelope.data
                state.consecutive_failures = 0
            else:
                state.consecutive_failures += 1
                self._emit_failed_tick(spec, envelope, state, json_mode)
                limit = options.max_consecutive_failures
                if limit and state.consecutive_failures >= limit:
                    message = (
                        f"Stopping watch: {spec.label} failed "
                        f"{state.consecutive_failures} times in a row."
                    )
                    logger.info(message)
                    self._output.error(message)
                    return FAILURE

            if options.max_ticks is not None and state.tick_count >= options.max_ticks:
                return SUCCESS
            if await self._wait(options.interval):
                logger.debug("watch of %s stopped after %d tick(s)", spec.name, state.tick_count)
                return SUCCESS

    async def _wait(self, interval: float) -> bool:
        """Sleep for *interval* seconds; return ``True`` if stopped meanwhile."""
        if self._stop.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return False
        return True

    def _emit_tick(
        self,
        spec: CommandSpec[T],
        envelope: ResultEnvelope[T],
        state: WatchState[T],
        options: RunOptions,
    ) -> ResultEnvelope[T]:
        """Emit a successful tick, or return a failed envelope if emitting raised.

        ``state`` is only read here, so a renderer or formatter fault leaves
        the previous successful value in place.
        """
        try:
            if options.json:
                self._emit_json_tick(spec, envelope, state)
            else:
                self._emit_human_tick(spec, envelope, state, options)
        except Exception as exc:  # noqa: BLE001
            return self._fault(spec, exc, envelope.execution_time_ms)
        return envelope

    def _emit_human_tick(
        self,
        spec: CommandSpec[T],
        envelope: ResultEnvelope[T],
        state: WatchState[T],
        options: RunOptions,
    ) -> None:
        renderable = spec.render(envelope.data, envelope, state.previous)
        if options.clear_screen:
            self._output.clear()
        self._output.render(renderable)
        self._output.footer(
            [
                ("Updated", envelope.timestamp.astimezone().strftime("%H:%M:%S")),
                ("Interval", _describe_interval(options.interval)),
                ("Press", "Ctrl+C to exit"),
            ]
        )

    def _emit_json_tick(
        self,
        spec: CommandSpec[T],
        envelope: ResultEnvelope[T],
        state: WatchState[T],
    ) -> None:
        document = self._success_document(spec, envelope)
        document["changes"] = compute_delta(spec.diff, state.previous, envelope.data)
        document["tick"] = state.tick_count
        self._output.json(document, compact=True)

    def _emit_failed_tick(
        self,
        spec: CommandSpec[T],
        envelope: ResultEnvelope[T],
        state: WatchState[T],
        json_mode: bool,
    ) -> None:
        error = _error_of(envelope)
        logger.info("tick %d of %s failed: %s", state.tick_count, spec.name, error.message)
        if json_mode:
            document = self._failure_document(spec, envelope)
            document["tick"] = state.tick_count
            document["consecutiveFailures"] = state.consecutive_failures
            self._output.json(document, compact=True)
        else:
            self._output.tick_error(
                f"Failed to fetch {spec.label}: {error.message}",
                tick=state.tick_count,
                consecutive_failures=state.consecutive_failures,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _invoke(self, spec: CommandSpec[T]) -> ResultEnvelope[T]:
        """Run the operation; never raise for ordinary or unexpected faults."""
        try:
            return await spec.operation()
        except Exception as exc:  # noqa: BLE001
            return self._fault(spec, exc)

    @staticmethod
    def _fault(
        spec: CommandSpec[T],
        exc: Exception,
        execution_time_ms: int = 0,
    ) -> ResultEnvelope[T]:
        """Turn an exception raised while running *spec* into a failed envelope."""
        if isinstance(exc, ChainchirpError):
            return ResultEnvelope.fail(exc, execution_time_ms=execution_time_ms)
        logger.debug("unexpected error in %s", spec.name, exc_info=exc)
        return ResultEnvelope.fail(
            CommandExecutionError(
                f"Unexpected error: {type(exc).__name__}: {exc}",
                hint="Please report this issue.",
            ),
            execution_time_ms=execution_time_ms,
        )

    @staticmethod
    def _success_document(
        spec: CommandSpec[T],
        envelope: ResultEnvelope[T],
    ) -> dict[str, Any]:
        document = dict(spec.to_json(envelope.data, envelope))
        document["executionTime"] = envelope.execution_time_ms
        document["timestamp"] = envelope.timestamp.isoformat()
        return document

    @staticmethod
    def _failure_document(
        spec: CommandSpec[T],
        envelope: ResultEnvelope[T],
    ) -> dict[str, Any]:
        document = _error_of(envelope).to_dict()
        document["command"] = spec.name
        document["timestamp"] = envelope.timestamp.isoformat()
        return document


def _describe_interval(interval: float) -> str:
    if float(interval).is_integer() and interval >= 1:
        return format_interval(int(interval))
    return f"{interval:g}s"


def _error_of(envelope: ResultEnvelope[Any]) -> ErrorInfo:
    """Error of a failed envelope, which :class:`ResultEnvelope` guarantees is set."""
    if envelope.error is None:
        return ErrorInfo(kind=CommandExecutionError.__name__, message="no error details")
    return envelope.error
