"""Tests for the four-mode CommandRunner (core/runner.py).

Operations are scripted: each invocation pops the next outcome.  Watch
tests use sub-second intervals and ``max_ticks`` so they finish quickly.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest

from chainchirp.core.models import ResultEnvelope
from chainchirp.core.runner import (
    FAILURE,
    SUCCESS,
    CommandRunner,
    CommandSpec,
    RunMode,
    RunOptions,
    select_mode,
)
from chainchirp.exceptions import ChainchirpError, ProviderFailure
from conftest import RecordingOutput


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class ScriptedOperation:
    """Operation returning one scripted outcome per call.

    Outcomes are data values, chainchirp errors (turned into failed
    envelopes) or other exceptions (raised as-is).  The last outcome
    repeats once the script runs out.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[float] = []

    async def __call__(self) -> ResultEnvelope[Any]:
        self.calls.append(time.monotonic())
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, ChainchirpError):
            return ResultEnvelope.fail(outcome)
        if isinstance(outcome, BaseException):
            raise outcome
        return ResultEnvelope.ok(outcome, execution_time_ms=3)


def _render(data: dict[str, Any], envelope: ResultEnvelope[Any], previous: Any) -> Any:
    return ("view", data, previous)


def _to_json(data: dict[str, Any], envelope: ResultEnvelope[Any]) -> dict[str, Any]:
    return dict(data)


def _diff(previous: dict[str, Any], current: dict[str, Any]) -> dict[str, Any]:
    return {f"{key}Change": current[key] - previous[key] for key in current}


def _spec(operation: ScriptedOperation) -> CommandSpec[Any]:
    return CommandSpec("fees", operation, _render, _to_json, _diff, title="fee estimates")


def _run(output: RecordingOutput, spec: CommandSpec[Any], options: RunOptions) -> int:
    async def go() -> int:
        return await CommandRunner(output).run(spec, options)

    return asyncio.run(go())


def _down() -> ProviderFailure:
    return ProviderFailure("mempool", "HTTP 503")


# ---------------------------------------------------------------------------
# Mode selection
# ---------------------------------------------------------------------------

class TestSelectMode:
    @pytest.mark.parametrize(
        ("watch", "json", "mode"),
        [
            (False, False, RunMode.ONCE_HUMAN),
            (False, True, RunMode.ONCE_JSON),
            (True, False, RunMode.WATCH_HUMAN),
            (True, True, RunMode.WATCH_JSON),
        ],
    )
    def test_flags_map_to_mode(self, watch: bool, json: bool, mode: RunMode) -> None:
        assert select_mode(watch=watch, json=json) is mode
        assert RunOptions(watch=watch, json=json).mode is mode
        assert mode.is_watch is watch
        assert mode.is_json is json

    def test_label_falls_back_to_name(self) -> None:
        spec = CommandSpec("fees", ScriptedOperation(1), _render, _to_json)
        assert spec.label == "fees"


# ---------------------------------------------------------------------------
# One-shot modes
# ---------------------------------------------------------------------------

class TestOnceHuman:
    def test_success_renders_once(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation({"fastest": 10})
        assert _run(recording_output, _spec(op), RunOptions()) == SUCCESS
        assert len(op.calls) == 1
        assert recording_output.of("status") == ["Fetching fee estimates..."]
        assert recording_output.of("render") == [("view", {"fastest": 10}, None)]
        assert recording_output.of("error") == []

    def test_failure_reports_and_exits_1(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation(_down())
        assert _run(recording_output, _spec(op), RunOptions()) == FAILURE
        [(message, hint)] = recording_output.of("error")
        assert message == "Failed to fetch fee estimates: mempool: HTTP 503"
        assert hint is None
        assert recording_output.of("render") == []

    def test_interval_is_ignored(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation({"fastest": 10})
        _run(recording_output, _spec(op), RunOptions(interval=0.01, max_ticks=5))
        assert len(op.calls) == 1


class TestOnceJson:
    def test_success_document(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation({"fastest": 10})
        assert _run(recording_output, _spec(op), RunOptions(json=True, max_ticks=5)) == SUCCESS
        assert len(op.calls) == 1
        [document] = recording_output.of("json")
        assert document["fastest"] == 10
        assert document["executionTime"] == 3
        assert "timestamp" in document
        assert "changes" not in document

    def test_failure_document(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation(_down())
        assert _run(recording_output, _spec(op), RunOptions(json=True)) == FAILURE
        [document] = recording_output.of("json")
        assert document["error"] == "mempool: HTTP 503"
        assert document["kind"] == "ProviderFailure"
        assert document["command"] == "fees"
        assert recording_output.of("error") == []

    def test_unexpected_exception_is_contained(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation(RuntimeError("boom"))
        assert _run(recording_output, _spec(op), RunOptions(json=True)) == FAILURE
        [document] = recording_output.of("json")
        assert document["kind"] == "CommandExecutionError"
        assert document["error"] == "Unexpected error: RuntimeError: boom"
        assert document["hint"] == "Please report this issue."


# ---------------------------------------------------------------------------
# Watch modes
# ---------------------------------------------------------------------------

class TestWatch:
    def test_ticks_are_spaced_by_interval(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation({"fastest": 10})
        options = RunOptions(watch=True, json=True, interval=0.05, max_ticks=3)
        assert _run(recording_output, _spec(op), options) == SUCCESS
        assert len(op.calls) == 3
        gaps = [later - earlier for earlier, later in zip(op.calls, op.calls[1:])]
        assert all(gap >= 0.05 * 0.9 for gap in gaps)

    def test_json_ticks_carry_changes(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation({"fastest": 10}, {"fastest": 15})
        options = RunOptions(watch=True, json=True, interval=0.01, max_ticks=2)
        _run(recording_output, _spec(op), options)
        first, second = recording_output.of("json")
        assert first["changes"] == {}
        assert first["tick"] == 1
        assert second["changes"] == {"fastestChange": 5}
        assert second["tick"] == 2

    def test_failed_tick_does_not_replace_previous(
        self, recording_output: RecordingOutput
    ) -> None:
        op = ScriptedOperation({"fastest": 10}, _down(), {"fastest": 15})
        options = RunOptions(watch=True, json=True, interval=0.01, max_ticks=3)
        assert _run(recording_output, _spec(op), options) == SUCCESS

        first, failed, third = recording_output.of("json")
        assert first["changes"] == {}
        assert failed["kind"] == "ProviderFailure"
        assert failed["tick"] == 2
        assert failed["consecutiveFailures"] == 1
        assert third["changes"] == {"fastestChange": 5}

    def test_human_ticks_get_previous_and_footer(
        self, recording_output: RecordingOutput
    ) -> None:
        op = ScriptedOperation({"fastest": 10}, {"fastest": 12})
        options = RunOptions(watch=True, interval=0.01, max_ticks=2)
        _run(recording_output, _spec(op), options)

        assert recording_output.of("render") == [
            ("view", {"fastest": 10}, None),
            ("view", {"fastest": 12}, {"fastest": 10}),
        ]
        assert recording_output.kinds().count("clear") == 2
        footer = recording_output.of("footer")[0]
        assert [label for label, _ in footer] == ["Updated", "Interval", "Press"]
        assert footer[1] == ("Interval", "0.01s")

    def test_clear_screen_can_be_disabled(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation({"fastest": 10})
        options = RunOptions(watch=True, interval=0.01, max_ticks=1, clear_screen=False)
        _run(recording_output, _spec(op), options)
        assert "clear" not in recording_output.kinds()

    def test_human_failed_tick_keeps_running(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation(_down(), {"fastest": 10})
        options = RunOptions(watch=True, interval=0.01, max_ticks=2)
        assert _run(recording_output, _spec(op), options) == SUCCESS
        [(message, tick, failures)] = recording_output.of("tick_error")
        assert "fee estimates" in message
        assert (tick, failures) == (1, 1)
        assert len(recording_output.of("render")) == 1

    def test_render_fault_is_a_failed_tick(self, recording_output: RecordingOutput) -> None:
        def render(data: dict[str, Any], envelope: ResultEnvelope[Any], previous: Any) -> Any:
            if data["v"] == 2:
                raise KeyError("boom")
            return ("view", data, previous)

        op = ScriptedOperation({"v": 1}, {"v": 2}, {"v": 3})
        spec = CommandSpec("fees", op, render, _to_json, _diff, title="fee estimates")
        options = RunOptions(watch=True, interval=0.01, max_ticks=3)

        assert _run(recording_output, spec, options) == SUCCESS
        assert len(op.calls) == 3
        [(message, tick, failures)] = recording_output.of("tick_error")
        assert "Unexpected error: KeyError" in message
        assert (tick, failures) == (2, 1)
        assert recording_output.of("render") == [
            ("view", {"v": 1}, None),
            ("view", {"v": 3}, {"v": 1}),
        ]

    def test_json_formatter_fault_is_a_failed_tick(
        self, recording_output: RecordingOutput
    ) -> None:
        def to_json(data: dict[str, Any], envelope: ResultEnvelope[Any]) -> dict[str, Any]:
            if data["fastest"] == 12:
                raise ValueError("cannot format")
            return dict(data)

        op = ScriptedOperation({"fastest": 10}, {"fastest": 12}, {"fastest": 15})
        spec = CommandSpec("fees", op, _render, to_json, _diff)
        options = RunOptions(watch=True, json=True, interval=0.01, max_ticks=3)

        assert _run(recording_output, spec, options) == SUCCESS
        first, failed, third = recording_output.of("json")
        assert failed["kind"] == "CommandExecutionError"
        assert failed["error"] == "Unexpected error: ValueError: cannot format"
        assert (failed["tick"], failed["consecutiveFailures"]) == (2, 1)
        assert third["changes"] == {"fastestChange": 5}

    def test_diff_fault_counts_toward_failure_limit(
        self, recording_output: RecordingOutput
    ) -> None:
        def diff(previous: dict[str, Any], current: dict[str, Any]) -> dict[str, Any]:
            raise ZeroDivisionError("division by zero")

        op = ScriptedOperation({"fastest": 10})
        spec = CommandSpec("fees", op, _render, _to_json, diff, title="fee estimates")
        options = RunOptions(
            watch=True, json=True, interval=0.01, max_consecutive_failures=2, max_ticks=10,
        )

        assert _run(recording_output, spec, options) == FAILURE
        assert len(op.calls) == 3
        docs = recording_output.of("json")
        assert "error" not in docs[0]
        assert [doc["consecutiveFailures"] for doc in docs[1:]] == [1, 2]

    def test_failure_limit_ends_loop_with_1(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation(_down())
        options = RunOptions(
            watch=True, json=True, interval=0.01, max_consecutive_failures=2, max_ticks=10,
        )
        assert _run(recording_output, _spec(op), options) == FAILURE
        assert len(op.calls) == 2
        [(message, _)] = recording_output.of("error")
        assert message == "Stopping watch: fee estimates failed 2 times in a row."

    def test_success_resets_failure_count(self, recording_output: RecordingOutput) -> None:
        op = ScriptedOperation(_down(), {"fastest": 1}, _down(), {"fastest": 2})
        options = RunOptions(
            watch=True, json=True, interval=0.01, max_consecutive_failures=2, max_ticks=4,
        )
        assert _run(recording_output, _spec(op), options) == SUCCESS
        failed = [doc for doc in recording_output.of("json") if "error" in doc]
        assert [doc["consecutiveFailures"] for doc in failed] == [1, 1]


class TestStop:
    def test_stop_during_tick_ends_after_it(self, recording_output: RecordingOutput) -> None:
        async def go() -> tuple[int, int]:
            runner = CommandRunner(recording_output)
            calls = 0

            async def op() -> ResultEnvelope[dict[str, int]]:
                nonlocal calls
                calls += 1
                if calls == 2:
                    runner.stop()
                return ResultEnvelope.ok({"fastest": calls})

            spec = CommandSpec("fees", op, _render, _to_json, _diff)
            code = await runner.run(spec, RunOptions(watch=True, json=True, interval=0.01))
            return code, calls

        assert asyncio.run(go()) == (SUCCESS, 2)

    def test_stop_interrupts_the_sleep(self, recording_output: RecordingOutput) -> None:
        async def go() -> tuple[int, bool]:
            runner = CommandRunner(recording_output)
            spec = _spec(ScriptedOperation({"fastest": 1}))
            asyncio.get_running_loop().call_later(0.05, runner.stop)
            code = await asyncio.wait_for(
                runner.run(spec, RunOptions(watch=True, json=True, interval=30)),
                timeout=5,
            )
            return code, runner.stopped

        assert asyncio.run(go()) == (SUCCESS, True)
        assert len(recording_output.of("json")) == 1
