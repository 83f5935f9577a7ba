"""Tests for TurnAccumulator.

Tests folding of every event kind into TurnState, tool-use deduplication,
the live-output cap and the deferred status clear.
"""

from __future__ import annotations

import asyncio
import json

from typing import Any
from unittest.mock import Mock

import pytest

from chat_stream.core.accumulator import TurnAccumulator
from chat_stream.core.constants import LIVE_OUTPUT_LIMIT
from chat_stream.models.event_models import EventKind, ProtocolEvent
from chat_stream.models.permission_models import PermissionRequest


def ev(kind: EventKind, data: Any = "") -> ProtocolEvent:
    return ProtocolEvent(kind=kind, data=data if isinstance(data, str) else json.dumps(data))


@pytest.fixture
def sink() -> Mock:
    return Mock()


@pytest.fixture
def acc(sink: Mock) -> TurnAccumulator:
    accumulator = TurnAccumulator(on_permission_request=sink, status_clear_delay=0.01)
    accumulator.begin("turn_1")
    return accumulator


class TestLifecycle:
    """Tests for begin/reset/fold."""

    def test_begin_starts_streaming(self, acc: TurnAccumulator) -> None:
        """Test that begin produces a fresh streaming state."""
        assert acc.state.turn_id == "turn_1"
        assert acc.state.streaming is True
        assert acc.state.text == ""

    def test_reset_clears_everything(self, acc: TurnAccumulator) -> None:
        """Test that reset empties state and stops streaming."""
        acc.fold(ev(EventKind.TEXT, "abc"))
        acc.fold(ev(EventKind.TOOL_USE, {"id": "t1", "name": "Read"}))
        acc.reset()
        assert acc.state.text == ""
        assert acc.state.invocations == {}
        assert acc.state.streaming is False
        assert acc.state.turn_id == ""

    def test_fold_reports_done(self, acc: TurnAccumulator) -> None:
        """Test that only done marks end-of-turn."""
        assert acc.fold(ev(EventKind.TEXT, "x")) is False
        assert acc.fold(ev(EventKind.DONE)) is True

    def test_handler_table_is_complete(self, sink: Mock) -> None:
        """Test that every event kind has a handler."""
        accumulator = TurnAccumulator(on_permission_request=sink)
        assert set(accumulator._handlers) == set(EventKind)


class TestText:
    """Tests for text and error folding."""

    def test_text_appends_in_order(self, acc: TurnAccumulator) -> None:
        """Test that text fragments concatenate exactly."""
        acc.fold(ev(EventKind.TEXT, "Hello"))
        acc.fold(ev(EventKind.TEXT, " world"))
        assert acc.state.text == "Hello world"

    def test_error_appends_annotation(self, acc: TurnAccumulator) -> None:
        """Test that an error event annotates the text without ending the turn."""
        acc.fold(ev(EventKind.TEXT, "partial"))
        assert acc.fold(ev(EventKind.ERROR, "boom")) is False
        assert acc.state.text == "partial\n\n**Error:** boom"


class TestTools:
    """Tests for tool_use, tool_result and tool_output folding."""

    def test_duplicate_tool_use_ignored(self, acc: TurnAccumulator) -> None:
        """Test that a repeated invocation id is recorded once."""
        acc.fold(ev(EventKind.TOOL_USE, {"id": "t1", "name": "Read", "input": {"path": "a"}}))
        acc.fold(ev(EventKind.TOOL_USE, {"id": "t1", "name": "Read", "input": {"path": "b"}}))
        assert len(acc.state.tool_uses) == 1
        assert acc.state.tool_uses[0].input == {"path": "a"}

    def test_tool_uses_keep_arrival_order(self, acc: TurnAccumulator) -> None:
        """Test that distinct invocations are kept in order."""
        acc.fold(ev(EventKind.TOOL_USE, {"id": "t2", "name": "Bash"}))
        acc.fold(ev(EventKind.TOOL_USE, {"id": "t1", "name": "Read"}))
        assert [t.id for t in acc.state.tool_uses] == ["t2", "t1"]

    def test_malformed_tool_use_dropped(self, acc: TurnAccumulator) -> None:
        """Test that an invalid tool_use payload leaves state unchanged."""
        acc.fold(ev(EventKind.TOOL_USE, "not json"))
        acc.fold(ev(EventKind.TOOL_USE, {"name": "missing id"}))
        assert acc.state.invocations == {}

    def test_tool_use_clears_live_output(self, acc: TurnAccumulator) -> None:
        """Test that a new invocation empties the live output window."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, "compiling"))
        acc.fold(ev(EventKind.TOOL_USE, {"id": "t1", "name": "Bash"}))
        assert acc.state.live_output.text == ""

    def test_tool_results_not_deduplicated(self, acc: TurnAccumulator) -> None:
        """Test that result fragments accumulate in order."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, "noise"))
        acc.fold(ev(EventKind.TOOL_RESULT, {"tool_use_id": "t1", "content": "one"}))
        acc.fold(ev(EventKind.TOOL_RESULT, {"invocationId": "t1", "content": "two"}))
        assert [r.content for r in acc.state.results] == ["one", "two"]
        assert all(r.invocation_id == "t1" for r in acc.state.results)
        assert acc.state.live_output.text == ""

    def test_live_output_joined_with_newlines(self, acc: TurnAccumulator) -> None:
        """Test that raw tool output fragments are newline-joined."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, "line 1"))
        acc.fold(ev(EventKind.TOOL_OUTPUT, "line 2"))
        assert acc.state.live_output.text == "line 1\nline 2"

    def test_live_output_capped(self, acc: TurnAccumulator) -> None:
        """Test that only the newest characters are retained."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, "a" * 4000))
        acc.fold(ev(EventKind.TOOL_OUTPUT, "b" * 4000))
        text = acc.state.live_output.text
        assert len(text) == LIVE_OUTPUT_LIMIT
        assert text.endswith("b" * 4000)
        assert text.startswith("a" * (LIVE_OUTPUT_LIMIT - 4001))

    def test_progress_heartbeat_sets_status(self, acc: TurnAccumulator) -> None:
        """Test that a heartbeat updates status instead of live output."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, {"_progress": True, "tool_name": "Bash", "elapsed_time_seconds": 4.5}))
        assert acc.state.status == "Running Bash... (5s)"
        assert acc.state.live_output.text == ""

    def test_heartbeat_defaults_tool_name(self, acc: TurnAccumulator) -> None:
        """Test the fallback tool name in progress status."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, {"_progress": True, "elapsed_time_seconds": 2.4}))
        assert acc.state.status == "Running tool... (2s)"

    def test_heartbeat_with_null_fields_sets_status(self, acc: TurnAccumulator) -> None:
        """Test that null tool name and elapsed time still count as a heartbeat."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, '{"_progress":true,"tool_name":null,"elapsed_time_seconds":"x"}'))
        assert acc.state.status == "Running tool... (0s)"
        assert acc.state.live_output.text == ""

    def test_json_without_progress_is_live_output(self, acc: TurnAccumulator) -> None:
        """Test that JSON output lacking the progress flag is treated as raw text."""
        acc.fold(ev(EventKind.TOOL_OUTPUT, '{"line": 1}'))
        assert acc.state.live_output.text == '{"line": 1}'
        assert acc.state.status is None


class TestStatus:
    """Tests for status and result folding."""

    def test_plain_status(self, acc: TurnAccumulator) -> None:
        """Test that non-JSON status is shown verbatim."""
        acc.fold(ev(EventKind.STATUS, "Thinking..."))
        assert acc.state.status == "Thinking..."

    def test_notification_status(self, acc: TurnAccumulator) -> None:
        """Test notification payloads use message, then title."""
        acc.fold(ev(EventKind.STATUS, {"notification": True, "message": "Compacting"}))
        assert acc.state.status == "Compacting"
        acc.fold(ev(EventKind.STATUS, {"notification": True, "title": "Heads up"}))
        assert acc.state.status == "Heads up"

    def test_other_json_status_shown_raw(self, acc: TurnAccumulator) -> None:
        """Test that unrecognized JSON status is shown as its raw payload."""
        acc.fold(ev(EventKind.STATUS, '{"phase": 2}'))
        assert acc.state.status == '{"phase": 2}'

    @pytest.mark.asyncio
    async def test_connected_status_clears_after_delay(self, acc: TurnAccumulator) -> None:
        """Test that the connected status is transient."""
        acc.fold(ev(EventKind.STATUS, {"session_id": "s1", "model": "opus"}))
        assert acc.state.status == "Connected (opus)"
        await asyncio.sleep(0.05)
        assert acc.state.status is None

    @pytest.mark.asyncio
    async def test_connected_status_default_model(self, acc: TurnAccumulator) -> None:
        """Test the model fallback in the connected status."""
        acc.fold(ev(EventKind.STATUS, {"session_id": "s1"}))
        assert acc.state.status == "Connected (claude)"

    @pytest.mark.asyncio
    async def test_newer_status_not_cleared(self, acc: TurnAccumulator) -> None:
        """Test that the timer leaves a status set after it was scheduled."""
        acc.fold(ev(EventKind.STATUS, {"session_id": "s1"}))
        acc.fold(ev(EventKind.STATUS, "Reading files"))
        await asyncio.sleep(0.05)
        assert acc.state.status == "Reading files"

    @pytest.mark.asyncio
    async def test_timer_does_not_leak_into_next_turn(self, acc: TurnAccumulator) -> None:
        """Test that a timer from one turn never touches a later turn."""
        acc.fold(ev(EventKind.STATUS, {"session_id": "s1"}))
        acc.reset()
        acc.begin("turn_2")
        acc.state.status = "Connected (claude)"
        await asyncio.sleep(0.05)
        assert acc.state.status == "Connected (claude)"
        assert len(acc._timers) == 0

    def test_result_captures_usage_and_clears_status(self, acc: TurnAccumulator) -> None:
        """Test that the result event carries token usage."""
        acc.fold(ev(EventKind.STATUS, "Working"))
        acc.fold(ev(EventKind.RESULT, {"usage": {"input_tokens": 10, "output_tokens": 4}, "cost": 0.1}))
        assert acc.state.token_usage == {"input_tokens": 10, "output_tokens": 4}
        assert acc.state.status is None

    def test_result_without_usage(self, acc: TurnAccumulator) -> None:
        """Test that a result lacking usage leaves token usage unset."""
        acc.fold(ev(EventKind.RESULT, "garbage"))
        assert acc.state.token_usage is None


class TestPermissionRequest:
    """Tests for permission_request folding."""

    def test_request_forwarded_to_sink(self, acc: TurnAccumulator, sink: Mock) -> None:
        """Test that a valid request reaches the gate."""
        acc.fold(ev(EventKind.PERMISSION_REQUEST, {"permissionRequestId": "p1", "toolName": "Bash"}))
        sink.assert_called_once()
        request = sink.call_args[0][0]
        assert isinstance(request, PermissionRequest)
        assert request.request_id == "p1"

    def test_malformed_request_dropped(self, acc: TurnAccumulator, sink: Mock) -> None:
        """Test that a request without an id is ignored."""
        acc.fold(ev(EventKind.PERMISSION_REQUEST, {"toolName": "Bash"}))
        sink.assert_not_called()
