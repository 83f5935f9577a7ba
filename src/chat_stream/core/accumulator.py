"""
Turn accumulation: folds decoded events into TurnState.

Each event kind has exactly one handler; the handler table is checked against
EventKind when the accumulator is built so an unhandled kind fails loudly
instead of falling through. Folding is synchronous and strictly in arrival
order. Text is append-only within a turn.
"""

from __future__ import annotations

from collections.abc import Callable

from pydantic import ValidationError

from chat_stream.app.state import TurnState
from chat_stream.core.constants import (
    CONNECTED_STATUS_TEMPLATE,
    DEFAULT_CONNECTED_MODEL,
    ERROR_ANNOTATION_PREFIX,
    PROGRESS_STATUS_TEMPLATE,
    STATUS_CLEAR_DELAY_SECONDS,
)
from chat_stream.core.deferred import DeferredGroup
from chat_stream.models.event_models import (
    EventKind,
    ProgressHeartbeat,
    ProtocolEvent,
    ResultPayload,
    ToolInvocation,
    ToolResult,
)
from chat_stream.models.permission_models import PermissionRequest
from chat_stream.utils.json_utils import parse_json_object, try_parse_json
from chat_stream.utils.logger import logger

EventHandler = Callable[[ProtocolEvent], None]
PermissionSink = Callable[[PermissionRequest], None]


class TurnAccumulator:
    """Owns the live TurnState and the deferred actions tied to it.

    Usage:
        accumulator = TurnAccumulator(on_permission_request=gate.open)
        accumulator.begin(turn_id)
        for event in events:
            if accumulator.fold(event):
                break  # done
        accumulator.reset()
    """

    def __init__(
        self,
        on_permission_request: PermissionSink,
        *,
        status_clear_delay: float = STATUS_CLEAR_DELAY_SECONDS,
    ) -> None:
        self._on_permission_request = on_permission_request
        self._status_clear_delay = status_clear_delay
        self._timers = DeferredGroup()
        self.state = TurnState()
        self._handlers = self._build_handlers()

    def _build_handlers(self) -> dict[EventKind, EventHandler]:
        """Build the handler registry keyed by event kind."""
        handlers: dict[EventKind, EventHandler] = {
            EventKind.TEXT: self._handle_text,
            EventKind.TOOL_USE: self._handle_tool_use,
            EventKind.TOOL_RESULT: self._handle_tool_result,
            EventKind.TOOL_OUTPUT: self._handle_tool_output,
            EventKind.STATUS: self._handle_status,
            EventKind.RESULT: self._handle_result,
            EventKind.PERMISSION_REQUEST: self._handle_permission_request,
            EventKind.ERROR: self._handle_error,
            EventKind.DONE: self._handle_done,
        }
        missing = set(EventKind) - set(handlers)
        if missing:
            raise NotImplementedError(f"No handler for event kinds: {sorted(kind.value for kind in missing)}")
        return handlers

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self, turn_id: str) -> TurnState:
        """Start a fresh turn."""
        self.reset()
        self.state = TurnState(turn_id=turn_id, streaming=True)
        return self.state

    def reset(self) -> None:
        """Destroy the current turn: cancel its timers and empty its state."""
        self._timers.cancel_all()
        self.state = TurnState()

    def fold(self, event: ProtocolEvent) -> bool:
        """Fold one event into the current turn.

        Returns:
            True when the event marks end-of-turn
        """
        self._handlers[event.kind](event)
        return event.kind is EventKind.DONE

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_text(self, event: ProtocolEvent) -> None:
        self.state.text += event.data

    def _handle_tool_use(self, event: ProtocolEvent) -> None:
        try:
            invocation = ToolInvocation.model_validate_json(event.data)
        except ValidationError:
            logger.debug("Skipping malformed tool_use payload")
            return

        if self.state.has_invocation(invocation.id):
            return

        self.state.invocations[invocation.id] = invocation
        self.state.live_output.clear()
        logger.debug(f"Tool invoked: {invocation.name} ({invocation.id})")

    def _handle_tool_result(self, event: ProtocolEvent) -> None:
        try:
            result = ToolResult.model_validate_json(event.data)
        except ValidationError:
            logger.debug("Skipping malformed tool_result payload")
            return

        self.state.results.append(result)
        self.state.live_output.clear()

    def _handle_tool_output(self, event: ProtocolEvent) -> None:
        payload = parse_json_object(event.data)
        if payload is not None:
            try:
                heartbeat = ProgressHeartbeat.model_validate(payload)
            except ValidationError:
                heartbeat = None
            if heartbeat is not None and heartbeat.progress:
                self.state.status = PROGRESS_STATUS_TEMPLATE.format(
                    tool_name=heartbeat.display_name, seconds=heartbeat.elapsed_rounded
                )
                return

        self.state.live_output.append(event.data)

    def _handle_status(self, event: ProtocolEvent) -> None:
        ok, parsed = try_parse_json(event.data)
        if not ok:
            self.state.status = event.data or None
            return

        if isinstance(parsed, dict) and parsed.get("session_id"):
            model = parsed.get("model") or DEFAULT_CONNECTED_MODEL
            connected = CONNECTED_STATUS_TEMPLATE.format(model=model)
            self.state.status = connected
            self._schedule_status_clear(connected)
        elif isinstance(parsed, dict) and parsed.get("notification"):
            self.state.status = parsed.get("message") or parsed.get("title") or None
        else:
            self.state.status = event.data or None

    def _handle_result(self, event: ProtocolEvent) -> None:
        payload = parse_json_object(event.data)
        if payload is not None:
            try:
                result = ResultPayload.model_validate(payload)
            except ValidationError:
                result = None
            if result is not None and result.usage:
                self.state.token_usage = result.usage
        self.state.status = None

    def _handle_permission_request(self, event: ProtocolEvent) -> None:
        try:
            request = PermissionRequest.model_validate_json(event.data)
        except ValidationError:
            logger.debug("Skipping malformed permission_request payload")
            return
        self._on_permission_request(request)

    def _handle_error(self, event: ProtocolEvent) -> None:
        self.state.text += ERROR_ANNOTATION_PREFIX + event.data

    def _handle_done(self, event: ProtocolEvent) -> None:
        """End-of-turn marker; no state change."""

    # ------------------------------------------------------------------
    # Deferred status clearing
    # ------------------------------------------------------------------

    def _schedule_status_clear(self, expected: str) -> None:
        turn_id = self.state.turn_id

        def clear_status() -> None:
            # Only the turn that scheduled the clear may touch status
            if self.state.turn_id != turn_id or not self.state.streaming:
                return
            if self.state.status == expected:
                self.state.status = None

        self._timers.schedule(self._status_clear_delay, clear_status, name="status-clear")
