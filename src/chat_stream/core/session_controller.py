"""
Session controller: drives one chat turn at a time for a session.

Owns the per-turn cancellation token, the accumulator and the permission gate.
Every turn ends through the same cleanup step (state reset, timers cancelled,
gate idled, streaming flag cleared) whether it completed, was stopped, or
failed, so the session is always ready for the next ``send``.
"""

from __future__ import annotations

import asyncio
import contextlib
import time

from collections.abc import Callable
from typing import Literal

from chat_stream.app.state import TurnState
from chat_stream.core.accumulator import TurnAccumulator
from chat_stream.core.cancellation import CancellationToken
from chat_stream.core.commands import build_command_palette, flatten_file_tree, resolve_directive
from chat_stream.core.constants import (
    ERROR_ANNOTATION_PREFIX,
    MODE_OPTIONS,
    STOPPED_ANNOTATION,
    Settings,
    get_settings,
)
from chat_stream.core.decoder import decode_frame
from chat_stream.core.framer import iter_frames
from chat_stream.core.permission_gate import PermissionGate
from chat_stream.core.turn_context import TurnContext, generate_turn_id, reset_turn_context, set_turn_context
from chat_stream.integrations.backend_client import BackendClient
from chat_stream.models.api_models import ChatRequest, PaletteItem, SessionUpdate
from chat_stream.models.message_models import (
    ASSISTANT_MESSAGE_PREFIX,
    COMMAND_MESSAGE_PREFIX,
    ERROR_MESSAGE_PREFIX,
    ChatMessage,
)
from chat_stream.models.permission_models import PermissionChoice, PermissionDecision
from chat_stream.utils.logger import logger

TurnOutcome = Literal["completed", "stopped", "failed"]
UpdateListener = Callable[[TurnState], None]


class SessionController:
    """Streaming session controller for a single chat session.

    Attributes:
        session_id: Session this controller drives
        mode: Interaction mode sent with each request
        model: Model name sent with each request
        working_directory: Project folder last selected for the session
        gate: Permission gate for the current turn
    """

    def __init__(
        self,
        session_id: str,
        client: BackendClient,
        *,
        mode: str | None = None,
        model: str | None = None,
        messages: list[ChatMessage] | None = None,
        on_update: UpdateListener | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.session_id = session_id
        self.mode = mode or settings.default_mode
        self.model = model or settings.default_model
        self.working_directory: str | None = None
        self._client = client
        self._messages: list[ChatMessage] = list(messages or [])
        self._on_update = on_update
        self.gate = PermissionGate(
            client.send_permission_decision,
            timeout_seconds=settings.permission_timeout_seconds,
            on_change=self._notify,
        )
        self._accumulator = TurnAccumulator(on_permission_request=self.gate.open)
        self._token: CancellationToken | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[ChatMessage]:
        """Snapshot of the conversation."""
        return list(self._messages)

    @property
    def turn(self) -> TurnState:
        """State of the in-flight turn (empty when idle)."""
        return self._accumulator.state

    @property
    def is_streaming(self) -> bool:
        return self._token is not None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def submit(self, content: str) -> ChatMessage | None:
        """Handle user input: local directives are resolved here, the rest is sent.

        Returns:
            The assistant message appended as a result, if any
        """
        content = content.strip()
        if not content:
            return None
        if self.run_directive(content):
            return self._messages[-1] if self._messages else None
        return await self.send(content)

    def run_directive(self, content: str) -> bool:
        """Resolve a local directive synchronously.

        Returns:
            True if the input was a local directive and has been applied
        """
        result = resolve_directive(content)
        if result is None:
            return False

        if result.clear_messages:
            self._messages.clear()
        if result.reply is not None:
            self._append(ChatMessage.create(self.session_id, "assistant", result.reply, id_prefix=COMMAND_MESSAGE_PREFIX))
        logger.debug(f"Resolved local directive {content}")
        return True

    async def send(self, content: str) -> ChatMessage | None:
        """Run one streamed turn for ``content``.

        Rejected (returns None) while another turn is streaming.

        Returns:
            The assistant message committed for this turn, if any
        """
        if self.is_streaming:
            logger.warning(f"Rejected send on session {self.session_id}: a turn is already streaming")
            return None
        if not content.strip():
            return None

        token = CancellationToken()
        self._token = token
        turn_id = generate_turn_id()
        ctx_token = set_turn_context(TurnContext(turn_id=turn_id, session_id=self.session_id))
        started = time.monotonic()

        self._append(ChatMessage.create(self.session_id, "user", content))
        self._accumulator.begin(turn_id)
        self._notify()

        committed: ChatMessage | None = None
        outcome: TurnOutcome = "completed"
        try:
            request = ChatRequest(session_id=self.session_id, content=content, mode=self.mode, model=self.model)
            try:
                async with token.cancellation_scope():
                    await self._stream_turn(request, token)
                committed = self._commit(self.turn.text, ASSISTANT_MESSAGE_PREFIX, self.turn.token_usage)
            except asyncio.CancelledError:
                if not token.is_cancelled:
                    raise
                _uncancel_current_task()
                outcome = "stopped"
                committed = self._commit(self.turn.text, ASSISTANT_MESSAGE_PREFIX, suffix=STOPPED_ANNOTATION)
            except Exception as e:
                outcome = "failed"
                logger.error(f"Turn failed on session {self.session_id}: {e}", exc_info=True)
                committed = self._commit_error(self.turn.text, e)
            logger.log_turn(
                user_input=content,
                response=committed.content if committed else "",
                outcome=outcome,
                tool_calls=len(self.turn.invocations),
                duration_ms=(time.monotonic() - started) * 1000,
                has_token_usage=self.turn.token_usage is not None,
            )
        finally:
            self._accumulator.reset()
            self.gate.reset()
            self._token = None
            reset_turn_context(ctx_token)
            self._notify()

        return committed

    def cancel(self, reason: str = "stopped by user") -> bool:
        """Stop the in-flight turn, keeping whatever text has arrived.

        Returns:
            True if a streaming turn was signalled
        """
        token = self._token
        if token is None:
            return False
        return token.cancel(reason)

    async def respond_to_permission(self, choice: PermissionChoice) -> PermissionDecision | None:
        """Answer the pending permission request, if any."""
        decision = await self.gate.resolve(choice)
        self._notify()
        return decision

    # ------------------------------------------------------------------
    # Session metadata
    # ------------------------------------------------------------------

    async def set_mode(self, mode: str) -> None:
        """Switch interaction mode; the backend copy is updated best-effort.

        Raises:
            ValueError: ``mode`` is not one of MODE_OPTIONS
        """
        if mode not in MODE_OPTIONS:
            raise ValueError(f"Unknown mode {mode!r}; expected one of {', '.join(MODE_OPTIONS)}")
        self.mode = mode
        await self._client.update_session(self.session_id, SessionUpdate(mode=mode))

    async def set_working_directory(self, path: str) -> None:
        """Select the project folder; the backend copy is updated best-effort."""
        self.working_directory = path
        await self._client.update_session(self.session_id, SessionUpdate(working_directory=path))

    def set_model(self, model: str) -> None:
        self.model = model

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def command_palette(self, query: str = "") -> list[PaletteItem]:
        """Built-in commands plus enabled backend skills matching ``query``."""
        skills = await self._client.list_skills()
        return build_command_palette(query, skills)

    async def file_mentions(self, query: str = "") -> list[PaletteItem]:
        """Files of the session workspace matching ``query``."""
        tree = await self._client.list_files(self.session_id, query)
        return flatten_file_tree(tree)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _stream_turn(self, request: ChatRequest, token: CancellationToken) -> None:
        async with self._client.stream_chat(request) as chunks:
            async with contextlib.aclosing(iter_frames(chunks)) as frames:
                async for frame in frames:
                    token.check()
                    event = decode_frame(frame)
                    if event is None:
                        continue
                    done = self._accumulator.fold(event)
                    self._notify()
                    if done:
                        break

    def _commit(
        self,
        text: str,
        id_prefix: str,
        token_usage: dict[str, object] | None = None,
        suffix: str = "",
    ) -> ChatMessage | None:
        body = text.strip()
        if not body:
            return None
        message = ChatMessage.create(
            self.session_id,
            "assistant",
            body + suffix,
            id_prefix=id_prefix,
            token_usage=token_usage,
        )
        self._append(message)
        return message

    def _commit_error(self, text: str, error: Exception) -> ChatMessage:
        reason = getattr(error, "message", None) or str(error) or "Unknown error"
        partial = text.strip()
        content = f"{partial}{ERROR_ANNOTATION_PREFIX}{reason}" if partial else f"**Error:** {reason}"
        message = ChatMessage.create(self.session_id, "assistant", content, id_prefix=ERROR_MESSAGE_PREFIX)
        self._append(message)
        return message

    def _append(self, message: ChatMessage) -> None:
        self._messages.append(message)

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.turn)
        except Exception as e:
            logger.warning(f"Update listener failed: {e}")


def _uncancel_current_task() -> None:
    """Clear the cancellation request the token delivered to this task."""
    task = asyncio.current_task()
    if task is not None and task.cancelling():
        task.uncancel()
