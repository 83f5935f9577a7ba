"""
Permission gate for the human-in-the-loop authorization handshake.

Two states: idle and pending(request). A decision un-blocks the gate locally
before it is delivered, so a failed delivery never leaves the turn stuck; the
backend's own timeout is the recovery path in that case. Turn cleanup resets
the gate unconditionally.
"""

from __future__ import annotations

import asyncio

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Literal

from chat_stream.core.constants import PERMISSION_DENIED_MESSAGE, PERMISSION_TIMEOUT_MESSAGE
from chat_stream.core.deferred import DeferredGroup
from chat_stream.models.permission_models import PermissionChoice, PermissionDecision, PermissionRequest
from chat_stream.utils.logger import logger

DecisionSender = Callable[[PermissionDecision], Awaitable[None]]
ChangeListener = Callable[[], None]


class GateState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class PermissionGate:
    """Tracks at most one pending permission request per turn.

    Attributes:
        pending: Request awaiting a decision (None when idle)
        resolved: Outcome of the most recent decision, kept for display feedback
    """

    def __init__(
        self,
        send_decision: DecisionSender,
        *,
        timeout_seconds: float | None = None,
        on_change: ChangeListener | None = None,
    ) -> None:
        """Initialize the gate.

        Args:
            send_decision: Coroutine delivering a decision to the backend (may raise)
            timeout_seconds: Auto-deny a pending request after this delay (disabled when None)
            on_change: Called when the gate settles on its own, outside any caller's await
        """
        self._send_decision = send_decision
        self._timeout_seconds = timeout_seconds
        self._on_change = on_change
        self._timers = DeferredGroup()
        self._deliveries: set[asyncio.Task[None]] = set()
        self.pending: PermissionRequest | None = None
        self.resolved: Literal["allow", "deny"] | None = None

    @property
    def state(self) -> GateState:
        return GateState.PENDING if self.pending is not None else GateState.IDLE

    @property
    def is_pending(self) -> bool:
        return self.pending is not None

    def open(self, request: PermissionRequest) -> None:
        """Transition to pending(request).

        A request arriving while another is pending replaces it; the superseded
        one is left to the backend's timeout.
        """
        if self.pending is not None:
            logger.warning(
                f"Permission request {self.pending.request_id} superseded by {request.request_id}",
                superseded_request_id=self.pending.request_id,
            )
            self._timers.cancel_all()

        self.pending = request
        self.resolved = None
        logger.info(f"Permission requested: {request.request_id}", permission_request_id=request.request_id)

        if self._timeout_seconds is not None:
            request_id = request.request_id
            self._timers.schedule(
                self._timeout_seconds,
                lambda: self._expire(request_id),
                name="permission-timeout",
            )

    async def resolve(self, choice: PermissionChoice) -> PermissionDecision | None:
        """Apply the user's decision and deliver it.

        The gate is idle again before delivery starts; delivery failures are
        logged and swallowed.

        Returns:
            The decision sent, or None if nothing was pending
        """
        decision = self._settle(choice)
        if decision is None:
            return None
        await self._deliver(decision)
        return decision

    def reset(self) -> None:
        """Force the gate back to idle (turn cleanup)."""
        self._timers.cancel_all()
        if self.pending is not None:
            logger.debug(f"Discarding pending permission {self.pending.request_id} at turn end")
        self.pending = None
        self.resolved = None

    def _settle(
        self,
        choice: PermissionChoice,
        message: str = PERMISSION_DENIED_MESSAGE,
    ) -> PermissionDecision | None:
        request = self.pending
        if request is None:
            return None

        if choice is PermissionChoice.DENY:
            decision = PermissionDecision(request_id=request.request_id, behavior="deny", message=message)
        else:
            updated = request.suggestions if choice is PermissionChoice.ALLOW_SESSION else None
            decision = PermissionDecision(request_id=request.request_id, behavior="allow", updated_permissions=updated)

        self._timers.cancel_all()
        self.pending = None
        self.resolved = decision.behavior
        logger.info(
            f"Permission {request.request_id} resolved: {choice.value}",
            permission_request_id=request.request_id,
        )
        return decision

    async def _deliver(self, decision: PermissionDecision) -> None:
        try:
            await self._send_decision(decision)
        except Exception as e:
            logger.warning(
                f"Failed to deliver permission decision {decision.request_id}: {e}",
                permission_request_id=decision.request_id,
            )

    def _expire(self, request_id: str) -> None:
        if self.pending is None or self.pending.request_id != request_id:
            return
        logger.warning(f"Permission request {request_id} timed out; denying")
        decision = self._settle(PermissionChoice.DENY, message=PERMISSION_TIMEOUT_MESSAGE)
        if decision is None:
            return
        task = asyncio.get_running_loop().create_task(self._deliver(decision))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
        if self._on_change is not None:
            self._on_change()
