"""Tests for the permission gate.

Tests idle/pending transitions, decision payloads, optimistic un-blocking on
delivery failure, replacement of a pending request and the optional timeout.
"""

from __future__ import annotations

import asyncio

from unittest.mock import AsyncMock, Mock

import pytest

from chat_stream.core.permission_gate import GateState, PermissionGate
from chat_stream.models.error_models import PermissionDeliveryError
from chat_stream.models.permission_models import PermissionChoice, PermissionRequest


def request(request_id: str = "p1", suggestions: list | None = None) -> PermissionRequest:
    return PermissionRequest.model_validate(
        {"permissionRequestId": request_id, "toolName": "Bash", "suggestions": suggestions}
    )


@pytest.fixture
def sender() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def gate(sender: AsyncMock) -> PermissionGate:
    return PermissionGate(sender)


class TestTransitions:
    """Tests for state transitions."""

    def test_starts_idle(self, gate: PermissionGate) -> None:
        """Test the initial state."""
        assert gate.state is GateState.IDLE
        assert gate.pending is None

    def test_open_goes_pending(self, gate: PermissionGate) -> None:
        """Test that a request makes the gate pending."""
        gate.open(request())
        assert gate.state is GateState.PENDING
        assert gate.pending is not None
        assert gate.pending.request_id == "p1"

    def test_second_request_replaces_pending(self, gate: PermissionGate) -> None:
        """Test that a newer request supersedes the pending one."""
        gate.open(request("p1"))
        gate.open(request("p2"))
        assert gate.pending is not None
        assert gate.pending.request_id == "p2"

    def test_reset_forces_idle(self, gate: PermissionGate) -> None:
        """Test that turn cleanup discards a pending request."""
        gate.open(request())
        gate.reset()
        assert gate.state is GateState.IDLE
        assert gate.resolved is None

    @pytest.mark.asyncio
    async def test_resolve_without_pending_is_noop(self, gate: PermissionGate, sender: AsyncMock) -> None:
        """Test that resolving an idle gate sends nothing."""
        assert await gate.resolve(PermissionChoice.ALLOW) is None
        sender.assert_not_awaited()


class TestDecisions:
    """Tests for decision payloads."""

    @pytest.mark.asyncio
    async def test_allow(self, gate: PermissionGate, sender: AsyncMock) -> None:
        """Test a one-off allow."""
        gate.open(request(suggestions=[{"tool": "Bash"}]))
        decision = await gate.resolve(PermissionChoice.ALLOW)

        assert decision is not None
        sender.assert_awaited_once_with(decision)
        assert decision.to_payload() == {"permissionRequestId": "p1", "decision": {"behavior": "allow"}}
        assert gate.state is GateState.IDLE
        assert gate.resolved == "allow"

    @pytest.mark.asyncio
    async def test_allow_session_carries_suggestions(self, gate: PermissionGate) -> None:
        """Test that allow-for-session persists the request's suggestions."""
        suggestions = [{"type": "addRules", "rules": [{"toolName": "Bash"}]}]
        gate.open(request(suggestions=suggestions))
        decision = await gate.resolve(PermissionChoice.ALLOW_SESSION)

        assert decision is not None
        assert decision.to_payload()["decision"] == {"behavior": "allow", "updatedPermissions": suggestions}

    @pytest.mark.asyncio
    async def test_deny_attaches_message(self, gate: PermissionGate) -> None:
        """Test that deny carries the fixed rejection message."""
        gate.open(request())
        decision = await gate.resolve(PermissionChoice.DENY)

        assert decision is not None
        assert decision.to_payload()["decision"] == {"behavior": "deny", "message": "User denied permission"}
        assert gate.resolved == "deny"

    @pytest.mark.asyncio
    async def test_delivery_failure_still_unblocks(self, sender: AsyncMock) -> None:
        """Test that a failed delivery leaves the gate idle without raising."""
        sender.side_effect = PermissionDeliveryError("connection refused", request_id="p1")
        gate = PermissionGate(sender)
        gate.open(request())

        decision = await gate.resolve(PermissionChoice.ALLOW)

        assert decision is not None
        assert gate.state is GateState.IDLE

    @pytest.mark.asyncio
    async def test_gate_idle_before_delivery_completes(self, sender: AsyncMock) -> None:
        """Test that the gate un-blocks before the network send returns."""
        observed: list[GateState] = []
        gate = PermissionGate(sender)

        async def slow_send(decision) -> None:
            observed.append(gate.state)

        sender.side_effect = slow_send
        gate.open(request())
        await gate.resolve(PermissionChoice.DENY)

        assert observed == [GateState.IDLE]


class TestTimeout:
    """Tests for the optional client-side timeout."""

    @pytest.mark.asyncio
    async def test_timeout_auto_denies(self, sender: AsyncMock) -> None:
        """Test that an unanswered request is denied after the timeout."""
        gate = PermissionGate(sender, timeout_seconds=0.01)
        gate.open(request())

        await asyncio.sleep(0.05)

        assert gate.state is GateState.IDLE
        assert gate.resolved == "deny"
        sender.assert_awaited_once()
        decision = sender.await_args[0][0]
        assert decision.message == "Permission request timed out"

    @pytest.mark.asyncio
    async def test_timeout_reports_change(self, sender: AsyncMock) -> None:
        """Test that an auto-deny tells the owner the gate went idle."""
        seen: list[GateState] = []
        gate = PermissionGate(sender, timeout_seconds=0.01, on_change=lambda: seen.append(gate.state))
        gate.open(request())

        await asyncio.sleep(0.05)

        assert seen == [GateState.IDLE]

    @pytest.mark.asyncio
    async def test_decision_does_not_report_change(self, sender: AsyncMock) -> None:
        """Test that a user decision leaves notification to the caller."""
        on_change = Mock()
        gate = PermissionGate(sender, timeout_seconds=0.01, on_change=on_change)
        gate.open(request())
        await gate.resolve(PermissionChoice.DENY)

        await asyncio.sleep(0.05)

        on_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_decision_cancels_timeout(self, sender: AsyncMock) -> None:
        """Test that answering in time prevents the auto-deny."""
        gate = PermissionGate(sender, timeout_seconds=0.02)
        gate.open(request())
        await gate.resolve(PermissionChoice.ALLOW)

        await asyncio.sleep(0.05)

        sender.assert_awaited_once()
        assert gate.resolved == "allow"

    @pytest.mark.asyncio
    async def test_reset_cancels_timeout(self, sender: AsyncMock) -> None:
        """Test that turn cleanup cancels the pending timeout."""
        gate = PermissionGate(sender, timeout_seconds=0.01)
        gate.open(request())
        gate.reset()

        await asyncio.sleep(0.05)

        sender.assert_not_awaited()
