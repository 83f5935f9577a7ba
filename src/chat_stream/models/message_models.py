"""
Chat message models for Chat Stream.

Messages are frozen once created: the session's list only ever grows by
appending new ChatMessage instances.
"""

from __future__ import annotations

import uuid

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "assistant"]

#: ID prefixes per message origin
USER_MESSAGE_PREFIX = "temp-"
ASSISTANT_MESSAGE_PREFIX = "temp-assistant-"
ERROR_MESSAGE_PREFIX = "temp-error-"
COMMAND_MESSAGE_PREFIX = "cmd-"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ChatMessage(BaseModel):
    """One message in a session's conversation."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    role: MessageRole
    content: str
    created_at: str = Field(default_factory=_now_iso)
    token_usage: dict[str, Any] | None = None

    @classmethod
    def create(
        cls,
        session_id: str,
        role: MessageRole,
        content: str,
        *,
        id_prefix: str = USER_MESSAGE_PREFIX,
        token_usage: dict[str, Any] | None = None,
    ) -> ChatMessage:
        """Create a message with a fresh client-side ID."""
        return cls(
            id=f"{id_prefix}{uuid.uuid4().hex[:12]}",
            session_id=session_id,
            role=role,
            content=content,
            token_usage=token_usage,
        )
