"""
Turn context propagation for Chat Stream.

Tracks the active turn (session, turn id, timing) in a context variable so log
records emitted anywhere in the streaming call stack carry turn identity.
"""

from __future__ import annotations

import secrets
import time

from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

# Context variable for turn-scoped data
_turn_context: ContextVar[TurnContext | None] = ContextVar("turn_context", default=None)

#: Turn ID prefix for easy identification in logs
TURN_ID_PREFIX = "turn_"


@dataclass
class TurnContext:
    """Turn-scoped context for tracking and logging."""

    turn_id: str
    session_id: str
    start_time: float = field(default_factory=time.monotonic)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        """Get elapsed time since turn start in milliseconds."""
        return (time.monotonic() - self.start_time) * 1000

    def to_log_context(self) -> dict[str, Any]:
        """Get context dict for logging."""
        return {
            "turn_id": self.turn_id,
            "session_id": self.session_id,
            "elapsed_ms": round(self.elapsed_ms, 2),
            **self.extra,
        }


def generate_turn_id(prefix: str = TURN_ID_PREFIX) -> str:
    """Generate a unique turn ID.

    Format: prefix + 16 hex characters (64 bits of entropy)
    Example: turn_a1b2c3d4e5f6a7b8
    """
    return f"{prefix}{secrets.token_hex(8)}"


def get_turn_context() -> TurnContext | None:
    return _turn_context.get()


def set_turn_context(ctx: TurnContext | None) -> Token[TurnContext | None]:
    return _turn_context.set(ctx)


def reset_turn_context(token: Token[TurnContext | None]) -> None:
    _turn_context.reset(token)


__all__ = [
    "TurnContext",
    "generate_turn_id",
    "get_turn_context",
    "reset_turn_context",
    "set_turn_context",
]
