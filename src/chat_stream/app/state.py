"""Per-turn state for Chat Stream.

TurnState is the single container the accumulator folds events into. It lives
for exactly one outstanding request and is replaced with a fresh instance when
the turn ends for any reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from chat_stream.core.constants import LIVE_OUTPUT_LIMIT
from chat_stream.models.event_models import ToolInvocation, ToolResult


@dataclass
class LiveOutputBuffer:
    """Bounded text window for tool stderr/progress output.

    Fragments are joined with newlines; once the window exceeds ``limit``
    characters the head is trimmed so exactly the newest ``limit`` remain.
    """

    limit: int = LIVE_OUTPUT_LIMIT
    _text: str = ""

    def append(self, fragment: str) -> None:
        joined = f"{self._text}\n{fragment}" if self._text else fragment
        if len(joined) > self.limit:
            joined = joined[-self.limit :]
        self._text = joined

    def clear(self) -> None:
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)


@dataclass
class TurnState:
    """State of one in-flight turn.

    Attributes:
        turn_id: Identity of the turn this state belongs to ("" when idle)
        text: Accumulated assistant text, the single source of truth for what was said
        invocations: Tool invocations keyed (and deduplicated) by invocation id, in arrival order
        results: Tool result fragments in arrival order (never deduplicated)
        live_output: Bounded live tool-output window
        status: Transient status line (None when nothing to show)
        streaming: Whether a request is outstanding
        token_usage: Opaque usage payload captured from the final result event
    """

    turn_id: str = ""
    text: str = ""
    invocations: dict[str, ToolInvocation] = field(default_factory=dict)
    results: list[ToolResult] = field(default_factory=list)
    live_output: LiveOutputBuffer = field(default_factory=LiveOutputBuffer)
    status: str | None = None
    streaming: bool = False
    token_usage: dict[str, Any] | None = None

    @property
    def tool_uses(self) -> list[ToolInvocation]:
        """Invocations in arrival order."""
        return list(self.invocations.values())

    def has_invocation(self, invocation_id: str) -> bool:
        return invocation_id in self.invocations
