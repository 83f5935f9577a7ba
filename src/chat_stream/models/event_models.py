"""
Stream event models for Chat Stream.

One wire, many event kinds: every frame decodes to a ProtocolEvent whose kind
is a closed enum. Payload schemas are parsed lazily by the consumer because
each kind carries a different shape (raw text for some, JSON for others).
"""

from __future__ import annotations

import math

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EventKind(str, Enum):
    """Every event kind the chat stream can carry."""

    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    TOOL_OUTPUT = "tool_output"
    STATUS = "status"
    RESULT = "result"
    PERMISSION_REQUEST = "permission_request"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class ProtocolEvent:
    """A decoded frame: kind plus raw payload string.

    Exists only while one frame is folded; never persisted.
    """

    kind: EventKind
    data: str


class ToolInvocation(BaseModel):
    """A single tool call requested by the assistant. Identity is ``id``."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str = Field(min_length=1)
    name: str
    input: Any = None


class ToolResult(BaseModel):
    """Result fragment reported for a tool invocation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    invocation_id: str = Field(validation_alias=AliasChoices("tool_use_id", "invocationId", "invocation_id"))
    content: Any = ""


class ProgressHeartbeat(BaseModel):
    """Periodic ``tool_output`` payload reporting how long a tool has run."""

    progress: bool = Field(validation_alias="_progress")
    tool_name: str | None = None
    elapsed_time_seconds: float | None = None

    @field_validator("tool_name", mode="before")
    @classmethod
    def name_or_none(cls, v: Any) -> str | None:
        return v if isinstance(v, str) and v else None

    @field_validator("elapsed_time_seconds", mode="before")
    @classmethod
    def seconds_or_none(cls, v: Any) -> float | None:
        if isinstance(v, bool) or not isinstance(v, int | float | str):
            return None
        try:
            seconds = float(v)
        except ValueError:
            return None
        return seconds if math.isfinite(seconds) else None

    @property
    def display_name(self) -> str:
        return self.tool_name or "tool"

    @property
    def elapsed_rounded(self) -> int:
        """Elapsed seconds rounded half-up (0 when unknown)."""
        return int((self.elapsed_time_seconds or 0.0) + 0.5)


class ResultPayload(BaseModel):
    """Final ``result`` payload; only ``usage`` is consumed."""

    model_config = ConfigDict(extra="allow")

    usage: dict[str, Any] | None = None
