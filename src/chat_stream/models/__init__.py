"""
Models Module - Data Models and Type Definitions
=================================================

Pydantic models for the chat stream protocol and backend API.

Modules:
    event_models: Closed event kind enum, decoded frame, tool and progress payloads
    message_models: Immutable chat messages
    permission_models: Permission requests, choices and decisions
    api_models: Request bodies and discovery payloads
    error_models: Error codes and exception types
"""

from __future__ import annotations

from chat_stream.models.api_models import ChatRequest, FileNode, PaletteItem, SessionUpdate, SkillEntry
from chat_stream.models.error_models import (
    ChatStreamError,
    ErrorCode,
    PermissionDeliveryError,
    TransportError,
)
from chat_stream.models.event_models import (
    EventKind,
    ProgressHeartbeat,
    ProtocolEvent,
    ResultPayload,
    ToolInvocation,
    ToolResult,
)
from chat_stream.models.message_models import ChatMessage
from chat_stream.models.permission_models import PermissionChoice, PermissionDecision, PermissionRequest

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ChatStreamError",
    "ErrorCode",
    "EventKind",
    "FileNode",
    "PaletteItem",
    "PermissionChoice",
    "PermissionDecision",
    "PermissionDeliveryError",
    "PermissionRequest",
    "ProgressHeartbeat",
    "ProtocolEvent",
    "ResultPayload",
    "SessionUpdate",
    "SkillEntry",
    "ToolInvocation",
    "ToolResult",
    "TransportError",
]
