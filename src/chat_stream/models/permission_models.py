"""
Permission handshake models for Chat Stream.

The backend asks for authorization with a PermissionRequest; the client answers
on a side channel with a PermissionDecision.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PermissionChoice(str, Enum):
    """Three-way decision offered to the user."""

    ALLOW = "allow"
    ALLOW_SESSION = "allow_session"
    DENY = "deny"


class PermissionRequest(BaseModel):
    """Authorization request observed on the stream.

    Extra fields (tool name, input, description) are kept for display.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    request_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("permissionRequestId", "requestId", "request_id"),
    )
    suggestions: list[Any] | None = None


class PermissionDecision(BaseModel):
    """Decision delivered back to the backend."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    behavior: Literal["allow", "deny"]
    updated_permissions: list[Any] | None = None
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Build the side-channel request body."""
        decision: dict[str, Any] = {"behavior": self.behavior}
        if self.behavior == "deny":
            decision["message"] = self.message
        elif self.updated_permissions is not None:
            decision["updatedPermissions"] = self.updated_permissions
        return {"permissionRequestId": self.request_id, "decision": decision}
