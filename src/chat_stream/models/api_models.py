"""
Request and discovery models for the backend API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Body of the streamed chat request."""

    session_id: str
    content: str = Field(min_length=1)
    mode: str
    model: str


class SessionUpdate(BaseModel):
    """Partial session metadata update (PATCH body)."""

    mode: str | None = None
    working_directory: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SkillEntry(BaseModel):
    """Skill or command advertised by the discovery endpoint."""

    name: str
    description: str = ""
    enabled: bool = True


class FileNode(BaseModel):
    """Node of the file tree returned by the file discovery endpoint."""

    name: str
    path: str
    type: str = "file"
    children: list[FileNode] | None = None


class PaletteItem(BaseModel):
    """Entry of the command palette or file mention list."""

    label: str
    value: str
    description: str | None = None
    built_in: bool = False
