"""
HTTP client for the assistant backend.

Covers the streamed chat request, the permission side channel, best-effort
session metadata updates, and the two discovery lookups used by the command
palette and file mentions.
"""

from __future__ import annotations

import contextlib

from collections.abc import AsyncIterator
from typing import Any

import httpx

from pydantic import ValidationError

from chat_stream.core.constants import (
    CHAT_ENDPOINT,
    FILES_ENDPOINT,
    PERMISSION_ENDPOINT,
    SESSION_ENDPOINT,
    SKILLS_ENDPOINT,
    Settings,
)
from chat_stream.models.api_models import ChatRequest, FileNode, SessionUpdate, SkillEntry
from chat_stream.models.error_models import (
    ErrorCode,
    PermissionDeliveryError,
    TransportError,
    error_message_from_body,
    wrap_transport_exception,
)
from chat_stream.models.permission_models import PermissionDecision
from chat_stream.utils.client_factory import create_http_client
from chat_stream.utils.logger import logger


class BackendClient:
    """Async client bound to one backend origin."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, settings: Settings | None = None) -> None:
        """Initialize the client.

        Args:
            http_client: Preconfigured httpx client (its base_url must point at the backend)
            settings: Settings used to build a client when none is given
        """
        self._owns_client = http_client is None
        self._http = http_client or create_http_client(settings)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @contextlib.asynccontextmanager
    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open the streamed chat request.

        Yields the raw body chunk iterator; the response is closed when the
        context exits, including on cancellation.

        Raises:
            TransportError: Non-success status, or the request/stream failed
        """
        try:
            async with self._http.stream("POST", CHAT_ENDPOINT, json=request.model_dump()) as response:
                if response.is_error:
                    body = await response.aread()
                    raise TransportError(
                        error_message_from_body(body),
                        code=ErrorCode.HTTP_STATUS,
                        status_code=response.status_code,
                        details={"operation": "chat"},
                    )
                yield _guard_stream(response.aiter_bytes())
        except httpx.HTTPError as e:
            raise wrap_transport_exception(e, operation="chat") from e

    async def send_permission_decision(self, decision: PermissionDecision) -> None:
        """Deliver a permission decision.

        Raises:
            PermissionDeliveryError: The backend could not be reached or rejected the decision
        """
        try:
            response = await self._http.post(PERMISSION_ENDPOINT, json=decision.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PermissionDeliveryError(str(e) or e.__class__.__name__, request_id=decision.request_id) from e

    async def update_session(self, session_id: str, update: SessionUpdate) -> bool:
        """PATCH session metadata. Failures are swallowed.

        Returns:
            True if the backend accepted the update
        """
        try:
            response = await self._http.patch(
                SESSION_ENDPOINT.format(session_id=session_id),
                json=update.to_payload(),
            )
            response.raise_for_status()
            return True
        except Exception as e:
            logger.warning(f"Session metadata update failed for {session_id}: {e}")
            return False

    async def list_skills(self) -> list[SkillEntry]:
        """Fetch advertised skills; empty on any failure."""
        data = await self._get_json(SKILLS_ENDPOINT)
        return _parse_list(data, "skills", SkillEntry)

    async def list_files(self, session_id: str | None = None, query: str = "") -> list[FileNode]:
        """Fetch the file tree for mentions; empty on any failure."""
        params: dict[str, str] = {}
        if session_id:
            params["session_id"] = session_id
        if query:
            params["q"] = query
        data = await self._get_json(FILES_ENDPOINT, params=params)
        return _parse_list(data, "tree", FileNode)

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Discovery lookup {path} failed: {e}")
            return None


async def _guard_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Re-raise mid-stream httpx failures as TransportError."""
    try:
        async for chunk in chunks:
            yield chunk
    except httpx.HTTPError as e:
        raise wrap_transport_exception(e, operation="chat-stream") from e


def _parse_list(data: Any, key: str, model: type[Any]) -> list[Any]:
    if not isinstance(data, dict) or not isinstance(data.get(key), list):
        return []
    items = []
    for raw in data[key]:
        try:
            items.append(model.model_validate(raw))
        except ValidationError:
            logger.debug(f"Skipping malformed {key} entry")
    return items
