"""
Backend traffic logging through httpx event hooks.

Request bodies are logged as parsed JSON when possible. Response bodies are
never touched because the chat response is consumed as a stream.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from chat_stream.utils.logger import logger

SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})


def _mask_headers(headers: httpx.Headers) -> dict[str, str]:
    return {name: "[REDACTED]" if name.lower() in SENSITIVE_HEADERS else value for name, value in headers.items()}


def _request_payload(request: httpx.Request) -> Any:
    try:
        raw = request.content
    except httpx.RequestNotRead:
        return {"_note": "streaming body not captured"}
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {"_note": f"{len(raw)} bytes, not JSON"}


class HTTPLogger:
    """Pair of event hooks that log each exchange with the backend."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._in_flight: dict[int, str] = {}

    async def log_request(self, request: httpx.Request) -> None:
        if not self.enabled:
            return
        label = f"{request.method} {request.url}"
        self._in_flight[id(request)] = label
        logger.info(
            f"HTTP Request: {label}",
            http_request=True,
            headers=_mask_headers(request.headers),
            payload=_request_payload(request),
        )

    async def log_response(self, response: httpx.Response) -> None:
        if not self.enabled:
            return
        label = self._in_flight.pop(id(response.request), "UNKNOWN")
        logger.info(
            f"HTTP Response: {response.status_code} {label}",
            http_response=True,
            status_code=response.status_code,
            headers=_mask_headers(response.headers),
        )


def create_logging_client(enabled: bool = True, **client_kwargs: Any) -> httpx.AsyncClient:
    """Build an AsyncClient with request/response logging hooks installed.

    Args:
        enabled: Turn the hooks into no-ops when False
        **client_kwargs: Passed through to httpx.AsyncClient

    Returns:
        The hooked client
    """
    hooks = HTTPLogger(enabled=enabled)
    return httpx.AsyncClient(
        event_hooks={"request": [hooks.log_request], "response": [hooks.log_response]},
        **client_kwargs,
    )
