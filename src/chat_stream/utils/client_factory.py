"""
HTTP client factory utilities.
Centralizes httpx.AsyncClient creation with consistent configuration.
"""

from __future__ import annotations

import httpx

from chat_stream.core.constants import Settings, get_settings
from chat_stream.utils.http_logger import create_logging_client

# The assistant can pause for a long time while a tool runs or a permission
# is pending, so the read timeout is generous and configurable.
DEFAULT_CONNECT_TIMEOUT = 30.0  # Time to establish connection
DEFAULT_WRITE_TIMEOUT = 30.0  # Time to send request
DEFAULT_POOL_TIMEOUT = 30.0  # Time to acquire connection from pool


def create_http_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create HTTP client with proper timeouts for streaming.

    Args:
        settings: Settings to read base URL, logging and timeouts from (defaults to get_settings())
        transport: Optional transport override (used by tests)

    Returns:
        Configured httpx.AsyncClient
    """
    settings = settings or get_settings()
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=settings.read_timeout_seconds,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )

    if settings.http_request_logging:
        return create_logging_client(
            enabled=True,
            base_url=settings.base_url,
            timeout=timeout,
            transport=transport,
        )

    return httpx.AsyncClient(base_url=settings.base_url, timeout=timeout, transport=transport)
