"""Shared test fixtures for the Chat Stream test suite.

Provides settings, a MockTransport-backed backend client, and helpers for
building event-stream bodies.
"""

from __future__ import annotations

import asyncio
import json

from collections.abc import AsyncIterator, Callable, Generator
from typing import Any

import httpx
import pytest

from chat_stream.core.constants import Settings, get_settings
from chat_stream.integrations.backend_client import BackendClient

# ============================================================================
# Test Isolation: Settings Cache
# ============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the cached settings so environment patches take effect per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Stream Body Helpers
# ============================================================================


def frame(kind: str, data: Any = "") -> str:
    """Build one complete ``data:`` line."""
    return "data: " + json.dumps({"type": kind, "data": data}) + "\n"


def sse_body(*frames: str) -> bytes:
    """Join frames (separated by blank lines, as the backend sends them) into one body."""
    return "\n".join(frames).encode("utf-8")


def blocking_body(*frames: str, release: asyncio.Event | None = None) -> AsyncIterator[bytes]:
    """Body that yields ``frames`` and then waits on ``release`` before ending."""

    async def gen() -> AsyncIterator[bytes]:
        for item in frames:
            yield item.encode("utf-8")
        if release is not None:
            await release.wait()
        else:
            await asyncio.Event().wait()

    return gen()


# ============================================================================
# Settings and Backend Client
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings pointed at a fake backend."""
    return Settings(base_url="http://backend.test")


Handler = Callable[[httpx.Request], Any]


@pytest.fixture
def make_client() -> Callable[[Handler], BackendClient]:
    """Factory for a BackendClient whose traffic goes to ``handler``."""

    def factory(handler: Handler) -> BackendClient:
        http = httpx.AsyncClient(base_url="http://backend.test", transport=httpx.MockTransport(handler))
        return BackendClient(http_client=http)

    return factory
