"""
Frame decoding for the chat event stream.

Maps one ``data: <json>`` line to a ProtocolEvent. A frame that cannot be
decoded is dropped on its own; decoding of later frames is unaffected.
"""

from __future__ import annotations

from typing import Any

from chat_stream.core.constants import EVENT_DATA_KEY, EVENT_TYPE_KEY, SSE_DATA_PREFIX
from chat_stream.models.event_models import EventKind, ProtocolEvent
from chat_stream.utils.json_utils import json_compact, try_parse_json
from chat_stream.utils.logger import logger


def _payload_to_text(data: Any) -> str:
    """Normalize a frame payload to the raw string consumers expect.

    Most kinds carry a string; when the server inlines JSON instead, it is
    re-serialized so downstream parsing sees the same shape either way.
    """
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return json_compact(data)


def decode_frame(frame: str, prefix: str = SSE_DATA_PREFIX) -> ProtocolEvent | None:
    """Decode one frame into a typed event.

    Args:
        frame: One complete frame line
        prefix: Frame marker to strip

    Returns:
        ProtocolEvent, or None if the frame carries no event or fails to decode
    """
    if not frame.startswith(prefix):
        return None

    body = frame[len(prefix) :]
    ok, parsed = try_parse_json(body)
    if not ok:
        logger.debug(f"Dropping malformed frame: {body[:80]!r}")
        return None

    if not isinstance(parsed, dict) or EVENT_TYPE_KEY not in parsed:
        logger.debug("Dropping frame without event type")
        return None

    try:
        kind = EventKind(parsed[EVENT_TYPE_KEY])
    except ValueError:
        logger.debug(f"Dropping frame with unknown event type: {parsed[EVENT_TYPE_KEY]!r}")
        return None

    return ProtocolEvent(kind=kind, data=_payload_to_text(parsed.get(EVENT_DATA_KEY)))
