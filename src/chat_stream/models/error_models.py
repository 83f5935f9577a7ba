"""
Error codes and exception types for Chat Stream.

Decode errors never surface as exceptions; everything here describes failures
that end a turn (transport) or are swallowed by the permission gate (delivery).
"""

from __future__ import annotations

import json

from enum import Enum
from typing import Any

import httpx

from chat_stream.core.constants import DEFAULT_SEND_ERROR


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Transport errors (1xxx)
    HTTP_STATUS = "TRN_1001"
    NETWORK = "TRN_1002"
    TIMEOUT = "TRN_1003"
    PROTOCOL = "TRN_1004"

    # Permission errors (2xxx)
    PERMISSION_DELIVERY = "PRM_2001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"


class ChatStreamError(Exception):
    """Base exception for Chat Stream."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class TransportError(ChatStreamError):
    """The chat request failed outright or its stream broke mid-flight."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.NETWORK,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
        self.status_code = status_code


class PermissionDeliveryError(ChatStreamError):
    """A permission decision could not be delivered to the backend."""

    def __init__(self, message: str, *, request_id: str | None = None) -> None:
        super().__init__(message, code=ErrorCode.PERMISSION_DELIVERY, details={"request_id": request_id})
        self.request_id = request_id


def error_message_from_body(body: bytes | str) -> str:
    """Extract the backend's ``error`` field from a failed response body.

    Falls back to a generic message when the body is not JSON or has no
    usable ``error`` string.
    """
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        return DEFAULT_SEND_ERROR
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, str) and error.strip():
            return error
    return DEFAULT_SEND_ERROR


def wrap_transport_exception(exc: BaseException, *, operation: str) -> TransportError:
    """Convert an httpx exception into a TransportError.

    Args:
        exc: Exception raised by httpx while sending or streaming
        operation: Short label of what was being attempted (for details)

    Returns:
        TransportError with an appropriate code
    """
    if isinstance(exc, TransportError):
        return exc

    status_code: int | None = None
    if isinstance(exc, httpx.TimeoutException):
        code = ErrorCode.TIMEOUT
    elif isinstance(exc, httpx.NetworkError):
        code = ErrorCode.NETWORK
    elif isinstance(exc, httpx.HTTPStatusError):
        code = ErrorCode.HTTP_STATUS
        status_code = exc.response.status_code
    elif isinstance(exc, (httpx.RemoteProtocolError, httpx.DecodingError)):
        code = ErrorCode.PROTOCOL
    else:
        code = ErrorCode.INTERNAL_ERROR

    message = str(exc) or exc.__class__.__name__
    error = TransportError(message, code=code, status_code=status_code, details={"operation": operation})
    error.__cause__ = exc
    return error
