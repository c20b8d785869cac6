"""Shared error classification helpers.

The client funnels every failure through ``normalize_error`` exactly once,
so raw transport exceptions never reach callers unclassified.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from inklink._http import (
    AUTH_FAILURE_STATUS_CODES,
    NOT_FOUND_STATUS_CODE,
    SERVER_ERROR_FLOOR,
)
from inklink.cancellation import DEFAULT_CANCEL_REASON, RequestCancelled
from inklink.errors import AIError, ErrorKind, _walk_exception_chain


def classify_status(status_code: int, message: str) -> AIError:
    """Map a non-success HTTP status into its error kind."""
    if status_code in AUTH_FAILURE_STATUS_CODES:
        return AIError.invalid_api_key(message, status_code=status_code)
    if status_code == NOT_FOUND_STATUS_CODE:
        return AIError.invalid_endpoint(message, status_code=status_code)
    return AIError.request_failed(
        message,
        status_code=status_code,
        retryable=status_code >= SERVER_ERROR_FLOOR,
    )


def error_message_from_body(status_code: int, reason: str, body: Any) -> str:
    """Pick the most useful message out of an error response body."""
    message = f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}"
    if not isinstance(body, dict):
        return message
    error = body.get("error")
    if isinstance(error, dict):
        if error.get("message"):
            return str(error["message"])
    elif isinstance(error, str) and error:
        return error
    elif body.get("message"):
        return str(body["message"])
    return message


def normalize_error(exc: BaseException) -> AIError:
    """Classify any exception as exactly one AIError kind.

    ``asyncio.CancelledError`` is re-raised rather than classified.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, AIError):
        return exc

    for e in _walk_exception_chain(exc):
        if isinstance(e, RequestCancelled):
            return AIError.stream_interrupted("", e.reason or DEFAULT_CANCEL_REASON, cause=exc)

    for e in _walk_exception_chain(exc):
        if isinstance(e, AIError):
            return e

    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.TimeoutException):
            return AIError(
                ErrorKind.TIMEOUT,
                f"Request timed out: {e}" if str(e) else "Request timed out",
                cause=exc,
            )

    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.TransportError, OSError)):
            return AIError.network(str(e) or type(e).__name__, cause=exc)

    return AIError.request_failed(
        str(exc) or type(exc).__name__,
        retryable=True,
        cause=exc,
    )
