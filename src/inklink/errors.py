"""Exception hierarchy for inklink.

Every failure the communication layer can surface is an ``AIError`` tagged
with exactly one ``ErrorKind``. Kind-specific payload (partial stream text,
timeout duration, HTTP status) rides on the same exception as optional
fields, so callers branch on ``err.kind`` instead of on subclasses.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class InklinkError(Exception):
    """Base exception for all inklink errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(InklinkError):
    """Client settings failed validation."""


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    NO_PROVIDER_CONFIGURED = "no_provider_configured"
    INVALID_API_KEY = "invalid_api_key"
    INVALID_ENDPOINT = "invalid_endpoint"
    REQUEST_FAILED = "request_failed"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    UNSUPPORTED_API_FORMAT = "unsupported_api_format"
    INVALID_REASONING_EFFORT = "invalid_reasoning_effort"
    INVALID_RESPONSE = "invalid_response"
    STREAM_INTERRUPTED = "stream_interrupted"


# REQUEST_FAILED is status-dependent; see AIError.request_failed().
DEFAULT_RETRYABLE: dict[ErrorKind, bool] = {
    ErrorKind.NO_PROVIDER_CONFIGURED: False,
    ErrorKind.INVALID_API_KEY: False,
    ErrorKind.INVALID_ENDPOINT: False,
    ErrorKind.REQUEST_FAILED: False,
    ErrorKind.TIMEOUT: True,
    ErrorKind.NETWORK_ERROR: True,
    ErrorKind.UNSUPPORTED_API_FORMAT: False,
    ErrorKind.INVALID_REASONING_EFFORT: False,
    ErrorKind.INVALID_RESPONSE: False,
    ErrorKind.STREAM_INTERRUPTED: True,
}

VALID_REASONING_EFFORTS: tuple[str, ...] = ("low", "medium", "high")


class AIError(InklinkError):
    """A classified communication-layer failure.

    ``message`` is always complete and safe to show to an end user.
    ``retryable`` is advisory: inklink never retries on its own.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: bool | None = None,
        hint: str | None = None,
        cause: BaseException | None = None,
        status_code: int | None = None,
        timeout_s: float | None = None,
        partial_content: str | None = None,
        reason: str | None = None,
        requested_format: str | None = None,
        suggested_format: str | None = None,
        provided_value: str | None = None,
        valid_options: Sequence[str] | None = None,
        response_data: Any = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.kind = kind
        self.message = message
        self.retryable = DEFAULT_RETRYABLE[kind] if retryable is None else retryable
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause
        self.status_code = status_code
        self.timeout_s = timeout_s
        self.partial_content = partial_content
        self.reason = reason
        self.requested_format = requested_format
        self.suggested_format = suggested_format
        self.provided_value = provided_value
        self.valid_options = tuple(valid_options) if valid_options else None
        self.response_data = response_data

    def __repr__(self) -> str:
        return (
            f"AIError(kind={self.kind.value!r}, message={self.message!r}, "
            f"retryable={self.retryable!r})"
        )

    # --- Named constructors, one per variant with a payload ---

    @classmethod
    def no_provider(cls, message: str = "No AI provider is configured") -> AIError:
        return cls(
            ErrorKind.NO_PROVIDER_CONFIGURED,
            message,
            hint="Add a provider with an endpoint and API key in settings.",
        )

    @classmethod
    def invalid_api_key(
        cls, message: str = "The API key is missing or invalid", *, status_code: int | None = None
    ) -> AIError:
        return cls(ErrorKind.INVALID_API_KEY, message, status_code=status_code)

    @classmethod
    def invalid_endpoint(
        cls, message: str = "The API endpoint is missing or invalid", *, status_code: int | None = None
    ) -> AIError:
        return cls(ErrorKind.INVALID_ENDPOINT, message, status_code=status_code)

    @classmethod
    def request_failed(
        cls,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
        cause: BaseException | None = None,
    ) -> AIError:
        """Build a REQUEST_FAILED error; server-side statuses are retryable."""
        if retryable is None:
            retryable = status_code is not None and status_code >= 500
        return cls(
            ErrorKind.REQUEST_FAILED,
            message,
            retryable=retryable,
            status_code=status_code,
            cause=cause,
        )

    @classmethod
    def timeout(cls, timeout_s: float) -> AIError:
        return cls(
            ErrorKind.TIMEOUT,
            f"Request timed out after {timeout_s:g} seconds",
            timeout_s=timeout_s,
        )

    @classmethod
    def network(cls, detail: str, *, cause: BaseException | None = None) -> AIError:
        return cls(
            ErrorKind.NETWORK_ERROR,
            f"Network error: {detail}" if detail else "Network error",
            cause=cause,
            hint="Check the network connection and the endpoint address.",
        )

    @classmethod
    def unsupported_format(
        cls, requested_format: str, suggested_format: str = "chat-completions"
    ) -> AIError:
        return cls(
            ErrorKind.UNSUPPORTED_API_FORMAT,
            f"API format {requested_format!r} is not supported; "
            f"try {suggested_format!r}",
            requested_format=requested_format,
            suggested_format=suggested_format,
        )

    @classmethod
    def invalid_reasoning_effort(cls, provided_value: str) -> AIError:
        return cls(
            ErrorKind.INVALID_REASONING_EFFORT,
            f"Invalid reasoning effort {provided_value!r}; "
            f"expected one of: {', '.join(VALID_REASONING_EFFORTS)}",
            provided_value=provided_value,
            valid_options=VALID_REASONING_EFFORTS,
        )

    @classmethod
    def invalid_response(cls, message: str, *, response_data: Any = None) -> AIError:
        return cls(ErrorKind.INVALID_RESPONSE, message, response_data=response_data)

    @classmethod
    def stream_interrupted(
        cls,
        partial_content: str,
        reason: str | None = None,
        *,
        cause: BaseException | None = None,
    ) -> AIError:
        """Build a STREAM_INTERRUPTED error carrying the text received so far."""
        return cls(
            ErrorKind.STREAM_INTERRUPTED,
            f"Stream interrupted: {reason or 'Unknown'}",
            partial_content=partial_content,
            reason=reason,
            cause=cause,
        )


def is_retryable(exc: BaseException) -> bool:
    """Return True only for AIErrors flagged retryable."""
    return isinstance(exc, AIError) and exc.retryable


def has_kind(exc: BaseException, kind: ErrorKind) -> bool:
    """Return True when *exc* is an AIError of the given kind."""
    return isinstance(exc, AIError) and exc.kind is kind


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
