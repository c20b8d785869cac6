"""Domain models for the communication layer.

Provider and model settings are owned by the host's configuration storage;
inklink only reads them. Everything else here lives for a single call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Callable

    from inklink.errors import AIError

ApiFormat = Literal["chat-completions", "responses"]
ReasoningEffort = Literal["low", "medium", "high"]

CHAT_COMPLETIONS: ApiFormat = "chat-completions"
RESPONSES: ApiFormat = "responses"
API_FORMATS: tuple[str, ...] = (CHAT_COMPLETIONS, RESPONSES)


@dataclass(frozen=True)
class Provider:
    """An upstream API provider as configured by the user."""

    id: str
    name: str
    endpoint: str
    api_key: str

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Provider(id={self.id!r}, name={self.name!r}, endpoint={self.endpoint!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class ModelConfig:
    """Per-model generation settings. Immutable per request."""

    name: str
    display_name: str = ""
    temperature: float = 0.7
    top_p: float = 1.0
    #: Values <= 0 leave the output limit to the provider.
    max_output_tokens: int = 0
    api_format: ApiFormat = CHAT_COMPLETIONS
    #: Only sent for the responses format; defaults to "medium" there.
    reasoning_effort: ReasoningEffort | None = None


@dataclass(frozen=True)
class RequestOptions:
    """Inputs for one call."""

    prompt: str
    system_prompt: str | None = None


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int | None = None


@dataclass(frozen=True)
class NormalizedResult:
    """Provider-agnostic result of a non-streaming call."""

    content: str
    reasoning_summary: str | None = None
    usage: Usage | None = None


@dataclass
class StreamCallbacks:
    """Caller-owned hooks for a streaming call.

    ``on_complete`` and ``on_error`` are terminal: exactly one of them fires,
    at most once, after every ``on_chunk``/``on_thinking`` of the call.
    """

    on_chunk: Callable[[str], None]
    on_complete: Callable[[str], None]
    on_error: Callable[[AIError], None]
    on_start: Callable[[], None] | None = None
    on_thinking: Callable[[str], None] | None = None
