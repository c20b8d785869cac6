"""Parsing of complete (non-streamed) response bodies.

Supports the chat-completions shape (``choices[0].message.content``) and the
responses shape (a typed ``output`` array). Any malformed body surfaces as an
``INVALID_RESPONSE`` error, never as a raw ``KeyError``/``TypeError``.
"""

from __future__ import annotations

from typing import Any, Literal

from inklink.errors import AIError
from inklink.thinking import DEFAULT_PATTERNS, ThinkingExtractor, extract_reasoning_content
from inklink.types import NormalizedResult, Usage

ResponseFormat = Literal["chat-completions", "responses", "unknown"]

_MESSAGE_TEXT_TYPES = frozenset({"output_text", "text"})
_SUMMARY_TEXT_TYPES = frozenset({"summary_text", "text"})

_extractor = ThinkingExtractor(DEFAULT_PATTERNS)


def detect_format(body: Any) -> ResponseFormat:
    """Classify a response body by shape.

    An ``output`` list wins over a ``choices`` list when both are present.
    """
    if not isinstance(body, dict):
        return "unknown"
    if isinstance(body.get("output"), list):
        return "responses"
    if isinstance(body.get("choices"), list):
        return "chat-completions"
    return "unknown"


def parse_response(body: Any) -> NormalizedResult:
    """Parse *body* according to its detected format."""
    fmt = detect_format(body)
    if fmt == "chat-completions":
        return parse_chat_completions(body)
    if fmt == "responses":
        return parse_responses(body)
    raise AIError.invalid_response(
        "Unrecognized response format: expected 'choices' or 'output'",
        response_data=body,
    )


def parse_chat_completions(body: dict[str, Any]) -> NormalizedResult:
    """Parse a chat-completions body."""
    _raise_on_error_payload(body)

    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        raise AIError.invalid_response(
            "Response contains no choices", response_data=body
        )

    choice = choices[0]
    message = choice.get("message") if isinstance(choice, dict) else None
    raw_content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(raw_content, str) or not raw_content:
        raise AIError.invalid_response(
            "Response message has no content", response_data=body
        )

    processed = _extractor.process(raw_content)
    reasoning = extract_reasoning_content(choice) or processed.thinking or None

    usage = None
    raw_usage = body.get("usage")
    if isinstance(raw_usage, dict):
        usage = Usage(
            input_tokens=_int_or_zero(raw_usage.get("prompt_tokens")),
            output_tokens=_int_or_zero(raw_usage.get("completion_tokens")),
        )

    return NormalizedResult(
        content=processed.content, reasoning_summary=reasoning, usage=usage
    )


def parse_responses(body: dict[str, Any]) -> NormalizedResult:
    """Parse a responses-API body."""
    _raise_on_error_payload(body)

    output = body.get("output")
    if not isinstance(output, list) or not output:
        raise AIError.invalid_response(
            "Response contains no output items", response_data=body
        )

    message_content = ""
    summary_parts: list[str] = []
    for item in output:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type")
        if item_type == "message":
            message_content += "".join(
                _typed_texts(item.get("content"), _MESSAGE_TEXT_TYPES)
            )
        elif item_type == "reasoning":
            summary = "\n".join(_typed_texts(item.get("summary"), _SUMMARY_TEXT_TYPES))
            if summary:
                summary_parts.append(summary)

    if not message_content:
        raise AIError.invalid_response(
            "Response output has no message content", response_data=body
        )

    processed = _extractor.process(message_content)
    if processed.thinking:
        summary_parts.append(processed.thinking)

    usage = None
    raw_usage = body.get("usage")
    if isinstance(raw_usage, dict):
        usage = Usage(
            input_tokens=_int_or_zero(raw_usage.get("input_tokens")),
            output_tokens=_int_or_zero(raw_usage.get("output_tokens")),
            reasoning_tokens=_reasoning_tokens(raw_usage),
        )

    return NormalizedResult(
        content=processed.content,
        reasoning_summary="\n".join(summary_parts) or None,
        usage=usage,
    )


def _raise_on_error_payload(body: dict[str, Any]) -> None:
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        raise AIError.invalid_response(str(error["message"]), response_data=body)


def _typed_texts(entries: Any, allowed: frozenset[str]) -> list[str]:
    if not isinstance(entries, list):
        return []
    texts: list[str] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry_type = entry.get("type")
        if not isinstance(entry_type, str) or entry_type not in allowed:
            continue
        text = entry.get("text")
        if isinstance(text, str) and text:
            texts.append(text)
    return texts


def _int_or_zero(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _reasoning_tokens(raw_usage: dict[str, Any]) -> int | None:
    value = raw_usage.get("reasoning_tokens")
    if value is None:
        details = raw_usage.get("output_tokens_details")
        if isinstance(details, dict):
            value = details.get("reasoning_tokens")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return None
