"""Request payload construction for the chat-completions and responses APIs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from inklink.errors import VALID_REASONING_EFFORTS, AIError
from inklink.types import CHAT_COMPLETIONS, RESPONSES

if TYPE_CHECKING:
    from inklink.types import ModelConfig

DEFAULT_REASONING_EFFORT = "medium"


def build_payload(
    model: ModelConfig,
    prompt: str,
    system_prompt: str | None = None,
    *,
    stream: bool,
) -> dict[str, Any]:
    """Build the JSON body for *model*'s API format.

    Pure data transform: no I/O, no mutation of inputs.
    """
    if model.api_format == CHAT_COMPLETIONS:
        return _build_chat_completions(model, prompt, system_prompt, stream=stream)
    if model.api_format == RESPONSES:
        return _build_responses(model, prompt, system_prompt, stream=stream)
    raise AIError.unsupported_format(str(model.api_format))


def _build_chat_completions(
    model: ModelConfig, prompt: str, system_prompt: str | None, *, stream: bool
) -> dict[str, Any]:
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    payload: dict[str, Any] = {
        "model": model.name,
        "messages": messages,
        "temperature": model.temperature,
        "top_p": model.top_p,
    }
    if model.max_output_tokens and model.max_output_tokens > 0:
        payload["max_tokens"] = model.max_output_tokens
    payload["stream"] = stream
    return payload


def _build_responses(
    model: ModelConfig, prompt: str, system_prompt: str | None, *, stream: bool
) -> dict[str, Any]:
    effort = model.reasoning_effort or DEFAULT_REASONING_EFFORT
    if effort not in VALID_REASONING_EFFORTS:
        raise AIError.invalid_reasoning_effort(str(effort))

    input_value: str | list[dict[str, str]]
    if system_prompt:
        input_value = [
            {"type": "message", "role": "system", "content": system_prompt},
            {"type": "message", "role": "user", "content": prompt},
        ]
    else:
        input_value = prompt

    payload: dict[str, Any] = {
        "model": model.name,
        "input": input_value,
        "reasoning": {"effort": effort},
    }
    if model.max_output_tokens and model.max_output_tokens > 0:
        payload["max_output_tokens"] = model.max_output_tokens
    payload["stream"] = stream
    return payload
