"""SSE stream reading: line reassembly, delta extraction, and lifecycle."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from inklink.cancellation import CancellationToken
from inklink.errors import AIError, ErrorKind
from inklink.stream import StreamReader, StreamState, extract_delta
from tests.helpers import (
    Recorder,
    byte_source,
    chat_delta,
    sse_body,
    sse_event,
    split_every,
)

pytestmark = pytest.mark.unit


async def _read(
    body: bytes | list[bytes],
    *,
    api_format: str | None = None,
    token: CancellationToken | None = None,
    recorder: Recorder | None = None,
) -> tuple[StreamReader, Recorder]:
    recorder = recorder or Recorder()
    chunks = [body] if isinstance(body, bytes) else body
    reader = StreamReader(recorder.callbacks(), api_format=api_format)
    await reader.read(byte_source(chunks), token)
    return reader, recorder


# =============================================================================
# Chat-completions streams
# =============================================================================


@pytest.mark.asyncio
async def test_hello_stream_completes_once() -> None:
    chunks = [
        b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
        b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
        b"data: [DONE]\n\n",
    ]

    reader, rec = await _read(chunks, api_format="chat-completions")

    assert rec.chunks == ["Hel", "lo"]
    assert rec.completes == ["Hello"]
    assert rec.thinking == []
    assert rec.errors == []
    assert reader.state is StreamState.COMPLETED
    assert reader.is_completed
    assert reader.done_received
    assert reader.accumulated_content == "Hello"


@pytest.mark.asyncio
async def test_inline_thinking_is_routed_to_on_thinking() -> None:
    body = sse_body(
        chat_delta("<thi"),
        chat_delta("nk>pondering</think>"),
        chat_delta("Answer"),
    )

    _, rec = await _read(body, api_format="chat-completions")

    assert rec.thinking == ["pondering"]
    assert "".join(rec.chunks) == "Answer"
    assert rec.completes == ["Answer"]


@pytest.mark.asyncio
async def test_structural_reasoning_content_is_emitted_immediately() -> None:
    body = sse_body(
        {"choices": [{"delta": {"reasoning_content": "Let me see"}}]},
        chat_delta("Yes"),
    )

    _, rec = await _read(body)

    assert rec.events[0] == ("thinking", "Let me see")
    assert rec.chunks == ["Yes"]


@pytest.mark.asyncio
async def test_comments_unknown_fields_and_bad_json_are_ignored() -> None:
    body = (
        b": keep-alive\n\n"
        b"event: message\n"
        b"id: 7\n"
        b"data: {not json}\n\n"
        b"data: 42\n\n"
        + sse_event(chat_delta("ok"))
        + b"\r\n"
    )

    reader, rec = await _read(body, api_format="chat-completions")

    assert rec.chunks == ["ok"]
    assert rec.completes == ["ok"]
    assert not reader.done_received


@pytest.mark.asyncio
async def test_final_line_without_newline_is_processed() -> None:
    body = b'data: {"choices":[{"delta":{"content":"tail"}}]}'
    _, rec = await _read(body, api_format="chat-completions")
    assert rec.completes == ["tail"]


@pytest.mark.asyncio
async def test_unterminated_thinking_is_released_at_end() -> None:
    body = sse_body(chat_delta("a <think>b"))
    _, rec = await _read(body)
    assert rec.completes == ["a <think>b"]
    assert rec.thinking == []


@pytest.mark.asyncio
async def test_multibyte_characters_split_across_chunks() -> None:
    body = sse_body(chat_delta("你好，世界"), chat_delta("【思考】想【/思考】好"))

    _, rec = await _read(split_every(body, 1))

    assert rec.completes == ["你好，世界好"]
    assert rec.thinking == ["想"]


_texts = st.lists(
    st.sampled_from(["Hel", "lo", " ", "<think>", "</think>", "ok", "é", "思", "\\n", '"q"']),
    min_size=1,
    max_size=8,
)


@given(texts=_texts, size=st.integers(min_value=1, max_value=64))
@settings(max_examples=100, deadline=None, derandomize=True)
def test_byte_boundaries_do_not_change_output(texts: list[str], size: int) -> None:
    """Splitting the raw body at arbitrary byte offsets is invisible downstream."""
    body = sse_body(*(chat_delta(t) for t in texts))

    async def run() -> tuple[Recorder, Recorder]:
        _, whole = await _read(body)
        _, split = await _read(split_every(body, size))
        return whole, split

    whole, split = asyncio.run(run())

    assert "".join(split.chunks) == "".join(whole.chunks)
    assert split.thinking == whole.thinking
    assert split.completes == whole.completes
    assert len(split.completes) == 1


# =============================================================================
# Responses streams
# =============================================================================


@pytest.mark.asyncio
async def test_responses_events() -> None:
    body = sse_body(
        {"type": "response.created", "response": {"id": "r1"}},
        {"type": "response.reasoning_summary_text.delta", "delta": "thinking..."},
        {"type": "response.output_text.delta", "delta": "Hi"},
        {"type": "response.content_part.delta", "delta": {"text": " there"}},
        {"type": "response.completed", "response": {"id": "r1"}},
        done=False,
    )

    reader, rec = await _read(body, api_format="responses")

    assert rec.thinking == ["thinking..."]
    assert rec.chunks == ["Hi", " there"]
    assert rec.completes == ["Hi there"]
    assert not reader.done_received


@pytest.mark.parametrize(
    ("event", "api_format", "expected"),
    [
        (chat_delta("c"), None, "c"),
        (chat_delta("c"), "responses", "c"),
        ({"type": "response.output_text.delta", "delta": "r"}, None, "r"),
        ({"type": "response.output_text.done", "text": "full"}, None, ""),
        ({"delta": "g"}, None, "g"),
        ({"content": "g2"}, None, "g2"),
        ({"text": "g3"}, None, "g3"),
        ({"delta": "", "content": "fallback"}, None, "fallback"),
        ({"choices": [{"delta": {}}]}, "chat-completions", ""),
        ({"choices": []}, None, ""),
        ({"delta": "x"}, "chat-completions", ""),
    ],
)
def test_extract_delta(event: dict, api_format: str | None, expected: str) -> None:
    assert extract_delta(event, api_format) == expected


# =============================================================================
# Failure and lifecycle
# =============================================================================


@pytest.mark.asyncio
async def test_cancel_mid_stream_reports_partial_content() -> None:
    token = CancellationToken()
    rec = Recorder(on_chunk_hook=lambda _text: token.cancel())
    chunks = [
        sse_event(chat_delta("Hel")),
        sse_event(chat_delta("lo")),
        sse_event("[DONE]"),
    ]

    reader, rec = await _read(chunks, token=token, recorder=rec)

    assert rec.chunks == ["Hel"]
    assert rec.completes == []
    [err] = rec.errors
    assert err.kind is ErrorKind.STREAM_INTERRUPTED
    assert err.partial_content == "Hel"
    assert reader.state is StreamState.CANCELLED


@pytest.mark.asyncio
async def test_source_failure_reports_stream_interrupted_with_cause() -> None:
    async def broken() -> AsyncIterator[bytes]:
        yield sse_event(chat_delta("par"))
        raise ConnectionResetError("peer reset")

    rec = Recorder()
    reader = StreamReader(rec.callbacks())
    await reader.read(broken())

    [err] = rec.errors
    assert err.kind is ErrorKind.STREAM_INTERRUPTED
    assert err.partial_content == "par"
    assert isinstance(err.cause, ConnectionResetError)
    assert reader.state is StreamState.ERRORED
    assert rec.completes == []


@pytest.mark.asyncio
async def test_classified_errors_pass_through() -> None:
    original = AIError.invalid_response("upstream said no")

    async def failing() -> AsyncIterator[bytes]:
        raise original
        yield b""  # pragma: no cover

    rec = Recorder()
    await StreamReader(rec.callbacks()).read(failing())

    assert rec.errors == [original]


@pytest.mark.asyncio
async def test_reader_must_be_reset_before_reuse() -> None:
    rec = Recorder()
    reader = StreamReader(rec.callbacks())
    await reader.read(byte_source([sse_body(chat_delta("one"))]))

    with pytest.raises(RuntimeError, match="reset"):
        await reader.read(byte_source([b""]))

    reader.reset()
    assert reader.state is StreamState.IDLE
    assert reader.accumulated_content == ""

    await reader.read(byte_source([sse_body(chat_delta("two"))]))
    assert rec.completes == ["one", "two"]
