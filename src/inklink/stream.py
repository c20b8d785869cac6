"""Server-Sent-Events stream reading.

``StreamReader`` consumes any async source of byte chunks, reassembles SSE
lines that were split across chunks, extracts the text delta of each event
for the declared API format, and feeds it through a ``ThinkingExtractor`` so
inline reasoning never reaches the visible output.

Lifecycle::

    IDLE -> READING -> DRAINING -> COMPLETED
               |-> CANCELLED
               `-> ERRORED

``on_complete`` or ``on_error`` fires exactly once per read.
"""

from __future__ import annotations

import asyncio
import codecs
from enum import Enum
import json
import logging
from typing import TYPE_CHECKING, Any

from inklink.cancellation import RequestCancelled, race
from inklink.errors import AIError
from inklink.thinking import DEFAULT_PATTERNS, ThinkingExtractor, extract_reasoning_content
from inklink.types import CHAT_COMPLETIONS, RESPONSES

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Sequence

    from inklink.cancellation import CancellationToken
    from inklink.thinking import ThinkingPattern
    from inklink.types import StreamCallbacks

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

_OUTPUT_TEXT_DELTA = "response.output_text.delta"
_CONTENT_PART_DELTA = "response.content_part.delta"
_REASONING_SUMMARY_DELTA = "response.reasoning_summary_text.delta"


class StreamState(str, Enum):
    """Reader lifecycle states."""

    IDLE = "idle"
    READING = "reading"
    DRAINING = "draining"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"


class StreamReader:
    """Incremental SSE reader bound to one set of callbacks."""

    def __init__(
        self,
        callbacks: StreamCallbacks,
        *,
        api_format: str | None = None,
        patterns: Sequence[ThinkingPattern] = DEFAULT_PATTERNS,
    ) -> None:
        self.callbacks = callbacks
        self.api_format = api_format
        self._extractor = ThinkingExtractor(
            patterns, on_content=self._emit_content, on_thinking=self._emit_thinking
        )
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._line_buffer = ""
        self._aggregate = ""
        self._done_received = False
        self._state = StreamState.IDLE

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def accumulated_content(self) -> str:
        return self._aggregate

    @property
    def is_completed(self) -> bool:
        return self._state is StreamState.COMPLETED

    @property
    def done_received(self) -> bool:
        """Whether the ``data: [DONE]`` terminator was seen."""
        return self._done_received

    def reset(self) -> None:
        """Return to IDLE so the reader can be reused."""
        self._extractor.reset()
        self._decoder.reset()
        self._line_buffer = ""
        self._aggregate = ""
        self._done_received = False
        self._state = StreamState.IDLE

    async def read(
        self,
        source: AsyncIterable[bytes],
        token: CancellationToken | None = None,
    ) -> None:
        """Consume *source* to the end, reporting through the callbacks.

        Failures are reported via ``on_error``, never raised, except for
        ``asyncio.CancelledError`` which always propagates.
        """
        if self._state is not StreamState.IDLE:
            raise RuntimeError(
                f"StreamReader is {self._state.value}; call reset() before reading again"
            )
        self._state = StreamState.READING
        iterator = aiter(source)
        try:
            while True:
                chunk = await race(_next_chunk(iterator), token)
                if chunk is None:
                    break
                self._consume(chunk)

            self._state = StreamState.DRAINING
            self._drain()
        except asyncio.CancelledError:
            self._state = StreamState.CANCELLED
            raise
        except RequestCancelled as exc:
            self._fail(
                AIError.stream_interrupted(self._aggregate, "Request aborted", cause=exc),
                StreamState.CANCELLED,
            )
            return
        except AIError as exc:
            self._fail(exc, StreamState.ERRORED)
            return
        except Exception as exc:
            self._fail(
                AIError.stream_interrupted(
                    self._aggregate, str(exc) or type(exc).__name__, cause=exc
                ),
                StreamState.ERRORED,
            )
            return
        finally:
            await _close_quietly(iterator)

        self._state = StreamState.COMPLETED
        self.callbacks.on_complete(self._aggregate)

    # --- Line reassembly ---

    def _consume(self, chunk: bytes) -> None:
        if not chunk:
            return
        self._line_buffer += self._decoder.decode(chunk)
        *lines, self._line_buffer = self._line_buffer.split("\n")
        for line in lines:
            self._process_line(line)

    def _drain(self) -> None:
        self._line_buffer += self._decoder.decode(b"", final=True)
        if self._line_buffer.strip():
            self._process_line(self._line_buffer)
        self._line_buffer = ""
        self._extractor.flush()

    # --- SSE parsing ---

    def _process_line(self, line: str) -> None:
        line = line.strip()
        if not line or line.startswith(":"):
            return
        # event:/id:/retry: fields are not interpreted.
        if not line.startswith(DATA_PREFIX):
            return

        data = line[len(DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            self._done_received = True
            return

        try:
            event = json.loads(data)
        except ValueError:
            logger.debug("Dropping unparsable SSE payload: %.80s", data)
            return
        if not isinstance(event, dict):
            return

        reasoning = extract_reasoning_content(event) or _reasoning_summary_delta(event)
        if reasoning:
            self._emit_thinking(reasoning)

        delta = extract_delta(event, self.api_format)
        if delta:
            self._extractor.feed(delta)

    # --- Emission ---

    def _emit_content(self, text: str) -> None:
        self._aggregate += text
        self.callbacks.on_chunk(text)

    def _emit_thinking(self, text: str) -> None:
        if self.callbacks.on_thinking is not None:
            self.callbacks.on_thinking(text)

    def _fail(self, error: AIError, state: StreamState) -> None:
        self._state = state
        self.callbacks.on_error(error)


def extract_delta(event: dict[str, Any], api_format: str | None = None) -> str:
    """Return the visible-text delta carried by one SSE event."""
    if api_format == CHAT_COMPLETIONS or isinstance(event.get("choices"), list):
        return _chat_delta(event)
    if api_format == RESPONSES or _looks_like_responses(event):
        return _responses_delta(event)
    return _generic_delta(event)


def _chat_delta(event: dict[str, Any]) -> str:
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def _looks_like_responses(event: dict[str, Any]) -> bool:
    event_type = event.get("type")
    return isinstance(event_type, str) and event_type.startswith("response.")


def _responses_delta(event: dict[str, Any]) -> str:
    event_type = event.get("type")
    delta = event.get("delta")
    if event_type == _OUTPUT_TEXT_DELTA:
        return delta if isinstance(delta, str) else ""
    if event_type == _CONTENT_PART_DELTA and isinstance(delta, dict):
        text = delta.get("text")
        return text if isinstance(text, str) else ""
    return ""


def _reasoning_summary_delta(event: dict[str, Any]) -> str:
    if event.get("type") != _REASONING_SUMMARY_DELTA:
        return ""
    delta = event.get("delta")
    return delta if isinstance(delta, str) else ""


def _generic_delta(event: dict[str, Any]) -> str:
    for key in ("delta", "content", "text"):
        value = event.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


async def _next_chunk(iterator: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None


async def _close_quietly(iterator: AsyncIterator[bytes]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if not callable(aclose):
        return
    try:
        await aclose()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        # Cleanup should never mask the primary failure.
        logger.debug("Stream source cleanup failed: %s", exc)
