"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: SSE body builders, a callback
recorder, and httpx transport doubles shared by the stream and client suites.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
import json
from typing import Any

import httpx

from inklink.errors import AIError
from inklink.types import StreamCallbacks


def sse_event(payload: dict[str, Any] | str) -> bytes:
    """Encode one SSE ``data:`` event."""
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n".encode()


def sse_body(*payloads: dict[str, Any] | str, done: bool = True) -> bytes:
    body = b"".join(sse_event(p) for p in payloads)
    if done:
        body += sse_event("[DONE]")
    return body


def chat_delta(text: str, **delta_extra: Any) -> dict[str, Any]:
    return {"choices": [{"delta": {"content": text, **delta_extra}}]}


async def byte_source(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    """Yield pre-split byte chunks as an async stream."""
    for chunk in chunks:
        yield chunk


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


@dataclass
class Recorder:
    """Collects every callback a streaming call makes, in order."""

    events: list[tuple[str, Any]] = field(default_factory=list)
    on_chunk_hook: Callable[[str], None] | None = None

    @property
    def chunks(self) -> list[str]:
        return [v for k, v in self.events if k == "chunk"]

    @property
    def thinking(self) -> list[str]:
        return [v for k, v in self.events if k == "thinking"]

    @property
    def completes(self) -> list[str]:
        return [v for k, v in self.events if k == "complete"]

    @property
    def errors(self) -> list[AIError]:
        return [v for k, v in self.events if k == "error"]

    @property
    def started(self) -> bool:
        return any(k == "start" for k, _ in self.events)

    def callbacks(self) -> StreamCallbacks:
        def on_chunk(text: str) -> None:
            self.events.append(("chunk", text))
            if self.on_chunk_hook is not None:
                self.on_chunk_hook(text)

        return StreamCallbacks(
            on_chunk=on_chunk,
            on_complete=lambda text: self.events.append(("complete", text)),
            on_error=lambda err: self.events.append(("error", err)),
            on_start=lambda: self.events.append(("start", None)),
            on_thinking=lambda text: self.events.append(("thinking", text)),
        )


@dataclass
class RecordingTransport:
    """Wraps a handler in ``httpx.MockTransport`` and keeps every request."""

    handler: Callable[[httpx.Request], Any]
    requests: list[httpx.Request] = field(default_factory=list)

    def client(self) -> httpx.AsyncClient:
        async def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            response = self.handler(request)
            if not isinstance(response, httpx.Response):
                response = await response
            return response

        return httpx.AsyncClient(transport=httpx.MockTransport(record))

    @property
    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)
