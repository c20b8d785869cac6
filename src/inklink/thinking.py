"""Separation of inline reasoning markup from visible answer text.

Some providers inline their reasoning in the answer, wrapped in tags such as
``<think>...</think>``. ``ThinkingExtractor`` pulls those spans out, either
from a complete string (``process``) or from a live stream of chunks
(``feed``/``flush``). Both paths share one scanner, so the final content and
thinking never depend on how the text was chunked.

Other providers expose reasoning as a dedicated ``reasoning_content`` field;
``extract_reasoning_content`` handles that structural case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


@dataclass(frozen=True)
class ThinkingPattern:
    """An opening/closing delimiter pair for inline reasoning."""

    start: str
    end: str
    case_sensitive: bool = False
    open_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    close_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    span_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    #: ``prefix_res[k - 1]`` matches the first ``k`` characters of ``start``.
    prefix_res: tuple[re.Pattern[str], ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not self.start or not self.end:
            raise ValueError("ThinkingPattern delimiters must be non-empty")
        flags = 0 if self.case_sensitive else re.IGNORECASE
        object.__setattr__(self, "open_re", re.compile(re.escape(self.start), flags))
        object.__setattr__(self, "close_re", re.compile(re.escape(self.end), flags))
        object.__setattr__(
            self,
            "span_re",
            re.compile(
                re.escape(self.start) + "(.*?)" + re.escape(self.end),
                flags | re.DOTALL,
            ),
        )
        object.__setattr__(
            self,
            "prefix_res",
            tuple(
                re.compile(re.escape(self.start[:k]), flags)
                for k in range(1, len(self.start))
            ),
        )


# Priority order: interiors are grouped by this order in the final thinking.
DEFAULT_PATTERNS: tuple[ThinkingPattern, ...] = (
    ThinkingPattern("<think>", "</think>"),
    ThinkingPattern("<thinking>", "</thinking>"),
    ThinkingPattern("【思考】", "【/思考】", case_sensitive=True),
    ThinkingPattern("[思考]", "[/思考]", case_sensitive=True),
)


@dataclass(frozen=True)
class ThinkingResult:
    """Visible content and extracted thinking, both trimmed."""

    content: str
    thinking: str


class ThinkingExtractor:
    """Incremental state machine over text chunks.

    Outside a span, plain text is emitted as soon as it cannot be the start of
    an opening delimiter; only the shortest ambiguous suffix is held back.
    Inside a span, text is buffered until the matching closing delimiter
    arrives, then the interior is emitted as thinking.
    """

    def __init__(
        self,
        patterns: Sequence[ThinkingPattern] = DEFAULT_PATTERNS,
        *,
        on_content: Callable[[str], None] | None = None,
        on_thinking: Callable[[str], None] | None = None,
    ) -> None:
        self.patterns = tuple(patterns)
        self.on_content = on_content
        self.on_thinking = on_thinking
        self._buffer = ""
        self._active: int | None = None
        self._opener = ""
        self._scan_pos = 0
        self._content_parts: list[str] = []
        self._spans: list[tuple[int, str]] = []

    # --- Complete-string mode ---

    def process(self, full_text: str) -> ThinkingResult:
        """Extract thinking from a complete string.

        Uses a fresh scanner, so it never disturbs an in-progress stream.
        """
        scanner = ThinkingExtractor(self.patterns)
        scanner.feed(full_text)
        scanner.flush()
        return scanner.result()

    # --- Incremental mode ---

    def feed(self, chunk: str) -> None:
        """Consume the next chunk of text."""
        if not chunk:
            return
        self._buffer += chunk
        self._scan(final=False)

    process_chunk = feed

    def flush(self) -> str:
        """Release everything still buffered; return the content released."""
        before = len(self._content_parts)
        self._scan(final=True)
        return "".join(self._content_parts[before:])

    def reset(self) -> None:
        self._buffer = ""
        self._active = None
        self._opener = ""
        self._scan_pos = 0
        self._content_parts.clear()
        self._spans.clear()

    def result(self) -> ThinkingResult:
        """Content and thinking resolved so far."""
        ordered = sorted(self._spans, key=lambda span: span[0])
        return ThinkingResult(
            content="".join(self._content_parts).strip(),
            thinking="\n".join(text for _, text in ordered).strip(),
        )

    @property
    def inside_span(self) -> bool:
        return self._active is not None

    # --- Scanner ---

    def _scan(self, *, final: bool) -> None:
        while True:
            if self._active is None:
                hit = self._find_opener()
                if hit is None:
                    keep = 0 if final else self._holdback()
                    cut = len(self._buffer) - keep
                    self._emit_content(self._buffer[:cut])
                    self._buffer = self._buffer[cut:]
                    return
                index, match = hit
                self._emit_content(self._buffer[: match.start()])
                self._active = index
                self._opener = match.group(0)
                self._buffer = self._buffer[match.end() :]
                self._scan_pos = 0
                continue

            pattern = self.patterns[self._active]
            match = pattern.close_re.search(self._buffer, self._scan_pos)
            if match is None:
                if not final:
                    self._scan_pos = max(0, len(self._buffer) - len(pattern.end) + 1)
                    return
                # Unterminated span: the opener was literal text after all.
                self._emit_content(self._opener)
                self._active = None
                self._opener = ""
                self._scan_pos = 0
                continue

            self._emit_thinking(self._active, self._buffer[: match.start()])
            self._buffer = self._buffer[match.end() :]
            self._active = None
            self._opener = ""
            self._scan_pos = 0

    def _find_opener(self) -> tuple[int, re.Match[str]] | None:
        best: tuple[int, re.Match[str]] | None = None
        for index, pattern in enumerate(self.patterns):
            match = pattern.open_re.search(self._buffer)
            if match is not None and (best is None or match.start() < best[1].start()):
                best = (index, match)
        return best

    def _holdback(self) -> int:
        """Length of the longest buffer suffix that could begin an opener."""
        size = len(self._buffer)
        longest = 0
        for pattern in self.patterns:
            for k in range(min(len(pattern.prefix_res), size), longest, -1):
                if pattern.prefix_res[k - 1].fullmatch(self._buffer, size - k):
                    longest = k
                    break
        return longest

    def _emit_content(self, text: str) -> None:
        if not text:
            return
        self._content_parts.append(text)
        if self.on_content is not None:
            self.on_content(text)

    def _emit_thinking(self, index: int, text: str) -> None:
        for piece_index, piece in self._split_span(index, text):
            self._spans.append((piece_index, piece))
            if piece and self.on_thinking is not None:
                self.on_thinking(piece)

    def _split_span(self, index: int, text: str) -> list[tuple[int, str]]:
        """Pull spans of other patterns out of a resolved span's interior.

        Each pattern is applied in priority order to what the previous ones
        left, so no delimiter markup survives into the thinking text.
        """
        pieces: list[tuple[int, str]] = []
        residue = text
        for i, pattern in enumerate(self.patterns):
            if i == index:
                continue

            def take(match: re.Match[str], i: int = i) -> str:
                pieces.append((i, match.group(1)))
                return ""

            residue = pattern.span_re.sub(take, residue)
        if residue or not pieces:
            pieces.append((index, residue))
        return pieces


def process_thinking(
    full_text: str, patterns: Sequence[ThinkingPattern] = DEFAULT_PATTERNS
) -> ThinkingResult:
    """Split *full_text* into visible content and inline thinking."""
    return ThinkingExtractor(patterns).process(full_text)


def extract_reasoning_content(raw: Any) -> str | None:
    """Return a provider's structural ``reasoning_content`` field, if any.

    Looks at the object itself, its ``message``/``delta``, and the first
    entry of ``choices``.
    """
    if not isinstance(raw, dict):
        return None

    value = raw.get("reasoning_content")
    if isinstance(value, str) and value:
        return value

    for key in ("message", "delta"):
        nested = raw.get(key)
        if isinstance(nested, dict):
            value = nested.get("reasoning_content")
            if isinstance(value, str) and value:
                return value

    choices = raw.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return extract_reasoning_content(choices[0])
    return None
