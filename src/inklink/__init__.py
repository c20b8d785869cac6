"""Inklink: a provider-agnostic request/response layer for LLM APIs.

Public API:
    - AIClient: Buffered and streamed requests against one provider/model
    - ConnectionTester: Minimal probe for a provider's configuration
    - ThinkingExtractor: Separates inline reasoning from visible text
    - normalize_endpoint(): Turns a user-entered base URL into a full endpoint
    - AIError / ErrorKind: The single classified failure type
"""

from __future__ import annotations

import logging

from inklink.cancellation import CancellationToken, RequestCancelled
from inklink.client import AIClient
from inklink.config import ClientSettings
from inklink.connection import ConnectionTester, ConnectionTestResult
from inklink.endpoints import (
    EndpointNormalizer,
    normalize_endpoint,
    normalize_models_endpoint,
)
from inklink.errors import (
    AIError,
    ConfigurationError,
    ErrorKind,
    InklinkError,
    has_kind,
    is_retryable,
)
from inklink.parser import detect_format, parse_response
from inklink.request_builder import build_payload
from inklink.stream import StreamReader, StreamState
from inklink.thinking import (
    DEFAULT_PATTERNS,
    ThinkingExtractor,
    ThinkingPattern,
    ThinkingResult,
    extract_reasoning_content,
    process_thinking,
)
from inklink.types import (
    ModelConfig,
    NormalizedResult,
    Provider,
    RequestOptions,
    StreamCallbacks,
    Usage,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("inklink")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("inklink").addHandler(logging.NullHandler())

__all__ = [
    "DEFAULT_PATTERNS",
    "AIClient",
    "AIError",
    "CancellationToken",
    "ClientSettings",
    "ConfigurationError",
    "ConnectionTestResult",
    "ConnectionTester",
    "EndpointNormalizer",
    "ErrorKind",
    "InklinkError",
    "ModelConfig",
    "NormalizedResult",
    "Provider",
    "RequestCancelled",
    "RequestOptions",
    "StreamCallbacks",
    "StreamReader",
    "StreamState",
    "ThinkingExtractor",
    "ThinkingPattern",
    "ThinkingResult",
    "Usage",
    "build_payload",
    "detect_format",
    "extract_reasoning_content",
    "has_kind",
    "is_retryable",
    "normalize_endpoint",
    "normalize_models_endpoint",
    "parse_response",
    "process_thinking",
]
