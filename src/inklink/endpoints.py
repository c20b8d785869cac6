"""Endpoint normalization: turn a user-supplied base URL into a full API path.

Users paste anything from ``api.openai.com`` to a complete
``https://host/v1/chat/completions`` URL. Normalization is idempotent, so an
already-normalized endpoint passes through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from inklink.errors import AIError
from inklink.types import API_FORMATS, CHAT_COMPLETIONS, RESPONSES

_VERSION_SUFFIX_RE = re.compile(r"/v\d+$")
_DOUBLE_SLASH_RE = re.compile(r"/{2,}")


@dataclass(frozen=True)
class EndpointPaths:
    """Known API path tables. Order matters: longest match first."""

    chat_terminals: tuple[str, ...] = (
        "/v1/chat/completions",
        "/chat/completions",
        "/v1/completions",
        "/completions",
    )
    responses_terminals: tuple[str, ...] = ("/v1/responses",)
    models_terminals: tuple[str, ...] = ("/v1/models", "/models")
    strippable: tuple[str, ...] = (
        "/v1/chat/completions",
        "/chat/completions",
        "/v1/completions",
        "/v1/responses",
        "/completions",
        "/v1/models",
        "/responses",
        "/models",
        "/v1",
    )
    chat_suffix: str = "/v1/chat/completions"
    chat_short_suffix: str = "/chat/completions"
    responses_suffix: str = "/v1/responses"
    models_suffix: str = "/v1/models"
    openai_compat_suffix: str = "/openai"


DEFAULT_PATHS = EndpointPaths()


class EndpointNormalizer:
    """Normalize endpoints for the chat, responses, and models APIs."""

    def __init__(self, paths: EndpointPaths = DEFAULT_PATHS) -> None:
        self.paths = paths

    def normalize(self, raw_url: str, api_format: str) -> str:
        """Return the full endpoint URL for *api_format*."""
        if api_format == RESPONSES:
            return self._normalize_to(
                raw_url, self.paths.responses_terminals, self.paths.responses_suffix
            )
        if api_format == CHAT_COMPLETIONS:
            return self._normalize_chat(raw_url)
        raise AIError.unsupported_format(str(api_format))

    def normalize_models(self, raw_url: str) -> str:
        """Return the model-listing endpoint URL."""
        return self._normalize_to(
            raw_url, self.paths.models_terminals, self.paths.models_suffix
        )

    def _normalize_chat(self, raw_url: str) -> str:
        url = self._prepare(raw_url)
        if self._contains_any(url, self.paths.chat_terminals):
            return url

        # Versioned or OpenAI-compatible bases (e.g. ".../v4", ".../openai")
        # only need the short suffix.
        if _VERSION_SUFFIX_RE.search(url) or url.endswith(
            self.paths.openai_compat_suffix
        ):
            return _collapse_slashes(url + self.paths.chat_short_suffix)

        return _collapse_slashes(self._strip_known_path(url) + self.paths.chat_suffix)

    def _normalize_to(
        self, raw_url: str, terminals: tuple[str, ...], suffix: str
    ) -> str:
        url = self._prepare(raw_url)
        if self._contains_any(url, terminals):
            return url
        return _collapse_slashes(self._strip_known_path(url) + suffix)

    def _prepare(self, raw_url: str) -> str:
        url = _add_scheme(raw_url)
        url = url.rstrip("/")
        return _collapse_slashes(url)

    @staticmethod
    def _contains_any(url: str, paths: tuple[str, ...]) -> bool:
        return any(path in url for path in paths)

    def _strip_known_path(self, url: str) -> str:
        for path in self.paths.strippable:
            if url.endswith(path):
                return url[: -len(path)]
        return url


def _add_scheme(raw_url: str) -> str:
    url = (raw_url or "").strip()
    if not url:
        raise AIError.invalid_endpoint("Endpoint URL cannot be empty")
    if "://" not in url:
        url = "https:" + url if url.startswith("//") else "https://" + url
    if not url.partition("://")[2].strip("/"):
        raise AIError.invalid_endpoint(f"Endpoint URL has no host: {raw_url!r}")
    return url


def _collapse_slashes(url: str) -> str:
    """Collapse slash runs after the ``scheme://`` prefix."""
    scheme, sep, rest = url.partition("://")
    if not sep:
        return _DOUBLE_SLASH_RE.sub("/", url)
    return scheme + sep + _DOUBLE_SLASH_RE.sub("/", rest.lstrip("/"))


_default_normalizer = EndpointNormalizer()


def normalize_endpoint(raw_url: str, api_format: str = CHAT_COMPLETIONS) -> str:
    """Normalize *raw_url* for *api_format* using the default path tables."""
    return _default_normalizer.normalize(raw_url, api_format)


def normalize_models_endpoint(raw_url: str) -> str:
    """Normalize *raw_url* to the model-listing endpoint."""
    return _default_normalizer.normalize_models(raw_url)


__all__ = [
    "API_FORMATS",
    "DEFAULT_PATHS",
    "EndpointNormalizer",
    "EndpointPaths",
    "normalize_endpoint",
    "normalize_models_endpoint",
]
