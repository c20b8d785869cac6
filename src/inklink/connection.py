"""Provider connection checks for settings screens."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING

from inklink._http import CONNECTION_TEST_TIMEOUT_S
from inklink.client import AIClient
from inklink.errors import AIError, ErrorKind
from inklink.types import CHAT_COMPLETIONS, RequestOptions

if TYPE_CHECKING:
    import httpx

    from inklink.types import ModelConfig, Provider

logger = logging.getLogger(__name__)

PROBE_PROMPT = "Hi"
PROBE_MAX_OUTPUT_TOKENS = 5

_FRIENDLY_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_API_KEY: "The API key was rejected; check that it is correct",
    ErrorKind.INVALID_ENDPOINT: "The API endpoint was not found; check the address",
}


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a connection check."""

    success: bool
    error: str | None = None


class ConnectionTester:
    """Verify that a provider/model pair answers a minimal request."""

    def __init__(
        self,
        timeout_s: float = CONNECTION_TEST_TIMEOUT_S,
        debug_mode: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.debug_mode = debug_mode
        self.http_client = http_client

    async def test_connection(self, provider: Provider, model: ModelConfig) -> bool:
        """Send a tiny chat-completions request; return True or raise ``AIError``."""
        if self.debug_mode:
            logger.debug("Testing connection: provider=%s model=%s", provider.name, model.name)

        # The probe always uses chat-completions, whatever the model's format.
        probe_model = replace(
            model, api_format=CHAT_COMPLETIONS, max_output_tokens=PROBE_MAX_OUTPUT_TOKENS
        )
        try:
            client = AIClient(
                provider,
                probe_model,
                timeout_s=self.timeout_s,
                debug_mode=self.debug_mode,
                http_client=self.http_client,
            )
            await client.request(RequestOptions(prompt=PROBE_PROMPT))
        except AIError as e:
            friendly = _FRIENDLY_MESSAGES.get(e.kind)
            if friendly is None:
                raise
            raise AIError(
                e.kind, friendly, status_code=e.status_code, cause=e
            ) from e

        if self.debug_mode:
            logger.debug("Connection test succeeded")
        return True

    async def test_connection_with_result(
        self, provider: Provider, model: ModelConfig
    ) -> ConnectionTestResult:
        """Like ``test_connection`` but report failure as a result value."""
        try:
            await self.test_connection(provider, model)
        except AIError as e:
            return ConnectionTestResult(success=False, error=e.message)
        return ConnectionTestResult(success=True)
