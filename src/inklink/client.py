"""AIClient: the single entry point of the communication layer.

The client validates configuration, builds the payload, normalizes the
endpoint, performs the HTTP call raced against a timeout and a cancellation
token, and hands the body to the parser (buffered) or the stream reader
(streamed). Every failure passes through ``normalize_error`` once before it
reaches the caller.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING, Any

import httpx

from inklink._errors import classify_status, error_message_from_body, normalize_error
from inklink._http import build_headers
from inklink.cancellation import CancellationToken, race
from inklink.config import ClientSettings
from inklink.endpoints import EndpointNormalizer
from inklink.errors import AIError, ConfigurationError
from inklink.parser import parse_response
from inklink.request_builder import build_payload
from inklink.stream import StreamReader
from inklink.types import StreamCallbacks

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from inklink.types import ModelConfig, NormalizedResult, Provider, RequestOptions

logger = logging.getLogger(__name__)


class AIClient:
    """Provider-agnostic client for one provider/model pair.

    Reusable across sequential calls. Starting a call replaces the active
    cancellation token, so two concurrent calls on one instance cannot be
    cancelled independently.

    Example:
        client = AIClient(provider, model, timeout_s=30)
        result = await client.request(RequestOptions(prompt="Name this note"))
        print(result.content)
    """

    def __init__(
        self,
        provider: Provider | None,
        model: ModelConfig | None,
        *,
        timeout_s: float | None = None,
        debug_mode: bool | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: ClientSettings | None = None,
        normalizer: EndpointNormalizer | None = None,
    ) -> None:
        """Validate configuration and resolve defaults from settings."""
        provider, model = AIClient.validate(provider, model)

        resolved_timeout = timeout_s
        resolved_debug = debug_mode
        if resolved_timeout is None or resolved_debug is None:
            if settings is None:
                settings = ClientSettings.from_env()
            if resolved_timeout is None:
                resolved_timeout = settings.timeout_s
            if resolved_debug is None:
                resolved_debug = settings.debug
        if resolved_timeout <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {resolved_timeout}",
                hint="This bounds the wait for response headers, in seconds.",
            )

        self.provider = provider
        self.model = model
        self.timeout_s = float(resolved_timeout)
        self.debug_mode = resolved_debug
        self._http_client = http_client
        self._normalizer = normalizer or EndpointNormalizer()
        self._token: CancellationToken | None = None

    @staticmethod
    def validate(
        provider: Provider | None, model: ModelConfig | None
    ) -> tuple[Provider, ModelConfig]:
        """Fail fast, before any network access, on unusable configuration.

        Returns the provider and model once both are known to be usable.
        """
        if provider is None:
            raise AIError.no_provider()
        if not provider.api_key or not provider.api_key.strip():
            raise AIError.invalid_api_key("API key is required")
        if not provider.endpoint or not provider.endpoint.strip():
            raise AIError.invalid_endpoint("API endpoint is required")
        if model is None:
            raise AIError.no_provider("No model is configured")
        if not model.name or not model.name.strip():
            raise AIError.invalid_response("Model name is required")
        return provider, model

    @property
    def in_progress(self) -> bool:
        """Whether a call on this instance currently holds a live token."""
        return self._token is not None

    def cancel(self) -> None:
        """Cancel the active call, if any."""
        token = self._token
        if token is not None:
            self._token = None
            token.cancel()

    async def request(self, options: RequestOptions) -> NormalizedResult:
        """Send a buffered request and parse the complete response.

        Raises:
            AIError: For every failure, classified by kind.
        """
        token = self._begin()
        try:
            payload = build_payload(
                self.model, options.prompt, options.system_prompt, stream=False
            )
            endpoint = self._normalizer.normalize(
                self.provider.endpoint, self.model.api_format
            )
            self._log_request(endpoint, payload, stream=False)

            async with self._session() as http:
                response = await race(
                    self._open(http, endpoint, payload, stream=False),
                    token,
                    timeout_s=self.timeout_s,
                )
                try:
                    if not response.is_success:
                        raise self._error_from_response(response)
                    body = self._json_body(response)
                finally:
                    await response.aclose()

            if self.debug_mode:
                logger.debug("Response: %s", body)
            return parse_response(body)
        except Exception as exc:
            error = normalize_error(exc)
            if error is exc:
                raise
            raise error from exc
        finally:
            self._finish(token)

    async def request_stream(
        self, options: RequestOptions, callbacks: StreamCallbacks
    ) -> None:
        """Send a streaming request, reporting through *callbacks*.

        Never raises for request failures: they arrive, classified, on
        ``callbacks.on_error``. Exceptions raised by the callbacks themselves
        propagate.
        """
        token = self._begin()
        reported = False

        def on_complete(content: str) -> None:
            nonlocal reported
            reported = True
            if self.debug_mode:
                logger.debug("Stream complete: %d chars", len(content))
            callbacks.on_complete(content)

        def on_error(exc: BaseException) -> None:
            nonlocal reported
            if reported:
                return
            reported = True
            callbacks.on_error(normalize_error(exc))

        forwarded = StreamCallbacks(
            on_chunk=callbacks.on_chunk,
            on_complete=on_complete,
            on_error=on_error,
            on_thinking=callbacks.on_thinking,
        )

        try:
            payload = build_payload(
                self.model, options.prompt, options.system_prompt, stream=True
            )
            endpoint = self._normalizer.normalize(
                self.provider.endpoint, self.model.api_format
            )
            self._log_request(endpoint, payload, stream=True)

            if callbacks.on_start is not None:
                callbacks.on_start()

            async with self._session() as http:
                response = await race(
                    self._open(http, endpoint, payload, stream=True),
                    token,
                    timeout_s=self.timeout_s,
                )
                try:
                    if not response.is_success:
                        raise self._error_from_response(response)
                    reader = StreamReader(forwarded, api_format=self.model.api_format)
                    await reader.read(response.aiter_bytes(), token)
                finally:
                    await response.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if reported:
                raise
            on_error(exc)
        finally:
            self._finish(token)

    # --- Internals ---

    def _begin(self) -> CancellationToken:
        # A new call orphans the previous token; it is not cancelled.
        token = CancellationToken()
        self._token = token
        return token

    def _finish(self, token: CancellationToken) -> None:
        if self._token is token:
            self._token = None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        # Timeouts are enforced by race(), not by httpx.
        async with httpx.AsyncClient(timeout=None) as http:
            yield http

    async def _open(
        self,
        http: httpx.AsyncClient,
        endpoint: str,
        payload: dict[str, Any],
        *,
        stream: bool,
    ) -> httpx.Response:
        request = http.build_request(
            "POST", endpoint, json=payload, headers=build_headers(self.provider.api_key)
        )
        response = await http.send(request, stream=True)
        if stream and response.is_success:
            return response
        try:
            await response.aread()
        except BaseException:
            await response.aclose()
            raise
        return response

    def _json_body(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise AIError.invalid_response(
                "Response body is not valid JSON", response_data=response.text[:500]
            ) from e

    def _error_from_response(self, response: httpx.Response) -> AIError:
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        message = error_message_from_body(
            response.status_code, response.reason_phrase, body
        )
        if self.debug_mode:
            logger.debug(
                "Error response: status=%s reason=%s body=%s",
                response.status_code,
                response.reason_phrase,
                body,
            )
        return classify_status(response.status_code, message)

    def _log_request(self, endpoint: str, payload: dict[str, Any], *, stream: bool) -> None:
        if not self.debug_mode:
            return
        logger.debug(
            "%s request: endpoint=%s format=%s model=%s body=%s",
            "Stream" if stream else "Buffered",
            endpoint,
            self.model.api_format,
            self.model.name,
            payload,
        )
