"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, shared provider/model
fixtures, and automatic API test skipping. Isolation fixtures are autouse.
"""

from __future__ import annotations

import logging
import os

import pytest

from inklink.types import ModelConfig, Provider

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    monkeypatch.setattr(
        "inklink.config.load_dotenv", lambda *_args, **_kwargs: False
    )


@pytest.fixture(autouse=True)
def isolate_inklink_env(request, monkeypatch):
    """Ensure a clean INKLINK_* environment for each test.

    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith("INKLINK_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# Shared Configuration
# =============================================================================


@pytest.fixture
def provider() -> Provider:
    """A provider pointing at a base URL that needs normalization."""
    return Provider(
        id="openai",
        name="OpenAI",
        endpoint="api.example.com",
        api_key="sk-test-123",
    )


@pytest.fixture
def chat_model() -> ModelConfig:
    return ModelConfig(name="gpt-test", display_name="GPT Test")


@pytest.fixture
def responses_model() -> ModelConfig:
    return ModelConfig(
        name="o-test",
        display_name="O Test",
        api_format="responses",
        reasoning_effort="high",
        max_output_tokens=256,
    )
