"""Pytest configuration and fixtures for deckflow tests.

Test isolation strategy:
- No live network: HTTP is mocked with respx
- Settings cache is cleared around every test
- Pacing runs on a FakeClock so timing assertions are deterministic
- log_sink captures structlog events as dicts for assertions
"""

import httpx
import pytest
import structlog

from deckflow.config import clear_settings_cache
from deckflow.services.llm.client import CompletionClient
from deckflow.services.llm.types import ProviderConfig
from tests.helpers import TEST_APP_TOKEN, TEST_BASE_URL, TEST_MESSAGES_PATH, TEST_MODEL, FakeClock


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def httpx_client():
    """Create an httpx AsyncClient for testing."""
    return httpx.AsyncClient()


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        base_url=TEST_BASE_URL,
        path=TEST_MESSAGES_PATH,
        api_key=TEST_APP_TOKEN,
        model=TEST_MODEL,
        max_tokens_ceiling=8192,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def completion_client(httpx_client, provider_config, fake_clock) -> CompletionClient:
    """Client with default pacing (80 chars / 18ms) on a fake clock."""
    return CompletionClient(
        httpx_client,
        provider_config,
        timeout_s=30,
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest.fixture
def log_sink():
    """Configure structlog to capture events into a list.

    Returns a list that will contain all emitted log event dicts.
    After the test, structlog is reset to normal.
    """
    events: list[dict] = []
    original_config = structlog.get_config()

    def capture_processor(logger, method_name, event_dict):
        event_dict = event_dict.copy()
        event_dict["log_level"] = method_name
        events.append(event_dict)
        raise structlog.DropEvent

    structlog.configure(
        processors=[capture_processor],
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    yield events

    # Restore original configuration
    structlog.configure(**original_config)
