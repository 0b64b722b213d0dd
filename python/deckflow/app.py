"""Runtime wiring for deckflow.

Lifecycle:
- One shared httpx.AsyncClient per runtime, for connection pooling
- CompletionClient built from Settings (endpoint, credential, model, pacing, timeout)
- DeckAssistant on top of the completion client
- Client closed gracefully on exit

Usage:
    async with lifespan() as runtime:
        result = await runtime.deck_assistant.invoke("Create a 5-slide pitch")
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from deckflow.config import Settings, get_settings
from deckflow.logging import configure_logging, get_logger
from deckflow.services.deck_assistant import DeckAssistant
from deckflow.services.llm.client import CompletionClient

logger = get_logger(__name__)

# Pool limits for the shared HTTP client
MAX_CONNECTIONS = 100
MAX_KEEPALIVE_CONNECTIONS = 20


@dataclass(frozen=True)
class Runtime:
    """Resources owned by one lifespan."""

    settings: Settings
    httpx_client: httpx.AsyncClient
    completion_client: CompletionClient
    deck_assistant: DeckAssistant


def create_httpx_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(float(settings.llm_timeout_s), connect=10.0),
        limits=httpx.Limits(
            max_connections=MAX_CONNECTIONS,
            max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
        ),
    )


def build_completion_client(client: httpx.AsyncClient, settings: Settings) -> CompletionClient:
    """Build a CompletionClient whose transport and pacing follow settings."""
    return CompletionClient(
        client,
        settings.provider_config(),
        timeout_s=settings.llm_timeout_s,
        chunk_chars=settings.stream_chunk_chars,
        min_interval_s=settings.stream_min_interval_s,
    )


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
    *,
    configure_logs: bool = True,
) -> AsyncIterator[Runtime]:
    """Create runtime resources and release them on exit.

    Args:
        settings: Settings to use (defaults to get_settings()).
        configure_logs: Whether to configure structlog from settings.log_json.
    """
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(json_format=settings.log_json)

    httpx_client = create_httpx_client(settings)
    completion_client = build_completion_client(httpx_client, settings)
    runtime = Runtime(
        settings=settings,
        httpx_client=httpx_client,
        completion_client=completion_client,
        deck_assistant=DeckAssistant(completion_client, max_tokens=settings.deck_max_tokens),
    )

    logger.info(
        "llm.client.initialized",
        provider=completion_client.provider,
        model_name=settings.anthropic_model,
        deckflow_env=settings.deckflow_env.value,
        stream_chunk_chars=settings.stream_chunk_chars,
        stream_min_interval_ms=settings.stream_min_interval_ms,
    )

    try:
        yield runtime
    finally:
        await httpx_client.aclose()
        logger.info("llm.client.closed")
