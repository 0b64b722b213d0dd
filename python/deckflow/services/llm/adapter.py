"""Abstract base class for LLM adapters.

- Async adapters with httpx.AsyncClient
- No retries inside adapters
- No logging of request/response bodies
- Raw transport errors bubble up to the completion client for classification
- Each adapter handles CompletionRequest → provider wire format internally
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from deckflow.services.llm.types import CompletionRequest, LLMChunk, LLMResponse, ProviderConfig


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters.

    Rules:
    - No retries inside adapters
    - No logging of request/response bodies
    - Raw transport errors bubble up to the client for classification
    """

    provider: str = "unknown"

    def __init__(self, client: httpx.AsyncClient):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
        """
        self._client = client

    @abstractmethod
    async def generate(
        self,
        req: CompletionRequest,
        *,
        config: ProviderConfig,
        timeout_s: int,
    ) -> LLMResponse:
        """Non-streaming generation. Returns complete response.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response (body already read).
            httpx.TimeoutException: On request timeout.
            httpx.TransportError: On network failure.
        """

    @abstractmethod
    def generate_stream(
        self,
        req: CompletionRequest,
        *,
        config: ProviderConfig,
        timeout_s: int,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation. Yields chunks until done=True.

        Streaming invariants:
        - Chunks with done=False have usage=None
        - Exactly one terminal chunk with done=True

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response, before any chunk.
            httpx.TimeoutException: On request timeout.
            httpx.TransportError: On network failure.
            LLMError: If the provider reports an error event mid-stream.
            LLMCancelledError: If cancel_event is set mid-stream.
        """
