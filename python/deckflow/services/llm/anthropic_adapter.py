"""Anthropic-shaped messages adapter.

- Endpoint: POST <base_url>/anthropic/v1/messages (through the app's proxy)
- Headers: Authorization: Bearer <app token>, Content-Type: application/json
- Streaming adds Accept: text/event-stream and "stream": true

Wire format lives in codec.py; SSE framing lives in sse.py.

Streaming:
- Events: message_start (id), content_block_delta (delta.text),
  message_delta (usage), message_stop
- Terminal: data: [DONE] or message_stop; connection close is an implicit end
"""

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import replace

import httpx

from deckflow.services.llm import codec
from deckflow.services.llm.adapter import LLMAdapter
from deckflow.services.llm.sse import iter_events, raise_for_error_event
from deckflow.services.llm.types import (
    CompletionRequest,
    LLMChunk,
    LLMResponse,
    LLMUsage,
    ProviderConfig,
    StreamEventKind,
)

CONNECT_TIMEOUT_S = 10.0


class AnthropicAdapter(LLMAdapter):
    """Adapter for the Anthropic messages endpoint."""

    provider = "anthropic"

    async def generate(
        self,
        req: CompletionRequest,
        *,
        config: ProviderConfig,
        timeout_s: int,
    ) -> LLMResponse:
        """Non-streaming message generation."""
        headers = codec.build_headers(config.api_key, streaming=False)
        body = codec.encode_request(
            replace(req, streaming=False), max_tokens_ceiling=config.max_tokens_ceiling
        )

        response = await self._client.post(
            config.endpoint,
            headers=headers,
            content=body,
            timeout=httpx.Timeout(timeout_s, connect=CONNECT_TIMEOUT_S),
        )
        response.raise_for_status()

        return self._parse_response(response.content)

    async def generate_stream(
        self,
        req: CompletionRequest,
        *,
        config: ProviderConfig,
        timeout_s: int,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming message generation using Server-Sent Events."""
        headers = codec.build_headers(config.api_key, streaming=True)
        body = codec.encode_request(
            replace(req, streaming=True), max_tokens_ceiling=config.max_tokens_ceiling
        )

        async with self._client.stream(
            "POST",
            config.endpoint,
            headers=headers,
            content=body,
            timeout=httpx.Timeout(timeout_s, connect=CONNECT_TIMEOUT_S),
        ) as response:
            if not response.is_success:
                # Body must be read before the status error can expose it
                await response.aread()
            response.raise_for_status()

            provider_request_id: str | None = None
            usage: LLMUsage | None = None

            async for event in iter_events(response.aiter_lines(), cancel_event=cancel_event):
                raise_for_error_event(event, provider=self.provider)
                if event.kind == StreamEventKind.CONTENT_BLOCK_DELTA:
                    yield LLMChunk(delta_text=event.text, done=False)
                elif event.kind == StreamEventKind.MESSAGE_START:
                    provider_request_id = event.message_id
                elif event.kind == StreamEventKind.MESSAGE_DELTA:
                    if event.usage is not None:
                        usage = event.usage

            yield LLMChunk(
                delta_text="",
                done=True,
                usage=usage,
                provider_request_id=provider_request_id,
            )

    def _parse_response(self, content: bytes) -> LLMResponse:
        """Parse non-streaming response, degrading to raw body text."""
        text = codec.decode_full(content)

        usage = None
        provider_request_id = None
        try:
            data = json.loads(content)
        except (ValueError, RecursionError):
            data = None
        if isinstance(data, dict):
            usage = codec.parse_usage(data)
            message_id = data.get("id")
            provider_request_id = message_id if isinstance(message_id, str) else None

        return LLMResponse(
            text=text,
            usage=usage,
            provider_request_id=provider_request_id,
        )

