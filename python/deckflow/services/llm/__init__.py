"""Completion pipeline for an Anthropic-shaped messages endpoint.

This module provides:

- Wire codec (request encoding, non-streaming decode)
- Server-Sent Events parser for streaming responses
- Delta pacer that re-chunks streamed text for display
- Structured output extraction (JSON object + patch flag)
- Completion client with error normalization and observability

Usage:
    from deckflow.services.llm import ChatMessage, CompletionClient

    client = CompletionClient(httpx_client, settings.provider_config())
    req = client.build_request(
        [ChatMessage(role="user", text="Hello!")],
        max_tokens=100,
        streaming=True,
    )
    response = await client.stream(req, on_delta=print)

Rules:
- No retries
- No logging of prompts, model output or credentials
- Raw transport errors are classified in one place (the client)
"""

from deckflow.services.llm.adapter import LLMAdapter
from deckflow.services.llm.anthropic_adapter import AnthropicAdapter
from deckflow.services.llm.client import CompletionClient
from deckflow.services.llm.errors import (
    LLMCancelledError,
    LLMError,
    LLMErrorClass,
    classify_provider_error,
)
from deckflow.services.llm.extract import contains_patch_true, extract_object, extract_structured
from deckflow.services.llm.pacer import DeltaPacer
from deckflow.services.llm.prompt import (
    DEFAULT_TOOL_NAME,
    render_deck_prompt,
    render_repair_prompt,
    serialize_context,
)
from deckflow.services.llm.sse import (
    iter_events,
    iter_text_deltas,
    parse_event_line,
    raise_for_error_event,
)
from deckflow.services.llm.types import (
    ChatMessage,
    CompletionRequest,
    DeltaChunk,
    LLMCallContext,
    LLMChunk,
    LLMOperation,
    LLMResponse,
    LLMUsage,
    ProviderConfig,
    StreamEvent,
    StreamEventKind,
    StructuredResult,
)

__all__ = [
    # Core types
    "ChatMessage",
    "CompletionRequest",
    "ProviderConfig",
    "StreamEvent",
    "StreamEventKind",
    "DeltaChunk",
    "LLMResponse",
    "LLMChunk",
    "LLMUsage",
    "StructuredResult",
    "LLMOperation",
    "LLMCallContext",
    # Adapters
    "LLMAdapter",
    "AnthropicAdapter",
    # Client
    "CompletionClient",
    # Streaming
    "parse_event_line",
    "raise_for_error_event",
    "iter_events",
    "iter_text_deltas",
    "DeltaPacer",
    # Extraction
    "extract_object",
    "contains_patch_true",
    "extract_structured",
    # Errors
    "LLMError",
    "LLMCancelledError",
    "LLMErrorClass",
    "classify_provider_error",
    # Prompt rendering
    "DEFAULT_TOOL_NAME",
    "render_deck_prompt",
    "render_repair_prompt",
    "serialize_context",
]
