"""Shared type definitions for the completion pipeline.

- ChatMessage: Provider-agnostic conversation message
- CompletionRequest: One outbound request to the messages endpoint
- ProviderConfig: Immutable endpoint/credential/model configuration
- StreamEvent: One decoded Server-Sent Event from a streaming response
- DeltaChunk: Paced unit of text handed to a streaming consumer
- LLMResponse / LLMChunk: Adapter results (non-streaming / streaming)
- StructuredResult: JSON object extracted from model output

Streaming invariants:
- Chunks with done=False MUST have usage=None
- Exactly ONE terminal chunk with done=True
- A stream that ends without a terminator is treated as ended, not failed
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal
from uuid import uuid4


@dataclass(frozen=True)
class ChatMessage:
    """Provider-agnostic conversation message.

    Attributes:
        role: One of "system", "user", or "assistant"
        text: The text content of the message
    """

    role: Literal["system", "user", "assistant"]
    text: str


@dataclass(frozen=True)
class CompletionRequest:
    """Request to the messages endpoint.

    max_tokens is clamped to the provider ceiling by the codec at encode time,
    so callers may pass any positive value here.

    Attributes:
        model: The model identifier (e.g., "claude-3-5-haiku-20241022")
        max_tokens: Maximum tokens in the completion (before clamping)
        messages: Ordered conversation messages
        system: Optional system instructions
        streaming: Whether the response should be streamed as SSE
    """

    model: str
    max_tokens: int
    messages: list[ChatMessage]
    system: str | None = None
    streaming: bool = False


@dataclass(frozen=True)
class ProviderConfig:
    """Endpoint, credential and model for one provider.

    Read-only for the lifetime of a client; shared safely across calls.
    """

    base_url: str
    path: str
    api_key: str
    model: str
    max_tokens_ceiling: int = 8192

    @property
    def endpoint(self) -> str:
        """Full URL of the messages endpoint."""
        return self.base_url.rstrip("/") + "/" + self.path.lstrip("/")

    def __repr__(self) -> str:
        return (
            f"ProviderConfig(endpoint={self.endpoint!r}, model={self.model!r}, "
            f"max_tokens_ceiling={self.max_tokens_ceiling}, api_key='***')"
        )


@dataclass(frozen=True)
class LLMUsage:
    """Token usage from provider response.

    All fields are optional as the proxy may strip usage, and streaming
    responses only report output tokens.
    """

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


class StreamEventKind(str, Enum):
    """Event kinds recognized on the messages stream."""

    MESSAGE_START = "message_start"
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"
    PING = "ping"
    ERROR = "error"
    DONE = "done"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StreamEvent:
    """One decoded stream event.

    Only CONTENT_BLOCK_DELTA carries text. ERROR carries the provider's
    error message in text. MESSAGE_START carries the message id and
    MESSAGE_DELTA carries output usage.
    """

    kind: StreamEventKind
    text: str = ""
    message_id: str | None = None
    usage: LLMUsage | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (StreamEventKind.DONE, StreamEventKind.MESSAGE_STOP)


@dataclass(frozen=True)
class DeltaChunk:
    """Paced text delivered to a streaming consumer."""

    text: str


@dataclass(frozen=True)
class LLMResponse:
    """Complete response text.

    Attributes:
        text: The generated text content
        usage: Token usage information (may be None)
        provider_request_id: Provider's message ID for debugging (may be None)
    """

    text: str
    usage: LLMUsage | None = None
    provider_request_id: str | None = None


@dataclass(frozen=True)
class LLMChunk:
    """Single chunk from a streaming adapter.

    Attributes:
        delta_text: New text content in this chunk (may be empty)
        done: Whether this is the final chunk
        usage: Token usage (only on terminal chunk, if provider returns it)
        provider_request_id: Provider's message ID (only on terminal chunk)
    """

    delta_text: str
    done: bool
    usage: LLMUsage | None = None
    provider_request_id: str | None = None

    def __post_init__(self):
        if not self.done and self.usage is not None:
            raise ValueError("Non-terminal chunks (done=False) must have usage=None")


@dataclass(frozen=True)
class StructuredResult:
    """JSON object isolated from model output.

    raw_json is the exact source substring, never re-serialized.
    """

    raw_json: str
    is_patch: bool


class LLMOperation(str, Enum):
    """What a provider call is for. Used for log fields only."""

    DECK_INVOKE = "deck_invoke"
    DECK_REPAIR = "deck_repair"
    CHAT_STREAM = "chat_stream"
    OTHER = "other"


@dataclass(frozen=True)
class LLMCallContext:
    """Observability metadata for one provider call."""

    operation: LLMOperation = LLMOperation.OTHER
    call_id: str = field(default_factory=lambda: str(uuid4()))
