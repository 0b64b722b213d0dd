"""Completion client: transport, pacing and error normalization.

- Sends CompletionRequests through a provider adapter
- Non-streaming: returns the decoded text
- Streaming: parser → DeltaPacer → caller's on_delta sink; returns the full text
- Centralizes error classification (one place, not per adapter)

Observability:
- Emits llm.request.started / llm.request.finished / llm.request.failed
- Emits llm.stream.cancelled when a stream is cancelled
- All events use safe_kv() to prevent sensitive data leakage

Error handling:
- Non-2xx → LLMError with status_code and response body text
- Timeout → E_LLM_TIMEOUT
- Connection failure → E_LLM_PROVIDER_DOWN
- Cancel event → LLMCancelledError; task cancellation propagates unchanged
- No retries
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from contextlib import aclosing

import httpx

from deckflow.logging import get_logger
from deckflow.services.llm.adapter import LLMAdapter
from deckflow.services.llm.anthropic_adapter import AnthropicAdapter
from deckflow.services.llm.errors import (
    LLMCancelledError,
    LLMError,
    LLMErrorClass,
    classify_provider_error,
)
from deckflow.services.llm.pacer import (
    DEFAULT_CHUNK_CHARS,
    DEFAULT_MIN_INTERVAL_S,
    DeltaPacer,
    DeltaSink,
)
from deckflow.services.llm.types import (
    CompletionRequest,
    LLMCallContext,
    LLMChunk,
    LLMOperation,
    LLMResponse,
    ProviderConfig,
)
from deckflow.services.redact import safe_kv

logger = get_logger(__name__)

# Default timeout for LLM requests in seconds
DEFAULT_TIMEOUT_S = 45


def _base_log_fields(
    provider: str,
    req: CompletionRequest,
    streaming: bool,
    call_ctx: LLMCallContext | None,
) -> dict:
    """Build base log fields for LLM events."""
    fields: dict = {
        "provider": provider,
        "model_name": req.model,
        "streaming": streaming,
        "llm_operation": call_ctx.operation.value if call_ctx else LLMOperation.OTHER.value,
        "message_chars": sum(len(m.text) for m in req.messages) + len(req.system or ""),
    }
    if call_ctx:
        fields["call_id"] = call_ctx.call_id
    return fields


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _safe_parse_json(response: httpx.Response) -> dict | None:
    """Safely parse JSON from response, returning None on failure."""
    try:
        data = response.json()
    except (ValueError, httpx.ResponseNotRead):
        return None
    return data if isinstance(data, dict) else None


def _safe_body_text(response: httpx.Response) -> str:
    try:
        return response.text
    except httpx.ResponseNotRead:
        return ""


class CompletionClient:
    """Sends completion requests and normalizes their failures.

    Holds only immutable configuration; concurrent calls share nothing
    mutable. The pacing buffer of a streaming call belongs to that call.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
        *,
        adapter: LLMAdapter | None = None,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        chunk_chars: int = DEFAULT_CHUNK_CHARS,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            config: Endpoint, credential and model to use for every call.
            adapter: Provider adapter (defaults to the Anthropic adapter).
            timeout_s: Default per-request timeout in seconds.
            chunk_chars: Characters per paced streaming chunk.
            min_interval_s: Minimum delay between paced streaming chunks.
            clock: Monotonic clock used by the pacer.
            sleep: Async sleep used by the pacer.
        """
        self._client = client
        self._config = config
        self._adapter = adapter or AnthropicAdapter(client)
        self._timeout_s = timeout_s
        self._chunk_chars = chunk_chars
        self._min_interval_s = min_interval_s
        self._clock = clock
        self._sleep = sleep

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def provider(self) -> str:
        return self._adapter.provider

    def build_request(
        self,
        messages,
        *,
        max_tokens: int,
        system: str | None = None,
        streaming: bool = False,
    ) -> CompletionRequest:
        """Build a request for the configured model."""
        return CompletionRequest(
            model=self._config.model,
            max_tokens=max_tokens,
            messages=list(messages),
            system=system,
            streaming=streaming,
        )

    async def generate(
        self,
        req: CompletionRequest,
        *,
        timeout_s: int | None = None,
        call_context: LLMCallContext | None = None,
    ) -> LLMResponse:
        """Non-streaming generation with error normalization.

        Returns:
            LLMResponse with the decoded text (raw body text if the response
            carried no text blocks).

        Raises:
            LLMError: With normalized error class on failure.
        """
        base = _base_log_fields(self.provider, req, streaming=False, call_ctx=call_context)
        logger.info("llm.request.started", **safe_kv(**base))
        start = time.monotonic()

        try:
            response = await self._adapter.generate(
                req, config=self._config, timeout_s=self._resolve_timeout(timeout_s)
            )
        except asyncio.CancelledError:
            logger.info("llm.request.cancelled", **safe_kv(**base, latency_ms=_elapsed_ms(start)))
            raise
        except LLMError as e:
            self._log_failure(e, base, start)
            raise
        except Exception as e:
            raise self._normalize_error(e, base, start) from e

        usage = response.usage
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=_elapsed_ms(start),
                response_chars=len(response.text),
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                tokens_total=usage.total_tokens if usage else None,
                provider_request_id=response.provider_request_id,
            ),
        )
        return response

    async def stream(
        self,
        req: CompletionRequest,
        on_delta: DeltaSink,
        *,
        timeout_s: int | None = None,
        cancel_event: asyncio.Event | None = None,
        call_context: LLMCallContext | None = None,
    ) -> LLMResponse:
        """Streaming generation delivered through a DeltaPacer.

        on_delta receives DeltaChunks in order, from this coroutine's own
        context; re-dispatching to a render loop is the caller's concern.
        Once cancellation is observed, on_delta is not called again.

        Returns:
            LLMResponse whose text equals the concatenation of every chunk
            delivered to on_delta.

        Raises:
            LLMCancelledError: If cancel_event is set before the stream ends.
            LLMError: With normalized error class on failure.
        """
        base = _base_log_fields(self.provider, req, streaming=True, call_ctx=call_context)
        logger.info("llm.request.started", **safe_kv(**base))
        start = time.monotonic()

        pacer = DeltaPacer(
            on_delta,
            chunk_chars=self._chunk_chars,
            min_interval_s=self._min_interval_s,
            clock=self._clock,
            sleep=self._sleep,
            cancel_event=cancel_event,
        )
        terminal: LLMChunk | None = None

        try:
            chunks = self._adapter.generate_stream(
                req,
                config=self._config,
                timeout_s=self._resolve_timeout(timeout_s),
                cancel_event=cancel_event,
            )
            async with aclosing(chunks):
                async for chunk in chunks:
                    if chunk.done:
                        terminal = chunk
                        break
                    await pacer.feed(chunk.delta_text)
            await pacer.close()
        except (LLMCancelledError, asyncio.CancelledError):
            logger.info(
                "llm.stream.cancelled",
                **safe_kv(
                    **base,
                    latency_ms=_elapsed_ms(start),
                    delivered_chars=len(pacer.text),
                    chunks_delivered=pacer.chunks_delivered,
                ),
            )
            raise
        except LLMError as e:
            self._log_failure(e, base, start)
            raise
        except Exception as e:
            raise self._normalize_error(e, base, start) from e

        usage = terminal.usage if terminal else None
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=_elapsed_ms(start),
                response_chars=len(pacer.text),
                chunks_delivered=pacer.chunks_delivered,
                tokens_output=usage.completion_tokens if usage else None,
                provider_request_id=terminal.provider_request_id if terminal else None,
            ),
        )
        return LLMResponse(
            text=pacer.text,
            usage=usage,
            provider_request_id=terminal.provider_request_id if terminal else None,
        )

    def _resolve_timeout(self, timeout_s: int | None) -> int:
        return timeout_s if timeout_s is not None else self._timeout_s

    def _normalize_error(self, exc: Exception, base: dict, start: float) -> LLMError:
        """Map a transport exception to an LLMError and log the failure."""
        if isinstance(exc, httpx.TimeoutException):
            error = LLMError(LLMErrorClass.TIMEOUT, "Request timed out", provider=self.provider)
        elif isinstance(exc, httpx.HTTPStatusError):
            status_code = exc.response.status_code
            body = _safe_body_text(exc.response)
            error_class = classify_provider_error(status_code, _safe_parse_json(exc.response), None)
            message = f"Provider returned HTTP {status_code}"
            if body:
                message = f"{message}: {body}"
            error = LLMError(
                error_class,
                message,
                provider=self.provider,
                status_code=status_code,
                body=body,
            )
        elif isinstance(exc, httpx.TransportError):
            error = LLMError(
                classify_provider_error(None, None, exc),
                f"Network error: {type(exc).__name__}",
                provider=self.provider,
            )
        else:
            error = LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"Unexpected error: {type(exc).__name__}",
                provider=self.provider,
            )

        self._log_failure(error, base, start)
        return error

    def _log_failure(self, error: LLMError, base: dict, start: float) -> None:
        if error.provider is None:
            error.provider = self.provider
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error.error_class.value,
                status_code=error.status_code,
                latency_ms=_elapsed_ms(start),
                retryable=error.retryable,
            ),
        )

