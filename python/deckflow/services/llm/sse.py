"""Server-Sent Events parser for the messages stream.

Framing:
- Newline-delimited; only lines starting with "data:" carry payload
- "data: [DONE]" terminates the stream
- Every other data line is one JSON event with a "type" discriminator
- content_block_delta nests text at delta.text

Malformed JSON on a single line is skipped, never raised. Lifecycle events
(message_start, content_block_start/stop, message_delta, ping) produce no
text. A source that runs dry without a terminator is an implicit end.
"""

import asyncio
import json
from collections.abc import AsyncIterable, AsyncIterator

from deckflow.logging import get_logger
from deckflow.services.llm.codec import parse_usage
from deckflow.services.llm.errors import LLMCancelledError, LLMError, LLMErrorClass
from deckflow.services.llm.types import StreamEvent, StreamEventKind

logger = get_logger(__name__)

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"

_KNOWN_KINDS = {kind.value: kind for kind in StreamEventKind}


def parse_event_line(line: str) -> StreamEvent | None:
    """Decode one line of the stream.

    Returns:
        The decoded event, or None for lines that carry nothing of interest
        (comments, "event:" lines, blank payloads, malformed JSON, empty deltas).
    """
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX) :].strip()
    if not payload:
        return None

    if payload == DONE_TOKEN:
        return StreamEvent(kind=StreamEventKind.DONE)

    try:
        data = json.loads(payload)
    except (ValueError, RecursionError):
        logger.debug("llm.stream.event_skipped", reason="malformed_json", line_chars=len(line))
        return None

    if not isinstance(data, dict):
        logger.debug("llm.stream.event_skipped", reason="not_an_object", line_chars=len(line))
        return None

    kind = _KNOWN_KINDS.get(str(data.get("type", "")), StreamEventKind.UNKNOWN)

    if kind == StreamEventKind.CONTENT_BLOCK_DELTA:
        delta = data.get("delta")
        text = delta.get("text") if isinstance(delta, dict) else None
        if not isinstance(text, str) or not text:
            return None
        return StreamEvent(kind=kind, text=text)

    if kind == StreamEventKind.ERROR:
        error = data.get("error")
        message = error.get("message") if isinstance(error, dict) else None
        return StreamEvent(kind=kind, text=str(message or "stream error"))

    if kind == StreamEventKind.MESSAGE_START:
        message = data.get("message")
        message_id = message.get("id") if isinstance(message, dict) else None
        return StreamEvent(kind=kind, message_id=message_id)

    if kind == StreamEventKind.MESSAGE_DELTA:
        return StreamEvent(kind=kind, usage=parse_usage(data))

    return StreamEvent(kind=kind)


def raise_for_error_event(event: StreamEvent, provider: str | None = None) -> None:
    """Raise PROVIDER_DOWN if the event is a provider error event."""
    if event.kind == StreamEventKind.ERROR:
        raise LLMError(
            LLMErrorClass.PROVIDER_DOWN,
            f"Stream error event: {event.text}",
            provider=provider,
        )


async def iter_events(
    lines: AsyncIterable[str],
    *,
    cancel_event: asyncio.Event | None = None,
) -> AsyncIterator[StreamEvent]:
    """Decode a line source into stream events, stopping at the terminator.

    The terminal event (DONE or MESSAGE_STOP) is yielded last.

    Raises:
        LLMCancelledError: If cancel_event is set before the next line is awaited.
    """
    iterator = lines.__aiter__()
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise LLMCancelledError("Stream cancelled")
        try:
            line = await iterator.__anext__()
        except StopAsyncIteration:
            return

        event = parse_event_line(line)
        if event is None:
            continue

        yield event
        if event.is_terminal:
            return


async def iter_text_deltas(
    lines: AsyncIterable[str],
    *,
    cancel_event: asyncio.Event | None = None,
) -> AsyncIterator[str]:
    """Yield delta text fragments in arrival order.

    Raises:
        LLMError: PROVIDER_DOWN if the provider sends an error event.
        LLMCancelledError: If cancel_event is set mid-stream.
    """
    async for event in iter_events(lines, cancel_event=cancel_event):
        raise_for_error_event(event)
        if event.kind == StreamEventKind.CONTENT_BLOCK_DELTA:
            yield event.text
