"""Delta pacing between the network and a human-paced consumer.

Policy:
- Every fragment is appended to one buffer.
- While the buffer holds at least chunk_chars characters, exactly that many
  are delivered from the front, then the pacer sleeps min_interval_s.
- If a shorter remainder is left and min_interval_s has passed since the last
  delivery, the whole remainder is delivered.
- close() delivers any remainder unconditionally.

Lengths are counted in characters (code points), so a chunk boundary never
falls inside a multi-byte character. It can fall inside a grapheme cluster
(a ZWJ emoji sequence, a letter plus combining mark); no text is lost, but
one visible symbol may arrive split across two chunks. Deliveries are
sequential: the sink is never invoked concurrently with itself.
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable

from deckflow.services.llm.errors import LLMCancelledError
from deckflow.services.llm.types import DeltaChunk

DEFAULT_CHUNK_CHARS = 80
DEFAULT_MIN_INTERVAL_S = 0.018

DeltaSink = Callable[[DeltaChunk], Awaitable[None] | None]


class DeltaPacer:
    """Re-segments text fragments into bounded, rate-limited chunks.

    One instance serves exactly one stream and is discarded after close().
    """

    def __init__(
        self,
        sink: DeltaSink,
        *,
        chunk_chars: int = DEFAULT_CHUNK_CHARS,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cancel_event: asyncio.Event | None = None,
    ):
        if chunk_chars < 1:
            raise ValueError("chunk_chars must be at least 1")
        if min_interval_s < 0:
            raise ValueError("min_interval_s must not be negative")

        self._sink = sink
        self._chunk_chars = chunk_chars
        self._min_interval_s = min_interval_s
        self._clock = clock
        self._sleep = sleep
        self._cancel_event = cancel_event

        self._buffer = ""
        self._delivered: list[str] = []
        self._last_delivery = clock()
        self._closed = False

    @property
    def text(self) -> str:
        """Concatenation of every chunk delivered so far."""
        return "".join(self._delivered)

    @property
    def chunks_delivered(self) -> int:
        return len(self._delivered)

    @property
    def pending(self) -> str:
        """Buffered text not yet delivered."""
        return self._buffer

    @property
    def closed(self) -> bool:
        return self._closed

    async def feed(self, fragment: str) -> None:
        """Buffer a fragment and deliver whatever the policy allows now."""
        if self._closed:
            raise RuntimeError("DeltaPacer is closed")
        if not fragment:
            return

        self._buffer += fragment

        while len(self._buffer) >= self._chunk_chars:
            chunk = self._buffer[: self._chunk_chars]
            self._buffer = self._buffer[self._chunk_chars :]
            await self._deliver(chunk, paced=True)

        if self._buffer and self._clock() - self._last_delivery >= self._min_interval_s:
            chunk = self._buffer
            self._buffer = ""
            await self._deliver(chunk, paced=True)

    async def close(self) -> None:
        """Deliver the remainder, if any. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._buffer:
            chunk = self._buffer
            self._buffer = ""
            await self._deliver(chunk, paced=False)

    async def _deliver(self, chunk: str, *, paced: bool) -> None:
        self._raise_if_cancelled()

        result = self._sink(DeltaChunk(text=chunk))
        if inspect.isawaitable(result):
            await result
        self._delivered.append(chunk)

        if paced:
            await self._sleep(self._min_interval_s)
        self._last_delivery = self._clock()

    def _raise_if_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            self._closed = True
            raise LLMCancelledError("Stream cancelled")
