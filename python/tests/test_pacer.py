"""Tests for the delta pacer.

Covers:
- Fixed-size chunking at the threshold and the time-based flush
- Remainder flushed exactly once on close
- Content preserved in order; multi-byte characters never split
- Sync and async sinks; sequential delivery
- Cancellation: no sink call once the cancel event is observed
"""

import asyncio

import pytest

from deckflow.services.llm.errors import LLMCancelledError
from deckflow.services.llm.pacer import DeltaPacer
from deckflow.services.llm.types import DeltaChunk
from tests.helpers import FakeClock


class Recorder:
    """Sync sink recording chunk texts."""

    def __init__(self):
        self.chunks: list[str] = []

    def __call__(self, chunk: DeltaChunk) -> None:
        self.chunks.append(chunk.text)


def make_pacer(sink, clock: FakeClock, **kwargs) -> DeltaPacer:
    return DeltaPacer(sink, clock=clock, sleep=clock.sleep, **kwargs)


class TestChunking:
    """Threshold and flush behavior."""

    @pytest.mark.asyncio
    async def test_50_50_10_yields_80_then_30(self, fake_clock):
        """Three fragments of 50, 50, 10 chars with threshold 80."""
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, min_interval_s=0.018)
        fragments = ["a" * 50, "b" * 50, "c" * 10]

        for fragment in fragments:
            await pacer.feed(fragment)
        await pacer.close()

        assert [len(c) for c in sink.chunks] == [80, 30]
        assert "".join(sink.chunks) == "".join(fragments)
        assert sink.chunks[0] == "a" * 50 + "b" * 30

    @pytest.mark.asyncio
    async def test_below_threshold_held_until_interval(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, min_interval_s=0.018)

        await pacer.feed("short")
        assert sink.chunks == []
        assert pacer.pending == "short"

        fake_clock.advance(0.02)
        await pacer.feed(" more")

        assert sink.chunks == ["short more"]
        assert pacer.pending == ""

    @pytest.mark.asyncio
    async def test_each_full_chunk_followed_by_pacing_sleep(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=10, min_interval_s=0.018)

        await pacer.feed("x" * 35)

        assert [len(c) for c in sink.chunks] == [10, 10, 10]
        assert fake_clock.sleeps == [0.018, 0.018, 0.018]
        assert pacer.pending == "x" * 5

    @pytest.mark.asyncio
    async def test_exact_multiple_leaves_nothing_for_close(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, min_interval_s=0.018)

        await pacer.feed("z" * 160)
        await pacer.close()

        assert [len(c) for c in sink.chunks] == [80, 80]

    @pytest.mark.asyncio
    async def test_zero_interval_flushes_immediately(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, min_interval_s=0)

        await pacer.feed("hi")
        await pacer.feed(" there")

        assert sink.chunks == ["hi", " there"]

    @pytest.mark.asyncio
    async def test_boundary_counts_code_points(self, fake_clock):
        """A combining mark can land in the next chunk; nothing is lost."""
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=2, min_interval_s=0.018)

        await pacer.feed("ae\u0301")
        await pacer.close()

        assert sink.chunks == ["ae", "\u0301"]
        assert "".join(sink.chunks) == "ae\u0301"

    @pytest.mark.asyncio
    async def test_empty_fragment_is_noop(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, min_interval_s=0)

        await pacer.feed("")

        assert sink.chunks == []
        assert pacer.chunks_delivered == 0


class TestClose:
    """Remainder flush and lifecycle."""

    @pytest.mark.asyncio
    async def test_remainder_emitted_once_after_close(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, min_interval_s=0.018)

        await pacer.feed("tail")
        assert sink.chunks == []

        await pacer.close()
        await pacer.close()

        assert sink.chunks == ["tail"]
        assert pacer.closed

    @pytest.mark.asyncio
    async def test_close_does_not_sleep(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, min_interval_s=0.018)

        await pacer.feed("tail")
        await pacer.close()

        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_close_with_empty_buffer_delivers_nothing(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock)

        await pacer.close()

        assert sink.chunks == []

    @pytest.mark.asyncio
    async def test_feed_after_close_raises(self, fake_clock):
        pacer = make_pacer(Recorder(), fake_clock)
        await pacer.close()

        with pytest.raises(RuntimeError):
            await pacer.feed("late")


class TestContentPreservation:
    """Order, completeness and character boundaries."""

    @pytest.mark.asyncio
    async def test_concatenation_matches_fragments(self, fake_clock):
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=7, min_interval_s=0.018)
        fragments = ["The ", "quick brown ", "fox", "", " jumps over the lazy ", "dog."]

        for i, fragment in enumerate(fragments):
            if i % 2:
                fake_clock.advance(0.05)
            await pacer.feed(fragment)
        await pacer.close()

        assert "".join(sink.chunks) == "".join(fragments)
        assert pacer.text == "".join(fragments)
        assert pacer.chunks_delivered == len(sink.chunks)
        assert all(len(c) <= 7 for c in sink.chunks)

    @pytest.mark.asyncio
    async def test_multibyte_characters_never_split(self, fake_clock):
        """Chunks are counted in characters, so every chunk is valid text."""
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=3, min_interval_s=0.018)
        text = "📈日本語éà🚀✓" * 5

        for start in range(0, len(text), 4):
            await pacer.feed(text[start : start + 4])
        await pacer.close()

        assert "".join(sink.chunks) == text
        for chunk in sink.chunks:
            assert chunk.encode("utf-8").decode("utf-8") == chunk
            assert len(chunk) <= 3


class TestSinks:
    """Sync and async sinks."""

    @pytest.mark.asyncio
    async def test_async_sink_awaited(self, fake_clock):
        received: list[str] = []

        async def sink(chunk: DeltaChunk) -> None:
            await asyncio.sleep(0)
            received.append(chunk.text)

        pacer = make_pacer(sink, fake_clock, chunk_chars=4, min_interval_s=0.018)
        await pacer.feed("abcdefgh")
        await pacer.close()

        assert received == ["abcd", "efgh"]

    @pytest.mark.asyncio
    async def test_deliveries_are_sequential(self, fake_clock):
        in_flight = 0
        max_in_flight = 0

        async def sink(chunk: DeltaChunk) -> None:
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1

        pacer = make_pacer(sink, fake_clock, chunk_chars=2, min_interval_s=0.018)
        await pacer.feed("abcdefghij")
        await pacer.close()

        assert max_in_flight == 1


class TestCancellation:
    """Cancel event handling."""

    @pytest.mark.asyncio
    async def test_no_delivery_after_cancel(self, fake_clock):
        cancel = asyncio.Event()
        sink = Recorder()

        def cancelling_sink(chunk: DeltaChunk) -> None:
            sink(chunk)
            cancel.set()

        pacer = make_pacer(
            cancelling_sink, fake_clock, chunk_chars=5, min_interval_s=0.018, cancel_event=cancel
        )

        with pytest.raises(LLMCancelledError):
            await pacer.feed("0123456789abcde")

        assert sink.chunks == ["01234"]
        assert pacer.closed

        # close() after cancellation never reaches the sink
        await pacer.close()
        assert sink.chunks == ["01234"]

    @pytest.mark.asyncio
    async def test_cancel_before_close_suppresses_remainder(self, fake_clock):
        cancel = asyncio.Event()
        sink = Recorder()
        pacer = make_pacer(sink, fake_clock, chunk_chars=80, cancel_event=cancel)

        await pacer.feed("buffered")
        cancel.set()

        with pytest.raises(LLMCancelledError):
            await pacer.close()
        assert sink.chunks == []


class TestValidation:
    """Constructor argument checks."""

    def test_chunk_chars_must_be_positive(self, fake_clock):
        with pytest.raises(ValueError):
            make_pacer(Recorder(), fake_clock, chunk_chars=0)

    def test_interval_must_not_be_negative(self, fake_clock):
        with pytest.raises(ValueError):
            make_pacer(Recorder(), fake_clock, min_interval_s=-0.001)
