"""Test helpers for the completion pipeline.

Provides:
- Fixture loading for recorded provider bodies
- SSE body construction from text fragments
- A fake clock/sleep pair for deterministic pacing
"""

import asyncio
import json
from pathlib import Path

# Path to test fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures" / "llm"

TEST_BASE_URL = "https://proxy.test"
TEST_MESSAGES_PATH = "/anthropic/v1/messages"
TEST_ENDPOINT = TEST_BASE_URL + TEST_MESSAGES_PATH
TEST_APP_TOKEN = "test-app-token"
TEST_MODEL = "claude-3-5-haiku-20241022"


def load_fixture(provider: str, filename: str) -> dict | str:
    """Load a test fixture file."""
    path = FIXTURES_DIR / provider / filename
    content = path.read_text(encoding="utf-8")
    if filename.endswith(".json"):
        return json.loads(content)
    return content


def sse_body(*fragments: str, message_id: str = "msg_test_01", terminator: str | None = "[DONE]") -> str:
    """Build a streaming body with one content_block_delta line per fragment.

    Args:
        fragments: Delta texts, in order.
        message_id: Id reported by message_start.
        terminator: "[DONE]", "message_stop", or None for an unterminated stream.
    """
    lines = [
        "event: message_start",
        "data: "
        + json.dumps({"type": "message_start", "message": {"id": message_id, "content": []}}),
        "",
    ]
    for fragment in fragments:
        event = {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": fragment},
        }
        lines += ["event: content_block_delta", "data: " + json.dumps(event), ""]

    if terminator == "message_stop":
        lines += ["event: message_stop", 'data: {"type":"message_stop"}', ""]
    elif terminator is not None:
        lines += [f"data: {terminator}", ""]

    return "\n".join(lines) + "\n"


class FakeClock:
    """Monotonic clock that only advances when sleep() is awaited.

    sleep() still yields to the event loop so that pending cancellation is
    delivered at the same points as with asyncio.sleep.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)
