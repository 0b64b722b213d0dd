"""Deck assistant - structured completion flow for DeckJSON.

invoke() protocol:
1. Render the deck prompt (preamble, schema, example, caller prompt, context)
2. One non-streaming call; no retry
3. Extract the JSON object and the patch flag from the raw text
4. Return both

Model output shape never raises here: the worst case is ("{}", False).
Transport failures and cancellation propagate as LLMError.

Validation and merging are separate helpers so callers decide what to do
with an invalid result (show issues, ask for a repair, or drop it).
"""

from dataclasses import dataclass

from pydantic import ValidationError

from deckflow.logging import clear_call_context, get_logger, set_call_context
from deckflow.schemas.deck import Deck
from deckflow.services.llm.client import CompletionClient
from deckflow.services.llm.extract import extract_structured
from deckflow.services.llm.prompt import render_deck_prompt, render_repair_prompt
from deckflow.services.llm.types import ChatMessage, LLMCallContext, LLMOperation
from deckflow.services.redact import safe_kv

logger = get_logger(__name__)

# Output budget for one deck completion
DEFAULT_DECK_MAX_TOKENS = 6000


@dataclass(frozen=True)
class DeckInvokeResult:
    """Extracted deck object text and whether the model marked it a patch."""

    deck_json: str
    is_patch: bool


class DeckAssistant:
    """Asks the model for a deck (or a patch) and isolates the JSON object."""

    def __init__(self, client: CompletionClient, *, max_tokens: int = DEFAULT_DECK_MAX_TOKENS):
        self._client = client
        self._max_tokens = max_tokens

    async def invoke(
        self,
        prompt: str,
        context: object = None,
        tool_name: str | None = None,
    ) -> DeckInvokeResult:
        """Create or edit a deck.

        Args:
            prompt: The caller's instruction.
            context: Optional JSON object passed to the model as CONTEXT_JSON.
                Anything that cannot be serialized is replaced by "{}".
            tool_name: Tool name announced in the schema section.

        Returns:
            DeckInvokeResult with the extracted object text and patch flag.

        Raises:
            LLMError: On transport failure or timeout.
        """
        request_text = render_deck_prompt(prompt, context, tool_name)
        return await self._complete(request_text, LLMOperation.DECK_INVOKE)

    async def repair(self, broken_json: str) -> DeckInvokeResult:
        """Ask the model to fix the structure of an invalid deck."""
        return await self._complete(render_repair_prompt(broken_json), LLMOperation.DECK_REPAIR)

    async def _complete(self, request_text: str, operation: LLMOperation) -> DeckInvokeResult:
        call_context = LLMCallContext(operation=operation)
        req = self._client.build_request(
            [ChatMessage(role="user", text=request_text)],
            max_tokens=self._max_tokens,
        )
        set_call_context(call_context.call_id, operation.value)
        try:
            response = await self._client.generate(req, call_context=call_context)
        finally:
            clear_call_context()

        result = extract_structured(response.text)
        logger.info(
            "deck.invoke.finished",
            **safe_kv(
                call_id=call_context.call_id,
                llm_operation=operation.value,
                request_chars=len(request_text),
                response_chars=len(response.text),
                deck_json_chars=len(result.raw_json),
                is_patch=result.is_patch,
            ),
        )
        return DeckInvokeResult(deck_json=result.raw_json, is_patch=result.is_patch)


def _validate(deck_json: str) -> Deck:
    return Deck.model_validate_json(deck_json)


def parse_deck(deck_json: str) -> Deck | None:
    """Validate extracted deck text, returning None when it does not conform."""
    try:
        return _validate(deck_json)
    except ValidationError:
        return None


def deck_issues(deck_json: str) -> list[str]:
    """Describe why deck text fails validation, one "path: message" per issue.

    Returns an empty list for a valid deck.
    """
    try:
        _validate(deck_json)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
    return []


def merge_deck(previous: Deck | None, incoming: Deck, *, is_patch: bool) -> Deck:
    """Apply an incoming deck to the previous one.

    A patch replaces slides with matching ids in place and appends new ones;
    a non-empty patch title or theme wins. Without a patch (or without a
    previous deck) the incoming deck replaces the previous one.
    """
    if not is_patch or previous is None:
        return incoming

    slides = {slide.id: slide for slide in previous.slides}
    for slide in incoming.slides:
        slides[slide.id] = slide

    return previous.model_copy(
        update={
            "title": incoming.title or previous.title,
            "theme": incoming.theme or previous.theme,
            "slides": list(slides.values()),
        }
    )
