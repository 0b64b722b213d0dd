"""Prompt composition for the deck authoring tool.

Prompt structure (one user message, no separate system field):

    SYSTEM:
    <DECK_SYSTEM_PROMPT>

    SCHEMA:
    <DECK_SCHEMA_HINT for the tool name>

    FEW-SHOT:
    <DECK_FEW_SHOT>

    USER:
    <caller prompt>

    Return ONLY a valid DeckJSON v1 object (no prose), ...

    CONTEXT_JSON:
    <pretty-printed caller context, or {}>

The preamble, schema and example are fixed text passed through verbatim.
"""

import json
from collections.abc import Mapping

from deckflow.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOOL_NAME = "create_or_edit_deck"

DECK_SYSTEM_PROMPT = """You are a senior presentation author and designer. Output only via the provided tool.
Style: card-based layouts, concise storytelling, quant-first. Prefer kpi cards, 2-column comparisons, and clear charts. Use real-sounding but source-free placeholders unless user supplies data; do not fabricate citations. Numbers must be internally consistent. Keep slide titles under 60 chars, bullets under 12 words. Favor verbs. When uncertain, suggest visuals in the notes. Always return valid DeckJSON v1, using layout+blocks and theme tokens, not raw markup paragraphs."""  # noqa: E501

DECK_SCHEMA_HINT = """Tool name: {tool_name}
Description: Return a complete DeckJSON v1 or a patch (target slide ids + changes). If the user asks to add/modify one slide, return only that slide(s) in slides with unchanged ids.

DeckJSON v1 Types (TypeScript):
export type Deck = {{
  id: string;
  title: string;
  theme: string; // ThemeId
  createdAt: string;
  slides: Slide[];
  meta?: {{ source?: string; disclaimer?: string }};
  patch?: boolean; // optional flag if this is a patch
}};
export type Slide = {{
  id: string;
  layout: "title" | "title-bullets" | "two-column" | "kpi-cards" | "chart" | "image" | "quote" | "grid-cards";
  title?: string;
  notes?: string;
  blocks: Block[];
}};
export type Block =
  | {{ kind: "text"; html: string; frame: Rect }}
  | {{ kind: "bullet"; items: string[]; frame: Rect }}
  | {{ kind: "kpi"; label: string; value: string; delta?: string; intent?: "good"|"bad"|"neutral"; frame: Rect }}
  | {{ kind: "quote"; text: string; by?: string; frame: Rect }}
  | {{ kind: "image"; dataUrl?: string; url?: string; caption?: string; frame: Rect }}
  | {{ kind: "chart"; chartType: "bar"|"line"|"pie"; dataset: DataSeries[]; xLabels?: string[]; yLabel?: string; frame: Rect }};
export type DataSeries = {{ name: string; values: number[] }};
export type Rect = {{ x: number; y: number; w: number; h: number }};"""  # noqa: E501

DECK_FEW_SHOT = """Few-shot Example:
User: "Create an investment analysis on AI & tech stocks 2025, include NVDA/MSFT/AVGO/PLTR KPIs and a why-now slide."
Tool output (abbrev): a deck with
- Slide 1: Title
- Slide 2: KPI cards (NVDA/MSFT/AVGO/PLTR with value, delta, intent)
- Slide 3: Why-Now (bullets)
- Slide 4: Chart (bar: revenue growth by company)
- Slide 5: Risks & Considerations (two-column)"""  # noqa: E501

JSON_ONLY_INSTRUCTION = (
    "Return ONLY a valid DeckJSON v1 object (no prose), with a top-level object "
    "{ id, title, theme, createdAt, slides, meta?, patch? }."
)

REPAIR_INSTRUCTION = "Repair the following DeckJSON to be valid per schema. Output JSON only."

EMPTY_CONTEXT = "{}"


def serialize_context(context: object) -> str:
    """Pretty-print a caller context object as JSON.

    Anything that is not a JSON-serializable mapping becomes "{}". Never raises.
    """
    if context is None:
        return EMPTY_CONTEXT
    if not isinstance(context, Mapping):
        logger.warning("deck.context_unserializable", reason="not_an_object")
        return EMPTY_CONTEXT
    try:
        return json.dumps(dict(context), indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        logger.warning("deck.context_unserializable", reason=type(e).__name__)
        return EMPTY_CONTEXT


def render_schema_hint(tool_name: str = DEFAULT_TOOL_NAME) -> str:
    return DECK_SCHEMA_HINT.format(tool_name=tool_name)


def render_deck_prompt(
    prompt: str,
    context: object = None,
    tool_name: str | None = None,
) -> str:
    """Compose the single request text for a deck invocation.

    Args:
        prompt: The caller's instruction (e.g. "Add a risks slide").
        context: Optional JSON object (e.g. the current deck or intent).
        tool_name: Tool name announced in the schema section.

    Returns:
        The full request text.
    """
    sections = [
        f"SYSTEM:\n{DECK_SYSTEM_PROMPT}",
        f"SCHEMA:\n{render_schema_hint(tool_name or DEFAULT_TOOL_NAME)}",
        f"FEW-SHOT:\n{DECK_FEW_SHOT}",
        f"USER:\n{prompt}",
        JSON_ONLY_INSTRUCTION,
        f"CONTEXT_JSON:\n{serialize_context(context)}",
    ]
    return "\n\n".join(sections)


def render_repair_prompt(broken_json: str) -> str:
    """Ask the model to fix structure only, keeping content unchanged."""
    return f"{REPAIR_INSTRUCTION}\n\n{broken_json}"
