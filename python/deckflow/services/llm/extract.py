"""Structured output extraction from free-form model text.

The model is instructed to answer with exactly one JSON object, but replies
may still carry stray prose around it. Extraction is a textual heuristic:

- extract_object: first "{" through last "}" inclusive, or "{}" if absent
- contains_patch_true: whitespace-insensitive search for '"patch":true'

Neither function parses JSON. The returned object text is the exact source
substring, so callers that validate it see what the model actually wrote.
"""

from deckflow.services.llm.types import StructuredResult

EMPTY_OBJECT = "{}"
PATCH_TRUE_TOKEN = '"patch":true'

_WHITESPACE = str.maketrans("", "", " \t\r\n")


def extract_object(text: str) -> str:
    """Return the substring from the first '{' to the last '}' inclusive.

    Multiple top-level objects, or braces in surrounding prose, widen the
    span rather than being resolved.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return EMPTY_OBJECT
    return text[start : end + 1]


def contains_patch_true(text: str) -> bool:
    """Whether the text contains a literal '"patch":true' once whitespace is removed.

    '"patch": "true"' (a string) and '"patch":false' both return False.
    """
    return PATCH_TRUE_TOKEN in text.translate(_WHITESPACE)


def extract_structured(text: str) -> StructuredResult:
    """Extract the object and its patch flag from a completed response."""
    raw_json = extract_object(text)
    return StructuredResult(raw_json=raw_json, is_patch=contains_patch_true(raw_json))
