"""Tests for structured output extraction."""

import pytest

from deckflow.services.llm.extract import (
    EMPTY_OBJECT,
    contains_patch_true,
    extract_object,
    extract_structured,
)


class TestExtractObject:
    """Tests for extract_object."""

    def test_object_inside_prose(self):
        assert extract_object('foo {"a":1} bar') == '{"a":1}'

    def test_no_braces(self):
        assert extract_object("no braces here") == "{}"

    def test_empty_string(self):
        assert extract_object("") == EMPTY_OBJECT

    def test_only_opening_brace(self):
        assert extract_object("start { but never closed") == "{}"

    def test_only_closing_brace(self):
        assert extract_object("closed } without opening") == "{}"

    def test_closing_before_opening(self):
        assert extract_object("} reversed {") == "{}"

    def test_nested_object_kept_whole(self):
        text = 'Sure!\n{"slides": [{"id": "s1", "blocks": []}]}\nDone.'
        assert extract_object(text) == '{"slides": [{"id": "s1", "blocks": []}]}'

    def test_exact_substring_preserved(self):
        """Whitespace and formatting inside the object are untouched."""
        text = 'x {\n  "a" : 1 ,\n  "b" : [ ]\n} y'
        assert extract_object(text) == '{\n  "a" : 1 ,\n  "b" : [ ]\n}'

    def test_multiple_objects_span_first_to_last(self):
        """Known limitation: two objects widen the span rather than being split."""
        assert extract_object('{"a":1} and {"b":2}') == '{"a":1} and {"b":2}'

    def test_braces_in_trailing_prose_widen_span(self):
        assert extract_object('{"a":1} see {note}') == '{"a":1} see {note}'


class TestContainsPatchTrue:
    """Tests for contains_patch_true."""

    @pytest.mark.parametrize(
        "text",
        [
            ' { "patch" : true } ',
            '{"patch":true}',
            '{\n\t"patch":\r\n true\n}',
            '{"id": "d1", "slides": [], "patch": true}',
        ],
    )
    def test_true_literal(self, text):
        assert contains_patch_true(text) is True

    @pytest.mark.parametrize(
        "text",
        [
            '{"patch":false}',
            '{"patch": "true"}',
            '{"patched": true}',
            '{"id": "d1"}',
            "",
        ],
    )
    def test_not_true_literal(self, text):
        assert contains_patch_true(text) is False


class TestExtractStructured:
    """Tests for extract_structured."""

    def test_patch_flag_from_extracted_object(self):
        result = extract_structured('Here: {"id":"d1","patch": true} thanks')
        assert result.raw_json == '{"id":"d1","patch": true}'
        assert result.is_patch is True

    def test_worst_case_is_empty_and_false(self):
        result = extract_structured("I could not build a deck.")
        assert result.raw_json == "{}"
        assert result.is_patch is False
