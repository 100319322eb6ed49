"""Tests for unified JSON parsing from LLM output."""

import pytest

from grouper.utils.json_parser import parse_json_from_llm


class TestParseJsonFromLlm:
    def test_plain_json(self):
        assert parse_json_from_llm('{"rating": "agree"}') == {"rating": "agree"}

    def test_json_in_codeblock(self):
        assert parse_json_from_llm('```json\n{"rating": "agree"}\n```') == {"rating": "agree"}

    def test_json_with_surrounding_text(self):
        raw = 'Honestly? Here goes:\n```\n{"score": 0.4}\n```\nThat is all.'
        assert parse_json_from_llm(raw) == {"score": 0.4}

    def test_bare_braces_inside_prose(self):
        assert parse_json_from_llm('Sure: {"wordings": ["a"]} hope it helps') == {"wordings": ["a"]}

    def test_json_array_is_not_an_object(self):
        with pytest.raises(ValueError):
            parse_json_from_llm('["a", "b"]')

    def test_required_keys(self):
        with pytest.raises(ValueError):
            parse_json_from_llm('{"summary": "x"}', required=("wordings",))

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError):
            parse_json_from_llm("not json at all")

    def test_empty_string_raises(self):
        with pytest.raises(ValueError):
            parse_json_from_llm("   ")
