"""
Tests for oracle output cleaning and truncated JSON repair.
"""
import json

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from docspec.core.errors import ParseError
from docspec.scraper.repair import (
    clean_json_response,
    parse_json_response,
    repair_truncated_json,
)


class TestCleanJsonResponse:

    def test_strips_json_fence(self):
        text = '```json\n{"a": 1}\n```'
        assert clean_json_response(text) == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert clean_json_response('```\n[1, 2]\n```') == '[1, 2]'

    def test_strips_leading_yaml_marker(self):
        assert clean_json_response('---\n{"a": 1}') == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert clean_json_response('  {"a": 1}  ') == '{"a": 1}'


class TestRepairTruncatedJson:

    def test_valid_json_returned_unchanged(self):
        assert repair_truncated_json('{"a": [1, 2]}') == '{"a": [1, 2]}'

    def test_closes_in_nesting_order(self):
        repaired = repair_truncated_json('{"a": [1, {"b": 2')
        assert json.loads(repaired) == {"a": [1, {"b": 2}]}

    def test_cut_inside_string_backs_up_to_last_comma(self):
        repaired = repair_truncated_json('{"a": 1, "b": "unfinished')
        assert json.loads(repaired) == {"a": 1}

    def test_cut_inside_nested_string(self):
        text = '{"paths": {"/a": {"get": {"summary": "A"}}, "/b": {"get": {"summary": "B", "description": "trunc'
        repaired = json.loads(repair_truncated_json(text))
        assert repaired["paths"]["/a"] == {"get": {"summary": "A"}}
        assert repaired["paths"]["/b"] == {"get": {"summary": "B"}}

    def test_trailing_comma_dropped(self):
        assert json.loads(repair_truncated_json('[1, 2,')) == [1, 2]

    def test_dangling_key_dropped(self):
        assert json.loads(repair_truncated_json('{"a": 1, "b":')) == {"a": 1}

    def test_partial_literal_dropped(self):
        assert json.loads(repair_truncated_json('{"a": 1, "b": tru')) == {"a": 1}

    def test_escaped_quotes_respected(self):
        text = '{"a": "say \\"hi\\", ok", "b": "x'
        assert json.loads(repair_truncated_json(text)) == {"a": 'say "hi", ok'}

    def test_braces_inside_strings_ignored(self):
        text = '{"a": "{[", "b": [1'
        assert json.loads(repair_truncated_json(text)) == {"a": "{[", "b": [1]}

    def test_truncated_array_keeps_complete_members(self):
        text = '[{"method": "GET", "path": "/a"}, {"method": "POST", "pa'
        assert json.loads(repair_truncated_json(text)) == [{"method": "GET", "path": "/a"}, {"method": "POST"}]

    def test_unrepairable_raises(self):
        with pytest.raises(ParseError):
            repair_truncated_json("not json at all")

    def test_unrepairable_string_without_structure_raises(self):
        with pytest.raises(ParseError):
            repair_truncated_json('"abc')


class TestParseJsonResponse:

    def test_parses_fenced_json(self):
        assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_repairs_truncated_output(self):
        assert parse_json_response('```json\n{"a": 1, "b": [2, 3') == {"a": 1, "b": [2, 3]}

    def test_empty_response_raises(self):
        with pytest.raises(ParseError):
            parse_json_response("```json\n```")

    def test_prose_raises(self):
        with pytest.raises(ParseError):
            parse_json_response("Sorry, I cannot help with that.")


json_scalars = st.none() | st.booleans() | st.integers(-10**6, 10**6) | st.text(max_size=12)
json_values = st.recursive(
    json_scalars,
    lambda children: st.lists(children, max_size=4) | st.dictionaries(st.text(max_size=8), children, max_size=4),
    max_leaves=12,
)
documents = st.dictionaries(st.text(min_size=1, max_size=8), json_values, min_size=1, max_size=6)


def _pair_ends(document):
    """Offset just past each top-level key/value pair in json.dumps output."""
    items = list(document.items())
    for i, (key, _) in enumerate(items):
        yield key, len(json.dumps(dict(items[:i + 1]))) - 1


@settings(max_examples=200, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(document=documents, data=st.data())
def test_truncated_document_repairs_to_consistent_prefix(document, data):
    text = json.dumps(document)
    cut = data.draw(st.integers(min_value=1, max_value=len(text) - 1))

    repaired = json.loads(repair_truncated_json(text[:cut]))

    assert isinstance(repaired, dict)
    assert set(repaired) <= set(document)
    for key, end in _pair_ends(document):
        if end <= cut:
            assert repaired[key] == document[key]
