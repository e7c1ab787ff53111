"""Tests for JSON extraction from LLM responses."""

from thoughtgraph.utils.json_utils import clean_json_response, extract_json


def test_clean_strips_code_fences() -> None:
    assert clean_json_response('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert clean_json_response('```\n[1]\n```') == '[1]'


def test_extract_plain_object() -> None:
    assert extract_json('{"relevant": true, "confidence": 0.9}') == {'relevant': True, 'confidence': 0.9}


def test_extract_object_surrounded_by_prose() -> None:
    text = 'Sure! Here is the result:\n{"type": "task", "priority": 4}\nLet me know if you need more.'
    assert extract_json(text) == {'type': 'task', 'priority': 4}


def test_extract_takes_first_balanced_value() -> None:
    text = '{"first": {"nested": [1, 2]}} {"second": true}'
    assert extract_json(text) == {'first': {'nested': [1, 2]}}


def test_extract_ignores_braces_inside_strings() -> None:
    text = '{"summary": "use {curly} and ] brackets", "priority": 2}'
    assert extract_json(text) == {'summary': 'use {curly} and ] brackets', 'priority': 2}


def test_extract_array() -> None:
    assert extract_json('result: ["a", "b"]') == ['a', 'b']


def test_extract_skips_invalid_candidate() -> None:
    text = '{not json} then {"ok": 1}'
    assert extract_json(text) == {'ok': 1}


def test_extract_unbalanced_returns_none() -> None:
    assert extract_json('{"type": "task"') is None


def test_extract_no_json() -> None:
    assert extract_json('I cannot help with that.') is None
    assert extract_json('') is None
