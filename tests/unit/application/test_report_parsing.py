# tests/unit/application/test_report_parsing.py
from __future__ import annotations

import pytest

from feasibility_api.application.services.report_parsing import (
    extract_first_json_object,
    parse_model_json,
    strip_code_fences,
)
from feasibility_api.domain.exceptions.narrative import UpstreamFormatError


def test_direct_json_is_decoded() -> None:
    assert parse_model_json('{"title": "T", "sections": [{"id": "1-1"}]}') == {
        "title": "T",
        "sections": [{"id": "1-1"}],
    }


def test_fenced_json_is_unwrapped() -> None:
    text = 'Here you go:\n```json\n{"title": "T"}\n```\nThanks'
    assert strip_code_fences(text) == '{"title": "T"}'
    assert parse_model_json(text) == {"title": "T", "sections": []}


def test_braces_inside_strings_do_not_end_the_object() -> None:
    text = 'prefix {"content": "use } and { freely \\"quoted\\"", "n": 1} suffix {"x": 2}'
    candidate = extract_first_json_object(text)
    assert candidate == '{"content": "use } and { freely \\"quoted\\"", "n": 1}'
    assert parse_model_json(text)["n"] == 1


def test_missing_sections_default_to_empty_list() -> None:
    assert parse_model_json('{"sections": "oops"}')["sections"] == []


def test_text_without_object_raises_with_preview() -> None:
    with pytest.raises(UpstreamFormatError) as exc_info:
        parse_model_json("I cannot help with that." * 50)
    assert exc_info.value.code == "UPSTREAM_FORMAT_ERROR"
    assert len(exc_info.value.details["raw"]) == 400


def test_unbalanced_object_raises() -> None:
    with pytest.raises(UpstreamFormatError):
        parse_model_json('{"title": "T", "sections": [')


def test_malformed_candidate_raises() -> None:
    with pytest.raises(UpstreamFormatError, match="malformed"):
        parse_model_json("noise {'single': 'quotes'} noise")
