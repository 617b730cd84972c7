# tests/unit/application/test_report_validation.py
from __future__ import annotations

from typing import Any

from feasibility_api.application.services.financial_tables import (
    build_financial_statements,
    statements_to_tables,
)
from feasibility_api.application.services.report_validation import (
    COMPARISON_HEADERS,
    COMPARISON_NOTES,
    DEFAULT_CONFIDENTIALITY,
    DEFAULT_EXECUTIVE_SUMMARY,
    MIN_SUMMARY_WORDS,
    build_comparison,
    build_report_meta,
    finalize_report,
    merge_report_parts,
    reorder_and_fill_sections,
    word_count,
)
from feasibility_api.domain.services.financial_projection import analyze
from feasibility_api.domain.services.projection_inputs import ProjectionInputs
from feasibility_api.domain.services.report_outline import REQUIRED_SECTION_IDS, SECTION_TITLES


def _statements() -> dict[str, Any]:
    analysis = analyze(
        ProjectionInputs(
            market_size=100_000.0,
            competitors_count=0.0,
            inventory_value=4_500.0,
            loan_amount=10_000.0,
            interest_rate=10.0,
            loan_months=24.0,
            tax_rate=10.0,
        )
    )
    return build_financial_statements(analysis, currency="EUR")


def test_default_summary_meets_minimum_length() -> None:
    assert word_count(DEFAULT_EXECUTIVE_SUMMARY) >= MIN_SUMMARY_WORDS


def test_sections_are_reordered_filled_and_deduplicated() -> None:
    sections = [
        {"id": "1-3", "title": "Wrong", "content": "Market text here"},
        {"id": "1-3", "content": "Duplicate"},
        {"id": "9-9", "content": "Unknown"},
        {"id": "1-1", "content": "Intro", "tables": [{"headers": ["a"], "rows": []}, {"bad": 1}]},
        "garbage",
    ]

    out = reorder_and_fill_sections(sections)

    assert [s["id"] for s in out] == list(REQUIRED_SECTION_IDS)
    assert out[2]["title"] == SECTION_TITLES["1-3"]
    assert out[2]["content"] == "Market text here"
    assert out[2]["wordCount"] == 3
    assert out[0]["tables"] == [{"headers": ["a"], "rows": []}]
    assert out[1] == {
        "id": "1-2",
        "title": SECTION_TITLES["1-2"],
        "content": "",
        "tables": [],
        "wordCount": 0,
    }


def test_merge_report_parts_keeps_first_metadata_and_last_comparison() -> None:
    parts = [
        {
            "title": "Harbor",
            "executiveSummary": "Summary",
            "keywords": ["bakery", "food"],
            "sections": [{"id": "1-1"}, {"id": "1-2"}],
            "comparison": {"enabled": True, "notes": "first"},
        },
        {
            "title": "Ignored",
            "keywords": ["food", "retail"],
            "disclaimers": ["Estimates only"],
            "sections": [{"id": "1-2", "content": "dup"}, {"id": "1-3"}],
            "comparison": {"enabled": True, "notes": "last"},
        },
        {"sections": [], "comparison": {"enabled": False}},
    ]

    merged = merge_report_parts(parts, "en")

    assert merged["title"] == "Harbor"
    assert merged["executiveSummary"] == "Summary"
    assert merged["language"] == "en"
    assert merged["keywords"] == ["bakery", "food", "retail"]
    assert merged["disclaimers"] == ["Estimates only"]
    assert [s["id"] for s in merged["sections"]] == ["1-1", "1-2", "1-3"]
    assert "content" not in merged["sections"][1]
    assert merged["comparison"]["notes"] == "last"


def test_comparison_is_dropped_without_selection() -> None:
    assert build_comparison({"enabled": True}, None) is None
    assert build_comparison({"enabled": True}, []) is None


def test_comparison_gets_default_rows_and_notes() -> None:
    block = build_comparison(None, ["gold", "real_estate"])

    assert block is not None
    assert block["enabled"] is True
    assert block["table"]["headers"] == list(COMPARISON_HEADERS)
    assert block["table"]["rows"][1][0] == "real estate"
    assert block["notes"] == COMPARISON_NOTES


def test_existing_comparison_table_is_kept() -> None:
    table = {"headers": ["Option"], "rows": [["Gold"]]}
    block = build_comparison({"table": table, "notes": "Mine"}, ["gold"])
    assert block == {"table": table, "notes": "Mine", "enabled": True}


def test_statement_tables_are_titled() -> None:
    titles = [t["title"] for t in statements_to_tables(_statements())]
    assert titles[:3] == ["Income Statement", "Balance Sheet", "Cash Flow Statement"]
    assert "Loan Amortization Schedule" in titles
    assert "Return on Investment (ROI)" in titles
    assert statements_to_tables(None) == []


def test_finalize_report_enforces_structure_without_mutating_input() -> None:
    statements = _statements()
    parsed: dict[str, Any] = {
        "title": "Harbor",
        "executiveSummary": "Too short.",
        "sections": [{"id": "1-18", "content": "Finance", "tables": []}],
        "keywords": "not a list",
    }
    cover = {"projectName": "Harbor Bakery"}

    final = finalize_report(
        parsed,
        language="en",
        cover_page=cover,
        financial_statements=statements,
        comparison=["gold"],
    )

    assert len(final["sections"]) == 19
    financial = next(s for s in final["sections"] if s["id"] == "1-18")
    assert [t["title"] for t in financial["tables"]][0] == "Income Statement"
    assert final["financial"]["currency"] == "EUR"
    assert final["coverPage"] == cover
    assert final["executiveSummary"] == DEFAULT_EXECUTIVE_SUMMARY
    assert final["comparison"]["enabled"] is True
    assert final["keywords"] == []
    assert final["language"] == "en"
    assert parsed["sections"] == [{"id": "1-18", "content": "Finance", "tables": []}]


def test_report_meta_falls_back_to_defaults() -> None:
    meta = build_report_meta({}, {"title": "Generated"}, "en")
    assert meta == {
        "language": "en",
        "timestamp": "",
        "projectName": "Generated",
        "projectInfo": "",
        "authorInfo": "",
        "confidentiality": DEFAULT_CONFIDENTIALITY,
    }


def test_report_meta_summarizes_cover_page() -> None:
    cover = {
        "projectName": "Harbor Bakery",
        "basicInfo": {"sector": "Food", "country": "Portugal", "city": "Porto"},
        "author": {"fullName": "Dana", "email": "d@example.com"},
        "timestamp": {"iso": "2025-03-04T09:30:00+00:00"},
        "confidentiality": "Private",
    }
    meta = build_report_meta(cover, {}, "en")
    assert meta["projectInfo"] == "Project: Harbor Bakery | Sector: Food | Location: Portugal, Porto"
    assert meta["authorInfo"] == "Author: Dana | Email: d@example.com"
    assert meta["timestamp"] == "2025-03-04T09:30:00+00:00"
