# tests/unit/application/test_prompt_builder.py
from __future__ import annotations

import json

from feasibility_api.application.services.prompt_builder import EXPERT_PROMPT_MAX, build_prompt
from feasibility_api.domain.services.report_outline import REQUIRED_SECTION_IDS, SECTION_TITLES


def test_full_prompt_lists_every_section_and_embeds_payload() -> None:
    prompt = build_prompt("en", None, {"projectName": "Harbor"})

    assert f"Write exactly these sections, in this order: {', '.join(REQUIRED_SECTION_IDS)}" in prompt
    for sid, title in SECTION_TITLES.items():
        assert f"{sid}: {title}" in prompt
    assert "Include every top-level field" in prompt
    assert "Omit the comparison block." not in prompt
    assert json.dumps({"projectName": "Harbor"}, indent=2) in prompt
    assert '"language": "en"' in prompt


def test_chunk_prompt_restricts_sections_and_metadata() -> None:
    prompt = build_prompt(
        "fr",
        None,
        {},
        section_ids=["1-11", "1-12"],
        include_meta=False,
        include_comparison=False,
    )

    assert "Write exactly these sections, in this order: 1-11, 1-12" in prompt
    assert 'Include only the "sections" field.' in prompt
    assert "Omit the comparison block." in prompt
    assert "feasibility study in fr" in prompt


def test_expert_prompt_is_sanitized_and_capped() -> None:
    prompt = build_prompt("en", "<script>Focus</script> on exports " + "z" * 5000, {})

    assert "Additional guidance:\nFocus on exports" in prompt
    assert "<script>" not in prompt
    assert "z" * EXPERT_PROMPT_MAX not in prompt


def test_blank_language_falls_back_to_english() -> None:
    assert "feasibility study in en" in build_prompt("", None, {})
