# src/feasibility_api/application/services/prompt_builder.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Narrative prompt builder.

Purpose:
    Render the instruction prompt sent to the narrative generator: writing
    guidance, the fixed report outline, the JSON output schema and the
    (already size-fitted) project payload.

Layer:
    application/services

Notes:
    - ``section_ids`` restricts a chunked request to one batch of sections.
      Only the first batch asks for report metadata, and only the last batch
      asks for the comparison block.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, Final

from feasibility_api.application.services.report_payload import sanitize_string
from feasibility_api.domain.services.report_outline import (
    FINANCIAL_SECTION_ID,
    REPORT_SECTIONS,
    REQUIRED_SECTION_IDS,
)

EXPERT_PROMPT_MAX: Final[int] = 4000
LANGUAGE_MAX: Final[int] = 16

_GUIDANCE: Final[str] = """\
Write a complete, professional feasibility study in {language} from the project data below.

Writing rules:
1. Open every section with a paragraph specific to this project, never a generic preamble.
2. Analyse the supplied figures and tables and connect them to the project context.
3. Keep a formal academic register suitable for fully justified paragraphs.
4. Never invent figures. Where an input is missing, say that the data is required.
5. Use the computed financial statements exactly as supplied; do not recalculate them.

Report pages, in order:
- Cover page: study type, project name, description, vision, basic information, author,
  issue date and the confidentiality statement.
- Executive summary of 500 to 700 words, followed by keywords.
- Table of contents.
- Sections {first} to {last} in the order listed below.

Sections:
{outline}

Section {financial} (financial feasibility) must interpret the income statement, balance
sheet and cash-flow statement, the key ratios, NPV, IRR and payback period, and the
break-even and sensitivity tables, and relate them to the investment decision."""

_SCHEMA: Final[str] = """\
{{
  "title": "string",
  "language": "{language}",
  "executiveSummary": "string",
  "coverPage": {{
    "studyType": "string", "projectName": "string", "projectDescription": "string",
    "visionMission": "string", "basicInfo": {{ "string": "string" }},
    "author": {{ "fullName": "string", "email": "string" }},
    "timestamp": {{ "iso": "string", "date": "string", "time": "string", "formatted": "string" }},
    "confidentiality": "string"
  }},
  "sections": [
    {{
      "id": "1-1",
      "title": "string",
      "content": "string",
      "tables": [ {{ "title": "string", "headers": ["string"], "rows": [["string"]] }} ],
      "wordCount": 0
    }}
  ],
  "comparison": {{ "enabled": true, "table": {{ "headers": ["string"], "rows": [["string"]] }}, "notes": "string" }} | null,
  "keywords": ["string"],
  "disclaimers": ["string"]
}}"""


def build_prompt(
    language: str,
    expert_prompt: str | None,
    data: Mapping[str, Any],
    *,
    section_ids: Sequence[str] | None = None,
    include_meta: bool = True,
    include_comparison: bool = True,
) -> str:
    """Render the generator prompt.

    Args:
        language: Target report language.
        expert_prompt: Optional operator guidance appended to the rules.
        data: Size-fitted payload.
        section_ids: Section batch for a chunked request; defaults to all.
        include_meta: Whether title, summary and cover page are requested.
        include_comparison: Whether the comparison block is requested.

    Returns:
        str: Prompt text.
    """
    target = sanitize_string(language or "en", LANGUAGE_MAX) or "en"
    wanted = list(section_ids) if section_ids else list(REQUIRED_SECTION_IDS)
    outline = "\n".join(f"{s.id}: {s.title}" for s in REPORT_SECTIONS)
    parts = [
        "You are a professional feasibility study expert. Respond with one JSON object only.",
        _GUIDANCE.format(
            language=target,
            first=REQUIRED_SECTION_IDS[0],
            last=REQUIRED_SECTION_IDS[-1],
            outline=outline,
            financial=FINANCIAL_SECTION_ID,
        ),
    ]
    guidance = sanitize_string(expert_prompt or "", EXPERT_PROMPT_MAX)
    if guidance:
        parts.append(f"Additional guidance:\n{guidance}")
    parts.append(
        "Include every top-level field (title, executiveSummary, coverPage, sections, keywords)."
        if include_meta
        else 'Include only the "sections" field.'
    )
    parts.append(
        "Include the comparison block only when the project data contains a comparison selection."
        if include_comparison
        else "Omit the comparison block."
    )
    parts.append(f"Write exactly these sections, in this order: {', '.join(wanted)}")
    parts.append(f"JSON schema:\n{_SCHEMA.format(language=target)}")
    parts.append(f"Project data:\n{json.dumps(data, ensure_ascii=False, indent=2, default=str)}")
    return "\n\n".join(parts)
