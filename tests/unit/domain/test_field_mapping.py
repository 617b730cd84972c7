# tests/unit/domain/test_field_mapping.py
from __future__ import annotations

import pytest

from feasibility_api.domain.services.field_mapping import (
    ALIAS_TO_CANONICAL,
    FIELD_MAPPING,
    SCHEMA_VERSION,
    canonical_keys,
    canonicalize,
    canonicalize_answers,
    resolve_key,
    unified_schema,
)


def test_known_raw_ids_map_and_unknown_keys_pass_through() -> None:
    assert canonicalize("project-name") == "projectName"
    assert canonicalize("sector") == "projectSector"
    assert canonicalize("somethingNew") == "somethingNew"


@pytest.mark.parametrize("raw", sorted(FIELD_MAPPING) + sorted(ALIAS_TO_CANONICAL))
def test_resolve_key_is_idempotent(raw: str) -> None:
    once = resolve_key(raw)
    assert resolve_key(once) == once


def test_no_mapping_target_is_itself_a_raw_key() -> None:
    assert set(FIELD_MAPPING.values()).isdisjoint(FIELD_MAPPING)


def test_historical_synonyms_collapse() -> None:
    assert resolve_key("technologyMaturity") == "technologyModernity"
    assert resolve_key("hasAdditionalInvestments") == "needsAdditionalInvestments"


def test_canonicalize_answers_is_idempotent_and_does_not_mutate() -> None:
    raw = {
        "project-name": "Harbor Bakery",
        "market-size": "12,500 USD",
        "min-age": "25",
        "max-age": "40",
        "technologyMaturity": "Modern",
    }
    snapshot = dict(raw)

    once = canonicalize_answers(raw)

    assert raw == snapshot
    assert canonicalize_answers(once) == once
    assert once["projectName"] == "Harbor Bakery"
    assert once["marketSize"] == 12500.0
    assert once["technologyModernity"] == "Modern"


def test_age_range_is_composed_and_components_dropped() -> None:
    out = canonicalize_answers({"min-age": "25", "max-age": "40"})
    assert out["targetAge"] == "25 - 40"
    assert "targetAgeMin" not in out
    assert "targetAgeMax" not in out


def test_age_range_with_single_bound_uses_placeholder() -> None:
    out = canonicalize_answers({"min-age": "18"})
    assert out["targetAge"] == "18 - —"


def test_existing_composite_value_is_kept() -> None:
    out = canonicalize_answers({"targetAge": "30 - 50", "min-age": "25"})
    assert out["targetAge"] == "30 - 50"
    assert "targetAgeMin" not in out


def test_unparseable_numeric_text_is_kept_untouched() -> None:
    out = canonicalize_answers({"market-size": "large"})
    assert out["marketSize"] == "large"


def test_canonical_key_beats_mapped_key_unless_empty() -> None:
    assert canonicalize_answers({"project-name": "B", "projectName": "A"})["projectName"] == "A"
    assert canonicalize_answers({"projectName": "A", "project-name": "B"})["projectName"] == "A"
    assert canonicalize_answers({"projectName": "", "project-name": "B"})["projectName"] == "B"


def test_unified_schema_shape() -> None:
    schema = unified_schema()
    assert schema["version"] == SCHEMA_VERSION
    assert schema["aliasToCanonical"]["project-name"] == "projectName"
    assert schema["aliasToCanonical"]["hasAdditionalInvestments"] == "needsAdditionalInvestments"
    assert schema["canonicalKeys"] == canonical_keys()
    assert "targetAge" in schema["canonicalKeys"]
