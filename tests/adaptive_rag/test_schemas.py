# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Tests for the domain types.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

import pytest
from pydantic import ValidationError

from adaptive_rag.schemas import (
    Complexity,
    EntityType,
    ExtractedEntity,
    Intent,
    MatchTier,
    ParsedQuery,
    RegistryRecord,
    ValidatedEntity,
    WorkflowStep,
    complexity_for,
    normalize_entity_type,
    normalize_intent,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("person", EntityType.PERSON),
        ("Organization", EntityType.ORGANIZATION),
        ("org", EntityType.ORGANIZATION),
        ("company", EntityType.ORGANIZATION),
        ("city", EntityType.LOCATION),
        ("GPE", EntityType.LOCATION),
        ("time", EntityType.DATE),
        ("tech", EntityType.CONCEPT),
        ("brand", EntityType.PRODUCT),
        ("whatever", EntityType.OTHER),
        (None, EntityType.OTHER),
    ],
)
def test_normalize_entity_type(raw, expected):
    assert normalize_entity_type(raw) == expected


def test_normalize_intent_defaults_to_factual():
    assert normalize_intent("Comparison") == Intent.COMPARISON
    assert normalize_intent("chit-chat") == Intent.FACTUAL
    assert normalize_intent(None) == Intent.FACTUAL


def test_complexity_for_entity_count():
    assert complexity_for(0) == Complexity.SIMPLE
    assert complexity_for(1) == Complexity.MODERATE
    assert complexity_for(2) == Complexity.MODERATE
    assert complexity_for(3) == Complexity.COMPLEX


def test_entity_confidence_is_bounded():
    with pytest.raises(ValidationError):
        ExtractedEntity(name="x", confidence=1.5)


def test_parsed_query_is_frozen():
    parsed = ParsedQuery(original_query="q")
    with pytest.raises(ValidationError):
        parsed.intent = Intent.CONCEPTUAL


def test_workflow_step_is_frozen():
    step = WorkflowStep(name="parse")
    with pytest.raises(ValidationError):
        step.duration_ms = 5.0


def test_registry_record_wire_format():
    record = RegistryRecord.model_validate(
        {"standardName": "Elon Musk", "type": "PERSON", "aliases": ["马斯克"], "relatedEntities": ["Tesla"]}
    )
    assert record.canonical_name == "Elon Musk"
    assert record.key == "elon musk"
    dumped = record.model_dump(by_alias=True, exclude_none=True)
    assert dumped["standardName"] == "Elon Musk"
    assert dumped["relatedEntities"] == ["Tesla"]
    assert "hierarchy" not in dumped


def test_registry_record_from_validated_collects_spellings():
    entity = ValidatedEntity(
        name="特斯拉公司",
        type=EntityType.ORGANIZATION,
        text="特斯拉公司",
        canonical_name="Tesla Inc",
        aliases=["TSLA"],
        match_tier=MatchTier.MODEL,
    )
    record = RegistryRecord.from_validated(entity)
    assert record.canonical_name == "Tesla Inc"
    assert record.type == EntityType.ORGANIZATION
    assert record.aliases == ["TSLA", "特斯拉公司"]
