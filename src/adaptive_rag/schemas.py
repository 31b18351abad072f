# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Domain types shared by the parsing, routing and retrieval layers.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Domain types shared by the parsing, routing and retrieval layers."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    """Closed set of entity categories."""

    PERSON = "PERSON"
    ORGANIZATION = "ORGANIZATION"
    LOCATION = "LOCATION"
    PRODUCT = "PRODUCT"
    DATE = "DATE"
    EVENT = "EVENT"
    CONCEPT = "CONCEPT"
    OTHER = "OTHER"


_ENTITY_TYPE_VARIANTS: dict[str, EntityType] = {
    "PER": EntityType.PERSON,
    "PEOPLE": EntityType.PERSON,
    "HUMAN": EntityType.PERSON,
    "ORG": EntityType.ORGANIZATION,
    "COMPANY": EntityType.ORGANIZATION,
    "CORPORATION": EntityType.ORGANIZATION,
    "INSTITUTION": EntityType.ORGANIZATION,
    "LOC": EntityType.LOCATION,
    "PLACE": EntityType.LOCATION,
    "CITY": EntityType.LOCATION,
    "COUNTRY": EntityType.LOCATION,
    "GPE": EntityType.LOCATION,
    "BRAND": EntityType.PRODUCT,
    "TIME": EntityType.DATE,
    "DATETIME": EntityType.DATE,
    "YEAR": EntityType.DATE,
    "TECH": EntityType.CONCEPT,
    "TECHNOLOGY": EntityType.CONCEPT,
    "TERM": EntityType.CONCEPT,
    "MISC": EntityType.OTHER,
}


def normalize_entity_type(raw: Any) -> EntityType:
    """Map a free-form type label to an ``EntityType``.

    Handles case differences and common variant spellings returned by
    language models (``org``, ``city``, ``GPE`` ...). Unknown labels map to
    ``EntityType.OTHER``.

    Args:
        raw: Type label as returned by a model or read from storage.

    Returns:
        EntityType: The nearest enum member.
    """
    if isinstance(raw, EntityType):
        return raw
    label = str(raw or "").strip().upper().replace("-", "_").replace(" ", "_")
    if label in EntityType.__members__:
        return EntityType[label]
    return _ENTITY_TYPE_VARIANTS.get(label, EntityType.OTHER)


class Intent(str, Enum):
    FACTUAL = "factual"
    CONCEPTUAL = "conceptual"
    COMPARISON = "comparison"
    PROCEDURAL = "procedural"
    EXPLORATORY = "exploratory"


def normalize_intent(raw: Any) -> Intent:
    """Map a model-provided intent label to ``Intent``, defaulting to factual."""
    label = str(raw or "").strip().lower()
    try:
        return Intent(label)
    except ValueError:
        return Intent.FACTUAL


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


def complexity_for(entity_count: int) -> Complexity:
    """Derive query complexity from the number of surviving entities."""
    if entity_count > 2:
        return Complexity.COMPLEX
    if entity_count > 0:
        return Complexity.MODERATE
    return Complexity.SIMPLE


class ExtractedEntity(BaseModel):
    """An entity spotted in the query text."""

    name: str
    type: EntityType = EntityType.OTHER
    text: str = Field(default="", description="Span of the query the entity was read from.")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    pre_mapped: bool = Field(
        default=False,
        description="True when the entity came from the rule-based alias table.",
    )


class LogicalRelation(BaseModel):
    operator: str = "AND"
    entities: List[str] = Field(default_factory=list)
    description: str = ""


class ParsedQuery(BaseModel):
    """Structured interpretation of a user query."""

    model_config = ConfigDict(frozen=True)

    original_query: str
    entities: List[ExtractedEntity] = Field(default_factory=list)
    logical_relations: List[LogicalRelation] = Field(default_factory=list)
    intent: Intent = Intent.FACTUAL
    complexity: Complexity = Complexity.SIMPLE
    confidence: float = 0.5
    keywords: List[str] = Field(default_factory=list)
    is_small_talk: bool = False


class MatchTier(str, Enum):
    ALIAS = "alias"
    NAME = "name"
    MODEL = "model"
    UNREGISTERED = "unregistered"
    FALLBACK = "fallback"


class ValidatedEntity(ExtractedEntity):
    """An extracted entity checked against the registry."""

    is_valid: bool = True
    canonical_name: str = ""
    match_score: float = 1.0
    suggestions: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    match_tier: MatchTier = MatchTier.UNREGISTERED


class RegistryRecord(BaseModel):
    """Canonical entity entry persisted in the registry snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    canonical_name: str = Field(alias="standardName")
    type: EntityType = EntityType.OTHER
    aliases: List[str] = Field(default_factory=list)
    hierarchy: Optional[List[str]] = None
    related_entities: Optional[List[str]] = Field(default=None, alias="relatedEntities")

    @property
    def key(self) -> str:
        return self.canonical_name.lower()

    @classmethod
    def from_validated(cls, entity: ValidatedEntity) -> RegistryRecord:
        """Promote a validated entity into a new registry record."""
        canonical = entity.canonical_name or entity.name
        aliases = [a for a in entity.aliases if a.lower() != canonical.lower()]
        for spelling in (entity.name, entity.text):
            if spelling and spelling.lower() != canonical.lower() and spelling not in aliases:
                aliases.append(spelling)
        return cls(canonical_name=canonical, type=entity.type, aliases=aliases)


class ConstraintOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    IN_SET = "in_set"
    RANGE = "range"
    NOT_EQUALS = "not_equals"


class SearchConstraint(BaseModel):
    field: str
    operator: ConstraintOperator = ConstraintOperator.CONTAINS
    value: Union[str, int, float, List[Any], dict[str, Any]]
    priority: int = 0
    entity_type: Optional[EntityType] = None


class RoutingAction(str, Enum):
    STRUCTURED_SEARCH = "structured_search"
    SEMANTIC_SEARCH = "semantic_search"
    HYBRID_SEARCH = "hybrid_search"
    RELAX_CONSTRAINTS = "relax_constraints"
    GENERATE_RESPONSE = "generate_response"


class RoutingDecision(BaseModel):
    action: RoutingAction
    constraints: List[SearchConstraint] = Field(default_factory=list)
    relaxed_types: List[EntityType] = Field(default_factory=list)
    retry_count: int = 0
    max_retries: int = 3
    rationale: str = ""


class MatchType(str, Enum):
    STRUCTURED = "structured"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class SearchResult(BaseModel):
    id: str
    content: str = ""
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)
    match_type: MatchType = MatchType.SEMANTIC


class RankedResult(SearchResult):
    rerank_score: float = 0.0
    relevance_explanation: str = ""


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ERROR = "error"


class WorkflowStep(BaseModel):
    """One entry of the execution trace. Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: StepStatus = StepStatus.PENDING
    duration_ms: float = 0.0
    details: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
