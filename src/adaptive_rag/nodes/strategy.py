# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Strategy controller: entity validation and routing decisions.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Strategy controller nodes for the LangGraph pipeline.

``validate_entities`` grounds extracted entities in the registry;
``make_routing_decision`` is a pure function that picks the next search
action and relaxes constraints when a structured search comes back empty.
"""

import asyncio
from typing import Any, Sequence

import structlog
from google import genai
from langchain_core.runnables import RunnableConfig

from adaptive_rag.configuration import Configuration
from adaptive_rag.infrastructure.clients import entity_registry, gemini_client
from adaptive_rag.infrastructure.entity_registry import EntityRegistry
from adaptive_rag.nodes.models import ResolutionResponse
from adaptive_rag.nodes.tracing import pipeline_step
from adaptive_rag.schemas import (
    ConstraintOperator,
    EntityType,
    ExtractedEntity,
    Intent,
    MatchTier,
    ParsedQuery,
    RegistryRecord,
    RoutingAction,
    RoutingDecision,
    SearchConstraint,
    StepStatus,
    ValidatedEntity,
)
from adaptive_rag.state import PipelineState
from adaptive_rag.tools.gemini import gemini_generate
from adaptive_rag.tools.llm_json import decode_model

logger = structlog.get_logger()

CANDIDATE_LIMIT = 5

# Document metadata field searched for each entity type
FIELD_FOR_TYPE: dict[EntityType, str] = {
    EntityType.PERSON: "person",
    EntityType.ORGANIZATION: "organization",
    EntityType.LOCATION: "location",
    EntityType.PRODUCT: "product",
    EntityType.DATE: "date",
    EntityType.EVENT: "event",
    EntityType.CONCEPT: "concept",
    EntityType.OTHER: "content",
}

RESOLUTION_PROMPT = (
    "You are an entity resolution expert. Decide whether the user entity "
    "refers to one of the canonical registry entities below.\n\n"
    "User entity: {name}\n"
    "User entity type: {type}\n\n"
    "CANDIDATES:\n"
    "{candidates}\n\n"
    "JSON RESPONSE FORMAT:\n"
    "{{\n"
    '  "isMatch": true/false,\n'
    '  "matchedEntity": "canonical name of the matched candidate, if any",\n'
    '  "confidence": 0.0-1.0,\n'
    '  "normalizedName": "the normalized name to search with",\n'
    '  "suggestions": ["other plausible candidates"]\n'
    "}}\n\n"
    "Respond with ONLY the JSON object."
)


def _validated(
    entity: ExtractedEntity,
    tier: MatchTier,
    canonical_name: str,
    match_score: float,
    is_valid: bool = True,
    aliases: Sequence[str] = (),
    suggestions: Sequence[str] = (),
) -> ValidatedEntity:
    return ValidatedEntity(
        **entity.model_dump(),
        is_valid=is_valid,
        canonical_name=canonical_name,
        match_score=match_score,
        aliases=list(aliases),
        suggestions=list(suggestions),
        match_tier=tier,
    )


def _format_candidates(candidates: Sequence[RegistryRecord]) -> str:
    return "\n".join(
        f"- {c.canonical_name} ({c.type.value}) aliases: {', '.join(c.aliases) or '-'}"
        for c in candidates
    )


async def _adjudicate(
    entity: ExtractedEntity,
    candidates: list[RegistryRecord],
    client: genai.Client,
    model: str,
) -> ValidatedEntity:
    prompt = RESOLUTION_PROMPT.format(
        name=entity.name,
        type=entity.type.value,
        candidates=_format_candidates(candidates),
    )
    try:
        raw = await asyncio.to_thread(
            gemini_generate,
            client,
            prompt,
            model=model,
            response_mime_type="application/json",
            temperature=0.0,
        )
        response, decoded = decode_model(raw, ResolutionResponse)
        if not decoded:
            raise ValueError("empty resolution response")
    except Exception as e:
        logger.warning("validate_model_failed", entity=entity.name, error=str(e))
        return _validated(entity, MatchTier.FALLBACK, entity.name, 0.5)

    canonical = response.normalized_name or response.matched_entity or entity.name
    score = response.confidence if response.confidence is not None else 0.7
    matched = next(
        (c for c in candidates if c.key in (canonical.lower(), response.matched_entity.lower())),
        None,
    )
    return _validated(
        entity,
        MatchTier.MODEL,
        canonical,
        min(max(score, 0.0), 1.0),
        is_valid=response.is_match is not False,
        aliases=matched.aliases if matched else (),
        suggestions=response.suggestions or [c.canonical_name for c in candidates if c is not matched],
    )


async def validate_entities(
    entities: Sequence[ExtractedEntity],
    registry: EntityRegistry,
    client: genai.Client,
    model: str,
) -> list[ValidatedEntity]:
    """Ground each entity in the registry.

    Alias and canonical-name matches are resolved deterministically; other
    candidate sets go to the model for adjudication. Never raises.

    Args:
        entities: Entities of the parsed query.
        registry: Canonical entity registry (injected).
        client: Gemini client (injected).
        model: Gemini model name.

    Returns:
        list[ValidatedEntity]: One validated entity per input, in order.
    """
    validated: list[ValidatedEntity] = []
    for entity in entities:
        candidates = await asyncio.to_thread(
            registry.find_similar, entity.name, entity.type, CANDIDATE_LIMIT
        )
        if not candidates:
            validated.append(_validated(entity, MatchTier.UNREGISTERED, entity.name, 1.0))
            continue

        spellings = {s.lower() for s in (entity.name, entity.text) if s}
        alias_match = next(
            (c for c in candidates if any(a.lower() in spellings for a in c.aliases)),
            None,
        )
        if alias_match is not None:
            validated.append(_validated(
                entity, MatchTier.ALIAS, alias_match.canonical_name, 1.0, aliases=alias_match.aliases
            ))
            continue

        name_match = next((c for c in candidates if c.key == entity.name.lower()), None)
        if name_match is not None:
            validated.append(_validated(
                entity, MatchTier.NAME, name_match.canonical_name, 1.0, aliases=name_match.aliases
            ))
            continue

        validated.append(await _adjudicate(entity, candidates, client, model))

    logger.info(
        "validate_entities_done",
        total=len(validated),
        valid=sum(1 for v in validated if v.is_valid),
        tiers=[v.match_tier.value for v in validated],
    )
    return validated


def build_constraints(
    validated_entities: Sequence[ValidatedEntity],
    relaxed_types: Sequence[EntityType],
    configuration: Configuration,
) -> list[SearchConstraint]:
    """One ``contains`` constraint per valid, non-relaxed entity, most important first."""
    constraints = [
        SearchConstraint(
            field=FIELD_FOR_TYPE[entity.type],
            operator=ConstraintOperator.CONTAINS,
            value=entity.canonical_name or entity.name,
            priority=configuration.priority_of(entity.type),
            entity_type=entity.type,
        )
        for entity in validated_entities
        if entity.is_valid and entity.type not in relaxed_types
    ]
    return sorted(constraints, key=lambda c: c.priority)


def lowest_priority_type(
    validated_entities: Sequence[ValidatedEntity],
    relaxed_types: Sequence[EntityType],
    configuration: Configuration,
) -> EntityType | None:
    """The least important valid entity type that has not been relaxed yet."""
    candidates = {
        e.type for e in validated_entities if e.is_valid and e.type not in relaxed_types
    }
    if not candidates:
        return None
    return max(candidates, key=configuration.priority_of)


def make_routing_decision(
    parsed_query: ParsedQuery,
    validated_entities: Sequence[ValidatedEntity],
    previous_decision: RoutingDecision | None,
    result_count: int,
    configuration: Configuration,
) -> RoutingDecision:
    """Choose the next action of the retrieval loop.

    Args:
        parsed_query: Parse of the current query.
        validated_entities: Registry-validated entities.
        previous_decision: Decision of the previous iteration, None on the first.
        result_count: Hits returned by the previous search.
        configuration: Runtime knobs (max_retries, min_result_count, constraint_priority).

    Returns:
        RoutingDecision: The next action; the relaxed-type list only grows.
    """
    relaxed = list(previous_decision.relaxed_types) if previous_decision else []
    retry_count = previous_decision.retry_count if previous_decision else 0
    max_retries = configuration.max_retries

    def decision(action: RoutingAction, rationale: str, **overrides: Any) -> RoutingDecision:
        values: dict[str, Any] = dict(
            action=action,
            constraints=[],
            relaxed_types=relaxed,
            retry_count=retry_count,
            max_retries=max_retries,
            rationale=rationale,
        )
        values.update(overrides)
        return RoutingDecision(**values)

    if result_count >= configuration.min_result_count:
        return decision(
            RoutingAction.GENERATE_RESPONSE,
            "sufficient results",
            constraints=list(previous_decision.constraints) if previous_decision else [],
        )

    if retry_count >= max_retries:
        return decision(RoutingAction.SEMANTIC_SEARCH, "exhausted retries, degrade to pure semantic")

    if parsed_query.intent in (Intent.CONCEPTUAL, Intent.EXPLORATORY):
        return decision(
            RoutingAction.SEMANTIC_SEARCH,
            f"{parsed_query.intent.value} question, semantic search",
            retry_count=0,
        )

    constraints = build_constraints(validated_entities, relaxed, configuration)

    if not constraints or (previous_decision is not None and result_count == 0):
        type_to_relax = lowest_priority_type(validated_entities, relaxed, configuration)
        if type_to_relax is not None:
            return decision(
                RoutingAction.RELAX_CONSTRAINTS,
                f"relax {type_to_relax.value} constraints",
                constraints=[c for c in constraints if c.entity_type != type_to_relax],
                relaxed_types=[*relaxed, type_to_relax],
                retry_count=retry_count + 1,
            )

    if constraints:
        return decision(
            RoutingAction.STRUCTURED_SEARCH,
            f"structured search with {len(constraints)} constraints",
            constraints=constraints,
        )

    return decision(RoutingAction.HYBRID_SEARCH, "no usable constraints, hybrid search")


@pipeline_step("validate")
async def validate_entities_node(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
    """Validate the parsed entities against the registry."""
    configuration = Configuration.from_runnable_config(config)
    entities = state.parsed_query.entities if state.parsed_query else []
    if not entities:
        return {
            "validated_entities": [],
            "step_status": StepStatus.SKIPPED,
            "step_details": {"reason": "no entities"},
        }

    client = await gemini_client.get_client()
    validated = await validate_entities(entities, entity_registry, client, configuration.model)
    return {
        "validated_entities": validated,
        "step_details": {
            "validated": [
                {"name": v.name, "canonical": v.canonical_name, "tier": v.match_tier.value, "valid": v.is_valid}
                for v in validated
            ],
        },
    }


@pipeline_step("route")
async def route(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
    """Append the next routing decision to the history."""
    configuration = Configuration.from_runnable_config(config)
    decision = make_routing_decision(
        state.parsed_query,
        state.validated_entities,
        state.last_decision,
        len(state.search_results),
        configuration,
    )
    logger.info(
        "routing_decision",
        action=decision.action.value,
        retry=decision.retry_count,
        relaxed=[t.value for t in decision.relaxed_types],
        constraints=len(decision.constraints),
    )
    return {
        "decisions": [decision],
        "step_details": {
            "action": decision.action.value,
            "rationale": decision.rationale,
            "retry_count": decision.retry_count,
        },
    }
