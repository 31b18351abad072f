# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Cognitive parser: query -> entities, intent, complexity.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Cognitive parsing node for the LangGraph pipeline.

Combines the rule-based detector with a single structured model call and
falls back to pure rules when the model is unavailable or unintelligible.
"""

import asyncio
import re
from enum import Enum
from typing import Any, Iterable

import structlog
from google import genai
from langchain_core.runnables import RunnableConfig

from adaptive_rag.configuration import Configuration
from adaptive_rag.infrastructure.clients import gemini_client
from adaptive_rag.nodes.models import ExtractionResponse
from adaptive_rag.nodes.tracing import pipeline_step
from adaptive_rag.schemas import (
    Complexity,
    EntityType,
    ExtractedEntity,
    Intent,
    LogicalRelation,
    ParsedQuery,
    complexity_for,
    normalize_entity_type,
    normalize_intent,
)
from adaptive_rag.state import PipelineState
from adaptive_rag.tools.entity_rules import detect, is_small_talk, postprocess, preprocess
from adaptive_rag.tools.gemini import gemini_generate
from adaptive_rag.tools.llm_json import decode_model

logger = structlog.get_logger()

PARSER_TEMPERATURE = 0.1

EXTRACTION_PROMPT = (
    "You are a cognitive parsing engine. Convert the user query into a structured object.\n\n"
    "User query: {query}\n\n"
    "RULES:\n"
    "1. Only extract entities that literally appear in the query. Never invent entities.\n"
    "2. Greetings, small talk and queries without entities return an empty entities array.\n"
    "3. Keep entity names in the language and spelling used by the query.\n"
    "4. If the query annotates a nickname as 'alias(即canonical)', use the canonical name "
    "and put the alias in 'text'.\n\n"
    "ENTITY TYPES:\n"
    "PERSON, ORGANIZATION, LOCATION, PRODUCT, DATE, EVENT, CONCEPT (technical terms), OTHER.\n\n"
    "INTENTS:\n"
    '- "factual": looks for a concrete fact or figure.\n'
    '- "conceptual": wants a concept or principle explained.\n'
    '- "comparison": compares or confirms relations between things.\n'
    '- "procedural": asks for steps or a method.\n'
    '- "exploratory": open-ended exploration.\n\n'
    "COMPLEXITY: simple (no entities), moderate (1-2 entities), complex (3 or more entities).\n\n"
    "JSON RESPONSE FORMAT:\n"
    "{{\n"
    '  "entities": [{{"name": "...", "type": "...", "text": "span from the query", "confidence": 0.9}}],\n'
    '  "logicalRelations": [{{"operator": "AND|OR|NOT", "entities": ["..."], "description": "..."}}],\n'
    '  "intent": "factual|conceptual|comparison|procedural|exploratory",\n'
    '  "complexity": "simple|moderate|complex",\n'
    '  "confidence": 0.85,\n'
    '  "keywords": ["..."]\n'
    "}}\n\n"
    "Respond with ONLY the JSON object."
)

_QUOTED = re.compile(r"[\"'“”‘’「」『』《》](.+?)[\"'“”‘’「」『』《》]")
_PRODUCT_CODE = re.compile(r"[A-Za-z]+\s*\d+(?:\s*[A-Za-z]*)?")
_YEAR = re.compile(r"\d{4}年?")
_WORD_SPLIT = re.compile(r"[\s,，。？！?!]+")
STOP_WORDS = frozenset(
    {"的", "是", "在", "和", "与", "或", "了", "吗", "呢", "啊", "什么", "哪", "如何", "怎么", "怎样"}
)


class Capability(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_LOW_SIZES = re.compile(r"(?<![\d.])(?:0\.5|1|2)b\b")
_MEDIUM_SIZES = re.compile(r"(?<![\d.])(?:3|7|8)b\b")
_MEDIUM_FAMILIES = ("deepseek-r1", "qwen3")


def model_capability(model: str) -> Capability:
    """Estimate how reliably a model follows the extraction prompt.

    Parameter-count tags decide first (0.5b/1b/2b low, 3b/7b/8b medium);
    known mid-size families are medium; everything else is high.
    """
    name = model.lower()
    if _LOW_SIZES.search(name):
        return Capability.LOW
    if _MEDIUM_SIZES.search(name) or any(f in name for f in _MEDIUM_FAMILIES):
        return Capability.MEDIUM
    return Capability.HIGH


def _coerce_entities(raw_entities: Iterable[Any]) -> list[ExtractedEntity]:
    entities: list[ExtractedEntity] = []
    for raw in raw_entities:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name") or "").strip()
        if not name:
            continue
        try:
            confidence = float(raw.get("confidence"))
        except (TypeError, ValueError):
            confidence = 0.8
        entities.append(ExtractedEntity(
            name=name,
            type=normalize_entity_type(raw.get("type")),
            text=str(raw.get("text") or raw.get("value") or name).strip(),
            confidence=min(max(confidence, 0.0), 1.0),
        ))
    return entities


def _coerce_relations(raw_relations: Iterable[Any]) -> list[LogicalRelation]:
    relations: list[LogicalRelation] = []
    for raw in raw_relations:
        if not isinstance(raw, dict):
            continue
        relations.append(LogicalRelation(
            operator=str(raw.get("operator") or "AND").upper(),
            entities=[str(e) for e in raw.get("entities") or [] if e],
            description=str(raw.get("description") or ""),
        ))
    return relations


def filter_hallucinations(
    entities: list[ExtractedEntity], *texts: str
) -> list[ExtractedEntity]:
    """Keep entities whose name or matched text occurs in one of ``texts``.

    Rule-based alias pre-mappings are exempt.
    """
    haystacks = [t.lower() for t in texts if t]
    kept: list[ExtractedEntity] = []
    for entity in entities:
        needles = [n.lower() for n in (entity.name, entity.text) if n]
        if entity.pre_mapped or any(n in h for n in needles for h in haystacks):
            kept.append(entity)
        else:
            logger.info("parse_entity_hallucinated", name=entity.name)
    return kept


def merge_entities(*groups: Iterable[ExtractedEntity]) -> list[ExtractedEntity]:
    """Concatenate entity groups, first occurrence of a lower-cased name wins."""
    merged: list[ExtractedEntity] = []
    seen: set[str] = set()
    for group in groups:
        for entity in group:
            key = entity.name.lower()
            if key in seen:
                continue
            seen.add(key)
            merged.append(entity)
    return merged


def _keyword_intent(query: str) -> Intent:
    if ("是" in query and "么" in query) or "是否" in query or "是不是" in query:
        return Intent.COMPARISON
    if any(k in query for k in ("比较", "对比", "区别")):
        return Intent.COMPARISON
    if any(k in query for k in ("如何", "怎么", "步骤")):
        return Intent.PROCEDURAL
    if any(k in query for k in ("什么是", "解释", "含义")):
        return Intent.CONCEPTUAL
    return Intent.FACTUAL


def fallback_parse(
    query: str,
    rule_entities: list[ExtractedEntity],
    pre_mapped: dict[str, str] | None = None,
) -> ParsedQuery:
    """Rule-only parse used when the model call fails or yields nothing.

    Args:
        query: Original user query.
        rule_entities: Output of ``detect`` for the query.
        pre_mapped: Alias -> canonical map from ``preprocess`` (low-capability models).

    Returns:
        ParsedQuery: Parse with confidence 0.6.
    """
    pattern_entities: list[ExtractedEntity] = []
    for match in _QUOTED.finditer(query):
        value = match.group(1).strip()
        if value:
            pattern_entities.append(
                ExtractedEntity(name=value, type=EntityType.OTHER, text=value, confidence=0.7)
            )
    for match in _PRODUCT_CODE.finditer(query):
        value = match.group(0).strip()
        pattern_entities.append(
            ExtractedEntity(name=value, type=EntityType.PRODUCT, text=value, confidence=0.6)
        )
    for match in _YEAR.finditer(query):
        value = match.group(0)
        pattern_entities.append(
            ExtractedEntity(name=value, type=EntityType.DATE, text=value, confidence=0.9)
        )

    entities = merge_entities(
        rule_entities,
        postprocess([], pre_mapped or {}),
        pattern_entities,
    )
    keywords = [w for w in _WORD_SPLIT.split(query) if len(w) > 1 and w not in STOP_WORDS][:5]

    return ParsedQuery(
        original_query=query,
        entities=entities,
        intent=_keyword_intent(query),
        complexity=complexity_for(len(entities)),
        confidence=0.6,
        keywords=keywords,
    )


async def parse_query(query: str, model: str, client: genai.Client) -> ParsedQuery:
    """Interpret a user query. Never raises.

    Args:
        query: Raw user query.
        model: Gemini model name; also drives the capability heuristics.
        client: Gemini client (injected).

    Returns:
        ParsedQuery: Entities, relations, intent, complexity and keywords.
    """
    text = query.strip()
    if not text:
        return ParsedQuery(original_query=query, confidence=0.1)

    if is_small_talk(text):
        logger.info("parse_small_talk", query=text)
        return ParsedQuery(
            original_query=query,
            intent=Intent.EXPLORATORY,
            complexity=Complexity.SIMPLE,
            confidence=0.95,
            is_small_talk=True,
        )

    rule_entities = detect(text)
    capability = model_capability(model)
    pre_mapped: dict[str, str] = {}
    prompt_text = text
    if capability == Capability.LOW:
        prompt_text, pre_mapped = preprocess(text)

    try:
        raw = await asyncio.to_thread(
            gemini_generate,
            client,
            EXTRACTION_PROMPT.format(query=prompt_text),
            model=model,
            response_mime_type="application/json",
            temperature=PARSER_TEMPERATURE,
        )
    except Exception as e:
        logger.warning("parse_model_failed", error=str(e))
        return fallback_parse(query, rule_entities, pre_mapped)

    response, decoded = decode_model(raw, ExtractionResponse)
    if not decoded:
        logger.warning("parse_response_empty", model=model)
        return fallback_parse(query, rule_entities, pre_mapped)

    model_entities = filter_hallucinations(
        _coerce_entities(response.entities), text, prompt_text
    )
    if capability == Capability.LOW:
        model_entities = postprocess(model_entities, pre_mapped)

    entities = merge_entities(rule_entities, model_entities)
    confidence = response.confidence if response.confidence is not None else 0.8

    logger.info(
        "parse_done",
        capability=capability.value,
        rule_entities=len(rule_entities),
        model_entities=len(model_entities),
        total=len(entities),
    )
    return ParsedQuery(
        original_query=query,
        entities=entities,
        logical_relations=_coerce_relations(response.logical_relations),
        intent=normalize_intent(response.intent),
        complexity=complexity_for(len(entities)),
        confidence=min(max(confidence, 0.0), 1.0),
        keywords=[str(k) for k in response.keywords if isinstance(k, (str, int, float)) and str(k).strip()],
    )


@pipeline_step("parse")
async def cognitive_parse(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
    """Parse the question into a ``ParsedQuery``.

    Args:
        state: Current graph state.
        config: LangGraph runtime configuration.

    Returns:
        dict[str, Any]: Partial state update with parsed_query.
    """
    configuration = Configuration.from_runnable_config(config)
    client = await gemini_client.get_client()
    parsed = await parse_query(state.query, configuration.model, client)
    return {
        "parsed_query": parsed,
        "step_details": {
            "entities": [f"{e.name}({e.type.value})" for e in parsed.entities],
            "intent": parsed.intent.value,
            "small_talk": parsed.is_small_talk,
        },
    }
