# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# LangGraph pipeline definition and entry points.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""LangGraph adaptive entity-routing pipeline.

parse -> validate -> route <-> search -> rerank -> generate. The route/search
loop relaxes constraints until enough results are found; see
``route_after_search`` for when it gives up. Any node failure ends the run.
"""

import time
from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph

from adaptive_rag.configuration import Configuration
from adaptive_rag.infrastructure.clients import gemini_client
from adaptive_rag.nodes.generation import generate
from adaptive_rag.nodes.parsing import cognitive_parse, parse_query
from adaptive_rag.nodes.retrieval import rerank_results, search
from adaptive_rag.nodes.strategy import route, validate_entities_node
from adaptive_rag.schemas import ParsedQuery, RoutingAction
from adaptive_rag.state import PipelineState

logger = structlog.get_logger()


def route_after_parse(state: PipelineState) -> str:
    """Stop on failure, otherwise validate.

    Args:
        state: Current graph state.

    Returns:
        str: Next node to execute.
    """
    if state.failed:
        return END
    return "validate"


def route_after_validate(state: PipelineState) -> str:
    """Small talk goes straight to the answer; everything else enters the loop.

    Args:
        state: Current graph state.

    Returns:
        str: Next node to execute.
    """
    if state.failed:
        return END
    if state.parsed_query is not None and state.parsed_query.is_small_talk:
        return "rerank"
    return "route"


def route_after_decision(state: PipelineState) -> str:
    """Search unless the latest decision says there is enough to answer.

    Args:
        state: Current graph state.

    Returns:
        str: Next node to execute.
    """
    if state.failed:
        return END
    if state.last_decision.action == RoutingAction.GENERATE_RESPONSE:
        return "rerank"
    return "search"


def route_after_search(state: PipelineState) -> str:
    """Leave the loop after a semantic search or once the search budget is spent.

    Args:
        state: Current graph state.

    Returns:
        str: Next node to execute.
    """
    if state.failed:
        return END
    decision = state.last_decision
    if decision.action == RoutingAction.SEMANTIC_SEARCH:
        return "rerank"
    if state.search_iterations > decision.max_retries:
        return "rerank"
    return "route"


def route_after_rerank(state: PipelineState) -> str:
    if state.failed:
        return END
    return "generate"


# Build the graph
builder = StateGraph(PipelineState, context_schema=Configuration)

builder.add_node("parse", cognitive_parse)
builder.add_node("validate", validate_entities_node)
builder.add_node("route", route)
builder.add_node("search", search)
builder.add_node("rerank", rerank_results)
builder.add_node("generate", generate)

builder.add_edge(START, "parse")
builder.add_conditional_edges("parse", route_after_parse, {"validate": "validate", END: END})
builder.add_conditional_edges(
    "validate",
    route_after_validate,
    {"route": "route", "rerank": "rerank", END: END},
)
builder.add_conditional_edges(
    "route",
    route_after_decision,
    {"search": "search", "rerank": "rerank", END: END},
)
builder.add_conditional_edges(
    "search",
    route_after_search,
    {"route": "route", "rerank": "rerank", END: END},
)
builder.add_conditional_edges("rerank", route_after_rerank, {"generate": "generate", END: END})
builder.add_edge("generate", END)

graph = builder.compile()


def recursion_limit_for(configuration: Configuration) -> int:
    """Graph step budget: two steps per loop iteration plus the fixed stages."""
    return 2 * (configuration.max_retries + 1) + 10


async def run_query(question: str, config: RunnableConfig | None = None) -> PipelineState:
    """Answer a question end to end.

    Args:
        question: The user question.
        config: Optional LangGraph config; tuning goes under ``configurable``.

    Returns:
        PipelineState: Final state with answer, trace and total duration.
    """
    configuration = Configuration.from_runnable_config(config)
    run_config: dict[str, Any] = dict(config or {})
    run_config.setdefault("recursion_limit", recursion_limit_for(configuration))

    started = time.perf_counter()
    result = await graph.ainvoke({"query": question}, config=run_config)
    state = PipelineState(**result)
    state.total_duration_ms = (time.perf_counter() - started) * 1000

    logger.info(
        "query_done",
        failed=state.failed,
        searches=state.search_iterations,
        steps=len(state.steps),
        duration_ms=round(state.total_duration_ms, 1),
    )
    return state


async def parse_only(question: str, config: RunnableConfig | None = None) -> ParsedQuery:
    """Run only the cognitive parser, without validation or retrieval.

    Args:
        question: The user question.
        config: Optional LangGraph config.

    Returns:
        ParsedQuery: The parse of ``question``.
    """
    configuration = Configuration.from_runnable_config(config)
    client = await gemini_client.get_client()
    return await parse_query(question, configuration.model, client)
