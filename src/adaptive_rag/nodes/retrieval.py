# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Retrieval executor: structured, semantic and hybrid search plus reranking.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Retrieval nodes for the LangGraph pipeline.

Each search function embeds the query, searches the document index and
returns an empty list on store or embedding failure; the routing loop
treats that like a miss.
"""

import asyncio
from typing import Any, Sequence

import structlog
from google import genai
from langchain_core.runnables import RunnableConfig

from adaptive_rag.configuration import Configuration
from adaptive_rag.infrastructure.clients import (
    gemini_client,
    hf_embedding_client,
    pinecone_client,
)
from adaptive_rag.infrastructure.hf_embedding_client import HFEmbeddingClient
from adaptive_rag.nodes.models import RerankResponse
from adaptive_rag.nodes.tracing import pipeline_step
from adaptive_rag.schemas import (
    MatchType,
    ParsedQuery,
    RankedResult,
    RoutingAction,
    SearchConstraint,
    SearchResult,
    StepStatus,
)
from adaptive_rag.settings import settings
from adaptive_rag.state import PipelineState
from adaptive_rag.tools.gemini import gemini_generate
from adaptive_rag.tools.llm_json import decode_model
from adaptive_rag.tools.vector_store import (
    build_filter_expression,
    contains_terms,
    vector_search,
)

logger = structlog.get_logger()

BOOST_PER_MATCH = 0.1
RERANK_DOCUMENT_CHARS = 1500

RERANK_PROMPT = (
    "You are a document relevance judge. Rate how relevant the document is to the user query.\n\n"
    "User query: {query}\n"
    "Query intent: {intent}\n"
    "Extracted entities: {entities}\n\n"
    "DOCUMENT:\n"
    "{document}\n\n"
    "JSON RESPONSE FORMAT:\n"
    "{{\n"
    '  "relevanceScore": 0.0-1.0,\n'
    '  "explanation": "why the document is or is not relevant",\n'
    '  "matchedEntities": ["entities the document mentions"],\n'
    '  "keyInformation": "the key facts the document contributes"\n'
    "}}\n\n"
    "Respond with ONLY the JSON object."
)


async def _search(
    query_text: str,
    top_k: int,
    index: Any,
    embedder: HFEmbeddingClient,
    namespace: str,
    min_score: float,
    match_type: MatchType,
    constraints: Sequence[SearchConstraint] = (),
) -> list[SearchResult]:
    try:
        filter_dict = build_filter_expression(constraints)
        vector = await embedder.embed(query_text)
        return await asyncio.to_thread(
            vector_search,
            index,
            vector,
            top_k=top_k,
            filter_dict=filter_dict,
            namespace=namespace,
            min_score=min_score,
            match_type=match_type,
        )
    except Exception as e:
        logger.warning("vector_search_failed", match_type=match_type.value, error=str(e))
        return []


async def structured_search(
    query: str,
    constraints: Sequence[SearchConstraint],
    top_k: int,
    index: Any,
    embedder: HFEmbeddingClient,
    namespace: str = "",
    min_score: float = 0.0,
) -> list[SearchResult]:
    """Constrained search with entity-aware score boosting.

    ``contains`` values are appended to the query text before embedding;
    the other operators become a metadata filter. Each hit is boosted by 10%
    per ``contains`` value found in its content (case-insensitive), capped
    at 1.0.

    Args:
        query: Original user question.
        constraints: Constraints of the current routing decision.
        top_k: Number of hits to request.
        index: Pinecone index handle (injected).
        embedder: Query embedding client (injected).
        namespace: Pinecone namespace.
        min_score: Similarity floor.

    Returns:
        list[SearchResult]: Hits sorted by boosted score, descending.
    """
    terms = contains_terms(constraints)
    augmented = " ".join([query, *terms]) if terms else query
    hits = await _search(
        augmented, top_k, index, embedder, namespace, min_score, MatchType.STRUCTURED, constraints
    )

    lowered_terms = [t.lower() for t in terms]
    boosted: list[SearchResult] = []
    for hit in hits:
        content = hit.content.lower()
        matched = sum(1 for t in lowered_terms if t in content)
        score = min(1.0, hit.score * (1 + BOOST_PER_MATCH * matched)) if matched else hit.score
        boosted.append(hit.model_copy(update={"score": score}))
    boosted.sort(key=lambda r: r.score, reverse=True)

    logger.info("structured_search_done", count=len(boosted), terms=terms)
    return boosted


async def semantic_search(
    query: str,
    top_k: int,
    index: Any,
    embedder: HFEmbeddingClient,
    namespace: str = "",
    min_score: float = 0.0,
) -> list[SearchResult]:
    """Plain nearest-neighbour search over the document index."""
    hits = await _search(query, top_k, index, embedder, namespace, min_score, MatchType.SEMANTIC)
    logger.info("semantic_search_done", count=len(hits))
    return hits


async def hybrid_search(
    query: str,
    constraints: Sequence[SearchConstraint],
    top_k: int,
    index: Any,
    embedder: HFEmbeddingClient,
    namespace: str = "",
    min_score: float = 0.0,
) -> list[SearchResult]:
    """Run structured and semantic search concurrently and merge by id.

    When both searches return the same document the higher score wins.
    """
    structured, semantic = await asyncio.gather(
        structured_search(query, constraints, top_k, index, embedder, namespace, min_score),
        semantic_search(query, top_k, index, embedder, namespace, min_score),
    )

    merged: dict[str, SearchResult] = {}
    for hit in [*structured, *semantic]:
        existing = merged.get(hit.id)
        if existing is None or hit.score > existing.score:
            merged[hit.id] = hit.model_copy(update={"match_type": MatchType.HYBRID})

    results = sorted(merged.values(), key=lambda r: r.score, reverse=True)[:top_k]
    logger.info(
        "hybrid_search_done",
        structured=len(structured),
        semantic=len(semantic),
        merged=len(results),
    )
    return results


def _ranked(result: SearchResult, score: float, explanation: str) -> RankedResult:
    return RankedResult(**result.model_dump(), rerank_score=score, relevance_explanation=explanation)


async def _judge(
    result: SearchResult,
    parsed_query: ParsedQuery,
    client: genai.Client,
    model: str,
) -> RankedResult:
    prompt = RERANK_PROMPT.format(
        query=parsed_query.original_query,
        intent=parsed_query.intent.value,
        entities=", ".join(e.name for e in parsed_query.entities) or "-",
        document=result.content[:RERANK_DOCUMENT_CHARS],
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
    except Exception as e:
        logger.warning("rerank_model_failed", id=result.id, error=str(e))
        return _ranked(result, result.score, "rerank failed")

    response, decoded = decode_model(raw, RerankResponse)
    if not decoded or response.relevance_score is None:
        logger.warning("rerank_response_unusable", id=result.id)
        return _ranked(result, result.score, "rerank failed")
    score = min(max(response.relevance_score, 0.0), 1.0)
    return _ranked(result, score, response.explanation)


async def rerank(
    results: Sequence[SearchResult],
    parsed_query: ParsedQuery,
    top_k: int,
    client: genai.Client,
    model: str,
    enabled: bool = True,
    candidates: int = 10,
) -> list[RankedResult]:
    """Score the leading candidates with the model and keep the best ``top_k``.

    Candidates past ``candidates`` keep their similarity score. A failed
    judgement also keeps the similarity score, so reranking never drops or
    zeroes a hit.

    Args:
        results: Search hits, best first.
        parsed_query: Parse of the current query.
        top_k: Number of ranked results to keep.
        client: Gemini client (injected).
        model: Gemini model name.
        enabled: When False, pass through with the similarity score.
        candidates: How many leading hits the model scores.

    Returns:
        list[RankedResult]: At most ``top_k`` results, best rerank score first.
    """
    if not enabled:
        ranked = [_ranked(r, r.score, "reranking disabled") for r in results]
    else:
        ranked = []
        for position, result in enumerate(results):
            if position < candidates:
                ranked.append(await _judge(result, parsed_query, client, model))
            else:
                ranked.append(_ranked(result, result.score, "not reranked"))

    ranked.sort(key=lambda r: r.rerank_score, reverse=True)
    return ranked[:top_k]


@pipeline_step("search")
async def search(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
    """Execute the search action of the latest routing decision.

    Args:
        state: Current graph state.
        config: LangGraph runtime configuration.

    Returns:
        dict[str, Any]: Partial state with search_results and the incremented counter.
    """
    configuration = Configuration.from_runnable_config(config)
    decision = state.last_decision
    top_k = configuration.retrieval_k * 2
    iterations = state.search_iterations + 1

    try:
        index = await pinecone_client.get_index()
    except Exception as e:
        logger.warning("vector_index_unavailable", index=pinecone_client.index_name, error=str(e))
        return {
            "search_results": [],
            "search_iterations": iterations,
            "step_details": {"action": decision.action.value, "count": 0, "error": str(e)},
        }

    common = dict(
        index=index,
        embedder=hf_embedding_client,
        namespace=settings.pinecone_namespace,
        min_score=configuration.similarity_threshold,
    )
    if decision.action == RoutingAction.SEMANTIC_SEARCH:
        results = await semantic_search(state.query, top_k, **common)
    elif decision.action == RoutingAction.HYBRID_SEARCH:
        results = await hybrid_search(state.query, decision.constraints, top_k, **common)
    else:
        # structured_search and relax_constraints both search with the remaining constraints
        results = await structured_search(state.query, decision.constraints, top_k, **common)

    return {
        "search_results": results,
        "search_iterations": iterations,
        "step_details": {
            "action": decision.action.value,
            "iteration": iterations,
            "count": len(results),
            "top": [{"id": r.id, "score": round(r.score, 4)} for r in results[:3]],
        },
    }


@pipeline_step("rerank")
async def rerank_results(state: PipelineState, config: RunnableConfig) -> dict[str, Any]:
    """Rerank the latest search results."""
    configuration = Configuration.from_runnable_config(config)
    parsed = state.parsed_query
    if parsed is None or parsed.is_small_talk or not state.search_results:
        return {
            "ranked_results": [],
            "step_status": StepStatus.SKIPPED,
            "step_details": {"reason": "small talk" if parsed and parsed.is_small_talk else "no results"},
        }

    client = await gemini_client.get_client()
    ranked = await rerank(
        state.search_results,
        parsed,
        configuration.retrieval_k,
        client,
        configuration.model,
        enabled=configuration.enable_reranking,
        candidates=configuration.rerank_candidates,
    )
    logger.info("rerank_done", input=len(state.search_results), output=len(ranked))
    return {
        "ranked_results": ranked,
        "step_details": {
            "count": len(ranked),
            "scores": [round(r.rerank_score, 3) for r in ranked],
        },
    }
