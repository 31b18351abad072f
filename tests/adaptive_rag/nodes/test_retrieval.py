# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Tests for search execution and reranking.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Tests for search execution and reranking."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from adaptive_rag.nodes.retrieval import (
    hybrid_search,
    rerank,
    rerank_results,
    search,
    semantic_search,
    structured_search,
)
from adaptive_rag.schemas import (
    ConstraintOperator,
    EntityType,
    MatchType,
    ParsedQuery,
    RoutingAction,
    RoutingDecision,
    SearchConstraint,
    SearchResult,
    StepStatus,
)
from adaptive_rag.state import PipelineState

pytestmark = pytest.mark.anyio


def _embedder(vector=None, error=None):
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=vector or [0.1, 0.2], side_effect=error)
    return embedder


def _index(*matches):
    index = MagicMock()
    index.query.return_value = {
        "matches": [
            {"id": doc_id, "score": score, "metadata": {"text": text}}
            for doc_id, score, text in matches
        ]
    }
    return index


def _contains(field, value, entity_type=None):
    return SearchConstraint(
        field=field, operator=ConstraintOperator.CONTAINS, value=value, entity_type=entity_type
    )


def _hit(doc_id, score, match_type=MatchType.SEMANTIC):
    return SearchResult(id=doc_id, content=f"content {doc_id}", score=score, match_type=match_type)


# --- structured_search ---


async def test_structured_search_augments_query_and_boosts():
    embedder = _embedder()
    index = _index(
        ("a", 0.5, "Apple opened a store in 上海"),
        ("b", 0.7, "unrelated text"),
        ("c", 0.95, "Apple and 上海 again"),
    )
    constraints = [_contains("organization", "Apple"), _contains("location", "上海")]

    results = await structured_search("门店", constraints, 6, index, embedder)

    embedder.embed.assert_awaited_once_with("门店 Apple 上海")
    assert "filter" not in index.query.call_args.kwargs
    by_id = {r.id: r for r in results}
    assert by_id["a"].score == pytest.approx(0.6)
    assert by_id["b"].score == pytest.approx(0.7)
    assert by_id["c"].score == 1.0
    assert [r.id for r in results] == ["c", "b", "a"]
    assert all(r.match_type == MatchType.STRUCTURED for r in results)


async def test_structured_search_pushes_down_metadata_filters():
    index = _index()
    constraints = [
        _contains("organization", "Apple"),
        SearchConstraint(field="year", operator=ConstraintOperator.EQUALS, value="2024"),
    ]

    await structured_search("q", constraints, 4, index, _embedder(), namespace="docs")

    kwargs = index.query.call_args.kwargs
    assert kwargs["filter"] == {"year": {"$eq": "2024"}}
    assert kwargs["namespace"] == "docs"
    assert kwargs["top_k"] == 4


async def test_embedding_failure_returns_empty():
    index = _index(("a", 0.9, "text"))
    results = await structured_search(
        "q", [_contains("organization", "Apple")], 5, index, _embedder(error=RuntimeError("hf down"))
    )
    assert results == []
    index.query.assert_not_called()


async def test_store_failure_returns_empty():
    index = MagicMock()
    index.query.side_effect = ConnectionError("pinecone down")
    assert await semantic_search("q", 5, index, _embedder()) == []


async def test_semantic_search_applies_similarity_floor():
    index = _index(("a", 0.9, "x"), ("b", 0.1, "y"))
    results = await semantic_search("q", 5, index, _embedder(), min_score=0.3)
    assert [r.id for r in results] == ["a"]
    assert results[0].match_type == MatchType.SEMANTIC


# --- hybrid_search ---


async def test_hybrid_search_merges_by_id_keeping_max():
    structured_hits = [_hit("a", 0.9, MatchType.STRUCTURED), _hit("b", 0.4, MatchType.STRUCTURED)]
    semantic_hits = [_hit("b", 0.8), _hit("c", 0.5), _hit("a", 0.3)]

    with (
        patch("adaptive_rag.nodes.retrieval.structured_search", new=AsyncMock(return_value=structured_hits)),
        patch("adaptive_rag.nodes.retrieval.semantic_search", new=AsyncMock(return_value=semantic_hits)),
    ):
        results = await hybrid_search("q", [], 10, MagicMock(), _embedder())

    assert [(r.id, r.score) for r in results] == [("a", 0.9), ("b", 0.8), ("c", 0.5)]
    assert all(r.match_type == MatchType.HYBRID for r in results)
    union = {h.id for h in structured_hits} | {h.id for h in semantic_hits}
    assert {r.id for r in results} <= union


async def test_hybrid_search_truncates_to_top_k():
    with (
        patch("adaptive_rag.nodes.retrieval.structured_search", new=AsyncMock(return_value=[_hit("a", 0.9)])),
        patch("adaptive_rag.nodes.retrieval.semantic_search", new=AsyncMock(return_value=[_hit("b", 0.8), _hit("c", 0.7)])),
    ):
        results = await hybrid_search("q", [], 2, MagicMock(), _embedder())

    assert [r.id for r in results] == ["a", "b"]


# --- rerank ---


def _judgement(score):
    return json.dumps({"relevanceScore": score, "explanation": f"score {score}", "matchedEntities": []})


async def test_rerank_orders_by_model_score():
    hits = [_hit("a", 0.9), _hit("b", 0.8), _hit("c", 0.7)]
    parsed = ParsedQuery(original_query="q")

    with patch(
        "adaptive_rag.nodes.retrieval.gemini_generate",
        side_effect=[_judgement(0.2), _judgement(0.95), _judgement(0.6)],
    ):
        ranked = await rerank(hits, parsed, 2, MagicMock(), "gemini-2.0-flash")

    assert [r.id for r in ranked] == ["b", "c"]
    assert ranked[0].rerank_score == 0.95
    assert ranked[0].relevance_explanation == "score 0.95"
    assert ranked[0].score == 0.8


async def test_rerank_failure_keeps_similarity_score():
    hits = [_hit("a", 0.9), _hit("b", 0.8)]
    parsed = ParsedQuery(original_query="q")

    with patch(
        "adaptive_rag.nodes.retrieval.gemini_generate",
        side_effect=[RuntimeError("quota"), "not json at all"],
    ):
        ranked = await rerank(hits, parsed, 5, MagicMock(), "gemini-2.0-flash")

    assert [(r.id, r.rerank_score) for r in ranked] == [("a", 0.9), ("b", 0.8)]
    assert all(r.relevance_explanation == "rerank failed" for r in ranked)


async def test_rerank_only_judges_leading_candidates():
    hits = [_hit(str(i), 0.5) for i in range(12)]
    parsed = ParsedQuery(original_query="q")

    with patch(
        "adaptive_rag.nodes.retrieval.gemini_generate", return_value=_judgement(0.1)
    ) as mock_generate:
        ranked = await rerank(hits, parsed, 12, MagicMock(), "gemini-2.0-flash")

    assert mock_generate.call_count == 10
    assert [r.id for r in ranked[:2]] == ["10", "11"]
    assert all(r.relevance_explanation == "not reranked" for r in ranked[:2])


async def test_rerank_disabled_passes_through():
    hits = [_hit("a", 0.6), _hit("b", 0.9)]
    with patch("adaptive_rag.nodes.retrieval.gemini_generate") as mock_generate:
        ranked = await rerank(hits, ParsedQuery(original_query="q"), 5, MagicMock(), "m", enabled=False)

    mock_generate.assert_not_called()
    assert [r.id for r in ranked] == ["b", "a"]
    assert ranked[0].rerank_score == 0.9
    assert ranked[0].relevance_explanation == "reranking disabled"


async def test_rerank_clamps_model_score():
    with patch("adaptive_rag.nodes.retrieval.gemini_generate", return_value=_judgement(7)):
        [ranked] = await rerank([_hit("a", 0.5)], ParsedQuery(original_query="q"), 5, MagicMock(), "m")
    assert ranked.rerank_score == 1.0


# --- nodes ---


def _pinecone_manager(index=None):
    manager = MagicMock()
    manager.get_index = AsyncMock(return_value=index or MagicMock())
    manager.index_name = "test-index"
    return manager


@pytest.mark.parametrize(
    "action, target",
    [
        (RoutingAction.STRUCTURED_SEARCH, "structured_search"),
        (RoutingAction.RELAX_CONSTRAINTS, "structured_search"),
        (RoutingAction.SEMANTIC_SEARCH, "semantic_search"),
        (RoutingAction.HYBRID_SEARCH, "hybrid_search"),
    ],
)
async def test_search_node_dispatches_on_action(action, target):
    constraints = [_contains("organization", "Apple", EntityType.ORGANIZATION)]
    decision = RoutingDecision(action=action, constraints=constraints)
    state = PipelineState(query="Apple 新闻", decisions=[decision], search_iterations=1)

    with (
        patch("adaptive_rag.nodes.retrieval.pinecone_client", _pinecone_manager()),
        patch(f"adaptive_rag.nodes.retrieval.{target}", new=AsyncMock(return_value=[_hit("a", 0.9)])) as mock_search,
    ):
        result = await search(state, {"configurable": {"retrieval_k": 4}})

    mock_search.assert_awaited_once()
    assert mock_search.await_args.args[0] == "Apple 新闻"
    assert 8 in mock_search.await_args.args
    assert result["search_iterations"] == 2
    assert [r.id for r in result["search_results"]] == ["a"]
    assert result["steps"][0].details["action"] == action.value


async def test_search_node_survives_missing_index():
    manager = MagicMock()
    manager.get_index = AsyncMock(side_effect=RuntimeError("no such index"))
    manager.index_name = "missing"
    state = PipelineState(query="q", decisions=[RoutingDecision(action=RoutingAction.SEMANTIC_SEARCH)])

    with patch("adaptive_rag.nodes.retrieval.pinecone_client", manager):
        result = await search(state, {})

    assert result["search_results"] == []
    assert result["search_iterations"] == 1
    assert result["steps"][0].status == StepStatus.COMPLETED


async def test_rerank_node_skips_small_talk():
    state = PipelineState(
        query="你好",
        parsed_query=ParsedQuery(original_query="你好", is_small_talk=True),
        search_results=[_hit("a", 0.9)],
    )
    result = await rerank_results(state, {})
    assert result["ranked_results"] == []
    assert result["steps"][0].status == StepStatus.SKIPPED


@patch("adaptive_rag.nodes.retrieval.gemini_client")
async def test_rerank_node_keeps_retrieval_k(mock_gemini_client):
    mock_gemini_client.get_client = AsyncMock(return_value=MagicMock())
    state = PipelineState(
        query="q",
        parsed_query=ParsedQuery(original_query="q"),
        search_results=[_hit(str(i), 0.9 - i * 0.05) for i in range(6)],
    )

    result = await rerank_results(state, {"configurable": {"retrieval_k": 3, "enable_reranking": False}})

    assert [r.id for r in result["ranked_results"]] == ["0", "1", "2"]
    assert result["steps"][0].details["count"] == 3
