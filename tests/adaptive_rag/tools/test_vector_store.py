# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Tests for Pinecone vector search functions.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

from unittest.mock import MagicMock

import pytest

from adaptive_rag.schemas import ConstraintOperator, MatchType, SearchConstraint
from adaptive_rag.tools.vector_store import (
    build_filter_expression,
    contains_terms,
    vector_search,
)


def _constraint(field, operator, value):
    return SearchConstraint(field=field, operator=operator, value=value)


# --- build_filter_expression ---


def test_contains_is_never_pushed_down():
    constraints = [_constraint("organization", ConstraintOperator.CONTAINS, "Apple")]
    assert build_filter_expression(constraints) is None


def test_single_clause_is_not_wrapped():
    constraints = [_constraint("year", ConstraintOperator.EQUALS, 2024)]
    assert build_filter_expression(constraints) == {"year": {"$eq": 2024}}


def test_multiple_clauses_are_and_combined():
    constraints = [
        _constraint("organization", ConstraintOperator.CONTAINS, "Apple"),
        _constraint("lang", ConstraintOperator.NOT_EQUALS, "en"),
        _constraint("category", ConstraintOperator.IN_SET, ["news", "blog"]),
        _constraint("year", ConstraintOperator.RANGE, {"gte": 2020, "lte": 2024}),
    ]
    assert build_filter_expression(constraints) == {
        "$and": [
            {"lang": {"$ne": "en"}},
            {"category": {"$in": ["news", "blog"]}},
            {"year": {"$gte": 2020, "$lte": 2024}},
        ]
    }


def test_in_set_wraps_scalar():
    constraints = [_constraint("category", ConstraintOperator.IN_SET, "news")]
    assert build_filter_expression(constraints) == {"category": {"$in": ["news"]}}


def test_range_accepts_pair_with_open_end():
    constraints = [_constraint("year", ConstraintOperator.RANGE, [2020, None])]
    assert build_filter_expression(constraints) == {"year": {"$gte": 2020}}


def test_malformed_range_raises():
    constraints = [_constraint("year", ConstraintOperator.RANGE, "recent")]
    with pytest.raises(ValueError):
        build_filter_expression(constraints)


def test_no_constraints_means_no_filter():
    assert build_filter_expression([]) is None


def test_contains_terms_keeps_order_and_skips_other_operators():
    constraints = [
        _constraint("organization", ConstraintOperator.CONTAINS, "Apple"),
        _constraint("year", ConstraintOperator.EQUALS, "2024"),
        _constraint("location", ConstraintOperator.CONTAINS, ["上海", ""]),
    ]
    assert contains_terms(constraints) == ["Apple", "上海"]


# --- vector_search ---


def test_vector_search_calls_index_query():
    mock_index = MagicMock()
    mock_index.query.return_value = {
        "matches": [{"id": "1", "score": 0.9, "metadata": {"text": "hello", "source": "a.md"}}]
    }

    results = vector_search(mock_index, [0.1, 0.2, 0.3], top_k=3)

    mock_index.query.assert_called_once_with(
        vector=[0.1, 0.2, 0.3], top_k=3, include_metadata=True
    )
    assert results[0].id == "1"
    assert results[0].content == "hello"
    assert results[0].metadata == {"source": "a.md"}
    assert results[0].match_type == MatchType.SEMANTIC


def test_vector_search_with_filter_and_namespace():
    mock_index = MagicMock()
    mock_index.query.return_value = {"matches": []}

    filter_dict = {"year": {"$eq": 2024}}
    vector_search(mock_index, [0.1], filter_dict=filter_dict, namespace="docs")

    mock_index.query.assert_called_once_with(
        vector=[0.1], top_k=5, include_metadata=True, filter=filter_dict, namespace="docs"
    )


def test_vector_search_applies_similarity_floor():
    mock_index = MagicMock()
    mock_index.query.return_value = {
        "matches": [
            {"id": "keep", "score": 0.5, "metadata": {"text": "a"}},
            {"id": "drop", "score": 0.2, "metadata": {"text": "b"}},
        ]
    }

    results = vector_search(mock_index, [0.1], min_score=0.3, match_type=MatchType.STRUCTURED)

    assert [r.id for r in results] == ["keep"]
    assert results[0].match_type == MatchType.STRUCTURED


def test_vector_search_reads_sdk_objects():
    match = MagicMock(id="x", score=0.8, metadata={"text": "sdk text"})
    mock_index = MagicMock()
    mock_index.query.return_value = MagicMock(matches=[match])

    results = vector_search(mock_index, [0.1])

    assert results[0].content == "sdk text"
    assert results[0].score == 0.8
