# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Reusable Pinecone vector search functions.
# Pure functions with dependency injection, no global config or singletons.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

from typing import Any, Sequence

from adaptive_rag.schemas import (
    ConstraintOperator,
    MatchType,
    SearchConstraint,
    SearchResult,
)

TEXT_FIELD = "text"

_RANGE_BOUNDS = {
    "gte": "$gte", "$gte": "$gte", "min": "$gte",
    "lte": "$lte", "$lte": "$lte", "max": "$lte",
    "gt": "$gt", "$gt": "$gt",
    "lt": "$lt", "$lt": "$lt",
}


def _range_clause(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        clause = {_RANGE_BOUNDS[k]: v for k, v in value.items() if k in _RANGE_BOUNDS}
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        clause = {k: v for k, v in zip(("$gte", "$lte"), value) if v is not None}
    else:
        clause = {}
    if not clause:
        raise ValueError(f"Unsupported range value: {value!r}")
    return clause


def build_filter_expression(constraints: Sequence[SearchConstraint]) -> dict[str, Any] | None:
    """Translate constraints into a Pinecone metadata filter.

    ``contains`` constraints are skipped: Pinecone metadata filters have no
    substring operator, so their values are applied to the query text instead
    (see ``contains_terms``).

    Args:
        constraints: Constraints of the current routing decision.

    Returns:
        dict[str, Any] | None: A filter dict, ``$and``-combined when more than
        one clause applies, or None when nothing can be pushed down.

    Raises:
        ValueError: On a malformed range value.
    """
    clauses: list[dict[str, Any]] = []
    for constraint in constraints:
        op = constraint.operator
        if op == ConstraintOperator.CONTAINS:
            continue
        if op == ConstraintOperator.EQUALS:
            clauses.append({constraint.field: {"$eq": constraint.value}})
        elif op == ConstraintOperator.NOT_EQUALS:
            clauses.append({constraint.field: {"$ne": constraint.value}})
        elif op == ConstraintOperator.IN_SET:
            values = constraint.value if isinstance(constraint.value, list) else [constraint.value]
            clauses.append({constraint.field: {"$in": values}})
        elif op == ConstraintOperator.RANGE:
            clauses.append({constraint.field: _range_clause(constraint.value)})

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def contains_terms(constraints: Sequence[SearchConstraint]) -> list[str]:
    """String values of the ``contains`` constraints, in constraint order."""
    terms: list[str] = []
    for constraint in constraints:
        if constraint.operator != ConstraintOperator.CONTAINS:
            continue
        values = constraint.value if isinstance(constraint.value, list) else [constraint.value]
        terms.extend(str(v) for v in values if isinstance(v, str) and v)
    return terms


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def vector_search(
    index: Any,
    query_vector: list[float],
    top_k: int = 5,
    filter_dict: dict | None = None,
    namespace: str = "",
    min_score: float = 0.0,
    match_type: MatchType = MatchType.SEMANTIC,
) -> list[SearchResult]:
    """Search a Pinecone index and convert matches to ``SearchResult``.

    Synchronous; wrap with ``asyncio.to_thread``.

    Args:
        index: Pinecone index handle (injected).
        query_vector: The query embedding vector.
        top_k: Number of top results to request.
        filter_dict: Optional metadata filter for the query.
        namespace: Pinecone namespace ("" is the default namespace).
        min_score: Similarity floor; matches at or above it are kept.
        match_type: Tag stored on every returned result.

    Returns:
        list[SearchResult]: Matches in store order, document text taken from
        the ``text`` metadata field.
    """
    kwargs: dict[str, Any] = dict(vector=query_vector, top_k=top_k, include_metadata=True)
    if filter_dict is not None:
        kwargs["filter"] = filter_dict
    if namespace:
        kwargs["namespace"] = namespace
    response = index.query(**kwargs)

    results: list[SearchResult] = []
    for match in _get(response, "matches", None) or []:
        score = float(_get(match, "score", 0.0) or 0.0)
        if score < min_score:
            continue
        metadata = dict(_get(match, "metadata", None) or {})
        results.append(SearchResult(
            id=str(_get(match, "id", "")),
            content=str(metadata.pop(TEXT_FIELD, "")),
            score=score,
            metadata=metadata,
            match_type=match_type,
        ))
    return results
