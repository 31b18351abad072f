# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Graph node functions for the LangGraph pipeline.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Graph node functions for the LangGraph pipeline."""

from adaptive_rag.nodes.generation import generate
from adaptive_rag.nodes.parsing import cognitive_parse
from adaptive_rag.nodes.retrieval import rerank_results, search
from adaptive_rag.nodes.strategy import route, validate_entities_node

__all__ = [
    "cognitive_parse",
    "generate",
    "rerank_results",
    "route",
    "search",
    "validate_entities_node",
]
