# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Entity-aware, self-correcting retrieval pipeline.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Adaptive Entity-Routing RAG.

This module exposes the compiled graph and its entry points.
"""

from adaptive_rag.graph import graph, parse_only, run_query

__all__ = ["graph", "parse_only", "run_query"]
