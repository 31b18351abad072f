# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Graph state definition for the LangGraph pipeline.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Graph state definition for the LangGraph pipeline."""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import Annotated, Optional

from adaptive_rag.schemas import (
    ParsedQuery,
    RankedResult,
    RoutingDecision,
    SearchResult,
    ValidatedEntity,
    WorkflowStep,
)


@dataclass
class PipelineState:
    """Per-query state. Histories use additive reducers; the rest is last-write-wins."""

    query: str = ""

    parsed_query: Optional[ParsedQuery] = None
    validated_entities: list[ValidatedEntity] = field(default_factory=list)

    # Routing history, one decision per pass through the route node
    decisions: Annotated[list[RoutingDecision], operator.add] = field(default_factory=list)
    search_iterations: int = 0

    # Latest search output; replaced on every search
    search_results: list[SearchResult] = field(default_factory=list)
    ranked_results: list[RankedResult] = field(default_factory=list)

    final_answer: str = ""

    # Execution trace, one step per node execution
    steps: Annotated[list[WorkflowStep], operator.add] = field(default_factory=list)
    total_duration_ms: float = 0.0
    failed: bool = False

    @property
    def last_decision(self) -> RoutingDecision | None:
        return self.decisions[-1] if self.decisions else None
