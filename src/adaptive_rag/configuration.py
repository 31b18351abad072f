# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Runtime configuration for the LangGraph pipeline.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Runtime configuration for the LangGraph pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from adaptive_rag.schemas import EntityType, normalize_entity_type

# Earlier types are more important; the last non-relaxed type is dropped first.
DEFAULT_CONSTRAINT_PRIORITY: tuple[EntityType, ...] = (
    EntityType.PERSON,
    EntityType.ORGANIZATION,
    EntityType.PRODUCT,
    EntityType.EVENT,
    EntityType.LOCATION,
    EntityType.DATE,
    EntityType.CONCEPT,
    EntityType.OTHER,
)


@dataclass(frozen=True)
class Configuration:
    """Runtime configuration for the pipeline, decoupled from environment secrets."""

    model: str = field(
        default="gemini-2.0-flash",
        metadata={"description": "The name of the language model to use."},
    )
    retrieval_k: int = field(
        default=5,
        metadata={"description": "Number of ranked documents handed to the answer step."},
    )
    max_retries: int = field(
        default=3,
        metadata={"description": "Constraint relaxation budget per query."},
    )
    min_result_count: int = field(
        default=3,
        metadata={"description": "Hits needed before the loop stops searching."},
    )
    similarity_threshold: float = field(
        default=0.3,
        metadata={"description": "Similarity floor applied to vector store hits."},
    )
    enable_reranking: bool = field(
        default=True,
        metadata={"description": "Score candidates with the language model before answering."},
    )
    rerank_candidates: int = field(
        default=10,
        metadata={"description": "How many leading candidates the reranker scores."},
    )
    constraint_priority: tuple[EntityType, ...] = field(
        default=DEFAULT_CONSTRAINT_PRIORITY,
        metadata={"description": "Entity type importance order used for relaxation."},
    )

    def __post_init__(self) -> None:
        priority = tuple(normalize_entity_type(t) for t in self.constraint_priority)
        object.__setattr__(self, "constraint_priority", priority)

    def priority_of(self, entity_type: EntityType) -> int:
        """Rank of a type in ``constraint_priority``; unlisted types rank last."""
        try:
            return self.constraint_priority.index(entity_type)
        except ValueError:
            return len(self.constraint_priority)

    @classmethod
    def from_runnable_config(
        cls, config: dict[str, Any] | None = None
    ) -> Configuration:
        """Extract configuration from LangGraph runtime config."""
        if not config or "configurable" not in config:
            return cls()
        configurable = config["configurable"]
        return cls(
            **{k: v for k, v in configurable.items() if k in cls.__dataclass_fields__}
        )
