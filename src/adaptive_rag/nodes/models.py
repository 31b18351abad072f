# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Pydantic models for constrained LLM generation.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Pydantic models for constrained LLM generation.

Every field has a default so a partially decoded response still validates.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExtractionResponse(BaseModel):
    """Schema for the Cognitive Parser extraction call."""
    model_config = ConfigDict(populate_by_name=True)

    entities: List[dict[str, Any]] = Field(default_factory=list, description="Entities literally present in the query.")
    logical_relations: List[dict[str, Any]] = Field(default_factory=list, alias="logicalRelations")
    intent: str = Field(default="", description="factual|conceptual|comparison|procedural|exploratory")
    complexity: str = Field(default="", description="simple|moderate|complex")
    confidence: Optional[float] = None
    keywords: List[Any] = Field(default_factory=list)


class ResolutionResponse(BaseModel):
    """Schema for registry candidate adjudication."""
    model_config = ConfigDict(populate_by_name=True)

    is_match: Optional[bool] = Field(default=None, alias="isMatch")
    matched_entity: str = Field(default="", alias="matchedEntity")
    confidence: Optional[float] = None
    normalized_name: str = Field(default="", alias="normalizedName")
    suggestions: List[str] = Field(default_factory=list)


class RerankResponse(BaseModel):
    """Schema for the relevance judge."""
    model_config = ConfigDict(populate_by_name=True)

    relevance_score: Optional[float] = Field(default=None, alias="relevanceScore")
    explanation: str = ""
    matched_entities: List[str] = Field(default_factory=list, alias="matchedEntities")
    key_information: str = Field(default="", alias="keyInformation")
