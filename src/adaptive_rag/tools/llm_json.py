# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Layered decoder for JSON emitted by language models.
# Pure functions, never raise: the worst case is the EMPTY_JSON sentinel.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Layered decoder for JSON emitted by language models."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


@dataclass(frozen=True)
class DecodedJson:
    """Result of decoding a model response.

    Attributes:
        data: The decoded JSON object (empty for the sentinel).
        method: Which layer produced ``data``.
    """

    data: dict[str, Any] = field(default_factory=dict)
    method: str = "empty"

    @property
    def ok(self) -> bool:
        return self.method != "empty"


EMPTY_JSON = DecodedJson()


def _strip_fences(text: str) -> str:
    return _FENCE.sub("", text.strip()).strip()


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _outermost_braces(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def _repair_brackets(text: str) -> str | None:
    """Close brackets left open by a truncated response."""
    start = text.find("{")
    if start < 0:
        return None
    candidate = _TRAILING_COMMA.sub(r"\1", text[start:].rstrip().rstrip(","))

    stack: list[str] = []
    in_string = False
    escaped = False
    for char in candidate:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()

    if in_string:
        candidate += '"'
    return candidate + "".join(reversed(stack))


def _scrape_fields(text: str, fields: Iterable[str]) -> dict[str, Any]:
    """Pull individual ``"key": value`` pairs out of otherwise broken JSON."""
    scraped: dict[str, Any] = {}
    for name in fields:
        key = re.escape(name)
        array = re.search(rf'"{key}"\s*:\s*(\[.*?\])', text, re.DOTALL)
        if array:
            value = _loads_list(array.group(1))
            if value is not None:
                scraped[name] = value
                continue
        string = re.search(rf'"{key}"\s*:\s*"((?:[^"\\]|\\.)*)"', text)
        if string:
            scraped[name] = string.group(1)
            continue
        scalar = re.search(rf'"{key}"\s*:\s*(-?\d+(?:\.\d+)?|true|false|null)', text)
        if scalar:
            scraped[name] = json.loads(scalar.group(1))
    return scraped


def _loads_list(text: str) -> list[Any] | None:
    try:
        value = json.loads(_TRAILING_COMMA.sub(r"\1", text))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None


def decode_llm_json(raw: Any, fields: Iterable[str] = ()) -> DecodedJson:
    """Decode a JSON object from a model response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract the outermost ``{...}`` block, then json.loads
    3. Balance unclosed brackets/braces of a truncated block, then json.loads
    4. Scrape the requested ``fields`` one by one with patterns
    5. Return ``EMPTY_JSON``

    Args:
        raw: Model response (string, or an already-parsed dict).
        fields: Top-level keys worth scraping when every parse fails.

    Returns:
        DecodedJson: Decoded object and the layer that produced it.
    """
    if isinstance(raw, dict):
        return DecodedJson(raw, "direct")
    if not isinstance(raw, str) or not raw.strip():
        return EMPTY_JSON

    text = _strip_fences(raw)

    data = _loads_object(text)
    if data is not None:
        return DecodedJson(data, "direct")

    block = _outermost_braces(text)
    if block is not None:
        data = _loads_object(block)
        if data is not None:
            return DecodedJson(data, "braces")

    repaired = _repair_brackets(text)
    if repaired is not None:
        data = _loads_object(repaired)
        if data is not None:
            return DecodedJson(data, "repaired")

    scraped = _scrape_fields(text, fields)
    if scraped:
        return DecodedJson(scraped, "scraped")

    logger.warning("llm_json_undecodable", preview=text[:200])
    return EMPTY_JSON


def decode_model(raw: Any, model: type[ModelT]) -> tuple[ModelT, bool]:
    """Decode a model response straight into a pydantic schema.

    Fields that fail validation fall back to the schema defaults.

    Args:
        raw: Model response.
        model: Pydantic schema with defaults for every field.

    Returns:
        tuple[ModelT, bool]: The instance and whether anything was decoded.
    """
    decoded = decode_llm_json(raw, fields=_wire_names(model))
    if not decoded.ok:
        return model(), False
    try:
        return model.model_validate(decoded.data), True
    except ValidationError as e:
        logger.warning("llm_json_schema_mismatch", schema=model.__name__, errors=e.error_count())
        cleaned = {}
        for key, value in decoded.data.items():
            try:
                model.model_validate({key: value})
            except ValidationError:
                continue
            cleaned[key] = value
        return model.model_validate(cleaned), bool(cleaned)


def _wire_names(model: type[BaseModel]) -> list[str]:
    return [info.alias or name for name, info in model.model_fields.items()]
