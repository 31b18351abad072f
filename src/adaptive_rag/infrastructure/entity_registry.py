# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Canonical entity registry backed by a JSON snapshot.
# The only state shared across queries; every access holds the lock.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Canonical entity registry backed by a JSON snapshot."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import structlog

from adaptive_rag.schemas import (
    EntityType,
    RegistryRecord,
    ValidatedEntity,
    normalize_entity_type,
)

logger = structlog.get_logger()

SNAPSHOT_VERSION = "1.0"

NAME_SIMILARITY = 0.5
ALIAS_SIMILARITY = 0.6

DEFAULT_RECORDS: tuple[dict[str, Any], ...] = (
    {"standardName": "上海", "type": "LOCATION", "aliases": ["魔都", "Shanghai", "沪"], "hierarchy": ["中国", "上海"]},
    {"standardName": "北京", "type": "LOCATION", "aliases": ["帝都", "Beijing", "京"], "hierarchy": ["中国", "北京"]},
    {"standardName": "深圳", "type": "LOCATION", "aliases": ["鹏城", "Shenzhen"], "hierarchy": ["中国", "广东", "深圳"]},
    {"standardName": "Apple", "type": "ORGANIZATION", "aliases": ["苹果", "苹果公司", "Apple Inc.", "AAPL"]},
    {"standardName": "Google", "type": "ORGANIZATION", "aliases": ["谷歌", "Alphabet", "GOOG"]},
    {"standardName": "Microsoft", "type": "ORGANIZATION", "aliases": ["微软", "MS", "MSFT"]},
    {"standardName": "Tesla", "type": "ORGANIZATION", "aliases": ["特斯拉", "TSLA"]},
    {"standardName": "SpaceX", "type": "ORGANIZATION", "aliases": ["太空探索技术公司", "Space Exploration Technologies Corp."]},
    {
        "standardName": "Elon Musk",
        "type": "PERSON",
        "aliases": ["马斯克", "埃隆·马斯克", "老马", "Musk"],
        "relatedEntities": ["Tesla", "SpaceX"],
    },
    {"standardName": "Tim Cook", "type": "PERSON", "aliases": ["库克", "蒂姆·库克"], "relatedEntities": ["Apple"]},
    {"standardName": "iPhone 15", "type": "PRODUCT", "aliases": ["iPhone15", "iPhone 15 Pro", "iPhone 15 Pro Max"], "relatedEntities": ["Apple"]},
    {"standardName": "ChatGPT", "type": "PRODUCT", "aliases": ["GPT", "GPT-4", "GPT-4o", "OpenAI GPT"]},
)


def jaccard(a: str, b: str) -> float:
    """Jaccard similarity of the lower-cased character sets of two strings."""
    left, right = set(a.lower()), set(b.lower())
    if not left and not right:
        return 0.0
    return len(left & right) / len(left | right)


def type_compatible(left: EntityType, right: EntityType) -> bool:
    """Same type, or either side is the catch-all OTHER."""
    return left == right or EntityType.OTHER in (left, right)


def _field_name(key: str) -> str:
    for name, info in RegistryRecord.model_fields.items():
        if key in (name, info.alias):
            return name
    raise ValueError(f"Unknown registry field: {key}")


class EntityRegistry:
    """Canonical entities with aliases, persisted as a JSON snapshot.

    The snapshot is loaded lazily on first use. A missing file is seeded
    with ``DEFAULT_RECORDS`` and written back; a corrupt file is left on
    disk untouched and the defaults are served from memory.

    Args:
        path: Location of the snapshot file.
        defaults: Records used for first-run seeding and ``reset``.
    """

    def __init__(
        self,
        path: str | Path,
        defaults: Iterable[dict[str, Any]] = DEFAULT_RECORDS,
    ) -> None:
        self._path = Path(path)
        self._defaults = tuple(defaults)
        self._records: dict[str, RegistryRecord] = {}
        self._loaded = False
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            self.load()
            return len(self._records)

    # --- persistence ---

    def load(self) -> None:
        """Load the snapshot once; later calls are no-ops."""
        with self._lock:
            if self._loaded:
                return
            self._loaded = True

            if not self._path.exists():
                self._seed()
                self._persist()
                logger.info("registry_seeded", path=str(self._path), count=len(self._records))
                return

            try:
                document = json.loads(self._path.read_text(encoding="utf-8"))
                records = [RegistryRecord.model_validate(r) for r in document.get("entities", [])]
            except (OSError, ValueError, AttributeError) as e:
                # pydantic.ValidationError subclasses ValueError
                logger.error("registry_snapshot_unreadable", path=str(self._path), error=str(e))
                self._seed()
                return

            self._records = {}
            for record in records:
                self._insert(record)
            logger.info("registry_loaded", path=str(self._path), count=len(self._records))

    def flush(self) -> None:
        """Write the current records to the snapshot file."""
        with self._lock:
            self.load()
            self._persist()

    def _seed(self) -> None:
        self._records = {}
        for raw in self._defaults:
            self._insert(RegistryRecord.model_validate(raw))

    def _persist(self) -> None:
        document = {
            "version": SNAPSHOT_VERSION,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
            "entities": [
                r.model_dump(mode="json", by_alias=True, exclude_none=True)
                for r in self._records.values()
            ],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _insert(self, record: RegistryRecord) -> None:
        if record.key in self._records:
            logger.info("registry_record_replaced", canonical_name=record.canonical_name)
        for alias in record.aliases:
            for other in self._records.values():
                if other.key == record.key:
                    continue
                if any(a.lower() == alias.lower() for a in other.aliases):
                    logger.warning(
                        "registry_alias_ambiguous",
                        alias=alias,
                        records=[other.canonical_name, record.canonical_name],
                    )
        self._records[record.key] = record

    # --- lookup ---

    def find_similar(
        self,
        name: str,
        entity_type: EntityType | str | None = None,
        limit: int = 5,
    ) -> list[RegistryRecord]:
        """Find registry records that could denote ``name``.

        Three tiers, concatenated in this order and de-duplicated:
        exact alias match, exact canonical-name match (both case-insensitive,
        type-compatible records first), then fuzzy character-set similarity
        against the canonical name (> 0.5) or any alias (> 0.6), restricted
        to type-compatible records.

        Args:
            name: Entity name as extracted from the query.
            entity_type: Extracted type; ``None`` matches every type.
            limit: Maximum number of records returned.

        Returns:
            list[RegistryRecord]: Candidates, best tier first.
        """
        query_type = normalize_entity_type(entity_type) if entity_type is not None else EntityType.OTHER
        needle = name.strip().lower()
        if not needle or limit <= 0:
            return []

        with self._lock:
            self.load()
            records = list(self._records.values())

        def compatible_first(matches: list[RegistryRecord]) -> list[RegistryRecord]:
            return sorted(matches, key=lambda r: not type_compatible(query_type, r.type))

        alias_hits = compatible_first(
            [r for r in records if any(a.lower() == needle for a in r.aliases)]
        )
        name_hits = compatible_first([r for r in records if r.key == needle])

        scored: list[tuple[float, RegistryRecord]] = []
        for record in records:
            if not type_compatible(query_type, record.type):
                continue
            name_score = jaccard(needle, record.canonical_name)
            alias_score = max((jaccard(needle, a) for a in record.aliases), default=0.0)
            if name_score > NAME_SIMILARITY or alias_score > ALIAS_SIMILARITY:
                scored.append((max(name_score, alias_score), record))
        scored.sort(key=lambda pair: pair[0], reverse=True)

        found: list[RegistryRecord] = []
        seen: set[str] = set()
        for record in [*alias_hits, *name_hits, *(r for _, r in scored)]:
            if record.key in seen:
                continue
            seen.add(record.key)
            found.append(record)
            if len(found) >= limit:
                break
        return found

    def get(self, canonical_name: str) -> RegistryRecord | None:
        with self._lock:
            self.load()
            return self._records.get(canonical_name.lower())

    def records(self) -> list[RegistryRecord]:
        """All records in insertion order."""
        with self._lock:
            self.load()
            return list(self._records.values())

    def records_by_type(self, entity_type: EntityType | str) -> list[RegistryRecord]:
        wanted = normalize_entity_type(entity_type)
        return [r for r in self.records() if r.type == wanted]

    # --- mutation ---

    def add(self, record: RegistryRecord, persist: bool = False) -> None:
        """Insert ``record``, replacing any record with the same canonical name."""
        with self._lock:
            self.load()
            self._insert(record)
            if persist:
                self._persist()

    def update(
        self, canonical_name: str, changes: dict[str, Any], persist: bool = False
    ) -> bool:
        """Apply field ``changes`` to an existing record.

        Keys may use either the Python or the snapshot (camelCase) spelling.
        Renaming the canonical name re-keys the record.

        Returns:
            bool: False when no record has ``canonical_name``.

        Raises:
            ValueError: On an unknown field name, an invalid value, or a
                rename onto another record's canonical name.
        """
        with self._lock:
            self.load()
            current = self._records.get(canonical_name.lower())
            if current is None:
                return False
            data = current.model_dump()
            data.update({_field_name(k): v for k, v in changes.items()})
            updated = RegistryRecord.model_validate(data)
            if updated.key != current.key and updated.key in self._records:
                raise ValueError(
                    f"Cannot rename {current.canonical_name!r}: "
                    f"{self._records[updated.key].canonical_name!r} already exists"
                )
            del self._records[current.key]
            self._insert(updated)
            if persist:
                self._persist()
            logger.info("registry_record_updated", canonical_name=updated.canonical_name)
            return True

    def remove(self, canonical_name: str, persist: bool = False) -> bool:
        """Delete a record; returns False when it does not exist."""
        with self._lock:
            self.load()
            removed = self._records.pop(canonical_name.lower(), None)
            if removed is None:
                return False
            if persist:
                self._persist()
            logger.info("registry_record_removed", canonical_name=removed.canonical_name)
            return True

    def promote(self, entity: ValidatedEntity, persist: bool = False) -> RegistryRecord:
        """Register a validated query entity as a new canonical record."""
        record = RegistryRecord.from_validated(entity)
        self.add(record, persist=persist)
        logger.info("registry_record_promoted", canonical_name=record.canonical_name)
        return record

    def reset(self) -> None:
        """Restore the built-in defaults and write them to disk."""
        with self._lock:
            self._loaded = True
            self._seed()
            self._persist()
            logger.info("registry_reset", count=len(self._records))
