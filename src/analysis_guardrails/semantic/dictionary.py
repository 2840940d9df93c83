from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ReferenceDataError
from ..models import EnrichedColumn, EnrichedSchema, NormalizedColumn
from ..normalize import normalize_header
from ..utils import read_json

logger = logging.getLogger(__name__)

DEFAULT_DICTIONARY_PATH = Path(__file__).parent / "data" / "semantic_dictionary.json"


class EntityType(str, Enum):
    COLUMN = "column"
    METRIC = "metric"


class SemanticEntry(BaseModel):
    """One versioned vocabulary entry: a canonical name plus the synonyms that resolve to it."""

    model_config = ConfigDict(frozen=True)

    entity_type: EntityType
    canonical_name: str
    synonyms: frozenset[str] = frozenset()
    description: str = ""
    version: int = Field(1, ge=1)

    @field_validator("canonical_name")
    @classmethod
    def _canonical_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("canonical_name must not be empty.")
        return v

    def match_keys(self) -> set[str]:
        keys = {normalize_header(self.canonical_name)}
        keys.update(normalize_header(s) for s in self.synonyms)
        keys.discard("")
        return keys


class SemanticDictionary:
    """
    Exact-match vocabulary, partitioned by entity type.

    Only the latest version of each canonical name takes part in matching. A key
    claimed by two canonical names in the same partition is ambiguous and resolves to
    nothing: a wrong mapping is worse than no mapping.
    """

    def __init__(self, entries: Iterable[SemanticEntry]) -> None:
        self._entries: tuple[SemanticEntry, ...] = tuple(entries)
        if not self._entries:
            raise ReferenceDataError("Semantic dictionary is empty.")

        seen: set[tuple[EntityType, str, int]] = set()
        latest: dict[tuple[EntityType, str], SemanticEntry] = {}
        for e in self._entries:
            key = (e.entity_type, e.canonical_name, e.version)
            if key in seen:
                raise ReferenceDataError(
                    f"Duplicate semantic entry '{e.canonical_name}' ({e.entity_type.value}) "
                    f"at version {e.version}."
                )
            seen.add(key)
            current = latest.get((e.entity_type, e.canonical_name))
            if current is None or e.version > current.version:
                latest[(e.entity_type, e.canonical_name)] = e
        self._latest = latest

        claims: dict[EntityType, dict[str, set[str]]] = {t: {} for t in EntityType}
        for (etype, canonical), entry in sorted(latest.items(), key=lambda kv: (kv[0][0].value, kv[0][1])):
            for k in entry.match_keys():
                claims[etype].setdefault(k, set()).add(canonical)

        self._index: dict[EntityType, dict[str, str]] = {t: {} for t in EntityType}
        self._ambiguous: dict[EntityType, dict[str, tuple[str, ...]]] = {t: {} for t in EntityType}
        for etype, by_key in claims.items():
            for k, canonicals in by_key.items():
                if len(canonicals) == 1:
                    self._index[etype][k] = next(iter(canonicals))
                else:
                    self._ambiguous[etype][k] = tuple(sorted(canonicals))

        for etype, amb in self._ambiguous.items():
            for k, canonicals in sorted(amb.items()):
                logger.warning(
                    "Ambiguous %s synonym '%s' claimed by %s; it will not be mapped.",
                    etype.value, k, ", ".join(canonicals),
                )

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[SemanticEntry, ...]:
        return self._entries

    def lookup(self, name: str, entity_type: EntityType | str) -> Optional[str]:
        """Canonical name for a header in the given partition, or None."""
        etype = EntityType(entity_type)
        key = normalize_header(name)
        if not key:
            return None
        return self._index[etype].get(key)

    def is_ambiguous(self, name: str, entity_type: EntityType | str) -> bool:
        return normalize_header(name) in self._ambiguous[EntityType(entity_type)]

    def ambiguous_keys(self, entity_type: EntityType | str) -> dict[str, tuple[str, ...]]:
        return dict(self._ambiguous[EntityType(entity_type)])

    def latest(self, canonical_name: str, entity_type: EntityType | str) -> Optional[SemanticEntry]:
        return self._latest.get((EntityType(entity_type), canonical_name))

    def history(self, canonical_name: str, entity_type: EntityType | str) -> list[SemanticEntry]:
        """Every version of an entry, oldest first. For auditing the dictionary itself."""
        etype = EntityType(entity_type)
        found = [e for e in self._entries if e.entity_type == etype and e.canonical_name == canonical_name]
        return sorted(found, key=lambda e: e.version)

    def canonical_names(self, entity_type: EntityType | str) -> list[str]:
        etype = EntityType(entity_type)
        return sorted(c for (t, c) in self._latest if t == etype)


def enrich_columns(
    columns: Sequence[NormalizedColumn],
    dictionary: SemanticDictionary,
    *,
    null_counts: Optional[Mapping[str, int]] = None,
    entity_type: EntityType = EntityType.COLUMN,
) -> EnrichedSchema:
    """Attach canonical names to typed columns, keeping the original column order."""
    null_counts = null_counts or {}
    enriched: list[EnrichedColumn] = []
    for col in columns:
        canonical = dictionary.lookup(col.normalized_name, entity_type)
        if canonical is None and dictionary.is_ambiguous(col.normalized_name, entity_type):
            logger.info("Column '%s' left unmapped: synonym is ambiguous.", col.original_name)
        enriched.append(
            EnrichedColumn(
                column=col,
                canonical_name=canonical,
                null_count=int(null_counts.get(col.original_name, 0)),
            )
        )
    return EnrichedSchema(columns=tuple(enriched))


def load_semantic_dictionary(path: Optional[Path] = None) -> SemanticDictionary:
    """
    Load the dictionary from JSON ({"entries": [...]} or a bare list).

    Any failure is fatal: an empty dictionary would make every playbook under-score
    without explanation.
    """
    p = Path(path) if path is not None else DEFAULT_DICTIONARY_PATH
    try:
        data = read_json(p)
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataError(f"Unable to read semantic dictionary '{p}': {e}") from e

    raw_entries = data.get("entries") if isinstance(data, dict) else data
    if not isinstance(raw_entries, list):
        raise ReferenceDataError(f"Semantic dictionary '{p}' must hold a list of entries.")

    try:
        entries = [SemanticEntry.model_validate(item) for item in raw_entries]
    except ValidationError as e:
        raise ReferenceDataError(f"Invalid semantic dictionary entry in '{p}': {e}") from e

    dictionary = SemanticDictionary(entries)
    logger.info("Loaded %d semantic dictionary entries from %s", len(dictionary), p.name)
    return dictionary
