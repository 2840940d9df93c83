from .dictionary import (
    DEFAULT_DICTIONARY_PATH,
    EntityType,
    SemanticDictionary,
    SemanticEntry,
    enrich_columns,
    load_semantic_dictionary,
)

__all__ = [
    "DEFAULT_DICTIONARY_PATH",
    "EntityType",
    "SemanticDictionary",
    "SemanticEntry",
    "enrich_columns",
    "load_semantic_dictionary",
]
