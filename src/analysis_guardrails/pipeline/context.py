from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import GuardrailSettings, load_settings
from ..playbooks.registry import PlaybookRegistry, load_playbook_registry
from ..semantic.dictionary import SemanticDictionary, load_semantic_dictionary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    """Read-only reference passed into the engine: vocabulary, playbooks and policy values."""

    dictionary: SemanticDictionary
    registry: PlaybookRegistry
    settings: GuardrailSettings

    @classmethod
    def create(
        cls,
        *,
        dictionary: Optional[SemanticDictionary] = None,
        registry: Optional[PlaybookRegistry] = None,
        settings: Optional[GuardrailSettings] = None,
        dictionary_path: Optional[Path] = None,
        playbooks_path: Optional[Path] = None,
    ) -> "ReferenceData":
        """Fill anything not given from the packaged data files and the environment."""
        return cls(
            dictionary=dictionary or load_semantic_dictionary(dictionary_path),
            registry=registry or load_playbook_registry(playbooks_path),
            settings=settings or load_settings(),
        )


class ReferenceStore:
    """
    Holder for the current ReferenceData.

    Readers take `current` once per request. reload() builds a complete new reference
    before swapping it in, so a request never sees a half-loaded one.
    """

    def __init__(self, reference: ReferenceData) -> None:
        self._current = reference
        self._reload_lock = threading.Lock()

    @property
    def current(self) -> ReferenceData:
        return self._current

    def reload(
        self,
        *,
        dictionary_path: Optional[Path] = None,
        playbooks_path: Optional[Path] = None,
        settings: Optional[GuardrailSettings] = None,
    ) -> ReferenceData:
        """Load fresh reference data and swap it in. Load errors leave the current one in place."""
        with self._reload_lock:
            fresh = ReferenceData.create(
                settings=settings,
                dictionary_path=dictionary_path,
                playbooks_path=playbooks_path,
            )
            self._current = fresh
        logger.info(
            "Reference data reloaded: %d dictionary entries, %d playbooks",
            len(fresh.dictionary), len(fresh.registry.scorable),
        )
        return fresh
