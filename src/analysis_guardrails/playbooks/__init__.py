from .registry import (
    DEFAULT_PLAYBOOKS_PATH,
    FALLBACK_PLAYBOOK_ID,
    PlaybookRegistry,
    load_playbook_registry,
    validate_playbook_structure,
)
from .scoring import (
    find_column,
    is_type_compatible,
    rank_results,
    score_all,
    score_playbook,
    select_playbook,
)

__all__ = [
    "DEFAULT_PLAYBOOKS_PATH",
    "FALLBACK_PLAYBOOK_ID",
    "PlaybookRegistry",
    "find_column",
    "is_type_compatible",
    "load_playbook_registry",
    "rank_results",
    "score_all",
    "score_playbook",
    "select_playbook",
    "validate_playbook_structure",
]
