"""Request orchestration.

The engine runs the guardrail stages in a fixed order against reference data that
is loaded once and injected.
"""

from .context import ReferenceData, ReferenceStore
from .engine import AnalysisResult, GuardrailEngine, IngestPayload

__all__ = [
    "AnalysisResult",
    "GuardrailEngine",
    "IngestPayload",
    "ReferenceData",
    "ReferenceStore",
]
