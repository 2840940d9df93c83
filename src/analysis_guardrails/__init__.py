"""Guardrail and playbook selection for tabular uploads.

Typical use:

    from analysis_guardrails import GuardrailEngine, ReferenceData

    engine = GuardrailEngine(ReferenceData.create())
    result = engine.analyze({"rows": rows, "headers": headers, "telemetry": {...}})
"""

from .audit import AuditCard, IngestTelemetry, render_audit_card_markdown
from .config import DEFAULT_SETTINGS, GuardrailSettings, load_settings
from .errors import GuardrailError, InputError, PlanFormatError, ReferenceDataError
from .pipeline import AnalysisResult, GuardrailEngine, IngestPayload, ReferenceData, ReferenceStore
from .plan import ValidationResult, review_plan, validate_plan

__version__ = "0.1.0"

__all__ = [
    "AnalysisResult",
    "AuditCard",
    "DEFAULT_SETTINGS",
    "GuardrailEngine",
    "GuardrailError",
    "GuardrailSettings",
    "IngestPayload",
    "IngestTelemetry",
    "InputError",
    "PlanFormatError",
    "ReferenceData",
    "ReferenceDataError",
    "ReferenceStore",
    "ValidationResult",
    "load_settings",
    "render_audit_card_markdown",
    "review_plan",
    "validate_plan",
    "__version__",
]
