from __future__ import annotations


class GuardrailError(Exception):
    """Base class for errors raised by the guardrail engine."""


class InputError(GuardrailError, ValueError):
    """Raised when the caller hands over an unusable dataset (empty, no columns, malformed).

    This is the only error class that should surface to the HTTP layer as a rejection.
    Data quality problems are never raised; they degrade into warnings instead.
    """


class ReferenceDataError(GuardrailError):
    """Raised when the semantic dictionary or playbook registry cannot be loaded.

    Fatal at startup: an empty dictionary would make every playbook under-score silently.
    """


class PlanFormatError(GuardrailError, ValueError):
    """Raised when an action plan payload is not a list or mapping of actions."""
