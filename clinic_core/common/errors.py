# clinic_core/common/errors.py
from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """
    Base class for recoverable-by-caller workflow errors.

    Services raise these verbatim; the API exception handler renders them in
    the standard error envelope using `code` and `http_status`.
    """
    code = "workflow_error"
    http_status = 409
    default_message = "Workflow rule violated."

    def __init__(self, message: str | None = None, *, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidTransition(WorkflowError):
    code = "invalid_transition"
    default_message = "Status change is not allowed from the current status."


class InvalidVisitState(WorkflowError):
    code = "invalid_visit_state"
    default_message = "Operation is not allowed for the visit in its current status."


class NotAssigned(WorkflowError):
    code = "not_assigned"
    http_status = 403
    default_message = "This work is not assigned to the acting user."


class ConcurrentModification(WorkflowError):
    """
    Optimistic-concurrency write conflict. Retry the whole operation.
    """
    code = "concurrent_modification"
    default_message = "The record was modified by another user. Reload and retry."


class StaleGateDecision(WorkflowError):
    """
    The medication gate flipped to 'not allowed' between the advisory check
    and the prescription write. Never retried automatically.
    """
    code = "stale_gate_decision"
    default_message = "Medication ordering is no longer allowed for this visit."
