"""
Domain Exceptions for Patient Intake

This module defines the exceptions raised by the intake workflow. Lower
components (validator, conversion pipeline, verification machine, selected
diagnosis set) raise them; the UI-facing orchestrators catch them at the call
site and turn them into notices.

Exception Hierarchy:
    IntakeError (base)
    ├── ConfigurationError          → Invalid configuration
    ├── ValidationError             → Draft patient fails a hard rule
    │   ├── DuplicateBatchEntryError
    │   └── EmptyNotesError
    ├── DiagnosisError              → Diagnosis collection rule violated
    │   ├── CapacityExceededError
    │   ├── VerificationIncompleteError
    │   ├── PrimaryDiagnosisRemovalError
    │   ├── InvalidTransitionError
    │   └── DiagnosisNotFoundError
    ├── WorkflowStateError          → Action not allowed in the current state
    └── CollaboratorError           → Network or HTTP failure

Usage:
    from patient_intake.core.exceptions import CapacityExceededError

    try:
        selected.merge(candidates)
    except CapacityExceededError as e:
        notifier.error(e.message)
"""

from typing import Optional

from patient_intake.core.constants import (
    CAPACITY_MESSAGE,
    DUPLICATE_IN_BATCH_MESSAGE,
    EMPTY_NOTES_MESSAGE,
    UNVERIFIED_SUBMIT_MESSAGE,
)


# =============================================================================
# STAGE 1: BASE EXCEPTION
# =============================================================================


class IntakeError(Exception):
    """
    Base exception for all patient intake errors.

    What it does:
        Gives every domain error a human-readable ``message`` (the text shown
        to the clinician) and a ``context`` dict for the logs.

    Attributes:
        message: Human-readable error description
        context: Dictionary of additional context for debugging
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format message with context for display."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


# =============================================================================
# STAGE 2: CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(IntakeError):
    """
    Error in workflow configuration.

    When raised:
        - Missing or malformed collaborator base URL
        - Inconsistent age thresholds
        - Negative day or timeout values

    Example:
        >>> raise ConfigurationError(
        ...     "Collaborator API URL not configured",
        ...     context={"setting": "INTAKE_API_URL"}
        ... )
    """

    pass


# =============================================================================
# STAGE 3: DRAFT VALIDATION ERRORS
# =============================================================================


class ValidationError(IntakeError):
    """
    A draft patient fails a hard validation rule.

    When raised:
        - A required field is missing
        - Admit date lies in the future
        - Discharge date precedes the admit date

    Attributes:
        field: Name of the failing field, when the error concerns one field
    """

    def __init__(self, message: str, field: Optional[str] = None, context: Optional[dict] = None):
        self.field = field
        merged = dict(context or {})
        if field:
            merged.setdefault("field", field)
        super().__init__(message, context=merged)


class DuplicateBatchEntryError(ValidationError):
    """Two drafts in one batch share first name, last name and date of birth."""

    def __init__(self, identity: tuple):
        self.identity = identity
        super().__init__(DUPLICATE_IN_BATCH_MESSAGE, context={"identity": identity})


class EmptyNotesError(ValidationError):
    """Note text is blank; conversion is skipped without a collaborator call."""

    def __init__(self, message: str = EMPTY_NOTES_MESSAGE):
        super().__init__(message, field="notes")


# =============================================================================
# STAGE 4: DIAGNOSIS ERRORS
# =============================================================================


class DiagnosisError(IntakeError):
    """
    Base exception for diagnosis collection errors.

    What it does:
        Parent class for errors raised by the conversion pipeline, the
        verification state machine and the selected diagnosis set.
    """

    pass


class CapacityExceededError(DiagnosisError):
    """
    Operation would push a patient past the diagnosis ceiling.

    Attributes:
        current: Number of codes the owner already holds
        incoming: Number of codes that would be added
        limit: The ceiling that was hit
    """

    def __init__(self, current: int, incoming: int, limit: int):
        self.current = current
        self.incoming = incoming
        self.limit = limit
        super().__init__(
            CAPACITY_MESSAGE,
            context={"current": current, "incoming": incoming, "limit": limit},
        )


class VerificationIncompleteError(DiagnosisError):
    """
    Submit requested while some converted diagnoses are not verified.

    Attributes:
        unverified_ids: Assigned ids of the items still awaiting a decision
    """

    def __init__(self, unverified_ids: list):
        self.unverified_ids = list(unverified_ids)
        super().__init__(
            UNVERIFIED_SUBMIT_MESSAGE,
            context={"unverified": len(self.unverified_ids)},
        )


class PrimaryDiagnosisRemovalError(DiagnosisError):
    """The primary diagnosis cannot be removed from the review list."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(
            "The primary diagnosis cannot be removed",
            context={"item_id": item_id},
        )


class InvalidTransitionError(DiagnosisError):
    """
    Verification transition not allowed from the item's current state.

    Attributes:
        item_id: Assigned id of the item
        state: Current status value
        action: Requested transition
    """

    def __init__(self, item_id: str, state: str, action: str, message: Optional[str] = None):
        self.item_id = item_id
        self.state = state
        self.action = action
        super().__init__(
            message or f"Cannot {action} a diagnosis in state '{state}'",
            context={"item_id": item_id, "state": state, "action": action},
        )


class DiagnosisNotFoundError(DiagnosisError):
    """No item with the given assigned id is under review."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Diagnosis not found: {item_id}", context={"item_id": item_id})


# =============================================================================
# STAGE 5: WORKFLOW AND COLLABORATOR ERRORS
# =============================================================================


class WorkflowStateError(IntakeError):
    """
    Action requested in a state that does not allow it.

    When raised:
        - Any mutation after the workflow has closed
        - Confirming or cancelling on an empty duplicate queue
        - A second confirm while one is already in flight
    """

    pass


class CollaboratorError(IntakeError):
    """
    Network or HTTP failure talking to a collaborating service.

    Attributes:
        operation: Client operation that failed
        status_code: HTTP status, when a response was received
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.operation = operation
        self.status_code = status_code
        context = {}
        if operation:
            context["operation"] = operation
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, context=context)
