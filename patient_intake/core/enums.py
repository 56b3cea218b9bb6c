"""
Enumerations for Patient Intake

This module defines the enumeration types shared by the intake workflow.
Enums replace the free-text flags the collaborating services return, so the
rest of the package never matches on strings.

Enumeration Categories:
    DiagnosisStatus      → Verification state of a converted diagnosis
    VisitType            → Admission visit types
    NavigationDirection  → Wizard cursor movement
    NavigationStatus     → Outcome of a cursor movement request
    CreateOutcome        → Classification of a create-patient response
    ConfirmationKind     → Date heuristics that require a user confirmation
    PendingAction        → Action held behind a confirmation
    NoticeLevel          → Severity of a user-facing notice
"""

from enum import Enum
from typing import Iterable, Optional

from patient_intake.core.constants import NEEDS_SEARCH_PREFIXES, VERIFIED_PREFIX


# =============================================================================
# STAGE 1: DIAGNOSIS VERIFICATION STATUS
# =============================================================================
# The conversion service encodes status inside free-text notes. The pipeline
# classifies it once; afterwards only state-machine transitions change it.


class DiagnosisStatus(str, Enum):
    """
    Verification state of a single converted diagnosis.

    What it does:
        Tags each DetailedDiagnosis with where it sits in the review flow.
        Only VERIFIED items may be merged into a patient's diagnosis set.

    States:
        NEEDS_CLARIFICATION → the service attached clarification queries
        NEEDS_SEARCH        → no code could be determined, manual search required
        VERIFIED            → code confirmed (service match, keep-as-is, or selection)
        PENDING             → best-guess codes awaiting a clinician decision
    """

    NEEDS_CLARIFICATION = "needs_clarification"
    NEEDS_SEARCH = "needs_search"
    VERIFIED = "verified"
    PENDING = "pending"

    @classmethod
    def classify(
        cls,
        notes: Optional[str],
        queries: Iterable[object] = (),
        assigned_code: Optional[str] = None,
    ) -> "DiagnosisStatus":
        """
        Derive the initial status from the service's annotations.

        Order of precedence:
            1. Any clarification query → NEEDS_CLARIFICATION
            2. Notes or assigned code start with a not-found marker → NEEDS_SEARCH
            3. Notes start with "verified match" → VERIFIED
            4. Otherwise → PENDING

        Args:
            notes: Free-text notes returned by the conversion service
            queries: Clarification queries attached to the item
            assigned_code: Code string currently assigned to the item

        Returns:
            The classified DiagnosisStatus
        """
        if any(True for _ in queries):
            return cls.NEEDS_CLARIFICATION

        normalized_notes = (notes or "").strip().lower()
        normalized_code = (assigned_code or "").strip().lower()
        for prefix in NEEDS_SEARCH_PREFIXES:
            if normalized_notes.startswith(prefix) or normalized_code.startswith(prefix):
                return cls.NEEDS_SEARCH

        if normalized_notes.startswith(VERIFIED_PREFIX):
            return cls.VERIFIED

        return cls.PENDING

    @property
    def is_verified(self) -> bool:
        """Whether the item is eligible for merging."""
        return self is DiagnosisStatus.VERIFIED


# =============================================================================
# STAGE 2: ADMISSION ENUMERATIONS
# =============================================================================


class VisitType(str, Enum):
    """Visit types offered by the wizard's visit type picker."""

    INPATIENT = "inpatient"
    CONSULT = "consult"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["VisitType"]:
        """Case-insensitive lookup; None when ``value`` is blank or names no visit type."""
        if not value or not value.strip():
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class CreateOutcome(str, Enum):
    """
    Classification of a create-patient response.

    The duplicate prompt wins over the success flag: a response carrying
    ``prompt=true`` always goes to the duplicate queue.
    """

    CREATED = "created"
    DUPLICATE = "duplicate"
    FAILED = "failed"


# =============================================================================
# STAGE 3: WIZARD ENUMERATIONS
# =============================================================================


class NavigationDirection(str, Enum):
    """Direction of a wizard cursor move."""

    FORWARD = "forward"
    BACK = "back"


class NavigationStatus(str, Enum):
    """Outcome of a navigation request."""

    MOVED = "moved"
    BLOCKED = "blocked"
    CONFIRMATION_REQUIRED = "confirmation_required"
    UNCHANGED = "unchanged"


class ConfirmationKind(str, Enum):
    """Date heuristics that hold an action until the user confirms."""

    DOB_OUTLIER = "dob_outlier"
    STALE_ADMISSION = "stale_admission"


class PendingAction(str, Enum):
    """Action held behind a confirmation prompt."""

    NAVIGATE = "navigate"
    SAVE = "save"


# =============================================================================
# STAGE 4: NOTICES
# =============================================================================


class NoticeLevel(str, Enum):
    """Severity of a user-facing notice. Values match loguru level names."""

    SUCCESS = "SUCCESS"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
