"""
Patient Validator - Draft Patient Gates

This module decides whether a draft patient may leave its wizard step and
whether a batch may be saved, using two kinds of rules:
    1. Hard rules (required fields, known visit type, admit date not in the
       future, discharge not before admit, facility, provider) that block
       the action
    2. Date heuristics (implausible DOB, stale admission) that only hold the
       action until the clinician confirms

Pipeline Position:
    Draft edits → [Validation] → Batch controller → Create requests
                   ^^^^^^^^^^^^
                   You are here
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from patient_intake.core.constants import (
    AGE_MAX_WARNING,
    AGE_MIN_WARNING,
    BATCH_WARNING_MESSAGE,
    DISCHARGE_BEFORE_ADMIT_MESSAGE,
    FACILITY_REQUIRED_MESSAGE,
    FUTURE_ADMIT_MESSAGE,
    INVALID_VISIT_TYPE_MESSAGE,
    NAVIGATION_DOB_MESSAGE,
    NAVIGATION_STALE_ADMISSION_MESSAGE,
    PROVIDER_REQUIRED_MESSAGE,
    REQUIRED_FIELDS,
    STALE_ADMISSION_DAYS,
)
from patient_intake.core.enums import ConfirmationKind, PendingAction, VisitType
from patient_intake.core.exceptions import DuplicateBatchEntryError, ValidationError
from patient_intake.core.models import ConfirmationPrompt, DraftPatient
from patient_intake.validation.date_rules import (
    DOB_IN_FUTURE,
    DOB_OVER_AGE,
    DOB_UNDER_AGE,
    dob_issues,
    is_future,
    is_older_than_days,
)


# =============================================================================
# STAGE 1: RESULT TYPES
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A hard rule failure on one draft field."""

    field: str
    message: str


@dataclass
class PatientValidationResult:
    """
    Outcome of validating a single draft.

    Attributes:
        draft_id: Draft that was validated
        errors: Hard rule failures, in rule order
        dob_issues: DOB heuristic labels (future, under, over)
        stale_admission: Admit date older than the stale threshold
    """

    draft_id: str
    errors: List[FieldError] = field(default_factory=list)
    dob_issues: List[str] = field(default_factory=list)
    stale_admission: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def first_error(self) -> Optional[FieldError]:
        return self.errors[0] if self.errors else None

    @property
    def confirmation_kinds(self) -> Tuple[ConfirmationKind, ...]:
        kinds = []
        if self.dob_issues:
            kinds.append(ConfirmationKind.DOB_OUTLIER)
        if self.stale_admission:
            kinds.append(ConfirmationKind.STALE_ADMISSION)
        return tuple(kinds)

    @property
    def needs_confirmation(self) -> bool:
        return bool(self.confirmation_kinds)


# =============================================================================
# STAGE 2: HARD RULES (STATIC CLASS)
# =============================================================================


class RequiredFieldChecks:
    """
    Static methods for the blocking draft rules.

    Checks Performed (in this order):
        1. First name, last name, DOB, visit type, admit date present
        2. Visit type is one the create service accepts
        3. Admit date not in the future
        4. Discharge date not before admit date
        5. Facility selected
        6. Provider selected
    """

    @staticmethod
    def check_required_fields(patient: DraftPatient) -> List[FieldError]:
        errors = []
        for field_name, message in REQUIRED_FIELDS:
            value = getattr(patient, field_name)
            if isinstance(value, str):
                value = value.strip()
            if not value:
                errors.append(FieldError(field_name, message))
        return errors

    @staticmethod
    def check_visit_type(patient: DraftPatient) -> List[FieldError]:
        visittype = (patient.visittype or "").strip()
        if visittype and VisitType.parse(visittype) is None:
            options = " or ".join(visit_type.label for visit_type in VisitType)
            return [
                FieldError(
                    "visittype",
                    INVALID_VISIT_TYPE_MESSAGE.format(value=visittype, options=options),
                )
            ]
        return []

    @staticmethod
    def check_admit_not_future(patient: DraftPatient, today: date) -> List[FieldError]:
        if is_future(patient.admitdate, today):
            return [FieldError("admitdate", FUTURE_ADMIT_MESSAGE)]
        return []

    @staticmethod
    def check_discharge_after_admit(patient: DraftPatient) -> List[FieldError]:
        if patient.admitdate and patient.dischargedate and patient.dischargedate < patient.admitdate:
            return [FieldError("dischargedate", DISCHARGE_BEFORE_ADMIT_MESSAGE)]
        return []

    @staticmethod
    def check_facility(patient: DraftPatient) -> List[FieldError]:
        if patient.facility is None or not patient.facility.id:
            return [FieldError("facility", FACILITY_REQUIRED_MESSAGE)]
        return []

    @staticmethod
    def check_provider(patient: DraftPatient) -> List[FieldError]:
        if patient.provider is None:
            return [FieldError("provider", PROVIDER_REQUIRED_MESSAGE)]
        return []

    @classmethod
    def run_all_checks(cls, patient: DraftPatient, today: date) -> List[FieldError]:
        errors = []
        errors.extend(cls.check_required_fields(patient))
        errors.extend(cls.check_visit_type(patient))
        errors.extend(cls.check_admit_not_future(patient, today))
        errors.extend(cls.check_discharge_after_admit(patient))
        errors.extend(cls.check_facility(patient))
        errors.extend(cls.check_provider(patient))
        return errors


# =============================================================================
# STAGE 3: PATIENT VALIDATOR
# =============================================================================


class PatientValidator:
    """
    Applies hard rules and date heuristics to drafts and batches.

    What it does:
        Produces per-draft results for wizard navigation, raises on hard
        failures for batch save, and builds the confirmation prompts the
        controller holds until the clinician decides.

    When to use:
        - Before moving the wizard cursor forward
        - Before issuing a batch of create requests

    Example:
        >>> validator = PatientValidator(today=lambda: date(2025, 6, 1))
        >>> result = validator.validate(draft)
        >>> result.first_error.message
        'Please select provider'
    """

    def __init__(
        self,
        min_age: int = AGE_MIN_WARNING,
        max_age: int = AGE_MAX_WARNING,
        stale_admission_days: int = STALE_ADMISSION_DAYS,
        today: Callable[[], date] = date.today,
    ):
        self._min_age = min_age
        self._max_age = max_age
        self._stale_days = stale_admission_days
        self._today = today

    # -------------------------------------------------------------------------
    # 3.1 Single Draft
    # -------------------------------------------------------------------------

    def validate(self, patient: DraftPatient) -> PatientValidationResult:
        today = self._today()
        result = PatientValidationResult(
            draft_id=patient.draft_id,
            errors=RequiredFieldChecks.run_all_checks(patient, today),
            dob_issues=dob_issues(patient.dateofbirth, today, self._min_age, self._max_age),
            stale_admission=is_older_than_days(patient.admitdate, self._stale_days, today),
        )
        if not result.is_valid:
            logger.debug(
                f"Draft {patient.draft_id} failed {len(result.errors)} rule(s), "
                f"first: {result.first_error.field}"
            )
        return result

    def ensure_valid(self, patient: DraftPatient) -> PatientValidationResult:
        """
        Validate and raise on the first hard failure.

        Raises:
            ValidationError: With the first failing rule's message
        """
        result = self.validate(patient)
        if not result.is_valid:
            error = result.first_error
            raise ValidationError(
                error.message, field=error.field, context={"draft_id": patient.draft_id}
            )
        return result

    def navigation_prompt(
        self, patient: DraftPatient, target_index: int
    ) -> Optional[ConfirmationPrompt]:
        """Confirmation needed before leaving ``patient``, or None."""
        result = self.validate(patient)
        if not result.needs_confirmation:
            return None

        parts = [self._dob_phrase(issue) for issue in result.dob_issues]
        if result.stale_admission:
            parts.append(NAVIGATION_STALE_ADMISSION_MESSAGE.format(days=self._stale_days))

        message = NAVIGATION_DOB_MESSAGE.format(
            name=patient.full_name or "#", issues=" and ".join(parts)
        )
        return ConfirmationPrompt(
            kinds=result.confirmation_kinds,
            message=message,
            action=PendingAction.NAVIGATE,
            target_index=target_index,
        )

    # -------------------------------------------------------------------------
    # 3.2 Batch
    # -------------------------------------------------------------------------

    def ensure_batch_valid(self, patients: Sequence[DraftPatient]) -> None:
        """
        Apply the hard rules to every draft, then the in-batch duplicate rule.

        Raises:
            ValidationError: First hard failure across the batch
            DuplicateBatchEntryError: Two drafts share name and DOB
        """
        for patient in patients:
            self.ensure_valid(patient)

        seen = set()
        for patient in patients:
            key = patient.identity_key
            if key in seen:
                logger.warning(f"Duplicate facesheet in batch for draft {patient.draft_id}")
                raise DuplicateBatchEntryError(key)
            seen.add(key)

    def batch_prompt(self, patients: Sequence[DraftPatient]) -> Optional[ConfirmationPrompt]:
        """One aggregated confirmation for the whole batch, or None."""
        counts = {DOB_IN_FUTURE: 0, DOB_UNDER_AGE: 0, DOB_OVER_AGE: 0}
        stale = 0
        kinds = set()

        for patient in patients:
            result = self.validate(patient)
            for issue in result.dob_issues:
                counts[issue] += 1
            if result.stale_admission:
                stale += 1
            kinds.update(result.confirmation_kinds)

        if not kinds:
            return None

        parts = []
        if counts[DOB_IN_FUTURE]:
            parts.append(
                f"{_patients(counts[DOB_IN_FUTURE])} with a DOB that is today or in the future"
            )
        if counts[DOB_UNDER_AGE]:
            parts.append(f"{_patients(counts[DOB_UNDER_AGE])} under {self._min_age}")
        if counts[DOB_OVER_AGE]:
            parts.append(f"{_patients(counts[DOB_OVER_AGE])} over {self._max_age}")
        if stale:
            parts.append(
                f"{_patients(stale)} with an admission date over {self._stale_days} days old"
            )

        ordered_kinds = tuple(kind for kind in ConfirmationKind if kind in kinds)
        return ConfirmationPrompt(
            kinds=ordered_kinds,
            message=BATCH_WARNING_MESSAGE.format(issues=", ".join(parts)),
            action=PendingAction.SAVE,
        )

    def _dob_phrase(self, issue: str) -> str:
        if issue == DOB_IN_FUTURE:
            return "a DOB that is today or in the future"
        if issue == DOB_UNDER_AGE:
            return f"age under {self._min_age}"
        return f"age over {self._max_age}"


def _patients(count: int) -> str:
    return f"{count} patient{'s' if count > 1 else ''}"
