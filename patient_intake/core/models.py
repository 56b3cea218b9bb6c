"""
Domain Models for Patient Intake

This module defines the data structures that flow through the intake workflow.
All models are frozen dataclasses: every edit produces a new value that the
owning component threads forward, so no component mutates another's state.

Model Hierarchy:
    Facility            → Place of service a patient is admitted to
    Provider            → Owning provider of an admission
    DiagnosisItem       → One coded diagnosis (id, code, description, primary flag)
    DetailedDiagnosis   → Converted diagnosis under review, with explicit status
    DraftPatient        → One patient record in a batch intake
    DuplicateQueueEntry → Draft that the server flagged as an existing patient
    CreatePatientResult → Parsed create-patient response
    ConversionPayload   → Parsed note conversion response
    WorklistAttachment  → Parsed charges worklist response
    ConfirmationPrompt  → Date heuristic awaiting a user decision
    Notice              → User-facing notice

Usage:
    from patient_intake.core.models import DraftPatient

    draft = DraftPatient.from_dict({"firstname": "Ann", "dateofbirth": "01/02/1950"})
    draft = draft.with_changes(lastname="Lee")
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from patient_intake.core.constants import (
    DEFAULT_DUPLICATE_MESSAGE,
    PROVIDER_TITLE_PREFIXES,
)
from patient_intake.core.enums import (
    ConfirmationKind,
    CreateOutcome,
    DiagnosisStatus,
    NoticeLevel,
    PendingAction,
    VisitType,
)


# =============================================================================
# STAGE 0: DATE PARSING
# =============================================================================
# Upstream extraction emits dates in several shapes. Drafts only ever hold
# datetime.date values.

_COMPACT_DATE = re.compile(r"^\d{8}$")


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse an upstream date value into a ``date``.

    Accepted shapes:
        YYYY-MM-DD, ISO datetime (YYYY-MM-DDTHH:MM:SS...), MM/DD/YYYY, MMDDYYYY,
        and date/datetime instances.

    Returns:
        The parsed date, or None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    if "T" in text:
        text = text.split("T", 1)[0]

    if _COMPACT_DATE.match(text):
        text = f"{text[0:2]}/{text[2:4]}/{text[4:8]}"

    for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# STAGE 1: REFERENCE DATA
# =============================================================================


@dataclass(frozen=True)
class Facility:
    """
    Place of service (hospital) an admission is created under.

    Attributes:
        id: Internal facility identifier
        name: Facility display name
        abbreviation: Short name shown in lists
        amd_hospital_id: Identifier in the billing system
    """

    id: str
    name: str
    abbreviation: Optional[str] = None
    amd_hospital_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hospital": self.name,
            "abbreviation": self.abbreviation,
            "amd_hospital_id": self.amd_hospital_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Facility":
        """Create from the facilities service shape (``hospital`` holds the name)."""
        return cls(
            id=str(data["id"]),
            name=data.get("hospital") or data.get("name") or "",
            abbreviation=data.get("abbreviation"),
            amd_hospital_id=_optional_str(data.get("amd_hospital_id")),
        )


@dataclass(frozen=True)
class Provider:
    """
    Provider who owns the admission.

    Example:
        >>> Provider(id="7", firstname="Ana", lastname="Ruiz", title="Physician").display_name
        'Dr. Ana Ruiz'
        >>> Provider(id="8", firstname="Bo", lastname="Lin", title="Nurse Practitioner").display_name
        'Bo Lin, NP'
    """

    id: str
    firstname: str
    lastname: str
    title: Optional[str] = None
    amd_provider_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Name with the title prefix or suffix used in provider pickers."""
        full_name = f"{self.firstname} {self.lastname}".strip()
        marker = PROVIDER_TITLE_PREFIXES.get(self.title or "")
        if marker is None:
            return full_name
        if self.title == "Physician":
            return f"{marker} {full_name}"
        return f"{full_name}, {marker}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "title": self.title,
            "amd_provider_id": self.amd_provider_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Provider":
        return cls(
            id=str(data["id"]),
            firstname=data.get("firstname") or "",
            lastname=data.get("lastname") or "",
            title=data.get("title"),
            amd_provider_id=_optional_str(data.get("amd_provider_id")),
        )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def _normalize_visit_type(value: Optional[str]) -> Optional[str]:
    """Known visit types are lower-cased; unknown text is kept for validation to report."""
    parsed = VisitType.parse(value)
    if parsed is not None:
        return parsed.value
    return value or None


# =============================================================================
# STAGE 2: DIAGNOSIS MODELS
# =============================================================================


@dataclass(frozen=True)
class DiagnosisItem:
    """
    A single coded diagnosis attached to a patient.

    Attributes:
        id: Identifier of the code record in the code catalogue
        code: ICD-10-CM code string (e.g., "E11.9")
        description: Human-readable description of the code
        is_primary: Whether this is the owner's primary diagnosis
    """

    id: str
    code: str
    description: str = ""
    is_primary: bool = False

    def with_primary(self, is_primary: bool) -> "DiagnosisItem":
        """Return a copy with the primary flag set."""
        if self.is_primary == is_primary:
            return self
        return replace(self, is_primary=is_primary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "is_primary": self.is_primary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosisItem":
        return cls(
            id=str(data.get("id", "")),
            code=data.get("code") or "",
            description=data.get("description") or "",
            is_primary=bool(data.get("is_primary", False)),
        )


@dataclass(frozen=True)
class DetailedDiagnosis:
    """
    A converted diagnosis awaiting clinician verification.

    What it does:
        Carries the physician's phrasing, the code the conversion service
        assigned, the service's alternatives and clarification queries, and an
        explicit verification status.

    Why it exists:
        The conversion service encodes status in free-text notes. The status
        is classified once and carried as an enum, so transitions never parse
        text again; ``notes`` stays for display.

    Attributes:
        physician_diagnosis: Diagnosis text as the physician wrote it
        assigned: Code currently assigned to this diagnosis
        notes: Display notes ("Verified Match" after a verifying transition)
        best_guess_codes: Alternative codes offered by the service
        queries: Clarification queries raised by the service
        status: Verification status
        previous_code_id: Id of the code replaced by a manual selection
        review_key: Key addressing the row in review when its assigned id
            is shared with another row (None means the assigned id)
    """

    physician_diagnosis: str
    assigned: DiagnosisItem
    notes: str = ""
    best_guess_codes: Tuple[DiagnosisItem, ...] = ()
    queries: Tuple[str, ...] = ()
    status: DiagnosisStatus = DiagnosisStatus.PENDING
    previous_code_id: Optional[str] = None
    review_key: Optional[str] = None

    @property
    def item_id(self) -> str:
        return self.review_key or self.assigned.id

    @property
    def normalized_text(self) -> str:
        """Physician text trimmed and case-folded, used for de-duplication."""
        return self.physician_diagnosis.strip().casefold()

    @property
    def is_verified(self) -> bool:
        return self.status.is_verified

    def with_changes(self, **changes: Any) -> "DetailedDiagnosis":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "physician_diagnosis": self.physician_diagnosis,
            "assigned": self.assigned.to_dict(),
            "notes": self.notes,
            "best_guess_codes": [code.to_dict() for code in self.best_guess_codes],
            "queries": list(self.queries),
            "status": self.status.value,
            "previous_code_id": self.previous_code_id,
            "review_key": self.review_key,
        }


# =============================================================================
# STAGE 3: DRAFT PATIENT
# =============================================================================


@dataclass(frozen=True)
class DraftPatient:
    """
    One patient record in a batch intake.

    What it does:
        Holds the demographic, admission and diagnosis data extracted from a
        facesheet, as edited by the clinician in the wizard.

    Why it exists:
        1. Immutable so the controller owns the only mutable sequence of drafts
        2. ``from_dict`` normalizes the upstream extraction shape once
        3. ``identity_key`` is the in-batch duplicate key

    Example:
        >>> draft = DraftPatient.from_dict({
        ...     "id": "d1", "firstname": "Ann", "lastname": "Lee",
        ...     "dateofbirth": "02141950", "visittype": "inpatient",
        ... })
        >>> draft.dateofbirth
        datetime.date(1950, 2, 14)
    """

    # -------------------------------------------------------------------------
    # 3.1 Identity and Demographics
    # -------------------------------------------------------------------------
    draft_id: str
    firstname: str = ""
    lastname: str = ""
    middlename: str = ""
    gender: str = ""
    dateofbirth: Optional[date] = None

    # -------------------------------------------------------------------------
    # 3.2 Admission
    # -------------------------------------------------------------------------
    admitdate: Optional[date] = None
    dischargedate: Optional[date] = None
    visittype: Optional[str] = None
    facility: Optional[Facility] = None
    provider: Optional[Provider] = None
    room: str = ""
    status: str = ""
    facesheetalias: str = ""

    # -------------------------------------------------------------------------
    # 3.3 Diagnoses
    # -------------------------------------------------------------------------
    selected_diagnosis: Tuple[DiagnosisItem, ...] = ()

    # -------------------------------------------------------------------------
    # 3.4 Derived Values
    # -------------------------------------------------------------------------

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()

    @property
    def identity_key(self) -> Tuple[str, str, Optional[date]]:
        return (self.firstname, self.lastname, self.dateofbirth)

    @property
    def has_primary_diagnosis(self) -> bool:
        return any(item.is_primary for item in self.selected_diagnosis)

    def with_changes(self, **changes: Any) -> "DraftPatient":
        """
        Return a new draft with the given fields replaced.

        Date fields accept any shape ``parse_date`` accepts.
        """
        for date_field in ("dateofbirth", "admitdate", "dischargedate"):
            if date_field in changes:
                changes[date_field] = parse_date(changes[date_field])
        if "selected_diagnosis" in changes:
            changes["selected_diagnosis"] = tuple(changes["selected_diagnosis"])
        return replace(self, **changes)

    # -------------------------------------------------------------------------
    # 3.5 Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.draft_id,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "middlename": self.middlename,
            "gender": self.gender,
            "dateofbirth": _format_date(self.dateofbirth),
            "admitdate": _format_date(self.admitdate),
            "dischargedate": _format_date(self.dischargedate),
            "visittype": self.visittype,
            "hospital": self.facility.to_dict() if self.facility else None,
            "provider": self.provider.to_dict() if self.provider else None,
            "room": self.room,
            "status": self.status,
            "facesheetalias": self.facesheetalias,
            "selectedDiagnosis": [item.to_dict() for item in self.selected_diagnosis],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DraftPatient":
        """Create from the upstream facesheet extraction shape."""
        hospital = data.get("hospital") or data.get("facility")
        provider = data.get("provider")
        diagnoses = data.get("selectedDiagnosis") or data.get("selected_diagnosis") or []
        return cls(
            draft_id=str(data.get("id") or data.get("draft_id") or uuid.uuid4().hex),
            firstname=data.get("firstname") or "",
            lastname=data.get("lastname") or "",
            middlename=data.get("middlename") or "",
            gender=data.get("gender") or "",
            dateofbirth=parse_date(data.get("dateofbirth")),
            admitdate=parse_date(data.get("admitdate")),
            dischargedate=parse_date(data.get("dischargedate")),
            visittype=_normalize_visit_type(data.get("visittype")),
            facility=Facility.from_dict(hospital) if isinstance(hospital, dict) else None,
            provider=Provider.from_dict(provider) if isinstance(provider, dict) else None,
            room=data.get("room") or "",
            status=data.get("status") or "",
            facesheetalias=data.get("facesheetalias") or "",
            selected_diagnosis=tuple(DiagnosisItem.from_dict(item) for item in diagnoses),
        )


# =============================================================================
# STAGE 4: COLLABORATOR RESULTS
# =============================================================================


@dataclass(frozen=True)
class CreatePatientResult:
    """
    Parsed create-patient response.

    The duplicate prompt wins over ``success``: see ``outcome``.
    """

    success: bool = False
    prompt: bool = False
    admission_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def outcome(self) -> CreateOutcome:
        if self.prompt:
            return CreateOutcome.DUPLICATE
        if self.success:
            return CreateOutcome.CREATED
        return CreateOutcome.FAILED

    @property
    def failure_reason(self) -> str:
        return self.error or self.message or "Unknown error"


@dataclass(frozen=True)
class ConversionPayload:
    """Parsed note conversion response."""

    diagnoses: Tuple[DiagnosisItem, ...] = ()
    detailed_diagnoses: Tuple[DetailedDiagnosis, ...] = ()
    documentation_improvement_opportunities: str = ""


@dataclass(frozen=True)
class WorklistAttachment:
    """Parsed charges worklist response."""

    id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# STAGE 5: WORKFLOW VALUES
# =============================================================================


@dataclass(frozen=True)
class DuplicateQueueEntry:
    """A draft the server reported as matching an existing patient."""

    patient: DraftPatient
    message: str

    @classmethod
    def for_patient(cls, patient: DraftPatient, message: Optional[str] = None) -> "DuplicateQueueEntry":
        """Build an entry, falling back to the default duplicate question."""
        if not message:
            message = DEFAULT_DUPLICATE_MESSAGE.format(
                firstname=patient.firstname,
                lastname=patient.lastname,
                dateofbirth=_format_date(patient.dateofbirth) or "",
            )
        return cls(patient=patient, message=message)


@dataclass(frozen=True)
class ConfirmationPrompt:
    """
    A date heuristic holding an action until the user decides.

    Attributes:
        kinds: Heuristics that fired
        message: Question shown to the user
        action: Action resumed by confirm
        target_index: Cursor target for NAVIGATE prompts
    """

    kinds: Tuple[ConfirmationKind, ...]
    message: str
    action: PendingAction
    target_index: Optional[int] = None


@dataclass(frozen=True)
class Notice:
    """A user-facing notice (toast)."""

    level: NoticeLevel
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level.value, "message": self.message}


def diagnosis_items_to_dicts(items: List[DiagnosisItem]) -> List[Dict[str, Any]]:
    """Serialize diagnosis items for a collaborator request body."""
    return [item.to_dict() for item in items]
