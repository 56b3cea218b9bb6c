"""
Wire Schemas for the Charting API

Pydantic models describing the JSON bodies the charting API returns. Each
schema parses leniently (numeric ids become strings, missing lists become
empty) and converts to the frozen domain models with ``to_domain()``, so the
rest of the package never touches raw dicts.

Schemas:
    DiagnosisCodeSchema        → {id, code, description, is_primary}
    DetailedDiagnosisSchema    → converted diagnosis with notes, queries, alternatives
    ConversionResponseSchema   → /notes/convert-notes body
    CreatePatientResponseSchema→ /patient/add-patient body
    WorklistResponseSchema     → /charges/charges-patients-list body
    FacilitySchema / ProviderSchema → reference data lists
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from patient_intake.core.enums import DiagnosisStatus
from patient_intake.core.models import (
    ConversionPayload,
    CreatePatientResult,
    DetailedDiagnosis,
    DiagnosisItem,
    Facility,
    Provider,
    WorklistAttachment,
)


def _id_to_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


# =============================================================================
# STAGE 1: DIAGNOSIS SCHEMAS
# =============================================================================


class DiagnosisCodeSchema(BaseModel):
    """One code record as returned by search and conversion."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    code: str = ""
    description: str = ""
    is_primary: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return _id_to_str(v) or ""

    @field_validator("code", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("is_primary", mode="before")
    @classmethod
    def none_to_false(cls, v: Any) -> bool:
        return bool(v)

    def to_domain(self) -> DiagnosisItem:
        return DiagnosisItem(
            id=self.id,
            code=self.code,
            description=self.description,
            is_primary=self.is_primary,
        )


class DetailedDiagnosisSchema(BaseModel):
    """
    A converted diagnosis as the conversion service emits it.

    ``queries`` arrive as ``[{"query": "..."}]``; plain strings are accepted too.
    """

    model_config = ConfigDict(extra="ignore")

    physician_diagnosis: str = ""
    notes: str = ""
    best_guess_codes: List[DiagnosisCodeSchema] = Field(default_factory=list)
    queries: List[str] = Field(default_factory=list)
    assigned_icd_diagnosis: DiagnosisCodeSchema = Field(default_factory=DiagnosisCodeSchema)
    previous_codes_id: Optional[str] = None

    @field_validator("physician_diagnosis", "notes", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("best_guess_codes", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> list:
        return v or []

    @field_validator("queries", mode="before")
    @classmethod
    def flatten_queries(cls, v: Any) -> List[str]:
        flattened = []
        for entry in v or []:
            text = entry.get("query") if isinstance(entry, dict) else entry
            if text:
                flattened.append(str(text))
        return flattened

    @field_validator("assigned_icd_diagnosis", mode="before")
    @classmethod
    def none_to_blank_code(cls, v: Any) -> Any:
        return v or {}

    @field_validator("previous_codes_id", mode="before")
    @classmethod
    def coerce_previous_id(cls, v: Any) -> Optional[str]:
        return _id_to_str(v)

    def to_domain(self) -> DetailedDiagnosis:
        """Convert to the domain model with a classified status."""
        assigned = self.assigned_icd_diagnosis.to_domain()
        return DetailedDiagnosis(
            physician_diagnosis=self.physician_diagnosis,
            assigned=assigned,
            notes=self.notes,
            best_guess_codes=tuple(code.to_domain() for code in self.best_guess_codes),
            queries=tuple(self.queries),
            status=DiagnosisStatus.classify(self.notes, self.queries, assigned.code),
            previous_code_id=self.previous_codes_id,
        )


class ConversionResponseSchema(BaseModel):
    """Body of a successful note conversion."""

    model_config = ConfigDict(extra="ignore")

    diagnoses: List[DiagnosisCodeSchema] = Field(default_factory=list)
    detailed_diagnoses: List[DetailedDiagnosisSchema] = Field(default_factory=list)
    documentation_improvement_opportunities: str = ""

    @field_validator("diagnoses", "detailed_diagnoses", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> list:
        return v or []

    @field_validator("documentation_improvement_opportunities", mode="before")
    @classmethod
    def join_opportunities(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, list):
            return "\n".join(str(entry) for entry in v)
        return str(v)

    def to_domain(self) -> ConversionPayload:
        return ConversionPayload(
            diagnoses=tuple(item.to_domain() for item in self.diagnoses),
            detailed_diagnoses=tuple(item.to_domain() for item in self.detailed_diagnoses),
            documentation_improvement_opportunities=self.documentation_improvement_opportunities,
        )


# =============================================================================
# STAGE 2: PATIENT AND WORKLIST SCHEMAS
# =============================================================================


class CreatePatientResponseSchema(BaseModel):
    """Body of a create-patient call. Parsed whatever the HTTP status."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    prompt: bool = False
    id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @field_validator("success", "prompt", mode="before")
    @classmethod
    def none_to_false(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return _id_to_str(v)

    @field_validator("message", "error", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Optional[str]:
        return None if v in (None, "") else str(v)

    def to_domain(self) -> CreatePatientResult:
        return CreatePatientResult(
            success=self.success,
            prompt=self.prompt,
            admission_id=self.id,
            message=self.message,
            error=self.error,
        )


class WorklistResponseSchema(BaseModel):
    """Body of a charges worklist attachment. Unknown keys are kept as details."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return _id_to_str(v)

    def to_domain(self) -> WorklistAttachment:
        details: Dict[str, Any] = dict(self.model_extra or {})
        return WorklistAttachment(id=self.id, details=details)


# =============================================================================
# STAGE 3: REFERENCE DATA SCHEMAS
# =============================================================================


class FacilitySchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    hospital: str = ""
    abbreviation: Optional[str] = None
    amd_hospital_id: Optional[str] = None

    @field_validator("id", "amd_hospital_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Optional[str]:
        return _id_to_str(v)

    def to_domain(self) -> Facility:
        return Facility(
            id=self.id,
            name=self.hospital,
            abbreviation=self.abbreviation,
            amd_hospital_id=self.amd_hospital_id,
        )


class ProviderSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    firstname: str = ""
    lastname: str = ""
    title: Optional[str] = None
    amd_provider_id: Optional[str] = None

    @field_validator("id", "amd_provider_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Optional[str]:
        return _id_to_str(v)

    def to_domain(self) -> Provider:
        return Provider(
            id=self.id,
            firstname=self.firstname,
            lastname=self.lastname,
            title=self.title,
            amd_provider_id=self.amd_provider_id,
        )
