"""Shared fixtures: a scripted charting client and draft/diagnosis factories."""

from datetime import date
from typing import Dict, List, Optional, Sequence, Union

import pytest

from patient_intake.core.config import IntakeConfiguration
from patient_intake.core.enums import DiagnosisStatus
from patient_intake.core.models import (
    ConversionPayload,
    CreatePatientResult,
    DetailedDiagnosis,
    DiagnosisItem,
    DraftPatient,
    Facility,
    Provider,
    WorklistAttachment,
)
from patient_intake.notifications import Notifier

TODAY = date(2025, 6, 1)

ScriptedCreate = Union[CreatePatientResult, Exception]


class FakeChartingClient:
    """
    In-memory ChartingApiProtocol implementation.

    Create responses are scripted per draft id; every call is recorded in
    ``calls`` as ``(operation, argument)``.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.create_responses: Dict[str, ScriptedCreate] = {}
        self.admission_responses: Dict[str, ScriptedCreate] = {}
        self.save_diagnoses_result = True
        self.attach_errors: Dict[str, Exception] = {}
        self.conversion = ConversionPayload()
        self.convert_error: Optional[Exception] = None
        self.search_results: List[DiagnosisItem] = []
        self.search_error: Optional[Exception] = None
        self.facilities: List[Facility] = []
        self.providers: List[Provider] = []
        self.providers_error: Optional[Exception] = None

    async def create_patient(self, patient: DraftPatient, create_admission: bool = False):
        operation = "create_admission" if create_admission else "create_patient"
        self.calls.append((operation, patient.draft_id))
        scripted = (self.admission_responses if create_admission else self.create_responses).get(
            patient.draft_id
        )
        if scripted is None:
            return CreatePatientResult(success=True, admission_id=f"adm-{patient.draft_id}")
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    async def save_diagnoses(self, admission_id: str, items: Sequence[DiagnosisItem]) -> bool:
        self.calls.append(("save_diagnoses", admission_id, tuple(items)))
        return self.save_diagnoses_result

    async def attach_to_worklist(self, admission_id: str) -> WorklistAttachment:
        self.calls.append(("attach_to_worklist", admission_id))
        if admission_id in self.attach_errors:
            raise self.attach_errors[admission_id]
        return WorklistAttachment(id=f"wl-{admission_id}")

    async def convert_notes(self, text: str) -> ConversionPayload:
        self.calls.append(("convert_notes", text))
        if self.convert_error is not None:
            raise self.convert_error
        return self.conversion

    async def search_diagnosis_codes(self, query: str) -> List[DiagnosisItem]:
        self.calls.append(("search_diagnosis_codes", query))
        if self.search_error is not None:
            raise self.search_error
        return list(self.search_results)

    async def fetch_facilities(self) -> List[Facility]:
        self.calls.append(("fetch_facilities",))
        return list(self.facilities)

    async def fetch_providers(self) -> List[Provider]:
        self.calls.append(("fetch_providers",))
        if self.providers_error is not None:
            raise self.providers_error
        return list(self.providers)

    def operations(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def client() -> FakeChartingClient:
    return FakeChartingClient()


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def config() -> IntakeConfiguration:
    return IntakeConfiguration(api_base_url="https://charting.test")


@pytest.fixture
def facility() -> Facility:
    return Facility(id="10", name="General Hospital", abbreviation="GH", amd_hospital_id="900")


@pytest.fixture
def provider() -> Provider:
    return Provider(id="7", firstname="Ana", lastname="Ruiz", title="Physician", amd_provider_id="70")


@pytest.fixture
def make_draft(facility, provider):
    """Factory for drafts that pass every rule on TODAY unless overridden."""

    def _make(draft_id: str, firstname: str = "Ann", lastname: str = "Lee", **overrides):
        values = dict(
            draft_id=draft_id,
            firstname=firstname,
            lastname=lastname,
            dateofbirth=date(1980, 3, 15),
            admitdate=date(2025, 5, 20),
            visittype="inpatient",
            facility=facility,
            provider=provider,
        )
        values.update(overrides)
        return DraftPatient(**values)

    return _make


@pytest.fixture
def make_detailed():
    """Factory for converted diagnoses under review."""

    def _make(
        item_id: str,
        code: str,
        text: str,
        status: DiagnosisStatus = DiagnosisStatus.PENDING,
        queries: Sequence[str] = (),
        best_guess: Sequence[DiagnosisItem] = (),
        is_primary: bool = False,
    ) -> DetailedDiagnosis:
        return DetailedDiagnosis(
            physician_diagnosis=text,
            assigned=DiagnosisItem(id=item_id, code=code, description=text, is_primary=is_primary),
            notes="Verified Match" if status is DiagnosisStatus.VERIFIED else "",
            best_guess_codes=tuple(best_guess),
            queries=tuple(queries),
            status=status,
        )

    return _make
