"""
Charting API Client Protocol and Implementations

This module defines the interface the intake workflow uses to reach its
collaborating services (patient creation, diagnosis persistence, charges
worklist, note conversion, code search, reference data) and provides a base
class plus an httpx implementation.

Protocol Pattern:
    - ChartingApiProtocol defines the interface
    - BaseChartingClient implements every operation on top of one ``_send``
    - HttpxChartingClient implements ``_send`` with httpx.AsyncClient

Why This Design:
    1. Workflow components depend on the protocol, never on httpx
    2. Tests substitute a scripted fake or an httpx.MockTransport
    3. Response interpretation (status handling, parsing) lives in one place

No call is retried: the clinician re-triggers failed actions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from patient_intake.clients.schemas import (
    ConversionResponseSchema,
    CreatePatientResponseSchema,
    DiagnosisCodeSchema,
    FacilitySchema,
    ProviderSchema,
    WorklistResponseSchema,
)
from patient_intake.core.constants import ENDPOINTS
from patient_intake.core.exceptions import CollaboratorError
from patient_intake.core.models import (
    ConversionPayload,
    CreatePatientResult,
    DiagnosisItem,
    DraftPatient,
    Facility,
    Provider,
    WorklistAttachment,
    diagnosis_items_to_dicts,
)


# =============================================================================
# STAGE 1: CHARTING API PROTOCOL
# =============================================================================


@runtime_checkable
class ChartingApiProtocol(Protocol):
    """
    Protocol defining the collaborator operations the workflow needs.

    Required Methods:
        create_patient(patient, create_admission) → CreatePatientResult
        save_diagnoses(admission_id, items)       → bool
        attach_to_worklist(admission_id)          → WorklistAttachment
        convert_notes(text)                       → ConversionPayload
        search_diagnosis_codes(query)             → list of DiagnosisItem
        fetch_facilities()                        → list of Facility
        fetch_providers()                         → list of Provider

    Every method may raise CollaboratorError.
    """

    async def create_patient(
        self, patient: DraftPatient, create_admission: bool = False
    ) -> CreatePatientResult:
        ...

    async def save_diagnoses(self, admission_id: str, items: Sequence[DiagnosisItem]) -> bool:
        ...

    async def attach_to_worklist(self, admission_id: str) -> WorklistAttachment:
        ...

    async def convert_notes(self, text: str) -> ConversionPayload:
        ...

    async def search_diagnosis_codes(self, query: str) -> List[DiagnosisItem]:
        ...

    async def fetch_facilities(self) -> List[Facility]:
        ...

    async def fetch_providers(self) -> List[Provider]:
        ...


# =============================================================================
# STAGE 2: REQUEST HELPERS
# =============================================================================


@dataclass(frozen=True)
class ApiResponse:
    """
    Transport-neutral response handed from ``_send`` to the operations.

    ``payload`` is the decoded JSON body, or None when the body is empty or
    not JSON.
    """

    status_code: int
    payload: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def server_message(self) -> Optional[str]:
        if isinstance(self.payload, dict):
            return self.payload.get("message") or self.payload.get("error")
        return None


def build_patient_form(patient: DraftPatient, create_admission: bool = False) -> Dict[str, str]:
    """
    Build the form-encoded body of a create-patient request.

    Empty values are omitted. Dates are sent as YYYY-MM-DD.
    """
    form: Dict[str, str] = {"id": patient.draft_id}

    simple_fields = {
        "firstname": patient.firstname,
        "lastname": patient.lastname,
        "middlename": patient.middlename,
        "gender": patient.gender,
        "dateofbirth": patient.dateofbirth.isoformat() if patient.dateofbirth else "",
        "room": patient.room,
    }
    form.update({key: value for key, value in simple_fields.items() if value})

    if patient.facility:
        form["hospital_id"] = patient.facility.id
        if patient.facility.amd_hospital_id:
            form["amd_hospital_id"] = patient.facility.amd_hospital_id
        if patient.facility.name:
            form["hospitalfacilityname"] = patient.facility.name

    admission_fields = {
        "admitdate": patient.admitdate.isoformat() if patient.admitdate else "",
        "dischargedate": patient.dischargedate.isoformat() if patient.dischargedate else "",
        "visittype": patient.visittype or "",
        "status": patient.status,
        "facesheetalias": patient.facesheetalias,
    }
    form.update({key: value for key, value in admission_fields.items() if value})

    if create_admission:
        form["create_admission"] = "true"

    if patient.provider:
        form["owning_provider_id"] = patient.provider.id
        if patient.provider.amd_provider_id:
            form["amd_provider_id"] = patient.provider.amd_provider_id

    return form


# =============================================================================
# STAGE 3: BASE CHARTING CLIENT (ABSTRACT)
# =============================================================================


class BaseChartingClient(ABC):
    """
    Abstract base class implementing the protocol on top of ``_send``.

    What it does:
        Interprets status codes and bodies for each operation, converts wire
        schemas to domain models, logs, and tracks call metrics.

    What subclasses must implement:
        - _send(method, path, params=, json=, data=): one HTTP exchange

    What base class provides:
        - Every ChartingApiProtocol operation
        - Translation of malformed bodies to CollaboratorError
        - Metrics (total_calls, failed_calls, success_rate)
    """

    def __init__(self):
        self._total_calls = 0
        self._failed_calls = 0

    # =========================================================================
    # STAGE 3.1: PATIENT OPERATIONS
    # =========================================================================

    async def create_patient(
        self, patient: DraftPatient, create_admission: bool = False
    ) -> CreatePatientResult:
        """
        Create a patient, or force a new admission for an existing one.

        The body is parsed whatever the status code: the service reports
        duplicates and validation failures inside a JSON body.
        """
        response = await self._request(
            "create_patient",
            "POST",
            ENDPOINTS["create_patient"],
            data=build_patient_form(patient, create_admission),
        )
        schema = self._parse(
            "create_patient", CreatePatientResponseSchema, response.payload
        )
        result = schema.to_domain()
        logger.debug(
            f"Create patient {patient.draft_id}: status={response.status_code}, "
            f"outcome={result.outcome.value}"
        )
        return result

    async def save_diagnoses(self, admission_id: str, items: Sequence[DiagnosisItem]) -> bool:
        """Persist the diagnosis set of an admission. True iff the service accepted it."""
        response = await self._request(
            "save_diagnoses",
            "POST",
            ENDPOINTS["save_diagnoses"],
            json={
                "admission_id": admission_id,
                "selectedDiagnosis": diagnosis_items_to_dicts(list(items)),
            },
            raise_for_status=False,
        )
        if not response.ok:
            logger.error(
                f"Saving diagnoses for admission {admission_id} failed "
                f"with status {response.status_code}"
            )
        return response.ok

    async def attach_to_worklist(self, admission_id: str) -> WorklistAttachment:
        response = await self._request(
            "attach_to_worklist",
            "POST",
            ENDPOINTS["attach_to_worklist"],
            json={"admission_id": admission_id},
        )
        if not isinstance(response.payload, dict):
            return WorklistAttachment(id=None)
        return self._parse(
            "attach_to_worklist", WorklistResponseSchema, response.payload
        ).to_domain()

    # =========================================================================
    # STAGE 3.2: DIAGNOSIS OPERATIONS
    # =========================================================================

    async def convert_notes(self, text: str) -> ConversionPayload:
        response = await self._request(
            "convert_notes",
            "POST",
            ENDPOINTS["convert_notes"],
            json={"description": text},
            failure_message="Failed to convert notes",
        )
        return self._parse(
            "convert_notes", ConversionResponseSchema, response.payload
        ).to_domain()

    async def search_diagnosis_codes(self, query: str) -> List[DiagnosisItem]:
        response = await self._request(
            "search_diagnosis_codes",
            "GET",
            ENDPOINTS["search_diagnosis_codes"],
            params={"description": query},
        )
        rows = self._expect_list("search_diagnosis_codes", response.payload)
        return [
            self._parse("search_diagnosis_codes", DiagnosisCodeSchema, row).to_domain()
            for row in rows
        ]

    # =========================================================================
    # STAGE 3.3: REFERENCE DATA
    # =========================================================================

    async def fetch_facilities(self) -> List[Facility]:
        """Facilities the user may admit to. A failed status yields an empty list."""
        response = await self._request(
            "fetch_facilities", "GET", ENDPOINTS["facilities"], raise_for_status=False
        )
        if not response.ok:
            logger.warning(f"Facility list unavailable (status {response.status_code})")
            return []
        rows = self._expect_list("fetch_facilities", response.payload)
        return [self._parse("fetch_facilities", FacilitySchema, row).to_domain() for row in rows]

    async def fetch_providers(self) -> List[Provider]:
        response = await self._request(
            "fetch_providers",
            "GET",
            ENDPOINTS["providers"],
            failure_message="Failed to fetch authorized providers",
        )
        rows = self._expect_list("fetch_providers", response.payload)
        return [self._parse("fetch_providers", ProviderSchema, row).to_domain() for row in rows]

    # =========================================================================
    # STAGE 4: ABSTRACT METHODS
    # =========================================================================

    @abstractmethod
    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """
        Perform one HTTP exchange. Must be implemented by subclasses.

        Raises:
            CollaboratorError: If no response could be obtained
        """
        ...

    # =========================================================================
    # STAGE 5: COMMON IMPLEMENTATION
    # =========================================================================

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, str]] = None,
        raise_for_status: Optional[bool] = None,
        failure_message: Optional[str] = None,
    ) -> ApiResponse:
        """
        Send a request and apply the operation's status policy.

        ``raise_for_status`` defaults to True except for create_patient,
        whose body is meaningful on any status.
        """
        if raise_for_status is None:
            raise_for_status = operation != "create_patient"

        try:
            response = await self._send(method, path, params=params, json=json, data=data)
        except CollaboratorError:
            self._failed_calls += 1
            logger.error(f"{operation} failed: no response from {path}")
            raise

        if raise_for_status and not response.ok:
            self._failed_calls += 1
            message = failure_message or response.server_message or f"{operation} failed"
            logger.error(f"{operation} returned status {response.status_code}: {message}")
            raise CollaboratorError(message, operation=operation, status_code=response.status_code)

        if response.ok:
            self._total_calls += 1
        else:
            self._failed_calls += 1
        return response

    @staticmethod
    def _parse(operation: str, schema: Any, payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise CollaboratorError(
                f"Malformed response body for {operation}", operation=operation
            )
        try:
            return schema.model_validate(payload)
        except PydanticValidationError as e:
            raise CollaboratorError(
                f"Malformed response body for {operation}: {e.error_count()} error(s)",
                operation=operation,
            ) from e

    @staticmethod
    def _expect_list(operation: str, payload: Any) -> list:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise CollaboratorError(
                f"Expected a list in response body for {operation}", operation=operation
            )
        return payload

    # =========================================================================
    # STAGE 6: METRICS
    # =========================================================================

    @property
    def total_calls(self) -> int:
        """Number of calls answered with a success status."""
        return self._total_calls

    @property
    def failed_calls(self) -> int:
        """Number of calls that failed in transport or with an error status."""
        return self._failed_calls

    @property
    def success_rate(self) -> float:
        """Percentage of successful calls."""
        total = self._total_calls + self._failed_calls
        if total == 0:
            return 100.0
        return (self._total_calls / total) * 100


# =============================================================================
# STAGE 7: HTTPX IMPLEMENTATION
# =============================================================================


class HttpxChartingClient(BaseChartingClient):
    """
    Charting API client backed by ``httpx.AsyncClient``.

    What it does:
        Sends every request with the bearer token and the configured
        timeout, and decodes JSON bodies.

    When to use:
        - In production, built by ``IntakeWorkflow.from_environment``
        - In client tests, with an ``httpx.MockTransport``

    Example:
        >>> async with HttpxChartingClient("https://charting.example.org", api_token="t") as client:
        ...     facilities = await client.fetch_facilities()
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"Charting client ready for {base_url}")

    async def __aenter__(self) -> "HttpxChartingClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        try:
            response = await self._client.request(
                method, path, params=params, json=json, data=data
            )
        except httpx.HTTPError as e:
            raise CollaboratorError(f"Network error: {e}", operation=path) from e

        payload = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                logger.debug(f"Non-JSON body from {path} (status {response.status_code})")
        return ApiResponse(status_code=response.status_code, payload=payload)
