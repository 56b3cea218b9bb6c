"""Tests for the httpx charting client against a mock transport."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from patient_intake.clients.api_client import (
    ChartingApiProtocol,
    HttpxChartingClient,
    build_patient_form,
)
from patient_intake.core.enums import CreateOutcome, DiagnosisStatus
from patient_intake.core.exceptions import CollaboratorError
from patient_intake.core.models import DiagnosisItem

BASE_URL = "https://charting.test"


def make_client(handler, token="secret"):
    return HttpxChartingClient(BASE_URL, api_token=token, transport=httpx.MockTransport(handler))


def test_client_satisfies_protocol():
    client = make_client(lambda request: httpx.Response(200))
    assert isinstance(client, ChartingApiProtocol)


def test_patient_form_omits_empty_values(make_draft):
    form = build_patient_form(make_draft("d1", room=""), create_admission=True)

    assert form["id"] == "d1"
    assert form["dateofbirth"] == "1980-03-15"
    assert form["hospital_id"] == "10"
    assert form["amd_hospital_id"] == "900"
    assert form["hospitalfacilityname"] == "General Hospital"
    assert form["owning_provider_id"] == "7"
    assert form["amd_provider_id"] == "70"
    assert form["create_admission"] == "true"
    assert "room" not in form
    assert "dischargedate" not in form


@pytest.mark.asyncio
async def test_create_patient_parses_duplicate_on_error_status(make_draft):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        seen["path"] = request.url.path
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(409, json={"prompt": True, "message": "exists"})

    async with make_client(handler) as client:
        result = await client.create_patient(make_draft("d1"))

    assert result.outcome is CreateOutcome.DUPLICATE
    assert result.message == "exists"
    assert seen["auth"] == "Bearer secret"
    assert seen["path"] == "/patient/add-patient"
    assert seen["form"]["firstname"] == ["Ann"]
    assert "create_admission" not in seen["form"]


@pytest.mark.asyncio
async def test_create_patient_returns_admission_id(make_draft):
    handler = lambda request: httpx.Response(200, json={"success": True, "id": 501})

    async with make_client(handler) as client:
        result = await client.create_patient(make_draft("d1"))

    assert result.outcome is CreateOutcome.CREATED
    assert result.admission_id == "501"


@pytest.mark.asyncio
async def test_convert_notes_parses_detailed_diagnoses():
    body = {
        "diagnoses": [{"id": 1, "code": "I10", "description": "Essential hypertension"}],
        "detailed_diagnoses": [
            {
                "physician_diagnosis": "HTN",
                "notes": "Verified match",
                "assigned_icd_diagnosis": {"id": 1, "code": "I10", "description": "Essential hypertension"},
                "best_guess_codes": None,
                "queries": [],
            },
            {
                "physician_diagnosis": "sugar problems",
                "notes": "Best guess",
                "assigned_icd_diagnosis": {"id": 2, "code": "E11.9", "description": "T2DM"},
                "best_guess_codes": [{"id": 3, "code": "E11.65", "description": "T2DM w hyperglycemia"}],
                "queries": [{"query": "clarify dx"}],
            },
        ],
        "documentation_improvement_opportunities": ["Specify type", "Specify control"],
    }
    captured = {}

    def handler(request):
        captured["json"] = json.loads(request.content)
        return httpx.Response(200, json=body)

    async with make_client(handler) as client:
        payload = await client.convert_notes("HTN, sugar problems")

    assert captured["json"] == {"description": "HTN, sugar problems"}
    first, second = payload.detailed_diagnoses
    assert first.status is DiagnosisStatus.VERIFIED
    assert first.item_id == "1"
    assert second.status is DiagnosisStatus.NEEDS_CLARIFICATION
    assert second.queries == ("clarify dx",)
    assert second.best_guess_codes[0].id == "3"
    assert payload.documentation_improvement_opportunities == "Specify type\nSpecify control"


@pytest.mark.asyncio
async def test_convert_notes_failure():
    handler = lambda request: httpx.Response(500, json={"message": "boom"})

    async with make_client(handler) as client:
        with pytest.raises(CollaboratorError) as excinfo:
            await client.convert_notes("HTN")

        assert excinfo.value.message == "Failed to convert notes"
        assert excinfo.value.status_code == 500
        assert client.failed_calls == 1


@pytest.mark.asyncio
async def test_save_diagnoses_reports_status():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(400)

    async with make_client(handler) as client:
        ok = await client.save_diagnoses("501", [DiagnosisItem("1", "I10", "HTN", is_primary=True)])

    assert ok is False
    assert bodies == [
        {
            "admission_id": "501",
            "selectedDiagnosis": [
                {"id": "1", "code": "I10", "description": "HTN", "is_primary": True}
            ],
        }
    ]


@pytest.mark.asyncio
async def test_attach_to_worklist_keeps_details():
    handler = lambda request: httpx.Response(200, json={"id": 77, "status": "queued"})

    async with make_client(handler) as client:
        attachment = await client.attach_to_worklist("501")

    assert attachment.id == "77"
    assert attachment.details == {"status": "queued"}


@pytest.mark.asyncio
async def test_attach_failure_uses_server_message():
    handler = lambda request: httpx.Response(422, json={"message": "Already on worklist"})

    async with make_client(handler) as client:
        with pytest.raises(CollaboratorError, match="Already on worklist"):
            await client.attach_to_worklist("501")


@pytest.mark.asyncio
async def test_search_sends_query_param():
    seen = {}

    def handler(request):
        seen["description"] = request.url.params.get("description")
        return httpx.Response(200, json=[{"id": 11, "code": "I10", "description": "HTN"}])

    async with make_client(handler) as client:
        results = await client.search_diagnosis_codes("hyper tension")

    assert seen["description"] == "hyper tension"
    assert results == [DiagnosisItem("11", "I10", "HTN")]


@pytest.mark.asyncio
async def test_reference_data():
    def handler(request):
        if request.url.path == "/facilities/hospitals":
            return httpx.Response(200, json=[{"id": 10, "hospital": "General Hospital", "abbreviation": "GH"}])
        return httpx.Response(
            200, json=[{"id": 7, "firstname": "Bo", "lastname": "Lin", "title": "Nurse Practitioner"}]
        )

    async with make_client(handler) as client:
        facilities = await client.fetch_facilities()
        providers = await client.fetch_providers()

    assert facilities[0].name == "General Hospital"
    assert providers[0].display_name == "Bo Lin, NP"


@pytest.mark.asyncio
async def test_facility_failure_yields_empty_list_but_provider_failure_raises():
    handler = lambda request: httpx.Response(503)

    async with make_client(handler) as client:
        assert await client.fetch_facilities() == []
        with pytest.raises(CollaboratorError, match="Failed to fetch authorized providers"):
            await client.fetch_providers()


@pytest.mark.asyncio
async def test_network_error_is_translated(make_draft):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler, token=None) as client:
        with pytest.raises(CollaboratorError, match="Network error"):
            await client.create_patient(make_draft("d1"))

        assert client.failed_calls == 1
        assert client.success_rate == 0.0


@pytest.mark.asyncio
async def test_malformed_body_is_a_collaborator_error():
    handler = lambda request: httpx.Response(200, text="<html>oops</html>")

    async with make_client(handler) as client:
        with pytest.raises(CollaboratorError, match="Malformed response body"):
            await client.convert_notes("HTN")
