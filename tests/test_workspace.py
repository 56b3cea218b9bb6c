"""Tests for the per-patient diagnosis editor session."""

import pytest

from patient_intake.core.enums import DiagnosisStatus, NoticeLevel
from patient_intake.core.exceptions import CollaboratorError
from patient_intake.core.models import ConversionPayload, DiagnosisItem
from patient_intake.diagnosis.code_search import CodeSearchResolver
from patient_intake.diagnosis.conversion import DiagnosisConversionPipeline
from patient_intake.diagnosis.workspace import DiagnosisWorkspace

SAVED = (DiagnosisItem("3", "C3", "Existing primary", is_primary=True),)


@pytest.fixture
def committed():
    return []


@pytest.fixture
def workspace(client, notifier, committed):
    return DiagnosisWorkspace(
        saved=SAVED,
        pipeline=DiagnosisConversionPipeline(client),
        resolver=CodeSearchResolver(client, notifier),
        notifier=notifier,
        on_save=committed.append,
    )


@pytest.fixture
def converted(client, make_detailed):
    client.conversion = ConversionPayload(
        detailed_diagnoses=(
            make_detailed("1", "A1", "First", queries=["clarify dx"],
                          status=DiagnosisStatus.NEEDS_CLARIFICATION),
            make_detailed("2", "B2", "Second", status=DiagnosisStatus.VERIFIED),
        )
    )


@pytest.mark.asyncio
async def test_convert_review_submit_save(workspace, notifier, committed, converted):
    assert await workspace.convert_notes("first and second") is True
    assert workspace.is_reviewing
    assert not workspace.is_loading

    workspace.keep_as_is("1")
    workspace.machine.promote_to_primary("1")
    result = workspace.submit_review()

    assert [(item.code, item.is_primary) for item in result.items] == [
        ("C3", True),
        ("A1", False),
        ("B2", False),
    ]
    assert not workspace.is_reviewing
    assert workspace.saved_items == SAVED

    saved = workspace.save()
    assert committed == [saved]
    assert notifier.messages == [
        "Notes converted successfully",
        "Query ignored and marked as verified",
        "2 verified diagnoses added",
    ]


@pytest.mark.asyncio
async def test_submit_with_unverified_items_keeps_review_open(workspace, notifier, converted):
    await workspace.convert_notes("first and second")

    assert workspace.submit_review() is None
    assert workspace.is_reviewing
    assert notifier.messages_at(NoticeLevel.ERROR)[0].startswith(
        "Please confirm the accuracy of all ICD-10 codes"
    )
    assert workspace.working_items == SAVED


@pytest.mark.asyncio
async def test_blank_notes_warn_without_call(workspace, client, notifier):
    assert await workspace.convert_notes("   ") is False
    assert client.calls == []
    assert notifier.history[0].level is NoticeLevel.WARNING
    assert notifier.messages == ["Please enter notes to convert"]


@pytest.mark.asyncio
async def test_full_patient_cannot_convert(client, notifier):
    full = tuple(DiagnosisItem(str(i), f"Z{i:02d}") for i in range(12))
    workspace = DiagnosisWorkspace(
        full, DiagnosisConversionPipeline(client), CodeSearchResolver(client, notifier), notifier
    )

    assert await workspace.convert_notes("anything") is False
    assert client.calls == []
    assert notifier.messages == [
        "Limit of 12 ICD10 codes reached. Please delete one or more to continue."
    ]


@pytest.mark.asyncio
async def test_empty_conversion_is_informational(workspace, notifier):
    assert await workspace.convert_notes("nothing codable") is False
    assert notifier.messages == ["No new diagnoses found or all diagnoses already added"]
    assert notifier.history[0].level is NoticeLevel.INFO


@pytest.mark.asyncio
async def test_conversion_failure_is_reported(workspace, client, notifier):
    client.convert_error = CollaboratorError("Failed to convert notes")

    assert await workspace.convert_notes("CHF") is False
    assert notifier.messages == ["Failed to convert notes"]
    assert not workspace.is_loading


@pytest.mark.asyncio
async def test_add_more_rows_reports_count(workspace, client, notifier, converted, make_detailed):
    await workspace.convert_notes("first and second")
    client.conversion = ConversionPayload(
        detailed_diagnoses=(make_detailed("2", "B2", "Second"), make_detailed("4", "D4", "Fourth"))
    )

    added = await workspace.add_more_from_notes("second and fourth")

    assert [item.item_id for item in added] == ["4"]
    assert notifier.messages[-1] == "1 new diagnosis added"


@pytest.mark.asyncio
async def test_add_more_rows_requires_text(workspace, notifier):
    assert await workspace.add_more_from_notes("") == []
    assert notifier.messages == ["Please enter notes to add new rows"]


@pytest.mark.asyncio
async def test_select_code_through_resolver(workspace, converted):
    await workspace.convert_notes("first and second")
    workspace.open_suggestions("1")

    assert workspace.select_code(DiagnosisItem("7", "A1.1", "Refined")) is True
    assert workspace.machine.get("7").status is DiagnosisStatus.VERIFIED
    assert not workspace.resolver.is_open


@pytest.mark.asyncio
async def test_already_saved_codes_are_not_added_twice(workspace, client, notifier, make_detailed):
    client.conversion = ConversionPayload(
        detailed_diagnoses=(make_detailed("3", "C3", "Existing", status=DiagnosisStatus.VERIFIED),)
    )
    await workspace.convert_notes("existing")

    result = workspace.submit_review()

    assert result.added == ()
    assert notifier.messages[-1] == "No new diagnoses to add"


def test_remove_and_discard(workspace, committed):
    assert workspace.remove("3") is True
    assert workspace.working_items == ()

    workspace.discard()
    assert workspace.working_items == SAVED
    assert committed == []


@pytest.mark.asyncio
async def test_unmatched_rows_sharing_an_id_are_both_reviewed(workspace, client, make_detailed):
    client.conversion = ConversionPayload(
        detailed_diagnoses=(
            make_detailed("0", "Not found", "left foot ulcer", status=DiagnosisStatus.NEEDS_SEARCH),
            make_detailed("0", "Not found", "chronic pancreatitis", status=DiagnosisStatus.NEEDS_SEARCH),
        )
    )
    await workspace.convert_notes("left foot ulcer, chronic pancreatitis")

    assert [item.item_id for item in workspace.review_items] == ["0", "0-2"]

    workspace.open_suggestions("0")
    assert workspace.select_code(DiagnosisItem("32", "L97.509", "Ulcer of left foot")) is True
    workspace.open_suggestions("0-2")
    assert workspace.select_code(DiagnosisItem("31", "K86.1", "Other chronic pancreatitis")) is True

    result = workspace.submit_review()

    assert [item.code for item in result.items] == ["C3", "L97.509", "K86.1"]
