"""Tests for post-create diagnosis saving and worklist attachment."""

import pytest

from patient_intake.core.enums import NoticeLevel
from patient_intake.core.exceptions import CollaboratorError
from patient_intake.core.models import DiagnosisItem
from patient_intake.intake.follow_up import AdmissionFollowUp, CreatedAdmission

DIAGNOSES = (DiagnosisItem("1", "I10", "Hypertension", is_primary=True),)


@pytest.mark.asyncio
async def test_batch_follow_up_saves_and_attaches(client, notifier, make_draft):
    follow_up = AdmissionFollowUp(client, notifier)
    created = [
        CreatedAdmission(make_draft("d1", selected_diagnosis=DIAGNOSES), "501"),
        CreatedAdmission(make_draft("d2", firstname="Bo"), "502"),
    ]

    outcomes = await follow_up.run_batch(created)

    assert client.operations("save_diagnoses") == [("save_diagnoses", "501", DIAGNOSES)]
    assert sorted(call[1] for call in client.operations("attach_to_worklist")) == ["501", "502"]
    assert outcomes[0].diagnoses_saved is True
    assert outcomes[1].diagnoses_saved is None
    assert notifier.messages_at(NoticeLevel.SUCCESS) == [
        "Diagnoses Saved Successfully!",
        "Patients added to Charges Page",
    ]


@pytest.mark.asyncio
async def test_attach_failure_is_reported_per_patient(client, notifier, make_draft):
    client.attach_errors["502"] = CollaboratorError("Worklist unavailable")
    follow_up = AdmissionFollowUp(client, notifier)

    outcomes = await follow_up.run_batch(
        [
            CreatedAdmission(make_draft("d1"), "501"),
            CreatedAdmission(make_draft("d2", firstname="Bo"), "502"),
        ]
    )

    assert [o.attached for o in outcomes] == [True, False]
    assert notifier.messages_at(NoticeLevel.ERROR) == [
        "Failed to add Bo Lee to Charges Page: Worklist unavailable"
    ]
    assert notifier.messages_at(NoticeLevel.SUCCESS) == ["Patients added to Charges Page"]


@pytest.mark.asyncio
async def test_rejected_diagnosis_save(client, notifier, make_draft):
    client.save_diagnoses_result = False
    follow_up = AdmissionFollowUp(client, notifier, add_to_charges=False)

    outcome = await follow_up.run_single(
        CreatedAdmission(make_draft("d1", selected_diagnosis=DIAGNOSES), "501")
    )

    assert outcome.diagnoses_saved is False
    assert outcome.attached is None
    assert client.operations("attach_to_worklist") == []
    assert notifier.messages == ["Failed to save diagnosis for Ann Lee"]


@pytest.mark.asyncio
async def test_missing_admission_id_skips_follow_ups(client, notifier, make_draft):
    follow_up = AdmissionFollowUp(client, notifier)

    outcome = await follow_up.run_single(CreatedAdmission(make_draft("d1"), None))

    assert outcome.attached is None
    assert client.calls == []
    assert notifier.messages == []


@pytest.mark.asyncio
async def test_single_follow_up_uses_singular_notice(client, notifier, make_draft):
    follow_up = AdmissionFollowUp(client, notifier)
    await follow_up.run_single(CreatedAdmission(make_draft("d1"), "501"))
    assert notifier.messages == ["Patient added to Charges Page"]
