"""Tests for the diagnosis verification state machine."""

import pytest

from patient_intake.core.enums import DiagnosisStatus
from patient_intake.core.exceptions import (
    DiagnosisNotFoundError,
    InvalidTransitionError,
    PrimaryDiagnosisRemovalError,
    VerificationIncompleteError,
    WorkflowStateError,
)
from patient_intake.core.models import ConversionPayload, DiagnosisItem
from patient_intake.diagnosis.code_search import CodeSearchResolver
from patient_intake.diagnosis.conversion import DiagnosisConversionPipeline
from patient_intake.diagnosis.verification import DiagnosisVerificationStateMachine

HTN_ALT = DiagnosisItem("21", "I11.9", "Hypertensive heart disease")


@pytest.fixture
def review_items(make_detailed):
    return [
        make_detailed("1", "I10", "Hypertension", status=DiagnosisStatus.NEEDS_CLARIFICATION,
                      queries=["clarify dx"], best_guess=[HTN_ALT]),
        make_detailed("2", "E11.9", "Type 2 diabetes"),
        make_detailed("3", "J45.909", "Asthma", status=DiagnosisStatus.VERIFIED),
    ]


@pytest.fixture
def resolver(client, notifier):
    return CodeSearchResolver(client, notifier)


@pytest.fixture
def machine(review_items, resolver, client):
    return DiagnosisVerificationStateMachine(
        review_items, pipeline=DiagnosisConversionPipeline(client), resolver=resolver
    )


class TestKeepAsIs:
    def test_clears_queries_and_verifies(self, machine):
        kept = machine.keep_as_is("1")

        assert kept.notes == "Verified Match"
        assert kept.queries == ()
        assert kept.best_guess_codes == ()
        assert kept.status is DiagnosisStatus.VERIFIED

    def test_submit_requires_every_item_verified(self, machine):
        machine.keep_as_is("1")
        with pytest.raises(VerificationIncompleteError) as excinfo:
            machine.submit()
        assert excinfo.value.unverified_ids == ["2"]

        machine.keep_as_is("2")
        assert [item.code for item in machine.submit()] == ["I10", "E11.9", "J45.909"]

    def test_verified_item_is_unchanged(self, machine):
        before = machine.get("3")
        assert machine.keep_as_is("3") is before

    def test_needs_search_requires_a_selection(self, make_detailed):
        machine = DiagnosisVerificationStateMachine(
            [make_detailed("9", "Not found", "Rare syndrome", status=DiagnosisStatus.NEEDS_SEARCH)]
        )
        with pytest.raises(InvalidTransitionError):
            machine.keep_as_is("9")
        assert machine.open_suggestions("9") == []

    def test_unknown_id(self, machine):
        with pytest.raises(DiagnosisNotFoundError):
            machine.keep_as_is("404")


class TestSelectSuggestion:
    def test_replaces_code_and_closes_resolver(self, machine, resolver):
        assert machine.open_suggestions("1") == [HTN_ALT]
        assert resolver.target_item_id == "1"

        selected = machine.select_suggestion("1", "I11.9", "Hypertensive heart disease", "21")

        assert selected.item_id == "21"
        assert selected.previous_code_id == "1"
        assert selected.status is DiagnosisStatus.VERIFIED
        assert selected.queries == ()
        assert not resolver.is_open
        assert [item.item_id for item in machine.items] == ["21", "2", "3"]

    def test_keeps_primary_flag(self, machine):
        machine.promote_to_primary("2")
        selected = machine.select_suggestion("2", "E11.65", "T2DM with hyperglycemia", "22")
        assert selected.assigned.is_primary
        assert machine.primary.item_id == "22"

    def test_rejects_id_already_under_review(self, machine):
        with pytest.raises(InvalidTransitionError):
            machine.select_suggestion("1", "J45.909", "Asthma", "3")

    def test_keyed_row_is_readdressed_by_its_new_code(self, make_detailed):
        machine = DiagnosisVerificationStateMachine(
            [
                make_detailed("0", "Not found", "left foot ulcer", status=DiagnosisStatus.NEEDS_SEARCH),
                make_detailed("0", "Not found", "chronic pancreatitis", status=DiagnosisStatus.NEEDS_SEARCH)
                .with_changes(review_key="0-2"),
            ]
        )

        selected = machine.select_suggestion("0-2", "K86.1", "Other chronic pancreatitis", "31")

        assert selected.item_id == "31"
        assert selected.review_key is None
        assert selected.previous_code_id == "0"
        assert [item.item_id for item in machine.items] == ["0", "31"]
        assert machine.get("0").physician_diagnosis == "left foot ulcer"


class TestOrdering:
    def test_promote_moves_previous_primary_to_head(self, machine):
        machine.promote_to_primary("2")
        machine.promote_to_primary("3")

        assert [item.item_id for item in machine.items] == ["3", "2", "1"]
        assert [item.assigned.is_primary for item in machine.items] == [True, False, False]

    def test_demote_inserts_at_index(self, machine):
        machine.promote_to_primary("1")
        machine.demote_from_primary("1", insertion_index=1)

        assert machine.primary is None
        assert [item.item_id for item in machine.items] == ["2", "1", "3"]

    def test_demote_out_of_range_appends(self, machine):
        machine.promote_to_primary("1")
        machine.demote_from_primary("1", insertion_index=10)
        assert [item.item_id for item in machine.items] == ["2", "3", "1"]

    def test_demote_requires_primary(self, machine):
        with pytest.raises(InvalidTransitionError):
            machine.demote_from_primary("2")

    def test_move_secondary_clamps(self, machine):
        machine.move_secondary("1", 99)
        assert [item.item_id for item in machine.items] == ["2", "3", "1"]
        machine.move_secondary("1", -3)
        assert [item.item_id for item in machine.items] == ["1", "2", "3"]

    def test_primary_cannot_be_removed(self, machine):
        machine.promote_to_primary("2")
        with pytest.raises(PrimaryDiagnosisRemovalError):
            machine.remove_item("2")
        machine.remove_item("1")
        assert len(machine) == 2

    def test_load_keeps_first_primary_only(self, make_detailed):
        machine = DiagnosisVerificationStateMachine(
            [
                make_detailed("1", "A1", "a"),
                make_detailed("2", "B2", "b", is_primary=True),
                make_detailed("3", "C3", "c", is_primary=True),
            ]
        )
        assert [item.item_id for item in machine.items] == ["2", "1", "3"]
        assert sum(item.assigned.is_primary for item in machine.items) == 1


class TestAddMore:
    @pytest.mark.asyncio
    async def test_appends_only_new_non_primary_rows(self, machine, client, make_detailed):
        client.conversion = ConversionPayload(
            detailed_diagnoses=(
                make_detailed("2", "E11.9", "Type 2 diabetes"),
                make_detailed("4", "N18.3", "CKD stage 3", is_primary=True),
            )
        )

        added = await machine.add_more_from_notes("T2DM, CKD 3")

        assert [item.item_id for item in added] == ["4"]
        assert machine.items[-1].item_id == "4"
        assert not machine.items[-1].assigned.is_primary

    @pytest.mark.asyncio
    async def test_requires_a_pipeline(self, review_items):
        machine = DiagnosisVerificationStateMachine(review_items)
        with pytest.raises(WorkflowStateError):
            await machine.add_more_from_notes("more")
