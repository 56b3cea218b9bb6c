"""Tests for the patient diagnosis collection and its merge rules."""

import pytest

from patient_intake.core.enums import DiagnosisStatus
from patient_intake.core.exceptions import CapacityExceededError, DiagnosisError
from patient_intake.core.models import DiagnosisItem
from patient_intake.diagnosis.selected_set import SelectedDiagnosisSet


def _codes(count, start=0):
    return [DiagnosisItem(str(i), f"Z{i:02d}") for i in range(start, start + count)]


def test_owner_primary_wins_over_candidate_primary():
    owner = SelectedDiagnosisSet([DiagnosisItem("3", "C3", is_primary=True)])

    result = owner.merge(
        [DiagnosisItem("1", "A1", is_primary=True), DiagnosisItem("2", "B2", is_primary=False)]
    )

    assert [(item.code, item.is_primary) for item in result.items] == [
        ("C3", True),
        ("A1", False),
        ("B2", False),
    ]
    assert len(result.added) == 2
    assert sum(item.is_primary for item in owner) == 1


def test_first_candidate_primary_kept_when_owner_has_none():
    owner = SelectedDiagnosisSet([DiagnosisItem("3", "C3")])

    result = owner.merge(
        [DiagnosisItem("1", "A1", is_primary=True), DiagnosisItem("2", "B2", is_primary=True)]
    )

    assert [item.is_primary for item in result.items] == [False, True, False]


def test_existing_and_repeated_codes_are_dropped():
    owner = SelectedDiagnosisSet([DiagnosisItem("3", "C3")])

    result = owner.merge([DiagnosisItem("9", "C3"), DiagnosisItem("1", "A1"), DiagnosisItem("8", "A1")])

    assert owner.codes == ["C3", "A1"]
    assert [item.id for item in result.added] == ["1"]


def test_merge_past_the_ceiling_changes_nothing():
    owner = SelectedDiagnosisSet(_codes(11))

    with pytest.raises(CapacityExceededError) as excinfo:
        owner.merge(_codes(2, start=20))

    assert len(owner) == 11
    assert (excinfo.value.current, excinfo.value.incoming) == (11, 2)


def test_merge_up_to_the_ceiling_is_allowed():
    owner = SelectedDiagnosisSet(_codes(10))
    owner.merge(_codes(2, start=20))
    assert len(owner) == 12
    assert owner.remaining_capacity == 0


def test_duplicates_do_not_count_towards_capacity():
    owner = SelectedDiagnosisSet(_codes(12))
    result = owner.merge(_codes(3))
    assert result.added == ()


def test_merge_verified_filters_unverified(make_detailed):
    owner = SelectedDiagnosisSet()
    result = owner.merge_verified(
        [
            make_detailed("1", "A1", "asthma", status=DiagnosisStatus.VERIFIED),
            make_detailed("2", "B2", "gout"),
        ]
    )
    assert owner.codes == ["A1"]
    assert len(result.added) == 1


def test_remove():
    owner = SelectedDiagnosisSet([DiagnosisItem("3", "C3", is_primary=True)])
    assert owner.remove("3") is True
    assert owner.remove("3") is False
    assert not owner.has_primary


def test_constructor_rejects_broken_collections():
    with pytest.raises(CapacityExceededError):
        SelectedDiagnosisSet(_codes(13))
    with pytest.raises(DiagnosisError):
        SelectedDiagnosisSet(
            [DiagnosisItem("1", "A1", is_primary=True), DiagnosisItem("2", "B2", is_primary=True)]
        )


def test_custom_ceiling():
    owner = SelectedDiagnosisSet(max_count=2)
    with pytest.raises(CapacityExceededError):
        owner.merge(_codes(3))
