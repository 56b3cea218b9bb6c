"""
Diagnosis Verification State Machine

This module drives converted diagnoses from their classified status to
VERIFIED, and keeps the review list ordered as one optional primary item
followed by the secondary items.

State Transitions:
    PENDING / NEEDS_CLARIFICATION ──keep_as_is──────────→ VERIFIED
    any state                     ──select_suggestion───→ VERIFIED
    NEEDS_SEARCH                  ──keep_as_is──────────→ InvalidTransitionError

Ordering operations (promote, demote, move, remove) never change status.

Pipeline Position:
    Conversion → [Verification] → Selected diagnosis set
                  ^^^^^^^^^^^^^^
                  You are here
"""

from typing import Iterable, List, Optional

from loguru import logger

from patient_intake.core.constants import VERIFIED_NOTE
from patient_intake.core.enums import DiagnosisStatus
from patient_intake.core.exceptions import (
    DiagnosisNotFoundError,
    InvalidTransitionError,
    PrimaryDiagnosisRemovalError,
    VerificationIncompleteError,
    WorkflowStateError,
)
from patient_intake.core.models import DetailedDiagnosis, DiagnosisItem
from patient_intake.diagnosis.code_search import CodeSearchResolver
from patient_intake.diagnosis.conversion import DiagnosisConversionPipeline


class DiagnosisVerificationStateMachine:
    """
    Review list of converted diagnoses with verification transitions.

    What it does:
        Holds the DetailedDiagnosis items produced by the conversion
        pipeline, addressed by ``item_id``, and applies the clinician's
        decisions to them.

    Why it exists:
        1. Only VERIFIED items may leave review (``submit``)
        2. At most one item is primary and it is always listed first
        3. Transitions are checked against the current status

    Example:
        >>> machine = DiagnosisVerificationStateMachine(candidates)
        >>> machine.keep_as_is("101")
        >>> machine.promote_to_primary("101")
        >>> codes = machine.submit()
    """

    def __init__(
        self,
        items: Iterable[DetailedDiagnosis] = (),
        pipeline: Optional[DiagnosisConversionPipeline] = None,
        resolver: Optional[CodeSearchResolver] = None,
    ):
        self._pipeline = pipeline
        self._resolver = resolver
        self._primary: Optional[DetailedDiagnosis] = None
        self._secondaries: List[DetailedDiagnosis] = []
        self.load(items)

    # =========================================================================
    # STAGE 1: COLLECTION ACCESS
    # =========================================================================

    def load(self, items: Iterable[DetailedDiagnosis]) -> None:
        """Replace the review list. The first primary item wins; later ones are demoted."""
        self._primary = None
        self._secondaries = []
        for item in items:
            if item.assigned.is_primary and self._primary is None:
                self._primary = item
            else:
                self._secondaries.append(_with_primary(item, False))

    def clear(self) -> None:
        self.load(())

    @property
    def items(self) -> List[DetailedDiagnosis]:
        """Primary item first (if any), then secondaries in order."""
        head = [self._primary] if self._primary is not None else []
        return head + list(self._secondaries)

    @property
    def primary(self) -> Optional[DetailedDiagnosis]:
        return self._primary

    @property
    def secondaries(self) -> List[DetailedDiagnosis]:
        return list(self._secondaries)

    def __len__(self) -> int:
        return len(self._secondaries) + (1 if self._primary is not None else 0)

    def get(self, item_id: str) -> DetailedDiagnosis:
        if self._primary is not None and self._primary.item_id == item_id:
            return self._primary
        return self._secondaries[self._secondary_index(item_id)]

    @property
    def unverified_ids(self) -> List[str]:
        return [item.item_id for item in self.items if not item.is_verified]

    @property
    def all_verified(self) -> bool:
        return not self.unverified_ids

    # =========================================================================
    # STAGE 2: VERIFICATION TRANSITIONS
    # =========================================================================

    def keep_as_is(self, item_id: str) -> DetailedDiagnosis:
        """
        Accept the assigned code as correct.

        Raises:
            InvalidTransitionError: The item needs a manual code search
            DiagnosisNotFoundError: Unknown id
        """
        item = self.get(item_id)
        if item.status is DiagnosisStatus.VERIFIED:
            return item
        if item.status is DiagnosisStatus.NEEDS_SEARCH:
            raise InvalidTransitionError(
                item_id,
                item.status.value,
                "keep_as_is",
                message="A code must be selected through search before this diagnosis can be verified",
            )

        verified = item.with_changes(
            notes=VERIFIED_NOTE,
            queries=(),
            best_guess_codes=(),
            status=DiagnosisStatus.VERIFIED,
        )
        self._replace(item_id, verified)
        logger.debug(f"Diagnosis {item_id} kept as-is")
        return verified

    def open_suggestions(self, item_id: str) -> List[DiagnosisItem]:
        """Surface the item's candidate codes; NEEDS_SEARCH items start with none."""
        item = self.get(item_id)
        candidates = (
            [] if item.status is DiagnosisStatus.NEEDS_SEARCH else list(item.best_guess_codes)
        )
        if self._resolver is not None:
            self._resolver.open(item.physician_diagnosis, item_id, candidates)
        return candidates

    def select_suggestion(
        self, item_id: str, code: str, description: str, new_id: str
    ) -> DetailedDiagnosis:
        """
        Replace the assigned code with a code chosen from suggestions or search.

        Raises:
            InvalidTransitionError: ``new_id`` is already assigned to another item
            DiagnosisNotFoundError: Unknown id
        """
        item = self.get(item_id)
        if any(other.item_id == new_id for other in self.items if other is not item):
            raise InvalidTransitionError(
                item_id,
                item.status.value,
                "select_suggestion",
                message=f"Code {code} is already assigned to another diagnosis under review",
            )

        selected = item.with_changes(
            assigned=DiagnosisItem(
                id=new_id,
                code=code,
                description=description,
                is_primary=item.assigned.is_primary,
            ),
            previous_code_id=item.assigned.id,
            review_key=None,
            notes=VERIFIED_NOTE,
            queries=(),
            best_guess_codes=(),
            status=DiagnosisStatus.VERIFIED,
        )
        self._replace(item_id, selected)
        if self._resolver is not None and self._resolver.target_item_id == item_id:
            self._resolver.close()
        logger.debug(f"Diagnosis {item_id} replaced with {code} ({new_id})")
        return selected

    # =========================================================================
    # STAGE 3: ORDERING
    # =========================================================================

    def promote_to_primary(self, item_id: str) -> None:
        """Make the item primary; the previous primary heads the secondaries."""
        if self._primary is not None and self._primary.item_id == item_id:
            return
        index = self._secondary_index(item_id)
        promoted = _with_primary(self._secondaries.pop(index), True)
        if self._primary is not None:
            self._secondaries.insert(0, _with_primary(self._primary, False))
        self._primary = promoted
        logger.debug(f"Diagnosis {item_id} promoted to primary")

    def demote_from_primary(self, item_id: str, insertion_index: Optional[int] = None) -> None:
        """
        Move the primary item into the secondaries.

        Appended when ``insertion_index`` is omitted or out of range.
        """
        if self._primary is None or self._primary.item_id != item_id:
            item = self.get(item_id)
            raise InvalidTransitionError(
                item_id, item.status.value, "demote", message="Only the primary diagnosis can be demoted"
            )
        demoted = _with_primary(self._primary, False)
        self._primary = None
        if insertion_index is not None and 0 <= insertion_index <= len(self._secondaries):
            self._secondaries.insert(insertion_index, demoted)
        else:
            self._secondaries.append(demoted)

    def move_secondary(self, item_id: str, index: int) -> None:
        """Reorder a secondary item; the index is clamped to the list."""
        current = self._secondary_index(item_id)
        item = self._secondaries.pop(current)
        index = max(0, min(index, len(self._secondaries)))
        self._secondaries.insert(index, item)

    def remove_item(self, item_id: str) -> DetailedDiagnosis:
        """
        Raises:
            PrimaryDiagnosisRemovalError: The item is the primary
            DiagnosisNotFoundError: Unknown id
        """
        if self._primary is not None and self._primary.item_id == item_id:
            raise PrimaryDiagnosisRemovalError(item_id)
        removed = self._secondaries.pop(self._secondary_index(item_id))
        if self._resolver is not None and self._resolver.target_item_id == item_id:
            self._resolver.close()
        return removed

    # =========================================================================
    # STAGE 4: GROWTH AND EXIT
    # =========================================================================

    async def add_more_from_notes(self, note_text: str) -> List[DetailedDiagnosis]:
        """Convert more notes and append the new, non-primary candidates."""
        if self._pipeline is None:
            raise WorkflowStateError("No conversion pipeline attached to this review")
        added = await self._pipeline.convert(note_text, existing=self.items)
        self._secondaries.extend(added)
        return added

    def submit(self) -> List[DiagnosisItem]:
        """
        Leave review with the assigned codes.

        Raises:
            VerificationIncompleteError: Some items are not VERIFIED
        """
        unverified = self.unverified_ids
        if unverified:
            logger.warning(f"Review submit blocked: {len(unverified)} unverified diagnoses")
            raise VerificationIncompleteError(unverified)
        return [item.assigned for item in self.items if item.is_verified]

    # =========================================================================
    # STAGE 5: INTERNALS
    # =========================================================================

    def _secondary_index(self, item_id: str) -> int:
        for index, item in enumerate(self._secondaries):
            if item.item_id == item_id:
                return index
        raise DiagnosisNotFoundError(item_id)

    def _replace(self, item_id: str, updated: DetailedDiagnosis) -> None:
        if self._primary is not None and self._primary.item_id == item_id:
            self._primary = updated
            return
        self._secondaries[self._secondary_index(item_id)] = updated


def _with_primary(item: DetailedDiagnosis, is_primary: bool) -> DetailedDiagnosis:
    if item.assigned.is_primary == is_primary:
        return item
    return item.with_changes(assigned=item.assigned.with_primary(is_primary))
