"""
Diagnosis Workspace

Per-patient diagnosis editor session. It works on a copy of the patient's
saved diagnoses: conversions, reviews and removals change only the working
copy until ``save()`` commits it; ``discard()`` restores the saved state.

Flow:
    convert_notes → review (keep / select / reorder / add more) → submit_review
                  → working copy grows → save() → owner receives the items
"""

from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from patient_intake.core.constants import (
    CONVERSION_ERROR_MESSAGE,
    DIAGNOSIS_REMOVED_MESSAGE,
    EMPTY_ROW_NOTES_MESSAGE,
    KEPT_AS_IS_MESSAGE,
    MAX_DIAGNOSIS_COUNT,
    NO_NEW_DIAGNOSES_MESSAGE,
    NOTES_CONVERTED_MESSAGE,
    NOTHING_TO_ADD_MESSAGE,
    ROWS_ADDED_MESSAGE,
    VERIFIED_ADDED_MESSAGE,
)
from patient_intake.core.exceptions import (
    CapacityExceededError,
    CollaboratorError,
    DiagnosisError,
    EmptyNotesError,
    VerificationIncompleteError,
)
from patient_intake.core.models import DetailedDiagnosis, DiagnosisItem
from patient_intake.diagnosis.code_search import CodeSearchResolver
from patient_intake.diagnosis.conversion import DiagnosisConversionPipeline
from patient_intake.diagnosis.selected_set import MergeResult, SelectedDiagnosisSet
from patient_intake.diagnosis.verification import DiagnosisVerificationStateMachine
from patient_intake.notifications import Notifier

SaveCallback = Callable[[Tuple[DiagnosisItem, ...]], None]


class DiagnosisWorkspace:
    """
    Editor session over one patient's diagnoses.

    What it does:
        Runs the conversion pipeline, hosts the verification machine for the
        review step, and merges verified codes into a working copy of the
        patient's diagnosis set. Every user action reports its outcome as a
        notice; errors never escape to the caller.

    Example:
        >>> workspace = controller.open_diagnosis_workspace("d1")
        >>> await workspace.convert_notes("CHF, type 2 diabetes")
        >>> workspace.keep_as_is("101")
        >>> workspace.submit_review()
        >>> workspace.save()
    """

    def __init__(
        self,
        saved: Sequence[DiagnosisItem],
        pipeline: DiagnosisConversionPipeline,
        resolver: CodeSearchResolver,
        notifier: Optional[Notifier] = None,
        max_count: int = MAX_DIAGNOSIS_COUNT,
        on_save: Optional[SaveCallback] = None,
    ):
        self._saved: Tuple[DiagnosisItem, ...] = tuple(saved)
        self._pipeline = pipeline
        self._resolver = resolver
        self._notifier = notifier or Notifier()
        self._max_count = max_count
        self._on_save = on_save

        self._working = SelectedDiagnosisSet(self._saved, max_count=max_count)
        self._machine = DiagnosisVerificationStateMachine(pipeline=pipeline, resolver=resolver)
        self._is_reviewing = False
        self._is_loading = False

    # =========================================================================
    # STAGE 1: STATE
    # =========================================================================

    @property
    def working_items(self) -> Tuple[DiagnosisItem, ...]:
        return self._working.items

    @property
    def saved_items(self) -> Tuple[DiagnosisItem, ...]:
        return self._saved

    @property
    def review_items(self) -> List[DetailedDiagnosis]:
        return self._machine.items

    @property
    def machine(self) -> DiagnosisVerificationStateMachine:
        return self._machine

    @property
    def resolver(self) -> CodeSearchResolver:
        return self._resolver

    @property
    def is_reviewing(self) -> bool:
        return self._is_reviewing

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    # =========================================================================
    # STAGE 2: CONVERSION
    # =========================================================================

    async def convert_notes(self, note_text: str) -> bool:
        """
        Convert notes and open the review step.

        Returns:
            True when the review step opened with new candidates
        """
        try:
            self._pipeline.ensure_can_convert(note_text, len(self._working))
        except EmptyNotesError as e:
            self._notifier.warning(e.message)
            return False
        except CapacityExceededError as e:
            self._notifier.error(e.message)
            return False

        self._is_loading = True
        try:
            candidates = await self._pipeline.convert(note_text)
        except CollaboratorError as e:
            self._notifier.error(e.message or CONVERSION_ERROR_MESSAGE)
            self._is_reviewing = False
            return False
        finally:
            self._is_loading = False

        if not candidates:
            self._notifier.info(NO_NEW_DIAGNOSES_MESSAGE)
            return False

        self._machine.load(candidates)
        self._is_reviewing = True
        self._notifier.success(NOTES_CONVERTED_MESSAGE)
        return True

    async def add_more_from_notes(self, note_text: str) -> List[DetailedDiagnosis]:
        """Append rows converted from more notes to the open review."""
        if not note_text or not note_text.strip():
            self._notifier.warning(EMPTY_ROW_NOTES_MESSAGE)
            return []

        self._is_loading = True
        try:
            added = await self._machine.add_more_from_notes(note_text)
        except CollaboratorError as e:
            self._notifier.error(e.message or CONVERSION_ERROR_MESSAGE)
            return []
        finally:
            self._is_loading = False

        if not added:
            self._notifier.info(NO_NEW_DIAGNOSES_MESSAGE)
        else:
            noun = "diagnosis" if len(added) == 1 else "diagnoses"
            self._notifier.success(ROWS_ADDED_MESSAGE.format(count=len(added), noun=noun))
        return added

    # =========================================================================
    # STAGE 3: REVIEW ACTIONS
    # =========================================================================

    def keep_as_is(self, item_id: str) -> bool:
        try:
            self._machine.keep_as_is(item_id)
        except DiagnosisError as e:
            self._notifier.warning(e.message)
            return False
        self._notifier.success(KEPT_AS_IS_MESSAGE)
        return True

    def open_suggestions(self, item_id: str) -> List[DiagnosisItem]:
        return self._machine.open_suggestions(item_id)

    def select_code(self, code: DiagnosisItem) -> bool:
        """Assign ``code`` to the diagnosis the resolver is open for."""
        target = self._resolver.target_item_id
        if target is None:
            return False
        try:
            self._machine.select_suggestion(target, code.code, code.description, code.id)
        except DiagnosisError as e:
            self._notifier.error(e.message)
            return False
        return True

    def remove_review_item(self, item_id: str) -> bool:
        try:
            self._machine.remove_item(item_id)
        except DiagnosisError as e:
            self._notifier.error(e.message)
            return False
        self._notifier.success(DIAGNOSIS_REMOVED_MESSAGE)
        return True

    def submit_review(self) -> Optional[MergeResult]:
        """
        Merge the verified review into the working copy and close the review.

        Returns:
            The merge result, or None when the review stays open
        """
        try:
            verified = self._machine.submit()
        except VerificationIncompleteError as e:
            self._notifier.error(e.message)
            return None

        try:
            result = self._working.merge(verified)
        except CapacityExceededError as e:
            self._notifier.error(e.message)
            return None

        if result.added:
            self._notifier.success(VERIFIED_ADDED_MESSAGE.format(count=len(result.added)))
        else:
            self._notifier.info(NOTHING_TO_ADD_MESSAGE)

        self.close_review()
        return result

    def close_review(self) -> None:
        """Leave the review step, dropping unmerged candidates."""
        self._machine.clear()
        self._resolver.close()
        self._is_reviewing = False

    # =========================================================================
    # STAGE 4: WORKING COPY
    # =========================================================================

    def remove(self, item_id: str) -> bool:
        return self._working.remove(item_id)

    def save(self) -> Tuple[DiagnosisItem, ...]:
        """Commit the working copy and hand it to the owner."""
        self._saved = self._working.items
        logger.info(f"Diagnosis workspace saved {len(self._saved)} codes")
        if self._on_save is not None:
            self._on_save(self._saved)
        return self._saved

    def discard(self) -> None:
        """Revert the working copy to the last saved state."""
        self.close_review()
        self._working = SelectedDiagnosisSet(self._saved, max_count=self._max_count)
