"""
Diagnosis Conversion Pipeline

This module turns free-text clinical notes into DetailedDiagnosis candidates
through the note conversion service, and removes candidates the clinician
already has under review.

Pipeline Position:
    Note text → [Conversion] → Verification machine → Selected diagnosis set
                 ^^^^^^^^^^^^
                 You are here
"""

from typing import Iterable, List, Sequence, Set

from loguru import logger

from patient_intake.clients.api_client import ChartingApiProtocol
from patient_intake.core.constants import MAX_DIAGNOSIS_COUNT
from patient_intake.core.exceptions import CapacityExceededError, EmptyNotesError
from patient_intake.core.models import DetailedDiagnosis


class DiagnosisConversionPipeline:
    """
    Converts note text into de-duplicated, non-primary diagnosis candidates.

    What it does:
        1. Checks preconditions before any call (capacity, blank text)
        2. Calls the conversion service exactly once per ``convert``
        3. Drops candidates whose assigned id or physician text is already
           under review (``existing``); rows of one response are all kept
        4. Gives rows that share an assigned id distinct review keys
        5. Forces every returned candidate to non-primary

    Why it exists:
        Both the initial conversion and "add more rows" go through the same
        dedup rules, so converting the same note twice adds nothing.

    Example:
        >>> pipeline = DiagnosisConversionPipeline(client)
        >>> pipeline.ensure_can_convert("CHF exacerbation", current_count=3)
        >>> candidates = await pipeline.convert("CHF exacerbation")
    """

    def __init__(self, client: ChartingApiProtocol, max_diagnosis_count: int = MAX_DIAGNOSIS_COUNT):
        self._client = client
        self._max_count = max_diagnosis_count
        self.documentation_opportunities = ""

    # =========================================================================
    # STAGE 1: PRECONDITIONS
    # =========================================================================

    def ensure_can_convert(self, note_text: str, current_count: int) -> None:
        """
        Raise if a conversion must not be attempted.

        Raises:
            CapacityExceededError: The owner already holds the maximum number of codes
            EmptyNotesError: The note text is blank
        """
        if current_count >= self._max_count:
            raise CapacityExceededError(current_count, 0, self._max_count)
        if not note_text or not note_text.strip():
            raise EmptyNotesError()

    # =========================================================================
    # STAGE 2: CONVERSION
    # =========================================================================

    async def convert(
        self, note_text: str, existing: Sequence[DetailedDiagnosis] = ()
    ) -> List[DetailedDiagnosis]:
        """
        Convert note text into new candidates.

        Args:
            note_text: Clinical note text
            existing: Candidates already under review

        Returns:
            New candidates, possibly empty

        Raises:
            EmptyNotesError: The note text is blank
            CollaboratorError: The conversion service failed
        """
        if not note_text or not note_text.strip():
            raise EmptyNotesError()

        payload = await self._client.convert_notes(note_text)
        self.documentation_opportunities = payload.documentation_improvement_opportunities

        candidates = self.deduplicate(payload.detailed_diagnoses, existing)
        logger.info(
            f"Converted notes into {len(payload.detailed_diagnoses)} diagnoses, "
            f"{len(candidates)} new"
        )
        return candidates

    @staticmethod
    def deduplicate(
        incoming: Iterable[DetailedDiagnosis], existing: Iterable[DetailedDiagnosis] = ()
    ) -> List[DetailedDiagnosis]:
        """
        Drop candidates already under review, by assigned id or normalized
        physician text. A kept row whose assigned id is already taken gets a
        ``review_key`` of the form ``"<id>-<n>"``.
        """
        existing = list(existing)
        seen_ids = {item.assigned.id for item in existing}
        seen_texts = {item.normalized_text for item in existing}
        taken_keys = {item.item_id for item in existing}

        fresh = []
        for item in incoming:
            if item.assigned.id in seen_ids or item.normalized_text in seen_texts:
                logger.debug(f"Skipping diagnosis already under review '{item.physician_diagnosis}'")
                continue
            item = item.with_changes(assigned=item.assigned.with_primary(False))
            if item.item_id in taken_keys:
                key = _free_key(item.assigned.id, taken_keys)
                logger.debug(
                    f"Diagnosis '{item.physician_diagnosis}' shares id {item.assigned.id}; "
                    f"reviewed as {key}"
                )
                item = item.with_changes(review_key=key)
            taken_keys.add(item.item_id)
            fresh.append(item)
        return fresh


def _free_key(base: str, taken: Set[str]) -> str:
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"
