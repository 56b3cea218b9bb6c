"""
Admission follow-ups.

After a create succeeds, the new admission gets its diagnoses saved and,
when enabled, is attached to the charges worklist. Each admission's steps
depend only on its own create response, so admissions run concurrently.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from patient_intake.clients.api_client import ChartingApiProtocol
from patient_intake.core.constants import (
    ATTACH_FAILED_MESSAGE,
    DIAGNOSES_SAVE_FAILED_MESSAGE,
    DIAGNOSES_SAVED_MESSAGE,
    PATIENT_ATTACHED_MESSAGE,
    PATIENTS_ATTACHED_MESSAGE,
)
from patient_intake.core.exceptions import CollaboratorError
from patient_intake.core.models import DraftPatient
from patient_intake.notifications import Notifier


@dataclass(frozen=True)
class CreatedAdmission:
    """A draft whose create request succeeded, with the server's admission id."""

    patient: DraftPatient
    admission_id: Optional[str]


@dataclass
class FollowUpOutcome:
    """
    What happened to one admission's follow-ups.

    ``diagnoses_saved`` is None when there was nothing to save;
    ``attached`` is None when attachment was disabled or skipped.
    """

    admission: CreatedAdmission
    diagnoses_saved: Optional[bool] = None
    attached: Optional[bool] = None
    attach_error: Optional[str] = None


class AdmissionFollowUp:
    """Runs the post-create steps and reports them as notices."""

    def __init__(
        self,
        client: ChartingApiProtocol,
        notifier: Optional[Notifier] = None,
        add_to_charges: bool = True,
    ):
        self._client = client
        self._notifier = notifier or Notifier()
        self.add_to_charges = add_to_charges

    async def run_batch(self, created: Sequence[CreatedAdmission]) -> List[FollowUpOutcome]:
        """Follow up every admission of a batch save concurrently."""
        outcomes = list(await asyncio.gather(*(self._follow_up(item) for item in created)))
        self._report(outcomes, PATIENTS_ATTACHED_MESSAGE)
        return outcomes

    async def run_single(self, created: CreatedAdmission) -> FollowUpOutcome:
        """Follow up one admission created from the duplicate queue."""
        outcome = await self._follow_up(created)
        self._report([outcome], PATIENT_ATTACHED_MESSAGE)
        return outcome

    async def _follow_up(self, created: CreatedAdmission) -> FollowUpOutcome:
        outcome = FollowUpOutcome(admission=created)
        if created.admission_id is None:
            logger.warning(
                f"Create for draft {created.patient.draft_id} returned no admission id; "
                f"skipping follow-ups"
            )
            return outcome

        diagnoses = created.patient.selected_diagnosis
        if diagnoses:
            try:
                outcome.diagnoses_saved = await self._client.save_diagnoses(
                    created.admission_id, diagnoses
                )
            except CollaboratorError as e:
                logger.error(f"Saving diagnoses for {created.admission_id} failed: {e}")
                outcome.diagnoses_saved = False

        if self.add_to_charges:
            try:
                await self._client.attach_to_worklist(created.admission_id)
                outcome.attached = True
            except CollaboratorError as e:
                logger.error(f"Worklist attachment for {created.admission_id} failed: {e}")
                outcome.attached = False
                outcome.attach_error = e.message

        return outcome

    def _report(self, outcomes: Sequence[FollowUpOutcome], attached_message: str) -> None:
        saved = [o for o in outcomes if o.diagnoses_saved is True]
        for outcome in outcomes:
            if outcome.diagnoses_saved is False:
                self._notifier.error(
                    DIAGNOSES_SAVE_FAILED_MESSAGE.format(name=outcome.admission.patient.full_name)
                )
        if saved:
            self._notifier.success(DIAGNOSES_SAVED_MESSAGE)

        attached = [o for o in outcomes if o.attached is True]
        for outcome in outcomes:
            if outcome.attached is False:
                self._notifier.error(
                    ATTACH_FAILED_MESSAGE.format(
                        name=outcome.admission.patient.full_name,
                        reason=outcome.attach_error or "Unknown error",
                    )
                )
        if attached:
            self._notifier.success(attached_message)
