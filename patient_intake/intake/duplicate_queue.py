"""
Duplicate Resolution Queue

When the create service reports that a draft matches an existing patient,
the draft is queued here. The clinician resolves entries one at a time,
head first: confirm creates a new admission for the existing patient,
cancel abandons the draft. Either way the entry leaves the queue and the
draft leaves the pending batch.
"""

from collections import deque
from typing import Callable, Deque, Iterable, Optional

from loguru import logger

from patient_intake.clients.api_client import ChartingApiProtocol
from patient_intake.core.constants import (
    ADMISSION_CREATED_MESSAGE,
    ADMISSION_ERROR_MESSAGE,
    ADMISSION_FAILED_MESSAGE,
    ADMISSION_MISSING_REFERENCE_MESSAGE,
)
from patient_intake.core.exceptions import CollaboratorError, WorkflowStateError
from patient_intake.core.models import DraftPatient, DuplicateQueueEntry
from patient_intake.intake.follow_up import AdmissionFollowUp, CreatedAdmission
from patient_intake.notifications import Notifier

ResolvedCallback = Callable[[DraftPatient], None]
DrainedCallback = Callable[[], None]


class DuplicateResolutionQueue:
    """
    Strictly sequential FIFO of server-detected duplicates.

    What it does:
        Holds DuplicateQueueEntry values and resolves the head on
        ``confirm()`` or ``cancel()``. At most one confirm is in flight.

    Callbacks:
        on_resolved(patient) → the draft left the queue (created or abandoned)
        on_drained()         → the last entry left the queue

    Example:
        >>> queue.enqueue(DuplicateQueueEntry.for_patient(draft))
        >>> queue.peek().message
        'A patient with the name Ann, Lee and DOB 1950-02-14 already exists ...'
        >>> await queue.confirm()
    """

    def __init__(
        self,
        client: ChartingApiProtocol,
        follow_up: AdmissionFollowUp,
        notifier: Optional[Notifier] = None,
        on_resolved: Optional[ResolvedCallback] = None,
        on_drained: Optional[DrainedCallback] = None,
    ):
        self._client = client
        self._follow_up = follow_up
        self._notifier = notifier or Notifier()
        self._on_resolved = on_resolved
        self._on_drained = on_drained
        self._entries: Deque[DuplicateQueueEntry] = deque()
        self._is_busy = False

    # =========================================================================
    # STAGE 1: QUEUE OPERATIONS
    # =========================================================================

    def enqueue(self, entry: DuplicateQueueEntry) -> None:
        self._entries.append(entry)
        logger.info(f"Duplicate queued for draft {entry.patient.draft_id} ({len(self)} pending)")

    def extend(self, entries: Iterable[DuplicateQueueEntry]) -> None:
        for entry in entries:
            self.enqueue(entry)

    def peek(self) -> Optional[DuplicateQueueEntry]:
        return self._entries[0] if self._entries else None

    def pop(self) -> DuplicateQueueEntry:
        if not self._entries:
            raise WorkflowStateError("No duplicate awaiting confirmation")
        return self._entries.popleft()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def is_busy(self) -> bool:
        return self._is_busy

    # =========================================================================
    # STAGE 2: RESOLUTION
    # =========================================================================

    async def confirm(self) -> bool:
        """
        Create a new admission for the head entry's existing patient.

        Returns:
            True when the admission was created

        Raises:
            WorkflowStateError: Queue empty, or a confirm already in flight
        """
        if self._is_busy:
            raise WorkflowStateError("A duplicate confirmation is already in progress")
        entry = self.peek()
        if entry is None:
            raise WorkflowStateError("No duplicate awaiting confirmation")

        patient = entry.patient
        created = False
        self._is_busy = True
        try:
            if patient.facility is None or patient.provider is None:
                logger.warning(f"Draft {patient.draft_id} lacks facility or provider")
                self._notifier.error(
                    ADMISSION_MISSING_REFERENCE_MESSAGE.format(name=patient.full_name)
                )
            else:
                result = await self._client.create_patient(patient, create_admission=True)
                if result.success:
                    self._notifier.success(result.message or ADMISSION_CREATED_MESSAGE)
                    await self._follow_up.run_single(
                        CreatedAdmission(patient=patient, admission_id=result.admission_id)
                    )
                    created = True
                else:
                    self._notifier.error(result.message or ADMISSION_FAILED_MESSAGE)
        except CollaboratorError as e:
            logger.error(f"Creating admission for draft {patient.draft_id} failed: {e}")
            self._notifier.error(ADMISSION_ERROR_MESSAGE)
        finally:
            self._is_busy = False

        self._resolve_head()
        return created

    def cancel(self) -> DuplicateQueueEntry:
        """
        Abandon the head entry without a create call.

        Raises:
            WorkflowStateError: Queue empty, or a confirm in flight
        """
        if self._is_busy:
            raise WorkflowStateError("A duplicate confirmation is already in progress")
        entry = self.peek()
        if entry is None:
            raise WorkflowStateError("No duplicate awaiting confirmation")
        logger.info(f"Duplicate for draft {entry.patient.draft_id} cancelled")
        return self._resolve_head()

    def _resolve_head(self) -> DuplicateQueueEntry:
        entry = self.pop()
        if self._on_resolved is not None:
            self._on_resolved(entry.patient)
        if self.is_empty:
            logger.info("Duplicate queue drained")
            if self._on_drained is not None:
                self._on_drained()
        return entry
