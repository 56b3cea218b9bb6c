"""
Batch Intake Controller

This module drives the multi-patient intake wizard: a cursor over N draft
patients plus a summary position, validation gates on forward navigation,
date confirmations, the concurrent batch save and the hand-off to the
duplicate resolution queue.

Cursor Model:
    0 .. N-1 → editing draft i
    N        → summary (every draft editable in place, save available)

Batch Save:
    STAGE 1: Hard rules on every draft (abort on the first failure)
    STAGE 2: In-batch duplicate rule (abort)
    STAGE 3: Aggregated date confirmation (hold until confirmed)
    STAGE 4: One create request per draft, concurrently
    STAGE 5: Follow-ups for created drafts, queue for duplicates,
             notices for failures, cursor repositioning
    STAGE 6: Finalize once no duplicates remain queued
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from patient_intake.clients.api_client import ChartingApiProtocol
from patient_intake.core.config import IntakeConfiguration
from patient_intake.core.constants import (
    DUPLICATES_PENDING_MESSAGE,
    PATIENT_ADDED_MESSAGE,
    PATIENT_FAILED_MESSAGE,
)
from patient_intake.core.enums import (
    CreateOutcome,
    NavigationDirection,
    NavigationStatus,
    PendingAction,
)
from patient_intake.core.exceptions import (
    CollaboratorError,
    IntakeError,
    ValidationError,
    WorkflowStateError,
)
from patient_intake.core.models import (
    ConfirmationPrompt,
    DiagnosisItem,
    DraftPatient,
    DuplicateQueueEntry,
    Facility,
    Provider,
)
from patient_intake.diagnosis.code_search import CodeSearchResolver
from patient_intake.diagnosis.conversion import DiagnosisConversionPipeline
from patient_intake.diagnosis.selected_set import SelectedDiagnosisSet
from patient_intake.diagnosis.workspace import DiagnosisWorkspace
from patient_intake.intake.duplicate_queue import DuplicateResolutionQueue
from patient_intake.intake.follow_up import AdmissionFollowUp, CreatedAdmission
from patient_intake.notifications import Notifier
from patient_intake.validation.patient_validator import (
    PatientValidationResult,
    PatientValidator,
)


# =============================================================================
# STAGE 1: RESULT TYPES
# =============================================================================


@dataclass(frozen=True)
class NavigationResult:
    """Outcome of ``advance`` or a confirmed navigation."""

    status: NavigationStatus
    index: int
    prompt: Optional[ConfirmationPrompt] = None
    error: Optional[str] = None


@dataclass
class BatchSaveReport:
    """
    Outcome of one save round.

    Attributes:
        created: Draft ids created (and removed from the batch)
        duplicates: Draft ids handed to the duplicate queue
        failed: Draft ids whose create failed (still pending)
        prompt: Confirmation holding the save, if any
        aborted: True when a hard rule stopped the save
        error: Message of the rule that aborted the save
    """

    created: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    prompt: Optional[ConfirmationPrompt] = None
    aborted: bool = False
    error: Optional[str] = None

    @property
    def dispatched(self) -> bool:
        return bool(self.created or self.duplicates or self.failed)


# =============================================================================
# STAGE 2: CONTROLLER
# =============================================================================


class BatchIntakeController:
    """
    Owns the draft batch, the wizard cursor and the pending confirmation.

    What it does:
        Applies navigation and save rules, talks to the create service, and
        hands duplicates to a DuplicateResolutionQueue it owns. Drafts are
        immutable; every edit replaces the draft in the batch.

    Why it exists:
        1. Single owner of the mutable batch and cursor
        2. Collaborator failures become notices, never exceptions
        3. Closes the workflow only when nothing remains pending

    Example:
        >>> controller = BatchIntakeController(client, config=config)
        >>> controller.initialize(extracted_patients)
        >>> controller.advance(NavigationDirection.FORWARD)
        >>> report = await controller.save_all()
        >>> if report.prompt:
        ...     report = await controller.confirm_pending()
    """

    def __init__(
        self,
        client: ChartingApiProtocol,
        config: Optional[IntakeConfiguration] = None,
        notifier: Optional[Notifier] = None,
        validator: Optional[PatientValidator] = None,
        on_refetch: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        today: Callable[[], date] = date.today,
    ):
        # =====================================================================
        # STAGE 2.1: COLLABORATORS
        # =====================================================================
        self._config = config or IntakeConfiguration()
        self._client = client
        self._notifier = notifier or Notifier()
        self._validator = validator or PatientValidator(
            min_age=self._config.min_age_warning,
            max_age=self._config.max_age_warning,
            stale_admission_days=self._config.stale_admission_days,
            today=today,
        )
        self._follow_up = AdmissionFollowUp(
            client, self._notifier, add_to_charges=self._config.add_to_charges
        )
        self._queue = DuplicateResolutionQueue(
            client,
            self._follow_up,
            self._notifier,
            on_resolved=self._on_duplicate_resolved,
            on_drained=self._finalize,
        )
        self._on_refetch = on_refetch
        self._on_close = on_close

        # =====================================================================
        # STAGE 2.2: WIZARD STATE
        # =====================================================================
        self._patients: List[DraftPatient] = []
        self._cursor = 0
        self._pending_prompt: Optional[ConfirmationPrompt] = None
        self._is_loading = False
        self._is_closed = False
        self._facilities: List[Facility] = []
        self._providers: List[Provider] = []

    # =========================================================================
    # STAGE 3: STATE ACCESS
    # =========================================================================

    @property
    def patients(self) -> Tuple[DraftPatient, ...]:
        return tuple(self._patients)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def is_summary(self) -> bool:
        return self._cursor == len(self._patients)

    @property
    def current_patient(self) -> Optional[DraftPatient]:
        return None if self.is_summary else self._patients[self._cursor]

    @property
    def page_label(self) -> str:
        return f"{self._cursor + 1} / {len(self._patients) + 1}"

    @property
    def pending_prompt(self) -> Optional[ConfirmationPrompt]:
        return self._pending_prompt

    @property
    def duplicate_queue(self) -> DuplicateResolutionQueue:
        return self._queue

    @property
    def current_duplicate(self) -> Optional[DuplicateQueueEntry]:
        return self._queue.peek()

    @property
    def is_loading(self) -> bool:
        return self._is_loading or self._queue.is_busy

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    @property
    def add_to_charges(self) -> bool:
        return self._follow_up.add_to_charges

    @add_to_charges.setter
    def add_to_charges(self, enabled: bool) -> None:
        self._follow_up.add_to_charges = enabled

    @property
    def facilities(self) -> List[Facility]:
        return list(self._facilities)

    @property
    def providers(self) -> List[Provider]:
        return list(self._providers)

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    # =========================================================================
    # STAGE 4: INITIALIZATION AND REFERENCE DATA
    # =========================================================================

    def initialize(self, patients: Iterable[Union[DraftPatient, Dict[str, Any]]]) -> None:
        """Start a batch from extracted drafts (DraftPatient or upstream dicts)."""
        self._patients = [
            p if isinstance(p, DraftPatient) else DraftPatient.from_dict(p) for p in patients
        ]
        self._cursor = 0
        self._pending_prompt = None
        self._is_closed = False
        logger.info(f"Batch intake initialized with {len(self._patients)} drafts")

    async def load_reference_data(self) -> Tuple[List[Facility], List[Provider]]:
        """Fetch facilities and providers concurrently for the pickers."""
        self._is_loading = True
        try:
            facilities, providers = await asyncio.gather(
                self._client.fetch_facilities(), self._client.fetch_providers()
            )
        except CollaboratorError as e:
            logger.error(f"Reference data unavailable: {e}")
            self._notifier.error(e.message)
        else:
            self._facilities = facilities
            self._providers = providers
            logger.info(
                f"Loaded {len(facilities)} facilities and {len(providers)} providers"
            )
        finally:
            self._is_loading = False
        return self.facilities, self.providers

    # =========================================================================
    # STAGE 5: NAVIGATION
    # =========================================================================

    def advance(self, direction: NavigationDirection) -> NavigationResult:
        """
        Move the cursor one step.

        Back never validates. Forward from a draft is blocked by a hard rule
        (with an error notice) and held by a date confirmation.
        """
        self._ensure_open()

        if direction is NavigationDirection.BACK:
            self._pending_prompt = None
            if self._cursor == 0:
                return NavigationResult(NavigationStatus.UNCHANGED, self._cursor)
            self._cursor -= 1
            return NavigationResult(NavigationStatus.MOVED, self._cursor)

        if self.is_summary:
            return NavigationResult(NavigationStatus.UNCHANGED, self._cursor)

        blocked = self._blocked_navigation()
        if blocked is not None:
            return blocked

        patient = self._patients[self._cursor]
        prompt = self._validator.navigation_prompt(patient, self._cursor + 1)
        if prompt is not None:
            self._pending_prompt = prompt
            return NavigationResult(
                NavigationStatus.CONFIRMATION_REQUIRED, self._cursor, prompt=prompt
            )

        self._cursor += 1
        return NavigationResult(NavigationStatus.MOVED, self._cursor)

    def validate_current(self, patient: Optional[DraftPatient] = None) -> PatientValidationResult:
        """Validate ``patient``, or the draft under the cursor."""
        target = patient or self.current_patient
        if target is None:
            raise WorkflowStateError("No draft under the cursor")
        return self._validator.validate(target)

    async def confirm_pending(self) -> Union[NavigationResult, BatchSaveReport]:
        """
        Resume the action held by the pending confirmation.

        Hard rules are checked again first; a draft that fails them blocks the
        navigation or aborts the save, exactly as ``advance``/``save_all`` would.
        """
        self._ensure_open()
        prompt = self._pending_prompt
        if prompt is None:
            raise WorkflowStateError("No confirmation pending")
        self._pending_prompt = None

        if prompt.action is PendingAction.NAVIGATE:
            blocked = self._blocked_navigation()
            if blocked is not None:
                return blocked
            self._cursor = min(prompt.target_index, len(self._patients))
            return NavigationResult(NavigationStatus.MOVED, self._cursor)

        aborted = self._check_batch()
        if aborted is not None:
            return aborted
        return await self._dispatch_batch()

    def dismiss_pending(self) -> None:
        """Drop the pending confirmation without acting."""
        self._pending_prompt = None

    # =========================================================================
    # STAGE 6: EDITING
    # =========================================================================

    def update_patient(self, draft_id: str, **changes: Any) -> DraftPatient:
        """Replace a draft with an edited copy. Any pending confirmation is dropped."""
        self._ensure_open()
        index = self._index_of(draft_id)
        updated = self._patients[index].with_changes(**changes)
        self._patients[index] = updated
        if self._pending_prompt is not None:
            logger.debug(f"Draft {draft_id} edited; pending {self._pending_prompt.action.value} dropped")
            self._pending_prompt = None
        return updated

    def update_field(self, draft_id: str, field_name: str, value: Any) -> DraftPatient:
        """
        Summary edit mode: set one field by name.

        ``facility_id`` and ``provider_id`` are resolved through the loaded
        reference data.
        """
        if field_name == "facility_id":
            facility = next((f for f in self._facilities if f.id == str(value)), None)
            if facility is None:
                raise ValidationError(f"Unknown facility: {value}", field="facility")
            return self.update_patient(draft_id, facility=facility)

        if field_name == "provider_id":
            provider = next((p for p in self._providers if p.id == str(value)), None)
            if provider is None:
                raise ValidationError(f"Unknown provider: {value}", field="provider")
            return self.update_patient(draft_id, provider=provider)

        if field_name not in DraftPatient.__dataclass_fields__ or field_name == "draft_id":
            raise ValidationError(f"Unknown field: {field_name}", field=field_name)
        return self.update_patient(draft_id, **{field_name: value})

    def set_diagnoses(self, draft_id: str, items: Sequence[DiagnosisItem]) -> DraftPatient:
        """Replace a draft's diagnoses; the collection must respect the ceiling and single primary."""
        checked = SelectedDiagnosisSet(items, max_count=self._config.max_diagnosis_count)
        return self.update_patient(draft_id, selected_diagnosis=checked.items)

    def open_diagnosis_workspace(self, draft_id: str) -> DiagnosisWorkspace:
        """Editor session whose ``save()`` writes back to the draft."""
        patient = self._patients[self._index_of(draft_id)]
        return DiagnosisWorkspace(
            saved=patient.selected_diagnosis,
            pipeline=DiagnosisConversionPipeline(
                self._client, max_diagnosis_count=self._config.max_diagnosis_count
            ),
            resolver=CodeSearchResolver(self._client, self._notifier),
            notifier=self._notifier,
            max_count=self._config.max_diagnosis_count,
            on_save=lambda items: self.set_diagnoses(draft_id, items),
        )

    # =========================================================================
    # STAGE 7: BATCH SAVE
    # =========================================================================

    async def save_all(self) -> BatchSaveReport:
        """Validate the batch and dispatch it, unless a confirmation holds it."""
        self._ensure_open()
        if not self._queue.is_empty:
            logger.warning(f"Save requested with {len(self._queue)} duplicates still queued")
            self._notifier.warning(DUPLICATES_PENDING_MESSAGE)
            return BatchSaveReport(aborted=True, error=DUPLICATES_PENDING_MESSAGE)
        if not self._patients:
            return BatchSaveReport(aborted=True)

        # STAGE 1 + 2: Hard rules and in-batch duplicates
        aborted = self._check_batch()
        if aborted is not None:
            return aborted

        # STAGE 3: Aggregated confirmation
        prompt = self._validator.batch_prompt(self._patients)
        if prompt is not None:
            self._pending_prompt = prompt
            return BatchSaveReport(prompt=prompt)

        return await self._dispatch_batch()

    async def _dispatch_batch(self) -> BatchSaveReport:
        report = BatchSaveReport()
        batch = list(self._patients)
        self._is_loading = True
        try:
            # STAGE 4: Concurrent creates
            logger.info(f"Dispatching {len(batch)} create requests")
            responses = await asyncio.gather(
                *(self._client.create_patient(patient) for patient in batch),
                return_exceptions=True,
            )

            # STAGE 5: Classify
            created: List[CreatedAdmission] = []
            for patient, response in zip(batch, responses):
                if isinstance(response, BaseException):
                    if not isinstance(response, Exception):
                        raise response
                    reason = response.message if isinstance(response, IntakeError) else str(response)
                    logger.error(f"Create for draft {patient.draft_id} raised: {response!r}")
                    self._notifier.error(
                        PATIENT_FAILED_MESSAGE.format(name=patient.full_name, reason=reason)
                    )
                    report.failed.append(patient.draft_id)
                    continue

                outcome = response.outcome
                if outcome is CreateOutcome.CREATED:
                    self._notifier.success(PATIENT_ADDED_MESSAGE.format(name=patient.full_name))
                    created.append(CreatedAdmission(patient, response.admission_id))
                    report.created.append(patient.draft_id)
                elif outcome is CreateOutcome.DUPLICATE:
                    self._queue.enqueue(DuplicateQueueEntry.for_patient(patient, response.message))
                    report.duplicates.append(patient.draft_id)
                else:
                    self._notifier.error(
                        PATIENT_FAILED_MESSAGE.format(
                            name=patient.full_name, reason=response.failure_reason
                        )
                    )
                    report.failed.append(patient.draft_id)

            if created:
                await self._follow_up.run_batch(created)
                self._remove_drafts(set(report.created))

            logger.info(
                f"Batch save: {len(report.created)} created, "
                f"{len(report.duplicates)} duplicates, {len(report.failed)} failed"
            )
        finally:
            self._is_loading = False

        # STAGE 6: Finalize unless duplicates await resolution
        if self._queue.is_empty:
            self._finalize()
        return report

    # =========================================================================
    # STAGE 8: DUPLICATE QUEUE
    # =========================================================================

    async def confirm_duplicate(self) -> bool:
        self._ensure_open()
        return await self._queue.confirm()

    def cancel_duplicate(self) -> DuplicateQueueEntry:
        self._ensure_open()
        return self._queue.cancel()

    def _on_duplicate_resolved(self, patient: DraftPatient) -> None:
        self._remove_drafts({patient.draft_id})

    # =========================================================================
    # STAGE 9: INTERNALS
    # =========================================================================

    def _blocked_navigation(self) -> Optional[NavigationResult]:
        """BLOCKED result (with an error notice) when the draft under the cursor fails a hard rule."""
        if self.is_summary:
            return None
        patient = self._patients[self._cursor]
        result = self._validator.validate(patient)
        if result.is_valid:
            return None
        message = result.first_error.message
        logger.warning(f"Navigation blocked on draft {patient.draft_id}: {message}")
        self._notifier.error(message)
        return NavigationResult(NavigationStatus.BLOCKED, self._cursor, error=message)

    def _check_batch(self) -> Optional[BatchSaveReport]:
        """Aborted report (with an error notice) when a hard rule or the in-batch duplicate rule fails."""
        try:
            self._validator.ensure_batch_valid(self._patients)
        except ValidationError as e:
            self._notifier.error(e.message)
            return BatchSaveReport(aborted=True, error=e.message)
        return None

    def _remove_drafts(self, draft_ids: set) -> None:
        """Remove drafts and reposition the cursor, keeping the summary position."""
        removed_indices = [i for i, p in enumerate(self._patients) if p.draft_id in draft_ids]
        if not removed_indices:
            return
        removed_before = sum(1 for i in removed_indices if i < self._cursor)
        self._patients = [p for p in self._patients if p.draft_id not in draft_ids]

        new_index = self._cursor - removed_before
        new_count = len(self._patients)
        self._cursor = new_count if new_index >= new_count else max(0, new_index)

    def _finalize(self) -> None:
        if self._on_refetch is not None:
            self._on_refetch()
        if not self._patients:
            self._is_closed = True
            logger.info("Batch intake complete")
            if self._on_close is not None:
                self._on_close()
        else:
            logger.info(f"Batch intake round finished with {len(self._patients)} drafts pending")

    def _index_of(self, draft_id: str) -> int:
        for index, patient in enumerate(self._patients):
            if patient.draft_id == draft_id:
                return index
        raise WorkflowStateError(f"Unknown draft: {draft_id}", context={"draft_id": draft_id})

    def _ensure_open(self) -> None:
        if self._is_closed:
            raise WorkflowStateError("The intake workflow is closed")
