"""
Intake Layer - Batch Wizard, Duplicate Queue and Follow-ups

Submodules:
    controller.py      → Batch wizard: cursor, confirmations, concurrent save
    duplicate_queue.py → Sequential resolution of server-detected duplicates
    follow_up.py       → Diagnosis save and worklist attachment after a create
"""

from patient_intake.intake.controller import (
    BatchIntakeController,
    BatchSaveReport,
    NavigationResult,
)
from patient_intake.intake.duplicate_queue import DuplicateResolutionQueue
from patient_intake.intake.follow_up import (
    AdmissionFollowUp,
    CreatedAdmission,
    FollowUpOutcome,
)

__all__ = [
    "AdmissionFollowUp",
    "BatchIntakeController",
    "BatchSaveReport",
    "CreatedAdmission",
    "DuplicateResolutionQueue",
    "FollowUpOutcome",
    "NavigationResult",
]
