"""
Patient Intake Module

Batch patient intake and diagnosis reconciliation for a clinical charting
backend: drafts extracted from facesheets are validated, reviewed in a
wizard, created concurrently, reconciled against existing patients, and
given verified ICD-10 diagnoses converted from free-text notes.

Architecture Overview:
    patient_intake/
    ├── core/             → Models, enums, constants, configuration (Layer 0 - Pure)
    ├── clients/          → Charting API protocol and httpx client (Layer 1 - Infrastructure)
    ├── validation/       → Draft rules and date heuristics (Layer 2 - Business Logic)
    ├── diagnosis/        → Conversion, verification, merge (Layer 3 - Business Logic)
    ├── intake/           → Batch wizard, duplicate queue, follow-ups (Layer 4 - Business Logic)
    ├── notifications.py  → User-facing notices
    └── workflow.py       → Main orchestrator (Layer 5 - Public API)

Quick Start:
    from patient_intake import IntakeWorkflow

    async with IntakeWorkflow.from_environment() as workflow:
        await workflow.start(extracted_patients)
        report = await workflow.controller.save_all()
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================

# Main Entry Point
from patient_intake.workflow import IntakeWorkflow, configure_logging

# Core Models
from patient_intake.core.models import (
    DetailedDiagnosis,
    DiagnosisItem,
    DraftPatient,
    Facility,
    Notice,
    Provider,
)

# Enums
from patient_intake.core.enums import (
    DiagnosisStatus,
    NavigationDirection,
    NavigationStatus,
    NoticeLevel,
    VisitType,
)

# Configuration
from patient_intake.core.config import IntakeConfiguration

# Components
from patient_intake.intake import BatchIntakeController, DuplicateResolutionQueue
from patient_intake.diagnosis import DiagnosisWorkspace, SelectedDiagnosisSet
from patient_intake.notifications import Notifier

__all__ = [
    # Main Entry Point
    "IntakeWorkflow",
    "configure_logging",
    # Core Models
    "DetailedDiagnosis",
    "DiagnosisItem",
    "DraftPatient",
    "Facility",
    "Notice",
    "Provider",
    # Enums
    "DiagnosisStatus",
    "NavigationDirection",
    "NavigationStatus",
    "NoticeLevel",
    "VisitType",
    # Configuration
    "IntakeConfiguration",
    # Components
    "BatchIntakeController",
    "DiagnosisWorkspace",
    "DuplicateResolutionQueue",
    "Notifier",
    "SelectedDiagnosisSet",
]
