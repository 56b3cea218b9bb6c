"""
Core Layer - Domain Models, Enums, and Configuration

This layer contains the side-effect-free building blocks of the intake
workflow: immutable models, enumerations, limits and notice texts, the
exception hierarchy and the configuration dataclass.

Submodules:
    models.py     → Data structures (DraftPatient, DiagnosisItem, DetailedDiagnosis)
    enums.py      → Enumerations (DiagnosisStatus, CreateOutcome, NoticeLevel)
    constants.py  → Limits, endpoints and notice messages
    config.py     → Configuration dataclass
    exceptions.py → Domain-specific exceptions

Dependency Rule:
    This layer depends on NOTHING else in the package.
    All other layers may depend on this layer.
"""

from patient_intake.core.models import (
    ConfirmationPrompt,
    CreatePatientResult,
    DetailedDiagnosis,
    DiagnosisItem,
    DraftPatient,
    DuplicateQueueEntry,
    Facility,
    Notice,
    Provider,
)
from patient_intake.core.enums import (
    CreateOutcome,
    DiagnosisStatus,
    NavigationDirection,
    NavigationStatus,
    NoticeLevel,
)
from patient_intake.core.config import IntakeConfiguration
from patient_intake.core.exceptions import (
    CapacityExceededError,
    CollaboratorError,
    ConfigurationError,
    DiagnosisError,
    IntakeError,
    ValidationError,
    WorkflowStateError,
)

__all__ = [
    # Models
    "ConfirmationPrompt",
    "CreatePatientResult",
    "DetailedDiagnosis",
    "DiagnosisItem",
    "DraftPatient",
    "DuplicateQueueEntry",
    "Facility",
    "Notice",
    "Provider",
    # Enums
    "CreateOutcome",
    "DiagnosisStatus",
    "NavigationDirection",
    "NavigationStatus",
    "NoticeLevel",
    # Configuration
    "IntakeConfiguration",
    # Exceptions
    "CapacityExceededError",
    "CollaboratorError",
    "ConfigurationError",
    "DiagnosisError",
    "IntakeError",
    "ValidationError",
    "WorkflowStateError",
]
