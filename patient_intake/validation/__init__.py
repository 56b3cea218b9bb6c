"""
Validation Layer - Draft Patient Rules

Submodules:
    date_rules.py        → Age, future and stale-date heuristics
    patient_validator.py → Hard rules, confirmations and batch checks
"""

from patient_intake.validation.patient_validator import (
    FieldError,
    PatientValidationResult,
    PatientValidator,
    RequiredFieldChecks,
)

__all__ = [
    "FieldError",
    "PatientValidationResult",
    "PatientValidator",
    "RequiredFieldChecks",
]
