"""
Diagnosis Layer - Conversion, Verification and Merge

Submodules:
    conversion.py   → Note text to de-duplicated DetailedDiagnosis candidates
    verification.py → Review state machine (keep, select, promote, demote, submit)
    code_search.py  → Code search session and suggestion shortlist
    selected_set.py → Patient diagnosis collection with merge rules
    workspace.py    → Per-patient editor session tying the above together
"""

from patient_intake.diagnosis.code_search import CodeSearchResolver
from patient_intake.diagnosis.conversion import DiagnosisConversionPipeline
from patient_intake.diagnosis.selected_set import MergeResult, SelectedDiagnosisSet
from patient_intake.diagnosis.verification import DiagnosisVerificationStateMachine
from patient_intake.diagnosis.workspace import DiagnosisWorkspace

__all__ = [
    "CodeSearchResolver",
    "DiagnosisConversionPipeline",
    "DiagnosisVerificationStateMachine",
    "DiagnosisWorkspace",
    "MergeResult",
    "SelectedDiagnosisSet",
]
