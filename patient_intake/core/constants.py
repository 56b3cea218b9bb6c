"""
Constants for Patient Intake

Centralized limits, status markers, collaborator endpoints and the
user-facing notice texts used across the intake workflow.

Constant Categories:
    LIMITS              → Diagnosis ceiling and date heuristic thresholds
    STATUS_MARKERS      → Free-text prefixes emitted by the conversion service
    ENDPOINTS           → Collaborator API paths
    REQUIRED_FIELDS     → Draft patient fields checked before navigation/save
    MESSAGES            → Notice texts shown to the clinician
"""

from typing import Dict, List, Tuple


# =============================================================================
# STAGE 1: LIMITS
# =============================================================================

MAX_DIAGNOSIS_COUNT = 12
"""Maximum number of diagnosis codes a single patient may carry."""

AGE_MIN_WARNING = 18
AGE_MAX_WARNING = 130
STALE_ADMISSION_DAYS = 90
NOTICE_HISTORY_LIMIT = 200


# =============================================================================
# STAGE 2: STATUS MARKERS
# =============================================================================
# Compared case-insensitively against the start of DetailedDiagnosis.notes.

VERIFIED_PREFIX = "verified match"
VERIFIED_NOTE = "Verified Match"
NEEDS_SEARCH_PREFIXES: Tuple[str, ...] = ("not found", "unable to determine")


# =============================================================================
# STAGE 3: COLLABORATOR ENDPOINTS
# =============================================================================

ENDPOINTS: Dict[str, str] = {
    "create_patient": "/patient/add-patient",
    "save_diagnoses": "/diagnoses/patient-diagnoses",
    "attach_to_worklist": "/charges/charges-patients-list",
    "convert_notes": "/notes/convert-notes",
    "search_diagnosis_codes": "/diagnoses/search-diagnosis",
    "facilities": "/facilities/hospitals",
    "providers": "/facilities/authorized-providers",
}


# =============================================================================
# STAGE 4: REQUIRED FIELDS
# =============================================================================
# Checked in this order; the first missing field is reported.

REQUIRED_FIELDS: List[Tuple[str, str]] = [
    ("firstname", "Please enter first name"),
    ("lastname", "Please enter last name"),
    ("dateofbirth", "Please select date of birth"),
    ("visittype", "Please select visit type"),
    ("admitdate", "Please select admit date"),
]

FACILITY_REQUIRED_MESSAGE = "Please select place of service"
PROVIDER_REQUIRED_MESSAGE = "Please select provider"
INVALID_VISIT_TYPE_MESSAGE = "Unknown visit type: {value}. Please select {options}"
FUTURE_ADMIT_MESSAGE = "Admit date cannot be in the future. Please review and update the date."
DISCHARGE_BEFORE_ADMIT_MESSAGE = "Discharge date cannot be before the admit date."

PROVIDER_TITLE_PREFIXES: Dict[str, str] = {
    "Physician": "Dr.",
    "Nurse Practitioner": "NP",
    "Physician's Assistant": "PA",
}


# =============================================================================
# STAGE 5: NOTICE MESSAGES
# =============================================================================

# 5.1 Batch intake
DUPLICATE_IN_BATCH_MESSAGE = (
    "The same facesheet has been detected in this batch. Please try uploading again. "
    "Only upload unique facesheets."
)
PATIENT_ADDED_MESSAGE = "{name} Added!"
PATIENT_FAILED_MESSAGE = "Failed to add patient {name}: {reason}"
DIAGNOSES_SAVED_MESSAGE = "Diagnoses Saved Successfully!"
DIAGNOSES_SAVE_FAILED_MESSAGE = "Failed to save diagnosis for {name}"
PATIENTS_ATTACHED_MESSAGE = "Patients added to Charges Page"
PATIENT_ATTACHED_MESSAGE = "Patient added to Charges Page"
ATTACH_FAILED_MESSAGE = "Failed to add {name} to Charges Page: {reason}"
DUPLICATES_PENDING_MESSAGE = "Please resolve the pending duplicate patients before saving again"
DEFAULT_DUPLICATE_MESSAGE = (
    "A patient with the name {firstname}, {lastname} and DOB {dateofbirth} already exists "
    "in your records. Would you like to create a new admission instead?"
)
NAVIGATION_DOB_MESSAGE = (
    "Patient {name} has {issues}. If this is correct, click Confirm. "
    "Otherwise, please review and update the date."
)
NAVIGATION_STALE_ADMISSION_MESSAGE = "an admission date over {days} days old"
BATCH_WARNING_MESSAGE = (
    "Warning: {issues}. If this is correct, click Confirm. "
    "Otherwise, please review and update the dates."
)

# 5.2 Duplicate queue
ADMISSION_CREATED_MESSAGE = "New admission created successfully"
ADMISSION_FAILED_MESSAGE = "Failed to create admission"
ADMISSION_ERROR_MESSAGE = "An error occurred while creating admission"
ADMISSION_MISSING_REFERENCE_MESSAGE = (
    "Cannot create admission for {name}: facility or provider is missing"
)

# 5.3 Diagnosis review
CAPACITY_MESSAGE = "Limit of 12 ICD10 codes reached. Please delete one or more to continue."
EMPTY_NOTES_MESSAGE = "Please enter notes to convert"
EMPTY_ROW_NOTES_MESSAGE = "Please enter notes to add new rows"
NO_NEW_DIAGNOSES_MESSAGE = "No new diagnoses found or all diagnoses already added"
NOTES_CONVERTED_MESSAGE = "Notes converted successfully"
CONVERSION_ERROR_MESSAGE = "An error occurred while converting notes"
ROWS_ADDED_MESSAGE = "{count} new {noun} added"
UNVERIFIED_SUBMIT_MESSAGE = (
    "Please confirm the accuracy of all ICD-10 codes before proceeding. "
    "If no changes are needed, select 'Keep As-Is' for all diagnoses."
)
VERIFIED_ADDED_MESSAGE = "{count} verified diagnoses added"
NOTHING_TO_ADD_MESSAGE = "No new diagnoses to add"
KEPT_AS_IS_MESSAGE = "Query ignored and marked as verified"
DIAGNOSIS_REMOVED_MESSAGE = "Diagnosis removed"

# 5.4 Code search
SUGGESTION_ADDED_MESSAGE = "Diagnosis successfully added to suggestions."
SUGGESTION_REMOVED_MESSAGE = "Diagnosis removed from suggestions."
SEARCH_FAILED_MESSAGE = "Diagnosis search failed"
