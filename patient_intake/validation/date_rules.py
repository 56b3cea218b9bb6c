"""
Date heuristics shared by navigation and batch save.

All functions take ``today`` explicitly so callers control the clock.
"""

from datetime import date
from typing import List, Optional

from patient_intake.core.models import parse_date

__all__ = [
    "DOB_IN_FUTURE",
    "DOB_UNDER_AGE",
    "DOB_OVER_AGE",
    "calculate_age",
    "dob_issues",
    "is_future",
    "is_older_than_days",
    "parse_date",
]

DOB_IN_FUTURE = "future"
DOB_UNDER_AGE = "under"
DOB_OVER_AGE = "over"


def calculate_age(dob: date, today: date) -> int:
    """Whole years between ``dob`` and ``today``."""
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def is_future(value: Optional[date], today: date) -> bool:
    return value is not None and value > today


def is_older_than_days(value: Optional[date], days: int, today: date) -> bool:
    """True when ``value`` lies more than ``days`` whole days before ``today``."""
    if value is None:
        return False
    return (today - value).days > days


def dob_issues(dob: Optional[date], today: date, min_age: int, max_age: int) -> List[str]:
    """
    Classify a date of birth against the plausibility window.

    A DOB of today or later is reported alone; otherwise the age is checked
    against ``min_age`` and ``max_age``.
    """
    if dob is None:
        return []
    if dob >= today:
        return [DOB_IN_FUTURE]

    age = calculate_age(dob, today)
    issues = []
    if age < min_age:
        issues.append(DOB_UNDER_AGE)
    if age > max_age:
        issues.append(DOB_OVER_AGE)
    return issues
