"""
Selected Diagnosis Set

A patient's permanent diagnosis collection. Verified review output is merged
in under three rules: at most one primary, no repeated code, and never more
than the configured ceiling. A merge that would break the ceiling changes
nothing.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from loguru import logger

from patient_intake.core.constants import MAX_DIAGNOSIS_COUNT
from patient_intake.core.exceptions import CapacityExceededError, DiagnosisError
from patient_intake.core.models import DetailedDiagnosis, DiagnosisItem


@dataclass(frozen=True)
class MergeResult:
    """Collection after a merge and the items that were actually added."""

    items: Tuple[DiagnosisItem, ...]
    added: Tuple[DiagnosisItem, ...]


class SelectedDiagnosisSet:
    """
    Ordered diagnosis collection owned by one patient.

    Example:
        >>> owner = SelectedDiagnosisSet([DiagnosisItem("3", "C3", is_primary=True)])
        >>> result = owner.merge([DiagnosisItem("1", "A1", is_primary=True), DiagnosisItem("2", "B2")])
        >>> [item.code for item in result.items]
        ['C3', 'A1', 'B2']
        >>> result.items[1].is_primary
        False
    """

    def __init__(
        self, items: Iterable[DiagnosisItem] = (), max_count: int = MAX_DIAGNOSIS_COUNT
    ):
        self._items: List[DiagnosisItem] = list(items)
        self._max_count = max_count

        if len(self._items) > max_count:
            raise CapacityExceededError(len(self._items), 0, max_count)
        primaries = sum(1 for item in self._items if item.is_primary)
        if primaries > 1:
            raise DiagnosisError(
                "A patient can have only one primary diagnosis",
                context={"primaries": primaries},
            )

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    @property
    def items(self) -> Tuple[DiagnosisItem, ...]:
        return tuple(self._items)

    @property
    def has_primary(self) -> bool:
        return any(item.is_primary for item in self._items)

    @property
    def codes(self) -> List[str]:
        return [item.code for item in self._items]

    @property
    def remaining_capacity(self) -> int:
        return self._max_count - len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[DiagnosisItem]:
        return iter(self._items)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def merge(self, candidates: Iterable[DiagnosisItem]) -> MergeResult:
        """
        Append candidates not already present, all or nothing.

        Rules:
            1. Owner already has a primary → every candidate is non-primary;
               otherwise only the first candidate primary is kept
            2. A candidate whose code is in the owner, or earlier in
               ``candidates``, is dropped
            3. Exceeding the ceiling raises and leaves the owner unchanged

        Raises:
            CapacityExceededError: The merge would exceed the ceiling
        """
        known_codes = set(self.codes)
        remaining = []
        for candidate in candidates:
            if candidate.code in known_codes:
                continue
            known_codes.add(candidate.code)
            remaining.append(candidate)

        primary_taken = self.has_primary
        normalized = []
        for candidate in remaining:
            if candidate.is_primary and not primary_taken:
                primary_taken = True
                normalized.append(candidate)
            else:
                normalized.append(candidate.with_primary(False))

        if len(self._items) + len(normalized) > self._max_count:
            logger.warning(
                f"Merge rejected: {len(self._items)} + {len(normalized)} exceeds {self._max_count}"
            )
            raise CapacityExceededError(len(self._items), len(normalized), self._max_count)

        self._items.extend(normalized)
        return MergeResult(items=self.items, added=tuple(normalized))

    def merge_verified(self, detailed: Iterable[DetailedDiagnosis]) -> MergeResult:
        """Merge the assigned codes of the VERIFIED items only."""
        return self.merge(item.assigned for item in detailed if item.is_verified)

    def remove(self, item_id: str) -> bool:
        """Remove by id. Returns False when no item matched."""
        for index, item in enumerate(self._items):
            if item.id == item_id:
                del self._items[index]
                return True
        return False
