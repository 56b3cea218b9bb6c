"""
Code Search Resolver

Backs the "suggestions" panel of the diagnosis review: shows the candidate
codes for one diagnosis under review, lets the clinician search the code
catalogue, and maintains a shortlist of suggested codes.
"""

from typing import List, Optional, Sequence

from loguru import logger

from patient_intake.clients.api_client import ChartingApiProtocol
from patient_intake.core.constants import (
    SEARCH_FAILED_MESSAGE,
    SUGGESTION_ADDED_MESSAGE,
    SUGGESTION_REMOVED_MESSAGE,
)
from patient_intake.core.exceptions import CollaboratorError
from patient_intake.core.models import DiagnosisItem
from patient_intake.notifications import Notifier


class CodeSearchResolver:
    """
    Search session for replacing one diagnosis' assigned code.

    State:
        label          → physician text of the diagnosis being resolved
        target_item_id → assigned id of that diagnosis
        suggestions    → shortlist, seeded with the best-guess codes
        results        → latest search results

    A failed search keeps the previous results and emits an error notice.
    """

    def __init__(self, client: ChartingApiProtocol, notifier: Optional[Notifier] = None):
        self._client = client
        self._notifier = notifier or Notifier()
        self._label: Optional[str] = None
        self._target_item_id: Optional[str] = None
        self._suggestions: List[DiagnosisItem] = []
        self._results: List[DiagnosisItem] = []
        self._is_loading = False

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def open(self, label: str, item_id: str, candidates: Sequence[DiagnosisItem] = ()) -> None:
        self._label = label
        self._target_item_id = item_id
        self._suggestions = list(candidates)
        self._results = []
        logger.debug(f"Code search opened for {item_id} with {len(self._suggestions)} candidates")

    def close(self) -> None:
        self._label = None
        self._target_item_id = None
        self._suggestions = []
        self._results = []

    @property
    def is_open(self) -> bool:
        return self._target_item_id is not None

    @property
    def label(self) -> Optional[str]:
        return self._label

    @property
    def target_item_id(self) -> Optional[str]:
        return self._target_item_id

    @property
    def suggestions(self) -> List[DiagnosisItem]:
        return list(self._suggestions)

    @property
    def results(self) -> List[DiagnosisItem]:
        return list(self._results)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    # -------------------------------------------------------------------------
    # Search and shortlist
    # -------------------------------------------------------------------------

    async def search(self, query: str) -> List[DiagnosisItem]:
        """Search the code catalogue. A blank query clears results without a call."""
        if not query or not query.strip():
            self._results = []
            return []

        self._is_loading = True
        try:
            self._results = await self._client.search_diagnosis_codes(query)
        except CollaboratorError as e:
            logger.error(f"Code search for '{query}' failed: {e}")
            self._notifier.error(SEARCH_FAILED_MESSAGE)
        finally:
            self._is_loading = False
        return list(self._results)

    def toggle(self, item: DiagnosisItem) -> bool:
        """
        Add ``item`` to the shortlist or remove it, matched by id.

        Returns:
            True when the item is on the shortlist afterwards
        """
        for index, suggestion in enumerate(self._suggestions):
            if suggestion.id == item.id:
                del self._suggestions[index]
                self._notifier.info(SUGGESTION_REMOVED_MESSAGE)
                return False
        self._suggestions.append(item)
        self._notifier.success(SUGGESTION_ADDED_MESSAGE)
        return True

    def is_suggested(self, code: str) -> bool:
        return any(suggestion.code == code for suggestion in self._suggestions)
