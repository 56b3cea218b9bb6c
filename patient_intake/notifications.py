"""
User-Facing Notices

The workflow reports outcomes to the clinician as short notices (toasts).
``Notifier`` logs each notice through loguru at the matching level, keeps
it in a bounded in-memory history and forwards it to an optional sink, so a UI
layer can render notices while tests inspect ``messages``.
"""

from collections import deque
from typing import Callable, Deque, List, Optional

from loguru import logger

from patient_intake.core.constants import NOTICE_HISTORY_LIMIT
from patient_intake.core.enums import NoticeLevel
from patient_intake.core.models import Notice

NoticeSink = Callable[[Notice], None]


class Notifier:
    """
    Collects and dispatches notices.

    Example:
        >>> notifier = Notifier()
        >>> notifier.success("Ann Lee Added!")
        >>> notifier.messages
        ['Ann Lee Added!']
    """

    def __init__(self, sink: Optional[NoticeSink] = None, history_limit: int = NOTICE_HISTORY_LIMIT):
        self._sink = sink
        # oldest notices are dropped once the limit is reached
        self._history: Deque[Notice] = deque(maxlen=history_limit)

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self._history.append(notice)
        logger.log(level.value, f"[notice] {message}")
        if self._sink is not None:
            self._sink(notice)
        return notice

    def success(self, message: str) -> Notice:
        return self.notify(NoticeLevel.SUCCESS, message)

    def info(self, message: str) -> Notice:
        return self.notify(NoticeLevel.INFO, message)

    def warning(self, message: str) -> Notice:
        return self.notify(NoticeLevel.WARNING, message)

    def error(self, message: str) -> Notice:
        return self.notify(NoticeLevel.ERROR, message)

    @property
    def history(self) -> List[Notice]:
        return list(self._history)

    @property
    def messages(self) -> List[str]:
        return [notice.message for notice in self._history]

    def messages_at(self, level: NoticeLevel) -> List[str]:
        return [notice.message for notice in self._history if notice.level is level]

    def clear(self) -> None:
        self._history.clear()
