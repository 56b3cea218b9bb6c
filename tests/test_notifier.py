"""Tests for the notice collector."""

from patient_intake.core.enums import NoticeLevel
from patient_intake.notifications import Notifier


def test_records_notices_in_order():
    notifier = Notifier()
    notifier.success("Ann Lee Added!")
    notifier.error("Failed to add patient Bo Lin: db error")

    assert notifier.messages == ["Ann Lee Added!", "Failed to add patient Bo Lin: db error"]
    assert [notice.level for notice in notifier.history] == [NoticeLevel.SUCCESS, NoticeLevel.ERROR]


def test_forwards_to_sink():
    received = []
    notifier = Notifier(sink=received.append)

    notice = notifier.warning("Please enter notes to convert")

    assert received == [notice]
    assert notice.to_dict() == {"level": "WARNING", "message": "Please enter notes to convert"}


def test_filter_and_clear():
    notifier = Notifier()
    notifier.info("a")
    notifier.error("b")
    notifier.info("c")

    assert notifier.messages_at(NoticeLevel.INFO) == ["a", "c"]

    notifier.clear()
    assert notifier.messages == []


def test_history_keeps_only_the_latest_notices():
    received = []
    notifier = Notifier(sink=received.append, history_limit=2)
    for message in ("a", "b", "c"):
        notifier.info(message)

    assert notifier.messages == ["b", "c"]
    assert [notice.message for notice in received] == ["a", "b", "c"]
