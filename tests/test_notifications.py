"""Tests for notification dispatch."""

from unittest.mock import MagicMock

import pytest

from helpers import RecordingNotifier
from staybook.infra.db import UnitOfWork
from staybook.notifications.dispatcher import (
    SEND_PATH,
    TasksNotificationDispatcher,
    get_dispatcher,
    notify_after_commit,
    set_dispatcher,
)
from staybook.observability.correlation import reset_correlation_id, set_correlation_id
from staybook.tasks.client import TasksClient


class TestTasksNotificationDispatcher:
    def test_enqueues_worker_task(self):
        tasks = TasksClient(backend="inline")
        dispatcher = TasksNotificationDispatcher(tasks)
        token = set_correlation_id("cid-1")
        try:
            dispatcher.notify("refund_processed", "u-1", {"refund_id": "r-1", "note": None})
        finally:
            reset_correlation_id(token)

        [task] = tasks.get_recorded_tasks()
        assert task["url_path"] == SEND_PATH
        assert task["task_id"].startswith("notify:")
        assert task["correlation_id"] == "cid-1"
        assert task["payload"] == {
            "template_key": "refund_processed",
            "user_id": "u-1",
            "variables": {"refund_id": "r-1"},
        }

    def test_same_event_enqueued_once(self):
        tasks = TasksClient(backend="inline")
        dispatcher = TasksNotificationDispatcher(tasks)
        dispatcher.notify("payment_success", "u-1", {"booking_id": "b-1"})
        dispatcher.notify("payment_success", "u-1", {"booking_id": "b-1"})
        assert len(tasks.get_recorded_tasks()) == 1

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            TasksNotificationDispatcher(TasksClient(backend="inline")).notify("nope", "u-1", {})

    def test_failed_enqueue_raises(self):
        tasks = MagicMock()
        tasks.enqueue_http.return_value = False
        tasks.was_enqueued.return_value = False
        with pytest.raises(RuntimeError):
            TasksNotificationDispatcher(tasks).notify("payment_success", "u-1", {"booking_id": "b-1"})


class TestNotifyAfterCommit:
    def test_sent_only_after_commit(self):
        notifier = RecordingNotifier()
        uow = UnitOfWork(MagicMock())
        notify_after_commit(uow, notifier, "refund_rejected", "u-1", {"refund_id": "r-1"})
        assert notifier.sent == []
        uow.run_after_commit()
        assert notifier.templates == ["refund_rejected"]

    def test_failure_logged_not_raised(self, caplog):
        uow = UnitOfWork(MagicMock())
        notify_after_commit(uow, RecordingNotifier(fail=True), "refund_rejected", "u-1", {})
        uow.run_after_commit()
        assert "notification dispatch failed" in caplog.text

    def test_no_recipient_skipped(self):
        notifier = RecordingNotifier()
        uow = UnitOfWork(MagicMock())
        notify_after_commit(uow, notifier, "new_booking_hotel", None, {})
        uow.run_after_commit()
        assert notifier.sent == []


class TestDispatcherSingleton:
    def test_set_and_get(self):
        notifier = RecordingNotifier()
        set_dispatcher(notifier)
        assert get_dispatcher() is notifier

    def test_default_is_tasks_dispatcher(self):
        assert isinstance(get_dispatcher(), TasksNotificationDispatcher)
