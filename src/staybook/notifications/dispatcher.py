"""Notification dispatch.

The engine only decides *what* to tell *whom*; delivery (push, email,
SMS) happens in the worker behind ``/tasks/notifications/send``.
Dispatch runs after commit and its failures are logged, never raised.
"""

from __future__ import annotations

import hashlib
from typing import Any, Protocol

from staybook.infra.db import UnitOfWork
from staybook.observability.correlation import get_correlation_id
from staybook.observability.logging import get_logger
from staybook.tasks.client import TasksClient

logger = get_logger(__name__)

TEMPLATES = frozenset(
    {
        "booking_confirmed_offline",
        "booking_pending_payment",
        "new_booking_hotel",
        "payment_success",
        "refund_request_created",
        "refund_processed",
        "refund_rejected",
    }
)
SEND_PATH = "/tasks/notifications/send"


class NotificationDispatcher(Protocol):
    def notify(self, template_key: str, user_id: str, variables: dict[str, Any]) -> None: ...


class TasksNotificationDispatcher:
    """Hands notifications to the worker through a TasksClient."""

    def __init__(self, tasks_client: TasksClient | None = None) -> None:
        self._tasks = tasks_client or TasksClient()

    @property
    def tasks_client(self) -> TasksClient:
        return self._tasks

    def notify(self, template_key: str, user_id: str, variables: dict[str, Any]) -> None:
        if template_key not in TEMPLATES:
            raise ValueError(f"Unknown notification template: {template_key}")

        reference = str(variables.get("booking_id") or variables.get("refund_id") or "")
        digest = hashlib.sha256(f"{template_key}:{user_id}:{reference}".encode()).hexdigest()[:32]
        task_id = f"notify:{digest}"
        payload = {
            "template_key": template_key,
            "user_id": user_id,
            "variables": {k: v for k, v in variables.items() if v is not None},
        }

        enqueued = self._tasks.enqueue_http(
            task_id, SEND_PATH, payload, correlation_id=get_correlation_id() or None
        )
        if not enqueued and not self._tasks.was_enqueued(task_id):
            raise RuntimeError(f"notification enqueue failed for {template_key}")


_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = TasksNotificationDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def notify_after_commit(
    uow: UnitOfWork,
    notifier: NotificationDispatcher,
    template_key: str,
    user_id: str | None,
    variables: dict[str, Any],
) -> None:
    """Register a notification to go out once ``uow`` commits.

    A dispatch failure is logged with the template key and never reaches
    the caller.
    """
    if not user_id:
        return

    def _send() -> None:
        try:
            notifier.notify(template_key, user_id, variables)
        except Exception:
            logger.exception(
                "notification dispatch failed",
                extra={
                    "extra_fields": {
                        "template_key": template_key,
                        "correlation_id": get_correlation_id(),
                    }
                },
            )

    uow.after_commit(f"notify:{template_key}", _send)
