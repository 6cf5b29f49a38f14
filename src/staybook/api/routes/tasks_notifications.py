"""Worker endpoint receiving notification tasks.

Delivery channels (push, email, SMS) live outside this service; the
worker validates the task and hands it to the delivery log.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from staybook.api.task_auth import require_task_auth
from staybook.notifications.dispatcher import TEMPLATES
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks/notifications", tags=["tasks"])

logger = get_logger(__name__)


class NotificationTask(BaseModel):
    template_key: str
    user_id: str
    variables: dict[str, Any] = {}


@router.post("/send", dependencies=[Depends(require_task_auth)])
def send_notification(task: NotificationTask) -> dict:
    if task.template_key not in TEMPLATES:
        raise HTTPException(status_code=400, detail="unknown template")

    logger.info(
        "notification accepted for delivery",
        extra={
            "extra_fields": safe_log_context(
                template_key=task.template_key,
                user_id=task.user_id,
                booking_id=task.variables.get("booking_id"),
                refund_id=task.variables.get("refund_id"),
            )
        },
    )
    return {"ok": True}
