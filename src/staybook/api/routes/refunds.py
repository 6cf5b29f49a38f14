"""Refund endpoints. Settlement is for admins and hotel owners."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel

from staybook.api.auth import get_current_actor
from staybook.api.deps import get_notifier, get_payment_gateway
from staybook.domain import refunds
from staybook.domain.identity import Actor
from staybook.notifications.dispatcher import NotificationDispatcher
from staybook.payments.gateway import PaymentGateway

router = APIRouter(prefix="/refunds", tags=["refunds"])


class ProcessRefundRequest(BaseModel):
    method: str | None = None


class RejectRefundRequest(BaseModel):
    reason: str


@router.get("/{refund_id}")
def read_refund(refund_id: str = Path(...), actor: Actor = Depends(get_current_actor)) -> dict:
    return refunds.get_refund(refund_id, actor)


@router.post("/{refund_id}/process")
def process_refund(
    body: ProcessRefundRequest | None = None,
    refund_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict:
    return refunds.process_refund(
        refund_id,
        actor,
        gateway=gateway,
        notifier=notifier,
        method=body.method if body else None,
    )


@router.post("/{refund_id}/reject")
def reject_refund(
    body: RejectRefundRequest,
    refund_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict:
    return refunds.reject_refund(refund_id, actor, body.reason, notifier=notifier)
