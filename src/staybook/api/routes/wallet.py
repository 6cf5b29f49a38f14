"""Wallet endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from staybook.api.auth import get_current_actor, require_admin
from staybook.domain import wallet
from staybook.domain.identity import Actor

router = APIRouter(prefix="/wallet", tags=["wallet"])


class AdminCreditRequest(BaseModel):
    user_id: str
    amount_cents: int = Field(gt=0)
    description: str | None = None


@router.get("")
def read_wallet(actor: Actor = Depends(get_current_actor)) -> dict:
    return wallet.get_wallet(actor.id)


@router.get("/transactions")
def read_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    return {"transactions": wallet.list_transactions(actor.id, limit=limit, offset=offset)}


@router.post("/credit", status_code=201)
def admin_credit(body: AdminCreditRequest, admin: Actor = Depends(require_admin)) -> dict:
    entry = wallet.credit(
        body.user_id,
        body.amount_cents,
        source="admin",
        description=body.description or "Admin credit",
        metadata={"credited_by": admin.id},
    )
    return {
        "transaction_id": entry.transaction_id,
        "new_balance_cents": entry.new_balance_cents,
        "amount_cents": entry.amount_cents,
    }
