"""Caller identity endpoint."""

from fastapi import APIRouter, Depends

from staybook.api.auth import get_current_actor
from staybook.domain.identity import Actor

router = APIRouter(tags=["auth"])


@router.get("/me")
def whoami(actor: Actor = Depends(get_current_actor)) -> dict:
    return {"id": actor.id, "role": actor.role.value}
