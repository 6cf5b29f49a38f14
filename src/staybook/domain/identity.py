"""Caller identity as seen by the engine's authorization checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    GUEST = "guest"
    HOTEL = "hotel"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller: user id plus role."""

    id: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN

    @classmethod
    def system(cls) -> "Actor":
        return cls(id="system", role=ActorRole.ADMIN)
