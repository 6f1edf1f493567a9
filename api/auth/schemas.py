"""
Auth API schemas (response models).
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from .actors import Actor, Role


class ActorResponse(BaseModel):
    id: UUID
    role: Role

    @classmethod
    def from_actor(cls, actor: Actor) -> ActorResponse:
        return cls(id=actor.id, role=actor.role)
