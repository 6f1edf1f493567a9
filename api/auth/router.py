"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from . import dependencies, schemas
from .actors import Actor

router = APIRouter(prefix="/auth")


@router.get("/me", response_model=schemas.ActorResponse)
async def me(actor: Actor = Depends(dependencies.get_current_actor)) -> schemas.ActorResponse:
    return schemas.ActorResponse.from_actor(actor)
