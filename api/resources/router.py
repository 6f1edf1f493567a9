"""
Generic resource endpoints.

Every route resolves the actor first and hands it to the service; no route
touches a store directly. Listing uses PATCH with a search body.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends

from auth.actors import Actor, Role
from auth.dependencies import get_current_actor, require_roles

from . import schemas
from .dependencies import get_resource_service
from .service import ResourceService

router = APIRouter(prefix="/resources")


@router.get("", response_model=list[schemas.ResourceTypeResponse])
async def list_resource_types(
    _: Actor = Depends(require_roles(Role.SYSTEM_ADMIN)),
    service: ResourceService = Depends(get_resource_service),
) -> list[schemas.ResourceTypeResponse]:
    """
    Resource types served by this gateway (operators only).
    """
    return [
        schemas.ResourceTypeResponse(
            resource_type=policy.resource_type,
            label=policy.label,
            parent=policy.parent.resource_type if policy.parent else None,
            soft_deletes=policy.soft_deletes,
        )
        for policy in service.catalog
    ]


@router.patch("/{resource_type}")
async def search_resources(
    resource_type: str,
    body: schemas.SearchRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    service: ResourceService = Depends(get_resource_service),
) -> dict[str, Any]:
    return await service.list_page(
        actor,
        resource_type,
        filters=body.filters,
        sort=body.sort,
        order=body.order,
        page=body.page,
        limit=body.limit,
        parent_id=body.parent_id,
        background=background_tasks,
    )


@router.get("/{resource_type}/{resource_id}")
async def get_resource(
    resource_type: str,
    resource_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    service: ResourceService = Depends(get_resource_service),
) -> dict[str, Any]:
    return await service.get(actor, resource_type, resource_id, background=background_tasks)


@router.post("/{resource_type}", status_code=201)
async def create_resource(
    resource_type: str,
    body: schemas.WriteRequest,
    actor: Actor = Depends(get_current_actor),
    service: ResourceService = Depends(get_resource_service),
) -> dict[str, Any]:
    return await service.create(actor, resource_type, body.values)


@router.put("/{resource_type}/{resource_id}")
async def update_resource(
    resource_type: str,
    resource_id: UUID,
    body: schemas.WriteRequest,
    actor: Actor = Depends(get_current_actor),
    service: ResourceService = Depends(get_resource_service),
) -> dict[str, Any]:
    return await service.update(actor, resource_type, resource_id, body.values)


@router.delete("/{resource_type}/{resource_id}")
async def delete_resource(
    resource_type: str,
    resource_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ResourceService = Depends(get_resource_service),
) -> dict[str, Any]:
    """
    Soft-delete where the type keeps a retention column, hard-delete otherwise.
    Returns the final state of the row.
    """
    return await service.delete(actor, resource_type, resource_id)
