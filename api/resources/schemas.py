"""
Resource API schemas (request bodies).

Business fields are not modelled per type; the body carries a plain mapping
that the service checks against the type's writable columns.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    filters: dict[str, Any] = Field(default_factory=dict)
    sort: str | None = None
    order: str | None = None
    # Paging values are resolved (and clamped) by the query builder.
    page: int | None = None
    limit: int | None = None
    parent_id: UUID | None = None


class WriteRequest(BaseModel):
    values: dict[str, Any] = Field(default_factory=dict)


class ResourceTypeResponse(BaseModel):
    resource_type: str
    label: str
    parent: str | None = None
    soft_deletes: bool
