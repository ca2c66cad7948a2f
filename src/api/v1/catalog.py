# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Catalog entity API endpoints.

This module provides endpoints for every catalog kind
(department, subject, fee_type, class):
- GET /{kind}/visible - Entities visible to an organization
- GET /{kind}/global - Global entities
- GET /{kind}/private - Private entities of an organization
- GET /{kind}/summary - Global/private counts
- PUT /{kind}/enabled - Replace an organization's enabled-list
- POST /{kind} - Create an entity
- POST /{kind}/bulk - Create several entities
- GET /{kind}/{entity_id} - Get entity details
- PUT /{kind}/{entity_id} - Update entity
- POST /{kind}/{entity_id}/restore - Restore a deleted entity
- POST /{kind}/{entity_id}/enable - Enable an entity for an organization
- GET /{kind}/{entity_id}/removal - Classify a removal (advisory)
- DELETE /{kind}/{entity_id} - Remove or delete an entity

Reads need any caller identity; changes need an organization admin or a
platform admin. Organization admins always act for their own
organization.
"""

import logging
from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_admin, require_auth, resolve_organization
from src.api.middleware.gateway import CurrentCaller
from src.core.config import get_settings
from src.domains.catalog.service import CatalogService
from src.models.catalog import (
    BulkCreateRequest,
    CatalogEntityCreateRequest,
    CatalogEntityResponse,
    CatalogEntityUpdateRequest,
    CatalogKind,
    CatalogSummary,
    EnabledListResponse,
    EnabledListUpdateRequest,
    RemovalPlan,
    RemovalResult,
)
from src.models.common import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")

_STATUS_BY_ERROR = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
}


def _get_service(db: AsyncSession, kind: CatalogKind) -> CatalogService:
    """Get catalog service instance.

    Args:
        db: Database session.
        kind: Catalog kind from the path.

    Returns:
        Configured CatalogService instance.
    """
    return CatalogService(db=db, kind=kind)


def _unwrap(result: ServiceResult[T]) -> T:
    """Return the payload or raise the HTTP error matching the failure."""
    if result.success:
        return result.data
    error = result.error
    raise HTTPException(
        status_code=_STATUS_BY_ERROR.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )


def _check_owner(caller: CurrentCaller, data: CatalogEntityCreateRequest) -> None:
    """Only platform admins create global entities or act for other organizations."""
    if caller.is_platform_admin:
        return
    if data.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only platform admins can create global entities",
        )
    if data.organization_id != caller.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to another organization",
        )


# =========================================================================
# Listings
# =========================================================================


@router.get(
    "/{kind}/visible",
    response_model=list[CatalogEntityResponse],
    summary="List visible entities",
    description="Entities enabled for the organization plus the ones it owns.",
)
async def list_visible(
    kind: CatalogKind,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    include_deleted: bool | None = Query(None, description="Keep soft-deleted owned entities"),
    caller: CurrentCaller = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> list[CatalogEntityResponse]:
    organization_id = resolve_organization(caller, organization_id)
    if include_deleted is None:
        include_deleted = get_settings().catalog.default_include_deleted
    result = await _get_service(db, kind).resolve_visible(organization_id, include_deleted)
    return _unwrap(result)


@router.get(
    "/{kind}/global",
    response_model=list[CatalogEntityResponse],
    summary="List global entities",
)
async def list_global(
    kind: CatalogKind,
    caller: CurrentCaller = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> list[CatalogEntityResponse]:
    return _unwrap(await _get_service(db, kind).list_global())


@router.get(
    "/{kind}/private",
    response_model=list[CatalogEntityResponse],
    summary="List private entities",
    description="Private entities owned by the organization.",
)
async def list_private(
    kind: CatalogKind,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    caller: CurrentCaller = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> list[CatalogEntityResponse]:
    organization_id = resolve_organization(caller, organization_id)
    return _unwrap(await _get_service(db, kind).list_private(organization_id))


@router.get(
    "/{kind}/summary",
    response_model=CatalogSummary,
    summary="Count entities",
    description="Counts of global and private entities. Platform admins without "
    "an organization get platform-wide counts.",
)
async def get_summary(
    kind: CatalogKind,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    caller: CurrentCaller = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> CatalogSummary:
    if not (caller.is_platform_admin and organization_id is None):
        organization_id = resolve_organization(caller, organization_id)
    return _unwrap(await _get_service(db, kind).summarize(organization_id))


@router.put(
    "/{kind}/enabled",
    response_model=EnabledListResponse,
    summary="Replace enabled-list",
    description="Replace the organization's enabled-list. Requires admin access.",
)
async def replace_enabled(
    kind: CatalogKind,
    data: EnabledListUpdateRequest,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> EnabledListResponse:
    organization_id = resolve_organization(caller, organization_id)
    entity_ids = _unwrap(await _get_service(db, kind).set_enabled(organization_id, data.entity_ids))
    return EnabledListResponse(kind=kind, organization_id=organization_id, entity_ids=entity_ids)


# =========================================================================
# Creation
# =========================================================================


@router.post(
    "/{kind}",
    response_model=CatalogEntityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create entity",
    description="Create a global (platform admin) or private entity. "
    "Private entities are enabled for their owner.",
)
async def create_entity(
    kind: CatalogKind,
    data: CatalogEntityCreateRequest,
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CatalogEntityResponse:
    """Create a catalog entity.

    Args:
        kind: Catalog kind.
        data: Entity creation request.
        caller: Organization or platform admin.
        db: Database session.

    Returns:
        Created entity.

    Raises:
        HTTPException: If the caller may not create in the target scope,
            or the service rejects the request.
    """
    _check_owner(caller, data)
    logger.info("Creating %s: %s for %s by %s", kind.value, data.name, data.organization_id, caller)
    return _unwrap(await _get_service(db, kind).create(data))


@router.post(
    "/{kind}/bulk",
    response_model=list[CatalogEntityResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create entities in bulk",
    description="Create several entities at once; nothing is created if one fails.",
)
async def bulk_create_entities(
    kind: CatalogKind,
    data: BulkCreateRequest,
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[CatalogEntityResponse]:
    for item in data.items:
        _check_owner(caller, item)
    return _unwrap(await _get_service(db, kind).bulk_create(data.items))


# =========================================================================
# Single entity
# =========================================================================


@router.get(
    "/{kind}/{entity_id}",
    response_model=CatalogEntityResponse,
    summary="Get entity",
)
async def get_entity(
    kind: CatalogKind,
    entity_id: int,
    caller: CurrentCaller = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> CatalogEntityResponse:
    entity = _unwrap(await _get_service(db, kind).get(entity_id))
    if entity.is_private and not caller.is_platform_admin and entity.organization_id != caller.organization_id:
        # Hide foreign private entities
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind.value} {entity_id} not found")
    return entity


@router.put(
    "/{kind}/{entity_id}",
    response_model=CatalogEntityResponse,
    summary="Update entity",
    description="Global entities need a platform admin; private ones their owner.",
)
async def update_entity(
    kind: CatalogKind,
    entity_id: int,
    data: CatalogEntityUpdateRequest,
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CatalogEntityResponse:
    return _unwrap(await _get_service(db, kind).update(entity_id, data, caller.to_actor()))


@router.post(
    "/{kind}/{entity_id}/restore",
    response_model=CatalogEntityResponse,
    summary="Restore entity",
    description="Undo a soft delete and re-enable the entity for its owner.",
)
async def restore_entity(
    kind: CatalogKind,
    entity_id: int,
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CatalogEntityResponse:
    return _unwrap(await _get_service(db, kind).restore(entity_id, caller.to_actor()))


@router.post(
    "/{kind}/{entity_id}/enable",
    response_model=EnabledListResponse,
    summary="Enable entity",
    description="Add a global or owned entity to the organization's enabled-list.",
)
async def enable_entity(
    kind: CatalogKind,
    entity_id: int,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> EnabledListResponse:
    organization_id = resolve_organization(caller, organization_id)
    entity_ids = _unwrap(await _get_service(db, kind).enable(entity_id, organization_id))
    return EnabledListResponse(kind=kind, organization_id=organization_id, entity_ids=entity_ids)


@router.get(
    "/{kind}/{entity_id}/removal",
    response_model=RemovalPlan,
    summary="Classify removal",
    description="Tell whether removing the entity deletes it or only unenrolls "
    "the organization, and whether anything still uses it.",
)
async def classify_removal(
    kind: CatalogKind,
    entity_id: int,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RemovalPlan:
    organization_id = resolve_organization(caller, organization_id)
    return _unwrap(await _get_service(db, kind).classify_removal(entity_id, organization_id))


@router.delete(
    "/{kind}/{entity_id}",
    response_model=RemovalResult,
    summary="Remove or delete entity",
    description="Delete an owned private entity or remove a global one from the "
    "organization's enabled-list.",
)
async def remove_entity(
    kind: CatalogKind,
    entity_id: int,
    organization_id: int | None = Query(None, gt=0, description="Platform admins only"),
    expected_usage_count: int | None = Query(
        None,
        ge=0,
        description="Usage count seen in the removal plan",
    ),
    caller: CurrentCaller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> RemovalResult:
    """Commit a removal.

    Args:
        kind: Catalog kind.
        entity_id: Entity to remove.
        organization_id: Organization to act for (platform admins only).
        expected_usage_count: Usage count the client saw; a grown count
            turns a blocked removal into 409.
        caller: Organization or platform admin.
        db: Database session.

    Returns:
        Removal result.
    """
    organization_id = resolve_organization(caller, organization_id)
    logger.info("Removing %s %s for organization %s by %s", kind.value, entity_id, organization_id, caller)
    result = await _get_service(db, kind).remove_or_delete(
        entity_id,
        organization_id,
        expected_usage_count=expected_usage_count,
    )
    return _unwrap(result)
