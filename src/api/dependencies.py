# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get the caller identity forwarded by the gateway
- Resolve the organization a request acts for

Example:
    @router.get("/{kind}/visible")
    async def list_visible(
        db: AsyncSession = Depends(get_db),
        caller: CurrentCaller = Depends(require_auth),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.gateway import (
    ORGANIZATION_HEADER,
    ROLE_HEADER,
    CurrentCaller,
    get_current_caller,
)
from src.core.config import get_settings
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for the school database.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Caller Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentCaller:
    """Require a caller identity.

    Args:
        request: HTTP request.

    Returns:
        CurrentCaller.

    Raises:
        HTTPException: If the gateway sent no identity.
    """
    caller = get_current_caller(request)
    if not caller:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Not authenticated: {ROLE_HEADER} header required",
        )
    return caller


def require_admin(request: Request) -> CurrentCaller:
    """Require an organization admin or platform admin.

    Raises:
        HTTPException: If not authenticated or not admin.
    """
    caller = require_auth(request)
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return caller


def resolve_organization(caller: CurrentCaller, organization_id: int | None) -> int:
    """Pick the organization a request acts for.

    Platform admins may act for any organization through the
    ``organization_id`` query parameter. Everyone else always acts for
    their own organization.

    Args:
        caller: Current caller.
        organization_id: Organization requested by the client, if any.

    Returns:
        Organization ID.

    Raises:
        HTTPException: If no organization can be determined or the
            caller asks for a foreign one.
    """
    if caller.is_platform_admin and organization_id is not None:
        return organization_id

    if caller.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Organization context required: send {ORGANIZATION_HEADER}",
        )

    if organization_id is not None and organization_id != caller.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to another organization",
        )
    return caller.organization_id
