# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gateway identity middleware.

The API runs behind a gateway that authenticates users and forwards the
caller identity as headers. This middleware reads them, stores the
caller in request.state and binds request data to the logging context.

Example:
    GET /api/v1/catalog/department/visible
    X-Organization-Id: 12
    X-User-Role: ADMIN
"""

import logging
import uuid
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.domains.catalog.service import CatalogActor
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "X-Organization-Id"
ROLE_HEADER = "X-User-Role"
REQUEST_ID_HEADER = "X-Request-Id"

PLATFORM_ADMIN_ROLE = "SUPER_ADMIN"
ADMIN_ROLES = frozenset({PLATFORM_ADMIN_ROLE, "ADMIN", "BRANCH_ADMIN"})


class CurrentCaller:
    """Caller identity forwarded by the gateway.

    Attributes:
        organization_id: Organization of the caller, None for platform users.
        role: Role code, e.g. ``ADMIN``.
    """

    def __init__(self, organization_id: int | None, role: str) -> None:
        self.organization_id = organization_id
        self.role = role

    @property
    def is_platform_admin(self) -> bool:
        return self.role == PLATFORM_ADMIN_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def to_actor(self) -> CatalogActor:
        return CatalogActor(
            organization_id=self.organization_id,
            is_platform_admin=self.is_platform_admin,
        )

    def __repr__(self) -> str:
        return f"CurrentCaller(organization_id={self.organization_id}, role={self.role})"


def get_current_caller(request: Request) -> CurrentCaller | None:
    """Get the caller stored by GatewayIdentityMiddleware."""
    return getattr(request.state, "caller", None)


class GatewayIdentityMiddleware(BaseHTTPMiddleware):
    """Resolve caller identity and request id for every request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.caller = None

        role = request.headers.get(ROLE_HEADER, "").strip().upper()
        raw_organization = request.headers.get(ORGANIZATION_HEADER, "").strip()

        organization_id: int | None = None
        if raw_organization:
            try:
                organization_id = int(raw_organization)
            except ValueError:
                logger.warning("Rejected malformed %s header: %r", ORGANIZATION_HEADER, raw_organization)
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"detail": f"{ORGANIZATION_HEADER} must be an integer"},
                )

        if role:
            request.state.caller = CurrentCaller(organization_id=organization_id, role=role)

        clear_context()
        bind_context(
            request_id=request_id,
            path=request.url.path,
            organization_id=organization_id,
        )
        try:
            response = await call_next(request)
        finally:
            clear_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
