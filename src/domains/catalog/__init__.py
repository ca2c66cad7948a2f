# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Catalog domain package.

This package provides catalog entitlement functionality including:
- Visibility of global and private entities per organization
- Creation with enabled-list registration
- Removal classification and commit
"""

from src.domains.catalog.kinds import BINDINGS, CatalogBinding, get_binding
from src.domains.catalog.repository import CatalogRepository
from src.domains.catalog.service import (
    CatalogActor,
    CatalogConflictError,
    CatalogForbiddenError,
    CatalogNotFoundError,
    CatalogService,
    CatalogServiceError,
    CatalogValidationError,
    OrganizationNotFoundError,
)

__all__ = [
    "BINDINGS",
    "CatalogActor",
    "CatalogBinding",
    "CatalogConflictError",
    "CatalogForbiddenError",
    "CatalogNotFoundError",
    "CatalogRepository",
    "CatalogService",
    "CatalogServiceError",
    "CatalogValidationError",
    "OrganizationNotFoundError",
    "get_binding",
]
