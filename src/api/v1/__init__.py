# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.

Modules:
    catalog: Catalog entity endpoints (departments, subjects, fee types,
        classes), enabled-lists and removal.
"""

from fastapi import APIRouter

from src.api.v1 import catalog

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])

__all__ = ["router"]
