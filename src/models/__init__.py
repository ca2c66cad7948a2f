# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request/response models shared by services and the API."""

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
from src.models.common import ErrorCode, ServiceError, ServiceResult

__all__ = [
    "BulkCreateRequest",
    "CatalogEntityCreateRequest",
    "CatalogEntityResponse",
    "CatalogEntityUpdateRequest",
    "CatalogKind",
    "CatalogSummary",
    "EnabledListResponse",
    "EnabledListUpdateRequest",
    "RemovalPlan",
    "RemovalResult",
    "ErrorCode",
    "ServiceError",
    "ServiceResult",
]
