# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the school database.

Importing this package registers every table on ``Base.metadata``.
"""

from src.infrastructure.database.models.base import (
    Base,
    IntegerIdMixin,
    SoftDeleteMixin,
    TimestampMixin,
)
from src.infrastructure.database.models.catalog import (
    CatalogEntityMixin,
    Department,
    FeeType,
    SchoolClass,
    Subject,
)
from src.infrastructure.database.models.organization import (
    Branch,
    Organization,
    OrganizationCatalogEntry,
)
from src.infrastructure.database.models.usage import (
    FeeItem,
    Section,
    Staff,
    SubjectAssignment,
)

__all__ = [
    # Base
    "Base",
    "IntegerIdMixin",
    "SoftDeleteMixin",
    "TimestampMixin",
    # Organization
    "Organization",
    "Branch",
    "OrganizationCatalogEntry",
    # Catalog
    "CatalogEntityMixin",
    "Department",
    "Subject",
    "FeeType",
    "SchoolClass",
    # Usage references
    "Staff",
    "Section",
    "SubjectAssignment",
    "FeeItem",
]
