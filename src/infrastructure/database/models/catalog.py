# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Catalog entity models.

Departments, subjects, fee types and classes share one shape: an entity
is either global (no owning organization) or private to exactly one
organization, and is soft-deleted rather than removed.
"""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    IntegerIdMixin,
    SoftDeleteMixin,
    TimestampMixin,
)

PRIVATE_OWNER_CHECK = (
    "(is_private AND organization_id IS NOT NULL) "
    "OR (NOT is_private AND organization_id IS NULL)"
)


class CatalogEntityMixin(IntegerIdMixin, TimestampMixin, SoftDeleteMixin):
    """Columns shared by every catalog entity table.

    The CHECK constraint keeps ``is_private`` consistent with the owner.
    """

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_private: Mapped[bool] = mapped_column(nullable=False, default=False, server_default="false")

    @declared_attr
    def organization_id(cls) -> Mapped[int | None]:
        return mapped_column(
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=True,
            index=True,
        )

    @declared_attr
    def branch_id(cls) -> Mapped[int | None]:
        return mapped_column(
            ForeignKey("branches.id", ondelete="SET NULL"),
            nullable=True,
        )

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (CheckConstraint(PRIVATE_OWNER_CHECK, name="private_owner"),)

    @property
    def is_global(self) -> bool:
        """Whether the entity has no owning organization."""
        return self.organization_id is None


class Department(CatalogEntityMixin, Base):
    """Staff department (e.g. Science, Administration)."""

    __tablename__ = "departments"


class Subject(CatalogEntityMixin, Base):
    """Teachable subject."""

    __tablename__ = "subjects"

    short_name: Mapped[str | None] = mapped_column(String(64), nullable=True)


class FeeType(CatalogEntityMixin, Base):
    """Fee category used by fee items (tuition, transport, ...)."""

    __tablename__ = "fee_types"


class SchoolClass(CatalogEntityMixin, Base):
    """Class (grade) that sections are opened under."""

    __tablename__ = "classes"

    display_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
