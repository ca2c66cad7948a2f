# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Organization, branch and enabled-list models."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, IntegerIdMixin, TimestampMixin


class Organization(IntegerIdMixin, TimestampMixin, Base):
    """A tenant organization (school group) owning branches and catalog entries."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    registration_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="ACTIVE", server_default="ACTIVE")

    branches: Mapped[list["Branch"]] = relationship(back_populates="organization")


class Branch(IntegerIdMixin, TimestampMixin, Base):
    """A branch (campus) of an organization."""

    __tablename__ = "branches"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    organization: Mapped[Organization] = relationship(back_populates="branches")


class OrganizationCatalogEntry(IntegerIdMixin, Base):
    """Membership of a catalog entity in an organization's enabled-list.

    One row per (organization, kind, entity). The unique constraint makes
    enabling idempotent at the database level. List order is insertion
    order (created_at, then id).
    """

    __tablename__ = "organization_catalog_entries"
    __table_args__ = (
        UniqueConstraint("organization_id", "kind", "entity_id", name="uq_organization_catalog_entry"),
        Index("ix_organization_catalog_entries_kind_entity", "kind", "entity_id"),
    )

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
