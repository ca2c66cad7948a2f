# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-kind table bindings for the catalog service.

Every catalog kind behaves the same way; a binding only says which
table holds the entities, which table references them, and how to
phrase usage in messages.
"""

from dataclasses import dataclass
from typing import Callable

from sqlalchemy import Select, func, select

from src.infrastructure.database.models import (
    CatalogEntityMixin,
    Department,
    FeeItem,
    FeeType,
    SchoolClass,
    Section,
    Staff,
    Subject,
    SubjectAssignment,
)
from src.models.catalog import CatalogKind

UsageQuery = Callable[[int, int | None], Select]


@dataclass(frozen=True)
class CatalogBinding:
    """Table binding for one catalog kind.

    Attributes:
        kind: Catalog kind.
        model: ORM model holding the entities.
        label: Singular noun used in messages.
        usage_nouns: Singular and plural noun for one usage reference.
        usage_query: Builds a COUNT statement of active references to an
            entity, optionally restricted to one organization.
        extra_fields: Kind-specific columns accepted on create/update.
    """

    kind: CatalogKind
    model: type[CatalogEntityMixin]
    label: str
    usage_nouns: tuple[str, str]
    usage_query: UsageQuery
    extra_fields: tuple[str, ...] = ()

    def describe_usage(self, count: int) -> str:
        """Phrase a usage count, e.g. ``"1 active staff member"``."""
        singular, plural = self.usage_nouns
        return f"{count} {singular if count == 1 else plural}"


def _department_usage(entity_id: int, organization_id: int | None) -> Select:
    query = select(func.count()).select_from(Staff).where(
        Staff.department_id == entity_id,
        Staff.is_active.is_(True),
    )
    if organization_id is not None:
        query = query.where(Staff.organization_id == organization_id)
    return query


def _subject_usage(entity_id: int, organization_id: int | None) -> Select:
    query = select(func.count()).select_from(SubjectAssignment).where(
        SubjectAssignment.subject_id == entity_id,
    )
    if organization_id is not None:
        # Assignments carry no organization; scope through the teacher
        query = query.join(Staff, Staff.id == SubjectAssignment.staff_id).where(
            Staff.organization_id == organization_id,
        )
    return query


def _fee_type_usage(entity_id: int, organization_id: int | None) -> Select:
    query = select(func.count()).select_from(FeeItem).where(
        FeeItem.fee_type_id == entity_id,
        FeeItem.is_deleted.is_(False),
    )
    if organization_id is not None:
        query = query.where(FeeItem.organization_id == organization_id)
    return query


def _class_usage(entity_id: int, organization_id: int | None) -> Select:
    query = select(func.count()).select_from(Section).where(
        Section.class_id == entity_id,
        Section.is_deleted.is_(False),
    )
    if organization_id is not None:
        query = query.where(Section.organization_id == organization_id)
    return query


BINDINGS: dict[CatalogKind, CatalogBinding] = {
    CatalogKind.DEPARTMENT: CatalogBinding(
        kind=CatalogKind.DEPARTMENT,
        model=Department,
        label="department",
        usage_nouns=("active staff member", "active staff members"),
        usage_query=_department_usage,
    ),
    CatalogKind.SUBJECT: CatalogBinding(
        kind=CatalogKind.SUBJECT,
        model=Subject,
        label="subject",
        usage_nouns=("teacher assignment", "teacher assignments"),
        usage_query=_subject_usage,
        extra_fields=("short_name",),
    ),
    CatalogKind.FEE_TYPE: CatalogBinding(
        kind=CatalogKind.FEE_TYPE,
        model=FeeType,
        label="fee type",
        usage_nouns=("fee item", "fee items"),
        usage_query=_fee_type_usage,
    ),
    CatalogKind.CLASS: CatalogBinding(
        kind=CatalogKind.CLASS,
        model=SchoolClass,
        label="class",
        usage_nouns=("section", "sections"),
        usage_query=_class_usage,
        extra_fields=("display_order",),
    ),
}

KIND_EXTRA_FIELDS = frozenset(
    field for binding in BINDINGS.values() for field in binding.extra_fields
)


def get_binding(kind: CatalogKind | str) -> CatalogBinding:
    """Look up the binding for a kind.

    Args:
        kind: Catalog kind or its string value.

    Returns:
        The kind's binding.

    Raises:
        ValueError: If the kind is unknown.
    """
    return BINDINGS[CatalogKind(kind)]
