# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial school database schema.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-06-02
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PRIVATE_OWNER_CHECK = (
    "(is_private AND organization_id IS NOT NULL) "
    "OR (NOT is_private AND organization_id IS NULL)"
)

CATALOG_TABLES = ("departments", "subjects", "fee_types", "classes")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _create_catalog_table(name: str, *extra_columns: sa.Column) -> None:
    """Create a catalog entity table with the shared columns."""
    op.create_table(
        name,
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "organization_id",
            sa.Integer,
            sa.ForeignKey(
                "organizations.id",
                ondelete="CASCADE",
                name=f"fk_{name}_organization_id_organizations",
            ),
            nullable=True,
        ),
        sa.Column(
            "branch_id",
            sa.Integer,
            sa.ForeignKey(
                "branches.id",
                ondelete="SET NULL",
                name=f"fk_{name}_branch_id_branches",
            ),
            nullable=True,
        ),
        sa.Column("is_private", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default="false"),
        *extra_columns,
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=f"pk_{name}"),
        sa.CheckConstraint(PRIVATE_OWNER_CHECK, name=f"ck_{name}_private_owner"),
    )
    op.create_index(f"ix_{name}_organization_id", name, ["organization_id"])


def upgrade() -> None:
    """Create school database tables."""
    # =========================================================================
    # ORGANIZATIONS
    # =========================================================================

    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("registration_number", sa.String(128), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_organizations"),
    )

    op.create_table(
        "branches",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer,
            sa.ForeignKey(
                "organizations.id",
                ondelete="CASCADE",
                name="fk_branches_organization_id_organizations",
            ),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_branches"),
    )
    op.create_index("ix_branches_organization_id", "branches", ["organization_id"])

    # =========================================================================
    # CATALOG ENTITIES
    # =========================================================================

    _create_catalog_table("departments")
    _create_catalog_table("subjects", sa.Column("short_name", sa.String(64), nullable=True))
    _create_catalog_table("fee_types")
    _create_catalog_table("classes", sa.Column("display_order", sa.Integer, nullable=True))

    # Enabled-lists: one row per (organization, kind, entity)
    op.create_table(
        "organization_catalog_entries",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer,
            sa.ForeignKey(
                "organizations.id",
                ondelete="CASCADE",
                name="fk_organization_catalog_entries_organization_id_organizations",
            ),
            nullable=False,
        ),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_organization_catalog_entries"),
        sa.UniqueConstraint(
            "organization_id",
            "kind",
            "entity_id",
            name="uq_organization_catalog_entry",
        ),
    )
    op.create_index(
        "ix_organization_catalog_entries_kind_entity",
        "organization_catalog_entries",
        ["kind", "entity_id"],
    )

    # =========================================================================
    # USAGE REFERENCES
    # =========================================================================

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer,
            sa.ForeignKey(
                "organizations.id",
                ondelete="CASCADE",
                name="fk_staff_organization_id_organizations",
            ),
            nullable=False,
        ),
        sa.Column(
            "branch_id",
            sa.Integer,
            sa.ForeignKey("branches.id", name="fk_staff_branch_id_branches"),
            nullable=True,
        ),
        sa.Column(
            "department_id",
            sa.Integer,
            sa.ForeignKey("departments.id", name="fk_staff_department_id_departments"),
            nullable=True,
        ),
        sa.Column("employee_number", sa.String(128), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_staff"),
    )
    op.create_index("ix_staff_organization_id", "staff", ["organization_id"])
    op.create_index("ix_staff_department_id", "staff", ["department_id"])

    op.create_table(
        "sections",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer,
            sa.ForeignKey(
                "organizations.id",
                ondelete="CASCADE",
                name="fk_sections_organization_id_organizations",
            ),
            nullable=False,
        ),
        sa.Column(
            "branch_id",
            sa.Integer,
            sa.ForeignKey("branches.id", name="fk_sections_branch_id_branches"),
            nullable=False,
        ),
        sa.Column(
            "class_id",
            sa.Integer,
            sa.ForeignKey("classes.id", name="fk_sections_class_id_classes"),
            nullable=False,
        ),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_sections"),
    )
    op.create_index("ix_sections_organization_id", "sections", ["organization_id"])
    op.create_index("ix_sections_class_id", "sections", ["class_id"])

    op.create_table(
        "subject_assignments",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column(
            "staff_id",
            sa.Integer,
            sa.ForeignKey(
                "staff.id",
                ondelete="CASCADE",
                name="fk_subject_assignments_staff_id_staff",
            ),
            nullable=False,
        ),
        sa.Column(
            "subject_id",
            sa.Integer,
            sa.ForeignKey("subjects.id", name="fk_subject_assignments_subject_id_subjects"),
            nullable=False,
        ),
        sa.Column(
            "section_id",
            sa.Integer,
            sa.ForeignKey(
                "sections.id",
                ondelete="CASCADE",
                name="fk_subject_assignments_section_id_sections",
            ),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_subject_assignments"),
        sa.UniqueConstraint("staff_id", "subject_id", "section_id", name="uq_subject_assignment"),
    )
    op.create_index("ix_subject_assignments_staff_id", "subject_assignments", ["staff_id"])
    op.create_index("ix_subject_assignments_subject_id", "subject_assignments", ["subject_id"])

    op.create_table(
        "fee_items",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer,
            sa.ForeignKey(
                "organizations.id",
                ondelete="CASCADE",
                name="fk_fee_items_organization_id_organizations",
            ),
            nullable=False,
        ),
        sa.Column(
            "branch_id",
            sa.Integer,
            sa.ForeignKey("branches.id", name="fk_fee_items_branch_id_branches"),
            nullable=True,
        ),
        sa.Column(
            "fee_type_id",
            sa.Integer,
            sa.ForeignKey("fee_types.id", name="fk_fee_items_fee_type_id_fee_types"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("amount_paise", sa.Integer, nullable=False),
        sa.Column("is_mandatory", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_fee_items"),
    )
    op.create_index("ix_fee_items_organization_id", "fee_items", ["organization_id"])
    op.create_index("ix_fee_items_fee_type_id", "fee_items", ["fee_type_id"])


def downgrade() -> None:
    """Drop all school database tables."""
    # Drop in reverse order to handle foreign keys
    op.drop_table("fee_items")
    op.drop_table("subject_assignments")
    op.drop_table("sections")
    op.drop_table("staff")
    op.drop_table("organization_catalog_entries")
    for name in reversed(CATALOG_TABLES):
        op.drop_table(name)
    op.drop_table("branches")
    op.drop_table("organizations")
