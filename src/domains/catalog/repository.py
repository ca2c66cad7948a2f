# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQL access for catalog entities and enabled-lists.

The repository is bound to one catalog kind. It issues queries only;
transaction boundaries belong to CatalogService, which commits or rolls
back the session once per operation.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.catalog.kinds import CatalogBinding
from src.infrastructure.database.models import (
    Branch,
    CatalogEntityMixin,
    Organization,
    OrganizationCatalogEntry,
)

logger = logging.getLogger(__name__)


class CatalogRepository:
    """Queries for one catalog kind.

    Attributes:
        db: Async database session.
        binding: Table binding of the catalog kind.
    """

    def __init__(self, db: AsyncSession, binding: CatalogBinding) -> None:
        self.db = db
        self.binding = binding

    @property
    def model(self) -> type[CatalogEntityMixin]:
        return self.binding.model

    @property
    def kind_value(self) -> str:
        return self.binding.kind.value

    # =========================================================================
    # Unit of work
    # =========================================================================

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # =========================================================================
    # Organizations and branches
    # =========================================================================

    async def get_organization(
        self,
        organization_id: int,
        lock: bool = False,
    ) -> Organization | None:
        """Get an organization by ID.

        Args:
            organization_id: Organization identifier.
            lock: Take a row lock (SELECT ... FOR UPDATE). Used to serialize
                read-modify-write on the organization's enabled-list.

        Returns:
            Organization if found, None otherwise.
        """
        query = select(Organization).where(Organization.id == organization_id)
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_branch(self, branch_id: int) -> Branch | None:
        result = await self.db.execute(select(Branch).where(Branch.id == branch_id))
        return result.scalar_one_or_none()

    # =========================================================================
    # Entities
    # =========================================================================

    async def get_entity(
        self,
        entity_id: int,
        include_deleted: bool = False,
        lock: bool = False,
    ) -> CatalogEntityMixin | None:
        """Get an entity by ID.

        Args:
            entity_id: Entity identifier.
            include_deleted: Also return soft-deleted entities.
            lock: Take a row lock for the rest of the transaction.

        Returns:
            Entity if found, None otherwise.
        """
        query = select(self.model).where(self.model.id == entity_id)
        if not include_deleted:
            query = query.where(self.model.is_deleted.is_(False))
        if lock:
            # Reload attributes an earlier unlocked read left in the identity map
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_code_conflict(
        self,
        code: str,
        organization_id: int | None,
        exclude_id: int | None = None,
    ) -> CatalogEntityMixin | None:
        """Find an active entity with the same code in the same owner scope.

        Comparison is case-insensitive. The global scope is the set of
        entities without an owner.
        """
        query = select(self.model).where(
            func.lower(self.model.code) == code.lower(),
            self.model.is_deleted.is_(False),
            self._owner_clause(organization_id),
        )
        if exclude_id is not None:
            query = query.where(self.model.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def find_name_conflict(
        self,
        name: str,
        organization_id: int | None,
        branch_id: int | None,
        exclude_id: int | None = None,
    ) -> CatalogEntityMixin | None:
        """Find an active entity with the same name in the same placement scope.

        The placement scope is the branch when one is given, otherwise the
        owner organization (entities not placed in a branch), otherwise
        the global scope.
        """
        if branch_id is not None:
            placement = self.model.branch_id == branch_id
        else:
            placement = and_(
                self._owner_clause(organization_id),
                self.model.branch_id.is_(None),
            )

        query = select(self.model).where(
            func.lower(self.model.name) == name.lower(),
            self.model.is_deleted.is_(False),
            placement,
        )
        if exclude_id is not None:
            query = query.where(self.model.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def add_entity(self, entity: CatalogEntityMixin) -> CatalogEntityMixin:
        """Insert an entity and load its generated columns."""
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def save(self, entity: CatalogEntityMixin) -> CatalogEntityMixin:
        """Flush pending changes of an entity and reload it."""
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def soft_delete(self, entity_id: int) -> bool:
        """Mark an active entity deleted.

        Returns:
            False if no active entity matched (already deleted or gone).
        """
        result = await self.db.execute(
            update(self.model)
            .where(self.model.id == entity_id, self.model.is_deleted.is_(False))
            .values(is_deleted=True, updated_at=func.now())
        )
        return result.rowcount > 0

    async def list_visible(
        self,
        organization_id: int,
        include_deleted: bool = True,
    ) -> Sequence[CatalogEntityMixin]:
        """List entities an organization can see.

        One query with an OR predicate: active entities on the
        organization's enabled-list, or entities the organization owns
        (including soft-deleted ones unless ``include_deleted`` is False).
        """
        enabled = select(OrganizationCatalogEntry.entity_id).where(
            OrganizationCatalogEntry.organization_id == organization_id,
            OrganizationCatalogEntry.kind == self.kind_value,
        )

        query = select(self.model).where(
            or_(
                and_(
                    self.model.id.in_(enabled),
                    self.model.is_deleted.is_(False),
                ),
                self.model.organization_id == organization_id,
            )
        )
        if not include_deleted:
            query = query.where(self.model.is_deleted.is_(False))

        query = query.order_by(
            self.model.is_deleted,
            func.lower(self.model.name),
            self.model.id,
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def list_global(self) -> Sequence[CatalogEntityMixin]:
        query = (
            select(self.model)
            .where(
                self.model.organization_id.is_(None),
                self.model.is_deleted.is_(False),
            )
            .order_by(func.lower(self.model.name), self.model.id)
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def list_private(self, organization_id: int) -> Sequence[CatalogEntityMixin]:
        query = (
            select(self.model)
            .where(
                self.model.organization_id == organization_id,
                self.model.is_private.is_(True),
                self.model.is_deleted.is_(False),
            )
            .order_by(func.lower(self.model.name), self.model.id)
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def count_usage(self, entity_id: int, organization_id: int | None = None) -> int:
        """Count active usage references to an entity.

        Args:
            entity_id: Entity identifier.
            organization_id: Restrict to references inside one organization;
                None counts references everywhere.
        """
        result = await self.db.execute(self.binding.usage_query(entity_id, organization_id))
        return result.scalar() or 0

    async def summarize(self, organization_id: int | None) -> tuple[int, int, int]:
        """Count active entities in scope.

        Returns:
            Tuple of (total, global, private) counts. With an organization
            the scope is global entities plus the ones it owns.
        """
        conditions = [self.model.is_deleted.is_(False)]
        if organization_id is not None:
            conditions.append(
                or_(
                    self.model.organization_id.is_(None),
                    self.model.organization_id == organization_id,
                )
            )

        query = select(
            func.count(),
            func.count(case((self.model.organization_id.is_(None), 1))),
            func.count(case((self.model.organization_id.is_not(None), 1))),
        ).where(*conditions)
        result = await self.db.execute(query)
        total, global_count, private_count = result.one()
        return total or 0, global_count or 0, private_count or 0

    # =========================================================================
    # Enabled-lists
    # =========================================================================

    async def enabled_ids(self, organization_id: int) -> list[int]:
        """Get an organization's enabled-list in insertion order."""
        query = (
            select(OrganizationCatalogEntry.entity_id)
            .where(
                OrganizationCatalogEntry.organization_id == organization_id,
                OrganizationCatalogEntry.kind == self.kind_value,
            )
            .order_by(OrganizationCatalogEntry.created_at, OrganizationCatalogEntry.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def add_enabled(self, organization_id: int, entity_id: int) -> bool:
        """Append an entity to an organization's enabled-list.

        Adding an id that is already present is a no-op. The insert runs
        in a savepoint so a concurrent duplicate caught by the unique
        constraint does not abort the caller's transaction.

        Returns:
            True if a membership row was inserted.
        """
        existing = await self.db.execute(
            select(OrganizationCatalogEntry.id).where(
                OrganizationCatalogEntry.organization_id == organization_id,
                OrganizationCatalogEntry.kind == self.kind_value,
                OrganizationCatalogEntry.entity_id == entity_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            return False

        try:
            async with self.db.begin_nested():
                self.db.add(
                    OrganizationCatalogEntry(
                        organization_id=organization_id,
                        kind=self.kind_value,
                        entity_id=entity_id,
                    )
                )
        except IntegrityError:
            logger.debug(
                "Enabled-list entry %s/%s/%s already present",
                organization_id,
                self.kind_value,
                entity_id,
            )
            return False
        return True

    async def remove_enabled(self, organization_id: int, entity_id: int) -> bool:
        """Remove an entity from one organization's enabled-list.

        Removing an absent id is a no-op.

        Returns:
            True if a membership row was deleted.
        """
        result = await self.db.execute(
            delete(OrganizationCatalogEntry).where(
                OrganizationCatalogEntry.organization_id == organization_id,
                OrganizationCatalogEntry.kind == self.kind_value,
                OrganizationCatalogEntry.entity_id == entity_id,
            )
        )
        return result.rowcount > 0

    async def remove_enabled_everywhere(self, entity_id: int) -> list[int]:
        """Remove an entity from every organization's enabled-list.

        Returns:
            IDs of the organizations whose list contained the entity.
        """
        membership = (
            OrganizationCatalogEntry.kind == self.kind_value,
            OrganizationCatalogEntry.entity_id == entity_id,
        )
        result = await self.db.execute(
            select(OrganizationCatalogEntry.organization_id)
            .where(*membership)
            .order_by(OrganizationCatalogEntry.organization_id)
            .with_for_update()
        )
        organization_ids = list(result.scalars().all())

        if organization_ids:
            await self.db.execute(delete(OrganizationCatalogEntry).where(*membership))
        return organization_ids

    async def replace_enabled(self, organization_id: int, entity_ids: Sequence[int]) -> None:
        """Replace an organization's enabled-list, keeping the given order."""
        await self.db.execute(
            delete(OrganizationCatalogEntry).where(
                OrganizationCatalogEntry.organization_id == organization_id,
                OrganizationCatalogEntry.kind == self.kind_value,
            )
        )
        self.db.add_all(
            [
                OrganizationCatalogEntry(
                    organization_id=organization_id,
                    kind=self.kind_value,
                    entity_id=entity_id,
                )
                for entity_id in entity_ids
            ]
        )
        await self.db.flush()

    def _owner_clause(self, organization_id: int | None):
        if organization_id is None:
            return self.model.organization_id.is_(None)
        return self.model.organization_id == organization_id
