# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Catalog entitlement service.

This module provides the CatalogService class for:
- Visibility resolution (enabled-list plus owned entities)
- Creation with enabled-list registration
- Removal classification (delete vs. remove) and removal commit
- Update, restore and enabled-list management

One service handles every catalog kind; the kind only selects the table
binding and the usage-reference query.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.catalog.kinds import KIND_EXTRA_FIELDS, CatalogBinding, get_binding
from src.domains.catalog.repository import CatalogRepository
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.models import CatalogEntityMixin
from src.models.catalog import (
    CatalogEntityCreateRequest,
    CatalogEntityResponse,
    CatalogEntityUpdateRequest,
    CatalogKind,
    CatalogSummary,
    RemovalPlan,
    RemovalResult,
)
from src.models.common import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogServiceError(Exception):
    """Base exception for catalog service errors."""

    code: ErrorCode = ErrorCode.BAD_REQUEST


class CatalogNotFoundError(CatalogServiceError):
    """Raised when an entity is missing or deleted."""

    code = ErrorCode.NOT_FOUND


class OrganizationNotFoundError(CatalogNotFoundError):
    """Raised when organization is not found."""

    pass


class BranchNotFoundError(CatalogNotFoundError):
    """Raised when branch is not found."""

    pass


class CatalogConflictError(CatalogServiceError):
    """Raised when a change collides with existing state."""

    code = ErrorCode.CONFLICT


class CatalogCodeExistsError(CatalogConflictError):
    """Raised when the code is taken in the owner scope."""

    pass


class CatalogNameExistsError(CatalogConflictError):
    """Raised when the name is taken in the placement scope."""

    pass


class CatalogUsageChangedError(CatalogConflictError):
    """Raised when usage grew after the caller's advisory check."""

    pass


class CatalogForbiddenError(CatalogServiceError):
    """Raised when the caller may not touch the entity."""

    code = ErrorCode.FORBIDDEN


class CatalogValidationError(CatalogServiceError):
    """Raised for requests that cannot be applied as given."""

    code = ErrorCode.BAD_REQUEST


class CatalogRemovalBlockedError(CatalogValidationError):
    """Raised when a private entity is still in use."""

    pass


@dataclass(frozen=True)
class CatalogActor:
    """Caller identity for ownership-gated operations.

    Attributes:
        organization_id: Organization the caller administers, if any.
        is_platform_admin: Caller may manage global entities.
    """

    organization_id: int | None = None
    is_platform_admin: bool = False


class CatalogService:
    """Service managing catalog entities of one kind.

    Every public method runs as one unit of work: it commits on success,
    and rolls back and returns a failed ServiceResult on a business error.
    Database failures are raised as DatabaseError.

    Attributes:
        db: Async database session.
        binding: Table binding of the catalog kind.
        repository: Query layer for the kind.
    """

    def __init__(
        self,
        db: AsyncSession,
        kind: CatalogKind | str,
        repository: CatalogRepository | None = None,
    ) -> None:
        """Initialize catalog service.

        Args:
            db: Async database session.
            kind: Catalog kind handled by this service.
            repository: Query layer; built from the session when omitted.
        """
        self.db = db
        self.binding: CatalogBinding = get_binding(kind)
        self.repository = repository or CatalogRepository(db, self.binding)

    @property
    def kind(self) -> CatalogKind:
        return self.binding.kind

    # =========================================================================
    # Visibility
    # =========================================================================

    async def resolve_visible(
        self,
        organization_id: int,
        include_deleted: bool = True,
    ) -> ServiceResult[list[CatalogEntityResponse]]:
        """List the entities an organization can see.

        The result holds the active entities on the organization's
        enabled-list together with every entity it owns. Owned entities
        that were soft-deleted are kept unless ``include_deleted`` is
        False, so they can be offered for restore.

        Args:
            organization_id: Requesting organization.
            include_deleted: Keep soft-deleted owned entities.

        Returns:
            Entities ordered active first, then by name.
        """
        return await self._run("resolve_visible", self._resolve_visible(organization_id, include_deleted))

    async def list_global(self) -> ServiceResult[list[CatalogEntityResponse]]:
        return await self._run("list_global", self._list_global())

    async def list_private(self, organization_id: int) -> ServiceResult[list[CatalogEntityResponse]]:
        return await self._run("list_private", self._list_private(organization_id))

    async def get(self, entity_id: int) -> ServiceResult[CatalogEntityResponse]:
        return await self._run("get", self._get(entity_id))

    async def summarize(self, organization_id: int | None = None) -> ServiceResult[CatalogSummary]:
        """Count global and private entities visible in a scope.

        Args:
            organization_id: Organization scope; None counts everything.
        """
        return await self._run("summarize", self._summarize(organization_id))

    # =========================================================================
    # Creation and updates
    # =========================================================================

    async def create(self, request: CatalogEntityCreateRequest) -> ServiceResult[CatalogEntityResponse]:
        """Create an entity and enable it for its owner.

        Args:
            request: Entity creation data.

        Returns:
            Created entity. Fails with CONFLICT when the code or name is
            taken, NOT_FOUND when the owner or branch is missing and
            BAD_REQUEST for an invalid branch or kind field.
        """
        return await self._run("create", self._create(request))

    async def bulk_create(
        self,
        requests: Iterable[CatalogEntityCreateRequest],
    ) -> ServiceResult[list[CatalogEntityResponse]]:
        """Create several entities in one transaction.

        The first failing item rolls back the whole batch.
        """
        return await self._run("bulk_create", self._bulk_create(list(requests)))

    async def update(
        self,
        entity_id: int,
        request: CatalogEntityUpdateRequest,
        actor: CatalogActor,
    ) -> ServiceResult[CatalogEntityResponse]:
        """Update an entity.

        Global entities can only be changed by platform admins, private
        ones by their owner organization or a platform admin.

        Args:
            entity_id: Entity to update.
            request: Fields to change.
            actor: Caller identity.

        Returns:
            Updated entity.
        """
        return await self._run("update", self._update(entity_id, request, actor))

    async def restore(self, entity_id: int, actor: CatalogActor) -> ServiceResult[CatalogEntityResponse]:
        """Undo a soft delete and re-enable the entity for its owner."""
        return await self._run("restore", self._restore(entity_id, actor))

    # =========================================================================
    # Enabled-lists
    # =========================================================================

    async def enable(self, entity_id: int, organization_id: int) -> ServiceResult[list[int]]:
        """Add an entity to an organization's enabled-list.

        Enabling an entity that is already on the list is a no-op.

        Returns:
            The organization's enabled-list after the change.
        """
        return await self._run("enable", self._enable(entity_id, organization_id))

    async def set_enabled(self, organization_id: int, entity_ids: Iterable[int]) -> ServiceResult[list[int]]:
        """Replace an organization's enabled-list.

        Duplicates collapse to their first occurrence.

        Returns:
            The stored enabled-list.
        """
        return await self._run("set_enabled", self._set_enabled(organization_id, list(entity_ids)))

    # =========================================================================
    # Removal
    # =========================================================================

    async def classify_removal(self, entity_id: int, organization_id: int) -> ServiceResult[RemovalPlan]:
        """Classify what removing an entity means for an organization.

        A private entity owned by the organization is deleted, and the
        plan is blocked while anything still references it. A global
        entity is only removed from the organization's enabled-list; its
        usage count inside the organization is advisory. A private entity
        of another organization fails with FORBIDDEN.

        The plan is advisory: remove_or_delete classifies again before
        it changes anything.

        Args:
            entity_id: Entity to remove.
            organization_id: Requesting organization.

        Returns:
            Removal plan.
        """
        return await self._run("classify_removal", self._classify(entity_id, organization_id))

    async def remove_or_delete(
        self,
        entity_id: int,
        organization_id: int,
        expected_usage_count: int | None = None,
    ) -> ServiceResult[RemovalResult]:
        """Commit a removal.

        Args:
            entity_id: Entity to remove.
            organization_id: Requesting organization.
            expected_usage_count: Usage count the caller saw in the plan.
                When usage has grown since, a blocked removal fails with
                CONFLICT instead of BAD_REQUEST.

        Returns:
            Result naming the action taken and the organizations whose
            enabled-list changed.
        """
        return await self._run(
            "remove_or_delete",
            self._remove_or_delete(entity_id, organization_id, expected_usage_count),
        )

    # =========================================================================
    # Operation bodies
    # =========================================================================

    async def _resolve_visible(
        self,
        organization_id: int,
        include_deleted: bool,
    ) -> list[CatalogEntityResponse]:
        await self._require_organization(organization_id)
        entities = await self.repository.list_visible(organization_id, include_deleted)
        return [self._to_response(entity) for entity in entities]

    async def _list_global(self) -> list[CatalogEntityResponse]:
        entities = await self.repository.list_global()
        return [self._to_response(entity) for entity in entities]

    async def _list_private(self, organization_id: int) -> list[CatalogEntityResponse]:
        await self._require_organization(organization_id)
        entities = await self.repository.list_private(organization_id)
        return [self._to_response(entity) for entity in entities]

    async def _get(self, entity_id: int) -> CatalogEntityResponse:
        return self._to_response(await self._get_entity(entity_id))

    async def _summarize(self, organization_id: int | None) -> CatalogSummary:
        if organization_id is not None:
            await self._require_organization(organization_id)
        total, global_count, private_count = await self.repository.summarize(organization_id)
        return CatalogSummary(
            kind=self.kind,
            organization_id=organization_id,
            total=total,
            global_count=global_count,
            private_count=private_count,
        )

    async def _create(self, request: CatalogEntityCreateRequest) -> CatalogEntityResponse:
        extras = self._kind_extras(request.model_dump(include=set(KIND_EXTRA_FIELDS)))
        owner_id = request.organization_id

        # Lock the owner before touching its enabled-list
        if owner_id is not None:
            await self._require_organization(owner_id, lock=True)
        if request.branch_id is not None:
            await self._check_branch(request.branch_id, owner_id)

        await self._check_unique(request.name, request.code, owner_id, request.branch_id)

        entity = self.binding.model(
            name=request.name,
            code=request.code,
            description=request.description,
            organization_id=owner_id,
            branch_id=request.branch_id,
            is_private=owner_id is not None,
            is_deleted=False,
            **extras,
        )
        entity = await self.repository.add_entity(entity)

        if owner_id is not None:
            await self.repository.add_enabled(owner_id, entity.id)

        logger.info(
            "Created %s: %s (%s) for %s",
            self.binding.label,
            entity.name,
            entity.id,
            f"organization {owner_id}" if owner_id is not None else "global catalog",
        )
        return self._to_response(entity)

    async def _bulk_create(self, requests: list[CatalogEntityCreateRequest]) -> list[CatalogEntityResponse]:
        if not requests:
            raise CatalogValidationError("No items to create")
        return [await self._create(request) for request in requests]

    async def _update(
        self,
        entity_id: int,
        request: CatalogEntityUpdateRequest,
        actor: CatalogActor,
    ) -> CatalogEntityResponse:
        changes = request.changes()
        self._kind_extras({field: changes[field] for field in KIND_EXTRA_FIELDS if field in changes})
        changes = {
            field: value
            for field, value in changes.items()
            if field not in KIND_EXTRA_FIELDS or field in self.binding.extra_fields
        }
        if not changes:
            raise CatalogValidationError("No fields to update")

        entity = await self._get_entity(entity_id, lock=True)
        self._ensure_can_mutate(entity, actor)

        await self._check_unique(
            changes.get("name"),
            changes.get("code"),
            entity.organization_id,
            entity.branch_id,
            exclude_id=entity.id,
        )

        for field, value in changes.items():
            setattr(entity, field, value)
        entity = await self.repository.save(entity)

        logger.info("Updated %s: %s (%s)", self.binding.label, entity.name, entity.id)
        return self._to_response(entity)

    async def _restore(self, entity_id: int, actor: CatalogActor) -> CatalogEntityResponse:
        entity = await self.repository.get_entity(entity_id, include_deleted=True)
        if entity is None:
            raise CatalogNotFoundError(f"{self._label} {entity_id} not found")
        self._ensure_can_mutate(entity, actor)

        # Ownership never changes, so the owner can be locked before the entity
        owner_id = entity.organization_id
        if owner_id is not None:
            await self._require_organization(owner_id, lock=True)
        entity = await self.repository.get_entity(entity_id, include_deleted=True, lock=True)
        if entity is None:
            raise CatalogNotFoundError(f"{self._label} {entity_id} not found")
        if not entity.is_deleted:
            raise CatalogValidationError(f"{self._label} {entity_id} is not deleted")

        await self._check_unique(
            entity.name,
            entity.code,
            owner_id,
            entity.branch_id,
            exclude_id=entity.id,
        )

        entity.is_deleted = False
        entity = await self.repository.save(entity)
        if owner_id is not None:
            await self.repository.add_enabled(owner_id, entity.id)

        logger.info("Restored %s: %s (%s)", self.binding.label, entity.name, entity.id)
        return self._to_response(entity)

    async def _enable(self, entity_id: int, organization_id: int) -> list[int]:
        await self._require_organization(organization_id, lock=True)
        entity = await self._get_entity(entity_id)
        self._ensure_enableable(entity, organization_id)

        if await self.repository.add_enabled(organization_id, entity.id):
            logger.info(
                "Enabled %s %s for organization %s",
                self.binding.label,
                entity.id,
                organization_id,
            )
        return await self.repository.enabled_ids(organization_id)

    async def _set_enabled(self, organization_id: int, entity_ids: list[int]) -> list[int]:
        await self._require_organization(organization_id, lock=True)

        unique_ids = list(dict.fromkeys(entity_ids))
        for entity_id in unique_ids:
            entity = await self._get_entity(entity_id)
            self._ensure_enableable(entity, organization_id)

        await self.repository.replace_enabled(organization_id, unique_ids)
        logger.info(
            "Replaced %s enabled-list of organization %s (%d entries)",
            self.binding.label,
            organization_id,
            len(unique_ids),
        )
        return unique_ids

    async def _classify(self, entity_id: int, organization_id: int) -> RemovalPlan:
        return await self._plan(await self._get_entity(entity_id), organization_id)

    async def _plan(self, entity: CatalogEntityMixin, organization_id: int) -> RemovalPlan:
        owned = entity.organization_id == organization_id

        if entity.is_private:
            if not owned:
                raise CatalogForbiddenError(
                    f"You do not have permission to delete this {self.binding.label}"
                )
            usage_count = await self.repository.count_usage(entity.id)
            can_remove = usage_count == 0
            reason = ""
            if not can_remove:
                reason = (
                    f"Cannot delete {self.binding.label} as it has "
                    f"{self.binding.describe_usage(usage_count)}"
                )
            removal_type = "delete"
        else:
            usage_count = await self.repository.count_usage(entity.id, organization_id)
            can_remove = True
            reason = ""
            if usage_count:
                reason = (
                    f"{self.binding.describe_usage(usage_count)} in this organization "
                    f"still reference this {self.binding.label}"
                )
            removal_type = "remove"

        return RemovalPlan(
            entity_id=entity.id,
            kind=self.kind,
            entity_name=entity.name,
            removal_type=removal_type,
            can_remove=can_remove,
            reason=reason,
            usage_count=usage_count,
            is_private=entity.is_private,
            owned_by_organization=owned,
        )

    async def _remove_or_delete(
        self,
        entity_id: int,
        organization_id: int,
        expected_usage_count: int | None,
    ) -> RemovalResult:
        # Lock order is organization, then entity
        await self._require_organization(organization_id, lock=True)
        entity = await self._get_entity(entity_id)
        if entity.is_private:
            # Removal never changes a global row, so only private rows are locked
            entity = await self._get_entity(entity_id, lock=True)
        plan = await self._plan(entity, organization_id)

        if not plan.can_remove:
            if expected_usage_count is not None and plan.usage_count > expected_usage_count:
                raise CatalogUsageChangedError(plan.reason)
            raise CatalogRemovalBlockedError(plan.reason)

        if plan.removal_type == "remove":
            removed = await self.repository.remove_enabled(organization_id, entity_id)
            logger.info(
                "Removed %s %s from organization %s%s",
                self.binding.label,
                entity_id,
                organization_id,
                "" if removed else " (not enabled)",
            )
            return RemovalResult(
                action="removed",
                kind=self.kind,
                entity_id=entity_id,
                organization_id=organization_id,
                affected_organization_ids=[organization_id] if removed else [],
            )

        affected = await self.repository.remove_enabled_everywhere(entity_id)
        if not await self.repository.soft_delete(entity_id):
            raise CatalogNotFoundError(f"{self._label} {entity_id} not found")

        logger.info(
            "Deleted %s %s of organization %s, unenrolled from %d organizations",
            self.binding.label,
            entity_id,
            organization_id,
            len(affected),
        )
        return RemovalResult(
            action="deleted",
            kind=self.kind,
            entity_id=entity_id,
            organization_id=organization_id,
            affected_organization_ids=affected,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _run(self, operation: str, work: Awaitable[T]) -> ServiceResult[T]:
        """Run an operation body as one unit of work."""
        try:
            data = await work
            await self.repository.commit()
        except CatalogServiceError as e:
            await self.repository.rollback()
            logger.info("%s %s rejected: %s", self.binding.label, operation, e)
            return ServiceResult.fail(e.code, str(e))
        except SQLAlchemyError as e:
            await self.repository.rollback()
            logger.error("%s %s failed: %s", self.binding.label, operation, e)
            raise DatabaseError(f"Failed to {operation.replace('_', ' ')} {self.binding.label}", e) from e
        return ServiceResult.ok(data)

    @property
    def _label(self) -> str:
        return self.binding.label.capitalize()

    async def _get_entity(self, entity_id: int, lock: bool = False) -> CatalogEntityMixin:
        entity = await self.repository.get_entity(entity_id, lock=lock)
        if entity is None:
            raise CatalogNotFoundError(f"{self._label} {entity_id} not found")
        return entity

    async def _require_organization(self, organization_id: int, lock: bool = False) -> None:
        organization = await self.repository.get_organization(organization_id, lock=lock)
        if organization is None:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")

    async def _check_branch(self, branch_id: int, owner_id: int | None) -> None:
        branch = await self.repository.get_branch(branch_id)
        if branch is None:
            raise BranchNotFoundError(f"Branch {branch_id} not found")
        if owner_id is None:
            raise CatalogValidationError(f"A global {self.binding.label} cannot be placed in a branch")
        if branch.organization_id != owner_id:
            raise CatalogValidationError(
                f"Branch {branch_id} does not belong to organization {owner_id}"
            )

    async def _check_unique(
        self,
        name: str | None,
        code: str | None,
        owner_id: int | None,
        branch_id: int | None,
        exclude_id: int | None = None,
    ) -> None:
        """Reject a code taken in the owner scope or a name taken in the placement scope."""
        if code and await self.repository.find_code_conflict(code, owner_id, exclude_id):
            raise CatalogCodeExistsError(
                f"{self._label} code '{code}' already exists in this {self._scope_noun(owner_id)}"
            )
        if name and await self.repository.find_name_conflict(name, owner_id, branch_id, exclude_id):
            raise CatalogNameExistsError(
                f"{self._label} '{name}' already exists in this "
                f"{'branch' if branch_id is not None else self._scope_noun(owner_id)}"
            )

    @staticmethod
    def _scope_noun(owner_id: int | None) -> str:
        return "organization" if owner_id is not None else "global catalog"

    def _kind_extras(self, values: dict[str, Any]) -> dict[str, Any]:
        """Validate kind-specific fields and return the ones this kind stores."""
        for field, value in values.items():
            if value is not None and field not in self.binding.extra_fields:
                raise CatalogValidationError(f"{field} is not supported for {self.binding.label}s")
        return {field: values.get(field) for field in self.binding.extra_fields}

    def _ensure_can_mutate(self, entity: CatalogEntityMixin, actor: CatalogActor) -> None:
        if actor.is_platform_admin:
            return
        if entity.is_global:
            raise CatalogForbiddenError(
                f"Cannot modify a global {self.binding.label}. "
                "Only platform admins can modify global entities."
            )
        if entity.organization_id != actor.organization_id:
            raise CatalogForbiddenError("Access denied")

    def _ensure_enableable(self, entity: CatalogEntityMixin, organization_id: int) -> None:
        if entity.is_private and entity.organization_id != organization_id:
            raise CatalogForbiddenError(
                f"{self._label} {entity.id} is private to another organization"
            )

    def _to_response(self, entity: CatalogEntityMixin) -> CatalogEntityResponse:
        return CatalogEntityResponse(
            id=entity.id,
            kind=self.kind,
            name=entity.name,
            code=entity.code,
            description=entity.description,
            organization_id=entity.organization_id,
            branch_id=entity.branch_id,
            is_private=entity.is_private,
            is_deleted=entity.is_deleted,
            short_name=getattr(entity, "short_name", None),
            display_order=getattr(entity, "display_order", None),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
