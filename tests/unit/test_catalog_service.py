# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for Catalog service."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, call

import pytest
from sqlalchemy.exc import OperationalError

from src.domains.catalog.repository import CatalogRepository
from src.domains.catalog.service import CatalogActor, CatalogService
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.models import Department, FeeType, Subject
from src.models.catalog import CatalogEntityCreateRequest, CatalogEntityUpdateRequest, CatalogKind
from src.models.common import ErrorCode


@pytest.fixture
def mock_db():
    """Create mock database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def mock_repository():
    """Create mock catalog repository."""
    repository = AsyncMock(spec=CatalogRepository)
    repository.get_organization.return_value = MagicMock(id=1)
    repository.find_code_conflict.return_value = None
    repository.find_name_conflict.return_value = None
    repository.count_usage.return_value = 0
    return repository


@pytest.fixture
def department_service(mock_db, mock_repository):
    """Create department service with mock repository."""
    return CatalogService(db=mock_db, kind=CatalogKind.DEPARTMENT, repository=mock_repository)


@pytest.fixture
def private_department():
    """Create a private department owned by organization 1."""
    return Department(
        id=10,
        name="Science",
        code="SCI",
        organization_id=1,
        is_private=True,
        is_deleted=False,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def global_department():
    """Create a global department."""
    return Department(id=20, name="Administration", organization_id=None, is_private=False, is_deleted=False)


class TestCatalogServiceInit:
    """Tests for service construction."""

    def test_builds_repository_from_session(self, mock_db):
        service = CatalogService(db=mock_db, kind="fee_type")

        assert service.kind == CatalogKind.FEE_TYPE
        assert isinstance(service.repository, CatalogRepository)
        assert service.repository.model is FeeType

    def test_unknown_kind(self, mock_db):
        with pytest.raises(ValueError):
            CatalogService(db=mock_db, kind="building")


class TestCatalogServiceUnitOfWork:
    """Tests for commit/rollback handling."""

    @pytest.mark.asyncio
    async def test_success_commits(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department

        result = await department_service.get(10)

        assert result.success is True
        assert result.data.id == 10
        assert result.data.kind == CatalogKind.DEPARTMENT
        mock_repository.commit.assert_awaited_once()
        mock_repository.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_business_error_rolls_back(self, department_service, mock_repository):
        mock_repository.get_entity.return_value = None

        result = await department_service.get(99)

        assert result.success is False
        assert result.error.code == ErrorCode.NOT_FOUND
        assert result.error.message == "Department 99 not found"
        mock_repository.rollback.assert_awaited_once()
        mock_repository.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, department_service, mock_repository):
        mock_repository.list_global.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

        with pytest.raises(DatabaseError) as exc_info:
            await department_service.list_global()

        assert "Failed to list global department" in str(exc_info.value)
        mock_repository.rollback.assert_awaited_once()


class TestCatalogServiceCreate:
    """Tests for entity creation."""

    @pytest.mark.asyncio
    async def test_create_private_enables_for_owner(self, department_service, mock_repository, private_department):
        mock_repository.add_entity.return_value = private_department

        result = await department_service.create(
            CatalogEntityCreateRequest(name="Science", code="SCI", organization_id=1)
        )

        assert result.success is True
        mock_repository.get_organization.assert_awaited_once_with(1, lock=True)
        created = mock_repository.add_entity.await_args.args[0]
        assert isinstance(created, Department)
        assert created.is_private is True
        assert created.organization_id == 1
        mock_repository.add_enabled.assert_awaited_once_with(1, 10)

    @pytest.mark.asyncio
    async def test_create_global_skips_enabled_list(self, department_service, mock_repository, global_department):
        mock_repository.add_entity.return_value = global_department

        result = await department_service.create(CatalogEntityCreateRequest(name="Administration"))

        assert result.success is True
        mock_repository.get_organization.assert_not_awaited()
        mock_repository.add_enabled.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_code_conflict(self, department_service, mock_repository, private_department):
        mock_repository.find_code_conflict.return_value = private_department

        result = await department_service.create(
            CatalogEntityCreateRequest(name="Sciences", code="sci", organization_id=1)
        )

        assert result.error.code == ErrorCode.CONFLICT
        assert result.error.message == "Department code 'sci' already exists in this organization"
        mock_repository.add_entity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_global_branch_rejected(self, department_service, mock_repository):
        mock_repository.get_branch.return_value = MagicMock(id=5, organization_id=1)

        result = await department_service.create(CatalogEntityCreateRequest(name="Science", branch_id=5))

        assert result.error.code == ErrorCode.BAD_REQUEST
        mock_repository.add_entity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_subject_short_name_stored(self, mock_db, mock_repository):
        service = CatalogService(db=mock_db, kind=CatalogKind.SUBJECT, repository=mock_repository)
        mock_repository.add_entity.return_value = Subject(
            id=3, name="Physics", short_name="PHY", organization_id=1, is_private=True, is_deleted=False
        )

        result = await service.create(CatalogEntityCreateRequest(name="Physics", short_name="PHY", organization_id=1))

        assert result.data.short_name == "PHY"
        assert mock_repository.add_entity.await_args.args[0].short_name == "PHY"


class TestCatalogServiceClassify:
    """Tests for removal classification."""

    @pytest.mark.asyncio
    async def test_private_in_use_is_blocked(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department
        mock_repository.count_usage.return_value = 3

        plan = (await department_service.classify_removal(10, 1)).unwrap()

        assert plan.removal_type == "delete"
        assert plan.can_remove is False
        assert plan.usage_count == 3
        assert plan.reason == "Cannot delete department as it has 3 active staff members"
        mock_repository.count_usage.assert_awaited_once_with(10)

    @pytest.mark.asyncio
    async def test_global_usage_counted_in_organization(self, department_service, mock_repository, global_department):
        mock_repository.get_entity.return_value = global_department
        mock_repository.count_usage.return_value = 2

        plan = (await department_service.classify_removal(20, 1)).unwrap()

        assert plan.removal_type == "remove"
        assert plan.can_remove is True
        assert plan.usage_count == 2
        mock_repository.count_usage.assert_awaited_once_with(20, 1)

    @pytest.mark.asyncio
    async def test_foreign_private_forbidden_before_usage(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department

        result = await department_service.classify_removal(10, 2)

        assert result.error.code == ErrorCode.FORBIDDEN
        mock_repository.count_usage.assert_not_awaited()


class TestCatalogServiceRemoveOrDelete:
    """Tests for removal commit."""

    @pytest.mark.asyncio
    async def test_delete_locks_and_soft_deletes(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department
        mock_repository.remove_enabled_everywhere.return_value = [1, 4]
        mock_repository.soft_delete.return_value = True

        result = (await department_service.remove_or_delete(10, 1)).unwrap()

        assert result.action == "deleted"
        assert result.affected_organization_ids == [1, 4]
        assert mock_repository.get_entity.await_args_list == [call(10, lock=False), call(10, lock=True)]
        mock_repository.soft_delete.assert_awaited_once_with(10)
        mock_repository.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_delete_is_not_found(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department
        mock_repository.remove_enabled_everywhere.return_value = [1]
        mock_repository.soft_delete.return_value = False

        result = await department_service.remove_or_delete(10, 1)

        assert result.error.code == ErrorCode.NOT_FOUND
        mock_repository.rollback.assert_awaited_once()
        mock_repository.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_requires_organization(self, department_service, mock_repository, global_department):
        mock_repository.get_entity.return_value = global_department
        mock_repository.get_organization.return_value = None

        result = await department_service.remove_or_delete(20, 1)

        assert result.error.code == ErrorCode.NOT_FOUND
        assert result.error.message == "Organization 1 not found"
        mock_repository.remove_enabled.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_leaves_entity(self, department_service, mock_repository, global_department):
        mock_repository.get_entity.return_value = global_department
        mock_repository.remove_enabled.return_value = True

        result = (await department_service.remove_or_delete(20, 1)).unwrap()

        assert result.action == "removed"
        assert result.affected_organization_ids == [1]
        mock_repository.remove_enabled.assert_awaited_once_with(1, 20)
        mock_repository.soft_delete.assert_not_awaited()
        mock_repository.remove_enabled_everywhere.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_usage_unchanged_is_bad_request(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department
        mock_repository.count_usage.return_value = 2

        result = await department_service.remove_or_delete(10, 1, expected_usage_count=2)

        assert result.error.code == ErrorCode.BAD_REQUEST


class TestCatalogServiceUpdate:
    """Tests for ownership-gated update."""

    @pytest.mark.asyncio
    async def test_other_organization_denied(self, department_service, mock_repository, private_department):
        mock_repository.get_entity.return_value = private_department

        result = await department_service.update(
            10,
            CatalogEntityUpdateRequest(name="Natural Science"),
            CatalogActor(organization_id=2),
        )

        assert result.error.code == ErrorCode.FORBIDDEN
        assert result.error.message == "Access denied"
        mock_repository.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_global_needs_platform_admin(self, department_service, mock_repository, global_department):
        mock_repository.get_entity.return_value = global_department
        mock_repository.save.return_value = global_department

        denied = await department_service.update(
            20,
            CatalogEntityUpdateRequest(description="Front office"),
            CatalogActor(organization_id=1),
        )
        allowed = await department_service.update(
            20,
            CatalogEntityUpdateRequest(description="Front office"),
            CatalogActor(is_platform_admin=True),
        )

        assert denied.error.code == ErrorCode.FORBIDDEN
        assert denied.error.message.startswith("Cannot modify a global department.")
        assert allowed.success is True
        mock_repository.save.assert_awaited_once()


def _record_lookups(repository, entity) -> list[tuple[str, int, bool]]:
    """Record organization and entity lookups with their lock flag, in call order."""
    lookups = []

    async def get_organization(organization_id, lock=False):
        lookups.append(("organization", organization_id, lock))
        return MagicMock(id=organization_id)

    async def get_entity(entity_id, include_deleted=False, lock=False):
        lookups.append(("entity", entity_id, lock))
        return entity

    repository.get_organization.side_effect = get_organization
    repository.get_entity.side_effect = get_entity
    return lookups


class TestCatalogServiceLockOrder:
    """Tests for row lock ordering on write paths."""

    @pytest.mark.asyncio
    async def test_delete_locks_organization_before_entity(
        self, department_service, mock_repository, private_department
    ):
        lookups = _record_lookups(mock_repository, private_department)
        mock_repository.remove_enabled_everywhere.return_value = [1]
        mock_repository.soft_delete.return_value = True

        (await department_service.remove_or_delete(10, 1)).unwrap()

        assert lookups == [
            ("organization", 1, True),
            ("entity", 10, False),
            ("entity", 10, True),
        ]

    @pytest.mark.asyncio
    async def test_remove_leaves_global_row_unlocked(self, department_service, mock_repository, global_department):
        lookups = _record_lookups(mock_repository, global_department)
        mock_repository.remove_enabled.return_value = True

        (await department_service.remove_or_delete(20, 1)).unwrap()

        assert lookups == [("organization", 1, True), ("entity", 20, False)]

    @pytest.mark.asyncio
    async def test_restore_locks_owner_before_entity(self, department_service, mock_repository, private_department):
        private_department.is_deleted = True
        lookups = _record_lookups(mock_repository, private_department)
        mock_repository.save.return_value = private_department

        result = await department_service.restore(10, CatalogActor(organization_id=1))

        assert result.success is True
        assert lookups == [
            ("entity", 10, False),
            ("organization", 1, True),
            ("entity", 10, True),
        ]
        mock_repository.add_enabled.assert_awaited_once_with(1, 10)


class TestCatalogServiceWithSession:
    """Tests running the real repository against a mocked session."""

    @pytest.mark.asyncio
    async def test_resolve_visible_issues_two_queries(self, mock_db, private_department):
        service = CatalogService(db=mock_db, kind=CatalogKind.DEPARTMENT)

        mock_org_result = MagicMock()
        mock_org_result.scalar_one_or_none.return_value = MagicMock(id=1)

        mock_list_result = MagicMock()
        mock_list_result.scalars.return_value.all.return_value = [private_department]

        mock_db.execute.side_effect = [mock_org_result, mock_list_result]

        result = await service.resolve_visible(1)

        assert result.success is True
        assert [entity.id for entity in result.data] == [10]
        assert mock_db.execute.await_count == 2
        mock_db.commit.assert_awaited_once()
