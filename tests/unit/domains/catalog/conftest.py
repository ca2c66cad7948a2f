# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory catalog storage for behavioural service tests.

CatalogStore keeps organizations, branches, entities, enabled-lists and
usage references for every kind. InMemoryCatalogRepository exposes the
same methods as CatalogRepository over one kind of that store, with
commit/rollback implemented as snapshots so failed operations leave no
partial state behind.
"""

import copy
import itertools
from types import SimpleNamespace
from typing import Any

import pytest

from src.domains.catalog.kinds import CatalogBinding, get_binding
from src.domains.catalog.service import CatalogService
from src.models.catalog import CatalogKind

SHARED_FIELDS = (
    "id",
    "name",
    "code",
    "description",
    "organization_id",
    "branch_id",
    "is_private",
    "is_deleted",
    "created_at",
    "updated_at",
)


class CatalogStore:
    """State shared by every in-memory repository."""

    def __init__(self) -> None:
        self.organizations: dict[int, SimpleNamespace] = {}
        self.branches: dict[int, SimpleNamespace] = {}
        self.entities: dict[str, dict[int, dict[str, Any]]] = {kind.value: {} for kind in CatalogKind}
        self.enabled: list[tuple[int, str, int]] = []
        self.usage: dict[str, list[tuple[int, int]]] = {kind.value: [] for kind in CatalogKind}
        self._ids = itertools.count(1)
        self._committed = self._snapshot()
        self.commits = 0
        self.rollbacks = 0

    def next_id(self) -> int:
        return next(self._ids)

    # Seeding helpers write straight to committed state

    def add_organization(self, name: str = "Org") -> int:
        organization_id = self.next_id()
        self.organizations[organization_id] = SimpleNamespace(id=organization_id, name=name, status="ACTIVE")
        self.checkpoint()
        return organization_id

    def add_branch(self, organization_id: int, name: str = "Main") -> int:
        branch_id = self.next_id()
        self.branches[branch_id] = SimpleNamespace(id=branch_id, organization_id=organization_id, name=name)
        self.checkpoint()
        return branch_id

    def add_usage(self, kind: CatalogKind, entity_id: int, organization_id: int) -> None:
        self.usage[kind.value].append((entity_id, organization_id))
        self.checkpoint()

    def clear_usage(self, kind: CatalogKind, entity_id: int) -> None:
        self.usage[kind.value] = [ref for ref in self.usage[kind.value] if ref[0] != entity_id]
        self.checkpoint()

    def enabled_for(self, organization_id: int, kind: CatalogKind) -> list[int]:
        return [
            entity_id
            for org_id, entry_kind, entity_id in self.enabled
            if org_id == organization_id and entry_kind == kind.value
        ]

    def checkpoint(self) -> None:
        self._committed = self._snapshot()

    def restore(self) -> None:
        (
            self.organizations,
            self.branches,
            self.entities,
            self.enabled,
            self.usage,
        ) = copy.deepcopy(self._committed)

    def _snapshot(self) -> tuple:
        return copy.deepcopy(
            (self.organizations, self.branches, self.entities, self.enabled, self.usage)
        )


class InMemoryCatalogRepository:
    """CatalogRepository stand-in backed by a CatalogStore."""

    def __init__(self, store: CatalogStore, binding: CatalogBinding) -> None:
        self.store = store
        self.binding = binding

    @property
    def kind_value(self) -> str:
        return self.binding.kind.value

    @property
    def _rows(self) -> dict[int, dict[str, Any]]:
        return self.store.entities[self.kind_value]

    def _to_model(self, row: dict[str, Any]):
        return self.binding.model(**row)

    def _fields(self) -> tuple[str, ...]:
        return SHARED_FIELDS + self.binding.extra_fields

    # Unit of work

    async def commit(self) -> None:
        self.store.commits += 1
        self.store.checkpoint()

    async def rollback(self) -> None:
        self.store.rollbacks += 1
        self.store.restore()

    # Organizations and branches

    async def get_organization(self, organization_id: int, lock: bool = False):
        return self.store.organizations.get(organization_id)

    async def get_branch(self, branch_id: int):
        return self.store.branches.get(branch_id)

    # Entities

    async def get_entity(self, entity_id: int, include_deleted: bool = False, lock: bool = False):
        row = self._rows.get(entity_id)
        if row is None or (row["is_deleted"] and not include_deleted):
            return None
        return self._to_model(row)

    async def find_code_conflict(self, code, organization_id, exclude_id=None):
        for row in self._rows.values():
            if (
                row["code"]
                and row["code"].lower() == code.lower()
                and not row["is_deleted"]
                and row["organization_id"] == organization_id
                and row["id"] != exclude_id
            ):
                return self._to_model(row)
        return None

    async def find_name_conflict(self, name, organization_id, branch_id, exclude_id=None):
        for row in self._rows.values():
            if row["name"].lower() != name.lower() or row["is_deleted"] or row["id"] == exclude_id:
                continue
            if branch_id is not None:
                if row["branch_id"] == branch_id:
                    return self._to_model(row)
            elif row["organization_id"] == organization_id and row["branch_id"] is None:
                return self._to_model(row)
        return None

    async def add_entity(self, entity):
        entity.id = self.store.next_id()
        row = {field: getattr(entity, field, None) for field in self._fields()}
        self._rows[entity.id] = row
        return self._to_model(row)

    async def save(self, entity):
        row = self._rows[entity.id]
        for field in self._fields():
            row[field] = getattr(entity, field, None)
        return self._to_model(row)

    async def soft_delete(self, entity_id: int) -> bool:
        row = self._rows.get(entity_id)
        if row is None or row["is_deleted"]:
            return False
        row["is_deleted"] = True
        return True

    async def list_visible(self, organization_id: int, include_deleted: bool = True):
        enabled = set(self.store.enabled_for(organization_id, self.binding.kind))
        rows = [
            row
            for row in self._rows.values()
            if (row["id"] in enabled and not row["is_deleted"])
            or row["organization_id"] == organization_id
        ]
        if not include_deleted:
            rows = [row for row in rows if not row["is_deleted"]]
        rows.sort(key=lambda row: (row["is_deleted"], row["name"].lower(), row["id"]))
        return [self._to_model(row) for row in rows]

    async def list_global(self):
        rows = [row for row in self._rows.values() if row["organization_id"] is None and not row["is_deleted"]]
        rows.sort(key=lambda row: (row["name"].lower(), row["id"]))
        return [self._to_model(row) for row in rows]

    async def list_private(self, organization_id: int):
        rows = [
            row
            for row in self._rows.values()
            if row["organization_id"] == organization_id and row["is_private"] and not row["is_deleted"]
        ]
        rows.sort(key=lambda row: (row["name"].lower(), row["id"]))
        return [self._to_model(row) for row in rows]

    async def count_usage(self, entity_id: int, organization_id: int | None = None) -> int:
        return sum(
            1
            for ref_entity, ref_org in self.store.usage[self.kind_value]
            if ref_entity == entity_id and (organization_id is None or ref_org == organization_id)
        )

    async def summarize(self, organization_id: int | None):
        rows = [
            row
            for row in self._rows.values()
            if not row["is_deleted"]
            and (organization_id is None or row["organization_id"] in (None, organization_id))
        ]
        global_count = sum(1 for row in rows if row["organization_id"] is None)
        return len(rows), global_count, len(rows) - global_count

    # Enabled-lists

    async def enabled_ids(self, organization_id: int) -> list[int]:
        return self.store.enabled_for(organization_id, self.binding.kind)

    async def add_enabled(self, organization_id: int, entity_id: int) -> bool:
        entry = (organization_id, self.kind_value, entity_id)
        if entry in self.store.enabled:
            return False
        self.store.enabled.append(entry)
        return True

    async def remove_enabled(self, organization_id: int, entity_id: int) -> bool:
        entry = (organization_id, self.kind_value, entity_id)
        if entry not in self.store.enabled:
            return False
        self.store.enabled.remove(entry)
        return True

    async def remove_enabled_everywhere(self, entity_id: int) -> list[int]:
        affected = sorted(
            org_id
            for org_id, kind, entry_entity in self.store.enabled
            if kind == self.kind_value and entry_entity == entity_id
        )
        self.store.enabled = [
            entry
            for entry in self.store.enabled
            if not (entry[1] == self.kind_value and entry[2] == entity_id)
        ]
        return affected

    async def replace_enabled(self, organization_id: int, entity_ids) -> None:
        self.store.enabled = [
            entry
            for entry in self.store.enabled
            if not (entry[0] == organization_id and entry[1] == self.kind_value)
        ]
        self.store.enabled.extend((organization_id, self.kind_value, entity_id) for entity_id in entity_ids)


@pytest.fixture
def store() -> CatalogStore:
    """Provide an empty in-memory catalog store."""
    return CatalogStore()


@pytest.fixture
def make_service(store: CatalogStore):
    """Build a CatalogService for a kind over the shared store."""

    def _make(kind: CatalogKind) -> CatalogService:
        repository = InMemoryCatalogRepository(store, get_binding(kind))
        return CatalogService(db=None, kind=kind, repository=repository)  # type: ignore[arg-type]

    return _make
