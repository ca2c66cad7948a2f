# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Catalog entity request and response models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NAME_MAX_LENGTH = 255
CODE_MAX_LENGTH = 64


class CatalogKind(str, Enum):
    """Kinds of catalog entity an organization can enable."""

    DEPARTMENT = "department"
    SUBJECT = "subject"
    FEE_TYPE = "fee_type"
    CLASS = "class"


RemovalType = Literal["delete", "remove"]
RemovalAction = Literal["deleted", "removed"]


def _strip_or_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class CatalogEntityCreateRequest(BaseModel):
    """Request to create a catalog entity.

    ``is_private`` is derived from ``organization_id`` when omitted. An
    explicit value that contradicts the owner is rejected.
    """

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH, description="Display name")
    code: str | None = Field(None, max_length=CODE_MAX_LENGTH, description="Short code, unique per owner")
    description: str | None = Field(None, description="Free-text description")
    organization_id: int | None = Field(None, gt=0, description="Owning organization; omit for global")
    branch_id: int | None = Field(None, gt=0, description="Branch placement scope")
    is_private: bool | None = Field(None, description="Private flag, must match ownership")
    short_name: str | None = Field(None, max_length=64, description="Subject short name")
    display_order: int | None = Field(None, ge=0, description="Class display order")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("code", "description", "short_name", mode="before")
    @classmethod
    def strip_optional(cls, value: Any) -> Any:
        return _strip_or_none(value)

    @model_validator(mode="after")
    def check_private_matches_owner(self) -> "CatalogEntityCreateRequest":
        owned = self.organization_id is not None
        if self.is_private is None:
            self.is_private = owned
        elif self.is_private != owned:
            raise ValueError(
                "is_private must match ownership: private entities need an "
                "organization_id and global entities must not have one"
            )
        return self


class CatalogEntityUpdateRequest(BaseModel):
    """Partial update of a catalog entity.

    Only fields explicitly sent are applied; sending ``code: null``
    clears the code.
    """

    name: str | None = Field(None, min_length=1, max_length=NAME_MAX_LENGTH)
    code: str | None = Field(None, max_length=CODE_MAX_LENGTH)
    description: str | None = None
    short_name: str | None = Field(None, max_length=64)
    display_order: int | None = Field(None, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("code", "description", "short_name", mode="before")
    @classmethod
    def strip_optional(cls, value: Any) -> Any:
        return _strip_or_none(value)

    def changes(self) -> dict[str, Any]:
        """Return the explicitly provided fields."""
        changes = self.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            del changes["name"]
        return changes


class BulkCreateRequest(BaseModel):
    """Create several entities of one kind at once."""

    items: list[CatalogEntityCreateRequest] = Field(..., min_length=1, max_length=100)


class EnabledListUpdateRequest(BaseModel):
    """Replace an organization's enabled-list for one kind."""

    entity_ids: list[int] = Field(default_factory=list, description="Ordered entity ids")


class CatalogEntityResponse(BaseModel):
    """Catalog entity as returned by the service."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: CatalogKind
    name: str
    code: str | None = None
    description: str | None = None
    organization_id: int | None = None
    branch_id: int | None = None
    is_private: bool
    is_deleted: bool
    short_name: str | None = None
    display_order: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RemovalPlan(BaseModel):
    """Advisory classification of a removal request."""

    entity_id: int
    kind: CatalogKind
    entity_name: str
    removal_type: RemovalType = Field(description="'delete' soft-deletes, 'remove' unenrolls")
    can_remove: bool
    reason: str = ""
    usage_count: int = Field(0, ge=0)
    is_private: bool
    owned_by_organization: bool


class RemovalResult(BaseModel):
    """Outcome of a committed removal."""

    action: RemovalAction
    kind: CatalogKind
    entity_id: int
    organization_id: int
    affected_organization_ids: list[int] = Field(default_factory=list)


class CatalogSummary(BaseModel):
    """Entity counts visible in a scope."""

    kind: CatalogKind
    organization_id: int | None = None
    total: int = 0
    global_count: int = 0
    private_count: int = 0


class EnabledListResponse(BaseModel):
    """An organization's enabled-list for one kind."""

    kind: CatalogKind
    organization_id: int
    entity_ids: list[int] = Field(default_factory=list)
