# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared response envelope for domain services.

Services return ``ServiceResult`` instead of raising across their public
boundary, so callers decide how a failure is presented.

Example:
    >>> result = ServiceResult.fail(ErrorCode.NOT_FOUND, "Department 7 not found")
    >>> result.success
    False
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Failure categories shared by every catalog operation."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"


class ServiceError(BaseModel):
    """Typed failure carried by a ServiceResult."""

    code: ErrorCode = Field(description="Failure category")
    message: str = Field(description="Human-readable reason")


class ServiceResult(BaseModel, Generic[T]):
    """``{success, data | error}`` envelope."""

    success: bool = Field(description="Whether the operation succeeded")
    data: T | None = Field(None, description="Payload on success")
    error: ServiceError | None = Field(None, description="Failure details")

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult[Any]":
        """Build a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> "ServiceResult[Any]":
        """Build a failed result."""
        return cls(success=False, error=ServiceError(code=code, message=message))

    def unwrap(self) -> T:
        """Return the payload or raise if the result is a failure.

        Raises:
            ValueError: If the result is a failure.
        """
        if not self.success:
            message = self.error.message if self.error else "unknown error"
            raise ValueError(f"Cannot unwrap failed result: {message}")
        return self.data  # type: ignore[return-value]
