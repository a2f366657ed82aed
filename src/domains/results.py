# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tagged operation results shared by the academic domain services.

Service internals raise ServiceError subclasses, the way every domain service
defines its own exception hierarchy. Public operations are wrapped with
``returns_result`` so callers always receive a ServiceResult: a value on
success, or a ServiceFailure carrying the failure kind, a message and optional
structured details.

Example:
    >>> result = await EnrollmentService(db).enroll(student_id, course_id, term_id)
    >>> if not result.ok:
    ...     print(result.failure.kind, result.failure.message)
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Generic, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")


class FailureKind(str, Enum):
    """Category of an expected operation failure."""

    VALIDATION = "validation"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class ServiceFailure:
    """Why an operation did not succeed.

    Attributes:
        kind: Failure category.
        message: Human-readable description.
        details: Structured data for callers, e.g. missing prerequisites.
    """

    kind: FailureKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Success value or failure of a service operation."""

    value: T | None = None
    failure: ServiceFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> ServiceResult[T]:
        return cls(value=value)

    @classmethod
    def from_error(cls, error: ServiceError) -> ServiceResult[T]:
        return cls(failure=error.to_failure())


class ServiceError(Exception):
    """Base exception for expected domain failures.

    Subclasses pin ``kind``; services combine them with their own error base,
    e.g. ``class CourseNotFoundError(GradingServiceError, NotFoundError)``.
    """

    kind: ClassVar[FailureKind] = FailureKind.BAD_REQUEST

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_failure(self) -> ServiceFailure:
        return ServiceFailure(kind=self.kind, message=self.message, details=self.details)


class ValidationError(ServiceError):
    kind = FailureKind.VALIDATION


class BadRequestError(ServiceError):
    kind = FailureKind.BAD_REQUEST


class NotFoundError(ServiceError):
    kind = FailureKind.NOT_FOUND


class ConflictError(ServiceError):
    kind = FailureKind.CONFLICT


class ForbiddenError(ServiceError):
    kind = FailureKind.FORBIDDEN


def returns_result(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[ServiceResult[T]]]:
    """Wrap an async service operation so ServiceError becomes a failed result.

    Anything that is not a ServiceError propagates unchanged.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> ServiceResult[T]:
        try:
            value = await func(*args, **kwargs)
        except ServiceError as e:
            logger.info(
                "%s failed: kind=%s, message=%s",
                func.__qualname__,
                e.kind.value,
                e.message,
            )
            return ServiceResult.from_error(e)
        return ServiceResult.success(value)

    return wrapper
