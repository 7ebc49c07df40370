# SPDX-License-Identifier: MIT
"""Error taxonomy for the sync engine.

Four kinds of error flow upward: fetch, validation, store and cache. Each
boundary wraps the error it received as ``cause`` and assigns its own code;
the outermost boundary maps everything onto a small set of caller-facing
codes through :func:`to_service_error`.
"""

from __future__ import annotations

from typing import Any

from .enums import (
    CacheErrorCode,
    ErrorKind,
    FetchErrorCode,
    ServiceErrorCode,
    StoreErrorCode,
    SyncErrorCode,
    SyncStep,
    ValidationErrorCode,
)


class DataError(Exception):
    """Base class for all typed engine errors."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        code: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.cause = cause
        self.details = dict(details or {})
        self.context = dict(context or {})
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def retryable(self) -> bool:
        """Whether retrying the failed operation can succeed."""
        return False

    def with_context(self, **context: Any) -> DataError:
        """Attach context (unit key, operation name) and return self."""
        self.context.update({k: v for k, v in context.items() if v is not None})
        return self

    def chain(self) -> list[BaseException]:
        """Return this error followed by every wrapped cause, outermost first."""
        chain: list[BaseException] = [self]
        current: BaseException | None = self.cause
        while current is not None and current not in chain:
            chain.append(current)
            current = current.cause if isinstance(current, DataError) else None
        return chain

    def root_cause(self) -> BaseException:
        """Return the innermost error in the chain."""
        return self.chain()[-1]

    def collected_details(self) -> dict[str, Any]:
        """Merge details across the chain, inner values first, outer overriding."""
        merged: dict[str, Any] = {}
        for error in reversed(self.chain()):
            if isinstance(error, DataError):
                merged.update(error.details)
        return merged

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, "
            f"context={self.context!r})"
        )


class FetchError(DataError):
    """Raised when reaching the upstream source failed."""

    kind = ErrorKind.FETCH

    def __init__(
        self,
        message: str,
        code: FetchErrorCode = FetchErrorCode.CONNECTION,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code.value, cause, details, context)

    @property
    def status(self) -> int | None:
        """Upstream HTTP status, when the failure was an HTTP response."""
        status = self.details.get("status")
        return int(status) if status is not None else None

    @property
    def retryable(self) -> bool:
        if self.code == FetchErrorCode.PAGE_LIMIT.value:
            return False
        status = self.status
        if status is not None and 400 <= status < 500:
            # 429 is the upstream asking us to slow down, not a bad request
            return status == 429
        return True


class ValidationError(DataError):
    """Raised when upstream data does not match the expected schema."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        code: ValidationErrorCode = ValidationErrorCode.SCHEMA,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code.value, cause, details, context)


class EnrichmentError(ValidationError):
    """Raised when a projection cannot be built from its declared references."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message, ValidationErrorCode.ENRICHMENT, cause, details, context
        )


class StoreError(DataError):
    """Raised when a persistent-store operation failed."""

    kind = ErrorKind.STORE

    def __init__(
        self,
        message: str,
        code: StoreErrorCode = StoreErrorCode.QUERY,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code.value, cause, details, context)

    @property
    def retryable(self) -> bool:
        return self.code in (StoreErrorCode.CONNECTION.value, StoreErrorCode.QUERY.value)


class CacheError(DataError):
    """Raised when the cache backend failed."""

    kind = ErrorKind.CACHE

    def __init__(
        self,
        message: str,
        code: CacheErrorCode = CacheErrorCode.OPERATION,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code.value, cause, details, context)

    @property
    def retryable(self) -> bool:
        return self.code == CacheErrorCode.CONNECTION.value


class SyncError(DataError):
    """Raised by the sync coordinator; wraps the error of the failing step.

    The kind is inherited from the wrapped error so callers can still match
    on fetch/validation/store/cache after the boundary.
    """

    def __init__(
        self,
        message: str,
        code: SyncErrorCode,
        cause: DataError,
        step: SyncStep,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.kind = cause.kind
        self.step = step
        super().__init__(message, code.value, cause, details, context)
        self.context.setdefault("step", step.value)

    @property
    def retryable(self) -> bool:
        assert isinstance(self.cause, DataError)
        return self.cause.retryable


class SyncInProgressError(DataError):
    """Raised when a sync for the same unit key is already running."""

    kind = ErrorKind.STORE

    def __init__(self, domain: str, unit_key: str) -> None:
        super().__init__(
            f"Sync already in progress for {domain}/{unit_key}",
            SyncErrorCode.IN_PROGRESS.value,
            context={"domain": domain, "unit_key": unit_key},
        )

    @property
    def retryable(self) -> bool:
        return True


class ServiceError(Exception):
    """The only error type that crosses the outermost boundary."""

    def __init__(
        self,
        code: ServiceErrorCode,
        message: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        self.code = code
        self.message = message
        self.cause = cause
        self.details = dict(details or {})
        self.retryable = retryable
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialisable form for transport adapters."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


def _service_code_for(error: DataError) -> ServiceErrorCode:
    if isinstance(error, SyncInProgressError):
        return ServiceErrorCode.CONFLICT
    if error.kind == ErrorKind.VALIDATION:
        if error.code in (
            ValidationErrorCode.UNKNOWN_DOMAIN.value,
            ValidationErrorCode.UNKNOWN_UNIT.value,
        ):
            return ServiceErrorCode.NOT_FOUND
        return ServiceErrorCode.VALIDATION
    if error.kind == ErrorKind.STORE and error.code == StoreErrorCode.CONSTRAINT.value:
        return ServiceErrorCode.CONFLICT
    return ServiceErrorCode.INTERNAL


def to_service_error(error: BaseException) -> ServiceError:
    """Map any error onto the caller-facing taxonomy.

    Typed errors keep their chain as ``cause`` and expose the merged details
    of the whole chain (so an upstream HTTP status survives); anything else
    becomes an INTERNAL error.
    """
    if isinstance(error, ServiceError):
        return error
    if isinstance(error, DataError):
        details = error.collected_details()
        details.update(error.context)
        details["error_code"] = error.code
        details["kind"] = error.kind.value
        return ServiceError(
            _service_code_for(error),
            error.message,
            cause=error,
            details=details,
            retryable=error.retryable,
        )
    return ServiceError(
        ServiceErrorCode.INTERNAL,
        f"Unexpected error: {error}",
        cause=error,
        details={"type": type(error).__name__},
    )
