# SPDX-License-Identifier: MIT
"""Tests for the error taxonomy and the service boundary mapping."""

import sqlite3

from matchday_sync.enums import (
    CacheErrorCode,
    ErrorKind,
    FetchErrorCode,
    ServiceErrorCode,
    StoreErrorCode,
    SyncErrorCode,
    SyncStep,
    ValidationErrorCode,
)
from matchday_sync.errors import (
    CacheError,
    EnrichmentError,
    FetchError,
    ServiceError,
    StoreError,
    SyncError,
    SyncInProgressError,
    ValidationError,
    to_service_error,
)


class TestDataErrors:
    """Test cases for the typed data errors."""

    def test_kinds(self):
        """Each error class carries its kind tag."""
        assert FetchError("x").kind == ErrorKind.FETCH
        assert ValidationError("x").kind == ErrorKind.VALIDATION
        assert StoreError("x").kind == ErrorKind.STORE
        assert CacheError("x").kind == ErrorKind.CACHE
        assert EnrichmentError("x").kind == ErrorKind.VALIDATION

    def test_str_includes_code(self):
        error = StoreError("insert failed", StoreErrorCode.CONSTRAINT)
        assert str(error) == "[STORE_CONSTRAINT] insert failed"
        assert error.code == StoreErrorCode.CONSTRAINT.value

    def test_fetch_error_status_from_details(self):
        error = FetchError("boom", FetchErrorCode.HTTP_STATUS, details={"status": 503})
        assert error.status == 503
        assert FetchError("boom").status is None

    def test_fetch_error_retryability(self):
        """5xx, 429 and transport failures retry; 4xx and page limits do not."""
        assert FetchError("x", FetchErrorCode.TIMEOUT).retryable
        assert FetchError("x", FetchErrorCode.HTTP_STATUS, details={"status": 500}).retryable
        assert FetchError("x", FetchErrorCode.HTTP_STATUS, details={"status": 429}).retryable
        assert not FetchError(
            "x", FetchErrorCode.HTTP_STATUS, details={"status": 404}
        ).retryable
        assert not FetchError("x", FetchErrorCode.PAGE_LIMIT).retryable

    def test_other_retryability(self):
        assert not ValidationError("x").retryable
        assert StoreError("x", StoreErrorCode.CONNECTION).retryable
        assert not StoreError("x", StoreErrorCode.CONSTRAINT).retryable
        assert not StoreError("x", StoreErrorCode.TRANSFORMATION).retryable
        assert CacheError("x", CacheErrorCode.CONNECTION).retryable
        assert not CacheError("x", CacheErrorCode.DESERIALIZATION).retryable

    def test_chain_and_root_cause(self):
        """The cause chain is walked outermost first down to the raw exception."""
        raw = sqlite3.OperationalError("database is locked")
        store_error = StoreError("replace failed", StoreErrorCode.CONNECTION, cause=raw)
        sync_error = SyncError(
            "sync failed", SyncErrorCode.STORE_FAILED, cause=store_error, step=SyncStep.REPLACE
        )

        assert sync_error.chain() == [sync_error, store_error, raw]
        assert sync_error.root_cause() is raw
        assert sync_error.__cause__ is store_error

    def test_collected_details_outer_overrides_inner(self):
        inner = FetchError("x", details={"status": 500, "url": "u"})
        outer = SyncError(
            "y",
            SyncErrorCode.FETCH_FAILED,
            cause=inner,
            step=SyncStep.FETCH,
            details={"url": "outer"},
        )
        assert outer.collected_details() == {"status": 500, "url": "outer"}

    def test_with_context_ignores_none(self):
        error = ValidationError("x").with_context(unit_key="27", domain=None)
        assert error.context == {"unit_key": "27"}


class TestSyncError:
    """Test cases for the coordinator boundary error."""

    def test_takes_kind_and_retryability_of_cause(self):
        cause = FetchError("x", FetchErrorCode.TIMEOUT)
        error = SyncError("y", SyncErrorCode.FETCH_FAILED, cause=cause, step=SyncStep.FETCH)

        assert error.kind == ErrorKind.FETCH
        assert error.retryable is True
        assert error.step == SyncStep.FETCH
        assert error.context["step"] == "fetch"

    def test_validation_cause_is_not_retryable(self):
        error = SyncError(
            "y",
            SyncErrorCode.VALIDATION_FAILED,
            cause=ValidationError("bad"),
            step=SyncStep.VALIDATE,
        )
        assert error.kind == ErrorKind.VALIDATION
        assert error.retryable is False

    def test_in_progress_error(self):
        error = SyncInProgressError("fixtures", "27")
        assert error.retryable
        assert error.context == {"domain": "fixtures", "unit_key": "27"}
        assert error.code == SyncErrorCode.IN_PROGRESS.value


class TestToServiceError:
    """Test cases for the outermost error mapping."""

    def test_http_status_survives_to_service_error(self):
        """An upstream 500 wrapped by the coordinator keeps its status."""
        fetch_error = FetchError(
            "Upstream returned HTTP 500",
            FetchErrorCode.HTTP_STATUS,
            details={"status": 500, "url": "https://example.test/fixtures/"},
        )
        sync_error = SyncError(
            "sync failed",
            SyncErrorCode.FETCH_FAILED,
            cause=fetch_error,
            step=SyncStep.FETCH,
            context={"domain": "fixtures", "unit_key": "27"},
        )

        service_error = to_service_error(sync_error)

        assert isinstance(service_error, ServiceError)
        assert service_error.code == ServiceErrorCode.INTERNAL
        assert service_error.details["status"] == 500
        assert service_error.details["unit_key"] == "27"
        assert service_error.details["step"] == "fetch"
        assert service_error.details["kind"] == "fetch"
        assert service_error.retryable is True
        assert service_error.cause is sync_error

    def test_validation_maps_to_validation(self):
        service_error = to_service_error(ValidationError("bad payload"))
        assert service_error.code == ServiceErrorCode.VALIDATION
        assert service_error.retryable is False

    def test_unknown_domain_and_unit_map_to_not_found(self):
        assert (
            to_service_error(
                ValidationError("x", ValidationErrorCode.UNKNOWN_DOMAIN)
            ).code
            == ServiceErrorCode.NOT_FOUND
        )
        assert (
            to_service_error(ValidationError("x", ValidationErrorCode.UNKNOWN_UNIT)).code
            == ServiceErrorCode.NOT_FOUND
        )

    def test_conflicts(self):
        assert (
            to_service_error(SyncInProgressError("teams", "2425")).code
            == ServiceErrorCode.CONFLICT
        )
        assert (
            to_service_error(StoreError("x", StoreErrorCode.CONSTRAINT)).code
            == ServiceErrorCode.CONFLICT
        )

    def test_store_read_failure_is_retryable_internal(self):
        service_error = to_service_error(StoreError("x", StoreErrorCode.CONNECTION))
        assert service_error.code == ServiceErrorCode.INTERNAL
        assert service_error.retryable is True

    def test_untyped_exception_becomes_internal(self):
        service_error = to_service_error(RuntimeError("oops"))
        assert service_error.code == ServiceErrorCode.INTERNAL
        assert service_error.details == {"type": "RuntimeError"}

    def test_service_error_passes_through(self):
        original = ServiceError(ServiceErrorCode.NOT_FOUND, "missing")
        assert to_service_error(original) is original

    def test_to_dict(self):
        data = ServiceError(ServiceErrorCode.NOT_FOUND, "missing", details={"a": 1}).to_dict()
        assert data == {
            "code": ServiceErrorCode.NOT_FOUND.value,
            "message": "missing",
            "details": {"a": 1},
            "retryable": False,
        }
