# SPDX-License-Identifier: MIT
"""Enums for matchday-sync."""

from enum import Enum


class UpdateStatus(str, Enum):
    """Status values for sync operations."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    IN_PROGRESS = "in_progress"


class ErrorKind(str, Enum):
    """The four error kinds that flow upward through the engine."""

    FETCH = "fetch"
    VALIDATION = "validation"
    STORE = "store"
    CACHE = "cache"


class FetchErrorCode(str, Enum):
    """Codes for failures reaching the upstream source."""

    TIMEOUT = "FETCH_TIMEOUT"
    CONNECTION = "FETCH_CONNECTION"
    HTTP_STATUS = "FETCH_HTTP_STATUS"
    PAGE_LIMIT = "FETCH_PAGE_LIMIT"
    EMPTY_RESPONSE = "FETCH_EMPTY_RESPONSE"


class ValidationErrorCode(str, Enum):
    """Codes for data-quality failures."""

    SCHEMA = "VALIDATION_SCHEMA"
    UNIT_MISMATCH = "VALIDATION_UNIT_MISMATCH"
    DUPLICATE_ID = "VALIDATION_DUPLICATE_ID"
    ENRICHMENT = "VALIDATION_ENRICHMENT"
    DEADLINE = "VALIDATION_DEADLINE"
    UNKNOWN_DOMAIN = "VALIDATION_UNKNOWN_DOMAIN"
    UNKNOWN_UNIT = "VALIDATION_UNKNOWN_UNIT"


class StoreErrorCode(str, Enum):
    """Codes for persistent-store failures."""

    CONNECTION = "STORE_CONNECTION"
    QUERY = "STORE_QUERY"
    CONSTRAINT = "STORE_CONSTRAINT"
    TRANSFORMATION = "STORE_TRANSFORMATION"


class CacheErrorCode(str, Enum):
    """Codes for cache backend failures."""

    CONNECTION = "CACHE_CONNECTION"
    OPERATION = "CACHE_OPERATION"
    SERIALIZATION = "CACHE_SERIALIZATION"
    DESERIALIZATION = "CACHE_DESERIALIZATION"


class SyncErrorCode(str, Enum):
    """Codes assigned at the sync coordinator boundary."""

    FETCH_FAILED = "SYNC_FETCH_FAILED"
    VALIDATION_FAILED = "SYNC_VALIDATION_FAILED"
    STORE_FAILED = "SYNC_STORE_FAILED"
    ENRICHMENT_FAILED = "SYNC_ENRICHMENT_FAILED"
    CACHE_FAILED = "SYNC_CACHE_FAILED"
    AGGREGATE_FAILED = "SYNC_AGGREGATE_FAILED"
    IN_PROGRESS = "SYNC_IN_PROGRESS"


class ServiceErrorCode(str, Enum):
    """Caller-facing codes exposed by the outermost boundary."""

    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"


class SyncStep(str, Enum):
    """Ordered steps of one synchronization unit."""

    FETCH = "fetch"
    VALIDATE = "validate"
    REPLACE = "replace"
    ENRICH = "enrich"
    CACHE = "cache"
    AGGREGATE = "aggregate"
