# SPDX-License-Identifier: MIT
"""Sync coordinator: the write path from upstream to store, cache and aggregates."""

import asyncio
import time
from collections.abc import Sequence
from typing import Any

from ..cache.projection_cache import ProjectionCache
from ..constants import CONFLICT_POLICY_REJECT, CONFLICT_POLICY_WAIT
from ..enums import SyncErrorCode, SyncStep, UpdateStatus, ValidationErrorCode
from ..errors import DataError, StoreError, SyncError, SyncInProgressError, ValidationError
from ..logging_config import get_detail_logger, get_status_logger
from ..models import Record, SyncResult
from ..retry_utils import async_retry_with_backoff
from ..store.sync_state import SyncStateManager
from .definitions import EntityDefinition, EntityRegistry
from .reader import ProjectionReader


_STEP_CODES = {
    SyncStep.FETCH: SyncErrorCode.FETCH_FAILED,
    SyncStep.VALIDATE: SyncErrorCode.VALIDATION_FAILED,
    SyncStep.REPLACE: SyncErrorCode.STORE_FAILED,
    SyncStep.ENRICH: SyncErrorCode.ENRICHMENT_FAILED,
    SyncStep.CACHE: SyncErrorCode.CACHE_FAILED,
    SyncStep.AGGREGATE: SyncErrorCode.AGGREGATE_FAILED,
}


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, DataError) and error.retryable


class SyncCoordinator:
    """Runs one unit of synchronization at a time per (domain, unit key).

    A sync fetches and validates the whole unit before touching the store,
    so a bad upstream payload never partially applies. Once the store
    replace starts, the remaining steps run shielded from cancellation and
    the unit stays flagged ``needs_resync`` until the projection and its
    aggregates are rebuilt.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        cache: ProjectionCache,
        reader: ProjectionReader,
        state: SyncStateManager,
        conflict_policy: str = CONFLICT_POLICY_REJECT,
        max_attempts: int = 3,
        retry_initial_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        retry_jitter: float = 0.5,
    ):
        if conflict_policy not in (CONFLICT_POLICY_REJECT, CONFLICT_POLICY_WAIT):
            raise ValueError(f"Unknown conflict policy: {conflict_policy}")
        self.registry = registry
        self.cache = cache
        self.reader = reader
        self.state = state
        self.conflict_policy = conflict_policy
        self.max_attempts = max_attempts
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay
        self.retry_jitter = retry_jitter
        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, domain: str, unit_key: str) -> asyncio.Lock:
        key = (domain, unit_key)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def in_progress(self) -> list[tuple[str, str]]:
        """Units with a sync currently running in this process."""
        return sorted(key for key, lock in self._locks.items() if lock.locked())

    async def sync(self, domain: str, unit_key: str) -> SyncResult:
        """Synchronize one unit of ``domain``.

        Returns:
            Counts and timing of the completed sync

        Raises:
            ValidationError: If ``domain`` is not registered
            SyncInProgressError: If the unit is already syncing and the
                conflict policy is ``reject``
            SyncError: If any step failed; wraps that step's error
        """
        definition = self.registry.get(domain)
        lock = self._lock_for(domain, unit_key)

        if lock.locked() and self.conflict_policy == CONFLICT_POLICY_REJECT:
            self.status_logger.warning(f"Sync of {domain}/{unit_key} already in progress")
            self._log_quietly(
                domain,
                unit_key,
                UpdateStatus.SKIPPED,
                error_code=SyncErrorCode.IN_PROGRESS.value,
            )
            raise SyncInProgressError(domain, unit_key)

        async with lock:
            return await self._run(definition, unit_key)

    async def sync_with_retry(
        self, domain: str, unit_key: str, max_attempts: int | None = None
    ) -> SyncResult:
        """Run :meth:`sync`, retrying retryable failures with backoff.

        Non-retryable failures (validation, constraint violations) are raised
        on the first attempt.
        """
        attempts = max_attempts or self.max_attempts
        retrying = async_retry_with_backoff(
            max_retries=attempts - 1,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            jitter=self.retry_jitter,
            exceptions=(DataError,),
            retry_if=_is_retryable,
        )(self.sync)
        return await retrying(domain, unit_key)

    async def _run(self, definition: EntityDefinition, unit_key: str) -> SyncResult:
        domain = definition.domain
        start_time = time.time()
        self.detail_logger.info(f"Starting sync of {domain}/{unit_key}")

        try:
            records = await definition.source.fetch(unit_key)
        except DataError as e:
            step = SyncStep.VALIDATE if isinstance(e, ValidationError) else SyncStep.FETCH
            raise self._failed(domain, unit_key, step, e) from e

        try:
            self._validate(definition, unit_key, records)
        except DataError as e:
            raise self._failed(domain, unit_key, SyncStep.VALIDATE, e) from e

        # Once the store is touched the update runs to completion; a cancelled
        # caller still holds the unit lock until it has.
        apply = asyncio.ensure_future(
            self._apply(definition, unit_key, records, start_time)
        )
        try:
            return await asyncio.shield(apply)
        except asyncio.CancelledError:
            self.detail_logger.warning(
                f"Sync of {domain}/{unit_key} cancelled, finishing store and cache update"
            )
            await asyncio.wait([apply])
            error = None if apply.cancelled() else apply.exception()
            if error is not None:
                self.detail_logger.debug(
                    f"Cancelled sync of {domain}/{unit_key} also failed: {error}"
                )
            raise

    def _validate(
        self, definition: EntityDefinition, unit_key: str, records: Sequence[Record]
    ) -> None:
        seen: set[int] = set()
        duplicates: list[int] = []
        for record in records:
            if record.id in seen:
                duplicates.append(record.id)
            seen.add(record.id)
        if duplicates:
            raise ValidationError(
                f"Upstream returned duplicate ids for {definition.domain}/{unit_key}",
                ValidationErrorCode.DUPLICATE_ID,
                details={"ids": duplicates[:20], "count": len(duplicates)},
            )

        if definition.unit_scope is not None:
            outside = [r.id for r in records if not definition.unit_scope(r, unit_key)]
            if outside:
                raise ValidationError(
                    f"{len(outside)} {definition.domain} record(s) do not belong to unit {unit_key}",
                    ValidationErrorCode.UNIT_MISMATCH,
                    details={"ids": outside[:20], "count": len(outside)},
                )

    async def _apply(
        self,
        definition: EntityDefinition,
        unit_key: str,
        records: Sequence[Record],
        start_time: float,
    ) -> SyncResult:
        domain = definition.domain
        step = SyncStep.REPLACE
        try:
            self.state.mark_needs_resync(domain, unit_key)
            stored = definition.repository.replace_all(unit_key, records)

            step = SyncStep.ENRICH
            outcome = await self.reader.project(definition, unit_key, records)

            step = SyncStep.CACHE
            self.cache.set_all(domain, unit_key, outcome.projections)

            step = SyncStep.AGGREGATE
            groups = 0
            for aggregate in definition.aggregates:
                groups += self.cache.set_groups(
                    aggregate.domain, unit_key, aggregate.build(outcome.projections)
                )

            result = SyncResult(
                domain=domain,
                unit_key=unit_key,
                status=UpdateStatus.SUCCESS,
                records_fetched=len(records),
                records_stored=stored,
                records_projected=len(outcome.projections),
                records_dropped=outcome.dropped,
                aggregate_groups=groups,
                processing_time=time.time() - start_time,
            )
            self.state.mark_success(result)
        except DataError as e:
            raise self._failed(domain, unit_key, step, e) from e

        self.status_logger.info(
            f"Synced {domain}/{unit_key}: {result.records_stored} stored, "
            f"{result.records_projected} projected, {result.records_dropped} dropped "
            f"({result.processing_time:.2f}s)"
        )
        return result

    def _failed(
        self, domain: str, unit_key: str, step: SyncStep, error: DataError
    ) -> SyncError:
        sync_error = SyncError(
            f"Sync of {domain}/{unit_key} failed at {step.value}: {error.message}",
            _STEP_CODES[step],
            cause=error,
            step=step,
            context={"domain": domain, "unit_key": unit_key},
        )
        self.status_logger.error(f"Sync of {domain}/{unit_key} failed at {step.value}: {error}")
        self.detail_logger.debug(f"Sync failure chain: {sync_error.chain()!r}")

        try:
            self.state.mark_failed(domain, unit_key, error, step.value)
        except StoreError as log_error:
            self.detail_logger.error(
                f"Could not record failed sync of {domain}/{unit_key}: {log_error}"
            )
        return sync_error

    def _log_quietly(
        self, domain: str, unit_key: str, status: UpdateStatus, **fields: Any
    ) -> None:
        try:
            self.state.log_attempt(domain, unit_key, status, **fields)
        except StoreError as e:
            self.detail_logger.error(
                f"Could not log sync attempt for {domain}/{unit_key}: {e}"
            )
