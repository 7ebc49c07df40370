# SPDX-License-Identifier: MIT
"""Service facade: the outermost boundary of the sync engine.

Every public method either returns a value or raises :class:`ServiceError`;
lower-layer errors are mapped through :func:`to_service_error` with their
cause chain preserved.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

from .cache.key_value_cache import KeyValueCache
from .cache.projection_cache import ProjectionCache
from .config import AppConfig, get_config_manager
from .entities import EVENTS, FIXTURES, ProjectionCalendarProvider, build_registry
from .enums import ServiceErrorCode, UpdateStatus
from .errors import ServiceError, to_service_error
from .logging_config import get_detail_logger, get_status_logger
from .models import SyncResult, TemporalWindow
from .sources.http_client import UpstreamClient
from .store.sync_state import SyncStateManager
from .sync.coordinator import SyncCoordinator
from .sync.definitions import EntityRegistry
from .sync.reader import ProjectionReader
from .temporal import Clock, TemporalGate, utc_now


detail_logger = get_detail_logger()
status_logger = get_status_logger()

P = ParamSpec("P")
T = TypeVar("T")


def service_boundary(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Map every error leaving ``func`` onto ServiceError."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except ServiceError:
            raise
        except Exception as e:
            service_error = to_service_error(e)
            detail_logger.debug(
                f"{func.__name__} failed: {service_error} details={service_error.details}"
            )
            raise service_error from e

    return wrapper


class MatchdaySyncService:
    """Exposes sync, projection reads and temporal predicates."""

    def __init__(
        self,
        registry: EntityRegistry,
        cache: ProjectionCache,
        reader: ProjectionReader,
        coordinator: SyncCoordinator,
        state: SyncStateManager,
        gate: TemporalGate,
        season: str,
        client: UpstreamClient | None = None,
    ):
        self.registry = registry
        self.cache = cache
        self.reader = reader
        self.coordinator = coordinator
        self.state = state
        self.gate = gate
        self.season = season
        self.client = client

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()

    async def __aenter__(self) -> "MatchdaySyncService":
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.close()

    @service_boundary
    async def sync(
        self, domain: str, unit_key: str, max_attempts: int | None = None
    ) -> SyncResult:
        """Synchronize one unit; with ``max_attempts`` > 1 retry transient failures."""
        if max_attempts is not None and max_attempts > 1:
            return await self.coordinator.sync_with_retry(domain, unit_key, max_attempts)
        return await self.coordinator.sync(domain, unit_key)

    @service_boundary
    async def sync_season_fixtures(self) -> list[SyncResult]:
        """Sync the fixtures of every known event of the season, in event order.

        Stops at the first failing event.
        """
        events = await self.reader.get_all(EVENTS, self.season)
        results = []
        for event_id in sorted(e["id"] for e in events):
            results.append(await self.coordinator.sync(FIXTURES, str(event_id)))
        return results

    @service_boundary
    async def get_projection(self, domain: str, unit_key: str) -> list[dict[str, Any]]:
        return await self.reader.get_all(domain, unit_key)

    @service_boundary
    async def get_projection_member(
        self, domain: str, unit_key: str, member_id: int
    ) -> dict[str, Any]:
        member = await self.reader.get_one(domain, unit_key, member_id)
        if member is None:
            raise ServiceError(
                ServiceErrorCode.NOT_FOUND,
                f"No {domain} member {member_id} in unit {unit_key}",
                details={"domain": domain, "unit_key": unit_key, "member_id": member_id},
            )
        return member

    @service_boundary
    async def get_aggregate(
        self, domain: str, unit_key: str, group: str | int
    ) -> list[dict[str, Any]]:
        return await self.reader.get_group(domain, unit_key, group)

    @service_boundary
    async def is_event_day(self, event_id: str) -> bool:
        return await self.gate.is_event_day(event_id)

    @service_boundary
    async def is_after_event_day(self, event_id: str) -> bool:
        return await self.gate.is_after_event_day(event_id)

    @service_boundary
    async def is_event_in_progress(self, event_id: str) -> bool:
        return await self.gate.is_event_in_progress(event_id)

    @service_boundary
    async def is_selection_locked(self, event_id: str) -> bool:
        return await self.gate.is_selection_locked(event_id)

    @service_boundary
    async def get_temporal_window(self, event_id: str) -> TemporalWindow:
        return await self.gate.window(event_id)

    @service_boundary
    async def purge(self, domain: str, unit_key: str) -> dict[str, int]:
        """Delete a unit from the store and drop its projection and aggregates."""
        definition = self.registry.get(domain)
        deleted = definition.repository.delete_all(unit_key)
        invalidated = self.cache.invalidate(domain, unit_key)
        for aggregate in definition.aggregates:
            invalidated += self.cache.invalidate(aggregate.domain, unit_key)
        self.state.log_attempt(domain, unit_key, UpdateStatus.SKIPPED, step="purge")
        status_logger.info(
            f"Purged {domain}/{unit_key}: {deleted} records, {invalidated} cache rows"
        )
        return {"records_deleted": deleted, "cache_rows_deleted": invalidated}

    @service_boundary
    async def get_sync_status(
        self, domain: str | None = None, unit_key: str | None = None
    ) -> dict[str, Any]:
        """Sync state of every unit (optionally filtered) and the running syncs."""
        states = [
            s
            for s in self.state.list_states()
            if (domain is None or s["domain"] == domain)
            and (unit_key is None or s["unit_key"] == unit_key)
        ]
        return {
            "units": states,
            "needs_resync": [
                {"domain": d, "unit_key": u} for d, u in self.state.units_needing_resync()
            ],
            "in_progress": [
                {"domain": d, "unit_key": u} for d, u in self.coordinator.in_progress()
            ],
        }


def create_service(
    config: AppConfig | None = None,
    clock: Clock = utc_now,
    client: UpstreamClient | None = None,
) -> MatchdaySyncService:
    """Build a service from configuration.

    Args:
        config: Application config; loaded from the config manager if None
        clock: Source of "now" for the temporal predicates
        client: Upstream client to use instead of one built from config
    """
    if config is None:
        config = get_config_manager().load_config()

    client = client or UpstreamClient(config.upstream)
    store_path = Path(config.store.db_path)
    cache_path = Path(config.cache.db_path)

    memo = KeyValueCache(cache_path, config.cache.timeout)
    cache = ProjectionCache(cache_path, config.cache.ttl_seconds, config.cache.timeout)
    state = SyncStateManager(store_path, config.store.timeout)

    registry = build_registry(
        client,
        config.sync.season,
        store_path=store_path,
        store_timeout=config.store.timeout,
        memo=memo,
    )
    reader = ProjectionReader(registry, cache)
    coordinator = SyncCoordinator(
        registry,
        cache,
        reader,
        state,
        conflict_policy=config.sync.conflict_policy,
        max_attempts=config.sync.max_attempts,
        retry_initial_delay=config.upstream.initial_delay,
        retry_max_delay=config.upstream.max_delay,
        retry_jitter=config.upstream.jitter,
    )
    gate = TemporalGate(
        ProjectionCalendarProvider(reader, config.sync.season),
        clock=clock,
        cutoff_hour=config.temporal.after_day_cutoff_hour,
        lock_offset_minutes=config.temporal.lock_offset_minutes,
    )
    detail_logger.debug(f"Service created with store={store_path} cache={cache_path}")

    return MatchdaySyncService(
        registry,
        cache,
        reader,
        coordinator,
        state,
        gate,
        season=config.sync.season,
        client=client,
    )
