# SPDX-License-Identifier: MIT
"""Cache-aside read path for projections and secondary aggregates."""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from ..cache.projection_cache import ProjectionCache
from ..enrichment import EnrichmentOutcome
from ..errors import CacheError
from ..logging_config import get_detail_logger
from ..models import Record
from .definitions import EntityDefinition, EntityRegistry


detail_logger = get_detail_logger()


def _dump(projections: Sequence[BaseModel]) -> list[dict[str, Any]]:
    return [p.model_dump(mode="json") for p in projections]


class ProjectionReader:
    """Serves projections from the cache, rebuilding them from the store on a miss.

    Cache failures never fail a read: they are logged and the store is used
    instead. Store failures propagate as ``StoreError``.
    """

    def __init__(self, registry: EntityRegistry, cache: ProjectionCache):
        self.registry = registry
        self.cache = cache

    def _cached(self, domain: str, unit_key: str) -> list[dict[str, Any]]:
        try:
            return self.cache.get_all(domain, unit_key)
        except CacheError as e:
            detail_logger.warning(
                f"Cache read failed for {domain}/{unit_key}, falling back to store: {e}"
            )
            return []

    def _warm(self, domain: str, unit_key: str, members: Sequence[BaseModel]) -> None:
        try:
            self.cache.set_all(domain, unit_key, members)
        except CacheError as e:
            detail_logger.warning(f"Could not warm cache for {domain}/{unit_key}: {e}")

    async def project(
        self, definition: EntityDefinition, unit_key: str, records: Sequence[Record]
    ) -> EnrichmentOutcome[Any]:
        """Build projections of ``records``, reading references cache-aside."""
        if definition.enricher is None:
            return EnrichmentOutcome(projections=list(records))
        if not records:
            return EnrichmentOutcome()

        references = {
            collection: await self.get_all(
                collection, definition.reference_key(collection, unit_key)
            )
            for collection in definition.enricher.collections
        }
        return definition.enricher.enrich(records, references)

    async def get_all(self, domain: str, unit_key: str) -> list[dict[str, Any]]:
        """Return the projection of ``unit_key``, warming the cache on a miss."""
        definition = self.registry.get(domain)

        cached = self._cached(domain, unit_key)
        if cached:
            return cached

        records = definition.repository.find_all(unit_key)
        outcome = await self.project(definition, unit_key, records)
        if outcome.projections:
            self._warm(domain, unit_key, outcome.projections)

        detail_logger.debug(
            f"Rebuilt {domain}/{unit_key} from store: {len(outcome.projections)} projections"
        )
        return _dump(outcome.projections)

    async def get_one(
        self, domain: str, unit_key: str, member_id: int
    ) -> dict[str, Any] | None:
        """Return one member of a projection, or None if it does not exist."""
        self.registry.get(domain)
        try:
            member = self.cache.get_one(domain, unit_key, member_id)
        except CacheError as e:
            detail_logger.warning(f"Cache read failed for {domain}/{unit_key}: {e}")
            member = None
        if member is not None:
            return member

        for candidate in await self.get_all(domain, unit_key):
            if candidate.get("id") == member_id:
                return candidate
        return None

    async def get_group(
        self, aggregate_domain: str, unit_key: str, group: str | int
    ) -> list[dict[str, Any]]:
        """Return one group of a secondary aggregate, rebuilding all groups on a miss."""
        definition, aggregate = self.registry.find_aggregate(aggregate_domain)

        try:
            cached = self.cache.get_group(aggregate_domain, unit_key, group)
        except CacheError as e:
            detail_logger.warning(
                f"Cache read failed for {aggregate_domain}/{unit_key}/{group}: {e}"
            )
            cached = []
        if cached:
            return cached

        records = definition.repository.find_all(unit_key)
        outcome = await self.project(definition, unit_key, records)
        groups = aggregate.build(outcome.projections)
        if groups:
            try:
                self.cache.set_groups(aggregate_domain, unit_key, groups)
            except CacheError as e:
                detail_logger.warning(
                    f"Could not warm cache for {aggregate_domain}/{unit_key}: {e}"
                )

        members = groups.get(group)
        if members is None and isinstance(group, str) and group.isdigit():
            members = groups.get(int(group))
        return _dump(members or [])
