# SPDX-License-Identifier: MIT
"""Declarative description of the entity domains the engine synchronizes."""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from ..enrichment import Enricher
from ..enums import ValidationErrorCode
from ..errors import ValidationError
from ..sources.base import SourceAdapter
from ..store.repository import Repository


# (record, unit_key) -> whether the record belongs to that unit
UnitScope = Callable[[Any, str], bool]
# (reference collection, unit_key) -> unit key of the reference collection
ReferenceUnitKey = Callable[[str, str], str]
# projections -> group id -> members
GroupBuilder = Callable[[Sequence[Any]], Mapping[str | int, Sequence[BaseModel]]]


@dataclass(frozen=True)
class AggregateDefinition:
    """A secondary collection regrouped from a domain's projections."""

    domain: str
    build: GroupBuilder


@dataclass
class EntityDefinition:
    """Everything the coordinator needs to sync and read one domain.

    Attributes:
        domain: Name used for cache keys and sync state
        source: Upstream adapter producing validated records
        repository: Canonical record store of the domain
        enricher: Join into the projection model; None projects records as-is
        unit_scope: Check that a fetched record belongs to the synced unit
        reference_unit_key: Unit key to read each reference collection under
        aggregates: Secondary collections rebuilt after every sync
    """

    domain: str
    source: SourceAdapter[Any]
    repository: Repository[Any]
    enricher: Enricher[Any] | None = None
    unit_scope: UnitScope | None = None
    reference_unit_key: ReferenceUnitKey | None = None
    aggregates: Sequence[AggregateDefinition] = field(default_factory=tuple)

    def reference_key(self, collection: str, unit_key: str) -> str:
        if self.reference_unit_key is None:
            return unit_key
        return self.reference_unit_key(collection, unit_key)


class EntityRegistry:
    """Registry of entity definitions keyed by domain."""

    def __init__(self, definitions: Sequence[EntityDefinition] = ()) -> None:
        self._definitions: dict[str, EntityDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: EntityDefinition) -> None:
        self._definitions[definition.domain] = definition

    def get(self, domain: str) -> EntityDefinition:
        """Return the definition of ``domain``.

        Raises:
            ValidationError: With code UNKNOWN_DOMAIN if nothing is registered
        """
        try:
            return self._definitions[domain]
        except KeyError:
            raise ValidationError(
                f"Unknown domain '{domain}'",
                ValidationErrorCode.UNKNOWN_DOMAIN,
                details={"domain": domain, "known": self.domains()},
            ) from None

    def find_aggregate(
        self, aggregate_domain: str
    ) -> tuple[EntityDefinition, AggregateDefinition]:
        """Return the owning definition and the aggregate named ``aggregate_domain``."""
        for definition in self._definitions.values():
            for aggregate in definition.aggregates:
                if aggregate.domain == aggregate_domain:
                    return definition, aggregate
        raise ValidationError(
            f"Unknown aggregate '{aggregate_domain}'",
            ValidationErrorCode.UNKNOWN_DOMAIN,
            details={"domain": aggregate_domain},
        )

    def domains(self) -> list[str]:
        return sorted(self._definitions)

    def __contains__(self, domain: object) -> bool:
        return domain in self._definitions

