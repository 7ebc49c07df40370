# SPDX-License-Identifier: MIT
"""Cross-entity enrichment: join canonical records with reference collections."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import EnrichmentError
from .logging_config import get_detail_logger
from .models import Record


detail_logger = get_detail_logger()

P = TypeVar("P", bound=BaseModel)

ReferenceEntry = BaseModel | Mapping[str, Any]


@dataclass(frozen=True)
class Reference:
    """A foreign key from a record into a reference collection.

    Attributes:
        field: Record attribute holding the referenced id
        collection: Name of the reference collection it resolves against
        fields: Projection field name -> field copied from the referenced entry
        required: Whether an unresolved id drops the record
    """

    field: str
    collection: str
    fields: Mapping[str, str]
    required: bool = True


@dataclass
class EnrichmentOutcome(Generic[P]):
    """Projections built from one enrichment pass."""

    projections: list[P] = field(default_factory=list)
    dropped: int = 0
    dropped_ids: list[int] = field(default_factory=list)


def _entry_dict(entry: ReferenceEntry) -> Mapping[str, Any]:
    return entry.model_dump() if isinstance(entry, BaseModel) else entry


class Enricher(Generic[P]):
    """Builds projections by resolving every declared reference of a record.

    Records with an unresolved required reference are dropped and counted,
    never raised: reference data can lag canonical data during a sync.
    """

    def __init__(self, projection_model: type[P], references: Sequence[Reference]):
        self.projection_model = projection_model
        self.references = tuple(references)

    @property
    def collections(self) -> list[str]:
        """Names of the reference collections this enricher needs."""
        return sorted({ref.collection for ref in self.references})

    def _build_lookups(
        self, reference_collections: Mapping[str, Sequence[ReferenceEntry]]
    ) -> dict[str, dict[Any, Mapping[str, Any]]]:
        lookups: dict[str, dict[Any, Mapping[str, Any]]] = {}
        for name in self.collections:
            if name not in reference_collections:
                raise EnrichmentError(
                    f"Reference collection '{name}' was not supplied",
                    details={"collection": name},
                )
            lookups[name] = {}
            for entry in reference_collections[name]:
                data = _entry_dict(entry)
                lookups[name][data["id"]] = data
        return lookups

    def enrich(
        self,
        records: Sequence[Record],
        reference_collections: Mapping[str, Sequence[ReferenceEntry]],
    ) -> EnrichmentOutcome[P]:
        """Join ``records`` with their reference collections.

        Args:
            records: Canonical records, in the order the output should keep
            reference_collections: Collection name -> entries with an ``id``

        Returns:
            Projections in input order plus the count of dropped records

        Raises:
            EnrichmentError: If a needed collection is missing or a joined
                record does not fit the projection model
        """
        if not records:
            return EnrichmentOutcome()

        lookups = self._build_lookups(reference_collections)
        outcome: EnrichmentOutcome[P] = EnrichmentOutcome()

        for record in records:
            data = record.model_dump()
            unresolved: list[str] = []

            for ref in self.references:
                ref_id = data.get(ref.field)
                entry = lookups[ref.collection].get(ref_id) if ref_id is not None else None
                if entry is None:
                    if ref.required:
                        unresolved.append(f"{ref.field}={ref_id}")
                        continue
                    data.update({target: None for target in ref.fields})
                else:
                    data.update(
                        {target: entry.get(source) for target, source in ref.fields.items()}
                    )

            if unresolved:
                outcome.dropped += 1
                outcome.dropped_ids.append(record.id)
                detail_logger.debug(
                    f"Dropping record {record.id}: unresolved {', '.join(unresolved)}"
                )
                continue

            try:
                outcome.projections.append(self.projection_model.model_validate(data))
            except PydanticValidationError as e:
                raise EnrichmentError(
                    f"Record {record.id} does not fit {self.projection_model.__name__}",
                    cause=e,
                    details={"record_id": record.id},
                ) from e

        if outcome.dropped:
            detail_logger.warning(
                f"Enrichment into {self.projection_model.__name__} dropped "
                f"{outcome.dropped} of {len(records)} records with unresolved references: "
                f"{outcome.dropped_ids}"
            )
        return outcome
