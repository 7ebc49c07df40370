# SPDX-License-Identifier: MIT
"""Base abstraction for upstream source adapters."""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..enums import ValidationErrorCode
from ..errors import ValidationError
from ..logging_config import get_detail_logger
from ..models import Record


detail_logger = get_detail_logger()

R = TypeVar("R", bound=Record)


class SourceAdapter(ABC, Generic[R]):
    """Fetches and validates the records of one domain for a unit key."""

    model: type[R]

    @abstractmethod
    def get_name(self) -> str:
        """Return the source name."""
        pass

    @abstractmethod
    async def fetch_raw(self, unit_key: str) -> list[Any]:
        """Fetch the raw upstream items for ``unit_key``.

        Raises:
            FetchError: If the upstream could not be reached
            ValidationError: If the payload has an unexpected shape
        """
        pass

    async def fetch(self, unit_key: str) -> list[R]:
        """Fetch the records of ``unit_key`` validated against ``model``."""
        raw = await self.fetch_raw(unit_key)
        records = self.validate_records(raw, unit_key)
        detail_logger.debug(
            f"{self.get_name()}: fetched {len(records)} records for unit {unit_key}"
        )
        return records

    def validate_records(self, raw: list[Any], unit_key: str) -> list[R]:
        """Validate raw items, failing the whole batch on the first bad item."""
        try:
            return TypeAdapter(list[self.model]).validate_python(raw)  # type: ignore[name-defined]
        except PydanticValidationError as e:
            errors = e.errors(include_url=False)
            raise ValidationError(
                f"{self.get_name()} returned {len(errors)} invalid item(s) for unit {unit_key}",
                ValidationErrorCode.SCHEMA,
                cause=e,
                details={
                    "errors": len(errors),
                    "first_error": {
                        "loc": list(errors[0]["loc"]),
                        "msg": errors[0]["msg"],
                    },
                },
                context={"source": self.get_name(), "unit_key": unit_key},
            ) from e
