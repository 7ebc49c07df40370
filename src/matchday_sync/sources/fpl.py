# SPDX-License-Identifier: MIT
"""Source adapters for the fantasy-football upstream API."""

import json
from typing import Any

from ..cache.key_value_cache import KeyValueCache
from ..enums import ValidationErrorCode
from ..errors import CacheError, ValidationError
from ..logging_config import get_detail_logger
from ..models import Event, Fixture, Team
from .base import SourceAdapter
from .http_client import UpstreamClient


detail_logger = get_detail_logger()

BOOTSTRAP_PATH = "bootstrap-static/"
FIXTURES_PATH = "fixtures/"
BOOTSTRAP_MEMO_KEY = "upstream:bootstrap-static"


class BootstrapLoader:
    """Loads the upstream bootstrap payload, memoised for a short TTL.

    Teams and events both come from this one document; the memo lets the
    two adapters share a single request within ``ttl_seconds``.
    """

    def __init__(
        self,
        client: UpstreamClient,
        memo: KeyValueCache | None = None,
        ttl_seconds: int | None = None,
    ):
        self.client = client
        self.memo = memo
        self.ttl_seconds = ttl_seconds or client.config.bootstrap_ttl_seconds

    def _read_memo(self) -> dict[str, Any] | None:
        if self.memo is None:
            return None
        try:
            cached = self.memo.get_cached_value(BOOTSTRAP_MEMO_KEY)
        except CacheError as e:
            detail_logger.warning(f"Bootstrap memo unavailable, fetching upstream: {e}")
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except json.JSONDecodeError:
            detail_logger.warning("Discarding corrupt bootstrap memo entry")
            return None

    def _write_memo(self, payload: dict[str, Any]) -> None:
        if self.memo is None:
            return
        try:
            self.memo.set_cached_value(
                BOOTSTRAP_MEMO_KEY, json.dumps(payload), self.ttl_seconds
            )
        except CacheError as e:
            detail_logger.warning(f"Could not memoise bootstrap payload: {e}")

    async def load(self) -> dict[str, Any]:
        cached = self._read_memo()
        if cached is not None:
            detail_logger.debug("Using memoised bootstrap payload")
            return cached

        payload = await self.client.get_json(BOOTSTRAP_PATH)
        if not isinstance(payload, dict):
            raise ValidationError(
                "Bootstrap payload is not an object",
                details={"path": BOOTSTRAP_PATH},
            )
        self._write_memo(payload)
        return payload

    async def section(self, key: str) -> list[Any]:
        payload = await self.load()
        items = payload.get(key)
        if not isinstance(items, list):
            raise ValidationError(
                f"Bootstrap payload has no '{key}' list",
                details={"path": BOOTSTRAP_PATH, "key": key},
            )
        return items


class TeamSource(SourceAdapter[Team]):
    """Clubs of the current season."""

    model = Team

    def __init__(self, bootstrap: BootstrapLoader):
        self.bootstrap = bootstrap

    def get_name(self) -> str:
        return "teams"

    async def fetch_raw(self, unit_key: str) -> list[Any]:
        # The upstream only serves the current season; unit_key scopes storage
        return await self.bootstrap.section("teams")


class EventSource(SourceAdapter[Event]):
    """Gameweeks of the current season."""

    model = Event

    def __init__(self, bootstrap: BootstrapLoader):
        self.bootstrap = bootstrap

    def get_name(self) -> str:
        return "events"

    async def fetch_raw(self, unit_key: str) -> list[Any]:
        return await self.bootstrap.section("events")


class FixtureSource(SourceAdapter[Fixture]):
    """Fixtures of one gameweek (unit key = event id)."""

    model = Fixture

    def __init__(self, client: UpstreamClient):
        self.client = client

    def get_name(self) -> str:
        return "fixtures"

    async def fetch_raw(self, unit_key: str) -> list[Any]:
        try:
            event_id = int(unit_key)
        except ValueError as e:
            raise ValidationError(
                f"Fixture unit key must be an event id, got '{unit_key}'",
                ValidationErrorCode.UNIT_MISMATCH,
                cause=e,
                context={"unit_key": unit_key},
            ) from e

        payload = await self.client.get_json(FIXTURES_PATH, {"event": event_id})
        if not isinstance(payload, list):
            raise ValidationError(
                f"Fixtures payload for event {event_id} is not a list",
                details={"path": FIXTURES_PATH, "event": event_id},
            )
        return payload
