# SPDX-License-Identifier: MIT
"""Tests for the upstream source adapters."""

from unittest.mock import AsyncMock, Mock

import pytest

from matchday_sync.cache import KeyValueCache
from matchday_sync.config import UpstreamConfig
from matchday_sync.enums import CacheErrorCode, FetchErrorCode, ValidationErrorCode
from matchday_sync.errors import CacheError, FetchError, ValidationError
from matchday_sync.models import Event, Fixture, Team
from matchday_sync.sources import (
    BootstrapLoader,
    EventSource,
    FixtureSource,
    TeamSource,
)
from matchday_sync.sources.fpl import BOOTSTRAP_MEMO_KEY

from conftest import EVENT_ITEMS, FIXTURE_ITEMS, TEAM_ITEMS


BOOTSTRAP = {"teams": TEAM_ITEMS, "events": EVENT_ITEMS, "elements": []}


@pytest.fixture
def mock_client() -> Mock:
    client = Mock()
    client.config = UpstreamConfig()
    client.get_json = AsyncMock(return_value=BOOTSTRAP)
    return client


@pytest.fixture
def memo(cache_path) -> KeyValueCache:
    return KeyValueCache(cache_path, 5.0)


class TestBootstrapSources:
    """Test cases for the sources backed by the bootstrap document."""

    @pytest.mark.asyncio
    async def test_team_source(self, mock_client):
        teams = await TeamSource(BootstrapLoader(mock_client)).fetch("2425")

        assert all(isinstance(t, Team) for t in teams)
        assert [t.short_name for t in teams] == ["ARS", "AVL", "BOU", "BRE"]
        mock_client.get_json.assert_awaited_once_with("bootstrap-static/")

    @pytest.mark.asyncio
    async def test_memo_shares_one_request(self, mock_client, memo):
        bootstrap = BootstrapLoader(mock_client, memo)

        teams = await TeamSource(bootstrap).fetch("2425")
        events = await EventSource(BootstrapLoader(mock_client, memo)).fetch("2425")

        assert len(teams) == 4
        assert [e.id for e in events] == [27, 28]
        assert all(isinstance(e, Event) for e in events)
        assert mock_client.get_json.await_count == 1
        assert memo.get_cached_value(BOOTSTRAP_MEMO_KEY) is not None

    @pytest.mark.asyncio
    async def test_without_memo_every_load_fetches(self, mock_client):
        bootstrap = BootstrapLoader(mock_client)

        await bootstrap.load()
        await bootstrap.load()

        assert mock_client.get_json.await_count == 2

    @pytest.mark.asyncio
    async def test_memo_failure_falls_through_to_upstream(self, mock_client):
        memo = Mock()
        memo.get_cached_value.side_effect = CacheError(
            "locked", CacheErrorCode.CONNECTION
        )
        memo.set_cached_value.side_effect = CacheError(
            "locked", CacheErrorCode.CONNECTION
        )

        payload = await BootstrapLoader(mock_client, memo, ttl_seconds=60).load()

        assert payload == BOOTSTRAP
        memo.set_cached_value.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_section(self, mock_client):
        mock_client.get_json.return_value = {"teams": TEAM_ITEMS}

        with pytest.raises(ValidationError) as exc_info:
            await EventSource(BootstrapLoader(mock_client)).fetch("2425")

        assert exc_info.value.details["key"] == "events"

    @pytest.mark.asyncio
    async def test_non_object_payload(self, mock_client):
        mock_client.get_json.return_value = ["not", "an", "object"]

        with pytest.raises(ValidationError):
            await BootstrapLoader(mock_client).load()

    @pytest.mark.asyncio
    async def test_schema_violation_fails_whole_batch(self, mock_client):
        broken = [dict(TEAM_ITEMS[0]), {"id": 2, "code": 7, "name": ""}]
        mock_client.get_json.return_value = {"teams": broken}

        with pytest.raises(ValidationError) as exc_info:
            await TeamSource(BootstrapLoader(mock_client)).fetch("2425")

        error = exc_info.value
        assert error.code == ValidationErrorCode.SCHEMA.value
        assert error.details["errors"] == 2
        assert error.details["first_error"]["loc"][0] == 1
        assert error.context == {"source": "teams", "unit_key": "2425"}


class TestFixtureSource:
    """Test cases for FixtureSource."""

    @pytest.mark.asyncio
    async def test_fetch_by_event(self, mock_client):
        mock_client.get_json.return_value = FIXTURE_ITEMS

        fixtures = await FixtureSource(mock_client).fetch("27")

        assert [f.id for f in fixtures] == [261, 262]
        assert all(isinstance(f, Fixture) for f in fixtures)
        assert fixtures[0].team_h_score == 2
        mock_client.get_json.assert_awaited_once_with("fixtures/", {"event": 27})

    @pytest.mark.asyncio
    async def test_non_numeric_unit_key(self, mock_client):
        with pytest.raises(ValidationError) as exc_info:
            await FixtureSource(mock_client).fetch("current")

        assert exc_info.value.code == ValidationErrorCode.UNIT_MISMATCH.value
        mock_client.get_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_list_payload(self, mock_client):
        mock_client.get_json.return_value = {"detail": "Not found."}

        with pytest.raises(ValidationError):
            await FixtureSource(mock_client).fetch("27")

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, mock_client):
        mock_client.get_json.side_effect = FetchError(
            "HTTP 500", FetchErrorCode.HTTP_STATUS, details={"status": 500}
        )

        with pytest.raises(FetchError) as exc_info:
            await FixtureSource(mock_client).fetch("27")

        assert exc_info.value.status == 500
