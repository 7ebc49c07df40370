# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures."""

import asyncio
import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from matchday_sync.cache import ProjectionCache
from matchday_sync.config import (
    AppConfig,
    CacheConfig,
    ConfigManager,
    StoreConfig,
    reset_config_manager,
    set_config_manager,
)
from matchday_sync.enrichment import Enricher
from matchday_sync.entities import (
    EVENTS,
    FIXTURE_TEAM_REFERENCES,
    FIXTURES,
    TEAM_FIXTURES,
    TEAMS,
    build_team_fixtures,
    fixture_in_event,
)
from matchday_sync.models import EnrichedFixture, Event, Fixture, Team
from matchday_sync.sources.base import SourceAdapter
from matchday_sync.store import Repository, SyncStateManager
from matchday_sync.sync import (
    AggregateDefinition,
    EntityDefinition,
    EntityRegistry,
    ProjectionReader,
    SyncCoordinator,
)


SEASON = "2425"
EVENT_ID = "27"

TEAM_ITEMS = [
    {"id": 1, "code": 3, "name": "Arsenal", "short_name": "ARS", "strength": 5},
    {"id": 2, "code": 7, "name": "Aston Villa", "short_name": "AVL", "strength": 4},
    {"id": 3, "code": 91, "name": "Bournemouth", "short_name": "BOU", "strength": 3},
    {"id": 4, "code": 94, "name": "Brentford", "short_name": "BRE", "strength": 3},
]

EVENT_ITEMS = [
    {
        "id": 27,
        "name": "Gameweek 27",
        "deadline_time": "2024-03-01T18:30:00Z",
        "finished": False,
        "is_current": True,
    },
    {
        "id": 28,
        "name": "Gameweek 28",
        "deadline_time": "2024-03-08T18:30:00Z",
        "is_next": True,
    },
]


def make_fixture(
    fixture_id: int,
    team_h: int,
    team_a: int,
    event: int | None = 27,
    kickoff_time: str | None = "2024-03-02T15:00:00Z",
    team_h_score: int | None = None,
    team_a_score: int | None = None,
    started: bool = False,
    finished: bool = False,
) -> dict[str, Any]:
    """Raw upstream fixture item."""
    return {
        "id": fixture_id,
        "code": 2_400_000 + fixture_id,
        "event": event,
        "team_h": team_h,
        "team_a": team_a,
        "team_h_score": team_h_score,
        "team_a_score": team_a_score,
        "kickoff_time": kickoff_time,
        "started": started,
        "finished": finished,
        "minutes": 90 if finished else 0,
        "team_h_difficulty": 3,
        "team_a_difficulty": 4,
        "pulse_id": 110_000 + fixture_id,
    }


FIXTURE_ITEMS = [
    make_fixture(261, 1, 2, team_h_score=2, team_a_score=1, started=True, finished=True),
    make_fixture(262, 3, 4, kickoff_time="2024-03-02T17:30:00Z"),
]


class FakeClock:
    """Epoch clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource(SourceAdapter[Any]):
    """Source adapter serving canned payloads per unit key.

    ``error`` is raised instead of returning data; ``gate`` (if set) must be
    released before a fetch completes, to hold a sync mid-flight.
    """

    def __init__(self, name: str, model: type, items: dict[str, list[dict[str, Any]]]):
        self.name = name
        self.model = model
        self.items = items
        self.calls = 0
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    def get_name(self) -> str:
        return self.name

    async def fetch_raw(self, unit_key: str) -> list[Any]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.items.get(unit_key, []))


@dataclass
class Engine:
    registry: EntityRegistry
    cache: ProjectionCache
    reader: ProjectionReader
    coordinator: SyncCoordinator
    state: SyncStateManager
    sources: dict[str, FakeSource]
    clock: FakeClock

    def repository(self, domain: str) -> Repository[Any]:
        return self.registry.get(domain).repository


@pytest.fixture(scope="function", autouse=True)
def isolated_databases(tmp_path):
    """
    Automatically provide isolated store and cache databases for every test.

    The global config manager is pointed at temporary paths so nothing a
    test builds from config touches a real database.
    """
    store_path = tmp_path / "store.db"
    cache_path = tmp_path / "cache.db"

    manager = ConfigManager(config_path=tmp_path / "missing.yaml")
    manager._config = AppConfig(
        store=StoreConfig(db_path=str(store_path)),
        cache=CacheConfig(db_path=str(cache_path)),
    )
    set_config_manager(manager)

    yield store_path, cache_path

    reset_config_manager()


@pytest.fixture
def store_path(isolated_databases) -> Path:
    return isolated_databases[0]


@pytest.fixture
def cache_path(isolated_databases) -> Path:
    return isolated_databases[1]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sources() -> dict[str, FakeSource]:
    return {
        TEAMS: FakeSource("teams", Team, {SEASON: TEAM_ITEMS}),
        EVENTS: FakeSource("events", Event, {SEASON: EVENT_ITEMS}),
        FIXTURES: FakeSource("fixtures", Fixture, {EVENT_ID: FIXTURE_ITEMS}),
    }


def build_engine(
    store_path: Path,
    cache_path: Path,
    sources: dict[str, FakeSource],
    clock: FakeClock,
    conflict_policy: str = "reject",
) -> Engine:
    registry = EntityRegistry(
        [
            EntityDefinition(
                domain=TEAMS,
                source=sources[TEAMS],
                repository=Repository(TEAMS, Team, store_path, 5.0),
            ),
            EntityDefinition(
                domain=EVENTS,
                source=sources[EVENTS],
                repository=Repository(EVENTS, Event, store_path, 5.0),
            ),
            EntityDefinition(
                domain=FIXTURES,
                source=sources[FIXTURES],
                repository=Repository(FIXTURES, Fixture, store_path, 5.0),
                enricher=Enricher(EnrichedFixture, FIXTURE_TEAM_REFERENCES),
                unit_scope=fixture_in_event,
                reference_unit_key=lambda collection, unit_key: SEASON,
                aggregates=(AggregateDefinition(TEAM_FIXTURES, build_team_fixtures),),
            ),
        ]
    )
    cache = ProjectionCache(cache_path, ttl_seconds=3600, timeout=5.0, clock=clock)
    reader = ProjectionReader(registry, cache)
    state = SyncStateManager(store_path, 5.0)
    coordinator = SyncCoordinator(
        registry,
        cache,
        reader,
        state,
        conflict_policy=conflict_policy,
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=0.0,
    )
    return Engine(registry, cache, reader, coordinator, state, sources, clock)


@pytest.fixture
def engine(store_path, cache_path, fake_sources, fake_clock) -> Engine:
    """Sync engine wired to fake upstream sources and temporary databases."""
    return build_engine(store_path, cache_path, fake_sources, fake_clock)
