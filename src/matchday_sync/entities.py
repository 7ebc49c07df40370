# SPDX-License-Identifier: MIT
"""Fantasy-football domains: teams, events, fixtures and per-team fixtures."""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from .cache.key_value_cache import KeyValueCache
from .enrichment import Enricher, Reference
from .enums import ValidationErrorCode
from .errors import ValidationError
from .models import EnrichedFixture, Event, Fixture, Team, TeamFixture
from .sources.fpl import BootstrapLoader, EventSource, FixtureSource, TeamSource
from .sources.http_client import UpstreamClient
from .store.repository import Repository
from .sync.definitions import AggregateDefinition, EntityDefinition, EntityRegistry
from .sync.reader import ProjectionReader
from .temporal import Calendar, CalendarEvent


TEAMS = "teams"
EVENTS = "events"
FIXTURES = "fixtures"
TEAM_FIXTURES = "team_fixtures"

FIXTURE_TEAM_REFERENCES = (
    Reference(
        field="team_h",
        collection=TEAMS,
        fields={"team_h_name": "name", "team_h_short_name": "short_name"},
    ),
    Reference(
        field="team_a",
        collection=TEAMS,
        fields={"team_a_name": "name", "team_a_short_name": "short_name"},
    ),
)


def fixture_in_event(fixture: Fixture, unit_key: str) -> bool:
    return fixture.event is not None and str(fixture.event) == unit_key


def score_string(home_score: int | None, away_score: int | None) -> str:
    """Final or live score as ``"h:a"``, ``"-:-"`` before kickoff."""
    if home_score is None or away_score is None:
        return "-:-"
    return f"{home_score}:{away_score}"


def result_string(
    home_score: int | None, away_score: int | None, team_id: int, home_team_id: int
) -> str:
    """W/D/L from the point of view of ``team_id``; empty while unscored."""
    if home_score is None or away_score is None:
        return ""
    if home_score == away_score:
        return "D"
    is_home = team_id == home_team_id
    won = home_score > away_score if is_home else away_score > home_score
    return "W" if won else "L"


def _team_fixture(fixture: EnrichedFixture, home: bool) -> TeamFixture:
    if home:
        team = (fixture.team_h, fixture.team_h_name, fixture.team_h_short_name)
        opponent = (fixture.team_a, fixture.team_a_name, fixture.team_a_short_name)
        scores = (fixture.team_h_score, fixture.team_a_score)
        difficulty = (fixture.team_h_difficulty, fixture.team_a_difficulty)
    else:
        team = (fixture.team_a, fixture.team_a_name, fixture.team_a_short_name)
        opponent = (fixture.team_h, fixture.team_h_name, fixture.team_h_short_name)
        scores = (fixture.team_a_score, fixture.team_h_score)
        difficulty = (fixture.team_a_difficulty, fixture.team_h_difficulty)

    return TeamFixture(
        id=fixture.id,
        event=fixture.event,
        team_id=team[0],
        team_name=team[1],
        team_short_name=team[2],
        team_score=scores[0] or 0,
        team_difficulty=difficulty[0] or 0,
        opponent_team_id=opponent[0],
        opponent_team_name=opponent[1],
        opponent_team_short_name=opponent[2],
        opponent_team_score=scores[1] or 0,
        opponent_team_difficulty=difficulty[1] or 0,
        kickoff_time=fixture.kickoff_time,
        started=fixture.started,
        finished=fixture.finished,
        minutes=fixture.minutes,
        was_home=home,
        score=score_string(fixture.team_h_score, fixture.team_a_score),
        result=result_string(
            fixture.team_h_score, fixture.team_a_score, team[0], fixture.team_h
        ),
    )


def build_team_fixtures(
    fixtures: Sequence[EnrichedFixture],
) -> dict[int, list[TeamFixture]]:
    """Split each fixture into its home and away view, grouped by team id."""
    groups: dict[int, list[TeamFixture]] = {}
    for fixture in fixtures:
        for home in (True, False):
            team_fixture = _team_fixture(fixture, home)
            groups.setdefault(team_fixture.team_id, []).append(team_fixture)
    return groups


def build_registry(
    client: UpstreamClient,
    season: str,
    store_path: Path | None = None,
    store_timeout: float | None = None,
    memo: KeyValueCache | None = None,
) -> EntityRegistry:
    """Wire the three upstream domains.

    Teams and events are scoped by season; fixtures by event id and joined
    with the teams of ``season``.
    """
    bootstrap = BootstrapLoader(client, memo)

    def season_of(collection: str, unit_key: str) -> str:
        return season

    return EntityRegistry(
        [
            EntityDefinition(
                domain=TEAMS,
                source=TeamSource(bootstrap),
                repository=Repository(TEAMS, Team, store_path, store_timeout),
            ),
            EntityDefinition(
                domain=EVENTS,
                source=EventSource(bootstrap),
                repository=Repository(EVENTS, Event, store_path, store_timeout),
            ),
            EntityDefinition(
                domain=FIXTURES,
                source=FixtureSource(client),
                repository=Repository(FIXTURES, Fixture, store_path, store_timeout),
                enricher=Enricher(EnrichedFixture, FIXTURE_TEAM_REFERENCES),
                unit_scope=fixture_in_event,
                reference_unit_key=season_of,
                aggregates=(AggregateDefinition(TEAM_FIXTURES, build_team_fixtures),),
            ),
        ]
    )


def _parse_kickoff(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class ProjectionCalendarProvider:
    """Builds a gameweek calendar from the fixtures and events projections."""

    def __init__(self, reader: ProjectionReader, season: str):
        self.reader = reader
        self.season = season

    async def get_calendar(self, unit_key: str) -> Calendar:
        """Return the calendar of event ``unit_key``.

        Raises:
            ValidationError: With code UNKNOWN_UNIT if the event is not known
        """
        try:
            event_id = int(unit_key)
        except ValueError as e:
            raise ValidationError(
                f"Event id must be an integer, got '{unit_key}'",
                ValidationErrorCode.UNKNOWN_UNIT,
                cause=e,
                context={"unit_key": unit_key},
            ) from e

        event = await self.reader.get_one(EVENTS, self.season, event_id)
        if event is None:
            raise ValidationError(
                f"Event {event_id} not found for season {self.season}",
                ValidationErrorCode.UNKNOWN_UNIT,
                context={"unit_key": unit_key, "season": self.season},
            )

        fixtures = await self.reader.get_all(FIXTURES, unit_key)
        return Calendar(
            unit_key=unit_key,
            events=tuple(
                CalendarEvent(
                    kickoff_time=_parse_kickoff(f.get("kickoff_time")),
                    started=f.get("started"),
                    finished=bool(f.get("finished")),
                )
                for f in fixtures
            ),
            deadline_time=event.get("deadline_time"),
        )
