# SPDX-License-Identifier: MIT
"""Core data models for matchday-sync.

Upstream payloads are validated into these pydantic models before anything
touches the store. Field names follow the upstream API; unknown upstream
fields are ignored.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import UpdateStatus


class Record(BaseModel):
    """Base for every canonical record: keyed by a natural integer id."""

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., description="Natural upstream identifier")


class Team(Record):
    """A club, used as a reference collection for fixtures."""

    code: int = Field(..., description="Stable upstream club code")
    name: str = Field(..., min_length=1)
    short_name: str = Field(..., min_length=1)
    strength: int | None = None


class Event(Record):
    """A gameweek. The deadline stays raw; the temporal gate parses it."""

    name: str
    deadline_time: str = Field(..., description="Upstream deadline timestamp")
    finished: bool = False
    is_current: bool = False
    is_next: bool = False
    is_previous: bool = False
    data_checked: bool = False


class Fixture(Record):
    """A single match within a gameweek."""

    code: int
    event: int | None = Field(None, description="Gameweek id; None if unscheduled")
    team_h: int
    team_a: int
    team_h_score: int | None = None
    team_a_score: int | None = None
    kickoff_time: datetime | None = None
    started: bool | None = False
    finished: bool = False
    minutes: int = 0
    team_h_difficulty: int | None = None
    team_a_difficulty: int | None = None


class EnrichedFixture(Fixture):
    """Fixture projection with both clubs resolved."""

    team_h_name: str
    team_h_short_name: str
    team_a_name: str
    team_a_short_name: str


class TeamFixture(Record):
    """One side's view of a fixture, grouped by team."""

    event: int | None
    team_id: int
    team_name: str
    team_short_name: str
    team_score: int
    team_difficulty: int
    opponent_team_id: int
    opponent_team_name: str
    opponent_team_short_name: str
    opponent_team_score: int
    opponent_team_difficulty: int
    kickoff_time: datetime | None
    started: bool | None
    finished: bool
    minutes: int
    was_home: bool
    score: str
    result: str


class SyncResult(BaseModel):
    """Outcome of one synchronization unit."""

    domain: str
    unit_key: str
    status: UpdateStatus
    records_fetched: int = 0
    records_stored: int = 0
    records_projected: int = 0
    records_dropped: int = 0
    aggregate_groups: int = 0
    processing_time: float = 0.0


class TemporalWindow(BaseModel):
    """Derived temporal predicates for a unit key; never persisted."""

    unit_key: str
    evaluated_at: datetime
    is_event_day: bool
    is_after_event_day: bool
    is_event_in_progress: bool
    is_selection_locked: bool
