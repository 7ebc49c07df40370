# SPDX-License-Identifier: MIT
"""Tests for cross-entity enrichment."""

import pytest
from pydantic import BaseModel

from matchday_sync.enrichment import Enricher, Reference
from matchday_sync.entities import FIXTURE_TEAM_REFERENCES
from matchday_sync.enums import ValidationErrorCode
from matchday_sync.errors import EnrichmentError
from matchday_sync.models import EnrichedFixture, Fixture, Team, TeamFixture

from conftest import TEAM_ITEMS, make_fixture


def _fixtures(*pairs: tuple[int, int, int]) -> list[Fixture]:
    return [Fixture.model_validate(make_fixture(i, h, a)) for i, h, a in pairs]


@pytest.fixture
def enricher() -> Enricher[EnrichedFixture]:
    return Enricher(EnrichedFixture, FIXTURE_TEAM_REFERENCES)


@pytest.fixture
def teams() -> dict[str, list[Team]]:
    return {"teams": [Team.model_validate(t) for t in TEAM_ITEMS]}


class TestEnricher:
    """Test cases for Enricher."""

    def test_resolves_both_sides(self, enricher, teams):
        outcome = enricher.enrich(_fixtures((261, 1, 2)), teams)

        [projection] = outcome.projections
        assert projection.team_h_name == "Arsenal"
        assert projection.team_h_short_name == "ARS"
        assert projection.team_a_name == "Aston Villa"
        assert projection.team_a_short_name == "AVL"
        assert outcome.dropped == 0

    def test_dangling_reference_is_dropped_and_counted(self, enricher, teams):
        records = _fixtures(
            (1, 1, 2), (2, 3, 4), (3, 1, 99), (4, 2, 3), (5, 4, 1)
        )

        outcome = enricher.enrich(records, teams)

        assert [p.id for p in outcome.projections] == [1, 2, 4, 5]
        assert outcome.dropped == 1
        assert outcome.dropped_ids == [3]

    def test_preserves_input_order(self, enricher, teams):
        records = _fixtures((9, 1, 2), (3, 3, 4), (7, 2, 1))

        outcome = enricher.enrich(records, teams)

        assert [p.id for p in outcome.projections] == [9, 3, 7]

    def test_empty_input_needs_no_collections(self, enricher):
        outcome = enricher.enrich([], {})

        assert outcome.projections == []
        assert outcome.dropped == 0

    def test_missing_collection_raises(self, enricher):
        with pytest.raises(EnrichmentError) as exc_info:
            enricher.enrich(_fixtures((1, 1, 2)), {})

        assert exc_info.value.code == ValidationErrorCode.ENRICHMENT.value
        assert exc_info.value.details["collection"] == "teams"

    def test_accepts_plain_dict_entries(self, enricher):
        outcome = enricher.enrich(_fixtures((1, 1, 2)), {"teams": TEAM_ITEMS})

        assert outcome.projections[0].team_a_short_name == "AVL"

    def test_optional_reference_yields_none(self):
        class Tagged(Fixture):
            team_h_name: str | None = None

        enricher = Enricher(
            Tagged,
            [Reference("team_h", "teams", {"team_h_name": "name"}, required=False)],
        )

        outcome = enricher.enrich(_fixtures((1, 99, 2)), {"teams": TEAM_ITEMS})

        assert outcome.dropped == 0
        assert outcome.projections[0].team_h_name is None
        assert isinstance(outcome.projections[0], BaseModel)

    def test_projection_mismatch_raises(self):
        enricher = Enricher(TeamFixture, [Reference("team_h", "teams", {"team_name": "name"})])

        with pytest.raises(EnrichmentError) as exc_info:
            enricher.enrich(_fixtures((1, 1, 2)), {"teams": TEAM_ITEMS})

        assert exc_info.value.details == {"record_id": 1}

    def test_collections(self, enricher):
        assert enricher.collections == ["teams"]
