# SPDX-License-Identifier: MIT
"""Tests for the sync state manager."""

import pytest

from matchday_sync.enums import FetchErrorCode, UpdateStatus
from matchday_sync.errors import FetchError
from matchday_sync.models import SyncResult
from matchday_sync.store import SyncStateManager


@pytest.fixture
def state(store_path) -> SyncStateManager:
    return SyncStateManager(store_path, 5.0)


def _result(**overrides) -> SyncResult:
    values = {
        "domain": "fixtures",
        "unit_key": "27",
        "status": UpdateStatus.SUCCESS,
        "records_fetched": 10,
        "records_stored": 10,
        "records_projected": 9,
        "records_dropped": 1,
    }
    values.update(overrides)
    return SyncResult(**values)


class TestSyncStateManager:
    """Test cases for SyncStateManager."""

    def test_unknown_unit_has_no_state(self, state):
        assert state.get_state("fixtures", "27") is None
        assert state.get_last_success("fixtures", "27") is None

    def test_needs_resync_until_success(self, state):
        state.mark_needs_resync("fixtures", "27")

        current = state.get_state("fixtures", "27")
        assert current["needs_resync"] is True
        assert current["status"] == UpdateStatus.IN_PROGRESS.value
        assert state.units_needing_resync() == [("fixtures", "27")]

        state.mark_success(_result())

        current = state.get_state("fixtures", "27")
        assert current["needs_resync"] is False
        assert current["status"] == UpdateStatus.SUCCESS.value
        assert current["records"] == 10
        assert state.units_needing_resync() == []
        assert state.get_last_success("fixtures", "27") is not None

    def test_failure_keeps_needs_resync(self, state):
        state.mark_needs_resync("fixtures", "27")
        error = FetchError("down", FetchErrorCode.TIMEOUT)

        state.mark_failed("fixtures", "27", error, "cache")

        current = state.get_state("fixtures", "27")
        assert current["needs_resync"] is True
        assert current["status"] == UpdateStatus.FAILED.value
        assert current["error_code"] == FetchErrorCode.TIMEOUT.value

    def test_failure_before_replace_does_not_flag(self, state):
        state.mark_failed("teams", "2425", FetchError("down"), "fetch")

        assert state.get_state("teams", "2425")["needs_resync"] is False

    def test_success_clears_previous_error(self, state):
        state.mark_failed("fixtures", "27", FetchError("down"), "fetch")
        state.mark_success(_result())

        current = state.get_state("fixtures", "27")
        assert current["error_code"] is None
        assert current["error_message"] is None

    def test_attempt_log(self, state):
        state.mark_failed("fixtures", "27", FetchError("down"), "fetch")
        state.mark_success(_result())

        attempts = state.recent_attempts()

        assert [a["status"] for a in attempts] == ["success", "failed"]
        assert attempts[0]["records_dropped"] == 1
        assert attempts[1]["step"] == "fetch"

    def test_list_states_sorted(self, state):
        state.mark_success(_result(domain="teams", unit_key="2425"))
        state.mark_success(_result(domain="fixtures", unit_key="28"))
        state.mark_success(_result(domain="fixtures", unit_key="27"))

        assert [(s["domain"], s["unit_key"]) for s in state.list_states()] == [
            ("fixtures", "27"),
            ("fixtures", "28"),
            ("teams", "2425"),
        ]
