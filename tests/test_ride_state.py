"""Unit tests for ride state transitions and the driver request pool."""

import pytest

from ride_service.domain.entities import (
    InvalidStateTransition,
    RequestPool,
    allowed_sources,
    check_transition,
    eligible_drivers,
)
from ride_service.domain.enums import RideStatus, TravelMode, travel_mode_for


class TestRideStateMachine:
    # ── Valid transitions ─────────────────────────────────────────

    def test_created_to_started(self):
        check_transition(RideStatus.CREATED, RideStatus.STARTED)

    def test_created_to_cancel(self):
        check_transition(RideStatus.CREATED, RideStatus.CANCEL)

    def test_started_to_ended(self):
        check_transition(RideStatus.STARTED, RideStatus.ENDED)

    def test_started_to_cancel(self):
        check_transition(RideStatus.STARTED, RideStatus.CANCEL)

    def test_accepts_raw_status_values(self):
        check_transition("created", RideStatus.STARTED)

    # ── Invalid transitions ───────────────────────────────────────

    def test_created_to_ended_fails(self):
        with pytest.raises(InvalidStateTransition):
            check_transition(RideStatus.CREATED, RideStatus.ENDED)

    def test_started_to_started_fails(self):
        with pytest.raises(InvalidStateTransition):
            check_transition(RideStatus.STARTED, RideStatus.STARTED)

    @pytest.mark.parametrize("terminal", [RideStatus.ENDED, RideStatus.CANCEL])
    @pytest.mark.parametrize("target", list(RideStatus))
    def test_terminal_statuses_are_final(self, terminal, target):
        with pytest.raises(InvalidStateTransition):
            check_transition(terminal, target)

    # ── Sources ───────────────────────────────────────────────────

    def test_cancel_reachable_from_open_statuses(self):
        assert allowed_sources(RideStatus.CANCEL) == {
            RideStatus.CREATED,
            RideStatus.STARTED,
        }

    def test_ended_only_from_started(self):
        assert allowed_sources(RideStatus.ENDED) == {RideStatus.STARTED}

    def test_nothing_leads_back_to_created(self):
        assert allowed_sources(RideStatus.CREATED) == set()


class TestRequestPool:
    def test_of_strips_rejected_drivers(self):
        pool = RequestPool.of(["d1", "d2"], ["d2"])
        assert pool.requested_to == {"d1"}
        assert pool.rejected_by == {"d2"}

    def test_reject_moves_driver(self):
        pool = RequestPool.of(["d1", "d2"]).reject("d1")
        assert pool.requested_to == {"d2"}
        assert pool.rejected_by == {"d1"}

    def test_reject_is_idempotent(self):
        once = RequestPool.of(["d1", "d2"]).reject("d1")
        assert once.reject("d1") == once

    def test_reject_unknown_driver_still_recorded(self):
        pool = RequestPool.of(["d1"]).reject("d9")
        assert pool.requested_to == {"d1"}
        assert pool.rejected_by == {"d9"}

    def test_offer_adds_new_driver(self):
        pool = RequestPool.of(["d1"]).offer("d2")
        assert pool.requested_to == {"d1", "d2"}

    def test_offer_skips_driver_who_declined(self):
        pool = RequestPool.of(["d1"], ["d2"])
        assert not pool.can_offer("d2")
        assert pool.offer("d2") == pool

    def test_offer_skips_driver_already_requested(self):
        pool = RequestPool.of(["d1"])
        assert not pool.can_offer("d1")
        assert pool.offer("d1") is pool

    def test_sets_stay_disjoint(self):
        pool = RequestPool.of(["d1", "d2", "d3"]).reject("d2").offer("d2").offer("d4")
        assert pool.requested_to.isdisjoint(pool.rejected_by)


class TestEligibility:
    def test_busy_drivers_excluded(self):
        assert eligible_drivers({"d1", "d2", "d3"}, {"d2"}) == {"d1", "d3"}

    def test_empty_roster(self):
        assert eligible_drivers([], ["d1"]) == frozenset()


class TestTravelMode:
    @pytest.mark.parametrize(
        "vehicle, mode",
        [
            ("car", TravelMode.DRIVING),
            ("Bike", TravelMode.BICYCLING),
            ("walk", TravelMode.WALKING),
            ("bus", TravelMode.TRANSIT),
            ("rickshaw", TravelMode.DRIVING),
            (None, TravelMode.DRIVING),
        ],
    )
    def test_vehicle_type_mapping(self, vehicle, mode):
        assert travel_mode_for(vehicle) is mode
