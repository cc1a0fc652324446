"""Unit tests for request / vehicle state transitions (State Pattern)."""

from datetime import datetime, timezone

import pytest

from src.domain.entities import Group, Location, RideRequest, Vehicle
from src.domain.enums import GroupFullness, RequestStatus, VehicleStatus
from src.domain.errors import InvalidStateTransition


class TestRequestStateMachine:
    def test_initial_status_is_waiting(self):
        request = RideRequest()
        assert request.status == RequestStatus.WAITING
        assert request.group_id is None

    # ── Valid transitions ─────────────────────────────────────────

    def test_claim_sets_group_id(self):
        request = RideRequest()
        request.claim("g-1")
        assert request.status == RequestStatus.MATCHED
        assert request.group_id == "g-1"

    def test_release_clears_group_id(self):
        request = RideRequest(status=RequestStatus.MATCHED, group_id="g-1")
        request.release()
        assert request.status == RequestStatus.WAITING
        assert request.group_id is None

    def test_matched_to_dispatched(self):
        eta = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        request = RideRequest(status=RequestStatus.MATCHED, group_id="g-1")
        request.dispatch("g-1", 7, "Rajesh Kumar", eta)
        assert request.status == RequestStatus.DISPATCHED
        assert request.assigned_vehicle_id == 7
        assert request.operator_name == "Rajesh Kumar"
        assert request.estimated_arrival == eta

    def test_waiting_singleton_dispatch_gets_group_id(self):
        request = RideRequest()
        request.dispatch("g-2", 1, "Amit", datetime.now(timezone.utc))
        assert request.group_id == "g-2"
        assert request.is_grouped

    def test_cancel_from_waiting(self):
        request = RideRequest()
        request.cancel()
        assert request.status == RequestStatus.CANCELLED

    def test_cancel_from_matched_clears_group(self):
        request = RideRequest(status=RequestStatus.MATCHED, group_id="g-1")
        request.cancel()
        assert request.status == RequestStatus.CANCELLED
        assert request.group_id is None

    def test_complete_clears_group_id(self):
        request = RideRequest(status=RequestStatus.DISPATCHED, group_id="g-1")
        request.complete()
        assert request.status == RequestStatus.COMPLETED
        assert request.group_id is None
        assert not request.is_grouped

    def test_release_of_dispatched_request_clears_vehicle(self):
        request = RideRequest()
        request.dispatch("g-1", 3, "Amit", datetime.now(timezone.utc))
        request.release()
        assert request.status == RequestStatus.WAITING
        assert request.group_id is None
        assert request.assigned_vehicle_id is None
        assert request.operator_name is None
        assert request.estimated_arrival is None

    # ── Invalid transitions ───────────────────────────────────────

    def test_waiting_to_completed_fails(self):
        with pytest.raises(InvalidStateTransition):
            RideRequest().transition_to(RequestStatus.COMPLETED)

    def test_dispatched_cannot_be_cancelled(self):
        """Once a vehicle is bound, cancelling goes through the release path."""
        request = RideRequest(status=RequestStatus.DISPATCHED, group_id="g-1")
        with pytest.raises(InvalidStateTransition):
            request.cancel()

    def test_cannot_claim_twice(self):
        request = RideRequest(status=RequestStatus.MATCHED, group_id="g-1")
        with pytest.raises(InvalidStateTransition):
            request.claim("g-2")
        assert request.group_id == "g-1"

    def test_cancelled_is_terminal(self):
        request = RideRequest(status=RequestStatus.CANCELLED)
        with pytest.raises(InvalidStateTransition):
            request.transition_to(RequestStatus.WAITING)


class TestVehicleStateMachine:
    def test_reserve_binds_group_and_takes_capacity(self):
        vehicle = Vehicle(total_seats=4, available_seats=4, luggage_capacity=3, available_luggage=3)
        vehicle.reserve("g-1", seats=3, luggage=2)
        assert vehicle.status == VehicleStatus.RESERVED
        assert vehicle.bound_group_id == "g-1"
        assert vehicle.available_seats == 1
        assert vehicle.available_luggage == 1

    def test_rollback_to_available_unbinds(self):
        vehicle = Vehicle()
        vehicle.reserve("g-1", seats=4, luggage=3)
        vehicle.transition_to(VehicleStatus.AVAILABLE)
        assert vehicle.bound_group_id is None
        assert vehicle.available_seats == vehicle.total_seats
        assert vehicle.available_luggage == vehicle.luggage_capacity

    def test_full_cycle(self):
        vehicle = Vehicle()
        vehicle.reserve("g-1", seats=2, luggage=0)
        vehicle.transition_to(VehicleStatus.IN_SERVICE)
        assert vehicle.bound_group_id == "g-1"
        vehicle.transition_to(VehicleStatus.AVAILABLE)
        assert vehicle.status == VehicleStatus.AVAILABLE
        assert vehicle.bound_group_id is None

    @pytest.mark.parametrize(
        "start", [VehicleStatus.AVAILABLE, VehicleStatus.RESERVED, VehicleStatus.IN_SERVICE]
    )
    def test_any_state_to_maintenance(self, start):
        vehicle = Vehicle(status=start, bound_group_id=None if start == VehicleStatus.AVAILABLE else "g")
        vehicle.transition_to(VehicleStatus.MAINTENANCE)
        assert vehicle.status == VehicleStatus.MAINTENANCE
        assert vehicle.bound_group_id is None

    def test_reserved_vehicle_cannot_be_reserved_again(self):
        vehicle = Vehicle()
        vehicle.reserve("g-1", seats=1, luggage=0)
        with pytest.raises(InvalidStateTransition):
            vehicle.reserve("g-2", seats=1, luggage=0)
        assert vehicle.bound_group_id == "g-1"

    def test_available_cannot_go_in_service_directly(self):
        with pytest.raises(InvalidStateTransition):
            Vehicle().transition_to(VehicleStatus.IN_SERVICE)

    def test_can_accommodate(self):
        vehicle = Vehicle(available_seats=4, available_luggage=3)
        assert vehicle.can_accommodate(4, 3)
        assert not vehicle.can_accommodate(5, 0)
        assert not vehicle.can_accommodate(1, 4)


class TestGroup:
    def test_singleton_is_partial_even_when_it_fills_the_cab(self):
        request = RideRequest(id=1, seats_requested=4, zone_code="DEL")
        group = Group.singleton(request)
        assert group.members == [request]
        assert group.fullness == GroupFullness.PARTIAL
        assert group.group_id is None
        assert group.total_seats == 4

    def test_totals(self):
        members = [
            RideRequest(id=1, seats_requested=1, luggage_count=2, pickup=Location(0, 0)),
            RideRequest(id=2, seats_requested=2, luggage_count=1, pickup=Location(0, 0)),
        ]
        group = Group(members=members, zone_code="DEL")
        assert group.size == 2
        assert group.total_seats == 3
        assert group.total_luggage == 3
        assert not group.is_full
