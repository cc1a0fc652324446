"""Tests for nearest-vehicle dispatch and its all-or-nothing binding."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.domain.dispatch import DispatchConfig, DispatchEngine, find_nearest_vehicle
from src.domain.entities import Group, Location, RideRequest, Vehicle
from src.domain.enums import RequestStatus, VehicleStatus
from src.domain.errors import InvalidCoordinateError, PersistenceError
from src.infrastructure.repositories import RideRequestRepository, VehicleRepository
from tests.conftest import ORIGIN, add_request, add_vehicle, north_of

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def _engine(requests, vehicles, **overrides) -> DispatchEngine:
    return DispatchEngine(requests, vehicles, DispatchConfig(**overrides), clock=lambda: NOW)


async def _matched_group(store, *seats, group_id="g-1", luggage=0) -> Group:
    members = [
        await add_request(
            store,
            seats=s,
            luggage=luggage,
            user=f"u{i}",
            status=RequestStatus.MATCHED,
            group_id=group_id,
        )
        for i, s in enumerate(seats)
    ]
    return Group(members=members, zone_code="DEL", group_id=group_id)


class _FailingRequestStore(RideRequestRepository):
    """Raises on the N-th dispatch write."""

    def __init__(self, session_factory, fail_on: int):
        super().__init__(session_factory)
        self.fail_on = fail_on
        self.dispatch_writes = 0

    async def save_request(self, request):
        if request.status is RequestStatus.DISPATCHED:
            self.dispatch_writes += 1
            if self.dispatch_writes == self.fail_on:
                raise PersistenceError("connection reset")
        return await super().save_request(request)


class _SnatchingVehicleStore(VehicleRepository):
    """Another dispatch reserves *victim_id* right after our scan."""

    def __init__(self, session_factory, victim_id: int):
        super().__init__(session_factory)
        self.victim_id = victim_id

    async def query_vehicles(self, status):
        rows = await super().query_vehicles(status)
        victim = await self.get_vehicle(self.victim_id)
        victim.reserve("g-rival", 1, 0)
        await self.save_vehicle(victim)
        return rows


class TestFindNearestVehicle:
    def test_picks_closest(self):
        near = Vehicle(id=1, position=north_of(ORIGIN, 1.0))
        far = Vehicle(id=2, position=north_of(ORIGIN, 3.0))
        assert find_nearest_vehicle(ORIGIN, [far, near], 10.0) is near

    def test_tie_goes_to_first_in_order(self):
        first = Vehicle(id=1, position=north_of(ORIGIN, 2.0))
        second = Vehicle(id=2, position=north_of(ORIGIN, 2.0))
        assert find_nearest_vehicle(ORIGIN, [first, second], 10.0) is first

    def test_none_within_radius(self):
        v = Vehicle(id=1, position=north_of(ORIGIN, 12.0))
        assert find_nearest_vehicle(ORIGIN, [v], 10.0) is None

    def test_skips_vehicle_that_cannot_carry_the_load(self):
        small = Vehicle(id=1, position=north_of(ORIGIN, 0.5), available_seats=2)
        big = Vehicle(id=2, position=north_of(ORIGIN, 4.0))
        assert find_nearest_vehicle(ORIGIN, [small, big], 10.0, seats=3) is big


class TestTryDispatch:
    @pytest.mark.asyncio
    async def test_nearest_vehicle_is_bound_to_every_member(
        self, request_store, vehicle_store
    ):
        near = await add_vehicle(vehicle_store, at=north_of(ORIGIN, 1.0), operator="Amit Verma")
        far = await add_vehicle(vehicle_store, at=north_of(ORIGIN, 3.0))
        group = await _matched_group(request_store, 2, 2)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is True

        for member in group.members:
            assert member.status == RequestStatus.DISPATCHED
            assert member.assigned_vehicle_id == near.id
            assert member.operator_name == "Amit Verma"
            assert member.estimated_arrival == NOW + timedelta(seconds=30)
        for stored in await request_store.query_group("g-1"):
            assert stored.status == RequestStatus.DISPATCHED
            assert stored.assigned_vehicle_id == near.id

        reserved = await vehicle_store.get_vehicle(near.id)
        assert reserved.status == VehicleStatus.RESERVED
        assert reserved.bound_group_id == "g-1"
        assert reserved.available_seats == 0
        assert (await vehicle_store.get_vehicle(far.id)).status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_no_vehicles(self, request_store, vehicle_store):
        group = await _matched_group(request_store, 1, 1)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is False
        for stored in await request_store.query_group("g-1"):
            assert stored.status == RequestStatus.MATCHED
            assert stored.assigned_vehicle_id is None

    @pytest.mark.asyncio
    async def test_below_minimum_does_not_query_vehicles(self, request_store):
        vehicles = AsyncMock()
        lone = await add_request(request_store)

        result = await _engine(request_store, vehicles).try_dispatch(Group.singleton(lone))

        assert result is False
        vehicles.query_vehicles.assert_not_awaited()
        assert (await request_store.get_request(lone.id)).status == RequestStatus.WAITING

    @pytest.mark.asyncio
    async def test_disabled(self, request_store, vehicle_store):
        v = await add_vehicle(vehicle_store)
        group = await _matched_group(request_store, 1, 1)

        engine = _engine(request_store, vehicle_store, enable_assignment=False)

        assert await engine.try_dispatch(group) is False
        assert (await vehicle_store.get_vehicle(v.id)).status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_vehicle_outside_radius(self, request_store, vehicle_store):
        await add_vehicle(vehicle_store, at=north_of(ORIGIN, 15.0))
        group = await _matched_group(request_store, 2, 1)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is False

    @pytest.mark.asyncio
    async def test_vehicles_in_maintenance_are_not_considered(
        self, request_store, vehicle_store
    ):
        v = await add_vehicle(vehicle_store)
        v.transition_to(VehicleStatus.MAINTENANCE)
        await vehicle_store.save_vehicle(v)
        group = await _matched_group(request_store, 1, 1)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is False

    @pytest.mark.asyncio
    async def test_tie_goes_to_lower_id(self, request_store, vehicle_store):
        first = await add_vehicle(vehicle_store, at=north_of(ORIGIN, 2.0))
        await add_vehicle(vehicle_store, at=north_of(ORIGIN, 2.0))
        group = await _matched_group(request_store, 1, 1)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is True
        assert group.members[0].assigned_vehicle_id == first.id

    @pytest.mark.asyncio
    async def test_luggage_limits_vehicle_choice(self, request_store, vehicle_store):
        await add_vehicle(vehicle_store, at=north_of(ORIGIN, 0.5), luggage=1)
        roomy = await add_vehicle(vehicle_store, at=north_of(ORIGIN, 5.0), luggage=5)
        group = await _matched_group(request_store, 1, 1, luggage=2)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is True
        assert group.members[0].assigned_vehicle_id == roomy.id

    @pytest.mark.asyncio
    async def test_singleton_dispatched_when_minimum_is_one(
        self, request_store, vehicle_store
    ):
        v = await add_vehicle(vehicle_store)
        lone = await add_request(request_store, seats=2)
        group = Group.singleton(lone)

        engine = _engine(request_store, vehicle_store, min_passengers_for_assignment=1)

        assert await engine.try_dispatch(group) is True
        assert group.group_id is not None
        stored = await request_store.get_request(lone.id)
        assert stored.status == RequestStatus.DISPATCHED
        assert stored.group_id == group.group_id
        assert (await vehicle_store.get_vehicle(v.id)).bound_group_id == group.group_id

    @pytest.mark.asyncio
    async def test_nan_pickup_raises(self, request_store, vehicle_store):
        members = [
            RideRequest(id=1, pickup=ORIGIN, zone_code="DEL"),
            RideRequest(id=2, pickup=Location(math.nan, 77.2), zone_code="DEL"),
        ]

        with pytest.raises(InvalidCoordinateError):
            await _engine(request_store, vehicle_store).try_dispatch(
                Group(members=members, zone_code="DEL", group_id="g-1")
            )


class TestAllOrNothing:
    @pytest.mark.asyncio
    async def test_member_write_failure_rolls_back(self, session_factory, vehicle_store):
        requests = _FailingRequestStore(session_factory, fail_on=2)
        v = await add_vehicle(vehicle_store)
        group = await _matched_group(requests, 1, 1, 1)

        assert await _engine(requests, vehicle_store).try_dispatch(group) is False

        for stored in await requests.query_group("g-1"):
            assert stored.status == RequestStatus.MATCHED
            assert stored.assigned_vehicle_id is None
        released = await vehicle_store.get_vehicle(v.id)
        assert released.status == VehicleStatus.AVAILABLE
        assert released.bound_group_id is None
        assert released.available_seats == released.total_seats

    @pytest.mark.asyncio
    async def test_member_cancelled_meanwhile(self, request_store, vehicle_store):
        v = await add_vehicle(vehicle_store)
        group = await _matched_group(request_store, 1, 1)
        gone = await request_store.get_request(group.members[1].id)
        gone.cancel()
        await request_store.save_request(gone)

        assert await _engine(request_store, vehicle_store).try_dispatch(group) is False

        first = await request_store.get_request(group.members[0].id)
        assert first.status == RequestStatus.MATCHED
        assert first.assigned_vehicle_id is None
        assert (await request_store.get_request(gone.id)).status == RequestStatus.CANCELLED
        assert (await vehicle_store.get_vehicle(v.id)).status == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_lost_reservation_does_not_fall_back(
        self, session_factory, request_store
    ):
        seed = VehicleRepository(session_factory)
        near = await add_vehicle(seed, at=north_of(ORIGIN, 1.0))
        spare = await add_vehicle(seed, at=north_of(ORIGIN, 2.0))
        vehicles = _SnatchingVehicleStore(session_factory, victim_id=near.id)
        group = await _matched_group(request_store, 1, 1)

        assert await _engine(request_store, vehicles).try_dispatch(group) is False

        assert (await seed.get_vehicle(near.id)).bound_group_id == "g-rival"
        assert (await seed.get_vehicle(spare.id)).status == VehicleStatus.AVAILABLE
        for stored in await request_store.query_group("g-1"):
            assert stored.status == RequestStatus.MATCHED
