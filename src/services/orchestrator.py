"""
Request Orchestrator
====================

Sequences one request intake:

1. Validate and persist the request as ``WAITING``.
2. ``GroupMatcher.form_group`` (optionally under a per-zone Redis lock).
3. ``DispatchEngine.try_dispatch`` on whatever group came back.
4. Re-read the request so the caller sees its final state.

Intake is synchronous: matching and dispatch run inside the request that
triggered them.  A request left ``WAITING``/``MATCHED`` is only revisited
when the next request arrives in its zone; there is no background sweep.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Optional

from redis.exceptions import RedisError

from src.domain.dispatch import DispatchConfig, DispatchEngine
from src.domain.entities import Group, Location, RideRequest
from src.domain.enums import GroupFullness, RequestStatus
from src.domain.errors import InvalidInputError, NotFoundError, PersistenceError
from src.domain.matching import GroupMatcher, MatcherConfig
from src.domain.ports import RequestStore, VehicleStore
from src.infrastructure.locks import ZoneLocks

logger = logging.getLogger(__name__)


@dataclass
class IntakeOutcome:
    request: RideRequest
    group: Group
    dispatched: bool
    duplicate: bool = False


class RequestOrchestrator:
    def __init__(
        self,
        requests: RequestStore,
        vehicles: VehicleStore,
        matcher_config: MatcherConfig,
        dispatch_config: DispatchConfig,
        zone_locks: Optional[ZoneLocks] = None,
    ):
        self.requests = requests
        self.capacity = matcher_config.cab_capacity_seats
        self.matcher = GroupMatcher(requests, matcher_config)
        self.dispatcher = DispatchEngine(requests, vehicles, dispatch_config)
        self.zone_locks = zone_locks

    # ── Intake ────────────────────────────────────────────────────────

    async def submit_request(
        self,
        *,
        user_id: str,
        pickup_lat: float,
        pickup_lng: float,
        zone_code: str,
        seats_requested: int = 1,
        luggage_count: int = 0,
        idempotency_key: Optional[str] = None,
    ) -> IntakeOutcome:
        self.validate(
            user_id, pickup_lat, pickup_lng, zone_code, seats_requested, luggage_count
        )

        if idempotency_key:
            existing = await self.requests.get_by_idempotency_key(idempotency_key)
            if existing:
                return await self._replay(existing)

        draft = RideRequest(
            user_id=user_id,
            pickup=Location(pickup_lat, pickup_lng),
            zone_code=zone_code.upper(),
            seats_requested=seats_requested,
            luggage_count=luggage_count,
            idempotency_key=idempotency_key,
        )
        try:
            request = await self.requests.create_request(draft)
        except PersistenceError:
            # A concurrent retry with the same key may have won the insert
            if idempotency_key:
                existing = await self.requests.get_by_idempotency_key(idempotency_key)
                if existing:
                    return await self._replay(existing)
            raise
        logger.info(
            "Request %s created: user=%s zone=%s seats=%d luggage=%d",
            request.id,
            user_id,
            request.zone_code,
            seats_requested,
            luggage_count,
        )

        group = await self._form_group(request)
        dispatched = await self.dispatcher.try_dispatch(group)
        if not dispatched:
            logger.info(
                "Group %s not dispatched (%d passengers, %s)",
                group.group_id or "-",
                group.size,
                group.fullness.value,
            )

        current = await self.requests.get_request(request.id) or request
        return IntakeOutcome(request=current, group=group, dispatched=dispatched)

    def validate(
        self,
        user_id: str,
        pickup_lat: float,
        pickup_lng: float,
        zone_code: str,
        seats_requested: int,
        luggage_count: int,
    ) -> None:
        if not user_id:
            raise InvalidInputError("user_id is required")
        if not zone_code or not zone_code.strip():
            raise InvalidInputError("zone_code is required")
        if not (math.isfinite(pickup_lat) and -90 <= pickup_lat <= 90):
            raise InvalidInputError(f"Invalid pickup latitude: {pickup_lat}")
        if not (math.isfinite(pickup_lng) and -180 <= pickup_lng <= 180):
            raise InvalidInputError(f"Invalid pickup longitude: {pickup_lng}")
        if seats_requested <= 0:
            raise InvalidInputError("seats_requested must be positive")
        if seats_requested > self.capacity:
            raise InvalidInputError(
                f"seats_requested {seats_requested} exceeds cab capacity {self.capacity}"
            )
        if luggage_count < 0:
            raise InvalidInputError("luggage_count cannot be negative")

    async def _form_group(self, request: RideRequest) -> Group:
        if self.zone_locks is None:
            return await self.matcher.form_group(request)

        lock = self.zone_locks.for_zone(request.zone_code)
        try:
            acquired = await lock.acquire()
        except RedisError:
            logger.warning(
                "Zone lock unavailable; grouping %s on claims alone",
                request.id,
                exc_info=True,
            )
            return await self.matcher.form_group(request)

        if not acquired:
            logger.info(
                "Zone %s still busy after %.1fs; grouping request %s on claims alone",
                request.zone_code,
                lock.wait,
                request.id,
            )
            return await self.matcher.form_group(request)

        try:
            return await self.matcher.form_group(request)
        finally:
            try:
                await lock.release()
            except RedisError:
                logger.warning("Could not release zone lock %s", lock.key, exc_info=True)

    async def _replay(self, existing: RideRequest) -> IntakeOutcome:
        group = None
        if existing.group_id:
            group = await self.get_group(existing.group_id)
        return IntakeOutcome(
            request=existing,
            group=group or Group.singleton(existing),
            dispatched=existing.status is RequestStatus.DISPATCHED,
            duplicate=True,
        )

    # ── Queries & lifecycle ───────────────────────────────────────────

    async def get_request(self, request_id: int) -> RideRequest:
        request = await self.requests.get_request(request_id)
        if request is None:
            raise NotFoundError(f"Ride request {request_id} not found")
        return request

    async def get_group(self, group_id: str) -> Optional[Group]:
        members = await self.requests.query_group(group_id)
        if not members:
            return None
        return self._as_group(group_id, members)

    async def active_groups(self) -> list[Group]:
        by_group: dict[str, list[RideRequest]] = defaultdict(list)
        for r in await self.requests.query_grouped():
            by_group[r.group_id].append(r)
        return [self._as_group(gid, members) for gid, members in by_group.items()]

    async def cancel_request(self, request_id: int) -> RideRequest:
        """WAITING or MATCHED -> CANCELLED.

        Raises ``InvalidStateTransition`` for dispatched or finished
        requests, and ``StaleRecordError`` if a grouping or dispatch wrote
        the request between our read and our write.
        """
        request = await self.get_request(request_id)
        cancelled = replace(request)
        cancelled.cancel()
        stored = await self.requests.save_request(cancelled)
        logger.info("Request %s cancelled (was %s)", request_id, request.status.value)
        return stored

    async def complete_request(self, request_id: int) -> RideRequest:
        request = await self.get_request(request_id)
        completed = replace(request)
        completed.complete()
        return await self.requests.save_request(completed)

    def _as_group(self, group_id: str, members: list[RideRequest]) -> Group:
        seats = sum(m.seats_requested for m in members)
        return Group(
            members=members,
            zone_code=members[0].zone_code,
            fullness=GroupFullness.FULL if seats == self.capacity else GroupFullness.PARTIAL,
            group_id=group_id,
        )
