"""
Incremental Group Matching
==========================

Triggered once per incoming request.  Nothing runs on a timer: a request
that cannot be grouped stays ``WAITING`` until a later arrival in the same
zone picks it up.

1. **Zone filter**     -- only ``WAITING`` requests of the same zone code.
2. **Compatibility**   -- pickup within ``matching_radius_km`` of the new
   pickup, and the pair fits the cab on its own.
3. **First-fit**       -- one pass in query order (oldest first); each
   candidate is admitted if its seats fit what is left of the cab.
4. **Claim**           -- every admitted request is moved
   ``WAITING -> MATCHED`` by a version-checked write.  Losing a claim just
   skips that candidate.

Claims, not locks, are what keep a request in at most one group: two
concurrent passes over the same pool can both *choose* a request, but only
one conditional write can move it out of ``WAITING``.

**Note:** first-fit in arrival order is the intended behaviour.  It does
NOT search for the packing that fills the cab best; e.g. with capacity 4,
a new 1-seat request and candidates [2, 3] yields {1, 2} (PARTIAL) even
though {1, 3} would be FULL.

Complexity
----------
Let W = waiting requests in the zone.
* Filtering:  O(W) haversine calls
* Packing:    O(W)
* Claims:     one conditional write per admitted member (<= capacity)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace

from .distance import within_radius
from .entities import Group, RideRequest
from .enums import GroupFullness, RequestStatus
from .errors import InvalidCoordinateError, StaleRecordError
from .ports import RequestStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatcherConfig:
    matching_radius_km: float = 5.0
    cab_capacity_seats: int = 4
    enable_matching: bool = True


class GroupMatcher:
    def __init__(self, requests: RequestStore, config: MatcherConfig):
        self.requests = requests
        self.config = config

    async def form_group(self, new_request: RideRequest) -> Group:
        """Group *new_request* with compatible waiting requests.

        Never raises for store trouble: any failure after the guard below
        degrades to the singleton outcome with nothing left claimed.
        """
        if not self.config.enable_matching:
            logger.warning("Matching is disabled; request %s stays alone", new_request.id)
            return Group.singleton(new_request)

        try:
            return await self._form_group(new_request)
        except InvalidCoordinateError:
            raise
        except Exception:
            logger.exception("Grouping failed for request %s", new_request.id)
            return Group.singleton(new_request)

    # ── Steps ─────────────────────────────────────────────────────────

    async def _form_group(self, new_request: RideRequest) -> Group:
        waiting = [
            r
            for r in await self.requests.query_requests(
                new_request.zone_code, RequestStatus.WAITING
            )
            if r.id != new_request.id
        ]
        logger.info(
            "Found %d waiting requests in zone %s", len(waiting), new_request.zone_code
        )
        if not waiting:
            return Group.singleton(new_request)

        compatible = self.compatible_candidates(new_request, waiting)
        logger.info(
            "%d compatible within %.1f km",
            len(compatible),
            self.config.matching_radius_km,
        )
        if not compatible:
            return Group.singleton(new_request)

        group_id = str(uuid.uuid4())
        members = await self._pack_and_claim(new_request, compatible, group_id)
        if members is None:
            return Group.singleton(new_request)

        total = sum(m.seats_requested for m in members)
        fullness = (
            GroupFullness.FULL
            if total == self.config.cab_capacity_seats
            else GroupFullness.PARTIAL
        )
        group = Group(
            members=members,
            zone_code=new_request.zone_code,
            fullness=fullness,
            group_id=group_id,
        )
        logger.info(
            "Group %s formed: %d passengers, %d/%d seats, %s",
            group_id,
            group.size,
            total,
            self.config.cab_capacity_seats,
            fullness.value,
        )
        return group

    def compatible_candidates(
        self, new_request: RideRequest, candidates: list[RideRequest]
    ) -> list[RideRequest]:
        """Candidates near enough that also fit the cab together with *new_request*."""
        capacity = self.config.cab_capacity_seats
        radius = self.config.matching_radius_km
        return [
            c
            for c in candidates
            if within_radius(new_request.pickup, c.pickup, radius)
            and new_request.seats_requested + c.seats_requested <= capacity
        ]

    async def _pack_and_claim(
        self,
        new_request: RideRequest,
        compatible: list[RideRequest],
        group_id: str,
    ) -> list[RideRequest] | None:
        """First-fit pass that claims each admitted candidate.

        Returns the committed members (new request first), or ``None`` when
        no candidate could be claimed.  On any failure every claim made so
        far is released before the exception propagates.
        """
        remaining = self.config.cab_capacity_seats - new_request.seats_requested
        claimed: list[RideRequest] = []
        try:
            for candidate in compatible:
                if candidate.seats_requested > remaining:
                    logger.debug("Candidate %s does not fit (%d left)", candidate.id, remaining)
                    continue
                member = await self._try_claim(candidate, group_id)
                if member is None:
                    continue
                claimed.append(member)
                remaining -= member.seats_requested

            if not claimed:
                return None

            head = await self._try_claim(new_request, group_id)
            if head is None:
                # The new request was cancelled or grouped elsewhere meanwhile
                await self._release_all(claimed)
                return None
        except BaseException:
            await self._release_all(claimed)
            raise

        return [head, *claimed]

    async def _try_claim(self, request: RideRequest, group_id: str) -> RideRequest | None:
        pending = replace(request)
        pending.claim(group_id)
        try:
            return await self.requests.save_request(pending)
        except StaleRecordError:
            logger.info("Lost claim on request %s; skipping", request.id)
            return None

    async def _release_all(self, claimed: list[RideRequest]) -> None:
        for member in claimed:
            released = replace(member)
            released.release()
            try:
                await self.requests.save_request(released)
            except Exception:
                logger.exception(
                    "Could not release request %s from group %s",
                    member.id,
                    member.group_id,
                )
