"""
Purpose: Entry point for riders asking for a ride.
What it does:
Validates the request (rider and event exist, event is live, rider's
organization is invited, rider has no other active ride), scores it and
writes a queued ride. Dispatch happens afterwards, off the ride-created change.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from dispatch.candidate_filter import validate_ride_request
from dispatch.policy import DispatchPolicy, default_dispatch_policy
from dispatch.scoring import calculate_priority
from storage.memory import NotFoundError, run_in_transaction
from .models import ACTIVE_STATUSES, Location, Ride

logger = logging.getLogger(__name__)


class RideRequestService:
    def __init__(self, store, policy: Optional[DispatchPolicy] = None):
        self.store = store
        self.policy = policy or default_dispatch_policy()

    def request_ride(
        self,
        rider_id: str,
        event_id: str,
        pickup: Location,
        *,
        is_emergency: bool = False,
        emergency_reason: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Ride:
        now = now or datetime.now(timezone.utc)

        rider = self.store.get_user(rider_id)
        if rider is None:
            raise NotFoundError(f"Rider {rider_id} not found")

        event = self.store.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")

        priority = calculate_priority(
            class_year=rider.class_year,
            wait_minutes=0,
            is_emergency=is_emergency,
            is_same_organization=rider.organization_id == event.organization_id,
            policy=self.policy,
        )

        ride = Ride.new(
            rider_id=rider.id,
            organization_id=rider.organization_id,
            event_id=event.id,
            pickup=pickup,
            priority=priority,
            rider_name=rider.name,
            rider_phone=rider.phone,
            is_emergency=is_emergency,
            emergency_reason=emergency_reason if is_emergency else None,
            notes=notes,
            requested_at=now,
        )

        def apply(txn):
            # the open-ride check and the insert commit together
            validate_ride_request(rider, event, txn.rides_for_rider(rider_id, statuses=ACTIVE_STATUSES))
            txn.save_ride(ride)
            return ride

        run_in_transaction(self.store, apply)

        logger.info(f"Ride {ride.id} requested by {rider.id} for event {event.id} (priority {priority})")
        return ride

    def active_ride_for(self, rider_id: str) -> Optional[Ride]:
        rides = self.store.rides_for_rider(rider_id, statuses=ACTIVE_STATUSES)
        return rides[0] if rides else None
