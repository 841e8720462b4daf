"""
Purpose: Read-side view of an event's ride queue.
What it does:
- Ranks an event's non-terminal rides: priority descending, then oldest
  request first, then ride id (so the order is total and repeatable)
- Answers "what position is my ride?" and "how long until pickup?"
- Queue stats for operators
- Live queue subscription (push the ranked list whenever a ride changes)

Rule: Queue reads and ranks. It never changes a ride; the dispatcher and the
lifecycle service own transitions.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, field

from storage.memory import RIDES, Change, Subscription
from drivers.policy import DriverPolicy, default_driver_policy
from .models import ACTIVE_STATUSES, Ride, RideStatus


@dataclass
class QueueStats:
    total_active: int
    queued_count: int
    assigned_count: int
    enroute_count: int
    emergency_count: int
    active_driver_count: int
    average_wait_minutes: int  # across queued rides, as of `now`
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def rank_rides(rides: List[Ride]) -> List[Ride]:
    """
    Non-terminal rides in dispatch order.
    """
    active = [ride for ride in rides if not ride.is_terminal]
    return sorted(active, key=lambda ride: (-ride.priority, ride.requested_at, ride.id))


class QueuePositionService:
    def __init__(self, store, driver_policy: Optional[DriverPolicy] = None):
        self.store = store
        self.driver_policy = driver_policy or default_driver_policy()

    # --- Public API ---

    def ranked(self, event_id: str) -> List[Ride]:
        return rank_rides(self.store.rides_for_event(event_id, statuses=ACTIVE_STATUSES))

    def positions(self, event_id: str) -> Dict[str, int]:
        """
        ride id -> 1-based position. Terminal rides are absent.
        """
        return {ride.id: index for index, ride in enumerate(self.ranked(event_id), start=1)}

    def position_of(self, ride_id: str) -> Optional[int]:
        ride = self.store.get_ride(ride_id)
        if ride is None or ride.is_terminal:
            return None
        return self.positions(ride.event_id).get(ride_id)

    def estimated_wait_minutes(self, ride_id: str) -> Optional[int]:
        """
        Assigned/enroute rides report their own estimate. A queued ride waits
        for every ride ahead of it to be served, spread across active drivers.
        """
        ride = self.store.get_ride(ride_id)
        if ride is None or ride.is_terminal:
            return None
        if ride.status != RideStatus.QUEUED:
            return ride.estimated_wait_minutes

        position = self.position_of(ride_id)
        active_drivers = len(self.store.assignments_for_event(ride.event_id, active_only=True))
        if active_drivers == 0:
            return None

        # rides ahead (including in-flight ones) are served one trip per driver at a time
        trips_ahead = (position - 1) // active_drivers + 1
        return trips_ahead * self.driver_policy.average_trip_minutes

    def stats(self, event_id: str, now: Optional[datetime] = None) -> QueueStats:
        now = now or datetime.now(timezone.utc)
        rides = self.ranked(event_id)
        queued = [ride for ride in rides if ride.status == RideStatus.QUEUED]

        average_wait = 0
        if queued:
            total_seconds = sum((now - ride.requested_at).total_seconds() for ride in queued)
            average_wait = round(total_seconds / len(queued) / 60)

        return QueueStats(
            total_active=len(rides),
            queued_count=len(queued),
            assigned_count=sum(1 for ride in rides if ride.status == RideStatus.ASSIGNED),
            enroute_count=sum(1 for ride in rides if ride.status == RideStatus.ENROUTE),
            emergency_count=sum(1 for ride in rides if ride.is_emergency),
            active_driver_count=len(self.store.assignments_for_event(event_id, active_only=True)),
            average_wait_minutes=average_wait,
            now=now,
        )

    def watch_queue(self, event_id: str, callback: Callable[[List[Ride]], None]) -> Subscription:
        """
        Calls back with the ranked queue now and after every change to one of
        this event's rides. Cancel the returned subscription to stop.
        """
        def on_change(change: Change) -> None:
            ride = change.after or change.before
            if ride is not None and ride.event_id == event_id:
                callback(self.ranked(event_id))

        subscription = self.store.subscribe(on_change, collection=RIDES)
        callback(self.ranked(event_id))
        return subscription
