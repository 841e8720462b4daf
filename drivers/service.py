"""
Purpose: DD-facing operations for one event.
What it does:
- Rosters a driver onto an event (starts inactive)
- Profile updates (photo + car description, required before going active)
- Active/inactive toggle, refused while the DD still has rides in progress
- Per-driver stats and a live "current + next ride" view for the DD's screen
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from dispatch.state_machines import driver_state
from rides.models import IN_FLIGHT_STATUSES, Ride, RideStatus
from storage.memory import RIDES, Change, NotFoundError, Subscription, run_in_transaction
from .models import DDAssignment
from .selection import WaitTimeEstimator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverStats:
    total_rides_completed: int
    current_active_rides: int
    is_active: bool
    inactive_toggles: int
    average_ride_minutes: int  # assignment to drop-off, over completed rides


class DriverAvailabilityService:
    def __init__(self, store, estimator: Optional[WaitTimeEstimator] = None):
        self.store = store
        self.estimator = estimator or WaitTimeEstimator(store)

    def roster_driver(
        self,
        event_id: str,
        driver_id: str,
        photo_url: Optional[str] = None,
        car_description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DDAssignment:
        """
        Idempotent: rostering an already-rostered driver returns the existing assignment.
        """
        if self.store.get_event(event_id) is None:
            raise NotFoundError(f"Event {event_id} not found")
        if self.store.get_user(driver_id) is None:
            raise NotFoundError(f"Driver {driver_id} not found")

        def apply(txn):
            existing = txn.get_assignment(event_id, driver_id)
            if existing is not None:
                return existing
            assignment = DDAssignment.new(driver_id, event_id, photo_url, car_description, rostered_at=now)
            txn.save_assignment(assignment)
            return assignment

        return run_in_transaction(self.store, apply)

    def update_profile(
        self,
        event_id: str,
        driver_id: str,
        photo_url: Optional[str] = None,
        car_description: Optional[str] = None,
    ) -> DDAssignment:
        def apply(txn):
            assignment = self._get(txn, event_id, driver_id)
            updated = driver_state.update_profile(assignment, photo_url, car_description)
            if updated != assignment:
                txn.save_assignment(updated)
            return updated

        return run_in_transaction(self.store, apply)

    def set_active(self, event_id: str, driver_id: str, is_active: bool, now: Optional[datetime] = None) -> DDAssignment:
        """
        Raises DriverStateException when going active without a profile, or
        going inactive with assigned/enroute rides.
        """
        now = now or datetime.now(timezone.utc)

        def apply(txn):
            assignment = self._get(txn, event_id, driver_id)
            if is_active:
                updated = driver_state.go_active(assignment, now)
            else:
                in_flight = self.estimator.in_flight_count(driver_id, event_id, reader=txn)
                updated = driver_state.go_inactive(assignment, in_flight, now)
            if updated != assignment:
                txn.save_assignment(updated)
            return updated

        # same lock as the dispatcher, so a ride can't land on a driver mid-toggle
        with self.store.lock(f"event_{event_id}"):
            updated = run_in_transaction(self.store, apply)

        logger.info(f"Driver {driver_id} is now {'active' if updated.is_active else 'inactive'} at event {event_id}")
        return updated

    def driver_stats(self, event_id: str, driver_id: str) -> DriverStats:
        assignment = self._get(self.store, event_id, driver_id)
        completed = self.store.rides_for_driver(event_id, driver_id, statuses=[RideStatus.COMPLETED])

        average = 0
        if completed:
            total_seconds = sum((ride.completed_at - ride.assigned_at).total_seconds() for ride in completed)
            average = round(total_seconds / len(completed) / 60)

        return DriverStats(
            total_rides_completed=assignment.total_rides_completed,
            current_active_rides=self.estimator.in_flight_count(driver_id, event_id),
            is_active=assignment.is_active,
            inactive_toggles=assignment.inactive_toggle_count,
            average_ride_minutes=average,
        )

    def current_and_next(self, event_id: str, driver_id: str) -> Tuple[Optional[Ride], Optional[Ride]]:
        """
        The ride the DD is driving (or should start next) and the one after it.
        """
        rides = self.store.rides_for_driver(event_id, driver_id, statuses=IN_FLIGHT_STATUSES)
        enroute = [ride for ride in rides if ride.status == RideStatus.ENROUTE]
        assigned = sorted(
            (ride for ride in rides if ride.status == RideStatus.ASSIGNED),
            key=lambda ride: (ride.assigned_at, ride.id),
        )
        ordered: List[Ride] = enroute + assigned
        current = ordered[0] if ordered else None
        upcoming = ordered[1] if len(ordered) > 1 else None
        return current, upcoming

    def watch_driver_rides(
        self,
        event_id: str,
        driver_id: str,
        callback: Callable[[Optional[Ride], Optional[Ride]], None],
    ) -> Subscription:
        def on_change(change: Change) -> None:
            touched = [ride for ride in (change.before, change.after) if ride is not None]
            if any(ride.event_id == event_id and ride.driver_id == driver_id for ride in touched):
                callback(*self.current_and_next(event_id, driver_id))

        subscription = self.store.subscribe(on_change, collection=RIDES)
        callback(*self.current_and_next(event_id, driver_id))
        return subscription

    @staticmethod
    def _get(reader, event_id: str, driver_id: str) -> DDAssignment:
        assignment = reader.get_assignment(event_id, driver_id)
        if assignment is None:
            raise NotFoundError(f"Driver {driver_id} is not assigned to event {event_id}")
        return assignment
