"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Takes a queued ride, finds the event's active DDs, estimates each one's wait
from their current backlog and hands the ride to the least-loaded driver.
Also drains an event's backlog (highest priority first) when a DD comes online.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from drivers.models import DDAssignment
from drivers.selection import WaitTimeEstimator, filter_eligible_drivers, select_least_loaded
from monitoring.alerts import AlertType
from rides.models import DriverSnapshot, Ride, RideStatus
from rides.queue import rank_rides
from storage.memory import run_in_transaction
from .policy import DispatchPolicy, default_dispatch_policy
from .state_machines import ride_state

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Assigns rides to drivers. Selection for an event is serialised with the
    store's event lock and committed in an optimistic transaction, so two
    concurrent assignments can never both see a driver as idle, and a ride can
    never be assigned twice.
    """
    def __init__(self, store, estimator: Optional[WaitTimeEstimator] = None, alerts=None, policy: Optional[DispatchPolicy] = None):
        self.store = store
        self.estimator = estimator or WaitTimeEstimator(store)
        self.alerts = alerts
        self.policy = policy or default_dispatch_policy()

        # event id -> consecutive "event missing" failures
        self._missing_event_failures: Dict[str, int] = {}
        self._missing_event_alerted: Set[str] = set()
        self._failures_lock = threading.Lock()

    def assign(self, ride_id: str, now: Optional[datetime] = None) -> Optional[DDAssignment]:
        """
        Returns the chosen driver's assignment, or None if the ride stays queued
        (already handled, no active drivers, or its event is missing).
        Raises TransactionConflict if the store stayed contended for every attempt.
        """
        now = now or datetime.now(timezone.utc)

        ride = self.store.get_ride(ride_id)
        if ride is None:
            logger.error(f"Ride {ride_id} not found, nothing to dispatch")
            return None

        if ride.status != RideStatus.QUEUED or ride.driver_id is not None:
            logger.info(f"Ride {ride_id} is {ride.status.value}, skipping dispatch")
            return None

        event = self.store.get_event(ride.event_id)
        if event is None:
            self._record_missing_event(ride, now)
            return None

        with self._failures_lock:
            self._missing_event_failures.pop(event.id, None)

        # 1. One selection at a time per event
        with self.store.lock(f"event_{event.id}"):
            # 2. Read-choose-write as one transaction; retried with fresh reads on conflict
            return run_in_transaction(
                self.store,
                lambda txn: self._assign_in(txn, ride_id, event.id, now),
                self.policy.max_assign_attempts,
            )

    def assign_backlog(self, event_id: str, now: Optional[datetime] = None) -> List[str]:
        """
        Dispatch the event's queued rides in queue order until one stays queued.
        Returns the ids of rides that got a driver.
        """
        now = now or datetime.now(timezone.utc)
        assigned: List[str] = []

        with self.store.lock(f"event_{event_id}"):
            for ride in rank_rides(self.store.rides_for_event(event_id, statuses=[RideStatus.QUEUED])):
                if self.assign(ride.id, now) is None:
                    break
                assigned.append(ride.id)

        if assigned:
            logger.info(f"Backlog for event {event_id}: assigned {len(assigned)} ride(s)")
        return assigned

    # --- Internals ---

    def _assign_in(self, txn, ride_id: str, event_id: str, now: datetime) -> Optional[DDAssignment]:
        ride: Ride = txn.get_ride(ride_id)
        if ride is None or ride.status != RideStatus.QUEUED or ride.driver_id is not None:
            return None

        eligible = filter_eligible_drivers(txn.assignments_for_event(event_id, active_only=True))
        if not eligible:
            logger.warning(f"No active DDs for event {event_id}; ride {ride_id} stays queued")
            return None

        users = {}
        candidates = []
        for assignment in eligible:
            user = txn.get_user(assignment.driver_id)
            if user is None:
                logger.error(f"Driver {assignment.driver_id} has no user record, skipping")
                continue
            users[assignment.driver_id] = user
            candidates.append((assignment, self.estimator.estimate(assignment.driver_id, event_id, reader=txn)))

        best = select_least_loaded(candidates)
        if best is None:
            return None

        assignment, wait_minutes = best
        user = users[assignment.driver_id]
        driver = DriverSnapshot(
            driver_id=assignment.driver_id,
            name=user.name,
            phone=user.phone,
            car_description=assignment.car_description,
        )
        txn.save_ride(ride_state.assign_ride(ride, driver, wait_minutes, now))

        logger.info(f"Ride {ride_id} assigned to {assignment.driver_id} (estimated wait {wait_minutes} min)")
        return assignment

    def _record_missing_event(self, ride: Ride, now: datetime) -> None:
        with self._failures_lock:
            failures = self._missing_event_failures.get(ride.event_id, 0) + 1
            self._missing_event_failures[ride.event_id] = failures
            should_alert = (
                failures >= self.policy.missing_event_alert_after
                and ride.event_id not in self._missing_event_alerted
            )
            if should_alert:
                self._missing_event_alerted.add(ride.event_id)

        logger.error(f"Event {ride.event_id} not found; ride {ride.id} stays queued (failure {failures})")

        if should_alert and self.alerts is not None:
            self.alerts.create(
                ride.organization_id,
                AlertType.DISPATCH_FAILURE,
                f"Rides for event {ride.event_id} cannot be dispatched: the event record is missing "
                f"({failures} failed attempts).",
                ride_id=ride.id,
                now=now,
            )
