"""
Purpose: Driver- and rider-initiated ride transitions.
What it does:
- mark_enroute: assigned DD starts driving; quotes the rider a pickup ETA
- complete: enroute DD drops the rider off; bumps the DD's completed count
  in the same transaction so it counts exactly once
- cancel: any non-terminal ride

Every transition re-reads the ride inside a transaction, so a stale caller
can never move a ride backwards or overwrite another writer.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from dispatch.state_machines import driver_state, ride_state
from dispatch.state_machines.ride_state import RideStateException
from drivers.policy import DriverPolicy, default_driver_policy
from storage.memory import NotFoundError, run_in_transaction
from .models import LatLon, Ride

logger = logging.getLogger(__name__)


class RideLifecycle:
    def __init__(self, store, eta_service=None, driver_policy: Optional[DriverPolicy] = None, max_attempts: int = 3):
        self.store = store
        self.eta_service = eta_service
        self.driver_policy = driver_policy or default_driver_policy()
        self.max_attempts = max_attempts

    def mark_enroute(
        self,
        ride_id: str,
        driver_id: str,
        driver_location: Optional[LatLon] = None,
        now: Optional[datetime] = None,
    ) -> Ride:
        now = now or datetime.now(timezone.utc)

        ride = self._get(self.store, ride_id)
        _check_driver(ride, driver_id)
        # routing call happens before the transaction so retries don't repeat it
        eta = self._pickup_eta(ride, driver_location)

        def apply(txn):
            current = self._get(txn, ride_id)
            _check_driver(current, driver_id)
            updated = ride_state.mark_enroute(current, eta, now, driver_location)
            txn.save_ride(updated)
            return updated

        updated = run_in_transaction(self.store, apply, self.max_attempts)
        logger.info(f"Ride {ride_id} enroute with driver {driver_id}, ETA {eta} min")
        return updated

    def complete(self, ride_id: str, driver_id: str, now: Optional[datetime] = None) -> Ride:
        now = now or datetime.now(timezone.utc)

        def apply(txn):
            current = self._get(txn, ride_id)
            _check_driver(current, driver_id)
            updated = ride_state.complete_ride(current, now)
            txn.save_ride(updated)

            assignment = txn.get_assignment(current.event_id, driver_id)
            if assignment is None:
                logger.error(f"No assignment for driver {driver_id} at event {current.event_id}; completed count not updated")
            else:
                txn.save_assignment(driver_state.record_completed_ride(assignment))
            return updated

        updated = run_in_transaction(self.store, apply, self.max_attempts)
        logger.info(f"Ride {ride_id} completed by driver {driver_id}")
        return updated

    def cancel(self, ride_id: str, reason: str = "cancelled", now: Optional[datetime] = None) -> Ride:
        now = now or datetime.now(timezone.utc)

        def apply(txn):
            current = self._get(txn, ride_id)
            updated = ride_state.cancel_ride(current, reason, now)
            txn.save_ride(updated)
            return updated

        updated = run_in_transaction(self.store, apply, self.max_attempts)
        logger.info(f"Ride {ride_id} cancelled: {reason}")
        return updated

    # --- Helpers ---

    @staticmethod
    def _get(reader, ride_id: str) -> Ride:
        ride = reader.get_ride(ride_id)
        if ride is None:
            raise NotFoundError(f"Ride {ride_id} not found")
        return ride

    def _pickup_eta(self, ride: Ride, driver_location: Optional[LatLon]) -> int:
        if self.eta_service is None or driver_location is None:
            return self.driver_policy.default_eta_minutes
        return self.eta_service.eta_with_fallback(driver_location, ride.pickup.coordinates)


def _check_driver(ride: Ride, driver_id: str) -> None:
    if ride.driver_id is not None and ride.driver_id != driver_id:
        raise RideStateException(f"Ride {ride.id} is assigned to another driver, not {driver_id}")
