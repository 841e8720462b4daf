"""
Purpose: Emergency ride handling.
What it does:
- Makes sure an emergency ride carries the emergency priority
- Raises one emergency_request alert to the host organization's operators
- Periodically re-checks: an emergency ride still queued after two minutes
  raises one emergency_unassigned alert
Every alert is looked up before it is raised, so redelivered changes and
repeated checks never duplicate one.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from directory.models import EventStatus
from monitoring.alerts import Alert, AlertService, AlertType
from rides.models import Ride, RideStatus
from storage.memory import run_in_transaction
from .policy import DispatchPolicy, default_dispatch_policy

logger = logging.getLogger(__name__)

MAX_ADDRESS_LENGTH = 50


def format_address(address: Optional[str]) -> str:
    if not address:
        return "Unknown location"
    if len(address) <= MAX_ADDRESS_LENGTH:
        return address
    return address[:MAX_ADDRESS_LENGTH - 3] + "..."


class EmergencyHandler:
    def __init__(self, store, alerts: AlertService, policy: Optional[DispatchPolicy] = None):
        self.store = store
        self.alerts = alerts
        self.policy = policy or default_dispatch_policy()

    def handle_new_ride(self, ride_id: str, now: Optional[datetime] = None) -> Optional[Alert]:
        now = now or datetime.now(timezone.utc)

        ride = self.store.get_ride(ride_id)
        if ride is None or not ride.is_emergency:
            return None

        logger.warning(f"EMERGENCY ride {ride.id} requested by {ride.rider_id} at event {ride.event_id}")

        if ride.priority != self.policy.emergency_priority and not ride.is_terminal:
            ride = run_in_transaction(self.store, lambda txn: self._raise_priority(txn, ride_id))

        event = self.store.get_event(ride.event_id)
        if event is None:
            logger.error(f"Event {ride.event_id} not found; emergency alert for ride {ride.id} not raised")
            return None

        if self.alerts.find(event.organization_id, AlertType.EMERGENCY_REQUEST, ride_id=ride.id):
            return None

        message = (
            "\U0001F6A8 EMERGENCY RIDE REQUEST\n"
            f"Event: {event.name}\n"
            f"Rider: {ride.rider_name or ride.rider_id}\n"
            f"Location: {format_address(ride.pickup.address)}\n"
            f"Reason: {ride.emergency_reason or 'No reason provided'}"
        )
        return self.alerts.create(event.organization_id, AlertType.EMERGENCY_REQUEST, message, ride_id=ride.id, now=now)

    def _raise_priority(self, txn, ride_id: str) -> Ride:
        ride = txn.get_ride(ride_id)
        if ride.priority == self.policy.emergency_priority or ride.is_terminal:
            return ride
        updated = replace(ride, priority=self.policy.emergency_priority)
        txn.save_ride(updated)
        return updated

    def check_unassigned(self, now: Optional[datetime] = None) -> List[Alert]:
        """
        Sweep every active event for emergency rides queued past the limit.
        """
        now = now or datetime.now(timezone.utc)
        limit = timedelta(seconds=self.policy.emergency_unassigned_seconds)
        raised: List[Alert] = []

        for event in self.store.events(status=EventStatus.ACTIVE):
            for ride in self.store.rides_for_event(event.id, statuses=[RideStatus.QUEUED]):
                if not ride.is_emergency or now - ride.requested_at <= limit:
                    continue
                alert = self._raise_unassigned(event, ride, now)
                if alert is not None:
                    raised.append(alert)

        return raised

    def _raise_unassigned(self, event, ride: Ride, now: datetime) -> Optional[Alert]:
        if self.alerts.find(event.organization_id, AlertType.EMERGENCY_UNASSIGNED, ride_id=ride.id):
            return None

        waited = int((now - ride.requested_at).total_seconds() // 60)
        logger.error(f"Emergency ride {ride.id} still unassigned after {waited} min")
        message = (
            "⚠️ EMERGENCY RIDE STILL UNASSIGNED\n"
            f"Rider: {ride.rider_name or ride.rider_id}\n"
            f"Location: {format_address(ride.pickup.address)}\n"
            f"Waiting: {waited} min. Please assign a DD manually."
        )
        return self.alerts.create(event.organization_id, AlertType.EMERGENCY_UNASSIGNED, message, ride_id=ride.id, now=now)
