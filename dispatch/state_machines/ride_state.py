from datetime import datetime, timedelta
from dataclasses import replace
from typing import Optional

from rides.models import (
    Assigned,
    Cancelled,
    Completed,
    DriverSnapshot,
    EnRoute,
    LatLon,
    Ride,
    RideStatus,
)


class RideStateException(Exception):
    """Raised when an invalid ride transition is attempted."""
    pass


ALLOWED_TRANSITIONS = {
    RideStatus.QUEUED: {RideStatus.ASSIGNED, RideStatus.CANCELLED},
    RideStatus.ASSIGNED: {RideStatus.ENROUTE, RideStatus.CANCELLED},
    RideStatus.ENROUTE: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


def can_transition(current: RideStatus, target: RideStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _require(ride: Ride, target: RideStatus) -> None:
    if not can_transition(ride.status, target):
        raise RideStateException(
            f"Cannot transition ride {ride.id} from {ride.status.value} to {target.value}"
        )


def _stamp(now: datetime, previous: datetime) -> datetime:
    # Timestamps along a ride's path must be strictly increasing.
    if now > previous:
        return now
    return previous + timedelta(microseconds=1)


def assign_ride(ride: Ride, driver: DriverSnapshot, estimated_wait_minutes: int, now: datetime) -> Ride:
    """
    Called by the dispatcher once it has picked a DD for a queued ride.
    """
    _require(ride, RideStatus.ASSIGNED)

    state = Assigned(
        requested_at=ride.requested_at,
        assigned_at=_stamp(now, ride.requested_at),
        driver=driver,
        estimated_wait_minutes=estimated_wait_minutes,
    )
    # Because Ride is a frozen dataclass, we must return a new instance via replace
    return replace(ride, state=state)


def mark_enroute(
    ride: Ride,
    eta_minutes: int,
    now: datetime,
    driver_location: Optional[LatLon] = None,
) -> Ride:
    """
    The assigned DD has started driving to the pickup. eta_minutes replaces
    the queue-time estimate.
    """
    _require(ride, RideStatus.ENROUTE)

    state = EnRoute(
        requested_at=ride.requested_at,
        assigned_at=ride.assigned_at,
        enroute_at=_stamp(now, ride.assigned_at),
        driver=ride.driver,
        estimated_wait_minutes=eta_minutes,
        driver_location=driver_location,
    )
    return replace(ride, state=state)


def complete_ride(ride: Ride, now: datetime) -> Ride:
    _require(ride, RideStatus.COMPLETED)

    state = Completed(
        requested_at=ride.requested_at,
        assigned_at=ride.assigned_at,
        enroute_at=ride.enroute_at,
        completed_at=_stamp(now, ride.enroute_at),
        driver=ride.driver,
        estimated_wait_minutes=ride.estimated_wait_minutes,
    )
    return replace(ride, state=state)


def cancel_ride(ride: Ride, reason: str, now: datetime) -> Ride:
    """
    Allowed from any non-terminal status. Whatever the ride had reached
    (driver, timestamps) is kept for the record.
    """
    _require(ride, RideStatus.CANCELLED)

    last_stamp = ride.enroute_at or ride.assigned_at or ride.requested_at
    state = Cancelled(
        requested_at=ride.requested_at,
        cancelled_at=_stamp(now, last_stamp),
        reason=reason,
        assigned_at=ride.assigned_at,
        enroute_at=ride.enroute_at,
        driver=ride.driver,
        estimated_wait_minutes=ride.estimated_wait_minutes,
    )
    return replace(ride, state=state)
