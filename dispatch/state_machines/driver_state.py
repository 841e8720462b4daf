from datetime import datetime
from dataclasses import replace
from typing import Optional

from drivers.models import Active, DDAssignment, Inactive


class DriverStateException(Exception):
    """Raised when an invalid driver transition is attempted."""
    pass


def go_active(assignment: DDAssignment, now: datetime) -> DDAssignment:
    """
    Called when a DD toggles on. Requires a photo and a car description.
    Toggling an already-active driver is a no-op.
    """
    if assignment.is_active:
        return assignment

    if not assignment.profile_complete:
        raise DriverStateException(
            f"Driver {assignment.driver_id} must add a photo and car description before going active"
        )

    # Because DDAssignment is a frozen dataclass, we must return a new instance via replace
    return replace(assignment, availability=Active(since=now))


def go_inactive(assignment: DDAssignment, in_flight_rides: int, now: datetime) -> DDAssignment:
    """
    Called when a DD toggles off. Refused while the driver still has assigned
    or enroute rides. Every accepted toggle counts toward abuse detection.
    """
    if not assignment.is_active:
        return assignment

    if in_flight_rides > 0:
        raise DriverStateException(
            f"Driver {assignment.driver_id} has {in_flight_rides} ride(s) in progress and cannot go inactive"
        )

    return replace(
        assignment,
        availability=Inactive(since=now),
        inactive_toggle_count=assignment.inactive_toggle_count + 1,
        last_inactive_toggle_at=now,
    )


def update_profile(
    assignment: DDAssignment,
    photo_url: Optional[str] = None,
    car_description: Optional[str] = None,
) -> DDAssignment:
    """
    None leaves a field unchanged. An active driver cannot blank their profile.
    """
    updated = replace(
        assignment,
        photo_url=assignment.photo_url if photo_url is None else photo_url,
        car_description=assignment.car_description if car_description is None else car_description,
    )
    if updated.is_active and not updated.profile_complete:
        raise DriverStateException(
            f"Driver {assignment.driver_id} is active; photo and car description cannot be cleared"
        )
    return updated


def record_completed_ride(assignment: DDAssignment) -> DDAssignment:
    return replace(assignment, total_rides_completed=assignment.total_rides_completed + 1)


def reset_toggle_window(assignment: DDAssignment) -> DDAssignment:
    """
    Starts a fresh abuse-detection window.
    """
    return replace(assignment, inactive_toggle_count=0, abuse_alert_sent=False)
