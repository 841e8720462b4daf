"""
Purpose: Business rules for choosing the least-loaded driver.
What it does:
Filters an event's DD pool down to drivers who can take a ride, estimates each
one's wait from their in-flight backlog, and picks the driver with the lowest
estimated wait (ties broken by driver id so the choice is deterministic).
"""

from typing import List, Optional, Tuple

from rides.models import IN_FLIGHT_STATUSES
from .models import DDAssignment
from .policy import DriverPolicy, default_driver_policy


def filter_eligible_drivers(assignments: List[DDAssignment]) -> List[DDAssignment]:
    """
    Returns only drivers who are active with a complete profile.
    """
    eligible = []

    for assignment in assignments:
        if not assignment.is_active:
            continue

        if not assignment.profile_complete:
            continue

        eligible.append(assignment)

    return eligible


class WaitTimeEstimator:
    """
    Estimated wait = (assigned + enroute rides for the driver) * average trip time.
    Reads through whatever reader it is given, so the dispatcher can estimate
    inside its transaction.
    """

    def __init__(self, store, policy: Optional[DriverPolicy] = None):
        self.store = store
        self.policy = policy or default_driver_policy()

    def in_flight_count(self, driver_id: str, event_id: str, reader=None) -> int:
        reader = reader or self.store
        return len(reader.rides_for_driver(event_id, driver_id, statuses=IN_FLIGHT_STATUSES))

    def estimate(self, driver_id: str, event_id: str, reader=None) -> int:
        """
        Minutes until this driver could start a new ride.
        """
        return self.in_flight_count(driver_id, event_id, reader) * self.policy.average_trip_minutes

    def estimate_seconds(self, driver_id: str, event_id: str, reader=None) -> int:
        return self.estimate(driver_id, event_id, reader) * 60


def select_least_loaded(candidates: List[Tuple[DDAssignment, int]]) -> Optional[Tuple[DDAssignment, int]]:
    """
    candidates: (assignment, estimated wait minutes) pairs.
    Returns the pair with the lowest wait, or None for an empty pool.
    """
    if not candidates:
        return None

    return min(candidates, key=lambda candidate: (candidate[1], candidate[0].driver_id))
