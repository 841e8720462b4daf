"""
Rides domain package.

Public API:
- Domain models: Ride, RideStatus, Location, DriverSnapshot
- Lifecycle states: Queued, Assigned, EnRoute, Completed, Cancelled
"""
from .models import (
    ACTIVE_STATUSES,
    IN_FLIGHT_STATUSES,
    TERMINAL_STATUSES,
    Assigned,
    Cancelled,
    Completed,
    DriverSnapshot,
    EnRoute,
    Location,
    Queued,
    Ride,
    RideStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "IN_FLIGHT_STATUSES",
    "TERMINAL_STATUSES",
    "Assigned",
    "Cancelled",
    "Completed",
    "DriverSnapshot",
    "EnRoute",
    "Location",
    "Queued",
    "Ride",
    "RideStatus",
]
