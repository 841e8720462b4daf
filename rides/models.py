"""
Purpose: Domain models for the Rides capability.
What it does:
- Defines core data structures:
- Ride (id, rider, event, pickup, priority, emergency flag, lifecycle state)
- Location (address + lat/lon)
- DriverSnapshot (the DD's name, phone and car copied onto the ride at assignment)

Defines the lifecycle as one state object per status, so a ride can only
carry the fields its status allows:
- Queued | Assigned | EnRoute | Completed | Cancelled

Rule: No store access, no transition rules. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union
import uuid

LatLon = Tuple[float, float]


class RideStatus(str, Enum):
    QUEUED = "queued"
    ASSIGNED = "assigned"
    ENROUTE = "enroute"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (RideStatus.QUEUED, RideStatus.ASSIGNED, RideStatus.ENROUTE)
IN_FLIGHT_STATUSES = (RideStatus.ASSIGNED, RideStatus.ENROUTE)
TERMINAL_STATUSES = (RideStatus.COMPLETED, RideStatus.CANCELLED)


@dataclass(frozen=True)
class Location:
    address: str
    latitude: float
    longitude: float

    @property
    def coordinates(self) -> LatLon:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class DriverSnapshot:
    """
    Who is driving, as shown to the rider. Copied at assignment time.
    """
    driver_id: str
    name: str
    phone: str
    car_description: str


# --- Lifecycle states ---

@dataclass(frozen=True)
class Queued:
    requested_at: datetime

    status: ClassVar[RideStatus] = RideStatus.QUEUED


@dataclass(frozen=True)
class Assigned:
    requested_at: datetime
    assigned_at: datetime
    driver: DriverSnapshot
    estimated_wait_minutes: int

    status: ClassVar[RideStatus] = RideStatus.ASSIGNED


@dataclass(frozen=True)
class EnRoute:
    requested_at: datetime
    assigned_at: datetime
    enroute_at: datetime
    driver: DriverSnapshot
    estimated_wait_minutes: int  # pickup ETA once the DD is driving
    driver_location: Optional[LatLon] = None

    status: ClassVar[RideStatus] = RideStatus.ENROUTE


@dataclass(frozen=True)
class Completed:
    requested_at: datetime
    assigned_at: datetime
    enroute_at: datetime
    completed_at: datetime
    driver: DriverSnapshot
    estimated_wait_minutes: int

    status: ClassVar[RideStatus] = RideStatus.COMPLETED


@dataclass(frozen=True)
class Cancelled:
    """
    Keeps whatever the ride had reached before it was cancelled.
    """
    requested_at: datetime
    cancelled_at: datetime
    reason: str
    assigned_at: Optional[datetime] = None
    enroute_at: Optional[datetime] = None
    driver: Optional[DriverSnapshot] = None
    estimated_wait_minutes: Optional[int] = None

    status: ClassVar[RideStatus] = RideStatus.CANCELLED


RideState = Union[Queued, Assigned, EnRoute, Completed, Cancelled]


@dataclass(frozen=True)
class Ride:
    """
    A single ride request within an event.
    """
    id: str
    rider_id: str
    organization_id: str  # the rider's organization
    event_id: str
    pickup: Location
    priority: float
    state: RideState

    rider_name: str = ""
    rider_phone: Optional[str] = None
    is_emergency: bool = False
    emergency_reason: Optional[str] = None
    notes: Optional[str] = None

    @property
    def status(self) -> RideStatus:
        return self.state.status

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def driver(self) -> Optional[DriverSnapshot]:
        return getattr(self.state, "driver", None)

    @property
    def driver_id(self) -> Optional[str]:
        return self.driver.driver_id if self.driver else None

    @property
    def requested_at(self) -> datetime:
        return self.state.requested_at

    @property
    def assigned_at(self) -> Optional[datetime]:
        return getattr(self.state, "assigned_at", None)

    @property
    def enroute_at(self) -> Optional[datetime]:
        return getattr(self.state, "enroute_at", None)

    @property
    def completed_at(self) -> Optional[datetime]:
        return getattr(self.state, "completed_at", None)

    @property
    def cancelled_at(self) -> Optional[datetime]:
        return getattr(self.state, "cancelled_at", None)

    @property
    def cancellation_reason(self) -> Optional[str]:
        return getattr(self.state, "reason", None)

    @property
    def estimated_wait_minutes(self) -> Optional[int]:
        return getattr(self.state, "estimated_wait_minutes", None)

    @staticmethod # Factory method for a freshly requested ride
    def new(
        rider_id: str,
        organization_id: str,
        event_id: str,
        pickup: Location,
        priority: float,
        *,
        rider_name: str = "",
        rider_phone: Optional[str] = None,
        is_emergency: bool = False,
        emergency_reason: Optional[str] = None,
        notes: Optional[str] = None,
        requested_at: Optional[datetime] = None,
    ) -> Ride:
        return Ride(
            id=str(uuid.uuid4()),
            rider_id=rider_id,
            organization_id=organization_id,
            event_id=event_id,
            pickup=pickup,
            priority=priority,
            state=Queued(requested_at=requested_at or datetime.now(timezone.utc)),
            rider_name=rider_name,
            rider_phone=rider_phone,
            is_emergency=is_emergency,
            emergency_reason=emergency_reason,
            notes=notes,
        )
