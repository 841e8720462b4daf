"""
Purpose: Core data models for the drivers domain.
What it does:
Defines a DD's assignment to one event: availability, the toggle/alert
bookkeeping the activity monitor keeps, and the profile fields that must be
filled in before the DD can go active.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union


@dataclass(frozen=True)
class Active:
    since: datetime


@dataclass(frozen=True)
class Inactive:
    since: datetime


Availability = Union[Active, Inactive]


@dataclass(frozen=True)
class DDAssignment:
    """
    A purely stateless snapshot of one driver's shift at one event.
    The availability object carries when the driver last went active/inactive,
    so an active driver can never hold a stale inactive timestamp.
    """
    driver_id: str
    event_id: str
    availability: Availability

    # Toggle-abuse bookkeeping, owned by the activity monitor.
    inactive_toggle_count: int = 0
    last_inactive_toggle_at: datetime | None = None
    abuse_alert_sent: bool = False
    last_inactivity_alert_at: datetime | None = None

    total_rides_completed: int = 0

    # Profile
    photo_url: Optional[str] = None
    car_description: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return isinstance(self.availability, Active)

    @property
    def last_active_at(self) -> datetime | None:
        return self.availability.since if self.is_active else None

    @property
    def last_inactive_at(self) -> datetime | None:
        return None if self.is_active else self.availability.since

    @property
    def has_gone_inactive(self) -> bool:
        """False until the driver has switched off at least once (rostering does not count)."""
        return self.last_inactive_toggle_at is not None

    @property
    def profile_complete(self) -> bool:
        return bool(self.photo_url and self.photo_url.strip()) and bool(
            self.car_description and self.car_description.strip()
        )

    @classmethod
    def new(
        cls,
        driver_id: str,
        event_id: str,
        photo_url: str | None = None,
        car_description: str | None = None,
        rostered_at: datetime | None = None,
    ) -> DDAssignment:
        # Rostered drivers start inactive until they toggle on.
        return cls(
            driver_id=driver_id,
            event_id=event_id,
            availability=Inactive(since=rostered_at or datetime.now(timezone.utc)),
            photo_url=photo_url,
            car_description=car_description,
        )
