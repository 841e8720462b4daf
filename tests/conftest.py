import itertools
from datetime import datetime, timedelta, timezone

import pytest

from directory.models import ALL_ORGANIZATIONS, Event, EventStatus, User
from dispatch.state_machines import ride_state
from dispatch.triggers import build_dispatch_system
from drivers.models import Active, DDAssignment, Inactive
from rides.models import DriverSnapshot, Location, Ride, RideStatus
from storage.memory import InMemoryStore

T0 = datetime(2026, 10, 17, 22, 0, tzinfo=timezone.utc)


def minutes(n: float) -> timedelta:
    return timedelta(minutes=n)


class FakeSmsClient:
    """Records texts instead of calling Twilio."""

    def __init__(self):
        self.sent = []

    def send_safe(self, to, body):
        self.sent.append((to, body))
        return True

    def bodies_to(self, phone):
        return [body for to, body in self.sent if to == phone]


class Factory:
    """
    Writes fixture records straight into a store.
    """

    def __init__(self, store):
        self.store = store
        self._phones = itertools.count(1000)

    def event(self, event_id="event-1", organization_id="org-a", status=EventStatus.ACTIVE,
              allowed=ALL_ORGANIZATIONS, name="Fall Formal") -> Event:
        event = Event(
            id=event_id,
            name=name,
            organization_id=organization_id,
            status=status,
            allowed_organization_ids=allowed,
        )
        self.store.save_event(event)
        return event

    def user(self, user_id, organization_id="org-a", class_year=3, name=None) -> User:
        user = User(
            id=user_id,
            name=name or user_id.replace("-", " ").title(),
            phone=f"+1555123{next(self._phones)}",
            organization_id=organization_id,
            class_year=class_year,
        )
        self.store.save_user(user)
        return user

    def driver(self, event, driver_id, active=True, since=T0, profile_complete=True, **fields) -> DDAssignment:
        if self.store.get_user(driver_id) is None:
            self.user(driver_id, organization_id=event.organization_id)
        if not active:
            # an inactive fixture driver has switched off at `since` unless told otherwise
            fields.setdefault("last_inactive_toggle_at", since)
        assignment = DDAssignment(
            driver_id=driver_id,
            event_id=event.id,
            availability=Active(since=since) if active else Inactive(since=since),
            photo_url=f"https://example.com/{driver_id}.jpg" if profile_complete else None,
            car_description="Blue Civic" if profile_complete else None,
            **fields,
        )
        self.store.save_assignment(assignment)
        return assignment

    def ride(self, event, rider, status=RideStatus.QUEUED, driver_id=None, requested_at=T0,
             priority=30.0, is_emergency=False, pickup_address="12 Elm St") -> Ride:
        ride = Ride.new(
            rider_id=rider.id,
            organization_id=rider.organization_id,
            event_id=event.id,
            pickup=Location(pickup_address, 40.0, -86.0),
            priority=priority,
            rider_name=rider.name,
            rider_phone=rider.phone,
            is_emergency=is_emergency,
            emergency_reason="Feeling unsafe" if is_emergency else None,
            requested_at=requested_at,
        )
        if status in (RideStatus.ASSIGNED, RideStatus.ENROUTE, RideStatus.COMPLETED):
            user = self.store.get_user(driver_id)
            snapshot = DriverSnapshot(driver_id, user.name, user.phone, "Blue Civic")
            ride = ride_state.assign_ride(ride, snapshot, 0, requested_at + minutes(1))
        if status in (RideStatus.ENROUTE, RideStatus.COMPLETED):
            ride = ride_state.mark_enroute(ride, 10, requested_at + minutes(2))
        if status == RideStatus.COMPLETED:
            ride = ride_state.complete_ride(ride, requested_at + minutes(20))
        if status == RideStatus.CANCELLED:
            ride = ride_state.cancel_ride(ride, "changed plans", requested_at + minutes(1))
        self.store.save_ride(ride)
        return ride


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def factory(store):
    return Factory(store)


@pytest.fixture
def sms():
    return FakeSmsClient()


@pytest.fixture
def system(store, sms):
    system = build_dispatch_system(store, sms_client=sms)
    yield system
    system.shutdown()
