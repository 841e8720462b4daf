import pytest

from conftest import T0, minutes
from dispatch.state_machines import ride_state
from dispatch.state_machines.ride_state import RideStateException, can_transition
from rides.lifecycle import RideLifecycle
from rides.models import DriverSnapshot, RideStatus
from storage.memory import NotFoundError

SNAPSHOT = DriverSnapshot("dd-1", "Dee Dee", "+15551230001", "Blue Civic")


class FixedEta:
    def __init__(self, minutes):
        self.minutes = minutes
        self.calls = []

    def eta_with_fallback(self, origin, destination):
        self.calls.append((origin, destination))
        return self.minutes


# --- Pure transitions ---

def test_allowed_transitions():
    assert can_transition(RideStatus.QUEUED, RideStatus.ASSIGNED)
    assert can_transition(RideStatus.ENROUTE, RideStatus.CANCELLED)
    assert not can_transition(RideStatus.COMPLETED, RideStatus.ENROUTE)
    assert not can_transition(RideStatus.QUEUED, RideStatus.COMPLETED)
    assert not can_transition(RideStatus.CANCELLED, RideStatus.QUEUED)


def test_completed_ride_cannot_go_back_enroute(factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.COMPLETED, driver_id="dd-1")

    with pytest.raises(RideStateException):
        ride_state.mark_enroute(ride, 5, T0 + minutes(30))


def test_reassigning_an_assigned_ride_is_rejected(factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ASSIGNED, driver_id="dd-1")

    with pytest.raises(RideStateException):
        ride_state.assign_ride(ride, SNAPSHOT, 0, T0 + minutes(5))


def test_timestamps_stay_strictly_increasing_with_equal_clocks(factory):
    ride = factory.ride(factory.event(), factory.user("rider"), requested_at=T0)

    assigned = ride_state.assign_ride(ride, SNAPSHOT, 0, T0)
    enroute = ride_state.mark_enroute(assigned, 5, T0)
    completed = ride_state.complete_ride(enroute, T0)

    assert completed.requested_at < completed.assigned_at < completed.enroute_at < completed.completed_at


@pytest.mark.parametrize("status", [RideStatus.QUEUED, RideStatus.ASSIGNED, RideStatus.ENROUTE])
def test_cancel_from_any_non_terminal_status(factory, status):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=status, driver_id="dd-1")

    cancelled = ride_state.cancel_ride(ride, "rider left", T0 + minutes(30))

    assert cancelled.status == RideStatus.CANCELLED
    assert cancelled.cancellation_reason == "rider left"
    assert cancelled.driver_id == ride.driver_id
    assert cancelled.is_terminal


def test_cancelled_ride_cannot_be_cancelled_again(factory):
    ride = factory.ride(factory.event(), factory.user("rider"), status=RideStatus.CANCELLED)

    with pytest.raises(RideStateException):
        ride_state.cancel_ride(ride, "again", T0 + minutes(5))


# --- Lifecycle service ---

def test_enroute_uses_routing_eta(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ASSIGNED, driver_id="dd-1")
    eta = FixedEta(7)

    updated = RideLifecycle(store, eta).mark_enroute(ride.id, "dd-1", driver_location=(40.1, -86.1), now=T0 + minutes(3))

    assert updated.status == RideStatus.ENROUTE
    assert updated.estimated_wait_minutes == 7
    assert eta.calls == [((40.1, -86.1), (40.0, -86.0))]
    assert store.get_ride(ride.id) == updated


def test_enroute_without_location_uses_default_eta(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ASSIGNED, driver_id="dd-1")

    updated = RideLifecycle(store, FixedEta(7)).mark_enroute(ride.id, "dd-1", now=T0 + minutes(3))

    assert updated.estimated_wait_minutes == 15


def test_other_driver_cannot_move_the_ride(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    factory.driver(event, "dd-2")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ASSIGNED, driver_id="dd-1")

    with pytest.raises(RideStateException):
        RideLifecycle(store).mark_enroute(ride.id, "dd-2", now=T0 + minutes(3))
    assert store.get_ride(ride.id).status == RideStatus.ASSIGNED


def test_completion_counts_exactly_once(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ENROUTE, driver_id="dd-1")
    lifecycle = RideLifecycle(store)

    lifecycle.complete(ride.id, "dd-1", now=T0 + minutes(15))
    with pytest.raises(RideStateException):
        lifecycle.complete(ride.id, "dd-1", now=T0 + minutes(16))

    assert store.get_ride(ride.id).status == RideStatus.COMPLETED
    assert store.get_assignment(event.id, "dd-1").total_rides_completed == 1


def test_cancel_does_not_count_as_completed(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ENROUTE, driver_id="dd-1")

    RideLifecycle(store).cancel(ride.id, "no show", now=T0 + minutes(15))

    assert store.get_ride(ride.id).status == RideStatus.CANCELLED
    assert store.get_assignment(event.id, "dd-1").total_rides_completed == 0


def test_missing_ride_raises_not_found(store):
    with pytest.raises(NotFoundError):
        RideLifecycle(store).cancel("missing", "gone", now=T0)
