import pytest

from conftest import T0, minutes
from directory.models import Event
from dispatch.dispatcher import Dispatcher
from drivers.selection import WaitTimeEstimator
from monitoring.alerts import AlertService, AlertType
from rides.models import RideStatus
from storage.memory import TransactionConflict


@pytest.fixture
def alerts(store):
    return AlertService(store)


@pytest.fixture
def dispatcher(store, alerts):
    return Dispatcher(store, WaitTimeEstimator(store), alerts)


def give_backlog(factory, event, driver_id, count):
    for index in range(count):
        factory.ride(event, factory.user(f"{driver_id}-rider-{index}"), status=RideStatus.ASSIGNED, driver_id=driver_id)


def test_assigns_to_least_loaded_active_driver(store, factory, dispatcher):
    event = factory.event()
    factory.driver(event, "dd-a")
    factory.driver(event, "dd-b")
    factory.driver(event, "dd-c")
    factory.driver(event, "dd-d", active=False)
    give_backlog(factory, event, "dd-a", 3)
    give_backlog(factory, event, "dd-b", 1)
    ride = factory.ride(event, factory.user("rider"))

    chosen = dispatcher.assign(ride.id, now=T0 + minutes(5))

    assert chosen.driver_id == "dd-c"
    assigned = store.get_ride(ride.id)
    assert assigned.status == RideStatus.ASSIGNED
    assert assigned.driver_id == "dd-c"
    assert assigned.estimated_wait_minutes == 0
    assert assigned.assigned_at == T0 + minutes(5)


def test_assignment_copies_driver_details_onto_ride(store, factory, dispatcher):
    event = factory.event()
    factory.user("dd-1", name="Sam Driver")
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"))

    dispatcher.assign(ride.id, now=T0 + minutes(1))

    driver = store.get_ride(ride.id).driver
    assert driver.name == "Sam Driver"
    assert driver.phone == store.get_user("dd-1").phone
    assert driver.car_description == "Blue Civic"


def test_wait_estimate_reflects_backlog(store, factory, dispatcher):
    event = factory.event()
    factory.driver(event, "dd-1")
    give_backlog(factory, event, "dd-1", 2)
    ride = factory.ride(event, factory.user("rider"))

    dispatcher.assign(ride.id, now=T0 + minutes(1))

    assert store.get_ride(ride.id).estimated_wait_minutes == 30


def test_no_active_drivers_leaves_ride_queued(store, factory, dispatcher):
    event = factory.event()
    factory.driver(event, "dd-1", active=False)
    ride = factory.ride(event, factory.user("rider"))

    assert dispatcher.assign(ride.id, now=T0) is None
    assert store.get_ride(ride.id).status == RideStatus.QUEUED


def test_already_assigned_ride_is_left_alone(store, factory, dispatcher):
    event = factory.event()
    factory.driver(event, "dd-1")
    factory.driver(event, "dd-2")
    ride = factory.ride(event, factory.user("rider"), status=RideStatus.ASSIGNED, driver_id="dd-2")

    assert dispatcher.assign(ride.id, now=T0 + minutes(3)) is None
    assert store.get_ride(ride.id) == ride


def test_unknown_ride_is_ignored(dispatcher):
    assert dispatcher.assign("missing", now=T0) is None


def test_missing_event_alerts_once_after_repeated_failures(store, factory, dispatcher, alerts):
    ghost = Event(id="ghost", name="Deleted Party", organization_id="org-a")
    ride = factory.ride(ghost, factory.user("rider"))

    for attempt in range(5):
        assert dispatcher.assign(ride.id, now=T0 + minutes(attempt)) is None

    failures = alerts.find("org-a", AlertType.DISPATCH_FAILURE)
    assert len(failures) == 1
    assert failures[0].ride_id == ride.id
    assert store.get_ride(ride.id).status == RideStatus.QUEUED


def test_backlog_is_drained_in_priority_order(store, factory, dispatcher):
    event = factory.event()
    factory.driver(event, "dd-1")
    low = factory.ride(event, factory.user("low"), priority=10.0, requested_at=T0)
    high = factory.ride(event, factory.user("high"), priority=40.0, requested_at=T0 + minutes(2))

    assigned = dispatcher.assign_backlog(event.id, now=T0 + minutes(5))

    assert assigned == [high.id, low.id]
    assert store.get_ride(high.id).estimated_wait_minutes == 0
    assert store.get_ride(low.id).estimated_wait_minutes == 15


class ContendedEstimator(WaitTimeEstimator):
    """Writes a competing ride the first `conflicts` times it is asked for an estimate."""

    def __init__(self, store, factory, event, conflicts):
        super().__init__(store)
        self.factory = factory
        self.event = event
        self.conflicts = conflicts
        self.calls = 0

    def estimate(self, driver_id, event_id, reader=None):
        self.calls += 1
        estimate = super().estimate(driver_id, event_id, reader)
        if self.calls <= self.conflicts:
            self.factory.ride(self.event, self.factory.user(f"intruder-{self.calls}"))
        return estimate


def test_conflicting_write_is_retried_with_fresh_data(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"))
    estimator = ContendedEstimator(store, factory, event, conflicts=1)

    chosen = Dispatcher(store, estimator).assign(ride.id, now=T0 + minutes(1))

    assert chosen.driver_id == "dd-1"
    assert estimator.calls == 2
    assert store.get_ride(ride.id).status == RideStatus.ASSIGNED


def test_persistent_conflict_surfaces_and_ride_stays_queued(store, factory):
    event = factory.event()
    factory.driver(event, "dd-1")
    ride = factory.ride(event, factory.user("rider"))
    estimator = ContendedEstimator(store, factory, event, conflicts=10)

    with pytest.raises(TransactionConflict):
        Dispatcher(store, estimator).assign(ride.id, now=T0 + minutes(1))

    assert store.get_ride(ride.id).status == RideStatus.QUEUED
    assert estimator.calls == 3
