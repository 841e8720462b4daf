from concurrent.futures import ThreadPoolExecutor

from conftest import FakeSmsClient, T0
from dispatch.state_machines import ride_state
from notifications.notifier import RideNotifier, driver_assignment_message, rider_enroute_message
from rides.models import DriverSnapshot

SNAPSHOT = DriverSnapshot("dd-1", "Morgan", "+15551230001", "Silver Camry")


def assigned(factory, **kwargs):
    ride = factory.ride(factory.event(), factory.user("rider", name="Alex"), pickup_address="12 Elm St", **kwargs)
    return ride_state.assign_ride(ride, SNAPSHOT, 15, T0)


def test_driver_message(factory):
    assert driver_assignment_message(assigned(factory)) == "New ride: Alex at 12 Elm St"


def test_driver_message_flags_emergencies(factory):
    message = driver_assignment_message(assigned(factory, is_emergency=True, priority=9999.0))

    assert message.endswith("EMERGENCY RIDE: New ride: Alex at 12 Elm St")


def test_rider_message_pluralises_eta(factory):
    ride = assigned(factory)

    assert rider_enroute_message(ride_state.mark_enroute(ride, 7, T0)) == "Morgan in Silver Camry is 7 mins away"
    assert rider_enroute_message(ride_state.mark_enroute(ride, 1, T0)) == "Morgan in Silver Camry is 1 min away"
    assert rider_enroute_message(ride_state.mark_enroute(ride, 0, T0)) == "Morgan in Silver Camry is on the way"


def test_inline_send_goes_to_the_right_phones(factory):
    sms = FakeSmsClient()
    notifier = RideNotifier(sms)
    ride = assigned(factory)

    notifier.notify_driver_assigned(ride)
    notifier.notify_rider_enroute(ride_state.mark_enroute(ride, 4, T0))

    assert sms.bodies_to("+15551230001") == ["New ride: Alex at 12 Elm St"]
    assert sms.bodies_to(ride.rider_phone) == ["Morgan in Silver Camry is 4 mins away"]


def test_missing_phone_is_skipped(factory):
    sms = FakeSmsClient()
    ride = factory.ride(factory.event(), factory.user("rider"))

    assert RideNotifier(sms).notify_driver_assigned(ride) is None
    assert sms.sent == []


def test_executor_sends_in_background(factory):
    sms = FakeSmsClient()
    notifier = RideNotifier(sms, ThreadPoolExecutor(max_workers=1))

    future = notifier.notify_driver_assigned(assigned(factory))
    notifier.shutdown()

    assert future.result() is True
    assert len(sms.sent) == 1


def test_send_after_shutdown_is_dropped(factory):
    sms = FakeSmsClient()
    notifier = RideNotifier(sms, ThreadPoolExecutor(max_workers=1))
    notifier.shutdown()

    assert notifier.notify_driver_assigned(assigned(factory)) is None
    assert sms.sent == []


