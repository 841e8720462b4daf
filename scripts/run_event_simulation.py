import logging
import os
import uuid
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd

from directory.models import ALL_ORGANIZATIONS, Event, EventStatus, User
from dispatch.candidate_filter import RideRequestRejected
from dispatch.triggers import build_dispatch_system
from rides.models import Location, RideStatus

# Center around a college town
CENTER_LAT = 40.4237
CENTER_LON = -86.9212

HOST_ORG = "org_host"
GUEST_ORG = "org_guest"


class PrintingSmsClient:
    """Stands in for Twilio: prints texts instead of sending them."""

    def send_safe(self, to, body):
        print(f"  [SMS -> {to}] {body}")
        return True


def make_phone(index: int) -> str:
    return f"+1765555{str(index).zfill(4)}"


def seed_event(system, num_riders=40, num_drivers=4, start=None):
    start = start or datetime.now(timezone.utc)
    store = system.store

    event = Event(
        id=f"e_{str(uuid.uuid4())[:8]}",
        name="Homecoming Mixer",
        organization_id=HOST_ORG,
        status=EventStatus.ACTIVE,
        allowed_organization_ids=ALL_ORGANIZATIONS,
    )
    store.save_event(event)

    drivers = []
    for driver_index in range(num_drivers):
        user = User(
            id=f"dd_{driver_index + 1}",
            name=f"Driver {driver_index + 1}",
            phone=make_phone(driver_index),
            organization_id=HOST_ORG,
            class_year=int(np.random.randint(2, 5)),
        )
        store.save_user(user)
        system.drivers.roster_driver(
            event.id,
            user.id,
            photo_url=f"https://example.com/{user.id}.jpg",
            car_description=np.random.choice(["Blue Civic", "Black Jeep", "Silver Camry", "Red Golf"]),
            now=start,
        )
        drivers.append(user)

    riders = []
    for rider_index in range(num_riders):
        user = User(
            id=f"r_{str(rider_index + 1).zfill(3)}",
            name=f"Rider {rider_index + 1}",
            phone=make_phone(100 + rider_index),
            organization_id=np.random.choice([HOST_ORG, GUEST_ORG], p=[0.75, 0.25]),
            class_year=int(np.random.randint(1, 5)),
        )
        store.save_user(user)
        riders.append(user)

    return event, drivers, riders


def run_simulation(minutes=90, num_riders=40, num_drivers=4, output_file="event_simulation.csv"):
    print("=== STARTING DD EVENT SIMULATION ===")
    logging.basicConfig(level=logging.WARNING)

    start = datetime.now(timezone.utc).replace(microsecond=0)
    system = build_dispatch_system(sms_client=PrintingSmsClient())
    event, drivers, riders = seed_event(system, num_riders, num_drivers, start)
    print(f"Seeded event {event.id} with {len(drivers)} DDs and {len(riders)} riders.\n")

    # Riders request at random minutes; ~5% are emergencies.
    request_minute = {rider.id: int(np.random.randint(0, minutes // 2)) for rider in riders}

    for minute in range(minutes):
        now = start + timedelta(minutes=minute)

        if minute == 0:
            for driver in drivers:
                system.drivers.set_active(event.id, driver.id, True, now=now)

        for rider in riders:
            if request_minute[rider.id] != minute:
                continue
            is_emergency = bool(np.random.random() < 0.05)
            pickup = Location(
                address=f"{np.random.randint(100, 999)} State St",
                latitude=float(np.round(CENTER_LAT + np.random.uniform(-0.02, 0.02), 6)),
                longitude=float(np.round(CENTER_LON + np.random.uniform(-0.02, 0.02), 6)),
            )
            try:
                system.requests.request_ride(
                    rider.id,
                    event.id,
                    pickup,
                    is_emergency=is_emergency,
                    emergency_reason="Feeling unsafe" if is_emergency else None,
                    now=now,
                )
            except RideRequestRejected as error:
                print(f"[REJECTED] {error}")

        system.router.pump(now)

        # Each DD works their oldest ride: enroute after 3 min, drop-off after 12.
        for driver in drivers:
            current, _ = system.drivers.current_and_next(event.id, driver.id)
            if current is None:
                continue
            if current.status == RideStatus.ASSIGNED and now - current.assigned_at >= timedelta(minutes=3):
                system.lifecycle.mark_enroute(current.id, driver.id, now=now)
            elif current.status == RideStatus.ENROUTE and now - current.enroute_at >= timedelta(minutes=12):
                system.lifecycle.complete(current.id, driver.id, now=now)

        system.router.tick(now)

    rows = []
    for ride in system.store.rides_for_event(event.id):
        rows.append({
            "ride_id": ride.id,
            "rider_id": ride.rider_id,
            "organization_id": ride.organization_id,
            "priority": ride.priority,
            "is_emergency": ride.is_emergency,
            "status": ride.status.value,
            "driver_id": ride.driver_id,
            "requested_at": ride.requested_at,
            "assigned_at": ride.assigned_at,
            "completed_at": ride.completed_at,
        })

    df = pd.DataFrame(rows)
    for column in ("requested_at", "assigned_at", "completed_at"):
        df[column] = pd.to_datetime(df[column], utc=True)
    df["minutes_to_assign"] = (df["assigned_at"] - df["requested_at"]).dt.total_seconds() / 60
    df.to_csv(output_file, index=False)

    print("\n=== SIMULATION COMPLETE ===")
    print(df["status"].value_counts().to_string())
    print("\nRides per DD:")
    print(df.groupby("driver_id")["ride_id"].count().to_string())
    print(f"\nMean minutes to assignment: {df['minutes_to_assign'].mean():.1f}")
    print(f"Operator alerts raised: {len(system.store.alerts_for_organization(HOST_ORG))}")
    print(f"Results written to '{os.path.abspath(output_file)}'.")

    system.shutdown()


if __name__ == "__main__":
    run_simulation()
