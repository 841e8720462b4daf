"""
Purpose: Ride texts to DDs and riders.
What it does:
- Tells a DD they have a new ride (with an emergency prefix when it is one)
- Tells a rider who is coming, in which car, and how far away
Sends run on an executor when one is given so a slow SMS provider never holds
up dispatch. Every send is best-effort: failures are logged, never raised.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from typing import Optional

from rides.models import Ride

logger = logging.getLogger(__name__)

EMERGENCY_PREFIX = "\U0001F6A8 EMERGENCY RIDE: "


def driver_assignment_message(ride: Ride) -> str:
    prefix = EMERGENCY_PREFIX if ride.is_emergency else ""
    rider_name = ride.rider_name or "Rider"
    address = ride.pickup.address or "Unknown location"
    return f"{prefix}New ride: {rider_name} at {address}"


def rider_enroute_message(ride: Ride) -> str:
    driver = ride.driver
    driver_name = (driver.name if driver else None) or "Your DD"
    car = (driver.car_description if driver else None) or "their car"

    eta = ride.estimated_wait_minutes
    eta_text = "on the way"
    if eta and eta > 0:
        eta_text = f"{eta} min{'s' if eta != 1 else ''} away"

    return f"{driver_name} in {car} is {eta_text}"


class RideNotifier:
    def __init__(self, sms_client, executor: Optional[Executor] = None):
        self.sms_client = sms_client
        self.executor = executor

    def notify_driver_assigned(self, ride: Ride) -> Optional[Future]:
        phone = ride.driver.phone if ride.driver else None
        if not phone:
            logger.error(f"Ride {ride.id} has no DD phone number; assignment text skipped")
            return None
        return self._submit(phone, driver_assignment_message(ride))

    def notify_rider_enroute(self, ride: Ride) -> Optional[Future]:
        if not ride.rider_phone:
            logger.error(f"Ride {ride.id} has no rider phone number; enroute text skipped")
            return None
        return self._submit(ride.rider_phone, rider_enroute_message(ride))

    def shutdown(self, wait: bool = True) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=wait)

    def _submit(self, to: str, body: str) -> Optional[Future]:
        if self.executor is None:
            self._send(to, body)
            return None
        try:
            return self.executor.submit(self._send, to, body)
        except RuntimeError as error:
            # executor already shut down
            logger.error(f"SMS to {to} not queued: {error}")
            return None

    def _send(self, to: str, body: str) -> bool:
        try:
            return self.sms_client.send_safe(to, body)
        except Exception:
            logger.exception(f"Unexpected failure sending SMS to {to}")
            return False
