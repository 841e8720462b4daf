#Purpose: Pickup ETA policy.
#Converts an OSRM route (DD position -> rider pickup) into the whole-minute
#ETA quoted to the rider when a DD marks a ride enroute.
#Responsibilities:
#round route duration up to whole minutes
#retry a flaky routing backend a bounded number of times
#never fail the enroute transition: fall back to a fixed default ETA

import logging
import math
import time
from typing import Callable, Optional, Tuple

from drivers.policy import DriverPolicy, default_driver_policy
from .osrm_client import OSRMError

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]


class EtaService:
    def __init__(
        self,
        osrm_client=None,
        policy: Optional[DriverPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.osrm_client = osrm_client
        self.policy = policy or default_driver_policy()
        self.sleep = sleep

    def eta_minutes(self, origin: LatLon, destination: LatLon) -> int:
        """
        Raises if there is no routing backend or it cannot produce a route.
        """
        if self.osrm_client is None:
            raise OSRMError("No routing backend configured")

        route = self.osrm_client.compute_route([origin, destination])
        return math.ceil(route["duration"] / 60.0)

    def eta_with_fallback(self, origin: LatLon, destination: LatLon) -> int:
        default = self.policy.default_eta_minutes
        if self.osrm_client is None:
            return default

        attempts = self.policy.eta_max_attempts
        for attempt in range(attempts):
            try:
                return self.eta_minutes(origin, destination)
            except Exception as error:
                # any routing failure (HTTP, bad payload, OSRM error) falls back
                logger.warning(f"ETA attempt {attempt + 1}/{attempts} failed: {error}")
                if attempt < attempts - 1:
                    self.sleep(self.policy.eta_backoff_seconds * 2 ** attempt)

        logger.error(f"ETA lookup failed after {attempts} attempts, using default of {default} minutes")
        return default
