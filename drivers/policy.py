"""
Purpose: Central configuration for driver selection and wait estimates.
What it does:

Stores the tunable numbers used when picking a DD and quoting waits:

AVERAGE_TRIP_MINUTES = 15   (added per assigned/enroute ride in a DD's backlog)
DEFAULT_ETA_MINUTES = 15    (pickup ETA quoted when routing is unavailable)

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class DriverPolicy:
    """
    Central configuration for driver selection and ETA thresholds.
    """

    # --- Wait estimate ---
    # Flat per-ride cost used to turn a DD's in-flight backlog into minutes.
    average_trip_minutes: int = 15

    # --- ETA ---
    # Pickup ETA quoted to the rider when the routing backend is down.
    default_eta_minutes: int = 15

    # How many times to ask the routing backend before falling back.
    eta_max_attempts: int = 2
    eta_backoff_seconds: float = 0.5

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.average_trip_minutes <= 0:
            raise ValueError("average_trip_minutes must be > 0")

        if self.default_eta_minutes <= 0:
            raise ValueError("default_eta_minutes must be > 0")

        if self.eta_max_attempts < 1:
            raise ValueError("eta_max_attempts must be >= 1")

        if self.eta_backoff_seconds < 0:
            raise ValueError("eta_backoff_seconds must be >= 0")


def default_driver_policy() -> DriverPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DriverPolicy()
    p.validate()
    return p
