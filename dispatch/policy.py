"""
Purpose: Central configuration for ride priority and dispatch retries.
What it does:

Stores the tunable numbers behind queue ordering and dispatch:

EMERGENCY_PRIORITY = 9999
CLASS_YEAR_WEIGHT = 10      (same-organization riders only)
WAIT_WEIGHT = 0.5           (per minute waited)

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for priority scoring and the dispatcher.
    """

    # --- Priority ---
    # Emergencies always sort above every class-year/wait score.
    emergency_priority: float = 9999.0
    class_year_weight: float = 10.0
    wait_weight: float = 0.5

    # --- Dispatcher ---
    # Optimistic transaction attempts before an assignment gives up.
    max_assign_attempts: int = 3

    # Consecutive "event not found" failures before operators are alerted.
    missing_event_alert_after: int = 3

    # --- Emergencies ---
    # An emergency ride still queued after this long raises a second alert.
    emergency_unassigned_seconds: int = 120

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.emergency_priority <= self.class_year_weight * 4:
            raise ValueError("emergency_priority must outrank every class-year score")

        if self.wait_weight < 0 or self.class_year_weight < 0:
            raise ValueError("priority weights must be >= 0")

        if self.max_assign_attempts < 1:
            raise ValueError("max_assign_attempts must be >= 1")

        if self.missing_event_alert_after < 1:
            raise ValueError("missing_event_alert_after must be >= 1")

        if self.emergency_unassigned_seconds <= 0:
            raise ValueError("emergency_unassigned_seconds must be > 0")


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p
