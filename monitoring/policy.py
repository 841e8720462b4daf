"""
Purpose: Central configuration for DD activity monitoring.
What it does:

Stores the thresholds the activity monitor alerts on:

TOGGLE_THRESHOLD = 5                  (alert when inactive toggles exceed this)
PROLONGED_INACTIVE_MINUTES = 15       (alert when inactive longer than this)
TOGGLE_RESET_WINDOW_MINUTES = 30      (toggle counter resets after this much quiet)
INACTIVITY_ALERT_SUPPRESSION_MINUTES = 30

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class MonitorPolicy:
    toggle_threshold: int = 5
    prolonged_inactive_minutes: int = 15
    toggle_reset_window_minutes: int = 30
    inactivity_alert_suppression_minutes: int = 30

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.toggle_threshold < 1:
            raise ValueError("toggle_threshold must be >= 1")

        if self.prolonged_inactive_minutes <= 0:
            raise ValueError("prolonged_inactive_minutes must be > 0")

        if self.toggle_reset_window_minutes <= 0:
            raise ValueError("toggle_reset_window_minutes must be > 0")

        if self.inactivity_alert_suppression_minutes < 0:
            raise ValueError("inactivity_alert_suppression_minutes must be >= 0")


def default_monitor_policy() -> MonitorPolicy:
    """
    Convenience factory for the default policy.
    """
    p = MonitorPolicy()
    p.validate()
    return p
