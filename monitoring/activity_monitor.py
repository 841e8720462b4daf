"""
Purpose: DD activity monitor.
What it does:
Watches every change to a DD assignment (and runs a periodic sweep) while the
DD's event is active, and raises operator alerts for:
- toggle abuse: going inactive more than TOGGLE_THRESHOLD times in a window
- prolonged inactivity: inactive for more than PROLONGED_INACTIVE_MINUTES
It also resets the toggle counter once a window has gone quiet.

Bookkeeping (alert flags, counter resets) is written back in one transaction
per check. Alerts are raised only after that write commits, so a retried
check never raises the same alert twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from directory.models import Event, EventStatus
from dispatch.state_machines.driver_state import reset_toggle_window
from drivers.models import DDAssignment
from storage.memory import NotFoundError, run_in_transaction
from .alerts import Alert, AlertService, AlertType
from .policy import MonitorPolicy, default_monitor_policy

logger = logging.getLogger(__name__)

# (alert type, driver id, number reported in the message)
Finding = Tuple[AlertType, str, int]


@dataclass(frozen=True)
class MonitoringStats:
    inactive_toggles: int
    minutes_inactive: int
    is_above_toggle_threshold: bool
    is_above_inactivity_threshold: bool


class DDActivityMonitor:
    def __init__(self, store, alerts: AlertService, policy: Optional[MonitorPolicy] = None):
        self.store = store
        self.alerts = alerts
        self.policy = policy or default_monitor_policy()

    # --- Triggers ---

    def on_assignment_updated(self, before: DDAssignment, after: DDAssignment, now: Optional[datetime] = None) -> List[Alert]:
        now = now or datetime.now(timezone.utc)

        event = self.store.get_event(after.event_id)
        if event is None:
            logger.error(f"Event {after.event_id} not found; skipping activity checks for {after.driver_id}")
            return []
        if not event.is_active:
            return []

        toggled_inactive = before is not None and before.is_active and not after.is_active
        return self._check(event, after.driver_id, now, toggled_inactive)

    def sweep(self, now: Optional[datetime] = None) -> List[Alert]:
        """
        Periodic pass over every DD of every active event. Catches inactivity
        that no write would reveal, and expires quiet toggle windows.
        """
        now = now or datetime.now(timezone.utc)
        raised: List[Alert] = []

        for event in self.store.events(status=EventStatus.ACTIVE):
            for assignment in self.store.assignments_for_event(event.id):
                raised.extend(self._check(event, assignment.driver_id, now, toggled_inactive=False))

        return raised

    # --- Admin ---

    def monitoring_stats(self, event_id: str, driver_id: str, now: Optional[datetime] = None) -> MonitoringStats:
        now = now or datetime.now(timezone.utc)
        assignment = self._get(event_id, driver_id)
        minutes = self.minutes_inactive(assignment, now)
        return MonitoringStats(
            inactive_toggles=assignment.inactive_toggle_count,
            minutes_inactive=int(minutes),
            is_above_toggle_threshold=assignment.inactive_toggle_count > self.policy.toggle_threshold,
            is_above_inactivity_threshold=minutes > self.policy.prolonged_inactive_minutes,
        )

    def reset_toggle_counter(self, event_id: str, driver_id: str) -> DDAssignment:
        def apply(txn):
            assignment = txn.get_assignment(event_id, driver_id)
            if assignment is None:
                raise NotFoundError(f"Driver {driver_id} is not assigned to event {event_id}")
            updated = reset_toggle_window(assignment)
            if updated != assignment:
                txn.save_assignment(updated)
            return updated

        updated = run_in_transaction(self.store, apply)
        logger.info(f"Toggle counter reset for {driver_id} at event {event_id}")
        return updated

    def reset_all_toggle_counters(self, event_id: str) -> int:
        """
        Returns how many drivers had something to reset.
        """
        reset = 0
        for assignment in self.store.assignments_for_event(event_id):
            if assignment.inactive_toggle_count or assignment.abuse_alert_sent:
                self.reset_toggle_counter(event_id, assignment.driver_id)
                reset += 1
        return reset

    # --- Rules ---

    def minutes_inactive(self, assignment: DDAssignment, now: datetime) -> float:
        if assignment.is_active:
            return 0.0
        return (now - assignment.last_inactive_at).total_seconds() / 60.0

    def _inactivity_alert_suppressed(self, assignment: DDAssignment, now: datetime) -> bool:
        last_alert = assignment.last_inactivity_alert_at
        if last_alert is None or last_alert < assignment.last_inactive_at:
            return False
        return now - last_alert < timedelta(minutes=self.policy.inactivity_alert_suppression_minutes)

    def _toggle_window_expired(self, assignment: DDAssignment, now: datetime) -> bool:
        if not (assignment.inactive_toggle_count or assignment.abuse_alert_sent):
            return False
        if assignment.last_inactive_toggle_at is None:
            return False
        return now - assignment.last_inactive_toggle_at > timedelta(minutes=self.policy.toggle_reset_window_minutes)

    def _evaluate(self, assignment: DDAssignment, now: datetime, toggled_inactive: bool) -> Tuple[DDAssignment, List[Finding]]:
        findings: List[Finding] = []
        updated = assignment

        count = assignment.inactive_toggle_count
        if toggled_inactive and count > self.policy.toggle_threshold and not assignment.abuse_alert_sent:
            findings.append((AlertType.DRIVER_ABUSE, assignment.driver_id, count))
            updated = replace(updated, abuse_alert_sent=True)

        minutes = self.minutes_inactive(assignment, now)
        # a never-activated DD is not idling on shift
        if (
            assignment.has_gone_inactive
            and minutes > self.policy.prolonged_inactive_minutes
            and not self._inactivity_alert_suppressed(assignment, now)
        ):
            findings.append((AlertType.PROLONGED_INACTIVITY, assignment.driver_id, int(minutes + 0.5)))
            updated = replace(updated, last_inactivity_alert_at=now)

        if self._toggle_window_expired(assignment, now):
            updated = reset_toggle_window(updated)
            logger.info(f"Toggle window expired for {assignment.driver_id}, counter reset")

        return updated, findings

    def _check(self, event: Event, driver_id: str, now: datetime, toggled_inactive: bool) -> List[Alert]:
        def apply(txn):
            # always judge the latest stored state, not the (possibly stale) change
            current = txn.get_assignment(event.id, driver_id)
            if current is None:
                return []
            updated, findings = self._evaluate(current, now, toggled_inactive)
            if updated != current:
                txn.save_assignment(updated)
            return findings

        findings = run_in_transaction(self.store, apply)
        return [alert for alert in (self._raise(event, finding, now) for finding in findings) if alert is not None]

    def _raise(self, event: Event, finding: Finding, now: datetime) -> Optional[Alert]:
        alert_type, driver_id, amount = finding
        user = self.store.get_user(driver_id)
        name = user.name if user else driver_id

        if alert_type == AlertType.DRIVER_ABUSE:
            message = (
                f"{name} has toggled inactive {amount} times in the last "
                f"{self.policy.toggle_reset_window_minutes} minutes. This may indicate an issue."
            )
        else:
            message = f"{name} has been inactive for {amount} minutes during an active shift."

        logger.warning(f"{alert_type.value} for {driver_id} at event {event.id}")
        return self.alerts.create(event.organization_id, alert_type, message, driver_id=driver_id, now=now)

    def _get(self, event_id: str, driver_id: str) -> DDAssignment:
        assignment = self.store.get_assignment(event_id, driver_id)
        if assignment is None:
            raise NotFoundError(f"Driver {driver_id} is not assigned to event {event_id}")
        return assignment
