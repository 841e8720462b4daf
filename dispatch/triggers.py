"""
Purpose: Wires store changes to the handlers that react to them.
What it does:
- Subscribes to every committed store change and queues it
- pump() drains the queue in commit order:
    ride created                -> emergency handling, then dispatch
    ride queued -> assigned     -> text the DD
    ride assigned -> enroute    -> text the rider
    assignment changed          -> activity monitor
    assignment inactive->active -> dispatch the event's backlog
- tick() is the periodic job: monitor sweep, unassigned-emergency check,
  backlog retry for every active event

Handlers re-read current state before acting, so a change delivered twice or
late is harmless. If a primary step (dispatch) fails, the change is put back
at the head of the queue and the error is re-raised for the caller to retry.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, Optional

from directory.models import EventStatus
from drivers.models import DDAssignment
from drivers.policy import DriverPolicy, default_driver_policy
from drivers.selection import WaitTimeEstimator
from drivers.service import DriverAvailabilityService
from monitoring.activity_monitor import DDActivityMonitor
from monitoring.alerts import AlertService
from monitoring.policy import MonitorPolicy
from notifications.notifier import RideNotifier
from rides.lifecycle import RideLifecycle
from rides.models import Ride, RideStatus
from rides.queue import QueuePositionService
from rides.service import RideRequestService
from storage.memory import ASSIGNMENTS, RIDES, Change, InMemoryStore
from .dispatcher import Dispatcher
from .emergency import EmergencyHandler
from .policy import DispatchPolicy, default_dispatch_policy

logger = logging.getLogger(__name__)


class TriggerRouter:
    def __init__(
        self,
        store,
        dispatcher: Dispatcher,
        monitor: DDActivityMonitor,
        emergency: EmergencyHandler,
        notifier: Optional[RideNotifier] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.monitor = monitor
        self.emergency = emergency
        self.notifier = notifier

        self._pending: Deque[Change] = deque()
        self._subscription = store.subscribe(self._pending.append)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        self._subscription.cancel()

    def pump(self, now: Optional[datetime] = None) -> int:
        """
        Handle queued changes (including ones the handlers themselves cause)
        until none are left. Returns how many were handled.
        """
        handled = 0
        while self._pending:
            change = self._pending.popleft()
            try:
                self.handle(change, now)
            except Exception:
                self._pending.appendleft(change)
                raise
            handled += 1
        return handled

    def tick(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)

        try:
            self.monitor.sweep(now)
        except Exception:
            logger.exception("Activity sweep failed")

        try:
            self.emergency.check_unassigned(now)
        except Exception:
            logger.exception("Unassigned emergency check failed")

        for event in self.store.events(status=EventStatus.ACTIVE):
            try:
                self.dispatcher.assign_backlog(event.id, now)
            except Exception:
                # queued rides are picked up again on the next tick
                logger.exception(f"Backlog dispatch failed for event {event.id}")

        return self.pump(now)

    # --- Routing ---

    def handle(self, change: Change, now: Optional[datetime] = None) -> None:
        if change.collection == RIDES:
            if change.before is None:
                self.on_ride_created(change.after, now)
            else:
                self.on_ride_updated(change.before, change.after, now)
        elif change.collection == ASSIGNMENTS and change.before is not None:
            self.on_assignment_updated(change.before, change.after, now)

    def on_ride_created(self, ride: Ride, now: Optional[datetime] = None) -> None:
        if ride.is_emergency:
            self.emergency.handle_new_ride(ride.id, now)
        self.dispatcher.assign(ride.id, now)

    def on_ride_updated(self, before: Ride, after: Ride, now: Optional[datetime] = None) -> None:
        if self.notifier is None:
            return
        if before.status == RideStatus.QUEUED and after.status == RideStatus.ASSIGNED:
            self.notifier.notify_driver_assigned(after)
        elif before.status == RideStatus.ASSIGNED and after.status == RideStatus.ENROUTE:
            self.notifier.notify_rider_enroute(after)

    def on_assignment_updated(self, before: DDAssignment, after: DDAssignment, now: Optional[datetime] = None) -> None:
        try:
            self.monitor.on_assignment_updated(before, after, now)
        except Exception:
            # monitoring never blocks dispatch
            logger.exception(f"Activity check failed for {after.driver_id} at event {after.event_id}")

        if after.is_active and not before.is_active:
            self.dispatcher.assign_backlog(after.event_id, now)


@dataclass
class DispatchSystem:
    """
    Every service of the dispatch engine, wired to one store.
    """
    store: InMemoryStore
    alerts: AlertService
    queue: QueuePositionService
    requests: RideRequestService
    lifecycle: RideLifecycle
    drivers: DriverAvailabilityService
    dispatcher: Dispatcher
    emergency: EmergencyHandler
    monitor: DDActivityMonitor
    router: TriggerRouter
    notifier: Optional[RideNotifier] = None

    def shutdown(self) -> None:
        self.router.close()
        if self.notifier is not None:
            self.notifier.shutdown()


def build_dispatch_system(
    store: Optional[InMemoryStore] = None,
    *,
    sms_client=None,
    eta_service=None,
    executor: Optional[Executor] = None,
    dispatch_policy: Optional[DispatchPolicy] = None,
    driver_policy: Optional[DriverPolicy] = None,
    monitor_policy: Optional[MonitorPolicy] = None,
) -> DispatchSystem:
    store = store or InMemoryStore()
    dispatch_policy = dispatch_policy or default_dispatch_policy()
    driver_policy = driver_policy or default_driver_policy()

    alerts = AlertService(store)
    estimator = WaitTimeEstimator(store, driver_policy)
    dispatcher = Dispatcher(store, estimator, alerts, dispatch_policy)
    emergency = EmergencyHandler(store, alerts, dispatch_policy)
    monitor = DDActivityMonitor(store, alerts, monitor_policy)
    notifier = RideNotifier(sms_client, executor) if sms_client is not None else None

    return DispatchSystem(
        store=store,
        alerts=alerts,
        queue=QueuePositionService(store, driver_policy),
        requests=RideRequestService(store, dispatch_policy),
        lifecycle=RideLifecycle(store, eta_service, driver_policy),
        drivers=DriverAvailabilityService(store, estimator),
        dispatcher=dispatcher,
        emergency=emergency,
        monitor=monitor,
        router=TriggerRouter(store, dispatcher, monitor, emergency, notifier),
        notifier=notifier,
    )
