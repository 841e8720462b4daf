"""
Purpose: Operator alerts (the admin feed).
What it does:
- Defines the Alert record and its types
- Creates alerts best-effort: a failed write is logged, never raised,
  so it cannot undo the dispatch/monitor step that raised the alert
- Lists, marks read and streams alerts per organization
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from storage.memory import ALERTS, Change, NotFoundError, Subscription

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    DRIVER_ABUSE = "driver_abuse"
    PROLONGED_INACTIVITY = "prolonged_inactivity"
    EMERGENCY_REQUEST = "emergency_request"
    EMERGENCY_UNASSIGNED = "emergency_unassigned"
    DISPATCH_FAILURE = "dispatch_failure"


@dataclass(frozen=True)
class Alert:
    id: str
    organization_id: str
    type: AlertType
    message: str
    created_at: datetime
    driver_id: Optional[str] = None
    ride_id: Optional[str] = None
    is_read: bool = False

    @staticmethod
    def new(
        organization_id: str,
        alert_type: AlertType,
        message: str,
        *,
        driver_id: Optional[str] = None,
        ride_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Alert:
        return Alert(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            type=alert_type,
            message=message,
            created_at=now or datetime.now(timezone.utc),
            driver_id=driver_id,
            ride_id=ride_id,
        )


class AlertService:
    def __init__(self, store):
        self.store = store

    def create(
        self,
        organization_id: str,
        alert_type: AlertType,
        message: str,
        *,
        driver_id: Optional[str] = None,
        ride_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Alert]:
        """
        Returns the stored alert, or None if it could not be written.
        """
        alert = Alert.new(organization_id, alert_type, message, driver_id=driver_id, ride_id=ride_id, now=now)
        try:
            self.store.save_alert(alert)
        except Exception:
            logger.exception(f"Failed to write {alert_type.value} alert for organization {organization_id}")
            return None

        logger.info(f"Alert {alert.id} ({alert_type.value}) raised for organization {organization_id}")
        return alert

    def mark_read(self, alert_id: str) -> Alert:
        alert = self.store.get_alert(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        if alert.is_read:
            return alert

        updated = replace(alert, is_read=True)
        self.store.save_alert(updated)
        return updated

    def unread(self, organization_id: str) -> List[Alert]:
        return self.store.alerts_for_organization(organization_id, unread_only=True)

    def find(
        self,
        organization_id: str,
        alert_type: Optional[AlertType] = None,
        *,
        ride_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> List[Alert]:
        alerts = self.store.alerts_for_organization(organization_id)
        if alert_type is not None:
            alerts = [alert for alert in alerts if alert.type == alert_type]
        if ride_id is not None:
            alerts = [alert for alert in alerts if alert.ride_id == ride_id]
        if driver_id is not None:
            alerts = [alert for alert in alerts if alert.driver_id == driver_id]
        return alerts

    def subscribe_feed(self, organization_id: str, callback: Callable[[List[Alert]], None]) -> Subscription:
        """
        Pushes the organization's alerts (newest first) now and after every change.
        """
        def on_change(change: Change) -> None:
            if change.after.organization_id == organization_id:
                callback(self._feed(organization_id))

        subscription = self.store.subscribe(on_change, collection=ALERTS)
        callback(self._feed(organization_id))
        return subscription

    def _feed(self, organization_id: str) -> List[Alert]:
        return list(reversed(self.store.alerts_for_organization(organization_id)))
