"""
Monitoring package.

Public API:
- Alert, AlertType, AlertService
- MonitorPolicy, default_monitor_policy
"""
from .alerts import Alert, AlertService, AlertType
from .policy import MonitorPolicy, default_monitor_policy

__all__ = ["Alert", "AlertService", "AlertType", "MonitorPolicy", "default_monitor_policy"]
