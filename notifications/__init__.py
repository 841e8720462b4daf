"""
Notifications package.

Public API:
- SmsClient, SmsError, is_valid_e164
- RideNotifier
"""
from .sms_client import SmsClient, SmsError, is_valid_e164
from .notifier import RideNotifier

__all__ = ["SmsClient", "SmsError", "is_valid_e164", "RideNotifier"]
