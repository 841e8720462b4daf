"""
Directory domain package.

Public API:
- User, UserRole
- Event, EventStatus, ALL_ORGANIZATIONS
"""
from .models import ALL_ORGANIZATIONS, Event, EventStatus, User, UserRole

__all__ = ["ALL_ORGANIZATIONS", "Event", "EventStatus", "User", "UserRole"]
