"""
Purpose: Riders, drivers and events as the dispatch engine sees them.
What it does:
Defines User and Event records. Both are owned by the surrounding app; the
dispatch engine only reads them (name, phone, organization, class year,
event status and which organizations may request rides).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Union


class UserRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class OrganizationScope(str, Enum):
    """
    Marker for events open to riders from every organization.
    """
    ALL = "ALL"


ALL_ORGANIZATIONS = OrganizationScope.ALL


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class User:
    """
    A rider or a designated driver. class_year runs 1 (freshman) to 4 (senior).
    """
    id: str
    name: str
    phone: str
    organization_id: str
    class_year: int
    role: UserRole = UserRole.MEMBER

    def __post_init__(self):
        if not 1 <= self.class_year <= 4:
            raise ValueError(f"class_year must be between 1 and 4, got {self.class_year}")


@dataclass(frozen=True)
class Event:
    """
    A scheduled party hosted by one organization.
    allowed_organization_ids is either a set of ids or ALL_ORGANIZATIONS.
    """
    id: str
    name: str
    organization_id: str
    status: EventStatus = EventStatus.SCHEDULED
    allowed_organization_ids: Union[FrozenSet[str], OrganizationScope] = field(default_factory=frozenset)
    location: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.ACTIVE

    def allows_organization(self, organization_id: str) -> bool:
        """
        The host organization is always allowed.
        """
        if organization_id == self.organization_id:
            return True
        if self.allowed_organization_ids == ALL_ORGANIZATIONS:
            return True
        return organization_id in self.allowed_organization_ids
