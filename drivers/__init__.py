"""
Drivers domain package.

Public API:
- DDAssignment, Active, Inactive
- DriverPolicy, default_driver_policy
"""
from .models import Active, DDAssignment, Inactive
from .policy import DriverPolicy, default_driver_policy

__all__ = ["Active", "DDAssignment", "Inactive", "DriverPolicy", "default_driver_policy"]
