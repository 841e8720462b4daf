#Purpose: Ranking model for the ride queue (the "who rides first" layer).
#Emergencies always win. Same-organization riders rank by seniority, then wait.
#Cross-organization riders rank by wait only.
#Output: a priority number; higher is served first.

from datetime import datetime
from typing import Optional

from .policy import DispatchPolicy, default_dispatch_policy


def calculate_priority(
    class_year: int,
    wait_minutes: float,
    is_emergency: bool,
    is_same_organization: bool,
    policy: Optional[DispatchPolicy] = None,
) -> float:
    """
    emergency               -> emergency_priority
    same organization       -> class_year * class_year_weight + wait_minutes * wait_weight
    other organization      -> wait_minutes * wait_weight

    Negative waits are not clamped; callers pass 0 at request time.
    """
    policy = policy or default_dispatch_policy()

    if is_emergency:
        return policy.emergency_priority

    wait_score = wait_minutes * policy.wait_weight

    if is_same_organization:
        return class_year * policy.class_year_weight + wait_score

    return wait_score


def minutes_waited(requested_at: datetime, now: datetime) -> float:
    return (now - requested_at).total_seconds() / 60.0
