#Expose the high-level pipeline pieces:
#Request gates (hard rules)
#Priority scoring
#Dispatcher orchestrator (the "one call" entry point)

from .candidate_filter import RideRequestRejected, validate_ride_request
from .scoring import calculate_priority
from .dispatcher import Dispatcher #assign a queued ride to the least-loaded DD

__all__ = [
    "RideRequestRejected",
    "validate_ride_request",
    "calculate_priority",
    "Dispatcher",
]
