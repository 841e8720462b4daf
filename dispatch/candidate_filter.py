#Purpose: Hard eligibility gates for a ride request (rule gates).
#Runs before a ride is created or scored.
#Responsibilities:
#event is live
#rider's organization is invited
#one active ride per rider
#Output: nothing on success, RideRequestRejected otherwise.

from typing import List

from directory.models import Event, User


class RideRequestRejected(Exception):
    """Raised when a rider is not allowed to request a ride right now."""
    pass


def is_organization_allowed(event: Event, organization_id: str) -> bool:
    return event.allows_organization(organization_id)


def validate_ride_request(rider: User, event: Event, active_rides: List) -> None:
    """
    active_rides: the rider's queued/assigned/enroute rides, if any.
    """
    if not event.is_active:
        raise RideRequestRejected(f"Event {event.id} is not accepting rides (status: {event.status.value})")

    if not is_organization_allowed(event, rider.organization_id):
        raise RideRequestRejected(
            f"Rider {rider.id} from organization {rider.organization_id} is not invited to event {event.id}"
        )

    if active_rides:
        raise RideRequestRejected(f"Rider {rider.id} already has an active ride ({active_rides[0].id})")
