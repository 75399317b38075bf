"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    CREATED = "created"
    STARTED = "started"
    ENDED = "ended"
    CANCEL = "cancel"


# State machine: maps current status -> set of valid next statuses.
# Acceptance and "started" are the same transition.
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.CREATED: {RideStatus.STARTED, RideStatus.CANCEL},
    RideStatus.STARTED: {RideStatus.ENDED, RideStatus.CANCEL},
    RideStatus.ENDED: set(),
    RideStatus.CANCEL: set(),
}

# Rides a customer still cares about when no status filter is given
OPEN_STATUSES = frozenset({RideStatus.CREATED, RideStatus.STARTED})


class TravelMode(str, enum.Enum):
    DRIVING = "driving"
    WALKING = "walking"
    BICYCLING = "bicycling"
    TRANSIT = "transit"


VEHICLE_TRAVEL_MODES: dict[str, TravelMode] = {
    "car": TravelMode.DRIVING,
    "driving": TravelMode.DRIVING,
    "walk": TravelMode.WALKING,
    "walking": TravelMode.WALKING,
    "bicycle": TravelMode.BICYCLING,
    "bicycling": TravelMode.BICYCLING,
    "bike": TravelMode.BICYCLING,
    "transit": TravelMode.TRANSIT,
    "bus": TravelMode.TRANSIT,
    "train": TravelMode.TRANSIT,
}


def travel_mode_for(vehicle_type: str | None) -> TravelMode:
    """Map a client vehicle type to a routing travel mode (default driving)."""
    if not vehicle_type:
        return TravelMode.DRIVING
    return VEHICLE_TRAVEL_MODES.get(vehicle_type.lower(), TravelMode.DRIVING)
