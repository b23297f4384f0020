"""
Journey planning enumerations.

Values are stored lower-case in the database.
"""

import enum


def enum_values(enum_cls):
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]


class RouteType(str, enum.Enum):
    """Mode of transport served by a route."""
    TAXI = "taxi"
    BUS = "bus"
    MIXED = "mixed"
    WALKING = "walking"


class JourneyType(str, enum.Enum):
    """
    Outcome of planning a journey.

    DIRECT: a single route connects origin and destination
    CONNECTED: two or more routes chained through intermediate ranks
    NO_ROUTE_FOUND: nothing within the hop bound, kept as a record
    """
    DIRECT = "direct"
    CONNECTED = "connected"
    NO_ROUTE_FOUND = "no_route_found"


class JourneyStatus(str, enum.Enum):
    """
    Journey lifecycle status.

    PLANNED -> ACTIVE -> COMPLETED
    PLANNED -> CANCELLED, ACTIVE -> CANCELLED
    """
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransitionAction(str, enum.Enum):
    """Caller-facing journey actions."""
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
