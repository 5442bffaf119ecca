"""Route progress tracking: nearest point, off-route, remaining distance, ETA and turn selection."""

from .models import (
    Announcement,
    Coord,
    InvalidRoutePlanError,
    PositionSample,
    ProgressView,
    RoutePlan,
    TrackingState,
    TurnStep,
)
from .nav_config import NavConfig
from .route_tracker import RouteTracker, update

__all__ = [
    "Announcement",
    "Coord",
    "InvalidRoutePlanError",
    "NavConfig",
    "PositionSample",
    "ProgressView",
    "RoutePlan",
    "RouteTracker",
    "TrackingState",
    "TurnStep",
    "update",
]
