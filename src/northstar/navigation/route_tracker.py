# route_tracker.py
# Derives navigation state from a GPS fix and a fixed route polyline.
# Build one RouteTracker per route, then call update() on every GPS fix.

import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Tuple

import numpy as np

from .geo_utils import nearest_point, segment_lengths_km
from .models import (
    Announcement,
    Coord,
    InvalidRoutePlanError,
    ProgressView,
    RoutePlan,
    TrackingState,
    TurnStep,
    is_valid_position,
)
from .nav_config import NavConfig, OFF_ROUTE_MESSAGE


class RouteTracker:
    """
    Stateless progress calculator bound to a single RoutePlan.

    The tracker holds no session data: the caller owns the TrackingState and
    passes it back in on each call, so one tracker can serve any number of
    independent sessions on the same plan.

    Usage:
        tracker = RouteTracker(plan, config)
        state = tracker.new_state()

        # Inside GPS loop:
        state, view = tracker.update(position, state)
    """

    def __init__(self, plan: RoutePlan, config: Optional[NavConfig] = None) -> None:
        if plan is None or len(getattr(plan, "polyline", ())) < 2:
            raise InvalidRoutePlanError("A route plan with at least 2 polyline points is required.")
        self.plan = plan
        self.config = config or NavConfig()

        self._lats = np.array([p.lat for p in plan.polyline], dtype=float)
        self._lons = np.array([p.lon for p in plan.polyline], dtype=float)

        # _remaining_km[i] = route length from point i to the end
        segments = segment_lengths_km([p.as_tuple() for p in plan.polyline])
        self._remaining_km = np.append(np.cumsum(segments[::-1])[::-1], 0.0)

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def total_points(self) -> int:
        return len(self.plan.polyline)

    @property
    def route_length_km(self) -> float:
        return float(self._remaining_km[0])

    def new_state(self) -> TrackingState:
        return TrackingState()

    def remaining_distance_m(self, index: int) -> float:
        return float(self._remaining_km[index]) * 1000.0

    def progress_percent(self, index: int) -> int:
        return int(round(index / (self.total_points - 1) * 100))

    def direction_index(self, index: int) -> Optional[int]:
        """Proportional step lookup; None when the plan has no turn steps."""
        steps = self.plan.turn_steps
        if not steps:
            return None
        ratio = index / self.total_points
        return min(int(math.floor(ratio * len(steps))), len(steps) - 1)

    # ------------------------------------------------------------------
    # Core method, call on every GPS update
    # ------------------------------------------------------------------

    def update(
        self,
        position,
        state: Optional[TrackingState] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[TrackingState, Optional[ProgressView]]:
        """
        Compare a GPS position to the route.

        Args:
            position: Anything with .lat and .lon (Coord, PositionSample).
            state:    Previous TrackingState; a fresh one when omitted.
            now:      Clock override for the ETA.

        Returns:
            (new_state, view). A position that is not finite or out of range
            is discarded: the given state comes back with view=None.
        """
        state = state or self.new_state()
        lat = getattr(position, "lat", None)
        lon = getattr(position, "lon", None)
        if not is_valid_position(lat, lon):
            return state, None
        lat, lon = float(lat), float(lon)

        # 1. Nearest polyline point
        index, distance_km = nearest_point(lat, lon, self._lats, self._lons)

        # 2. Off-route check
        off_route = distance_km > self.config.off_route_threshold_km

        # 3. Remaining distance and 4. ETA at constant speed
        remaining_m = self.remaining_distance_m(index)
        hours = remaining_m / 1000.0 / self.config.assumed_speed_kmh
        eta = (now or datetime.now()) + timedelta(hours=hours)

        # 5. Current instruction
        direction_index = self.direction_index(index)
        step: Optional[TurnStep] = None
        if direction_index is not None:
            step = self.plan.turn_steps[direction_index]

        # 6. Announcement gate, forward only: jitter back onto an
        # announced step stays silent
        announcement = None
        last_announced = state.last_announced_step
        if (
            step is not None
            and step.distance_miles < self.config.announce_distance_miles
            and direction_index > last_announced
        ):
            announcement = Announcement(step.instruction)
            last_announced = direction_index

        new_state = replace(
            state,
            last_known_position=Coord(lat, lon),
            closest_index=index,
            off_route=off_route,
            last_announced_step=last_announced,
        )

        if off_route:
            message = OFF_ROUTE_MESSAGE
        else:
            message = step.instruction if step else "Continue to destination."

        upcoming = []
        if direction_index is not None:
            upcoming = list(self.plan.turn_steps[direction_index + 1:])

        view = ProgressView(
            remaining_distance_m=remaining_m,
            eta=eta,
            current_instruction=step.instruction if step else None,
            distance_to_next_turn_miles=step.distance_miles if step else None,
            off_route=off_route,
            progress_percent=self.progress_percent(index),
            closest_index=index,
            direction_index=direction_index,
            distance_to_route_km=distance_km,
            announcement=announcement,
            message=message,
            upcoming=upcoming,
        )
        return new_state, view


def update(
    position,
    plan: RoutePlan,
    state: Optional[TrackingState] = None,
    config: Optional[NavConfig] = None,
    now: Optional[datetime] = None,
) -> Tuple[TrackingState, Optional[ProgressView]]:
    """One-shot form of RouteTracker.update() for callers holding only a plan."""
    return RouteTracker(plan, config).update(position, state, now=now)
