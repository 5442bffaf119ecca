# navigator.py
# Public entry point for a driver's navigation session.
# Holds no math of its own: RouteTracker does the geometry, and the side
# effects (voice, position reports, activity log) go to the collaborators.

import logging
from typing import Iterable, Iterator, Optional, Tuple

from .formatting import format_distance, format_duration, format_status
from .models import (
    Announcement,
    InvalidRoutePlanError,
    PositionSample,
    ProgressView,
    RoutePlan,
    TrackingState,
    TripStatus,
)
from .nav_config import NavConfig, OFF_ROUTE_MESSAGE
from .nav_logger import NavLogger
from .route_tracker import RouteTracker
from ..services.persistence import PersistenceError

logger = logging.getLogger(__name__)


class NavigationSession:
    """
    High-level navigation facade, one per driver and route.

    Typical lifecycle:
        session = NavigationSession(plan, config, voice=announcer, reporter=reporter,
                                    route_token=token, driver_id=7)
        ok, msg = session.start()

        # GPS loop:
        view = session.update(PositionSample(lat, lon))

    Args:
        plan:        RoutePlan to follow.
        config:      Optional NavConfig; defaults to NavConfig().
        voice:       Anything with announce(Announcement); None = silent.
        reporter:    ActivityReporter (report_position / log_activity); None = no reports.
        route_token: Share token of the route, used for status updates.
        driver_id:   Assigned driver; positions are only reported when set.
        persistence: PersistenceClient for status changes.
        local_store: LocalRouteStore used when the API refuses a status change.
        nav_logger:  NavLogger override.
    """

    def __init__(
        self,
        plan: RoutePlan,
        config: Optional[NavConfig] = None,
        voice=None,
        reporter=None,
        route_token: Optional[str] = None,
        driver_id: Optional[int] = None,
        persistence=None,
        local_store=None,
        nav_logger: Optional[NavLogger] = None,
    ) -> None:
        self.config = config or NavConfig()
        self.plan = plan
        self.route_token = route_token
        self.driver_id = driver_id

        self._voice = voice
        self._reporter = reporter
        self._persistence = persistence
        self._local_store = local_store
        self._logger = nav_logger or NavLogger(self.config)

        self._tracker: Optional[RouteTracker] = None
        self._state = TrackingState()
        self._last_view: Optional[ProgressView] = None
        self._last_milestone = 0
        self._active = False

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start(self) -> Tuple[bool, str]:
        """
        Validate the plan and begin tracking.

        Returns:
            (success, message). An invalid plan never starts tracking.
        """
        try:
            self._tracker = RouteTracker(self.plan, self.config)
        except InvalidRoutePlanError as e:
            logger.error(f"Cannot start navigation: {e}")
            return False, f"Invalid route: {e}"

        self._state = self._tracker.new_state()
        self._last_milestone = 0
        self._active = True
        self._logger.save_route(self.plan, self.route_token)

        msg = f"Route ready. {format_distance(self.plan.total_distance_m)}"
        if self.plan.total_duration_s:
            msg += f", about {format_duration(self.plan.total_duration_s)}"
        msg += "."
        logger.info(f"{msg} {len(self.plan.polyline)} points, {len(self.plan.turn_steps)} steps.")
        self._say(Announcement(msg))
        return True, msg

    def stop(self) -> None:
        """End the current navigation session."""
        self._active = False
        logger.info("Navigation stopped.")

    # ------------------------------------------------------------------
    # GPS update, call on every position fix
    # ------------------------------------------------------------------

    def update(self, sample: PositionSample) -> Optional[ProgressView]:
        """
        Process one geolocation event.

        Returns:
            ProgressView, or None when the session is inactive or the
            sample was discarded as invalid.
        """
        if not self._active or self._tracker is None:
            return None

        previous = self._state
        self._state, view = self._tracker.update(sample, previous)
        if view is None:
            logger.warning(f"Discarded invalid position sample: {sample}")
            return None

        self._last_view = view
        self._logger.log_event(view, float(sample.lat), float(sample.lon))

        if view.off_route and not previous.off_route:
            logger.info(f"Off route, {view.distance_to_route_km:.2f} km from the route.")
            if self.config.announce_off_route:
                self._say(Announcement(OFF_ROUTE_MESSAGE, is_urgent=True))

        if view.announcement is not None:
            self._say(view.announcement)

        self._report(sample, view)
        return view

    # ------------------------------------------------------------------
    # Trip status
    # ------------------------------------------------------------------

    def set_status(self, status: TripStatus) -> Tuple[bool, str]:
        """
        Push a trip status change (API first, local store as fallback).

        Returns:
            (success, message)
        """
        if not self.route_token:
            return False, "Route has no token."

        position = None
        if self._state.last_known_position is not None:
            pos = self._state.last_known_position
            position = {"lat": pos.lat, "lon": pos.lon}

        saved = False
        if self._persistence is not None:
            try:
                self._persistence.update_route_status(self.route_token, status, position)
                saved = True
            except PersistenceError as e:
                logger.error(f"Error updating route via API: {e}")
        if not saved and self._local_store is not None:
            saved = self._local_store.update_status(self.route_token, status, position)

        if not saved:
            return False, "Could not update route status."

        msg = f"Status updated to {format_status(status)}"
        self._say(Announcement(msg))
        if status == TripStatus.COMPLETED:
            self.stop()
        return True, msg

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def last_view(self) -> Optional[ProgressView]:
        return self._last_view

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _say(self, announcement: Announcement) -> None:
        if self._voice is not None:
            self._voice.announce(announcement)

    def _report(self, sample: PositionSample, view: ProgressView) -> None:
        """Position every fix, activity once per new progress milestone."""
        if self._reporter is None:
            return

        if self.driver_id is not None:
            self._reporter.report_position(self.driver_id, sample)

        step = self.config.progress_report_step
        milestone = (view.progress_percent // step) * step
        if milestone > self._last_milestone:
            self._last_milestone = milestone
            self._reporter.log_activity(
                self.driver_id,
                "progress",
                f"Progress: {milestone}% of route completed",
            )


def consume(session: NavigationSession, samples: Iterable[PositionSample]) -> Iterator[ProgressView]:
    """
    Feed a stream of geolocation events into a session, one at a time.

    Stops when the session becomes inactive.
    """
    for sample in samples:
        if not session.is_active:
            break
        view = session.update(sample)
        if view is not None:
            yield view

