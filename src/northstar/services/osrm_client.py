#Purpose: The OSRM "adapter/client" (the Router collaborator).
#Sole responsibility: talk to OSRM via HTTP and return a RoutePlan.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route)
#error handling
#parsing the response JSON (geometry + turn-by-turn steps) into our internal shape

import logging
from typing import Dict, List, Optional, Tuple

import requests

from ..navigation.geo_utils import meters_to_miles
from ..navigation.models import Coord, InvalidRoutePlanError, RoutePlan, TurnStep
from ..navigation.nav_config import NavConfig

logger = logging.getLogger(__name__)

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]


class RoutingError(Exception):
    """The routing service failed or returned no usable route."""


def _describe_maneuver(step: Dict) -> str:
    """Readable text for a step when OSRM gives no instruction string."""
    maneuver = step.get("maneuver") or {}
    kind = maneuver.get("type", "")
    modifier = maneuver.get("modifier")
    road = step.get("name") or step.get("ref")

    if kind == "depart":
        text = f"Head {modifier}" if modifier else "Depart"
    elif kind in ("turn", "end of road", "fork", "ramp", "on ramp", "off ramp") and modifier:
        text = f"Turn {modifier}"
    elif kind == "merge":
        text = "Merge"
    elif kind == "roundabout" or kind == "rotary":
        exit_no = maneuver.get("exit")
        text = f"At the roundabout take exit {exit_no}" if exit_no else "Enter the roundabout"
    elif kind in ("continue", "new name") and road:
        text = "Continue"
    else:
        return "Continue on current road"

    if road:
        text += f" on {road}" if kind in ("depart", "continue", "new name") else f" onto {road}"
    return text


def extract_turn_steps(route: Dict) -> List[TurnStep]:
    """
    Flatten every leg's steps into TurnSteps.

    Arrival manoeuvres are dropped; distances are converted to miles and
    rounded to one decimal.
    """
    steps: List[TurnStep] = []
    for leg in route.get("legs") or []:
        for step in leg.get("steps") or []:
            maneuver = step.get("maneuver") or {}
            if maneuver.get("type") == "arrive":
                continue
            instruction = maneuver.get("instruction") or _describe_maneuver(step)
            distance = round(meters_to_miles(float(step.get("distance") or 0.0)), 1)
            steps.append(TurnStep(instruction=instruction, distance_miles=distance))
    return steps


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) → OSRM (lon,lat)
    - Return a RoutePlan
    """

    def __init__(self, config: Optional[NavConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or NavConfig()
        self.base_url = self.config.osrm_url.rstrip("/")
        self.profile = self.config.osrm_profile  # the mode of transportation
        self.timeout = self.config.timeout       # seconds to wait before giving up
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])

    def route(self, pickup: Coord, delivery: Coord) -> RoutePlan:
        """
        Calls the OSRM /route endpoint with full geometry and steps.

        Raises:
            RoutingError: network failure, non-Ok code or no routes.
        """
        coordinates = self.format_coordinates([pickup.as_tuple(), delivery.as_tuple()])
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinates}"

        try:
            response = self.session.get(
                url,
                params={
                    "overview": "full",
                    "geometries": "geojson",
                    "steps": "true",
                },
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RoutingError(f"Route calculation request failed: {e}") from e

        # validating OSRM response
        if data.get("code") != "Ok":
            raise RoutingError(f"OSRM error: {data.get('message', 'Unknown error')}")
        if not data.get("routes"):
            raise RoutingError("Route calculation failed: no routes returned.")

        route = data["routes"][0]  # take the first route (OSRM may return alternatives)

        try:
            plan = RoutePlan.from_geojson(
                route["geometry"],
                extract_turn_steps(route),
                float(route.get("distance") or 0.0),
                float(route.get("duration") or 0.0),
            )
        except (KeyError, InvalidRoutePlanError) as e:
            raise RoutingError(f"OSRM returned an unusable route: {e}") from e

        logger.info(
            f"OSRM route: {plan.total_distance_m:.0f} m, {plan.total_duration_s:.0f} s, "
            f"{len(plan.polyline)} points, {len(plan.turn_steps)} steps"
        )
        return plan
