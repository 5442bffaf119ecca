#Purpose: truck restriction check for a pickup -> delivery pair.
#Asks OpenRouteService's heavy-goods-vehicle profile for a route with the
#truck's height and weight; a route carrying truck restriction warnings is
#not truck-safe.

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from ..navigation.models import Coord, TruckSpecs
from ..navigation.nav_config import NavConfig

logger = logging.getLogger(__name__)


class TruckValidationError(Exception):
    """The validation service could not be reached or answered garbage."""


@dataclass(frozen=True)
class TruckValidation:
    valid: bool
    warnings: List[str] = field(default_factory=list)


class TruckRouteValidator:

    def __init__(self, config: Optional[NavConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or NavConfig()
        self.session = session or requests.Session()

        if not self.config.ors_api_key:
            raise ValueError("OpenRouteService key not set. Please set ORS_API_KEY in the .env file.")

    def validate(self, pickup: Coord, delivery: Coord, truck: TruckSpecs) -> TruckValidation:
        url = f"{self.config.ors_url.rstrip('/')}/v2/directions/driving-hgv"
        params = {
            "api_key": self.config.ors_api_key,
            "start": f"{pickup.lon},{pickup.lat}",
            "end": f"{delivery.lon},{delivery.lat}",
            "height": round(truck.height_m, 3),   # feet -> metres
            "weight": round(truck.weight_kg, 1),  # lbs -> kg
        }
        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise TruckValidationError(f"Truck route validation request failed: {e}") from e

        routes = data.get("routes") or data.get("features")
        if not routes:
            raise TruckValidationError("Truck route validation returned no route.")

        warnings = _truck_warnings(routes[0])
        if warnings:
            logger.warning(f"Truck restrictions on route: {warnings}")
        return TruckValidation(valid=not warnings, warnings=warnings)


def _truck_warnings(route: dict) -> List[str]:
    # /directions returns routes[...].warnings, the geojson flavour nests it in properties
    raw = route.get("warnings")
    if raw is None:
        raw = (route.get("properties") or {}).get("warnings")
    if not raw:
        return []
    if isinstance(raw, dict):
        return [str(v) for k, v in raw.items() if k == "truck_restrictions"]
    return [
        str(w.get("message", w)) if isinstance(w, dict) else str(w)
        for w in raw
        if "truck" in str(w).lower()
    ]
