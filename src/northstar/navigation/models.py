# models.py
# Shared data structures and enums used across all modules.

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from shapely.errors import ShapelyError
from shapely.geometry import LineString, shape


class InvalidRoutePlanError(ValueError):
    """Raised when a route plan cannot be tracked (degenerate polyline)."""


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


def is_valid_position(lat, lon) -> bool:
    """True when lat/lon are finite numbers inside geographic ranges."""
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


@dataclass(frozen=True)
class PositionSample:
    """A single fix from the geolocation source."""
    lat: float
    lon: float
    accuracy: Optional[float] = None   # metres
    speed: Optional[float] = None      # km/h
    heading: Optional[float] = None    # degrees
    timestamp: Optional[datetime] = None

    @property
    def coord(self) -> Coord:
        return Coord(self.lat, self.lon)


# ---------------------------------------------------------------------------
# Route plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TurnStep:
    """A single navigation instruction in a route."""
    instruction: str
    distance_miles: float        # stated distance to the manoeuvre

    def to_dict(self) -> dict:
        return {"instruction": self.instruction, "distance": self.distance_miles}

    @staticmethod
    def from_dict(d: dict) -> "TurnStep":
        return TurnStep(
            instruction=d.get("instruction") or "Continue on current road",
            distance_miles=float(d.get("distance") or 0.0),
        )


@dataclass(frozen=True)
class RoutePlan:
    """
    Immutable result of a routing request.

    The polyline is stored in (lat, lon) order. Turn steps are aligned with
    the polyline proportionally, not index for index.
    """
    polyline: Tuple[Coord, ...]
    turn_steps: Tuple[TurnStep, ...] = ()
    total_distance_m: float = 0.0
    total_duration_s: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "polyline", tuple(self.polyline))
        object.__setattr__(self, "turn_steps", tuple(self.turn_steps))
        if len(self.polyline) < 2:
            raise InvalidRoutePlanError(
                f"Route polyline needs at least 2 points, got {len(self.polyline)}."
            )
        for i, point in enumerate(self.polyline):
            if not is_valid_position(point.lat, point.lon):
                raise InvalidRoutePlanError(f"Invalid polyline point #{i}: {point}")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @staticmethod
    def from_geojson(
        geometry: dict,
        turn_steps: Sequence[TurnStep] = (),
        total_distance_m: float = 0.0,
        total_duration_s: float = 0.0,
    ) -> "RoutePlan":
        """Build a plan from a GeoJSON LineString ([lon, lat] order)."""
        try:
            line = shape(geometry)
        except (AttributeError, KeyError, TypeError, ValueError, ShapelyError) as e:
            raise InvalidRoutePlanError(f"Unreadable route geometry: {e}") from e
        if line.geom_type != "LineString":
            raise InvalidRoutePlanError(f"Expected a LineString, got {line.geom_type}.")
        polyline = [Coord(lat, lon) for lon, lat, *_ in line.coords]
        return RoutePlan(polyline, tuple(turn_steps), total_distance_m, total_duration_s)

    @staticmethod
    def straight_line(pickup: Coord, delivery: Coord) -> "RoutePlan":
        """Fallback plan: a direct line with no turn instructions."""
        return RoutePlan((pickup, delivery))

    def to_geojson(self) -> dict:
        line = LineString([(p.lon, p.lat) for p in self.polyline])
        return {"type": "LineString", "coordinates": [list(c) for c in line.coords]}

    def to_dict(self) -> dict:
        return {
            "distance": self.total_distance_m,
            "duration": self.total_duration_s,
            "geometry": self.to_geojson(),
            "directions": [s.to_dict() for s in self.turn_steps],
        }

    @staticmethod
    def from_dict(d: dict) -> "RoutePlan":
        steps = [TurnStep.from_dict(s) for s in d.get("directions") or []]
        return RoutePlan.from_geojson(
            d["geometry"],
            steps,
            float(d.get("distance") or 0.0),
            float(d.get("duration") or 0.0),
        )


# ---------------------------------------------------------------------------
# Tracking state and output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrackingState:
    """Per-session tracker state. A new instance is returned on every update."""
    last_known_position: Optional[Coord] = None
    closest_index: int = 0
    off_route: bool = False
    last_announced_step: int = -1


@dataclass(frozen=True)
class Announcement:
    """A message for the voice sink."""
    text: str
    is_urgent: bool = False


@dataclass
class ProgressView:
    """Returned by RouteTracker.update() for every accepted GPS sample."""
    remaining_distance_m: float
    eta: datetime
    current_instruction: Optional[str]          # None when the plan has no turns
    distance_to_next_turn_miles: Optional[float]
    off_route: bool
    progress_percent: int
    closest_index: int
    direction_index: Optional[int] = None
    distance_to_route_km: float = 0.0
    announcement: Optional[Announcement] = None
    message: str = ""
    upcoming: List[TurnStep] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Dispatch records
# ---------------------------------------------------------------------------

class TripStatus(Enum):
    PENDING     = "pending"
    IN_PROGRESS = "in_progress"
    LOADING     = "loading"
    UNLOADING   = "unloading"
    COMPLETED   = "completed"
    CANCELLED   = "cancelled"


class DriverStatus(Enum):
    AVAILABLE = "available"
    ON_DUTY   = "on-duty"
    OFF_DUTY  = "off-duty"
    ON_BREAK  = "on-break"


@dataclass(frozen=True)
class TruckSpecs:
    height_ft: float = 13.6
    weight_lbs: float = 80000.0

    @property
    def height_m(self) -> float:
        return self.height_ft * 0.3048

    @property
    def weight_kg(self) -> float:
        return self.weight_lbs * 0.453592


@dataclass(frozen=True)
class Place:
    """A geocoded address."""
    address: str
    coord: Coord
    display_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "lat": self.coord.lat,
            "lon": self.coord.lon,
            "displayName": self.display_name,
        }

    @staticmethod
    def from_dict(d: dict) -> "Place":
        return Place(
            address=d.get("address", ""),
            coord=Coord(float(d["lat"]), float(d["lon"])),
            display_name=d.get("displayName"),
        )


@dataclass
class Driver:
    id: int
    name: str
    phone: Optional[str] = None
    status: DriverStatus = DriverStatus.AVAILABLE

    @staticmethod
    def from_dict(d: dict) -> "Driver":
        try:
            status = DriverStatus(d.get("status") or "available")
        except ValueError:
            status = DriverStatus.AVAILABLE
        return Driver(id=int(d["id"]), name=d.get("name", ""), phone=d.get("phone"), status=status)


@dataclass
class RouteRecord:
    """A dispatcher route as stored by the persistence API."""
    token: str
    name: str
    pickup: Place
    delivery: Place
    plan: RoutePlan
    truck: TruckSpecs = field(default_factory=TruckSpecs)
    notes: str = ""
    driver_id: Optional[int] = None
    driver: Optional[Driver] = None
    status: TripStatus = TripStatus.PENDING
    truck_safe: bool = True

    def to_dict(self) -> dict:
        data = {
            "token": self.token,
            "name": self.name,
            "driver_id": self.driver_id,
            "pickup": self.pickup.to_dict(),
            "delivery": self.delivery.to_dict(),
            "truck": {"height": self.truck.height_ft, "weight": self.truck.weight_lbs},
            "notes": self.notes,
            "status": self.status.value,
        }
        data.update(self.plan.to_dict())
        return data

    @staticmethod
    def from_dict(d: dict) -> "RouteRecord":
        pickup = Place.from_dict(d["pickup"])
        delivery = Place.from_dict(d["delivery"])
        if d.get("geometry") and d["geometry"].get("coordinates"):
            plan = RoutePlan.from_dict(d)
        else:
            plan = RoutePlan.straight_line(pickup.coord, delivery.coord)
        truck = d.get("truck") or {}
        driver = Driver.from_dict(d["driver"]) if d.get("driver") and d["driver"].get("id") else None
        driver_id = d.get("driver_id") or (driver.id if driver else None)
        return RouteRecord(
            token=d.get("token", ""),
            name=d.get("name", ""),
            pickup=pickup,
            delivery=delivery,
            plan=plan,
            truck=TruckSpecs(
                float(truck.get("height") or 13.6),
                float(truck.get("weight") or 80000.0),
            ),
            notes=d.get("notes") or "",
            driver_id=int(driver_id) if driver_id else None,
            driver=driver,
            status=TripStatus(d.get("status") or "pending"),
        )
