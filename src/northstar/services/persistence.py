#Purpose: client for the NorthStar persistence API (routes, drivers,
#positions, activities) plus the on-disk fallback store used when the API
#cannot be reached.
#The API speaks JSON over `api.php?action=<name>`; every successful answer
#carries {"success": true, ...}, failures carry {"error": "..."}.

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests

from ..navigation.models import PositionSample, RouteRecord, TripStatus
from ..navigation.nav_config import NavConfig

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The persistence API failed or rejected the request."""


class RouteNotFoundError(PersistenceError):
    """No route is stored under the given token."""


class PersistenceClient:
    """
    HTTP adapter for the persistence API.

    Sole responsibility: build requests for each action and unwrap the JSON
    envelope. No dispatch or navigation rules live here.
    """

    def __init__(self, config: Optional[NavConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or NavConfig()
        self.base_url = self.config.api_url
        self.timeout = self.config.timeout
        self.session = session or requests.Session()

    # ----------------
    # Internal helpers
    # ----------------

    def _call(self, method: str, action: str, params: Optional[Dict] = None,
              payload: Optional[Dict] = None) -> Dict[str, Any]:
        query = {"action": action}
        query.update({k: v for k, v in (params or {}).items() if v is not None})
        try:
            response = self.session.request(
                method,
                self.base_url,
                params=query,
                json=payload,
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise PersistenceError(f"{action} failed: {e}") from e

        error = data.get("error") if isinstance(data, dict) else None
        if response.status_code == 404:
            raise RouteNotFoundError(error or "Not found")
        if not response.ok or error:
            raise PersistenceError(f"{action} failed: {error or response.status_code}")
        return data

    # ----------------
    # Routes
    # ----------------

    def create_route(self, record: RouteRecord) -> Dict[str, Any]:
        return self._call("POST", "createRoute", payload=record.to_dict())

    def update_route(self, token: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("POST", "updateRoute", params={"token": token}, payload=fields)

    def update_route_status(self, token: str, status: TripStatus,
                            position: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"status": status.value}
        if position:
            fields["position"] = position
        return self.update_route(token, fields)

    def get_route(self, token: str) -> RouteRecord:
        data = self._call("GET", "getRoute", params={"token": token})
        try:
            return RouteRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"getRoute returned an unreadable route: {e}") from e

    def list_routes(self, page: int = 1, limit: int = 20) -> List[Dict[str, Any]]:
        return self._call("GET", "getAllRoutes", params={"page": page, "limit": limit}).get("routes", [])

    def delete_route(self, token: str) -> None:
        self._call("GET", "deleteRoute", params={"token": token})

    # ----------------
    # Drivers
    # ----------------

    def list_drivers(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._call("GET", "getAllDrivers", params={"status": status}).get("drivers", [])

    def get_driver(self, driver_id: int) -> Dict[str, Any]:
        return self._call("GET", "getDriver", params={"id": driver_id})

    # ----------------
    # Tracking
    # ----------------

    def update_position(self, driver_id: int, sample: PositionSample) -> bool:
        data = self._call("POST", "updatePosition", payload={
            "driver_id": driver_id,
            "latitude": sample.lat,
            "longitude": sample.lon,
            "accuracy": sample.accuracy,
            "speed": sample.speed,
            "heading": sample.heading,
        })
        return bool(data.get("success"))

    def log_activity(self, driver_id: Optional[int], kind: str, message: str,
                     route_id: Optional[int] = None) -> bool:
        data = self._call("POST", "logActivity", payload={
            "driver_id": driver_id,
            "route_id": route_id,
            "type": kind,
            "message": message,
        })
        return bool(data.get("success"))


class LocalRouteStore:
    """
    Route JSON files on disk, one per token.

    Stands in for the persistence API when it is unreachable so that a
    dispatcher can still hand out a working driver link.
    """

    _TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self.directory = self.config.local_store_dir
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, token: str) -> str:
        if not token or not self._TOKEN_RE.match(token):
            raise ValueError(f"Invalid route token: {token!r}")
        return os.path.join(self.directory, f"route_{token}.json")

    def save(self, record: RouteRecord) -> str:
        path = self._path(record.token)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"Route stored locally with token {record.token}")
        return path

    def load(self, token: str) -> Optional[RouteRecord]:
        path = self._path(token)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return RouteRecord.from_dict(json.load(f))
        except (IOError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error parsing stored route {path}: {e}")
            return None

    def update_status(self, token: str, status: TripStatus,
                      position: Optional[Dict[str, float]] = None) -> bool:
        path = self._path(token)
        if not os.path.exists(path):
            return False
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            data["status"] = status.value
            if position:
                data["current_position"] = position
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except (IOError, TypeError, ValueError) as e:
            logger.error(f"Error updating stored route {path}: {e}")
            return False
        return True

    def delete(self, token: str) -> bool:
        path = self._path(token)
        if os.path.exists(path):
            os.remove(path)
            return True
        return False
