# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass

from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Tracking constants
# ---------------------------------------------------------------------------

OFF_ROUTE_THRESHOLD_KM: float = 0.1     # 100 m from the nearest polyline point
ASSUMED_SPEED_KMH: float = 60.0         # ETA speed, independent of telemetry
ANNOUNCE_DISTANCE_MILES: float = 0.5
PROGRESS_REPORT_STEP: int = 20          # percent

OFF_ROUTE_MESSAGE = "You appear to be off route. Continuing with current guidance."

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost/northstar/api.php"
DEFAULT_OSRM_URL = "https://router.project-osrm.org"
DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org"
DEFAULT_ORS_URL = "https://api.openrouteservice.org"
DEFAULT_USER_AGENT = "northstar-navigation/0.1"


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Progress tracking
    off_route_threshold_km: float = OFF_ROUTE_THRESHOLD_KM
    assumed_speed_kmh: float = ASSUMED_SPEED_KMH
    announce_distance_miles: float = ANNOUNCE_DISTANCE_MILES
    progress_report_step: int = PROGRESS_REPORT_STEP
    announce_off_route: bool = True

    # External services
    api_url: str = DEFAULT_API_URL
    osrm_url: str = DEFAULT_OSRM_URL
    osrm_profile: str = "driving"
    nominatim_url: str = DEFAULT_NOMINATIM_URL
    ors_url: str = DEFAULT_ORS_URL
    ors_api_key: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 10.0                  # seconds per HTTP request

    # Voice
    voice_enabled: bool = True
    voice_rate: int = 165                  # words per minute
    urgent_rate_factor: float = 0.9        # warnings are spoken slower

    # Logging
    log_dir: str = "logs"                  # directory for saved JSON files
    route_filename: str = "active_route.json"
    session_filename: str = "nav_session.jsonl"
    local_store_dir: str = "routes"        # fallback when the API is down

    @property
    def route_filepath(self) -> str:
        return os.path.join(self.log_dir, self.route_filename)

    @property
    def session_filepath(self) -> str:
        return os.path.join(self.log_dir, self.session_filename)

    @classmethod
    def from_env(cls, **overrides) -> "NavConfig":
        """
        Build a config from environment variables (.env is read first).

        Example .env:
            NORTHSTAR_API_URL=https://example.com/northstar/api.php
            OSRM_BASE_URL=http://router.project-osrm.org
            ORS_API_KEY=...
        """
        load_dotenv()
        env = {
            "api_url": os.getenv("NORTHSTAR_API_URL"),
            "osrm_url": os.getenv("OSRM_BASE_URL"),
            "nominatim_url": os.getenv("NOMINATIM_URL"),
            "ors_api_key": os.getenv("ORS_API_KEY"),
            "user_agent": os.getenv("NORTHSTAR_USER_AGENT"),
            "log_dir": os.getenv("NORTHSTAR_LOG_DIR"),
            "local_store_dir": os.getenv("NORTHSTAR_ROUTE_DIR"),
        }
        values = {k: v for k, v in env.items() if v}
        timeout = os.getenv("NORTHSTAR_TIMEOUT")
        if timeout:
            values["timeout"] = float(timeout)
        speed = os.getenv("NORTHSTAR_ASSUMED_SPEED_KMH")
        if speed:
            values["assumed_speed_kmh"] = float(speed)
        values.update(overrides)
        return cls(**values)
