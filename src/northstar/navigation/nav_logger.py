# nav_logger.py
# File I/O for a driver's navigation session: the active route (so that
# `northstar drive` can pick it up again) and one JSON line per GPS event.

import json
import os
import logging
from datetime import datetime
from typing import Optional, Tuple

import pandas as pd

from .models import ProgressView, RoutePlan
from .nav_config import NavConfig

# Standard Python logger, configured at the app entry point
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Session files under config.log_dir.

    Args:
        config: NavConfig with the log directory and file names.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Active route
    # ------------------------------------------------------------------

    def save_route(self, plan: RoutePlan, token: Optional[str] = None) -> bool:
        """
        Record the route being driven, with its share token.

        Returns:
            False when the file could not be written.
        """
        filepath = self.config.route_filepath
        data = {
            "saved_at": datetime.now().isoformat(),
            "token": token,
            "point_count": len(plan.polyline),
            "step_count": len(plan.turn_steps),
            "route": plan.to_dict(),
        }
        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except IOError as e:
            logger.error(f"Could not write active route {filepath}: {e}")
            return False
        logger.info(f"Active route written to {filepath} (token {token}).")
        return True

    def load_route(self, filepath: Optional[str] = None) -> Optional[Tuple[RoutePlan, Optional[str]]]:
        """
        Read back the last active route for resuming a drive.

        Returns:
            (plan, token), or None when there is no usable saved route.
        """
        path = filepath or self.config.route_filepath
        if not os.path.exists(path):
            logger.warning(f"No active route at {path}")
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            plan = RoutePlan.from_dict(data["route"])
        except (IOError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Active route {path} is unreadable: {e}")
            return None
        return plan, data.get("token")

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, view: ProgressView, position_lat: float, position_lon: float) -> None:
        """One JSON line per accepted fix; the raw fix position plus what the tracker made of it."""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "lat": position_lat,
            "lon": position_lon,
            "closest_index": view.closest_index,
            "off_route": view.off_route,
            "progress_percent": view.progress_percent,
            "remaining_m": round(view.remaining_distance_m, 1),
            "instruction": view.current_instruction,
            "message": view.message,
        }
        try:
            with open(self.config.session_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")

    def export_track(self, out_csv: str) -> int:
        """
        Write the session log as a CSV track.

        Returns:
            Number of rows written (0 when there is nothing to export).
        """
        path = self.config.session_filepath
        if not os.path.exists(path) or os.path.getsize(path) == 0:
            logger.warning(f"No session log at {path}")
            return 0
        df = pd.read_json(path, lines=True)
        if df.empty:
            return 0
        df.to_csv(out_csv, index=False)
        logger.info(f"{out_csv}: {len(df)} rows exported")
        return len(df)
