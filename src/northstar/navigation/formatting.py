# formatting.py
# Display helpers shared by the CLI and the dispatcher.

import secrets
from datetime import datetime

from .geo_utils import meters_to_miles


STATUS_LABELS = {
    "pending": "Pending",
    "in_progress": "In Progress",
    "loading": "Loading",
    "unloading": "Unloading",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "available": "Available",
    "on-duty": "On Duty",
    "off-duty": "Off Duty",
    "on-break": "On Break",
}


def format_distance(meters: float) -> str:
    """453580 -> '281.8 miles'"""
    return f"{meters_to_miles(meters):.1f} miles"


def format_duration(seconds: float) -> str:
    """16200 -> '4 hr 30 min', 600 -> '10 min'"""
    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours} hr {minutes} min"
    return f"{minutes} min"


def format_eta(eta: datetime) -> str:
    return eta.strftime("%H:%M")


def format_status(status) -> str:
    code = getattr(status, "value", status)
    if not code:
        return "Unknown"
    return STATUS_LABELS.get(code, code[:1].upper() + code[1:])


def generate_token() -> str:
    """Random share token for a driver link."""
    return secrets.token_hex(13)
