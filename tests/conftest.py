import pytest

from northstar.navigation.models import Coord, RoutePlan, TurnStep
from northstar.navigation.nav_config import NavConfig


# Chicago -> (42.0, -85.0) -> Detroit
CHICAGO_DETROIT = [
    Coord(41.8781, -87.6298),
    Coord(42.0, -85.0),
    Coord(42.3314, -83.0458),
]


class FakeResponse:
    def __init__(self, data, status_code=200):
        self._data = data
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._data, Exception):
            raise self._data
        return self._data

    def raise_for_status(self):
        import requests
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session; replays queued responses and records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, params=None, timeout=None):
        self.calls.append({"method": "GET", "url": url, "params": params, "timeout": timeout})
        return self._next()

    def request(self, method, url, params=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "json": json, "timeout": timeout})
        return self._next()


class RecordingVoice:
    def __init__(self):
        self.announcements = []

    def announce(self, announcement):
        self.announcements.append(announcement)
        return True

    @property
    def texts(self):
        return [a.text for a in self.announcements]


class RecordingReporter:
    def __init__(self):
        self.positions = []
        self.activities = []

    def report_position(self, driver_id, sample):
        self.positions.append((driver_id, sample))

    def log_activity(self, driver_id, kind, message):
        self.activities.append((driver_id, kind, message))


@pytest.fixture
def config(tmp_path):
    return NavConfig(
        log_dir=str(tmp_path / "logs"),
        local_store_dir=str(tmp_path / "routes"),
        api_url="http://api.test/api.php",
        osrm_url="http://osrm.test",
        nominatim_url="http://nominatim.test",
        ors_url="http://ors.test",
        ors_api_key="test-key",
    )


@pytest.fixture
def chicago_plan():
    return RoutePlan(CHICAGO_DETROIT, (), total_distance_m=453580, total_duration_s=16200)


@pytest.fixture
def straight_plan():
    """11 points, 0.01 deg of latitude (~1.1 km) apart, two turn steps."""
    points = [Coord(round(40.0 + i * 0.01, 2), -88.0) for i in range(11)]
    steps = (
        TurnStep("Turn right onto Main St", 0.3),
        TurnStep("Continue on I-80", 12.0),
    )
    return RoutePlan(points, steps, total_distance_m=11120, total_duration_s=660)
