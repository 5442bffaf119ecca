import json
import os

import pytest

from northstar.navigation.models import Coord, PositionSample, TripStatus
from northstar.navigation.nav_config import OFF_ROUTE_MESSAGE
from northstar.navigation.navigator import NavigationSession, consume
from northstar.services.persistence import LocalRouteStore, PersistenceError

from conftest import RecordingReporter, RecordingVoice


def at(plan, index):
    p = plan.polyline[index]
    return PositionSample(p.lat, p.lon, accuracy=10, speed=60, heading=0)


@pytest.fixture
def voice():
    return RecordingVoice()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def session(straight_plan, config, voice, reporter):
    return NavigationSession(straight_plan, config, voice=voice, reporter=reporter,
                             route_token="abc123", driver_id=7)


def test_update_before_start_is_ignored(session, straight_plan, reporter):
    assert session.update(at(straight_plan, 0)) is None
    assert reporter.positions == []


def test_start_announces_route_and_saves_it(session, voice, config):
    ok, msg = session.start()

    assert ok is True
    assert session.is_active
    assert msg.startswith("Route ready.")
    assert voice.texts == [msg]
    assert os.path.exists(config.route_filepath)


def test_start_refuses_missing_plan(config, voice):
    session = NavigationSession(None, config, voice=voice)
    ok, msg = session.start()

    assert ok is False
    assert "Invalid route" in msg
    assert session.is_active is False
    assert session.update(PositionSample(40.0, -88.0)) is None


def test_turn_announced_once_for_repeated_fixes(session, straight_plan, voice):
    session.start()
    session.update(at(straight_plan, 0))
    session.update(at(straight_plan, 0))
    session.update(at(straight_plan, 1))

    turn_texts = [t for t in voice.texts if not t.startswith("Route ready")]
    assert turn_texts == ["Turn right onto Main St"]
    assert session.state.last_announced_step == 0


def test_positions_reported_for_every_accepted_fix(session, straight_plan, reporter):
    session.start()
    session.update(at(straight_plan, 0))
    session.update(PositionSample(float("nan"), -88.0))
    session.update(at(straight_plan, 1))

    assert [driver for driver, _ in reporter.positions] == [7, 7]


def test_no_position_reports_without_driver(straight_plan, config, reporter):
    session = NavigationSession(straight_plan, config, reporter=reporter)
    session.start()
    session.update(at(straight_plan, 3))

    assert reporter.positions == []
    assert reporter.activities == [(None, "progress", "Progress: 20% of route completed")]


def test_progress_activity_once_per_milestone(session, straight_plan, reporter):
    session.start()
    for index in [0, 2, 2, 3, 5, 4, 6, 10]:
        session.update(at(straight_plan, index))

    messages = [m for _, kind, m in reporter.activities if kind == "progress"]
    assert messages == [
        "Progress: 20% of route completed",
        "Progress: 40% of route completed",
        "Progress: 60% of route completed",
        "Progress: 100% of route completed",
    ]


def test_off_route_spoken_once_per_excursion(session, straight_plan, voice):
    session.start()
    off = PositionSample(40.05, -87.9)
    session.update(off)
    session.update(off)
    session.update(at(straight_plan, 5))
    session.update(off)

    urgent = [a for a in voice.announcements if a.is_urgent]
    assert [a.text for a in urgent] == [OFF_ROUTE_MESSAGE, OFF_ROUTE_MESSAGE]


def test_off_route_speech_can_be_disabled(straight_plan, config, voice):
    config.announce_off_route = False
    session = NavigationSession(straight_plan, config, voice=voice)
    session.start()
    view = session.update(PositionSample(40.05, -87.9))

    assert view.off_route is True
    assert not any(a.is_urgent for a in voice.announcements)


def test_invalid_sample_keeps_state(session, straight_plan, reporter):
    session.start()
    session.update(at(straight_plan, 4))
    before = session.state

    assert session.update(PositionSample(95.0, -88.0)) is None
    assert session.state is before
    assert session.last_view.closest_index == 4


def test_events_written_to_session_log(session, straight_plan, config):
    session.start()
    session.update(at(straight_plan, 2))

    with open(config.session_filepath, encoding="utf-8") as f:
        entries = [json.loads(line) for line in f]
    assert entries[-1]["closest_index"] == 2
    assert entries[-1]["progress_percent"] == 20


class FakePersistence:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def update_route_status(self, token, status, position=None):
        if self.fail:
            raise PersistenceError("API call failed")
        self.calls.append((token, status, position))


class FakeStore:
    def __init__(self):
        self.calls = []

    def update_status(self, token, status, position=None):
        self.calls.append((token, status, position))
        return True


def test_status_change_goes_to_api(straight_plan, config, voice):
    api = FakePersistence()
    session = NavigationSession(straight_plan, config, voice=voice, route_token="abc123", persistence=api)
    session.start()
    session.update(at(straight_plan, 1))

    ok, msg = session.set_status(TripStatus.IN_PROGRESS)

    assert ok is True
    assert msg == "Status updated to In Progress"
    assert api.calls == [("abc123", TripStatus.IN_PROGRESS, {"lat": 40.01, "lon": -88.0})]
    assert voice.texts[-1] == msg


def test_status_change_falls_back_to_local_store(straight_plan, config):
    store = FakeStore()
    session = NavigationSession(straight_plan, config, route_token="abc123",
                                persistence=FakePersistence(fail=True), local_store=store)
    session.start()

    ok, _ = session.set_status(TripStatus.LOADING)

    assert ok is True
    assert store.calls == [("abc123", TripStatus.LOADING, None)]


def test_status_change_with_corrupt_local_route(straight_plan, config):
    store = LocalRouteStore(config)
    with open(os.path.join(config.local_store_dir, "route_abc123.json"), "w", encoding="utf-8") as f:
        f.write("{not json")
    session = NavigationSession(straight_plan, config, route_token="abc123",
                                persistence=FakePersistence(fail=True), local_store=store)
    session.start()

    assert session.set_status(TripStatus.LOADING) == (False, "Could not update route status.")
    assert session.is_active


def test_status_change_fails_without_any_store(straight_plan, config):
    session = NavigationSession(straight_plan, config, route_token="abc123",
                                persistence=FakePersistence(fail=True))
    session.start()
    assert session.set_status(TripStatus.LOADING) == (False, "Could not update route status.")


def test_completed_status_ends_the_stream(straight_plan, config):
    session = NavigationSession(straight_plan, config, route_token="abc123", persistence=FakePersistence())
    session.start()

    def fixes():
        yield at(straight_plan, 0)
        yield at(straight_plan, 1)
        session.set_status(TripStatus.COMPLETED)
        yield at(straight_plan, 2)

    views = list(consume(session, fixes()))

    assert [v.closest_index for v in views] == [0, 1]
    assert session.is_active is False


def test_consume_skips_invalid_samples(session, straight_plan):
    session.start()
    samples = [at(straight_plan, 0), PositionSample(float("nan"), 0.0), at(straight_plan, 10)]
    views = list(consume(session, samples))

    assert [v.progress_percent for v in views] == [0, 100]
    assert views[-1].remaining_distance_m == 0
    assert session.state.last_known_position == Coord(40.1, -88.0)
