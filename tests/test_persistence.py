import json
import os

import pytest
import requests

from northstar.navigation.models import Coord, Place, PositionSample, RouteRecord, TripStatus
from northstar.services.persistence import (
    LocalRouteStore,
    PersistenceClient,
    PersistenceError,
    RouteNotFoundError,
)

from conftest import FakeResponse, FakeSession


@pytest.fixture
def record(chicago_plan):
    return RouteRecord(
        token="a1b2c3",
        name="Chicago run",
        pickup=Place("Chicago, IL", Coord(41.8781, -87.6298)),
        delivery=Place("Detroit, MI", Coord(42.3314, -83.0458)),
        plan=chicago_plan,
        notes="Dock 4",
        driver_id=7,
    )


# ----------------
# API client
# ----------------

def test_create_route_posts_record(config, record):
    session = FakeSession(FakeResponse({"success": True, "token": "a1b2c3"}))
    PersistenceClient(config, session=session).create_route(record)

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://api.test/api.php"
    assert call["params"] == {"action": "createRoute"}
    assert call["json"]["token"] == "a1b2c3"
    assert call["json"]["geometry"]["coordinates"][0] == [-87.6298, 41.8781]


def test_update_status_sends_position(config):
    session = FakeSession(FakeResponse({"success": True}))
    PersistenceClient(config, session=session).update_route_status(
        "a1b2c3", TripStatus.UNLOADING, {"lat": 42.0, "lon": -85.0})

    call = session.calls[0]
    assert call["params"] == {"action": "updateRoute", "token": "a1b2c3"}
    assert call["json"] == {"status": "unloading", "position": {"lat": 42.0, "lon": -85.0}}


def test_get_route_round_trips_record(config, record):
    session = FakeSession(FakeResponse(dict(record.to_dict(), success=True)))
    loaded = PersistenceClient(config, session=session).get_route("a1b2c3")

    assert loaded.token == "a1b2c3"
    assert loaded.plan.polyline == record.plan.polyline
    assert loaded.driver_id == 7
    assert loaded.status is TripStatus.PENDING


def test_missing_route_raises_not_found(config):
    session = FakeSession(FakeResponse({"error": "Route not found"}, status_code=404))
    with pytest.raises(RouteNotFoundError, match="Route not found"):
        PersistenceClient(config, session=session).get_route("nope")


def test_error_envelope_raises(config):
    session = FakeSession(FakeResponse({"error": "Database error"}))
    with pytest.raises(PersistenceError, match="Database error"):
        PersistenceClient(config, session=session).list_routes()


def test_network_failure_raises(config):
    session = FakeSession(requests.ConnectionError("refused"))
    with pytest.raises(PersistenceError):
        PersistenceClient(config, session=session).list_drivers()


def test_list_drivers_filters_by_status(config):
    drivers = [{"id": 7, "name": "Sam", "status": "available"}]
    session = FakeSession(FakeResponse({"success": True, "drivers": drivers}))

    assert PersistenceClient(config, session=session).list_drivers("available") == drivers
    assert session.calls[0]["params"] == {"action": "getAllDrivers", "status": "available"}


def test_update_position_payload(config):
    session = FakeSession(FakeResponse({"success": True}))
    ok = PersistenceClient(config, session=session).update_position(
        7, PositionSample(42.0, -85.0, accuracy=8.0, speed=88.0, heading=90.0))

    assert ok is True
    assert session.calls[0]["json"] == {
        "driver_id": 7, "latitude": 42.0, "longitude": -85.0,
        "accuracy": 8.0, "speed": 88.0, "heading": 90.0,
    }


def test_log_activity_payload(config):
    session = FakeSession(FakeResponse({"success": True}))
    PersistenceClient(config, session=session).log_activity(7, "progress", "Progress: 40% of route completed")

    assert session.calls[0]["params"] == {"action": "logActivity"}
    assert session.calls[0]["json"]["type"] == "progress"


# ----------------
# Local store
# ----------------

def test_local_store_save_and_load(config, record):
    store = LocalRouteStore(config)
    path = store.save(record)

    assert os.path.basename(path) == "route_a1b2c3.json"
    loaded = store.load("a1b2c3")
    assert loaded.name == "Chicago run"
    assert loaded.plan.polyline == record.plan.polyline
    assert loaded.notes == "Dock 4"


def test_local_store_missing_and_corrupt(config):
    store = LocalRouteStore(config)
    assert store.load("unknown") is None

    with open(os.path.join(config.local_store_dir, "route_broken.json"), "w") as f:
        f.write("{not json")
    assert store.load("broken") is None


def test_local_store_update_status(config, record):
    store = LocalRouteStore(config)
    store.save(record)

    assert store.update_status("a1b2c3", TripStatus.LOADING, {"lat": 41.9, "lon": -87.6}) is True
    with open(os.path.join(config.local_store_dir, "route_a1b2c3.json")) as f:
        data = json.load(f)
    assert data["status"] == "loading"
    assert data["current_position"] == {"lat": 41.9, "lon": -87.6}
    assert store.load("a1b2c3").status is TripStatus.LOADING
    assert store.update_status("other", TripStatus.LOADING) is False


def test_local_store_delete(config, record):
    store = LocalRouteStore(config)
    store.save(record)

    assert store.delete("a1b2c3") is True
    assert store.delete("a1b2c3") is False


@pytest.mark.parametrize("token", ["", "../etc/passwd", "a b"])
def test_local_store_rejects_unsafe_tokens(config, token):
    with pytest.raises(ValueError):
        LocalRouteStore(config).load(token)


def test_local_store_update_status_on_corrupt_file(config):
    store = LocalRouteStore(config)
    with open(os.path.join(config.local_store_dir, "route_abc123.json"), "w") as f:
        f.write("{not json")

    assert store.update_status("abc123", TripStatus.LOADING) is False


def test_local_store_tolerates_null_step_distance(config, record):
    store = LocalRouteStore(config)
    data = record.to_dict()
    data["directions"] = [{"instruction": "Turn left onto Elm St", "distance": None}]
    with open(os.path.join(config.local_store_dir, "route_a1b2c3.json"), "w") as f:
        json.dump(data, f)

    loaded = store.load("a1b2c3")
    assert loaded.plan.turn_steps[0].distance_miles == 0.0


def test_delete_route(config):
    session = FakeSession(FakeResponse({"success": True}))
    PersistenceClient(config, session=session).delete_route("a1b2c3")

    assert session.calls[0]["params"] == {"action": "deleteRoute", "token": "a1b2c3"}


def test_get_driver(config):
    driver = {"success": True, "id": 7, "name": "Sam", "phone": "555-0100", "status": "on-duty"}
    session = FakeSession(FakeResponse(driver))

    assert PersistenceClient(config, session=session).get_driver(7) == driver
    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["params"] == {"action": "getDriver", "id": 7}


def test_get_driver_not_found(config):
    session = FakeSession(FakeResponse({"error": "Driver not found"}, status_code=404))
    with pytest.raises(PersistenceError, match="Driver not found"):
        PersistenceClient(config, session=session).get_driver(99)
