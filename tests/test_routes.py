import json
from unittest.mock import MagicMock

import pytest

from app import create_app
from ezan.errors import StoreError
from ezan.scheduler import DailyScheduleManager

from conftest import FakeCompute, make_schedule


@pytest.fixture
def compute(fixed_now, utc_start):
    return FakeCompute(make_schedule(fixed_now.date(), utc_start))


@pytest.fixture
def manager(scheduler, store, compute):
    manager = DailyScheduleManager(scheduler, store, MagicMock(), compute=compute)
    store.on_reload(manager.force_rebuild)
    return manager


@pytest.fixture
def test_client(store, manager):
    app = create_app(store, manager, {"TESTING": True})
    return app.test_client()


def test_update_settings(test_client, store, config_file, compute):
    response = test_client.post("/settings", json={"volume": {"fajr": 0}, "dua_enabled": False})

    assert response.status_code == 200
    assert response.get_json() == {"message": "Settings updated successfully"}
    on_disk = json.loads(config_file.read_text())
    assert on_disk["volume"]["fajr"] == 0
    assert on_disk["volume"]["isha"] == 60
    assert store.current.dua_enabled is False
    # reload triggered a rebuild
    assert len(compute.calls) == 1


def test_update_moves_location_and_rebuilds(test_client, manager, compute):
    response = test_client.post("/settings", json={"latitude": 21.42, "longitude": 39.83})

    assert response.status_code == 200
    assert compute.calls[-1][0] == (21.42, 39.83)
    assert len(manager.armed_jobs()) == 5


@pytest.mark.parametrize("body", ["not json", "[1, 2]", "42"])
def test_malformed_body_is_rejected(test_client, config_file, body):
    before = config_file.read_text()

    response = test_client.post("/settings", data=body, content_type="application/json")

    assert response.status_code == 400
    assert config_file.read_text() == before


@pytest.mark.parametrize("updates", [
    {"latitude": 123},
    {"volume": {"asr": 150}},
    {"volume": "loud"},
    {"dua_enabled": "sometimes"},
])
def test_invalid_settings_are_rejected(test_client, store, config_file, updates, compute):
    before = config_file.read_text()
    previous = store.current

    response = test_client.post("/settings", json=updates)

    assert response.status_code == 400
    assert "error" in response.get_json()
    assert config_file.read_text() == before
    assert store.current is previous
    assert compute.calls == []


def test_corrupt_store_returns_500_and_keeps_location(test_client, store, config_file, manager, compute):
    config_file.write_text("{ this is not json")

    response = test_client.post("/settings", json={"latitude": 10.0})

    assert response.status_code == 500
    assert "error" in response.get_json()

    manager.rebuild()
    assert compute.calls[-1][0] == (52.52, 13.405)


def test_unwritable_store_returns_500(test_client, store, monkeypatch):
    def fail(data):
        raise StoreError("disk full")

    monkeypatch.setattr(store, "write_document", fail)

    response = test_client.post("/settings", json={"dua_enabled": False})

    assert response.status_code == 500
    assert response.get_json() == {"error": "disk full"}
    assert store.current.dua_enabled is True


def test_get_settings(test_client):
    response = test_client.get("/settings")

    assert response.status_code == 200
    data = response.get_json()
    assert data["latitude"] == 52.52
    assert data["calculation_method"] == "TURKEY"
    assert data["volume"]["fajr"] == 40


def test_get_schedule(test_client, manager, fixed_now):
    manager.rebuild(fixed_now)

    response = test_client.get("/schedule")

    assert response.status_code == 200
    jobs = response.get_json()["jobs"]
    assert [job["name"] for job in jobs] == ["fajr", "dhuhr", "asr", "maghrib", "isha"]


def test_get_schedule_without_manager(store):
    client = create_app(store).test_client()
    assert client.get("/schedule").get_json() == {"jobs": []}
