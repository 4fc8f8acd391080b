"""
HTTP surface: fort lifecycle, persisted actions and error mapping.
Runs against a throwaway SQLite file.
"""

import json
import os
import tempfile

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'forts-test.db')}"

import pytest
from fastapi.testclient import TestClient

from backend.api.database import SessionLocal, resolve_database_url
from backend.api.main import app
from backend.api.models import Fort


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fort_id(client):
    response = client.post("/forts", json={"fort_name": "Riverhold", "grid_size": 10})
    assert response.status_code == 200
    return response.json()["fort_id"]


def _tiles(state):
    return {key: tile for key, tile in state["grid"]}


def test_root_and_definitions(client):
    assert client.get("/").json()["message"] == "IsoForts API"
    definitions = client.get("/definitions").json()
    assert "tower" in definitions["buildings"]
    assert "terrain_moat_common" in definitions["cards"]


def test_fort_lifecycle(client, fort_id):
    listed = client.get("/forts").json()["forts"]
    assert fort_id in [f["id"] for f in listed]

    body = client.post(f"/forts/{fort_id}/name", json={"fort_name": "Riverhold"}).json()
    assert body["state"]["phase"] == "card_draw"
    assert [e["type"] for e in body["events"]] == ["fort_named", "phase_changed", "round_started"]

    response = client.post(f"/forts/{fort_id}/ready")
    assert response.status_code == 400

    body = client.post(f"/forts/{fort_id}/continue", json={}).json()
    assert body["state"]["phase"] == "build"
    assert body["state"]["summary"]["time_remaining_ms"] > 0

    client.post(f"/forts/{fort_id}/tool", json={"tool": "zone_wall"})
    body = client.post(f"/forts/{fort_id}/place-path", json={"tiles": [[0, 0], [1, 0]]}).json()
    assert body["state"]["wall_blocks_available"] == 38

    state = client.get(f"/forts/{fort_id}").json()["state"]
    assert _tiles(state)["0,0"]["zone"] == "wall"
    assert state["stats"]["defense"] == 2


def test_siege_and_repair(client, fort_id):
    client.post(f"/forts/{fort_id}/name", json={"fort_name": "Riverhold"})
    client.post(f"/forts/{fort_id}/continue", json={"now": 0})
    client.post(f"/forts/{fort_id}/tool", json={"tool": "zone_wall"})
    client.post(f"/forts/{fort_id}/place", json={"x": 0, "y": 0})

    assert client.post(f"/forts/{fort_id}/siege", json={}).status_code == 400

    assert client.post(f"/forts/{fort_id}/ready").json()["state"]["phase"] == "defense"
    body = client.post(f"/forts/{fort_id}/siege", json={"rolls": {"0,0": 0.0}}).json()
    assert body["state"]["phase"] == "repair"
    assert body["state"]["damaged_tiles"] == ["0,0"]

    options = client.get(f"/forts/{fort_id}/available-actions").json()
    assert "repair_tile" in options["summary"]["available_actions"]

    body = client.post(f"/forts/{fort_id}/repair", json={"key": "0,0"}).json()
    assert body["events"][0]["type"] == "tile_repaired"
    assert body["state"]["damaged_tiles"] == []
    assert body["state"]["resources"]["wood"] == 18


def test_invalid_tool_is_bad_request(client, fort_id):
    client.post(f"/forts/{fort_id}/name", json={})
    client.post(f"/forts/{fort_id}/continue", json={})
    assert client.post(f"/forts/{fort_id}/tool", json={"tool": "build_catapult"}).status_code == 400


def test_unknown_fort_is_404(client):
    assert client.get("/forts/does-not-exist").status_code == 404
    assert client.post("/forts/does-not-exist/ready").status_code == 404


def test_corrupt_snapshot_is_reset(client, fort_id):
    db = SessionLocal()
    try:
        row = db.query(Fort).filter(Fort.id == fort_id).first()
        row.game_state = "{not json"
        db.commit()
    finally:
        db.close()

    state = client.get(f"/forts/{fort_id}").json()["state"]

    assert state["id"] == fort_id
    assert state["phase"] == "name_entry"
    assert state["fort_name"] == "Riverhold"
    assert state["grid_size"] == 10


def test_legacy_snapshot_keeps_its_build_deadline(client, fort_id):
    db = SessionLocal()
    try:
        row = db.query(Fort).filter(Fort.id == fort_id).first()
        data = json.loads(row.game_state)
        data.pop("phase")
        data.pop("phase_ends_at")
        row.game_state = json.dumps(data)
        db.commit()
    finally:
        db.close()

    state = client.get(f"/forts/{fort_id}").json()["state"]
    assert state["phase"] == "build"
    deadline = state["phase_ends_at"]

    assert client.get(f"/forts/{fort_id}").json()["state"]["phase_ends_at"] == deadline

    body = client.post(f"/forts/{fort_id}/tick", json={"now": deadline + 10}).json()
    assert body["state"]["phase"] == "defense"


def test_delete_fort(client, fort_id):
    assert client.delete(f"/forts/{fort_id}").status_code == 200
    assert client.get(f"/forts/{fort_id}").status_code == 404


def test_database_url_resolution():
    assert resolve_database_url("postgres://u:p@db/forts") == "postgresql://u:p@db/forts"
    assert resolve_database_url("sqlite:///x.db") == "sqlite:///x.db"
    assert resolve_database_url("").endswith("forts.db")
