"""Tests for the HTTP endpoints, driven through FastAPI's TestClient.

The demo provider is configured so starting a story needs no network.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from backend import config
from backend.app import create_app, make_generator
from backend.demo import DEMO_STORY, create_demo_save
from storyloom.llm import CannedLLM, HttpLLM
from storyloom.persistence import SAVE_KEY
from storyloom.storage import FileStore


@pytest.fixture
def data_dir(tmp_path):
    config.update_config(tmp_path, {"llm_connection": {"provider_format": "demo"}})
    return tmp_path


@pytest.fixture
def client(data_dir):
    with TestClient(create_app(data_dir)) as c:
        yield c


# ── wiring ───────────────────────────────────────────────


def test_make_generator_demo(data_dir):
    generator = make_generator(data_dir)
    assert isinstance(generator._llm, CannedLLM)


def test_make_generator_http(tmp_path):
    config.update_config(tmp_path, {"llm_connection": {"provider_format": "koboldcpp"}})
    generator = make_generator(tmp_path)
    assert isinstance(generator._llm, HttpLLM)
    assert '"nextSceneId"' in generator.build_prompt()


def test_gemini_generator_does_not_embed_schema(tmp_path):
    generator = make_generator(tmp_path)
    assert '"nextSceneId"' not in generator.build_prompt()


def test_autosave_runs_with_app(client):
    assert client.app.state.autosave.running


# ── session ──────────────────────────────────────────────


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_initial_view(client):
    view = client.get("/api/session").json()
    assert view["status"] == "idle"
    assert view["scene"] is None
    assert view["save_exists"] is False


def test_start_and_play(client):
    view = client.post("/api/session/start").json()
    assert view["status"] == "active"
    assert view["title"] == DEMO_STORY["title"]
    assert view["scene"]["id"] == "scene_1"
    assert view["scene"]["choices"][0]["nextSceneId"] == "scene_2"
    assert view["relationship_scores"] == {"Kael": 0, "Anya": 0}
    assert view["characters"][-1]["portraitUrl"].endswith("/protagonist/200/200")

    view = client.post("/api/session/choose", json={"index": 0}).json()
    assert view["scene"]["id"] == "scene_2"
    assert view["relationship_scores"] == {"Kael": 1, "Anya": -1}


def test_background_kept_on_scene_without_one(client):
    client.post("/api/session/start")
    first = client.get("/api/session").json()["background_image"]
    view = client.post("/api/session/choose", json={"index": 1}).json()
    assert view["scene"]["id"] == "scene_3"
    assert view["background_image"] == first


def test_play_to_ending(client):
    client.post("/api/session/start")
    client.post("/api/session/choose", json={"index": 1})
    view = client.post("/api/session/choose", json={"index": 1}).json()
    assert view["status"] == "ended"
    assert view["ending_text"].startswith("The archive smells of ozone")


def test_choose_out_of_range(client):
    client.post("/api/session/start")
    resp = client.post("/api/session/choose", json={"index": 7})
    assert resp.status_code == 400


def test_choose_without_story(client):
    resp = client.post("/api/session/choose", json={"index": 0})
    assert resp.status_code == 409


def test_start_failure_reported_in_view(client, data_dir):
    config.update_config(data_dir, {"llm_connection": {
        "provider_format": "koboldcpp", "provider_url": "http://localhost:5001",
    }})
    with patch("storyloom.llm.HttpLLM.__call__", AsyncMock(return_value="no json here")):
        resp = client.post("/api/session/start")
    assert resp.status_code == 200
    view = resp.json()
    assert view["status"] == "idle"
    assert view["error"].startswith("Failed to generate story")


def test_save_load_reset(client, data_dir):
    client.post("/api/session/start")
    client.post("/api/session/choose", json={"index": 0})
    assert client.post("/api/session/save").json() == {"ok": True}
    assert client.get("/api/session").json()["save_exists"] is True

    client.post("/api/session/choose", json={"index": 0})
    view = client.post("/api/session/load").json()
    assert view["scene"]["id"] == "scene_2"

    view = client.post("/api/session/reset").json()
    assert view["status"] == "idle"
    assert view["save_exists"] is False
    assert client.post("/api/session/load").status_code == 404


def test_save_without_story(client):
    assert client.post("/api/session/save").status_code == 409


def test_load_missing(client):
    assert client.post("/api/session/load").status_code == 404


def test_load_corrupt(client, data_dir):
    FileStore(data_dir / "saves").write(SAVE_KEY, "{corrupt")
    view = client.post("/api/session/load").json()
    assert view["status"] == "idle"
    assert view["error"] == "Failed to load saved game. The file might be corrupted."
    assert view["save_exists"] is False


def test_demo_save_loads(data_dir):
    create_demo_save(data_dir)
    with TestClient(create_app(data_dir)) as c:
        view = c.post("/api/session/load").json()
    assert view["status"] == "active"
    assert view["scene"]["id"] == "scene_1"
    saved = json.loads((data_dir / "saves" / f"{SAVE_KEY}.json").read_text())
    assert saved["version"] == 1


# ── settings ─────────────────────────────────────────────


def test_get_and_patch_settings(client):
    assert client.get("/api/settings").json()["llm_connection"]["provider_format"] == "demo"
    updated = client.patch("/api/settings", json={"story": {"genre": "noir"}}).json()
    assert updated["story"]["genre"] == "noir"
    assert client.get("/api/settings").json()["story"]["genre"] == "noir"


def test_check_connection_unreachable(client):
    resp = client.post("/api/check-connection", json={"provider_url": "http://127.0.0.1:9"})
    assert resp.json() == {"ok": False}
