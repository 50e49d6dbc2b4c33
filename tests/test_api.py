# tests/test_api.py
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from conftest import FakeClient, completion
from src.ai_layer.llm_client import LLMError
from src.app_layer.dependencies import get_backends, get_data_provider
from src.app_layer.main import app
from src.data_layer.mock_data_loader import InMemoryDataProvider


@pytest.fixture
def backends(make_backend):
    return [
        make_backend("teacher", FakeClient(error=LLMError("server down")), fallback_eligible=True),
        make_backend("student", FakeClient(content=completion("C"), delay=0.05), fallback_eligible=True),
        make_backend("fine_tuned", FakeClient(content=completion("B"))),
    ]


@pytest.fixture
def client(user, other_user, backends):
    app.dependency_overrides[get_data_provider] = lambda: InMemoryDataProvider([user, other_user])
    app.dependency_overrides[get_backends] = lambda: backends
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_users_and_domains(client):
    users = client.get("/api/v1/users/").json()
    assert [u["id"] for u in users] == ["u1", "u2"]
    assert client.get("/api/v1/users/", params={"domain": "Movie"}).json() == []
    assert client.get("/api/v1/users/domains").json() == ["Books"]


def test_user_detail_labels_exposure_by_position(client):
    detail = client.get("/api/v1/users/u1").json()
    assert detail["name"] == "Evelyn Hart"
    assert [e["label"] for e in detail["exposure_list"]] == ["A", "B", "C"]
    assert detail["model_outputs"]["teacher"]["behavior"] == "B"
    assert detail["ground_truth"] == "B"


def test_unknown_user_is_404(client):
    assert client.get("/api/v1/users/nobody").status_code == 404
    assert client.post("/api/v1/simulation/prompt", json={"user_id": "nobody"}).status_code == 404
    assert client.post("/api/v1/simulation/run", json={"user_id": "nobody"}).status_code == 404


def test_prompt_endpoint(client):
    body = client.post("/api/v1/simulation/prompt", json={"user_id": "u1"}).json()
    assert body["user_id"] == "u1"
    assert "B. The Way of Kings (2010) - Fantasy, Epic" in body["prompt"]


def test_interpret_endpoint(client):
    body = client.post("/api/v1/simulation/interpret", json={"text": "Stimulus: bored\nBehavior: [d]"}).json()
    assert body["stimulus"]["text"] == "bored"
    assert body["knowledge"]["text"] == "N/A"
    assert body["behavior"] == "D"
    assert body["is_error"] is False


def test_run_returns_every_backend_in_roster_order(client, backends):
    response = client.post("/api/v1/simulation/run", json={"user_id": "u1"})
    assert response.status_code == 200
    results = {r["backend"]: r for r in response.json()["results"]}
    assert list(results) == ["teacher", "student", "fine_tuned"]

    # teacher failed and fell back to the cached output
    assert results["teacher"]["from_fallback"] is True
    assert results["teacher"]["result"]["stimulus"]["text"] == "cached teacher"
    assert results["teacher"]["matches_ground_truth"] is True

    assert results["student"]["result"]["behavior"] == "C"
    assert results["student"]["matches_ground_truth"] is False
    assert results["fine_tuned"]["result"]["behavior"] == "B"
    assert results["fine_tuned"]["display_name"] == "Fine_Tuned"


def test_run_surfaces_error_without_cached_output(client):
    results = client.post("/api/v1/simulation/run", json={"user_id": "u2"}).json()["results"]
    teacher = next(r for r in results if r["backend"] == "teacher")
    assert teacher["result"]["is_error"] is True
    assert teacher["result"]["behavior"] == "Error"
    assert teacher["from_fallback"] is False
    assert teacher["matches_ground_truth"] is None


def test_run_uses_edited_prompt(client, backends):
    client.post("/api/v1/simulation/run", json={"user_id": "u1", "prompt": "edited"})
    assert backends[2].client.prompts[-1] == "edited"


def test_stream_yields_one_line_per_backend_in_completion_order(client):
    response = client.post("/api/v1/simulation/run/stream", json={"user_id": "u1"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    lines = [json.loads(line) for line in response.text.splitlines() if line]
    assert [line["backend"] for line in lines] == ["teacher", "fine_tuned", "student"]


def test_stream_ends_when_a_result_cannot_be_serialized(client, monkeypatch):
    from src.app_layer.routers import simulation as simulation_router

    original = simulation_router._backend_result

    def flaky(engine, backend, user, result):
        if backend.name == "student":
            raise ValueError("cannot serialize")
        return original(engine, backend, user, result)

    monkeypatch.setattr(simulation_router, "_backend_result", flaky)
    response = client.post("/api/v1/simulation/run/stream", json={"user_id": "u1"})
    assert response.status_code == 200
    lines = [json.loads(line) for line in response.text.splitlines() if line]
    assert [line["backend"] for line in lines] == ["teacher", "fine_tuned"]
