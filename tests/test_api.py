import importlib.util
import json
import shutil
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
FIXTURES = ROOT / "data" / "documents"


@pytest.fixture
def client(tmp_path, monkeypatch):
    shutil.copy(FIXTURES / "booking-funnel.json", tmp_path / "booking-funnel.json")
    monkeypatch.setenv("ENVIRONMENT", "dev")
    monkeypatch.setenv("DOCUMENTS_PATH", str(tmp_path))
    monkeypatch.setenv("DEFAULT_FUNNEL_SLUG", "agency")

    spec = importlib.util.spec_from_file_location("funnel_flow_api", ROOT / "services" / "api" / "main.py")
    module = importlib.util.module_from_spec(spec)
    # Annotations are resolved through the module registry.
    monkeypatch.setitem(sys.modules, spec.name, module)
    spec.loader.exec_module(module)
    return TestClient(module.app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_to_canvas_converts_documents(client):
    document = json.loads((FIXTURES / "booking-funnel.json").read_text(encoding="utf-8"))

    response = client.post("/v1/documents:toCanvas", json={"document": document, "slug": "growth"})

    assert response.status_code == 200
    page = response.json()
    assert page["slug"] == "growth"
    assert [step["step_intent"] for step in page["steps"]] == ["capture", "schedule", "complete"]
    hero = page["steps"][0]["frames"][0]["stacks"][0]["blocks"][0]
    assert hero["type"] == "hero"
    assert hero["elements"][0]["type"] == "heading"


def test_to_canvas_without_document_returns_default(client):
    response = client.post("/v1/documents:toCanvas", json={})

    assert response.status_code == 200
    page = response.json()
    assert page["slug"] == "agency"
    assert len(page["steps"]) == 1


def test_to_editor_uses_storage_field_names(client):
    canvas = client.post("/v1/documents:toCanvas", json={}).json()

    response = client.post("/v1/documents:toEditor", json=canvas)

    assert response.status_code == 200
    document = response.json()
    assert document["version"] == 1
    assert document["activePageId"] == document["pages"][0]["id"]
    assert document["pages"][0]["canvasRoot"]["type"] == "frame"


def test_validate_funnel(client):
    response = client.post(
        "/v1/funnels:validate",
        json={"steps": [{"step_type": "email_capture"}, {"step_type": "opt_in"}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["capture_steps"] == 2
    assert len(body["warnings"]) == 2


def test_step_definitions(client):
    listing = client.get("/v1/step-definitions")
    assert listing.status_code == 200
    assert len(listing.json()) == 10

    embed = client.get("/v1/step-definitions/embed").json()
    assert embed["label"] == "Embed/iFrame"
    assert embed["can_schedule"] is True
    assert embed["allowed_intents"] == ["schedule", "collect"]

    assert client.get("/v1/step-definitions/nope").status_code == 404


def test_load_stored_document(client):
    response = client.get("/v1/documents/booking-funnel")

    assert response.status_code == 200
    body = response.json()
    assert body["page"]["slug"] == "agency"
    assert len(body["page"]["steps"]) == 3
    assert body["warnings"] == []

    assert client.get("/v1/documents/missing").status_code == 404


def test_store_document_round_trips(client):
    canvas = client.get("/v1/documents/booking-funnel").json()["page"]

    stored = client.put("/v1/documents/copy", json=canvas)
    assert stored.status_code == 200
    assert stored.json()["warnings"] == []

    reloaded = client.get("/v1/documents/copy").json()["page"]
    assert [step["id"] for step in reloaded["steps"]] == [step["id"] for step in canvas["steps"]]
    assert [step["step_type"] for step in reloaded["steps"]] == ["form", "booking", "thankyou"]


def test_store_document_without_ids_keeps_content(client):
    canvas = client.get("/v1/documents/booking-funnel").json()["page"]
    del canvas["steps"][0]["frames"][0]["stacks"][0]["blocks"][0]["elements"][0]["id"]
    del canvas["steps"][1]["id"]

    stored = client.put("/v1/documents/booking-funnel", json=canvas)
    assert stored.status_code == 200

    reloaded = client.get("/v1/documents/booking-funnel").json()["page"]
    assert [step["name"] for step in reloaded["steps"]] == ["Get the guide", "Book a call", "Thanks"]
    heading = reloaded["steps"][0]["frames"][0]["stacks"][0]["blocks"][0]["elements"][0]
    assert heading["content"] == "Scale your agency"
    assert heading["id"]
    assert reloaded["steps"][1]["id"]


def test_store_document_refuses_unreadable_pages(client):
    for body in ({"name": "Nothing here"}, {"steps": "nope"}):
        response = client.put("/v1/documents/booking-funnel", json=body)

        assert response.status_code == 422

    reloaded = client.get("/v1/documents/booking-funnel").json()["page"]
    assert len(reloaded["steps"]) == 3
