from __future__ import annotations

import base64
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mutarand.app.main import create_app
from mutarand.core.config.settings import settings
from mutarand.storage.snapshot_store import load_engine


@pytest.fixture()
def client() -> TestClient:
    return TestClient(create_app())


def _build(client: TestClient, **overrides) -> dict:
    payload = {"instruction_count": 5, "policy": "retry", "seed": 77, "entropy_seed": 3}
    payload.update(overrides)
    r = client.post("/api/engines", json=payload)
    assert r.status_code == 200, r.text
    return r.json()


def test_health(client: TestClient) -> None:
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_build_and_draw(client: TestClient) -> None:
    body = _build(client)
    engine_id = body["engine_id"]

    assert len(body["snapshot"]["chain"]) == 5
    assert body["snapshot"]["seed"] == 77
    assert body["snapshot"]["reseed_on_advance"] is False

    r = client.post(f"/api/engines/{engine_id}/draw", json={"kind": "int", "count": 4, "high": 10})
    assert r.status_code == 200, r.text
    values = r.json()["values"]
    assert len(values) == 4
    assert all(-10 < v < 10 for v in values)

    r = client.post(f"/api/engines/{engine_id}/draw", json={"kind": "boolean", "count": 3})
    assert all(isinstance(v, bool) for v in r.json()["values"])

    detail = client.get(f"/api/engines/{engine_id}").json()
    assert detail["draws"] == 7
    assert detail["fingerprint"] != body["fingerprint"]


def test_same_inputs_build_same_engine(client: TestClient) -> None:
    a = _build(client)
    b = _build(client)

    assert a["engine_id"] != b["engine_id"]
    assert a["fingerprint"] == b["fingerprint"]


def test_export_import_resumes_sequence(client: TestClient) -> None:
    engine_id = _build(client, width="i32")["engine_id"]

    exported = client.get(f"/api/engines/{engine_id}/export").json()
    assert exported["width"] == "i32"

    r = client.post("/api/engines/import", json={"data_b64": exported["data_b64"], "width": "i32"})
    assert r.status_code == 200, r.text
    clone_id = r.json()["engine_id"]

    draw = {"kind": "long", "count": 10}
    first = client.post(f"/api/engines/{engine_id}/draw", json=draw).json()["values"]
    second = client.post(f"/api/engines/{clone_id}/draw", json=draw).json()["values"]
    assert first == second


def test_import_snapshot(client: TestClient) -> None:
    snapshot = _build(client)["snapshot"]
    r = client.post("/api/engines/import", json={"snapshot": snapshot})
    assert r.status_code == 200, r.text
    assert r.json()["snapshot"] == snapshot


def test_import_rejects_bad_payloads(client: TestClient) -> None:
    r = client.post("/api/engines/import", json={"data_b64": "!!!"})
    assert r.status_code == 422

    truncated = base64.b64encode(b"\x00\x00\x00\x01").decode("ascii")
    r = client.post("/api/engines/import", json={"data_b64": truncated})
    assert r.status_code == 422

    r = client.post("/api/engines/import", json={})
    assert r.status_code == 422


def test_draw_validation(client: TestClient) -> None:
    engine_id = _build(client)["engine_id"]

    r = client.post(f"/api/engines/{engine_id}/draw", json={"kind": "long", "low": 1})
    assert r.status_code == 422

    r = client.post(f"/api/engines/{engine_id}/draw", json={"kind": "long", "low": 3, "high": 3})
    assert r.status_code == 422

    r = client.post(f"/api/engines/{engine_id}/draw", json={"kind": "int", "high": 2.5})
    assert r.status_code == 422


def test_delete_and_not_found(client: TestClient) -> None:
    engine_id = _build(client)["engine_id"]

    assert client.delete(f"/api/engines/{engine_id}").status_code == 204
    assert client.get(f"/api/engines/{engine_id}").status_code == 404
    assert client.post(f"/api/engines/{engine_id}/draw", json={}).status_code == 404
    assert client.delete(f"/api/engines/{engine_id}").status_code == 404


def test_save_writes_snapshot(client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "snapshots_dir", tmp_path)
    engine_id = _build(client)["engine_id"]

    r = client.post(f"/api/engines/{engine_id}/save", params={"format": "bin"})
    assert r.status_code == 200, r.text

    restored = load_engine(Path(r.json()["path"]))
    snapshot = client.get(f"/api/engines/{engine_id}").json()["snapshot"]
    assert list(restored.operands) == [c["operand"] for c in snapshot["chain"]]

    assert client.post("/api/engines/nope/save").status_code == 404


def test_updated_at_moves_only_on_draw(client: TestClient) -> None:
    body = _build(client)
    engine_id = body["engine_id"]
    created = body["updated_at_utc"]

    client.get(f"/api/engines/{engine_id}")
    client.get("/api/engines")
    client.get(f"/api/engines/{engine_id}/export")
    assert client.get(f"/api/engines/{engine_id}").json()["updated_at_utc"] == created

    client.post(f"/api/engines/{engine_id}/draw", json={"kind": "long", "count": 1})
    after = client.get(f"/api/engines/{engine_id}").json()
    assert after["draws"] == 1
