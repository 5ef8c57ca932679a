from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from walkroute.main import create_app
from walkroute.services.routing import service as routing_service


def _appointment_body(aid: str, lat, lng=-74.0, start="10:00", end="10:30", **extra) -> dict:
    body = {
        "id": aid,
        "pet": {"id": f"pet-{aid}", "name": f"Dog {aid}", "address": f"{aid} Main St", "lat": lat, "lng": lng},
        "start_time": start,
        "end_time": end,
        "duration_minutes": 30,
        "walk_type": "group",
    }
    body.update(extra)
    return body


@pytest.fixture()
def client() -> TestClient:
    return TestClient(create_app())


def test_root_and_health(client: TestClient) -> None:
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "running"
    assert root.json()["health"] == "/api/health"

    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json() == {"status": "ok"}


def test_optimize_endpoint_plans_pack_walk(client: TestClient) -> None:
    payload = {
        "appointments": [_appointment_body("A", 40.7), _appointment_body("B", 40.7029)],
        "current_time": "06:00",
        "compare": True,
        "include_trace": True,
    }

    response = client.post("/api/routes/optimize", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["optimized"] is True
    assert [stop["stop_type"] for stop in data["route"]] == ["pickup", "pickup", "dropoff", "dropoff"]
    assert [stop["arrival_time"] for stop in data["route"]] == ["10:00", "10:09", "10:20", "10:29"]
    assert data["route"][0]["coordinates"] == {"lat": 40.7, "lng": -74.0}
    assert data["total_distance"] == pytest.approx(0.6)
    assert len(data["path_coordinates"]) == 4
    assert data["comparison"]["original_distance"] == pytest.approx(0.2)
    assert any(event["kind"] == "auto_group" for event in data["trace"])


def test_optimize_endpoint_returns_empty_route_message(client: TestClient) -> None:
    payload = {"appointments": [_appointment_body("A", None, None)], "current_time": "06:00"}

    response = client.post("/api/routes/optimize", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["route"] == []
    assert data["optimized"] is False
    assert data["message"] == "No geocoded appointments to optimize"


def test_optimize_endpoint_validates_payload(client: TestClient) -> None:
    bad_time = client.post(
        "/api/routes/optimize",
        json={"appointments": [_appointment_body("A", 40.7)], "current_time": "teatime"},
    )
    bad_duration = client.post(
        "/api/routes/optimize",
        json={"appointments": [_appointment_body("A", 40.7, duration_minutes=0)]},
    )

    assert bad_time.status_code == 422
    assert bad_duration.status_code == 422


def test_optimize_endpoint_reports_unexpected_errors(monkeypatch, client: TestClient) -> None:
    def explode(payload):
        raise RuntimeError("boom")

    from walkroute.api.routes import routes as routes_module

    monkeypatch.setattr(routes_module, "plan_route", explode)

    response = client.post("/api/routes/optimize", json={"appointments": []})

    assert response.status_code == 500
    assert "boom" in response.json()["detail"]


def test_optimize_endpoint_persists_when_requested(monkeypatch, tmp_path: Path, client: TestClient) -> None:
    original_storage = routing_service.FileStorage
    monkeypatch.setattr(routing_service, "FileStorage", lambda: original_storage(root=tmp_path))

    response = client.post(
        "/api/routes/optimize",
        json={
            "appointments": [_appointment_body("A", 40.7)],
            "current_time": "06:00",
            "persist": True,
        },
    )

    assert response.status_code == 200
    run_dirs = list((tmp_path / "outputs").iterdir())
    assert len(run_dirs) == 1
    assert (run_dirs[0] / "summary.json").exists()
    assert (run_dirs[0] / "stops.csv").exists()


def test_reorder_endpoint(client: TestClient) -> None:
    payload = {
        "appointments": [_appointment_body("A", 40.7), _appointment_body("B", 40.7029)],
        "order": ["B", "A"],
    }

    response = client.post("/api/routes/reorder", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["manually_ordered"] is True
    assert [stop["appointment_id"] for stop in data["route"]] == ["B", "A"]
    assert [stop["sequence"] for stop in data["route"]] == [1, 2]


def test_reorder_endpoint_rejects_unknown_ids(client: TestClient) -> None:
    payload = {"appointments": [_appointment_body("A", 40.7)], "order": ["A", "Z"]}

    response = client.post("/api/routes/reorder", json=payload)

    assert response.status_code == 400
    assert "Z" in response.json()["detail"]

    empty_order = client.post("/api/routes/reorder", json={"appointments": [], "order": []})
    assert empty_order.status_code == 422


def test_walk_group_suggestions_endpoint(client: TestClient) -> None:
    payload = {
        "appointments": [
            _appointment_body("A", 40.7),
            _appointment_body("B", 40.7029, start="10:10", end="10:40"),
            _appointment_body("C", 40.75),
            _appointment_body("S", 40.7, walk_type="solo"),
        ]
    }

    response = client.post("/api/walk-groups/suggestions", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["total_appointments"] == 4
    assert data["groupable_appointments"] == 3
    assert data["count"] == 2
    groups = sorted(suggestion["appointments"] for suggestion in data["suggestions"])
    assert groups == [["A", "B"], ["C"]]
