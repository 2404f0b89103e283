import time

import pytest
from fastapi.testclient import TestClient

from electoral.api.projections import get_job_manager
from electoral.main import app


@pytest.fixture
def client():
    get_job_manager.cache_clear()
    with TestClient(app) as client:
        yield client
    get_job_manager.cache_clear()


@pytest.fixture
def payload(make_request):
    return make_request(iterations=500).model_dump(mode="json")


def wait_for_job(client, job_id, timeout=30.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/v1/projections/jobs/{job_id}").json()
        if body["status"] in ("completed", "failed", "cancelled"):
            return body
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish")


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRun:
    def test_prediction(self, client, payload):
        response = client.post("/api/v1/projections/run", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "prediction"
        assert sum(e["seats"] for e in body["projection"]["entities"]) == payload["scope"]["total_seats"]

    def test_what_if(self, client, payload):
        payload["simulation"] = {"kind": "what_if", "adjustments": [{"entity_id": "B", "delta": 0.05}]}
        response = client.post("/api/v1/projections/run", json=payload)
        assert response.status_code == 200
        assert response.json()["comparison"]["biggest_gainer"] == "B"

    def test_validation_error(self, client, payload):
        payload["iterations"] = 0
        response = client.post("/api/v1/projections/run", json=payload)
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "validation"

    def test_unknown_simulation_kind(self, client, payload):
        payload["simulation"] = {"kind": "forecast"}
        response = client.post("/api/v1/projections/run", json=payload)
        assert response.status_code == 422


class TestCompare:
    def test_compare(self, client, payload):
        before = client.post("/api/v1/projections/run", json=payload).json()["projection"]
        payload["adjustments"] = [{"entity_id": "C", "delta": 0.03}]
        after = client.post("/api/v1/projections/run", json=payload).json()["projection"]
        response = client.post("/api/v1/projections/compare", json={"before": before, "after": after})
        assert response.status_code == 200
        assert response.json()["biggest_gainer"] == "C"

    def test_mismatch(self, client, payload):
        before = client.post("/api/v1/projections/run", json=payload).json()["projection"]
        after = dict(before, entities=before["entities"][:2])
        response = client.post("/api/v1/projections/compare", json={"before": before, "after": after})
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "mismatch"


class TestJobs:
    def test_submit_and_poll(self, client, payload):
        response = client.post("/api/v1/projections/jobs", json=payload)
        assert response.status_code == 202
        body = wait_for_job(client, response.json()["job_id"])
        assert body["status"] == "completed"
        assert body["outcome"]["kind"] == "prediction"

    def test_failed_job(self, client, payload):
        payload["iterations"] = 0
        job_id = client.post("/api/v1/projections/jobs", json=payload).json()["job_id"]
        body = wait_for_job(client, job_id)
        assert body["status"] == "failed"
        assert body["error_kind"] == "validation"

    def test_unknown_job(self, client):
        assert client.get("/api/v1/projections/jobs/nope").status_code == 404
        assert client.delete("/api/v1/projections/jobs/nope").status_code == 404
