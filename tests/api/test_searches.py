"""Integration tests for the /searches endpoints."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from car_search.api.dependencies import get_search_manager
from car_search.app import create_app
from car_search.domain.errors import SubmissionError
from car_search.domain.models import PollResult, QueryStatus
from car_search.domain.services.query_poller import QueryPoller
from car_search.infrastructure.search_session_manager import SearchSessionManager


@pytest.fixture
def app():
    app = create_app()
    yield app
    app.dependency_overrides.clear()


def override_manager(app, api) -> SearchSessionManager:
    """Route the app to a manager backed by the scripted backend."""
    manager = SearchSessionManager(
        api=api,
        poller_factory=lambda api: QueryPoller(
            api, poll_interval_ms=10, poll_wait_ms=5, budget_ms=5000
        ),
        session_ttl=60,
        session_cache_size=10,
    )
    app.dependency_overrides[get_search_manager] = lambda: manager
    return manager


def wait_for_phase(client: TestClient, query_id: str, phase: str, timeout: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        resp = client.get(f"/searches/{query_id}")
        assert resp.status_code == 200
        data = resp.json()
        if data["phase"] == phase:
            return data
        time.sleep(0.02)
    raise AssertionError(f"search {query_id} did not reach {phase}")


def test_health(app) -> None:
    with TestClient(app) as client:
        resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_search_collects_offers(app, make_api, request_payload, offer_builder) -> None:
    api = make_api(
        polls=[
            PollResult(query_id="r1", last_seq=2, items=[offer_builder(1), offer_builder(2)]),
            PollResult(
                query_id="r1",
                status=QueryStatus.COMPLETE,
                last_seq=3,
                items=[offer_builder(3)],
                complete=True,
            ),
        ]
    )
    override_manager(app, api)

    with TestClient(app) as client:
        resp = client.post("/searches", json=request_payload)
        assert resp.status_code == 200
        handle = resp.json()
        data = wait_for_phase(client, handle["query_id"], "COMPLETE")

    assert handle["status"] == "PENDING"
    assert handle["recommended_poll_ms"] == 500
    assert [item["supplier_offer_ref"] for item in data["items"]] == ["o1", "o2", "o3"]
    assert data["high_water_seq"] == 3
    assert data["error"] is None
    assert api.closed is True


def test_search_submission_failure(app, make_api, request_payload) -> None:
    api = make_api(
        submit_error=SubmissionError("Submit rejected with HTTP 500: boom", status_code=500)
    )
    override_manager(app, api)

    with TestClient(app) as client:
        resp = client.post("/searches", json=request_payload)
        lookup = client.get("/searches/r1")

    assert resp.status_code == 502
    assert "HTTP 500" in resp.json()["detail"]
    assert lookup.status_code == 404
    assert api.calls == []


def test_cancel_search(app, make_api, request_payload) -> None:
    api = make_api()
    override_manager(app, api)

    with TestClient(app) as client:
        query_id = client.post("/searches", json=request_payload).json()["query_id"]
        resp = client.delete(f"/searches/{query_id}")
        after = client.get(f"/searches/{query_id}")

    assert resp.status_code == 200
    assert resp.json()["phase"] == "CANCELLED"
    assert after.json()["phase"] == "CANCELLED"


def test_unknown_search_returns_404(app, make_api) -> None:
    override_manager(app, make_api())

    with TestClient(app) as client:
        get_resp = client.get("/searches/non-existent")
        delete_resp = client.delete("/searches/non-existent")

    assert get_resp.status_code == 404
    assert "not found" in get_resp.json()["detail"].lower()
    assert delete_resp.status_code == 404


def test_invalid_request_is_rejected(app, make_api, request_payload) -> None:
    api = make_api()
    override_manager(app, api)
    request_payload.pop("pickup_unlocode")

    with TestClient(app) as client:
        resp = client.post("/searches", json=request_payload)

    assert resp.status_code == 422
    assert api.submitted == []
