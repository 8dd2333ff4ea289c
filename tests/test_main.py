from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from annadhanam.config import Configuration
from annadhanam.main import DashboardSession, app, get_session
from annadhanam.models import DashboardStats, LogEntry, MatchResult, PredictionResult

from fakes import FakeClient, make_ngo, make_restaurant, match_result, matched


async def _wait_for(predicate) -> None:
    for _ in range(1000):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never reached")


@pytest.fixture
def fake() -> FakeClient:
    return FakeClient(
        restaurants=[make_restaurant(1, "Anjappar", 13.0, 80.0), make_restaurant(2, "Sangeetha", 13.2, 80.2)],
        ngos=[make_ngo(10, "Akshaya Trust", 13.1, 80.1)],
        predictions=[PredictionResult(12.0, "high", "Arrange pickup")],
        matches=[match_result(matched("Akshaya Trust", 13.1, 80.1), matched("Goonj", 13.05, 80.05))],
        logs=[[
            LogEntry(date="2024-03-01", meal_type="lunch", predicted_surplus_kg=10, actual_surplus_kg=8, status="completed"),
            LogEntry(date="2024-03-02", meal_type="dinner", predicted_surplus_kg=5, status="pending"),
        ]],
        stats=DashboardStats(total_restaurants=2, total_ngos=1, total_distributed_kg=30, total_actual_kg=40),
    )


@pytest.fixture
def api(fake: FakeClient):
    session = DashboardSession(Configuration(), fake)
    app.dependency_overrides[get_session] = lambda: session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_entities_loaded_once(api, fake) -> None:
    first = api.get("/api/entities").json()
    api.get("/api/entities")
    assert [r["name"] for r in first["restaurants"]] == ["Anjappar", "Sangeetha"]
    assert first["map_center"] == [13.0, 80.0]
    assert fake.restaurant_calls == 1


def test_map_select_renders_routes(api, fake) -> None:
    body = api.post("/api/map/select/2").json()
    assert body["selected_restaurant_id"] == 2
    assert body["active_routes"] == 2
    assert [s["number"] for s in body["route"]["stops"]] == [1, 2]
    assert body["route"]["segments"][0]["start"] == [13.2, 80.2]
    assert fake.match_calls[0].surplus_kg == 25.0


def test_map_select_unknown_restaurant_is_404(api) -> None:
    assert api.post("/api/map/select/99").status_code == 404


def test_map_page_is_html(api) -> None:
    api.post("/api/map/select/1")
    resp = api.get("/map")
    assert resp.status_code == 200
    assert "Anjappar" in resp.text


def test_route_plan_without_restaurant_returns_notice(api, fake) -> None:
    body = api.post("/api/routes/plan", json={"surplus_kg": 40}).json()
    assert body["notice"] == "Please select a restaurant"
    assert body["route"] is None
    assert fake.match_calls == []


def test_route_plan_clamps_surplus(api, fake) -> None:
    body = api.post("/api/routes/plan", json={"restaurant_id": 1, "surplus_kg": 500}).json()
    assert body["surplus_kg"] == 100
    assert body["route"]["summary"]["stops"] == 2
    assert body["notice"] is None
    assert fake.match_calls[0].max_distance_km == 15.0


def test_route_plan_no_matches(api, fake) -> None:
    fake.matches = [MatchResult()]
    body = api.post("/api/routes/plan", json={"restaurant_id": "1", "surplus_kg": 20}).json()
    assert body["no_matches"] is True
    assert body["notice"].startswith("No NGOs found within")
    assert body["route"]["stops"] == []


def test_predict_chains_match(api, fake) -> None:
    body = api.post("/api/predict", json={"restaurant_id": "1", "previous_waste_kg": 15.5, "day_of_week": 1}).json()
    assert body["prediction"]["predicted_surplus_kg"] == 12.0
    assert body["match_attempted"] is True
    assert len(body["matched"]["stops"]) == 2
    assert body["matched"]["origin"] == [13.0, 80.0]
    assert fake.match_calls[0].max_distance_km == 10.0


def test_predict_validation_notice(api, fake) -> None:
    body = api.post("/api/predict", json={"previous_waste_kg": 15.5}).json()
    assert body["notice"] == "Please select a restaurant"
    assert fake.predict_calls == []


def test_history_accuracy(api) -> None:
    body = api.get("/api/history/1").json()
    assert body["records"] == 2
    assert body["accuracy_pct"] == 22
    assert body["totals_display"]["total_predicted"] == "15.00 kg"
    assert body["rows"][1]["actual"] == "-"


def test_dashboard_distribution_rate(api) -> None:
    body = api.get("/api/dashboard").json()
    assert body["distribution_rate_pct"] == 75
    assert body["needs_onboarding"] is False


def test_concurrent_history_requests_keep_their_own_rows(fake) -> None:
    fake.gate_logs = True
    session = DashboardSession(Configuration(), fake)
    app.dependency_overrides[get_session] = lambda: session

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://dashboard") as http:
            first = asyncio.ensure_future(http.get("/api/history/1"))
            await _wait_for(lambda: len(fake.pending_logs) == 1)
            second = asyncio.ensure_future(http.get("/api/history/2"))
            await _wait_for(lambda: len(fake.pending_logs) == 2)
            fake.pending_logs[1].set_result([LogEntry(date="2024-03-05", meal_type="lunch", predicted_surplus_kg=4, actual_surplus_kg=4)])
            newer = (await second).json()
            fake.pending_logs[0].set_result([LogEntry(date="2024-03-04", meal_type="dinner", predicted_surplus_kg=10)])
            older = (await first).json()
        return older, newer

    try:
        older, newer = asyncio.run(scenario())
    finally:
        app.dependency_overrides.clear()

    assert newer["restaurant"]["id"] == 2
    assert newer["accuracy_pct"] == 100
    assert older["restaurant"]["id"] == 1
    assert older["accuracy_pct"] == 0
    assert [row["predicted"] for row in older["rows"]] == ["10 kg"]
    assert session.history.selected_restaurant.id == 2


def test_requests_during_first_load_wait_for_entities(fake) -> None:
    fake.gate_restaurants = True
    session = DashboardSession(Configuration(), fake)
    app.dependency_overrides[get_session] = lambda: session

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://dashboard") as http:
            listing = asyncio.ensure_future(http.get("/api/entities"))
            await _wait_for(lambda: len(fake.pending_restaurants) == 1)
            history = asyncio.ensure_future(http.get("/api/history/2"))
            for _ in range(50):
                await asyncio.sleep(0)
            assert not history.done()
            fake.pending_restaurants[0].set_result(
                [make_restaurant(1, "Anjappar", 13.0, 80.0), make_restaurant(2, "Sangeetha", 13.2, 80.2)]
            )
            return await listing, await history

    try:
        listing, history = asyncio.run(scenario())
    finally:
        app.dependency_overrides.clear()

    assert listing.status_code == 200
    assert history.status_code == 200
    assert history.json()["restaurant"]["name"] == "Sangeetha"
    assert fake.restaurant_calls == 1


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
def test_route_plan_rejects_non_finite_surplus(api, fake, raw) -> None:
    resp = api.post(
        "/api/routes/plan",
        content='{"restaurant_id": 1, "surplus_kg": %s}' % raw,
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 422
    assert fake.match_calls == []
