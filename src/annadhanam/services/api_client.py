from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import requests
from loguru import logger

from annadhanam.config import Configuration
from annadhanam.models import (
    NGO,
    DashboardStats,
    EntityId,
    LogEntry,
    MatchedNGO,
    MatchRequest,
    MatchResult,
    PredictionRequest,
    PredictionResult,
    Restaurant,
    RouteInfo,
)
from annadhanam.utils import to_float


class FoodRescueApiError(RuntimeError):
    pass


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_restaurants(items: List[dict]) -> List[Restaurant]:
    results: list[Restaurant] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        lat = to_float(item.get("latitude"))
        lon = to_float(item.get("longitude"))
        if item.get("id") is None or lat is None or lon is None:
            logger.warning("skipping restaurant without id/coordinates: {}", item.get("name"))
            continue
        results.append(
            Restaurant(
                id=item["id"],
                name=str(item.get("name") or "Restaurant"),
                address=_opt_str(item.get("address")),
                latitude=lat,
                longitude=lon,
                contact_person=_opt_str(item.get("contact_person")),
                phone=_opt_str(item.get("phone")),
                email=_opt_str(item.get("email")),
                created_at=_opt_str(item.get("created_at")),
            )
        )
    return results


def _parse_ngos(items: List[dict]) -> List[NGO]:
    results: list[NGO] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        lat = to_float(item.get("latitude"))
        lon = to_float(item.get("longitude"))
        if item.get("id") is None or lat is None or lon is None:
            logger.warning("skipping NGO without id/coordinates: {}", item.get("name"))
            continue
        capacity = to_float(item.get("capacity_kg")) or 0.0
        results.append(
            NGO(
                id=item["id"],
                name=str(item.get("name") or "NGO"),
                address=_opt_str(item.get("address")),
                latitude=lat,
                longitude=lon,
                capacity_kg=max(capacity, 0.0),
                contact_person=_opt_str(item.get("contact_person")),
                phone=_opt_str(item.get("phone")),
                email=_opt_str(item.get("email")),
                operating_hours=_opt_str(item.get("operating_hours")),
            )
        )
    return results


def _parse_match(payload: dict) -> MatchResult:
    matched: list[MatchedNGO] = []
    # Keep the service's allocation order untouched.
    for item in payload.get("matched_ngos") or []:
        if not isinstance(item, dict):
            continue
        matched.append(
            MatchedNGO(
                ngo_name=str(item.get("ngo_name") or item.get("name") or "NGO"),
                address=_opt_str(item.get("address")),
                distance_km=to_float(item.get("distance_km")) or 0.0,
                allocated_kg=to_float(item.get("allocated_kg")) or 0.0,
                contact_person=_opt_str(item.get("contact_person")),
                phone=_opt_str(item.get("phone")),
                latitude=to_float(item.get("latitude")),
                longitude=to_float(item.get("longitude")),
            )
        )

    route_info = None
    raw_route = payload.get("route_info")
    if isinstance(raw_route, dict):
        route_info = RouteInfo(
            total_distance_km=to_float(raw_route.get("total_distance_km")) or 0.0,
            estimated_time_minutes=to_float(raw_route.get("estimated_time_minutes")) or 0.0,
        )

    return MatchResult(
        matched_ngos=matched,
        route_info=route_info,
        total_allocated_kg=to_float(payload.get("total_allocated_kg")),
    )


def _parse_prediction(payload: dict) -> PredictionResult:
    raw = payload.get("prediction")
    if not isinstance(raw, dict):
        raise FoodRescueApiError("prediction missing from response")
    predicted = to_float(raw.get("predicted_surplus_kg"))
    if predicted is None:
        raise FoodRescueApiError("predicted_surplus_kg missing from response")
    return PredictionResult(
        predicted_surplus_kg=predicted,
        confidence=str(raw.get("confidence") or ""),
        recommendation=str(raw.get("recommendation") or ""),
    )


def _parse_logs(items: List[dict]) -> List[LogEntry]:
    results: list[LogEntry] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        results.append(
            LogEntry(
                id=item.get("id"),
                date=_opt_str(item.get("date")),
                meal_type=_opt_str(item.get("meal_type")),
                previous_waste_kg=to_float(item.get("previous_waste_kg")),
                predicted_surplus_kg=to_float(item.get("predicted_surplus_kg")),
                actual_surplus_kg=to_float(item.get("actual_surplus_kg")),
                status=str(item.get("status") or "pending"),
            )
        )
    return results


def _parse_stats(payload: dict) -> DashboardStats:
    def num(key: str) -> float:
        return to_float(payload.get(key)) or 0.0

    return DashboardStats(
        total_restaurants=int(num("total_restaurants")),
        total_ngos=int(num("total_ngos")),
        total_distributed_kg=num("total_distributed_kg"),
        meals_served=int(num("meals_served")),
        co2_saved_kg=num("co2_saved_kg"),
        total_predictions=int(num("total_predictions")),
        total_predicted_kg=num("total_predicted_kg"),
        total_actual_kg=num("total_actual_kg"),
    )


class FoodRescueClient:
    """Blocking JSON client for the prediction/matching service."""

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.api_base_url.rstrip("/")
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, *, params: Optional[dict] = None, body: Optional[dict] = None) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        if self.cfg.api_token:
            headers["Authorization"] = f"Bearer {self.cfg.api_token}"
        try:
            resp = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=body,
                timeout=self.cfg.api_timeout,
            )
        except requests.RequestException as exc:  # network error
            raise FoodRescueApiError(f"request error: {exc}") from exc

        if not resp.ok:
            snippet = resp.text[:300]
            raise FoodRescueApiError(f"upstream {resp.status_code}: {snippet}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FoodRescueApiError("invalid json response") from exc
        if not isinstance(payload, dict):
            raise FoodRescueApiError("unexpected response shape")
        return payload

    def list_restaurants(self) -> List[Restaurant]:
        payload = self._request("GET", "/api/restaurants")
        return _parse_restaurants(payload.get("restaurants") or [])

    def list_ngos(self) -> List[NGO]:
        payload = self._request("GET", "/api/ngos")
        return _parse_ngos(payload.get("ngos") or [])

    def predict(self, req: PredictionRequest) -> PredictionResult:
        payload = self._request("POST", "/api/predict", body=req.to_payload())
        return _parse_prediction(payload)

    def match(self, req: MatchRequest) -> MatchResult:
        payload = self._request("POST", "/api/match", body=req.to_payload())
        return _parse_match(payload)

    def logs(self, restaurant_id: EntityId) -> List[LogEntry]:
        payload = self._request("GET", "/api/logs", params={"restaurant_id": restaurant_id})
        return _parse_logs(payload.get("logs") or [])

    def dashboard_stats(self) -> DashboardStats:
        payload = self._request("GET", "/api/dashboard")
        return _parse_stats(payload)


class AsyncFoodRescueClient:
    """Coroutine facade; each call runs the blocking request in a worker thread."""

    def __init__(self, client: FoodRescueClient) -> None:
        self._client = client

    async def list_restaurants(self) -> List[Restaurant]:
        return await asyncio.to_thread(self._client.list_restaurants)

    async def list_ngos(self) -> List[NGO]:
        return await asyncio.to_thread(self._client.list_ngos)

    async def predict(self, req: PredictionRequest) -> PredictionResult:
        return await asyncio.to_thread(self._client.predict, req)

    async def match(self, req: MatchRequest) -> MatchResult:
        return await asyncio.to_thread(self._client.match, req)

    async def logs(self, restaurant_id: EntityId) -> List[LogEntry]:
        return await asyncio.to_thread(self._client.logs, restaurant_id)

    async def dashboard_stats(self) -> DashboardStats:
        return await asyncio.to_thread(self._client.dashboard_stats)
