from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from loguru import logger
from pydantic import BaseModel, Field

from annadhanam.config import Configuration
from annadhanam.models import PredictionRequest, Restaurant
from annadhanam.services.analytics import HistoryAggregator, history_row, load_overview, summarize_history
from annadhanam.services.api_client import AsyncFoodRescueClient, FoodRescueClient
from annadhanam.services.coordinator import MatchDefaults, RoutePlanner, SelectionCoordinator
from annadhanam.services.entity_cache import EntityCache
from annadhanam.services.map_export import build_route_map, render_map_html
from annadhanam.services.prediction import PredictionPipeline
from annadhanam.services.routes import RenderedRoute, render_routes

EntityIdField = Union[int, str]


class DashboardSession:
    """All view state for one operator dashboard; dropped when the process exits."""

    def __init__(self, cfg: Configuration, client: AsyncFoodRescueClient) -> None:
        self.cfg = cfg
        self.client = client
        self.entities = EntityCache(client)
        self.map_view = SelectionCoordinator(
            client,
            MatchDefaults(surplus_kg=cfg.map_surplus_kg, max_distance_km=cfg.map_max_distance_km),
            discard_stale=cfg.discard_stale_responses,
            marker_radius=cfg.drop_off_marker_radius,
        )
        self.route_planner = RoutePlanner(
            client,
            max_distance_km=cfg.route_max_distance_km,
            surplus_min_kg=cfg.route_surplus_min_kg,
            surplus_max_kg=cfg.route_surplus_max_kg,
            surplus_default_kg=cfg.route_surplus_default_kg,
            discard_stale=cfg.discard_stale_responses,
            marker_radius=cfg.drop_off_marker_radius,
        )
        self.prediction = PredictionPipeline(
            client,
            match_threshold_kg=cfg.prediction_match_threshold_kg,
            match_distance_km=cfg.prediction_max_distance_km,
            discard_stale=cfg.discard_stale_responses,
        )
        self.history = HistoryAggregator(client, discard_stale=cfg.discard_stale_responses)

    @classmethod
    def from_config(cls, cfg: Configuration) -> "DashboardSession":
        return cls(cfg, AsyncFoodRescueClient(FoodRescueClient(cfg)))


_session: Optional[DashboardSession] = None


def get_session() -> DashboardSession:
    global _session
    if _session is None:
        load_dotenv()
        cfg = Configuration.from_env()
        logger.info("cfg: {}", cfg.log_summary())
        _session = DashboardSession.from_config(cfg)
    return _session


app = FastAPI(title="Annadhanam Food Rescue Dashboard")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RestaurantPayload(BaseModel):
    id: EntityIdField
    name: str
    address: Optional[str]
    latitude: float
    longitude: float
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None


class NGOPayload(BaseModel):
    id: EntityIdField
    name: str
    address: Optional[str]
    latitude: float
    longitude: float
    capacity_kg: float = 0.0
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    operating_hours: Optional[str] = None


class EntitiesResponse(BaseModel):
    restaurants: List[RestaurantPayload]
    ngos: List[NGOPayload]
    map_center: Tuple[float, float]


class RouteStopPayload(BaseModel):
    number: int
    ngo_name: str
    address: Optional[str]
    distance_km: float
    allocated_kg: float
    contact: Optional[str] = None


class RouteSegmentPayload(BaseModel):
    number: int
    start: Tuple[float, float]
    end: Tuple[float, float]


class DropOffMarkerPayload(BaseModel):
    number: int
    center: Tuple[float, float]
    radius: float


class RouteSummaryPayload(BaseModel):
    total_distance_km: float = 0.0
    estimated_time_minutes: float = 0.0
    stops: int = 0
    total_allocated_kg: float = 0.0


class RoutePayload(BaseModel):
    origin: Optional[Tuple[float, float]] = None
    stops: List[RouteStopPayload] = []
    segments: List[RouteSegmentPayload] = []
    markers: List[DropOffMarkerPayload] = []
    summary: RouteSummaryPayload = RouteSummaryPayload()


class MapStateResponse(BaseModel):
    selected_restaurant_id: Optional[EntityIdField] = None
    route_origin_id: Optional[EntityIdField] = None
    active_routes: int = 0
    route: RoutePayload


class RoutePlanRequest(BaseModel):
    restaurant_id: Optional[EntityIdField] = Field(None, description="Restaurant chosen in the route view")
    surplus_kg: float = Field(20, allow_inf_nan=False, description="Slider value; clamped to the configured range")


class RoutePlanResponse(BaseModel):
    restaurant: Optional[RestaurantPayload] = None
    surplus_kg: float
    notice: Optional[str] = None
    no_matches: bool = False
    route: Optional[RoutePayload] = None


class PredictIn(BaseModel):
    restaurant_id: Optional[EntityIdField] = None
    day_of_week: int = Field(default_factory=lambda: date.today().weekday())
    meal_type: str = "lunch"
    previous_waste_kg: Optional[float] = Field(None, allow_inf_nan=False)
    weather: str = "sunny"
    special_event: int = 0
    customer_count: int = 150
    temperature: float = Field(22.0, allow_inf_nan=False)


class PredictionPayload(BaseModel):
    predicted_surplus_kg: float
    confidence: str
    recommendation: str


class PredictResponse(BaseModel):
    prediction: Optional[PredictionPayload] = None
    notice: Optional[str] = None
    match_attempted: bool = False
    matched: Optional[RoutePayload] = None


class HistoryResponse(BaseModel):
    restaurant: RestaurantPayload
    records: int
    total_predicted_kg: float
    total_actual_kg: float
    accuracy_pct: int
    totals_display: Dict[str, str]
    rows: List[Dict[str, Any]]


class DashboardResponse(BaseModel):
    stats: Dict[str, Any]
    distribution_rate_pct: int
    needs_onboarding: bool


def _route_payload(route: RenderedRoute) -> RoutePayload:
    return RoutePayload(**asdict(route))


async def _require_restaurant(session: DashboardSession, restaurant_id: EntityIdField) -> Restaurant:
    await session.entities.activate()
    restaurant = session.entities.find_restaurant(restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail=f"unknown restaurant {restaurant_id}")
    return restaurant


def _map_state(session: DashboardSession) -> MapStateResponse:
    view = session.map_view
    route = view.routes
    return MapStateResponse(
        selected_restaurant_id=view.selected_restaurant.id if view.selected_restaurant else None,
        route_origin_id=view.last_match_origin.id if view.last_match_origin else None,
        active_routes=len(route.segments),
        route=_route_payload(route),
    )


@app.get("/healthz")
def healthz(session: DashboardSession = Depends(get_session)) -> dict:
    logger.info("cfg: {}", session.cfg.log_summary())
    return {"status": "ok"}


@app.get("/api/entities", response_model=EntitiesResponse)
async def entities(session: DashboardSession = Depends(get_session)) -> EntitiesResponse:
    await session.entities.activate()
    return EntitiesResponse(
        restaurants=[RestaurantPayload(**asdict(r)) for r in session.entities.restaurants],
        ngos=[NGOPayload(**asdict(n)) for n in session.entities.ngos],
        map_center=session.entities.map_center(session.cfg.map_center),
    )


@app.post("/api/entities/refresh", response_model=EntitiesResponse)
async def refresh_entities(session: DashboardSession = Depends(get_session)) -> EntitiesResponse:
    await session.entities.refresh()
    return await entities(session)


@app.get("/api/map", response_model=MapStateResponse)
async def map_state(session: DashboardSession = Depends(get_session)) -> MapStateResponse:
    await session.entities.activate()
    return _map_state(session)


@app.post("/api/map/select/{restaurant_id}", response_model=MapStateResponse)
async def map_select(restaurant_id: str, session: DashboardSession = Depends(get_session)) -> MapStateResponse:
    restaurant = await _require_restaurant(session, restaurant_id)
    await session.map_view.select(restaurant)
    return _map_state(session)


@app.get("/map", response_class=HTMLResponse)
async def map_page(session: DashboardSession = Depends(get_session)) -> HTMLResponse:
    await session.entities.activate()
    view = session.map_view
    route = view.routes if view.last_match_result is not None else None
    m = build_route_map(
        session.entities.restaurants,
        session.entities.ngos,
        route,
        center=session.entities.map_center(session.cfg.map_center),
        zoom=session.cfg.map_zoom,
    )
    return HTMLResponse(render_map_html(m))


@app.post("/api/routes/plan", response_model=RoutePlanResponse)
async def plan_route(req: RoutePlanRequest, session: DashboardSession = Depends(get_session)) -> RoutePlanResponse:
    planner = session.route_planner
    await session.entities.activate()
    restaurant = None
    if req.restaurant_id is not None and str(req.restaurant_id).strip():
        restaurant = await _require_restaurant(session, req.restaurant_id)
    planner.choose(restaurant)
    planner.set_surplus(req.surplus_kg)
    await planner.calculate()

    shown = planner.last_match_result is not None
    return RoutePlanResponse(
        restaurant=RestaurantPayload(**asdict(restaurant)) if restaurant else None,
        surplus_kg=planner.surplus_kg,
        notice=planner.notice,
        no_matches=planner.no_matches,
        route=_route_payload(planner.routes) if shown else None,
    )


@app.post("/api/predict", response_model=PredictResponse)
async def predict(body: PredictIn, session: DashboardSession = Depends(get_session)) -> PredictResponse:
    await session.entities.activate()
    request = PredictionRequest(**body.model_dump())
    outcome = await session.prediction.submit(request)

    matched = None
    shown = outcome.displayed_match
    if shown is not None:
        restaurant = session.entities.find_restaurant(request.restaurant_id)
        origin = restaurant.coordinate if restaurant else None
        matched = _route_payload(render_routes(shown, origin, marker_radius=session.cfg.drop_off_marker_radius))

    return PredictResponse(
        prediction=PredictionPayload(**asdict(outcome.prediction)) if outcome.prediction else None,
        notice=outcome.notice,
        match_attempted=outcome.match_attempted,
        matched=matched,
    )


@app.get("/api/history/{restaurant_id}", response_model=HistoryResponse)
async def history(restaurant_id: str, session: DashboardSession = Depends(get_session)) -> HistoryResponse:
    restaurant = await _require_restaurant(session, restaurant_id)
    logs = await session.history.select(restaurant)
    summary = summarize_history(logs)
    return HistoryResponse(
        restaurant=RestaurantPayload(**asdict(restaurant)),
        records=summary.records,
        total_predicted_kg=summary.total_predicted_kg,
        total_actual_kg=summary.total_actual_kg,
        accuracy_pct=summary.accuracy_pct,
        totals_display={
            "total_predicted": summary.total_predicted_display,
            "total_actual": summary.total_actual_display,
            "accuracy": summary.accuracy_display,
        },
        rows=[history_row(log) for log in logs],
    )


@app.get("/api/dashboard", response_model=DashboardResponse)
async def dashboard(session: DashboardSession = Depends(get_session)) -> DashboardResponse:
    overview = await load_overview(session.client)
    return DashboardResponse(
        stats=asdict(overview.stats),
        distribution_rate_pct=overview.distribution_rate_pct,
        needs_onboarding=overview.needs_onboarding,
    )


if __name__ == "__main__":
    import uvicorn

    load_dotenv()
    uvicorn.run("annadhanam.main:app", host="0.0.0.0", port=8010, reload=True)
