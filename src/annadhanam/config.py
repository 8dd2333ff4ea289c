from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from annadhanam.utils import mask_secret


class Configuration(BaseModel):
    # Surplus/matching service
    api_base_url: str = Field(default="http://localhost:5000")
    api_timeout: int = Field(default=15)
    api_token: Optional[str] = Field(default=None)

    # Map view: illustrative route for the clicked restaurant
    map_surplus_kg: float = Field(default=25.0)
    map_max_distance_km: float = Field(default=15.0)
    map_center_lat: float = Field(default=11.1271)
    map_center_lon: float = Field(default=78.6569)
    map_zoom: int = Field(default=7)

    # Route planner
    route_max_distance_km: float = Field(default=15.0)
    route_surplus_min_kg: float = Field(default=5.0)
    route_surplus_max_kg: float = Field(default=100.0)
    route_surplus_default_kg: float = Field(default=20.0)

    # Prediction -> match chaining
    prediction_match_threshold_kg: float = Field(default=5.0)
    prediction_max_distance_km: float = Field(default=10.0)

    # Rendering
    drop_off_marker_radius: float = Field(default=200.0)

    # Concurrency
    discard_stale_responses: bool = Field(default=True)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "api_base_url": os.getenv("FOOD_API_BASE_URL"),
            "api_timeout": os.getenv("FOOD_API_TIMEOUT"),
            "api_token": os.getenv("FOOD_API_TOKEN"),
            "map_surplus_kg": os.getenv("MAP_SURPLUS_KG"),
            "map_max_distance_km": os.getenv("MAP_MAX_DISTANCE_KM"),
            "map_center_lat": os.getenv("MAP_CENTER_LAT"),
            "map_center_lon": os.getenv("MAP_CENTER_LON"),
            "map_zoom": os.getenv("MAP_ZOOM"),
            "route_max_distance_km": os.getenv("ROUTE_MAX_DISTANCE_KM"),
            "route_surplus_min_kg": os.getenv("ROUTE_SURPLUS_MIN_KG"),
            "route_surplus_max_kg": os.getenv("ROUTE_SURPLUS_MAX_KG"),
            "route_surplus_default_kg": os.getenv("ROUTE_SURPLUS_DEFAULT_KG"),
            "prediction_match_threshold_kg": os.getenv("PREDICTION_MATCH_THRESHOLD_KG"),
            "prediction_max_distance_km": os.getenv("PREDICTION_MAX_DISTANCE_KM"),
            "drop_off_marker_radius": os.getenv("DROP_OFF_MARKER_RADIUS"),
            "discard_stale_responses": os.getenv("DISCARD_STALE_RESPONSES"),
        }

        bool_fields = {"discard_stale_responses"}

        for k, v in env_map.items():
            if v is None:
                continue
            if k in bool_fields:
                raw[k] = str(v).lower() in {"1", "true", "yes", "on"}
            else:
                raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def map_center(self) -> tuple[float, float]:
        return (self.map_center_lat, self.map_center_lon)

    def log_summary(self) -> str:
        return (
            "api=%s timeout=%s map_defaults=%.1fkg/%.1fkm route_radius=%.1fkm "
            "predict_chain=>%.1fkg/%.1fkm discard_stale=%s token=%s"
            % (
                self.api_base_url,
                self.api_timeout,
                self.map_surplus_kg,
                self.map_max_distance_km,
                self.route_max_distance_km,
                self.prediction_match_threshold_kg,
                self.prediction_max_distance_km,
                self.discard_stale_responses,
                mask_secret(self.api_token),
            )
        )
