"""Data models for the surplus redistribution dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Union

EntityId = Union[int, str]

MEAL_TYPES = ("breakfast", "lunch", "dinner")
WEATHER_TYPES = ("sunny", "rainy", "cloudy")


@dataclass(frozen=True)
class Restaurant:
    id: EntityId
    name: str
    address: Optional[str]
    latitude: float
    longitude: float
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def coordinate(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class NGO:
    id: EntityId
    name: str
    address: Optional[str]
    latitude: float
    longitude: float
    capacity_kg: float = 0.0
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    operating_hours: Optional[str] = None

    @property
    def coordinate(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class MatchRequest:
    restaurant_id: EntityId
    surplus_kg: float
    max_distance_km: float

    def __post_init__(self) -> None:
        if not self.surplus_kg or self.surplus_kg <= 0:
            raise ValueError(f"surplus_kg must be positive, got {self.surplus_kg!r}")
        if not self.max_distance_km or self.max_distance_km <= 0:
            raise ValueError(f"max_distance_km must be positive, got {self.max_distance_km!r}")

    def to_payload(self) -> dict:
        return {
            "restaurant_id": self.restaurant_id,
            "surplus_kg": self.surplus_kg,
            "max_distance_km": self.max_distance_km,
        }


@dataclass
class MatchedNGO:
    ngo_name: str
    address: Optional[str]
    distance_km: float
    allocated_kg: float
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def coordinate(self) -> Optional[tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass
class RouteInfo:
    total_distance_km: float = 0.0
    estimated_time_minutes: float = 0.0


@dataclass
class MatchResult:
    matched_ngos: List[MatchedNGO] = field(default_factory=list)  # allocation priority order
    route_info: Optional[RouteInfo] = None
    total_allocated_kg: Optional[float] = None

    @property
    def has_matches(self) -> bool:
        return len(self.matched_ngos) > 0


@dataclass
class PredictionRequest:
    restaurant_id: Optional[EntityId]
    previous_waste_kg: Optional[float]
    day_of_week: int = field(default_factory=lambda: date.today().weekday())  # Monday = 0
    meal_type: str = "lunch"
    weather: str = "sunny"
    special_event: int = 0
    customer_count: int = 150
    temperature: float = 22.0

    def to_payload(self) -> dict:
        return {
            "restaurant_id": self.restaurant_id,
            "day_of_week": self.day_of_week,
            "meal_type": self.meal_type,
            "previous_waste_kg": self.previous_waste_kg,
            "weather": self.weather,
            "special_event": self.special_event,
            "customer_count": self.customer_count,
            "temperature": self.temperature,
        }


@dataclass
class PredictionResult:
    predicted_surplus_kg: float
    confidence: str = ""
    recommendation: str = ""


@dataclass
class LogEntry:
    date: Optional[str]
    meal_type: Optional[str]
    previous_waste_kg: Optional[float] = None
    predicted_surplus_kg: Optional[float] = None
    actual_surplus_kg: Optional[float] = None
    status: str = "pending"
    id: Optional[EntityId] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


@dataclass
class DashboardStats:
    total_restaurants: int = 0
    total_ngos: int = 0
    total_distributed_kg: float = 0.0
    meals_served: int = 0
    co2_saved_kg: float = 0.0
    total_predictions: int = 0
    total_predicted_kg: float = 0.0
    total_actual_kg: float = 0.0
