from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from annadhanam.models import MatchRequest, MatchResult, Restaurant
from annadhanam.services.api_client import AsyncFoodRescueClient, FoodRescueApiError
from annadhanam.services.routes import DEFAULT_MARKER_RADIUS, RenderedRoute, render_routes


@dataclass(frozen=True)
class MatchDefaults:
    surplus_kg: float
    max_distance_km: float


class SelectionCoordinator:
    """Tracks the selected restaurant and the match result shown for it.

    Selecting a restaurant always issues a fresh match request with the
    illustrative defaults. Responses with no matched NGOs leave the previous
    result on screen. With ``discard_stale`` every request carries a sequence
    token and a response whose token has been superseded is dropped;
    without it responses apply in arrival order.
    """

    keep_previous_on_empty = True

    def __init__(
        self,
        client: AsyncFoodRescueClient,
        defaults: MatchDefaults,
        *,
        discard_stale: bool = True,
        marker_radius: float = DEFAULT_MARKER_RADIUS,
    ) -> None:
        self._client = client
        self.defaults = defaults
        self.discard_stale = discard_stale
        self.marker_radius = marker_radius
        self.selected_restaurant: Optional[Restaurant] = None
        self.last_match_result: Optional[MatchResult] = None
        self.last_match_origin: Optional[Restaurant] = None
        self._seq = 0
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def routes(self) -> RenderedRoute:
        origin = self.last_match_origin.coordinate if self.last_match_origin else None
        return render_routes(self.last_match_result, origin, marker_radius=self.marker_radius)

    async def select(self, restaurant: Restaurant) -> Optional[MatchResult]:
        self.selected_restaurant = restaurant
        return await self._issue(restaurant, self.defaults.surplus_kg)

    def _is_current(self, token: int) -> bool:
        return not self.discard_stale or token == self._seq

    async def _issue(self, restaurant: Restaurant, surplus_kg: float) -> Optional[MatchResult]:
        self._seq += 1
        token = self._seq
        request = MatchRequest(
            restaurant_id=restaurant.id,
            surplus_kg=surplus_kg,
            max_distance_km=self.defaults.max_distance_km,
        )
        self._in_flight += 1
        try:
            result = await self._client.match(request)
        except FoodRescueApiError as exc:
            self._on_failure(token, restaurant, exc)
            return None
        finally:
            self._in_flight -= 1

        if not self._is_current(token):
            logger.debug("dropping stale match response for restaurant {} (token {} < {})", restaurant.id, token, self._seq)
            return None
        self._apply(restaurant, result)
        return result

    def _on_failure(self, token: int, restaurant: Restaurant, exc: Exception) -> None:
        logger.error("Error calculating routes for restaurant {}: {}", restaurant.id, exc)

    def _apply(self, restaurant: Restaurant, result: MatchResult) -> None:
        if result.has_matches or not self.keep_previous_on_empty:
            self.last_match_result = result
            self.last_match_origin = restaurant
            logger.info("restaurant {} matched {} NGO(s)", restaurant.id, len(result.matched_ngos))
        else:
            logger.info("no NGOs matched for restaurant {}; keeping previous routes", restaurant.id)


class RoutePlanner(SelectionCoordinator):
    """Route view: pick a restaurant and a surplus amount, then calculate.

    Unlike the map view every response replaces the shown result, so an
    empty match renders as an explicit "no NGOs in range" state.
    """

    keep_previous_on_empty = False

    SELECT_PROMPT = "Please select a restaurant"
    FAILURE_NOTICE = "Error calculating route"
    NO_MATCHES_NOTICE = (
        "No NGOs found within the specified distance range. "
        "Try increasing the search radius or registering more NGOs."
    )

    def __init__(
        self,
        client: AsyncFoodRescueClient,
        *,
        max_distance_km: float = 15.0,
        surplus_min_kg: float = 5.0,
        surplus_max_kg: float = 100.0,
        surplus_default_kg: float = 20.0,
        discard_stale: bool = True,
        marker_radius: float = DEFAULT_MARKER_RADIUS,
    ) -> None:
        super().__init__(
            client,
            MatchDefaults(surplus_kg=surplus_default_kg, max_distance_km=max_distance_km),
            discard_stale=discard_stale,
            marker_radius=marker_radius,
        )
        self.surplus_min_kg = surplus_min_kg
        self.surplus_max_kg = surplus_max_kg
        self.surplus_kg = self._clamp(surplus_default_kg)
        self.notice: Optional[str] = None

    def _clamp(self, value: float) -> float:
        # slider works in whole kilograms
        whole = float(int(value))
        return max(self.surplus_min_kg, min(self.surplus_max_kg, whole))

    def set_surplus(self, value: float) -> float:
        self.surplus_kg = self._clamp(value)
        return self.surplus_kg

    def choose(self, restaurant: Optional[Restaurant]) -> None:
        self.selected_restaurant = restaurant

    @property
    def no_matches(self) -> bool:
        return self.last_match_result is not None and not self.last_match_result.has_matches

    async def calculate(self) -> Optional[MatchResult]:
        self.notice = None
        if self.selected_restaurant is None:
            self.notice = self.SELECT_PROMPT
            return None
        return await self._issue(self.selected_restaurant, self.surplus_kg)

    def _apply(self, restaurant: Restaurant, result: MatchResult) -> None:
        super()._apply(restaurant, result)
        self.notice = None if result.has_matches else self.NO_MATCHES_NOTICE

    def _on_failure(self, token: int, restaurant: Restaurant, exc: Exception) -> None:
        super()._on_failure(token, restaurant, exc)
        if self._is_current(token):
            self.notice = self.FAILURE_NOTICE
