from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from annadhanam.models import (
    MEAL_TYPES,
    WEATHER_TYPES,
    MatchRequest,
    MatchResult,
    PredictionRequest,
    PredictionResult,
)
from annadhanam.services.api_client import AsyncFoodRescueClient, FoodRescueApiError

PREDICT_FAILED_NOTICE = "Error making prediction. Please try again."


class PredictionValidationError(ValueError):
    pass


def validate_prediction_request(req: PredictionRequest) -> None:
    """Raise PredictionValidationError with a user-facing message."""
    if req.restaurant_id is None or not str(req.restaurant_id).strip():
        raise PredictionValidationError("Please select a restaurant")
    if req.previous_waste_kg is None:
        raise PredictionValidationError("Please enter the previous waste (kg)")
    if req.meal_type not in MEAL_TYPES:
        raise PredictionValidationError(f"Meal type must be one of: {', '.join(MEAL_TYPES)}")
    if req.weather not in WEATHER_TYPES:
        raise PredictionValidationError(f"Weather must be one of: {', '.join(WEATHER_TYPES)}")
    if not isinstance(req.day_of_week, int) or not 0 <= req.day_of_week <= 6:
        raise PredictionValidationError("Day of week must be between 0 (Monday) and 6 (Sunday)")
    if req.special_event not in (0, 1):
        raise PredictionValidationError("Special event must be 0 or 1")


def should_match(predicted_surplus_kg: float, threshold_kg: float) -> bool:
    return predicted_surplus_kg > threshold_kg


@dataclass
class PredictionOutcome:
    prediction: Optional[PredictionResult] = None
    match: Optional[MatchResult] = None
    notice: Optional[str] = None
    match_attempted: bool = False
    superseded: bool = False

    @property
    def displayed_match(self) -> Optional[MatchResult]:
        if self.match is not None and self.match.has_matches:
            return self.match
        return None


class PredictionPipeline:
    """Predict surplus, then match NGOs only when the prediction is worth moving.

    A failed prediction aborts the flow with one generic notice. A failed
    follow-up match is only logged; the match section simply stays absent.
    """

    def __init__(
        self,
        client: AsyncFoodRescueClient,
        *,
        match_threshold_kg: float = 5.0,
        match_distance_km: float = 10.0,
        discard_stale: bool = True,
    ) -> None:
        self._client = client
        self.match_threshold_kg = match_threshold_kg
        self.match_distance_km = match_distance_km
        self.discard_stale = discard_stale
        self.prediction: Optional[PredictionResult] = None
        self.matching: Optional[MatchResult] = None
        self.notice: Optional[str] = None
        self._seq = 0

    @property
    def displayed_match(self) -> Optional[MatchResult]:
        if self.matching is not None and self.matching.has_matches:
            return self.matching
        return None

    def _is_current(self, token: int) -> bool:
        return not self.discard_stale or token == self._seq

    async def submit(self, request: PredictionRequest) -> PredictionOutcome:
        self._seq += 1
        token = self._seq
        self.prediction = None
        self.matching = None
        self.notice = None

        try:
            validate_prediction_request(request)
        except PredictionValidationError as exc:
            self.notice = str(exc)
            return PredictionOutcome(notice=self.notice)

        return await self._run(token, request)

    async def _run(self, token: int, request: PredictionRequest) -> PredictionOutcome:
        try:
            prediction = await self._client.predict(request)
        except FoodRescueApiError as exc:
            logger.error("Error predicting surplus for restaurant {}: {}", request.restaurant_id, exc)
            if not self._is_current(token):
                return PredictionOutcome(superseded=True)
            self.notice = PREDICT_FAILED_NOTICE
            return PredictionOutcome(notice=self.notice)

        if not self._is_current(token):
            logger.debug("dropping stale prediction for restaurant {}", request.restaurant_id)
            return PredictionOutcome(prediction=prediction, superseded=True)
        self.prediction = prediction
        outcome = PredictionOutcome(prediction=prediction)

        predicted = prediction.predicted_surplus_kg
        if not should_match(predicted, self.match_threshold_kg):
            logger.info(
                "predicted {:.2f}kg for restaurant {} is within threshold {:.2f}kg; no match",
                predicted,
                request.restaurant_id,
                self.match_threshold_kg,
            )
            return outcome

        outcome.match_attempted = True
        match_request = MatchRequest(
            restaurant_id=request.restaurant_id,
            surplus_kg=predicted,
            max_distance_km=self.match_distance_km,
        )
        try:
            match = await self._client.match(match_request)
        except FoodRescueApiError as exc:
            logger.error("Error matching predicted surplus for restaurant {}: {}", request.restaurant_id, exc)
            return outcome

        if not self._is_current(token):
            logger.debug("dropping stale prediction match for restaurant {}", request.restaurant_id)
            outcome.superseded = True
            return outcome
        self.matching = match
        outcome.match = match
        return outcome
