from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from loguru import logger

from annadhanam.models import DashboardStats, LogEntry, Restaurant
from annadhanam.services.api_client import AsyncFoodRescueClient, FoodRescueApiError
from annadhanam.utils import format_kg, round_half_up


# A missing value is absent or zero in every formula below.

def total_predicted(logs: Sequence[LogEntry]) -> float:
    return sum((log.predicted_surplus_kg or 0.0) for log in logs)


def total_actual(logs: Sequence[LogEntry]) -> float:
    return sum((log.actual_surplus_kg or 0.0) for log in logs)


def accuracy_denominator(logs: Sequence[LogEntry]) -> float:
    # Entries without an actual value count as 1, not 0.
    return sum((log.actual_surplus_kg or 1.0) for log in logs)


def has_comparable_entries(logs: Sequence[LogEntry]) -> bool:
    return any(log.predicted_surplus_kg and log.actual_surplus_kg for log in logs)


def accuracy_pct(logs: Sequence[LogEntry]) -> int:
    """Aggregate predicted-vs-actual accuracy over a restaurant's history.

    ``round(100 * (1 - |sum(predicted) - sum(actual)| / sum(actual or 1)))``,
    or 0 when no entry carries both a prediction and an actual value. The
    result is not clamped and goes negative for wild over-predictions.
    """
    if not has_comparable_entries(logs):
        return 0
    denom = accuracy_denominator(logs)
    if denom == 0:
        return 0
    error = abs(total_predicted(logs) - total_actual(logs))
    return round_half_up((1 - error / denom) * 100)


def distribution_rate_pct(stats: DashboardStats) -> int:
    # Zero actual surplus means a 0% rate; no substitution here.
    if stats.total_actual_kg > 0:
        return round_half_up((stats.total_distributed_kg / stats.total_actual_kg) * 100)
    return 0


@dataclass
class HistorySummary:
    records: int = 0
    total_predicted_kg: float = 0.0
    total_actual_kg: float = 0.0
    accuracy_pct: int = 0

    @property
    def total_predicted_display(self) -> str:
        return f"{self.total_predicted_kg:.2f} kg"

    @property
    def total_actual_display(self) -> str:
        return f"{self.total_actual_kg:.2f} kg"

    @property
    def accuracy_display(self) -> str:
        return f"{self.accuracy_pct}%"


def summarize_history(logs: Sequence[LogEntry]) -> HistorySummary:
    return HistorySummary(
        records=len(logs),
        total_predicted_kg=total_predicted(logs),
        total_actual_kg=total_actual(logs),
        accuracy_pct=accuracy_pct(logs),
    )


def history_row(log: LogEntry) -> dict:
    """Table row as shown in the restaurant database view."""
    return {
        "date": log.date or "N/A",
        "meal": log.meal_type or "",
        "previous_waste": f"{log.previous_waste_kg or 0:g} kg",
        "predicted": format_kg(log.predicted_surplus_kg),
        "actual": format_kg(log.actual_surplus_kg),
        "status": log.status,
        "completed": log.is_completed,
    }


class HistoryAggregator:
    """Log history for the selected restaurant, fetched fresh on every selection."""

    def __init__(self, client: AsyncFoodRescueClient, *, discard_stale: bool = True) -> None:
        self._client = client
        self.discard_stale = discard_stale
        self.selected_restaurant: Optional[Restaurant] = None
        self.logs: Tuple[LogEntry, ...] = ()
        self._seq = 0

    @property
    def summary(self) -> HistorySummary:
        return summarize_history(self.logs)

    def _is_current(self, token: int) -> bool:
        return not self.discard_stale or token == self._seq

    async def select(self, restaurant: Restaurant) -> Tuple[LogEntry, ...]:
        """Fetch ``restaurant``'s history and return the logs for this request.

        The returned logs always belong to ``restaurant``. They only become
        the shown history when no newer selection has been made meanwhile.
        """
        self.selected_restaurant = restaurant
        self._seq += 1
        token = self._seq
        try:
            items = tuple(await self._client.logs(restaurant.id))
        except FoodRescueApiError as exc:
            logger.error("Error fetching logs for restaurant {}: {}", restaurant.id, exc)
            items = ()
        if not self._is_current(token):
            logger.debug("dropping stale log history for restaurant {}", restaurant.id)
            return items
        self.logs = items
        return items


@dataclass
class DashboardOverview:
    stats: DashboardStats = field(default_factory=DashboardStats)
    distribution_rate_pct: int = 0
    needs_onboarding: bool = True


def build_overview(stats: DashboardStats) -> DashboardOverview:
    return DashboardOverview(
        stats=stats,
        distribution_rate_pct=distribution_rate_pct(stats),
        needs_onboarding=stats.total_restaurants == 0 or stats.total_ngos == 0,
    )


async def load_overview(client: AsyncFoodRescueClient) -> DashboardOverview:
    try:
        stats = await client.dashboard_stats()
    except FoodRescueApiError as exc:
        logger.error("Error fetching dashboard stats: {}", exc)
        # unknown counts: show zeros but no onboarding hint
        return DashboardOverview(needs_onboarding=False)
    return build_overview(stats)
