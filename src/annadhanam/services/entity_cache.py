from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from loguru import logger

from annadhanam.models import NGO, EntityId, Restaurant
from annadhanam.services.api_client import AsyncFoodRescueClient, FoodRescueApiError
from annadhanam.utils import same_id


class EntityCache:
    """Restaurants and NGOs fetched once per view activation.

    A failed fetch is logged and leaves the collection as it was (empty on
    first load), so callers never see an error state.
    """

    def __init__(self, client: AsyncFoodRescueClient) -> None:
        self._client = client
        self._restaurants: Tuple[Restaurant, ...] = ()
        self._ngos: Tuple[NGO, ...] = ()
        self._activated = False
        self._first_load: Optional[asyncio.Future] = None

    @property
    def restaurants(self) -> Tuple[Restaurant, ...]:
        return self._restaurants

    @property
    def ngos(self) -> Tuple[NGO, ...]:
        return self._ngos

    @property
    def activated(self) -> bool:
        return self._activated

    async def activate(self) -> None:
        if self._activated:
            return
        # callers arriving mid-load wait on the same fetch
        if self._first_load is None:
            self._first_load = asyncio.ensure_future(self._load_once())
        await self._first_load

    async def _load_once(self) -> None:
        try:
            await self.refresh()
        finally:
            self._first_load = None

    async def refresh(self) -> None:
        await asyncio.gather(self._load_restaurants(), self._load_ngos())
        self._activated = True
        logger.info("entity cache restaurants={} ngos={}", len(self._restaurants), len(self._ngos))

    async def _load_restaurants(self) -> None:
        try:
            items = await self._client.list_restaurants()
        except FoodRescueApiError as exc:
            logger.error("Error fetching restaurants: {}", exc)
            return
        self._restaurants = tuple(items)

    async def _load_ngos(self) -> None:
        try:
            items = await self._client.list_ngos()
        except FoodRescueApiError as exc:
            logger.error("Error fetching NGOs: {}", exc)
            return
        self._ngos = tuple(items)

    def find_restaurant(self, restaurant_id: EntityId) -> Optional[Restaurant]:
        return next((r for r in self._restaurants if same_id(r.id, restaurant_id)), None)

    def find_ngo(self, ngo_id: EntityId) -> Optional[NGO]:
        return next((n for n in self._ngos if same_id(n.id, ngo_id)), None)

    def map_center(self, default: tuple[float, float]) -> tuple[float, float]:
        if self._restaurants:
            return self._restaurants[0].coordinate
        return default
