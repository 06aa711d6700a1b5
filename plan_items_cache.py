from __future__ import annotations

import datetime
import time
from typing import Callable, Optional, Protocol

from loguru import logger


class PlanItemSource(Protocol):
    async def fetch_plan_items_sorted(
        self, plan_id: str, start: str | None = None, end: str | None = None
    ) -> list[dict]: ...

    async def fetch_workouts(self) -> list[dict]: ...


def to_date_str(value) -> Optional[str]:
    """Normalize a stored date or timestamp to ``YYYY-MM-DD``."""
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value).split("T")[0].split(" ")[0]


def _item_date(item: dict) -> str:
    return to_date_str(item.get("scheduled_date") or item.get("scheduledDate")) or ""


class PlanItemsCache:
    """Windowed cache of a plan's items plus the workout catalog.

    Items are kept for ``today - days_before`` to ``today + days_after`` and
    refetched once ``ttl`` seconds have passed or after ``invalidate``.
    """

    def __init__(
        self,
        source: PlanItemSource,
        plan_id: str | None = None,
        *,
        ttl: float = 300,
        days_before: int = 7,
        days_after: int = 5,
        clock: Callable[[], float] = time.time,
        today: Callable[[], datetime.date] = datetime.date.today,
    ) -> None:
        self.source = source
        self.plan_id = str(plan_id) if plan_id is not None else None
        self.ttl = ttl
        self.days_before = days_before
        self.days_after = days_after
        self._clock = clock
        self._today = today
        self._cache: dict | None = None
        self._workouts: list[dict] = []
        self._workouts_fetched_at = 0.0

    def initialize(self, plan_id: str) -> None:
        self.plan_id = str(plan_id)
        self._cache = None
        logger.info("Plan items cache initialized", plan_id=self.plan_id)

    def _date_window(self) -> tuple[str, str]:
        today = self._today()
        start = today - datetime.timedelta(days=self.days_before)
        end = today + datetime.timedelta(days=self.days_after)
        return start.isoformat(), end.isoformat()

    def _is_valid(self) -> bool:
        if self._cache is None:
            return False
        age = self._clock() - self._cache["fetched_at"]
        if age > self.ttl:
            logger.debug("Plan items cache expired", age=round(age))
            return False
        start, end = self._date_window()
        return self._cache["start"] <= start and self._cache["end"] >= end

    async def _fetch(self, start: str, end: str) -> Optional[list[dict]]:
        try:
            items = await self.source.fetch_plan_items_sorted(self.plan_id, start, end)
        except Exception as e:
            logger.error("Failed to fetch plan items", plan_id=self.plan_id, error=str(e))
            return None
        window = [i for i in items or [] if start <= _item_date(i) <= end]
        window.sort(key=_item_date)
        self._cache = {
            "items": window,
            "start": start,
            "end": end,
            "fetched_at": self._clock(),
        }
        return window

    async def fetch_and_cache(self) -> list[dict]:
        start, end = self._date_window()
        items = await self._fetch(start, end)
        return items if items is not None else []

    async def get_cached_items(self) -> list[dict]:
        if self._is_valid():
            logger.debug("Plan items cache hit", plan_id=self.plan_id)
            return self._cache["items"]
        return await self.fetch_and_cache()

    async def get_items_for_date_range(self, start: str, end: str) -> list[dict]:
        if start > end:
            raise ValueError(f"invalid date range: {start} is after {end}")
        items = await self.get_cached_items()
        if self._cache and (start < self._cache["start"] or end > self._cache["end"]):
            logger.warning(
                "Requested range extends beyond cached window",
                requested=f"{start}..{end}",
                cached=f"{self._cache['start']}..{self._cache['end']}",
            )
        return [i for i in items if start <= _item_date(i) <= end]

    async def get_items_for_next_days(
        self, days: int = 5, extend_cache: bool = False
    ) -> list[dict]:
        if not isinstance(days, int) or days < 1:
            raise ValueError("days must be a positive integer")
        today = self._today()
        start = today.isoformat()
        end = (today + datetime.timedelta(days=days - 1)).isoformat()
        if extend_cache and self._is_valid() and end > self._cache["end"]:
            window_start, _ = self._date_window()
            await self._fetch(window_start, end)
        return await self.get_items_for_date_range(start, end)

    def invalidate(self) -> None:
        logger.info("Invalidating plan items cache", plan_id=self.plan_id)
        self._cache = None

    def invalidate_workouts(self) -> None:
        self._workouts = []
        self._workouts_fetched_at = 0.0

    async def get_workouts(self) -> list[dict]:
        age = self._clock() - self._workouts_fetched_at
        if self._workouts and age <= self.ttl:
            return self._workouts
        try:
            workouts = await self.source.fetch_workouts()
        except Exception as e:
            logger.error("Failed to fetch workouts", error=str(e))
            return []
        self._workouts = list(workouts or [])
        self._workouts_fetched_at = self._clock()
        return self._workouts

    def get_workout_by_id(self, workout_id) -> Optional[dict]:
        if not workout_id:
            return None
        key = str(workout_id)
        return next((w for w in self._workouts if str(w.get("id")) == key), None)

    def workout_title(self, workout_id) -> Optional[str]:
        workout = self.get_workout_by_id(workout_id)
        return workout.get("title") if workout else None

    def cache_info(self) -> Optional[dict]:
        if self._cache is None:
            return None
        return {
            "item_count": len(self._cache["items"]),
            "start_date": self._cache["start"],
            "end_date": self._cache["end"],
            "age": self._clock() - self._cache["fetched_at"],
            "workout_count": len(self._workouts),
        }


class PlanItemsCacheRegistry:
    """One ``PlanItemsCache`` per plan, invalidated together or per plan."""

    def __init__(self, source: PlanItemSource, **cache_options) -> None:
        self.source = source
        self.cache_options = cache_options
        self._caches: dict[str, PlanItemsCache] = {}

    def for_plan(self, plan_id) -> PlanItemsCache:
        key = str(plan_id)
        if key not in self._caches:
            self._caches[key] = PlanItemsCache(self.source, key, **self.cache_options)
        return self._caches[key]

    def invalidate(self, plan_id=None) -> None:
        if plan_id is None:
            for cache in self._caches.values():
                cache.invalidate()
            return
        cache = self._caches.get(str(plan_id))
        if cache is not None:
            cache.invalidate()
