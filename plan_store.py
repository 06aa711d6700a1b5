from __future__ import annotations

import asyncio

from loguru import logger

from client import BuilderClient
from db import AsyncPlanItemRepository, AsyncWorkoutPlanRepository, AsyncWorkoutRepository


class DatabasePlanStore:
    """Plan persistence backed directly by the SQLite repositories."""

    def __init__(self, db_path: str = "workout.db") -> None:
        self.plans = AsyncWorkoutPlanRepository(db_path)
        self.items = AsyncPlanItemRepository(db_path)
        self.workouts = AsyncWorkoutRepository(db_path)

    async def find_plan_id_for_user(self, user_id: str) -> str:
        plan = await self.plans.fetch_latest_for_user(int(user_id))
        return str(plan["id"])

    async def clear_plan_items(self, plan_id: str) -> None:
        await self.items.delete_for_plan(int(plan_id))
        logger.info("Cleared plan items", plan_id=plan_id)

    async def add_workout_on_dates(
        self, plan_id: str, workout_id: str, dates: list[str]
    ) -> list[dict]:
        return await self.items.add_for_dates(int(plan_id), workout_id, dates)

    async def fetch_plan_items_sorted(
        self, plan_id: str, start: str | None = None, end: str | None = None
    ) -> list[dict]:
        return await self.items.fetch_sorted(int(plan_id), start, end)

    async def fetch_workouts(self) -> list[dict]:
        return await self.workouts.fetch_all_workouts()


class RestPlanStore:
    """Plan persistence through the REST service.

    ``BuilderClient`` is blocking, so every call runs in a worker thread and
    grouped inserts still proceed concurrently.
    """

    def __init__(self, client: BuilderClient) -> None:
        self.client = client

    async def find_plan_id_for_user(self, user_id: str) -> str:
        plan = await asyncio.to_thread(self.client.get_default_plan, user_id)
        return str(plan["id"])

    async def clear_plan_items(self, plan_id: str) -> None:
        await asyncio.to_thread(self.client.clear_plan_items, plan_id)

    async def add_workout_on_dates(
        self, plan_id: str, workout_id: str, dates: list[str]
    ) -> list[dict]:
        return await asyncio.to_thread(
            self.client.add_workout_to_plan_on_dates, plan_id, workout_id, dates
        )

    async def fetch_plan_items_sorted(
        self, plan_id: str, start: str | None = None, end: str | None = None
    ) -> list[dict]:
        return await asyncio.to_thread(
            self.client.get_plan_items_sorted, plan_id, start, end
        )

    async def fetch_workouts(self) -> list[dict]:
        return await asyncio.to_thread(self.client.list_workouts)
