from __future__ import annotations

import asyncio
import datetime
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from loguru import logger

from algorithms import PlanScheduler, generate_schedule
from plan_models import (
    GeneratedPlanItem,
    ImportCompleted,
    ImportFailed,
    ImportPartial,
    ImportResult,
    PlanTemplate,
)


class SessionProvider(Protocol):
    async def resolve_current_user_id(self) -> Optional[str]: ...

    def get_cached_plan_id(self) -> Optional[str]: ...


@runtime_checkable
class PlanMemory(Protocol):
    """Sessions that can keep a plan id found through the store."""

    def set_current_plan_id(self, plan_id: Optional[str]) -> None: ...


class PlanStore(Protocol):
    async def find_plan_id_for_user(self, user_id: str) -> str: ...

    async def clear_plan_items(self, plan_id: str) -> None: ...

    async def add_workout_on_dates(
        self, plan_id: str, workout_id: str, dates: list[str]
    ) -> list[dict]: ...


class PlanCache(Protocol):
    def invalidate(self) -> None: ...


def group_by_workout(items: Iterable[GeneratedPlanItem]) -> dict[str, list[str]]:
    """Map each workout id to its scheduled dates, in first-seen order."""
    groups: dict[str, list[str]] = {}
    for item in items:
        groups.setdefault(item.workout_id, []).append(item.scheduled_date)
    return groups


def preview_schedule(
    template: PlanTemplate,
    start_date: datetime.date | str,
    workout_days: Iterable[str] = (),
    title_lookup: Callable[[str], Optional[str]] | None = None,
) -> list[dict]:
    """Rows describing what an import would create, for confirmation screens."""
    rows = []
    for day, slot in PlanScheduler.scheduled_slots(template, start_date, list(workout_days)):
        for workout_id in slot.workout_ids:
            if not workout_id:
                continue
            title = title_lookup(workout_id) if title_lookup else None
            rows.append(
                {
                    "date": day.isoformat(),
                    "weekday": PlanScheduler.DAY_ORDER[PlanScheduler.date_index(day)],
                    "day_name": slot.name,
                    "workout_id": workout_id,
                    "title": title or workout_id,
                }
            )
    return rows


class TemplateImportService:
    """Turns a plan template into dated plan items for the current user."""

    def __init__(
        self,
        session: SessionProvider,
        store: PlanStore,
        cache: PlanCache | None = None,
    ) -> None:
        self.session = session
        self.store = store
        self.cache = cache

    async def _resolve_plan_id(self, user_id: str) -> Optional[str]:
        plan_id = self.session.get_cached_plan_id()
        if plan_id:
            return plan_id
        try:
            plan_id = await self.store.find_plan_id_for_user(user_id)
        except Exception as e:
            logger.warning("Workout plan lookup failed", user_id=user_id, error=str(e))
            return None
        if plan_id and isinstance(self.session, PlanMemory):
            self.session.set_current_plan_id(plan_id)
        return plan_id

    def _invalidate_cache(self) -> None:
        if self.cache is not None:
            self.cache.invalidate()

    async def import_template(
        self,
        template: PlanTemplate | None,
        start_date: datetime.date | str,
        workout_days: Iterable[str] = (),
        clear_existing: bool = False,
    ) -> ImportResult:
        if template is None:
            return ImportFailed(error="No template provided")
        try:
            user_id = await self.session.resolve_current_user_id()
            if not user_id:
                return ImportFailed(error="User not logged in")
            plan_id = await self._resolve_plan_id(user_id)
            if not plan_id:
                return ImportFailed(error="Could not find workout plan")

            items = generate_schedule(template, start_date, list(workout_days))
            if not items:
                return ImportFailed(error="Template generated no plan items")

            logger.info(
                "Importing template",
                template_id=template.id,
                plan_id=plan_id,
                items=len(items),
                clear_existing=clear_existing,
            )
            cleared = False
            if clear_existing:
                await self.store.clear_plan_items(plan_id)
                cleared = True

            groups = group_by_workout(items)
            outcomes = await asyncio.gather(
                *(
                    self.store.add_workout_on_dates(plan_id, workout_id, dates)
                    for workout_id, dates in groups.items()
                ),
                return_exceptions=True,
            )

            succeeded = 0
            created = 0
            for (workout_id, dates), outcome in zip(groups.items(), outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning(
                        "Failed to add workout to plan",
                        workout_id=workout_id,
                        dates=len(dates),
                        error=str(outcome),
                    )
                    continue
                succeeded += 1
                created += len(dates)

            if succeeded == 0:
                if cleared:
                    self._invalidate_cache()
                logger.error("Template import failed", plan_id=plan_id, groups=len(groups))
                return ImportFailed(error="Failed to add workouts to plan")

            self._invalidate_cache()
            if succeeded < len(groups):
                logger.info(
                    "Template partially imported",
                    plan_id=plan_id,
                    groups_succeeded=succeeded,
                    groups_total=len(groups),
                    items_created=created,
                )
                return ImportPartial(
                    items_created=created,
                    groups_succeeded=succeeded,
                    groups_total=len(groups),
                )
            logger.info("Template imported", plan_id=plan_id, items_created=len(items))
            return ImportCompleted(items_created=len(items))
        except Exception as e:
            logger.exception("Template import aborted")
            return ImportFailed(error=str(e) or "Failed to import template")
