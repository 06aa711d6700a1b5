import datetime
import os
import sqlite3
import time
from fastapi import (
    FastAPI,
    HTTPException,
    Response,
    Request,
)
from loguru import logger
from pydantic import BaseModel, Field

from config import APP_VERSION
from db import (
    UserRepository,
    WorkoutRepository,
    WorkoutPlanRepository,
    AsyncPlanItemRepository,
    PlanTemplateRepository,
)
from plan_items_cache import PlanItemsCacheRegistry
from plan_models import ImportRequest, PlanTemplate
from plan_store import DatabasePlanStore
from session import StaticSession
from template_import_service import TemplateImportService, preview_schedule


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, limit: int = 60, window: int = 60) -> None:
        self.limit = limit
        self.window = window
        self.requests: dict[str, list[float]] = {}

    async def __call__(self, request: Request, call_next):
        ip = request.client.host if request.client else "anon"
        now = time.time()
        history = [t for t in self.requests.get(ip, []) if now - t < self.window]
        if len(history) >= self.limit:
            return Response("rate limit exceeded", status_code=429)
        history.append(now)
        self.requests[ip] = history
        return await call_next(request)


class UserIn(BaseModel):
    name: str
    email: str | None = None


class WorkoutIn(BaseModel):
    title: str
    category: str | None = None
    description: str | None = None
    duration: int | None = None


class WorkoutPlanIn(BaseModel):
    user_id: int
    name: str | None = None
    start_date: datetime.date | None = None
    end_date: datetime.date | None = None
    is_routine: bool = False


class PlanItemsIn(BaseModel):
    workout_id: int
    dates: list[datetime.date] = Field(default_factory=list)
    intensity: str | None = None


class PlanItemOnDateIn(BaseModel):
    workout_id: int | None = None
    date: datetime.date | None = None
    intensity: str | None = None


class PreviewIn(BaseModel):
    start_date: datetime.date
    workout_days: list[str] = Field(default_factory=list)


class GymAPI:
    """Provides REST endpoints for workout plans and template imports."""

    def __init__(
        self,
        db_path: str = "workout.db",
        *,
        rate_limit: int | None = None,
        rate_window: int = 60,
        cache_ttl: float = 300,
    ) -> None:
        self.db_path = db_path
        self.users = UserRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.plans = WorkoutPlanRepository(db_path)
        self.plan_items = AsyncPlanItemRepository(db_path)
        self.templates = PlanTemplateRepository(db_path)
        self.store = DatabasePlanStore(db_path)
        self.plan_caches = PlanItemsCacheRegistry(self.store, ttl=cache_ttl)
        self.app = FastAPI(
            title="Plan Builder API",
            description="REST API for workout plans and plan template imports",
            version=APP_VERSION,
        )
        if rate_limit is not None:
            limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(limiter)
        self._setup_routes()

    def _plan_or_404(self, plan_id: int) -> dict:
        try:
            return self.plans.fetch_detail(plan_id)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

    def _setup_routes(self) -> None:
        @self.app.get("/health")
        def health():
            return {"status": "ok", "version": APP_VERSION}

        @self.app.post("/users")
        def create_user(user: UserIn):
            uid = self.users.create(user.name, user.email)
            return {"id": uid}

        @self.app.get("/users/{user_id}")
        def get_user(user_id: int):
            try:
                return self.users.fetch_detail(user_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/users/{user_id}/default-plan")
        def default_plan(user_id: int, response: Response):
            try:
                self.users.fetch_detail(user_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            plan, created = self.plans.ensure_default_plan(user_id)
            if created:
                response.status_code = 201
            return plan

        @self.app.get("/workouts")
        def list_workouts(category: str | None = None):
            return self.workouts.fetch_all_workouts(category)

        @self.app.post("/workouts")
        def create_workout(workout: WorkoutIn):
            wid = self.workouts.create(
                workout.title, workout.category, workout.description, workout.duration
            )
            self.plan_caches.invalidate()
            return {"id": wid}

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: int):
            try:
                return self.workouts.fetch_detail(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: int):
            try:
                self.workouts.delete(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            self.plan_caches.invalidate()
            return {"status": "deleted"}

        @self.app.get("/workout-plans")
        def list_plans(user_id: int | None = None):
            return self.plans.fetch_all_plans(user_id)

        @self.app.post("/workout-plans", status_code=201)
        def create_plan(plan: WorkoutPlanIn):
            start = None if plan.is_routine or plan.start_date is None else plan.start_date.isoformat()
            end = None if plan.is_routine or plan.end_date is None else plan.end_date.isoformat()
            name = None if plan.is_routine else plan.name
            try:
                pid = self.plans.create(plan.user_id, name, start, end)
            except sqlite3.IntegrityError:
                raise HTTPException(status_code=400, detail="user not found")
            return self.plans.fetch_detail(pid)

        @self.app.post("/workout-plans/{plan_id}/plan-items", status_code=201)
        async def add_plan_items(plan_id: int, body: PlanItemsIn):
            plan = self._plan_or_404(plan_id)
            dates = [d.isoformat() for d in body.dates]
            if not dates:
                dates = [plan["start_date"] or datetime.date.today().isoformat()]
            try:
                created = await self.plan_items.add_for_dates(
                    plan_id, body.workout_id, dates, body.intensity
                )
            except sqlite3.IntegrityError as e:
                logger.warning(
                    "Rejected plan items",
                    plan_id=plan_id,
                    workout_id=body.workout_id,
                    error=str(e),
                )
                raise HTTPException(status_code=400, detail="unknown workout")
            self.plan_caches.invalidate(plan_id)
            return created

        @self.app.post("/workout-plans/{plan_id}/plan-items/date", status_code=201)
        async def add_plan_item_on_date(plan_id: int, body: PlanItemOnDateIn):
            if body.workout_id is None or body.date is None:
                raise HTTPException(status_code=400, detail="workout_id and date are required")
            self._plan_or_404(plan_id)
            try:
                item = await self.plan_items.add_on_date(
                    plan_id, body.workout_id, body.date.isoformat(), body.intensity
                )
            except sqlite3.IntegrityError:
                raise HTTPException(status_code=400, detail="unknown workout")
            self.plan_caches.invalidate(plan_id)
            return item

        @self.app.delete("/workout-plans/{plan_id}/plan-items")
        async def clear_plan_items(plan_id: int):
            self._plan_or_404(plan_id)
            await self.plan_items.delete_for_plan(plan_id)
            self.plan_caches.invalidate(plan_id)
            return {"status": "cleared"}

        @self.app.get("/workout-plans/{plan_id}/plan-items-sorted")
        async def plan_items_sorted(
            plan_id: int, start: str | None = None, end: str | None = None
        ):
            start = start if start and len(start) >= 10 else None
            end = end if end and len(end) >= 10 else None
            return await self.plan_items.fetch_sorted(plan_id, start, end)

        @self.app.get("/workout-plans/{plan_id}/plan-items-by-month")
        async def plan_items_by_month(
            plan_id: int, year: int | None = None, month: int | None = None
        ):
            today = datetime.date.today()
            if year is None or year <= 0:
                year = today.year
            if month is None or not 1 <= month <= 12:
                month = today.month
            items = await self.plan_items.fetch_by_month(plan_id, year, month)
            return {"year": year, "month": month, "items": items}

        @self.app.get("/workout-plans/{plan_id}/upcoming")
        async def upcoming_plan_items(plan_id: int, days: int = 5, extend: bool = False):
            self._plan_or_404(plan_id)
            cache = self.plan_caches.for_plan(plan_id)
            try:
                return await cache.get_items_for_next_days(days, extend_cache=extend)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.delete("/plan-items/{item_id}", status_code=204)
        async def delete_plan_item(item_id: int):
            try:
                await self.plan_items.delete(item_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            self.plan_caches.invalidate()
            return Response(status_code=204)

        @self.app.get("/plan-templates")
        def list_templates():
            return [
                t.model_dump(by_alias=True) for t in self.templates.fetch_all_templates()
            ]

        @self.app.post("/plan-templates")
        def create_template(template: PlanTemplate):
            tid = self.templates.create(template)
            return {"id": tid}

        @self.app.get("/plan-templates/{template_id}")
        def get_template(template_id: int):
            try:
                return self.templates.fetch_detail(template_id).model_dump(by_alias=True)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/plan-templates/{template_id}/preview")
        def preview_template(template_id: int, body: PreviewIn):
            try:
                template = self.templates.fetch_detail(template_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            titles = {str(w["id"]): w["title"] for w in self.workouts.fetch_all_workouts()}
            return preview_schedule(
                template, body.start_date, body.workout_days, titles.get
            )

        @self.app.post("/plan-templates/{template_id}/import")
        async def import_template(template_id: int, body: ImportRequest):
            try:
                template = self.templates.fetch_detail(template_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            service = TemplateImportService(
                StaticSession(body.user_id, body.plan_id),
                self.store,
                self.plan_caches,
            )
            result = await service.import_template(
                template, body.start_date, body.workout_days, body.clear_existing
            )
            return result.to_dict()


api = GymAPI(db_path=os.environ.get("DB_PATH", "workout.db"))
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
