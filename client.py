import requests
from typing import Optional

class BuilderClient:
    """Simple REST client for the plan API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def list_workouts(self, **params: str) -> list[dict]:
        resp = requests.get(f"{self.base_url}/workouts", params=params)
        resp.raise_for_status()
        return resp.json()

    def create_workout(self, title: str, category: Optional[str] = None) -> int:
        resp = requests.post(
            f"{self.base_url}/workouts", json={"title": title, "category": category}
        )
        resp.raise_for_status()
        return resp.json()["id"]

    def get_default_plan(self, user_id: str) -> dict:
        resp = requests.post(f"{self.base_url}/users/{user_id}/default-plan")
        resp.raise_for_status()
        return resp.json()

    def add_workout_to_plan_on_dates(
        self,
        plan_id: str,
        workout_id: str,
        dates: list[str],
        intensity: Optional[str] = None,
    ) -> list[dict]:
        resp = requests.post(
            f"{self.base_url}/workout-plans/{plan_id}/plan-items",
            json={"workout_id": workout_id, "dates": dates, "intensity": intensity},
        )
        resp.raise_for_status()
        data = resp.json()
        return data if isinstance(data, list) else [data]

    def add_workout_to_plan_on_date(
        self, plan_id: str, workout_id: str, date: str, intensity: Optional[str] = None
    ) -> dict:
        resp = requests.post(
            f"{self.base_url}/workout-plans/{plan_id}/plan-items/date",
            json={"workout_id": workout_id, "date": date, "intensity": intensity},
        )
        resp.raise_for_status()
        return resp.json()

    def clear_plan_items(self, plan_id: str) -> None:
        resp = requests.delete(f"{self.base_url}/workout-plans/{plan_id}/plan-items")
        resp.raise_for_status()

    def get_plan_items_sorted(
        self, plan_id: str, start: Optional[str] = None, end: Optional[str] = None
    ) -> list[dict]:
        params = {k: v for k, v in {"start": start, "end": end}.items() if v}
        resp = requests.get(
            f"{self.base_url}/workout-plans/{plan_id}/plan-items-sorted", params=params
        )
        resp.raise_for_status()
        return resp.json()

    def get_plan_items_by_month(
        self, plan_id: str, year: Optional[int] = None, month: Optional[int] = None
    ) -> dict:
        params = {k: v for k, v in {"year": year, "month": month}.items() if v}
        resp = requests.get(
            f"{self.base_url}/workout-plans/{plan_id}/plan-items-by-month", params=params
        )
        resp.raise_for_status()
        return resp.json()

    def remove_plan_item(self, item_id: str) -> None:
        resp = requests.delete(f"{self.base_url}/plan-items/{item_id}")
        resp.raise_for_status()

    def list_templates(self) -> list[dict]:
        resp = requests.get(f"{self.base_url}/plan-templates")
        resp.raise_for_status()
        return resp.json()

    def get_template(self, template_id: str) -> dict:
        resp = requests.get(f"{self.base_url}/plan-templates/{template_id}")
        resp.raise_for_status()
        return resp.json()
