import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import GymAPI


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_workout.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.api = GymAPI(db_path=self.db_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def _seed(self) -> tuple[int, int, list[int]]:
        uid = self.client.post("/users", json={"name": "Alice"}).json()["id"]
        resp = self.client.post(f"/users/{uid}/default-plan")
        self.assertEqual(resp.status_code, 201)
        pid = resp.json()["id"]
        wids = [
            self.client.post("/workouts", json={"title": t, "category": "strength"}).json()["id"]
            for t in ("Upper Body", "Lower Body")
        ]
        return uid, pid, wids

    def _template(self, wids: list) -> int:
        body = {
            "name": "Two Day Split",
            "numWeeks": 2,
            "daysPerWeek": 2,
            "workoutStructure": [
                [
                    {"name": "Upper", "workoutIds": [wids[0]]},
                    {"name": "Lower", "workoutIds": [wids[1]]},
                ]
                for _ in range(2)
            ],
        }
        resp = self.client.post("/plan-templates", json=body)
        self.assertEqual(resp.status_code, 200)
        return resp.json()["id"]

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok", "version": "1.0.0"})

    def test_users_and_default_plan(self) -> None:
        uid, pid, _ = self._seed()
        self.assertEqual(self.client.get(f"/users/{uid}").json()["name"], "Alice")
        self.assertEqual(self.client.get("/users/99").status_code, 404)

        resp = self.client.post(f"/users/{uid}/default-plan")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["id"], pid)
        self.assertEqual(self.client.post("/users/99/default-plan").status_code, 404)

        plans = self.client.get("/workout-plans", params={"user_id": uid}).json()
        self.assertEqual([p["id"] for p in plans], [pid])

    def test_create_plan(self) -> None:
        uid, _, _ = self._seed()
        resp = self.client.post(
            "/workout-plans",
            json={"user_id": uid, "name": "Block", "start_date": "2025-01-01"},
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["start_date"], "2025-01-01")

        resp = self.client.post(
            "/workout-plans",
            json={"user_id": uid, "name": "Routine", "start_date": "2025-01-01", "is_routine": True},
        )
        self.assertIsNone(resp.json()["name"])
        self.assertIsNone(resp.json()["start_date"])

        resp = self.client.post("/workout-plans", json={"user_id": 42})
        self.assertEqual(resp.status_code, 400)

    def test_workouts(self) -> None:
        _, _, wids = self._seed()
        self.assertEqual(len(self.client.get("/workouts").json()), 2)
        self.assertEqual(self.client.get(f"/workouts/{wids[0]}").json()["title"], "Upper Body")
        self.assertEqual(self.client.delete(f"/workouts/{wids[1]}").json(), {"status": "deleted"})
        self.assertEqual(self.client.get(f"/workouts/{wids[1]}").status_code, 404)
        self.assertEqual(self.client.delete(f"/workouts/{wids[1]}").status_code, 404)

    def test_plan_items(self) -> None:
        _, pid, wids = self._seed()
        resp = self.client.post(
            f"/workout-plans/{pid}/plan-items",
            json={"workout_id": wids[0], "dates": ["2025-05-12", "2025-05-05"]},
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(len(resp.json()), 2)

        resp = self.client.post(
            f"/workout-plans/{pid}/plan-items/date",
            json={"workout_id": wids[1], "date": "2025-06-01", "intensity": "easy"},
        )
        self.assertEqual(resp.status_code, 201)
        item_id = resp.json()["id"]

        resp = self.client.post(f"/workout-plans/{pid}/plan-items/date", json={"workout_id": wids[1]})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post(
            f"/workout-plans/{pid}/plan-items",
            json={"workout_id": 999, "dates": ["2025-05-19"]},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "unknown workout")

        items = self.client.get(f"/workout-plans/{pid}/plan-items-sorted").json()
        self.assertEqual(
            [i["scheduled_date"] for i in items], ["2025-05-05", "2025-05-12", "2025-06-01"]
        )
        self.assertEqual(items[0]["workout"]["title"], "Upper Body")

        items = self.client.get(
            f"/workout-plans/{pid}/plan-items-sorted",
            params={"start": "2025-05-06", "end": "2025-05-31"},
        ).json()
        self.assertEqual([i["scheduled_date"] for i in items], ["2025-05-12"])

        month = self.client.get(
            f"/workout-plans/{pid}/plan-items-by-month", params={"year": 2025, "month": 5}
        ).json()
        self.assertEqual((month["year"], month["month"], len(month["items"])), (2025, 5, 2))

        self.assertEqual(self.client.delete(f"/plan-items/{item_id}").status_code, 204)
        self.assertEqual(self.client.delete(f"/plan-items/{item_id}").status_code, 404)

        resp = self.client.delete(f"/workout-plans/{pid}/plan-items")
        self.assertEqual(resp.json(), {"status": "cleared"})
        self.assertEqual(self.client.get(f"/workout-plans/{pid}/plan-items-sorted").json(), [])

    def test_plan_items_default_to_plan_start(self) -> None:
        _, pid, wids = self._seed()
        resp = self.client.post(f"/workout-plans/{pid}/plan-items", json={"workout_id": wids[0]})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()[0]["scheduled_date"], datetime.date.today().isoformat())
        self.assertEqual(
            self.client.post("/workout-plans/99/plan-items", json={"workout_id": wids[0]}).status_code,
            404,
        )

    def test_templates_preview_and_import(self) -> None:
        uid, pid, wids = self._seed()
        tid = self._template(wids)

        listed = self.client.get("/plan-templates").json()
        self.assertEqual(listed[0]["name"], "Two Day Split")
        detail = self.client.get(f"/plan-templates/{tid}").json()
        self.assertEqual(detail["workoutStructure"][0][0]["workoutIds"], [str(wids[0])])
        self.assertEqual(self.client.get("/plan-templates/99").status_code, 404)

        rows = self.client.post(
            f"/plan-templates/{tid}/preview",
            json={"start_date": "2025-12-09", "workout_days": ["tue", "thu"]},
        ).json()
        self.assertEqual(
            [(r["date"], r["title"]) for r in rows],
            [
                ("2025-12-09", "Upper Body"),
                ("2025-12-11", "Lower Body"),
                ("2025-12-16", "Upper Body"),
                ("2025-12-18", "Lower Body"),
            ],
        )

        resp = self.client.post(
            f"/plan-templates/{tid}/import",
            json={"user_id": uid, "start_date": "2025-12-09", "workout_days": ["tue", "thu"]},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"status": "completed", "success": True, "items_created": 4, "error": None},
        )
        items = self.client.get(f"/workout-plans/{pid}/plan-items-sorted").json()
        self.assertEqual(len(items), 4)

        resp = self.client.post(
            f"/plan-templates/{tid}/import",
            json={"user_id": 99, "start_date": "2025-12-09"},
        )
        self.assertEqual(resp.json()["error"], "Could not find workout plan")
        self.assertFalse(resp.json()["success"])

    def test_import_with_unknown_workout_is_partial(self) -> None:
        uid, pid, wids = self._seed()
        tid = self._template([wids[0], 999])
        resp = self.client.post(
            f"/plan-templates/{tid}/import",
            json={
                "user_id": uid,
                "plan_id": pid,
                "start_date": "2025-01-01",
                "clear_existing": True,
            },
        )
        data = resp.json()
        self.assertEqual(data["status"], "partial")
        self.assertTrue(data["success"])
        self.assertEqual(data["items_created"], 2)
        self.assertEqual(data["error"], "Added 1 of 2 workout groups")

    def test_upcoming_sees_imported_items(self) -> None:
        uid, pid, wids = self._seed()
        today = datetime.date.today()
        self.assertEqual(self.client.get(f"/workout-plans/{pid}/upcoming").json(), [])

        tid = self._template(wids)
        self.client.post(
            f"/plan-templates/{tid}/import",
            json={"user_id": uid, "start_date": today.isoformat()},
        )
        items = self.client.get(f"/workout-plans/{pid}/upcoming", params={"days": 2}).json()
        self.assertEqual(
            [i["scheduled_date"] for i in items],
            [today.isoformat(), (today + datetime.timedelta(days=1)).isoformat()],
        )
        resp = self.client.get(f"/workout-plans/{pid}/upcoming", params={"days": 0})
        self.assertEqual(resp.status_code, 400)

    def test_rate_limiter(self) -> None:
        api = GymAPI(db_path=self.db_path, rate_limit=2, rate_window=60)
        client = TestClient(api.app)
        self.assertEqual(client.get("/health").status_code, 200)
        self.assertEqual(client.get("/health").status_code, 200)
        self.assertEqual(client.get("/health").status_code, 429)


if __name__ == "__main__":
    unittest.main()
