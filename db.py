import sqlite3
import aiosqlite
import datetime
import json
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Iterable

from plan_models import PlanTemplate


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT,
                    created_at TEXT NOT NULL
                );""",
            ["id", "name", "email", "created_at"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    category TEXT,
                    description TEXT,
                    duration INTEGER,
                    created_at TEXT NOT NULL
                );""",
            ["id", "title", "category", "description", "duration", "created_at"],
        ),
        "workout_plans": (
            """CREATE TABLE workout_plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT,
                    user_id INTEGER NOT NULL,
                    start_date TEXT,
                    end_date TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "name", "user_id", "start_date", "end_date", "created_at"],
        ),
        "plan_items": (
            """CREATE TABLE plan_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    workout_plan_id INTEGER NOT NULL,
                    scheduled_date TEXT NOT NULL,
                    intensity TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(workout_plan_id) REFERENCES workout_plans(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "workout_plan_id",
                "scheduled_date",
                "intensity",
                "created_at",
            ],
        ),
        "plan_templates": (
            """CREATE TABLE plan_templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT,
                    num_weeks INTEGER NOT NULL,
                    days_per_week INTEGER NOT NULL,
                    structure TEXT NOT NULL,
                    level TEXT,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "name",
                "description",
                "num_weeks",
                "days_per_week",
                "structure",
                "level",
                "created_at",
            ],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_workout_plans_user_id ON workout_plans(user_id);",
        "CREATE INDEX IF NOT EXISTS idx_plan_items_plan_date ON plan_items(workout_plan_id, scheduled_date);",
    ]

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                cursor.execute(sql)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        cols = ", ".join(c for c in existing_cols if c in columns)
        if "created_at" in existing_cols:
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        else:
            conn.execute(
                f"INSERT INTO {table} ({cols}, created_at) "
                f"SELECT {cols}, datetime('now') FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


def _now() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


class UserRepository(BaseRepository):
    """Repository for user profiles."""

    def create(self, name: str, email: str | None = None) -> int:
        return self.execute(
            "INSERT INTO users (name, email, created_at) VALUES (?, ?, ?);",
            (name, email, _now()),
        )

    def fetch_detail(self, user_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, name, email, created_at FROM users WHERE id = ?;",
            (user_id,),
        )
        if not rows:
            raise ValueError("user not found")
        uid, name, email, created = rows[0]
        return {
            "id": uid,
            "name": name,
            "email": email,
            "created_at": created,
        }


class WorkoutRepository(BaseRepository):
    """Repository for the workout catalog."""

    def create(
        self,
        title: str,
        category: str | None = None,
        description: str | None = None,
        duration: int | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO workouts (title, category, description, duration, created_at) VALUES (?, ?, ?, ?, ?);",
            (title, category, description, duration, _now()),
        )

    def fetch_all_workouts(self, category: str | None = None) -> List[dict]:
        query = "SELECT id, title, category, description, duration FROM workouts"
        params: tuple = ()
        if category:
            query += " WHERE category = ?"
            params = (category,)
        query += " ORDER BY id;"
        return [
            {
                "id": wid,
                "title": title,
                "category": cat,
                "description": desc,
                "duration": dur,
            }
            for wid, title, cat, desc, dur in self.fetch_all(query, params)
        ]

    def fetch_detail(self, workout_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, title, category, description, duration FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        wid, title, cat, desc, dur = rows[0]
        return {
            "id": wid,
            "title": title,
            "category": cat,
            "description": desc,
            "duration": dur,
        }

    def delete(self, workout_id: int) -> None:
        self.fetch_detail(workout_id)
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async access to the workout catalog."""

    async def fetch_all_workouts(self) -> List[dict]:
        rows = await self.fetch_all(
            "SELECT id, title, category, description, duration FROM workouts ORDER BY id;"
        )
        return [
            {
                "id": wid,
                "title": title,
                "category": cat,
                "description": desc,
                "duration": dur,
            }
            for wid, title, cat, desc, dur in rows
        ]


def _plan_row(row: Tuple) -> dict:
    pid, name, user_id, start, end, created = row
    return {
        "id": pid,
        "name": name,
        "user_id": user_id,
        "start_date": start,
        "end_date": end,
        "created_at": created,
    }


class WorkoutPlanRepository(BaseRepository):
    """Repository for per-user workout plans."""

    _COLUMNS = "id, name, user_id, start_date, end_date, created_at"

    def create(
        self,
        user_id: int,
        name: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO workout_plans (name, user_id, start_date, end_date, created_at) VALUES (?, ?, ?, ?, ?);",
            (name, user_id, start_date, end_date, _now()),
        )

    def fetch_all_plans(self, user_id: int | None = None) -> List[dict]:
        query = f"SELECT {self._COLUMNS} FROM workout_plans"
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY created_at DESC, id DESC;"
        return [_plan_row(r) for r in self.fetch_all(query, params)]

    def fetch_detail(self, plan_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_plans WHERE id = ?;", (plan_id,)
        )
        if not rows:
            raise ValueError("workout plan not found")
        return _plan_row(rows[0])

    def fetch_latest_for_user(self, user_id: int) -> dict:
        plans = self.fetch_all_plans(user_id)
        if not plans:
            raise ValueError("workout plan not found")
        return plans[0]

    def ensure_default_plan(self, user_id: int, days: int = 90) -> tuple[dict, bool]:
        """Return the user's latest plan, creating a ``days`` long one if needed."""
        try:
            return self.fetch_latest_for_user(user_id), False
        except ValueError:
            pass
        start = datetime.date.today()
        end = start + datetime.timedelta(days=days)
        plan_id = self.create(user_id, "", start.isoformat(), end.isoformat())
        return self.fetch_detail(plan_id), True


class AsyncWorkoutPlanRepository(AsyncBaseRepository):
    """Async lookups of workout plans."""

    async def fetch_latest_for_user(self, user_id: int) -> dict:
        rows = await self.fetch_all(
            "SELECT id, name, user_id, start_date, end_date, created_at FROM workout_plans "
            "WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT 1;",
            (user_id,),
        )
        if not rows:
            raise ValueError("workout plan not found")
        return _plan_row(rows[0])


def _item_row(row: Tuple) -> dict:
    iid, workout_id, plan_id, date, intensity, created, *rest = row
    item = {
        "id": iid,
        "workout_id": workout_id,
        "workout_plan_id": plan_id,
        "scheduled_date": date,
        "intensity": intensity,
        "created_at": created,
    }
    if rest:
        item["workout"] = {"id": workout_id, "title": rest[0], "category": rest[1]}
    return item


class AsyncPlanItemRepository(AsyncBaseRepository):
    """Async repository for dated plan items."""

    _SELECT = (
        "SELECT p.id, p.workout_id, p.workout_plan_id, p.scheduled_date, p.intensity, "
        "p.created_at, w.title, w.category FROM plan_items p "
        "LEFT JOIN workouts w ON w.id = p.workout_id"
    )

    async def add_for_dates(
        self,
        plan_id: int,
        workout_id: int,
        dates: Iterable[str],
        intensity: str | None = None,
    ) -> List[dict]:
        """Insert one item per date in a single transaction."""
        dates = list(dates)
        if not dates:
            raise ValueError("no dates given")
        created_at = _now()
        created: list[dict] = []
        async with self._async_connection() as conn:
            for date in dates:
                cursor = await conn.execute(
                    "INSERT INTO plan_items (workout_id, workout_plan_id, scheduled_date, intensity, created_at) "
                    "VALUES (?, ?, ?, ?, ?);",
                    (workout_id, plan_id, date, intensity, created_at),
                )
                created.append(
                    {
                        "id": cursor.lastrowid,
                        "workout_id": workout_id,
                        "workout_plan_id": plan_id,
                        "scheduled_date": date,
                        "intensity": intensity,
                        "created_at": created_at,
                    }
                )
        return created

    async def add_on_date(
        self, plan_id: int, workout_id: int, date: str, intensity: str | None = None
    ) -> dict:
        rows = await self.add_for_dates(plan_id, workout_id, [date], intensity)
        return rows[0]

    async def delete_for_plan(self, plan_id: int) -> None:
        await self.execute(
            "DELETE FROM plan_items WHERE workout_plan_id = ?;", (plan_id,)
        )

    async def delete(self, item_id: int) -> None:
        rows = await self.fetch_all("SELECT id FROM plan_items WHERE id = ?;", (item_id,))
        if not rows:
            raise ValueError("plan item not found")
        await self.execute("DELETE FROM plan_items WHERE id = ?;", (item_id,))

    async def fetch_sorted(
        self,
        plan_id: int,
        start: str | None = None,
        end: str | None = None,
        limit: int = 30,
    ) -> List[dict]:
        query = f"{self._SELECT} WHERE p.workout_plan_id = ?"
        params: list = [plan_id]
        if start:
            query += " AND p.scheduled_date >= ?"
            params.append(start)
        if end:
            query += " AND p.scheduled_date <= ?"
            params.append(end)
        query += " ORDER BY p.scheduled_date ASC, p.id ASC LIMIT ?;"
        params.append(limit)
        return [_item_row(r) for r in await self.fetch_all(query, tuple(params))]

    async def fetch_by_month(self, plan_id: int, year: int, month: int) -> List[dict]:
        start = datetime.date(year, month, 1)
        if month == 12:
            end = datetime.date(year + 1, 1, 1)
        else:
            end = datetime.date(year, month + 1, 1)
        rows = await self.fetch_all(
            f"{self._SELECT} WHERE p.workout_plan_id = ? AND p.scheduled_date >= ? "
            "AND p.scheduled_date < ? ORDER BY p.scheduled_date ASC, p.id ASC LIMIT 1000;",
            (plan_id, start.isoformat(), end.isoformat()),
        )
        return [_item_row(r) for r in rows]

    async def count_for_plan(self, plan_id: int) -> int:
        rows = await self.fetch_all(
            "SELECT COUNT(*) FROM plan_items WHERE workout_plan_id = ?;", (plan_id,)
        )
        return int(rows[0][0]) if rows else 0


class PlanTemplateRepository(BaseRepository):
    """Repository for multi-week plan templates."""

    _COLUMNS = "id, name, description, num_weeks, days_per_week, structure, level"

    @staticmethod
    def _to_template(row: Tuple) -> PlanTemplate:
        tid, name, desc, weeks, days, structure, level = row
        return PlanTemplate(
            id=str(tid),
            name=name,
            description=desc,
            num_weeks=weeks,
            days_per_week=days,
            workout_structure=json.loads(structure),
            level=level,
        )

    def create(self, template: PlanTemplate) -> int:
        structure = json.dumps(
            [
                [slot.model_dump(by_alias=True) for slot in week]
                for week in template.workout_structure
            ]
        )
        return self.execute(
            "INSERT INTO plan_templates (name, description, num_weeks, days_per_week, structure, level, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                template.name,
                template.description,
                template.num_weeks,
                template.days_per_week,
                structure,
                template.level,
                _now(),
            ),
        )

    def fetch_all_templates(self) -> List[PlanTemplate]:
        rows = self.fetch_all(f"SELECT {self._COLUMNS} FROM plan_templates ORDER BY id;")
        return [self._to_template(r) for r in rows]

    def fetch_detail(self, template_id: int) -> PlanTemplate:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM plan_templates WHERE id = ?;", (template_id,)
        )
        if not rows:
            raise ValueError("template not found")
        return self._to_template(rows[0])
