import argparse
import asyncio
import datetime
import json
from typing import Optional

import yaml

from client import BuilderClient
from config import YamlConfig
from plan_items_cache import PlanItemsCache
from plan_models import PlanTemplate
from plan_store import RestPlanStore
from session import SessionState
from settings_schema import validate_settings
from template_import_service import TemplateImportService, preview_schedule


def load_template(path: str) -> PlanTemplate:
    """Read a template from a YAML or JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return PlanTemplate.model_validate(data)


def parse_days(value: Optional[str], default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    return [d.strip() for d in value.split(",") if d.strip()]


def build_service(settings_path: str) -> tuple[TemplateImportService, PlanItemsCache]:
    config = YamlConfig(settings_path)
    settings = validate_settings(config.load())
    store = RestPlanStore(BuilderClient(settings.api_url))
    session = SessionState(config)
    cache = PlanItemsCache(
        store,
        settings.plan_id,
        ttl=settings.cache_ttl,
        days_before=settings.cache_days_before,
        days_after=settings.cache_days_after,
    )
    return TemplateImportService(session, store, cache), cache


def preview(template_path: str, start: str, days: list[str], url: Optional[str] = None) -> None:
    template = load_template(template_path)
    lookup = None
    if url:
        cache = PlanItemsCache(RestPlanStore(BuilderClient(url)))
        asyncio.run(cache.get_workouts())
        lookup = cache.workout_title
    rows = preview_schedule(template, start, days, lookup)
    for row in rows:
        print(f"{row['date']} {row['weekday']:<3} {row['day_name']:<20} {row['title']}")
    print(f"{len(rows)} workouts")


def import_template(
    template_path: str, start: str, days: list[str], clear: bool, settings_path: str
) -> bool:
    template = load_template(template_path)
    service, _cache = build_service(settings_path)
    result = asyncio.run(service.import_template(template, start, days, clear))
    print(json.dumps(result.to_dict()))
    return result.success


def login(user_id: str, settings_path: str) -> None:
    SessionState(YamlConfig(settings_path)).set_current_user_id(user_id)
    print(f"Logged in as user {user_id}")


def logout(settings_path: str) -> None:
    SessionState(YamlConfig(settings_path)).clear_current_user_id()
    print("Logged out")


def demo_data(db_path: str) -> None:
    """Populate the database with a demo user, workouts and template if empty."""
    from rest_api import GymAPI

    api = GymAPI(db_path=db_path)
    if api.workouts.fetch_all_workouts():
        print("Database already contains workouts")
        return
    uid = api.users.create("Demo", "demo@example.com")
    plan, _ = api.plans.ensure_default_plan(uid)
    titles = ["Upper Body", "Lower Body", "Conditioning"]
    ids = [str(api.workouts.create(t, "strength")) for t in titles]
    template = PlanTemplate(
        name="Three Day Split",
        description="Demo template",
        num_weeks=4,
        days_per_week=3,
        workout_structure=[
            [{"name": f"Day {i + 1}", "workout_ids": [wid]} for i, wid in enumerate(ids)]
            for _ in range(4)
        ],
    )
    tid = api.templates.create(template)
    print(f"Demo data inserted (user {uid}, plan {plan['id']}, template {tid})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Plan template utilities")
    sub = parser.add_subparsers(dest="cmd", required=True)

    prev = sub.add_parser("preview")
    prev.add_argument("--template", required=True)
    prev.add_argument("--start", default=datetime.date.today().isoformat())
    prev.add_argument("--days", help="comma separated weekdays, e.g. mon,wed,fri")
    prev.add_argument("--url", help="API url used to look up workout titles")

    imp = sub.add_parser("import")
    imp.add_argument("--template", required=True)
    imp.add_argument("--start", default=datetime.date.today().isoformat())
    imp.add_argument("--days")
    imp.add_argument("--clear", action="store_true")
    imp.add_argument("--settings", default="settings.yaml")

    lin = sub.add_parser("login")
    lin.add_argument("--user-id", required=True)
    lin.add_argument("--settings", default="settings.yaml")

    lout = sub.add_parser("logout")
    lout.add_argument("--settings", default="settings.yaml")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="workout.db")

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    if args.cmd in ("preview", "import"):
        settings_path = getattr(args, "settings", "settings.yaml")
        defaults = validate_settings(YamlConfig(settings_path).load()).default_workout_days
        days = parse_days(args.days, defaults)
    if args.cmd == "preview":
        preview(args.template, args.start, days, args.url)
    elif args.cmd == "import":
        ok = import_template(args.template, args.start, days, args.clear, args.settings)
        if not ok:
            raise SystemExit(1)
    elif args.cmd == "login":
        login(args.user_id, args.settings)
    elif args.cmd == "logout":
        logout(args.settings)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "serve":
        import uvicorn

        uvicorn.run("rest_api:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
