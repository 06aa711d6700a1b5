import os
import sys
import datetime

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from plan_items_cache import PlanItemsCache, PlanItemsCacheRegistry, to_date_str

TODAY = datetime.date(2025, 6, 15)


class FakeSource:
    def __init__(self, items=None, workouts=None):
        self.items = items or []
        self.workouts = workouts or []
        self.item_calls = []
        self.workout_calls = 0
        self.fail = False

    async def fetch_plan_items_sorted(self, plan_id, start=None, end=None):
        self.item_calls.append((plan_id, start, end))
        if self.fail:
            raise RuntimeError("offline")
        return list(self.items)

    async def fetch_workouts(self):
        self.workout_calls += 1
        if self.fail:
            raise RuntimeError("offline")
        return list(self.workouts)


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def item(date, iid=1):
    return {"id": iid, "workout_id": 1, "scheduled_date": date}


def make_cache(source, clock=None):
    return PlanItemsCache(
        source, "plan-1", ttl=300, clock=clock or Clock(), today=lambda: TODAY
    )


@pytest.mark.asyncio
async def test_fetches_window_and_filters_sorted():
    source = FakeSource(
        [
            item("2025-06-20T00:00:00", 1),
            item("2025-06-01", 2),
            item("2025-06-08", 3),
            item("2025-06-21", 4),
        ]
    )
    cache = make_cache(source)
    items = await cache.get_cached_items()
    assert [i["id"] for i in items] == [3, 1]
    assert source.item_calls == [("plan-1", "2025-06-08", "2025-06-20")]


@pytest.mark.asyncio
async def test_cache_hit_until_ttl_or_invalidate():
    source = FakeSource([item("2025-06-15")])
    clock = Clock()
    cache = make_cache(source, clock)
    await cache.get_cached_items()
    await cache.get_cached_items()
    assert len(source.item_calls) == 1

    clock.now += 301
    await cache.get_cached_items()
    assert len(source.item_calls) == 2

    cache.invalidate()
    assert cache.cache_info() is None
    await cache.get_cached_items()
    assert len(source.item_calls) == 3


@pytest.mark.asyncio
async def test_fetch_failure_returns_empty_and_is_not_cached():
    source = FakeSource([item("2025-06-15")])
    source.fail = True
    cache = make_cache(source)
    assert await cache.get_cached_items() == []
    assert cache.cache_info() is None
    source.fail = False
    assert len(await cache.get_cached_items()) == 1


@pytest.mark.asyncio
async def test_date_range_and_next_days():
    source = FakeSource([item("2025-06-14", 1), item("2025-06-15", 2), item("2025-06-17", 3)])
    cache = make_cache(source)
    rng = await cache.get_items_for_date_range("2025-06-15", "2025-06-16")
    assert [i["id"] for i in rng] == [2]
    nxt = await cache.get_items_for_next_days(3)
    assert [i["id"] for i in nxt] == [2, 3]
    with pytest.raises(ValueError):
        await cache.get_items_for_date_range("2025-06-16", "2025-06-15")
    with pytest.raises(ValueError):
        await cache.get_items_for_next_days(0)


@pytest.mark.asyncio
async def test_next_days_can_extend_window():
    source = FakeSource([item("2025-06-15", 1), item("2025-06-25", 2)])
    cache = make_cache(source)
    await cache.get_cached_items()
    assert [i["id"] for i in await cache.get_items_for_next_days(14)] == [1]
    items = await cache.get_items_for_next_days(14, extend_cache=True)
    assert [i["id"] for i in items] == [1, 2]
    assert source.item_calls[-1] == ("plan-1", "2025-06-08", "2025-06-28")
    assert cache.cache_info()["end_date"] == "2025-06-28"


@pytest.mark.asyncio
async def test_workout_catalog_lookup():
    source = FakeSource(workouts=[{"id": 3, "title": "Upper Body"}])
    cache = make_cache(source)
    await cache.get_workouts()
    await cache.get_workouts()
    assert source.workout_calls == 1
    assert cache.workout_title("3") == "Upper Body"
    assert cache.get_workout_by_id("9") is None
    assert cache.get_workout_by_id(None) is None
    cache.invalidate_workouts()
    await cache.get_workouts()
    assert source.workout_calls == 2


@pytest.mark.asyncio
async def test_registry_invalidates_one_or_all():
    source = FakeSource([item("2025-06-15")])
    registry = PlanItemsCacheRegistry(source, ttl=300, today=lambda: TODAY)
    first = registry.for_plan(1)
    second = registry.for_plan("2")
    assert registry.for_plan("1") is first
    await first.get_cached_items()
    await second.get_cached_items()
    registry.invalidate(1)
    assert first.cache_info() is None
    assert second.cache_info() is not None
    registry.invalidate()
    assert second.cache_info() is None


def test_to_date_str():
    assert to_date_str("2025-06-15T10:00:00Z") == "2025-06-15"
    assert to_date_str("2025-06-15 10:00:00") == "2025-06-15"
    assert to_date_str(datetime.datetime(2025, 6, 15, 8)) == "2025-06-15"
    assert to_date_str(None) is None


@pytest.mark.asyncio
async def test_initialize_switches_plan():
    source = FakeSource([item("2025-06-15")])
    cache = make_cache(source)
    await cache.get_cached_items()
    cache.initialize(7)
    assert cache.cache_info() is None
    await cache.get_cached_items()
    assert source.item_calls[-1][0] == "7"
