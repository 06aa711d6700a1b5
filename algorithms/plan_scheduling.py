import datetime
from typing import Iterable, Iterator

from plan_models import DaySlot, GeneratedPlanItem, PlanTemplate


class PlanScheduler:
    """Distributes template day slots onto calendar dates."""

    DAY_ORDER = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
    DAY_NAMES = [
        "sunday",
        "monday",
        "tuesday",
        "wednesday",
        "thursday",
        "friday",
        "saturday",
    ]

    @classmethod
    def weekday_index(cls, token: str) -> int | None:
        """Return 0 (Sunday) .. 6 (Saturday) for ``token`` or ``None``."""
        key = str(token).strip().lower()
        if key in cls.DAY_ORDER:
            return cls.DAY_ORDER.index(key)
        if key in cls.DAY_NAMES:
            return cls.DAY_NAMES.index(key)
        return None

    @classmethod
    def selected_indexes(cls, workout_days: Iterable[str]) -> list[int]:
        indexes = {cls.weekday_index(day) for day in workout_days or []}
        return sorted(i for i in indexes if i is not None)

    @staticmethod
    def date_index(day: datetime.date) -> int:
        return day.isoweekday() % 7

    @classmethod
    def base_offsets(
        cls, start_date: datetime.date, workout_days: Iterable[str]
    ) -> list[int]:
        """Offsets from ``start_date`` for each selected weekday.

        The first entry is the first selected weekday on or after
        ``start_date``; weekdays earlier in the week roll into the
        following week.
        """
        day_indexes = cls.selected_indexes(workout_days)
        if not day_indexes:
            return [0]
        start_index = cls.date_index(start_date)
        return sorted((idx - start_index + 7) % 7 for idx in day_indexes)

    @staticmethod
    def offset_for_slot(offsets: list[int], slot_idx: int) -> int:
        if slot_idx < len(offsets):
            return offsets[slot_idx]
        # extra slots land on consecutive days after the last selected day
        return offsets[-1] + slot_idx - (len(offsets) - 1)

    @staticmethod
    def _as_date(start_date: datetime.date | str) -> datetime.date:
        if isinstance(start_date, str):
            return datetime.date.fromisoformat(start_date[:10])
        if isinstance(start_date, datetime.datetime):
            return start_date.date()
        return start_date

    @classmethod
    def scheduled_slots(
        cls,
        template: PlanTemplate,
        start_date: datetime.date | str,
        workout_days: Iterable[str] = (),
    ) -> Iterator[tuple[datetime.date, DaySlot]]:
        """Yield every day slot of ``template`` with the date it falls on."""
        start_date = cls._as_date(start_date)
        offsets = cls.base_offsets(start_date, workout_days)
        for week_idx, week in enumerate(template.workout_structure):
            week_start = start_date + datetime.timedelta(days=7 * week_idx)
            for slot_idx, slot in enumerate(week):
                offset = cls.offset_for_slot(offsets, slot_idx)
                yield week_start + datetime.timedelta(days=offset), slot

    @classmethod
    def generate(
        cls,
        template: PlanTemplate,
        start_date: datetime.date | str,
        workout_days: Iterable[str] = (),
    ) -> list[GeneratedPlanItem]:
        return [
            GeneratedPlanItem(workout_id=workout_id, scheduled_date=day.isoformat())
            for day, slot in cls.scheduled_slots(template, start_date, workout_days)
            for workout_id in slot.workout_ids
            if workout_id
        ]


def generate_schedule(
    template: PlanTemplate,
    start_date: datetime.date | str,
    workout_days: Iterable[str] = (),
) -> list[GeneratedPlanItem]:
    """Expand ``template`` into dated plan items starting at ``start_date``."""
    return PlanScheduler.generate(template, start_date, workout_days)
