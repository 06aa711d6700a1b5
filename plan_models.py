from __future__ import annotations

import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator


def _as_reference(value):
    if value is None:
        return ""
    return str(value)


class DaySlot(BaseModel):
    """One training day of a template week."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = ""
    workout_ids: list[str] = Field(default_factory=list, alias="workoutIds")

    @field_validator("workout_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        if value is None:
            return []
        return [_as_reference(v) for v in value]


class PlanTemplate(BaseModel):
    """Multi-week training program made of weeks of day slots."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str | None = None
    name: str
    description: str | None = None
    num_weeks: PositiveInt = Field(alias="numWeeks")
    days_per_week: PositiveInt = Field(alias="daysPerWeek")
    workout_structure: list[list[DaySlot]] = Field(
        default_factory=list, alias="workoutStructure"
    )
    level: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return None if value is None else str(value)

    def workout_ids(self) -> list[str]:
        """All workout references in template order."""
        return [
            wid
            for week in self.workout_structure
            for slot in week
            for wid in slot.workout_ids
            if wid
        ]


class GeneratedPlanItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    workout_id: str
    scheduled_date: str


class ImportCompleted(BaseModel):
    """Every workout group was stored."""

    status: Literal["completed"] = "completed"
    items_created: int

    @property
    def success(self) -> bool:
        return True

    @property
    def error(self) -> str | None:
        return None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "success": self.success,
            "items_created": self.items_created,
            "error": self.error,
        }


class ImportPartial(BaseModel):
    """Some workout groups were stored; ``error`` says how many."""

    status: Literal["partial"] = "partial"
    items_created: int
    groups_succeeded: int
    groups_total: int

    @property
    def success(self) -> bool:
        return True

    @property
    def error(self) -> str:
        return f"Added {self.groups_succeeded} of {self.groups_total} workout groups"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "success": self.success,
            "items_created": self.items_created,
            "error": self.error,
            "groups_succeeded": self.groups_succeeded,
            "groups_total": self.groups_total,
        }


class ImportFailed(BaseModel):
    status: Literal["failed"] = "failed"
    error: str

    @property
    def success(self) -> bool:
        return False

    @property
    def items_created(self) -> int:
        return 0

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "success": self.success,
            "items_created": self.items_created,
            "error": self.error,
        }


ImportResult = Annotated[
    Union[ImportCompleted, ImportPartial, ImportFailed],
    Field(discriminator="status"),
]


class ImportRequest(BaseModel):
    """Body of the server-side template import endpoint."""

    user_id: int
    start_date: datetime.date
    workout_days: list[str] = Field(default_factory=list)
    clear_existing: bool = False
    plan_id: int | None = None
