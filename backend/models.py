from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["high", "medium", "low"]


class Task(BaseModel):
    id: str
    name: str
    description: str
    due_date: Optional[datetime] = None
    priority: Priority = "medium"
    estimated_completion_time: float  # hours
    completed: bool = False
    created_at: Optional[str] = None  # ISO format datetime string, local store only


class TaskCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    due_date: Optional[datetime] = None
    priority: Priority = "medium"
    # Numeric strings ("2", "0.5") are coerced to float
    estimated_completion_time: float = Field(default=1.0, gt=0, allow_inf_nan=False)


class TaskStatusUpdate(BaseModel):
    completed: bool


class TaskBuckets(BaseModel):
    today: list[Task] = []
    upcoming: list[Task] = []
    overdue: list[Task] = []
    completed: list[Task] = []


class ScheduleRequestTask(BaseModel):
    """One task as the scheduling prompt sees it. Dump with by_alias=True, exclude_none=True."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    due_date: Optional[str] = Field(default=None, alias="dueDate")  # ISO-8601 UTC instant
    priority: Priority
    estimated_completion_time: str = Field(alias="estimatedCompletionTime")  # hours as text


class ScheduleRequest(BaseModel):
    tasks: list[ScheduleRequestTask]


def _parse_iso(value: str) -> datetime:
    # fromisoformat accepts a trailing "Z" on 3.11+, normalise for older parsers anyway
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class ScheduledItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_name: str = Field(alias="taskName")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    reasoning: str = Field(min_length=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def _must_be_iso(cls, value: str) -> str:
        try:
            _parse_iso(value)
        except ValueError:
            raise ValueError(f"not an ISO-8601 timestamp: {value!r}")
        return value

    @field_validator("reasoning")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("reasoning must not be blank")
        return value


class ScheduleResult(BaseModel):
    status: Literal["idle", "generated", "nothing_to_schedule", "error"] = "idle"
    schedule: list[ScheduledItem] = []
    message: Optional[str] = None
    error: Optional[str] = None
