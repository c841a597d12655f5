from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

TaskTrack = Literal["sprint", "build"]


class TaskOut(BaseModel):
    index: int
    title: str
    description: str = ""
    why: str | None = None
    how: str | None = None
    track: TaskTrack = "sprint"
    day: int | None = None
    week: int | None = None
    completed: bool = False
    completed_at: datetime | None = None
    note: str | None = None
    outcome: str | None = None


class TaskListOut(BaseModel):
    run_id: UUID
    tasks: list[TaskOut]


class TaskCompleteRequest(BaseModel):
    run_id: UUID
    task_index: int = Field(ge=0)
    completed: bool = True
    note: str | None = Field(default=None, max_length=2000)
    outcome: str | None = Field(default=None, max_length=200)


class TaskCompletionOut(BaseModel):
    run_id: UUID
    task_index: int
    completed: bool
    completed_at: datetime | None = None
    note: str | None = None
    outcome: str | None = None
