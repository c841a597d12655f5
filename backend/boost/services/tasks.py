from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..models.run import Run
from ..models.task_completion import TaskCompletion
from ..schemas.tasks import TaskOut

logger = logging.getLogger(__name__)


def _day_task(day: Dict[str, Any], week: int | None = None) -> Dict[str, Any]:
    return {
        "title": day.get("action") or "",
        "description": day.get("successMetric") or "",
        "why": day.get("why"),
        "how": day.get("how"),
        "track": "sprint",
        "day": day.get("day"),
        "week": week,
    }


def extract_tasks(structured_output: Dict[str, Any] | None) -> List[Dict[str, Any]]:
    """
    Flat task list from a run's dashboard data.

    Source order: `weeks[].days[]`, then `thisWeek.days[]`, then a flat
    `tasks[]` array. Task indices are positions in this list, so the order
    must stay stable for a given document.
    """
    if not structured_output:
        return []

    weeks = structured_output.get("weeks")
    if isinstance(weeks, list) and weeks:
        return [
            _day_task(day, week.get("week"))
            for week in weeks
            for day in (week.get("days") if isinstance(week.get("days"), list) else [])
        ]

    this_week = (structured_output.get("thisWeek") or {}).get("days")
    if isinstance(this_week, list) and this_week:
        return [_day_task(day, 1) for day in this_week]

    flat = structured_output.get("tasks")
    if isinstance(flat, list):
        return [
            {
                "title": t.get("title") or "",
                "description": t.get("description") or "",
                "why": t.get("why"),
                "how": t.get("how"),
                "track": "build" if t.get("track") == "build" else "sprint",
            }
            for t in flat
            if isinstance(t, dict)
        ]
    return []


def list_tasks_with_completions(db: Session, run: Run) -> List[TaskOut]:
    completions = {
        c.task_index: c
        for c in db.query(TaskCompletion).filter(TaskCompletion.run_id == run.id).all()
    }
    tasks = []
    for index, task in enumerate(extract_tasks(run.structured_output)):
        completion = completions.get(index)
        tasks.append(
            TaskOut(
                index=index,
                **task,
                completed=bool(completion and completion.completed),
                completed_at=completion.completed_at if completion else None,
                note=completion.note if completion else None,
                outcome=completion.outcome if completion else None,
            )
        )
    return tasks


def set_task_completion(
    db: Session,
    run: Run,
    task_index: int,
    completed: bool = True,
    note: str | None = None,
    outcome: str | None = None,
) -> TaskCompletion:
    """Upsert the completion row for one task of `run`."""
    tasks = extract_tasks(run.structured_output)
    if task_index < 0 or task_index >= len(tasks):
        raise ValueError(f"task_index must be between 0 and {len(tasks) - 1}")

    row = (
        db.query(TaskCompletion)
        .filter(TaskCompletion.run_id == run.id, TaskCompletion.task_index == task_index)
        .first()
    )
    if row is None:
        row = TaskCompletion(run_id=run.id, task_index=task_index)
        db.add(row)

    row.track = tasks[task_index].get("track") or "sprint"
    row.completed = completed
    row.completed_at = utcnow() if completed else None
    row.note = note or None
    row.outcome = outcome or None
    db.commit()
    db.refresh(row)

    logger.info(
        "Task %s marked %s",
        task_index,
        "complete" if completed else "incomplete",
        extra={"run_id": str(run.id), "step": "task_completion"},
    )
    return row
