from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.security import require_user_id
from ..schemas.tasks import TaskCompleteRequest, TaskCompletionOut, TaskListOut
from ..services.tasks import list_tasks_with_completions, set_task_completion
from .deps import get_owned_run_or_404

router = APIRouter(tags=["tasks"])

logger = logging.getLogger(__name__)


@router.get("/tasks", response_model=TaskListOut)
def list_tasks(
    run_id: str = Query(...),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    run = get_owned_run_or_404(db, run_id, user_id)
    return TaskListOut(run_id=run.id, tasks=list_tasks_with_completions(db, run))


@router.post("/tasks/complete", response_model=TaskCompletionOut)
def complete_task(
    payload: TaskCompleteRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    run = get_owned_run_or_404(db, str(payload.run_id), user_id)
    try:
        row = set_task_completion(
            db,
            run,
            payload.task_index,
            completed=payload.completed,
            note=payload.note,
            outcome=payload.outcome,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return TaskCompletionOut(
        run_id=row.run_id,
        task_index=row.task_index,
        completed=row.completed,
        completed_at=row.completed_at,
        note=row.note,
        outcome=row.outcome,
    )
