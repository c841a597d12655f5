from __future__ import annotations

import logging
from uuid import UUID

from ..core.db import SessionLocal, utcnow
from ..models.run import Run, RunStatus

logger = logging.getLogger(__name__)

# Forward-only lifecycle; terminal states have no exits
ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.PROCESSING, RunStatus.FAILED}),
    RunStatus.PROCESSING: frozenset({RunStatus.COMPLETE, RunStatus.FAILED}),
    RunStatus.COMPLETE: frozenset(),
    RunStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset({RunStatus.COMPLETE, RunStatus.FAILED})

STAGE_ANALYZING = "Analyzing your situation..."
STAGE_RESEARCHING = "Researching your market..."
STAGE_WRITING = "Writing your strategy..."
STAGE_REFINING = "Refining your strategy..."
STAGE_DASHBOARD = "Preparing your dashboard..."


class InvalidStatusTransition(Exception):
    def __init__(self, current: RunStatus, target: RunStatus) -> None:
        super().__init__(f"Cannot move run from {current.value} to {target.value}")
        self.current = current
        self.target = target


def can_transition(current: RunStatus | None, target: RunStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current or RunStatus.PENDING]


def transition(run: Run, target: RunStatus) -> None:
    """
    Move `run` to `target`, raising on any backward or sideways move.

    Terminal states clear the progress stage; only COMPLETE stamps
    `completed_at`.
    Caller commits.
    """
    current = run.status or RunStatus.PENDING
    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target)

    run.status = target
    if target in TERMINAL_STATUSES:
        run.stage = None
        if target == RunStatus.COMPLETE:
            run.completed_at = utcnow()


def set_run_stage(run_id: UUID, stage: str | None) -> None:
    """
    Best-effort progress label shown to polling clients.

    Uses its own session; a failure here must never break the pipeline.
    """
    db = SessionLocal()
    try:
        db.query(Run).filter(Run.id == run_id).update(
            {Run.stage: stage}, synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to update run stage", extra={"run_id": str(run_id)})
    finally:
        db.close()
