from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..models.run import Run, RunSource, RunStatus

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_CHAIN_DEPTH = 10


class RefinementRejected(Exception):
    """A refinement request that cannot proceed; carries the HTTP status to return."""

    def __init__(
        self,
        status_code: int,
        message: str,
        refinements_remaining: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.refinements_remaining = refinements_remaining


@dataclass
class RefinementCreated:
    run: Run
    root_run_id: UUID
    refinements_remaining: int


def find_root_run_id(db: Session, run: Run) -> UUID:
    """
    Walk `parent_run_id` up to the original run.

    Stops at a cycle, a missing parent or MAX_CHAIN_DEPTH hops, returning
    the last run actually reached.
    """
    visited = {run.id}
    root_id = run.id
    parent_id = run.parent_run_id
    depth = 0

    while parent_id and depth < MAX_CHAIN_DEPTH:
        if parent_id in visited:
            logger.error(
                "Circular parent chain detected",
                extra={"run_id": str(run.id), "step": "find_root_run"},
            )
            break
        visited.add(parent_id)
        depth += 1

        parent = db.query(Run.id, Run.parent_run_id).filter(Run.id == parent_id).first()
        if parent is None:
            logger.error(
                "Parent run missing from chain",
                extra={"run_id": str(run.id), "step": "find_root_run"},
            )
            break

        root_id = parent.id
        parent_id = parent.parent_run_id

    return root_id


def _count_refinements(db: Session, root_id: UUID, statuses: tuple[RunStatus, ...]) -> int:
    return (
        db.query(func.count(Run.id))
        .filter(
            Run.parent_run_id == root_id,
            Run.source == RunSource.REFINEMENT,
            Run.status.in_(statuses),
        )
        .scalar()
        or 0
    )


def validate_additional_context(text: str | None) -> str:
    text = (text or "").strip()
    if len(text) < settings.MIN_CONTEXT_LENGTH:
        raise RefinementRejected(
            400, f"Please provide at least {settings.MIN_CONTEXT_LENGTH} characters of context"
        )
    if len(text) > settings.MAX_CONTEXT_LENGTH:
        raise RefinementRejected(
            400, f"Context must be {settings.MAX_CONTEXT_LENGTH} characters or less"
        )
    return text


def create_refinement(
    db: Session,
    run: Run,
    user_id: UUID,
    additional_context: str | None,
) -> RefinementCreated:
    """
    Queue-ready refinement run under the root of `run`'s chain.

    The limit counts completed refinements only. The root's
    `refinements_used` counter is a compare-and-set gate so two concurrent
    requests cannot both pass the count check.
    """
    text = validate_additional_context(additional_context)

    if run.user_id != user_id:
        raise RefinementRejected(403, "Forbidden")
    if run.status != RunStatus.COMPLETE:
        raise RefinementRejected(400, "Can only refine completed runs")

    root_id = find_root_run_id(db, run)
    limit = settings.MAX_FREE_REFINEMENTS

    completed = _count_refinements(db, root_id, (RunStatus.COMPLETE,))
    if completed >= limit:
        raise RefinementRejected(
            429,
            f"You've used all {limit} free refinements for this strategy",
            refinements_remaining=0,
        )

    in_flight = _count_refinements(db, root_id, (RunStatus.PENDING, RunStatus.PROCESSING))
    if in_flight:
        raise RefinementRejected(
            429, "A refinement is already in progress. Please wait for it to complete."
        )

    current_counter = (
        db.query(Run.refinements_used).filter(Run.id == root_id).scalar() or 0
    )
    locked = (
        db.query(Run)
        .filter(Run.id == root_id, Run.refinements_used == current_counter)
        .update({Run.refinements_used: current_counter + 1}, synchronize_session=False)
    )
    if locked != 1:
        db.rollback()
        raise RefinementRejected(
            429, "Another refinement request is being processed. Please try again."
        )
    db.commit()

    try:
        refinement = Run(
            user_id=user_id,
            business_id=run.business_id,
            input=run.input,
            additional_context=text,
            parent_run_id=root_id,
            status=RunStatus.PENDING,
            source=RunSource.REFINEMENT,
        )
        db.add(refinement)
        db.commit()
        db.refresh(refinement)
    except Exception:
        db.rollback()
        db.query(Run).filter(Run.id == root_id).update(
            {Run.refinements_used: current_counter}, synchronize_session=False
        )
        db.commit()
        logger.exception(
            "Failed to create refinement run",
            extra={"run_id": str(run.id), "step": "create_refinement"},
        )
        raise

    logger.info(
        "Refinement run created",
        extra={"run_id": str(refinement.id), "step": "create_refinement"},
    )
    return RefinementCreated(
        run=refinement,
        root_run_id=root_id,
        refinements_remaining=limit - completed - 1,
    )
