from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import SessionLocal, utcnow
from ..models.business import Business
from ..models.run import Run, RunStatus
from ..schemas.runs import RunInput
from .business import get_or_create_default_business
from .context import accumulate_business_context, build_history_context
from .formatter import extract_structured_output
from .notifications import notify_run_finished
from .research import empty_research, run_research
from .run_state import (
    STAGE_ANALYZING,
    STAGE_DASHBOARD,
    STAGE_REFINING,
    STAGE_RESEARCHING,
    STAGE_WRITING,
    TERMINAL_STATUSES,
    can_transition,
    set_run_stage,
    transition,
)
from .strategy import StrategyWriter

settings = get_settings()
logger = logging.getLogger(__name__)

ERROR_MESSAGE_LIMIT = 500


def _load_history(db: Session, run: Run) -> Dict[str, Any] | None:
    """History slice for returning users; a failure here only loses personalisation."""
    if not run.business_id:
        return None
    try:
        business = db.query(Business).filter(Business.id == run.business_id).first()
        return build_history_context(business.context if business else None)
    except Exception:
        logger.exception("History retrieval failed", extra={"run_id": str(run.id), "step": "history"})
        return None


def _gather_research(run: Run, run_input: RunInput) -> Dict[str, Any]:
    try:
        return run_research(run_input)
    except Exception as exc:
        logger.exception("Research failed; continuing without it", extra={"run_id": str(run.id), "step": "research"})
        return empty_research([f"research: {exc}"])


def _extract(run: Run, markdown: str, research: Dict[str, Any] | None) -> Dict[str, Any] | None:
    set_run_stage(run.id, STAGE_DASHBOARD)
    try:
        return extract_structured_output(markdown, research)
    except Exception:
        logger.exception("Structured extraction failed", extra={"run_id": str(run.id), "step": "formatter"})
        return None


def _accumulate_context(db: Session, run: Run, run_input: RunInput) -> None:
    """Fold the run into its business context. Never fails the run."""
    if not run.user_id:
        return
    try:
        business_id = run.business_id
        if business_id is None:
            business = get_or_create_default_business(db, run.user_id, run_input)
            run.business_id = business.id
            business_id = business.id
        accumulate_business_context(db, business_id, run.id, run_input)
    except Exception:
        db.rollback()
        logger.exception(
            "Business context accumulation failed",
            extra={"run_id": str(run.id), "step": "accumulate_context"},
        )


def _fail_run(db: Session, run: Run, exc: Exception) -> None:
    db.rollback()
    if not can_transition(run.status, RunStatus.FAILED):
        logger.warning(
            "Run already %s; not marking failed",
            run.status.value,
            extra={"run_id": str(run.id), "step": "failed"},
        )
        return
    transition(run, RunStatus.FAILED)
    run.error_message = str(exc)[:ERROR_MESSAGE_LIMIT]
    db.commit()


def execute_strategy_run(db: Session, run: Run, writer: StrategyWriter | None = None) -> None:
    """
    Research, write and persist one strategy run.

    Raises on generation or persistence failure after recording the
    failure on the run.
    """
    run_id = run.id
    writer = writer or StrategyWriter()

    transition(run, RunStatus.PROCESSING)
    run.stage = STAGE_ANALYZING
    db.commit()

    try:
        run_input = RunInput.model_validate(run.input)
        history = _load_history(db, run)

        set_run_stage(run_id, STAGE_RESEARCHING)
        research = _gather_research(run, run_input)

        set_run_stage(run_id, STAGE_WRITING)
        output = writer.generate(
            run_input,
            research,
            history=history,
            prior_context=run.additional_context,
        )
        logger.info(
            "Strategy generated (%d chars)",
            len(output),
            extra={"run_id": str(run_id), "step": "generate"},
        )

        structured = _extract(run, output, research)

        db.refresh(run)
        run.output = output
        run.structured_output = structured
        run.research_data = research
        run.plan_start_date = (utcnow() + timedelta(days=1)).date()
        transition(run, RunStatus.COMPLETE)
        db.commit()
    except Exception as exc:
        _fail_run(db, run, exc)
        logger.exception("Strategy pipeline failed", extra={"run_id": str(run_id), "step": "failed"})
        notify_run_finished(db, run_id, run.user_id, success=False)
        raise

    _accumulate_context(db, run, run_input)
    notify_run_finished(db, run_id, run.user_id, success=True)
    logger.info("Strategy run complete", extra={"run_id": str(run_id), "step": "complete"})


def execute_refinement_run(db: Session, run: Run, writer: StrategyWriter | None = None) -> None:
    """
    Rewrite the parent's strategy with the run's additional context.

    The parent must have output and belong to the same user; the refined
    plan keeps the parent's calendar start.
    """
    run_id = run.id
    writer = writer or StrategyWriter()

    try:
        parent = (
            db.query(Run).filter(Run.id == run.parent_run_id).first()
            if run.parent_run_id
            else None
        )
        if parent is None or not parent.output:
            raise ValueError("Parent run not found or has no output")
        if parent.user_id != run.user_id:
            logger.error(
                "Refinement parent belongs to another user",
                extra={"run_id": str(run_id), "step": "refine"},
            )
            raise ValueError("Parent run ownership mismatch")

        transition(run, RunStatus.PROCESSING)
        run.stage = STAGE_REFINING
        db.commit()

        run_input = RunInput.model_validate(run.input)
        additional_context = (run.additional_context or "")[: settings.MAX_CONTEXT_LENGTH]
        history = _load_history(db, run)

        output = writer.refine(run_input, parent.output, additional_context, history=history)
        logger.info(
            "Refinement generated (%d chars)",
            len(output),
            extra={"run_id": str(run_id), "step": "refine"},
        )

        structured = _extract(run, output, None)

        db.refresh(run)
        run.output = output
        run.structured_output = structured
        run.research_data = parent.research_data
        run.plan_start_date = parent.plan_start_date or (utcnow() + timedelta(days=1)).date()
        transition(run, RunStatus.COMPLETE)
        db.commit()
    except Exception as exc:
        _fail_run(db, run, exc)
        logger.exception("Refinement pipeline failed", extra={"run_id": str(run_id), "step": "failed"})
        notify_run_finished(db, run_id, run.user_id, success=False)
        raise

    notify_run_finished(db, run_id, run.user_id, success=True)
    logger.info("Refinement run complete", extra={"run_id": str(run_id), "step": "complete"})


def _load_pending_run(db: Session, run_id: str) -> Run | None:
    run = db.query(Run).filter(Run.id == UUID(run_id)).first()
    if not run:
        logger.warning("Run not found", extra={"run_id": run_id})
        return None
    if run.status in TERMINAL_STATUSES:
        # Redelivered task; the run already finished
        logger.info("Run already %s; skipping", run.status.value, extra={"run_id": run_id})
        return None
    return run


@celery_app.task(name="boost.services.pipeline.run_strategy_pipeline", bind=True, queue="pipeline")
def run_strategy_pipeline(self, run_id: str):
    db: Session = SessionLocal()
    try:
        run = _load_pending_run(db, run_id)
        if run is None:
            return
        logger.info("Starting strategy run", extra={"run_id": run_id, "step": "start"})
        execute_strategy_run(db, run)
    finally:
        db.close()


@celery_app.task(name="boost.services.pipeline.run_refinement_pipeline", bind=True, queue="pipeline")
def run_refinement_pipeline(self, run_id: str):
    db: Session = SessionLocal()
    try:
        run = _load_pending_run(db, run_id)
        if run is None:
            return
        logger.info("Starting refinement run", extra={"run_id": run_id, "step": "start"})
        execute_refinement_run(db, run)
    finally:
        db.close()
