from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.db import get_db
from ..core.security import SESSION_COOKIE_NAME, issue_session_token, require_user_id
from ..models.run import Run, RunSource, RunStatus
from ..models.user import User
from ..schemas.runs import (
    AddContextRequest,
    AddContextResponse,
    CreateRunResponse,
    CreateRunWithCreditsRequest,
    RunOut,
    RunStatusOut,
    ShareResponse,
    SharedRunOut,
)
from ..services.business import get_or_create_default_business, get_owned_business
from ..services.context import apply_context_delta_to_business
from ..services.credits import has_credits, lock_user_for_spend
from ..services.jobs import enqueue_refinement_run, enqueue_strategy_run
from ..services.refinement import RefinementRejected, create_refinement
from ..services.slugs import generate_slug, is_unique_violation
from .deps import get_run_or_404

router = APIRouter(tags=["runs"])

settings = get_settings()
logger = logging.getLogger(__name__)

SHARE_SLUG_ATTEMPTS = 3


@router.post("/runs/with-credits", response_model=CreateRunResponse, status_code=201)
def create_run_with_credits(
    payload: CreateRunWithCreditsRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    """Spend one credit on a new strategy run for the signed-in user."""
    if not db.query(User.id).filter(User.id == user_id).first():
        raise HTTPException(status_code=404, detail="User account not found")

    if payload.business_id:
        business = get_owned_business(db, payload.business_id, user_id)
        if not business:
            raise HTTPException(status_code=403, detail="Not authorized to access this business")
    else:
        business = get_or_create_default_business(db, user_id, payload.input)
        db.commit()

    if payload.context_delta:
        ok, error = apply_context_delta_to_business(db, business.id, payload.context_delta)
        if not ok:
            logger.error("Context delta merge failed: %s", error, extra={"step": "context_delta"})

    # Balance check and insert share one transaction under the user row lock
    lock_user_for_spend(db, user_id)
    if not has_credits(db, user_id):
        db.rollback()
        raise HTTPException(status_code=402, detail="No credits available")

    run = Run(
        user_id=user_id,
        business_id=business.id,
        input=payload.input.model_dump(),
        status=RunStatus.PENDING,
        source=RunSource.CREDITS,
    )
    db.add(run)
    db.commit()
    db.refresh(run)

    logger.info("Run created with credits", extra={"run_id": str(run.id), "step": "create_run"})
    enqueue_strategy_run(run.id)
    return CreateRunResponse(run_id=run.id)


@router.get("/runs/shared/{slug}", response_model=SharedRunOut)
def get_shared_run(slug: str, db: Session = Depends(get_db)):
    run = db.query(Run).filter(Run.share_slug == slug).first()
    if not run or run.status != RunStatus.COMPLETE:
        raise HTTPException(status_code=404, detail="Run not found")
    return SharedRunOut.model_validate(run)


@router.get("/runs/by-checkout/{session_id}")
def get_run_by_checkout(session_id: str, response: Response, db: Session = Depends(get_db)):
    """
    Resolve a Stripe checkout session to its run and sign the buyer in.

    The webhook may not have landed yet; clients poll on 404.
    """
    if not session_id.startswith("cs_"):
        raise HTTPException(status_code=400, detail="Invalid session ID")

    run = db.query(Run).filter(Run.stripe_session_id == session_id).first()
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")

    if run.user_id:
        user = db.query(User).filter(User.id == run.user_id).first()
        if user:
            response.set_cookie(
                SESSION_COOKIE_NAME,
                issue_session_token(user.id, user.email),
                max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
                httponly=True,
                secure=settings.ENV.lower() == "prod",
                samesite="lax",
            )
    return {"run_id": str(run.id)}


@router.get("/runs/{run_id}", response_model=RunOut)
def get_run(run_id: str, db: Session = Depends(get_db)):
    return RunOut.model_validate(get_run_or_404(db, run_id))


@router.get("/runs/{run_id}/status", response_model=RunStatusOut)
def get_run_status(run_id: str, db: Session = Depends(get_db)):
    run = get_run_or_404(db, run_id)
    return RunStatusOut(status=run.status or RunStatus.PENDING, stage=run.stage)


@router.post("/runs/{run_id}/share", response_model=ShareResponse)
def share_run(run_id: str, db: Session = Depends(get_db)):
    """Public link for a run; repeated calls return the same slug."""
    run = get_run_or_404(db, run_id)
    if run.share_slug:
        return ShareResponse(share_slug=run.share_slug)

    for _ in range(SHARE_SLUG_ATTEMPTS):
        run.share_slug = generate_slug()
        try:
            db.commit()
            return ShareResponse(share_slug=run.share_slug)
        except IntegrityError as exc:
            db.rollback()
            if not is_unique_violation(exc):
                raise
            db.refresh(run)
            if run.share_slug:
                return ShareResponse(share_slug=run.share_slug)

    raise HTTPException(status_code=500, detail="Failed to generate link")


@router.post("/runs/{run_id}/add-context", response_model=AddContextResponse, status_code=201)
def add_context(
    run_id: str,
    payload: AddContextRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    run = get_run_or_404(db, run_id)
    try:
        created = create_refinement(db, run, user_id, payload.additional_context)
    except RefinementRejected as e:
        detail = {"error": e.message}
        if e.refinements_remaining is not None:
            detail["refinements_remaining"] = e.refinements_remaining
        raise HTTPException(status_code=e.status_code, detail=detail)

    enqueue_refinement_run(created.run.id)
    return AddContextResponse(
        run_id=created.run.id,
        refinements_remaining=created.refinements_remaining,
    )

