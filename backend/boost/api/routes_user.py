from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.security import get_session_user_id, require_user_id
from ..models.business import Business
from ..models.run import Run
from ..schemas.context import ContextDeltaRequest, ContextSummary, CreditsOut, UserContextOut
from ..schemas.runs import RunSummaryOut
from ..services.business import get_owned_business
from ..services.context import (
    apply_context_delta,
    get_context_summary,
    get_suggested_questions,
    has_user_context,
)
from ..services.credits import get_remaining_credits
from .deps import parse_uuid

router = APIRouter(tags=["user"])

logger = logging.getLogger(__name__)


def _resolve_business(db: Session, user_id: UUID, business_id: str | None) -> Business | None:
    """An explicitly requested business must be owned; otherwise the oldest one."""
    if business_id:
        business = get_owned_business(db, parse_uuid(business_id, "business ID"), user_id)
        if not business:
            raise HTTPException(status_code=403, detail="Not authorized to access this business")
        return business
    return (
        db.query(Business)
        .filter(Business.user_id == user_id)
        .order_by(Business.created_at.asc())
        .first()
    )


@router.get("/user/credits", response_model=CreditsOut)
def get_credits(
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_session_user_id),
):
    if user_id is None:
        return CreditsOut(credits=0, logged_in=False)
    return CreditsOut(credits=get_remaining_credits(db, user_id), logged_in=True)


@router.get("/user/runs", response_model=list[RunSummaryOut])
def list_runs(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    runs = (
        db.query(Run)
        .filter(Run.user_id == user_id)
        .order_by(Run.created_at.desc())
        .all()
    )
    return [RunSummaryOut.model_validate(r) for r in runs]


@router.get("/user/context", response_model=UserContextOut)
def get_user_context(
    business_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    """Accumulated business context for pre-filling the next form."""
    business = _resolve_business(db, user_id, business_id)
    context = (business.context if business else None) or {}
    return UserContextOut(
        business_id=business.id if business else None,
        context=context,
        last_updated=business.context_updated_at.isoformat() if business and business.context_updated_at else None,
        summary=ContextSummary(**get_context_summary(context)),
        suggested_questions=get_suggested_questions(context) if has_user_context(context) else [],
    )


@router.post("/user/context/delta", response_model=UserContextOut)
def post_context_delta(
    payload: ContextDeltaRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(require_user_id),
):
    business = _resolve_business(db, user_id, str(payload.business_id) if payload.business_id else None)
    if business is None:
        raise HTTPException(status_code=400, detail="No business profile yet")

    context = apply_context_delta(db, business, payload.delta)
    logger.info("Context delta applied", extra={"step": "context_delta"})
    return UserContextOut(
        business_id=business.id,
        context=context,
        last_updated=business.context_updated_at.isoformat() if business.context_updated_at else None,
        summary=ContextSummary(**get_context_summary(context)),
        suggested_questions=get_suggested_questions(context) if has_user_context(context) else [],
    )
