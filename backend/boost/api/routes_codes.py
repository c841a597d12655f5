import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.security import get_session_user_id
from ..models.user import User
from ..schemas.runs import (
    CreateRunResponse,
    CreateRunWithCodeRequest,
    ValidateCodeRequest,
    ValidateCodeResponse,
)
from ..services.jobs import enqueue_strategy_run
from ..services.promo_codes import (
    PromoCodeRejected,
    check_promo_code,
    code_credits,
    normalize_code,
    redeem_promo_code,
)

router = APIRouter(tags=["codes"])

logger = logging.getLogger(__name__)


@router.post(
    "/codes/validate",
    response_model=ValidateCodeResponse,
    response_model_exclude_none=True,
)
def validate_code(payload: ValidateCodeRequest, db: Session = Depends(get_db)):
    """Check a code before checkout. Unusable codes are a 200 with `valid: false`."""
    if not normalize_code(payload.code):
        raise HTTPException(status_code=400, detail="Code is required")
    try:
        promo = check_promo_code(db, payload.code)
    except PromoCodeRejected as e:
        return ValidateCodeResponse(valid=False, error=e.message)
    return ValidateCodeResponse(valid=True, credits=code_credits(promo))


@router.post("/runs/with-code", response_model=CreateRunResponse, status_code=201)
def create_run_with_code(
    payload: CreateRunWithCodeRequest,
    db: Session = Depends(get_db),
    user_id: UUID | None = Depends(get_session_user_id),
):
    """Start a free PROMO run; signed-in users own it, anyone else gets it anonymously."""
    if not normalize_code(payload.code):
        raise HTTPException(status_code=400, detail="Code is required")
    if payload.input is None:
        raise HTTPException(status_code=400, detail="Form input is required")

    if user_id and not db.query(User.id).filter(User.id == user_id).first():
        # Stale session for a deleted account
        user_id = None

    try:
        run = redeem_promo_code(db, payload.code, payload.input, user_id=user_id)
    except PromoCodeRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    enqueue_strategy_run(run.id)
    return CreateRunResponse(run_id=run.id)
