"""
Promo codes: free strategy runs outside the credit balance.

A code may carry an expiry and a use cap. Redemption bumps `used_count`
with a compare-and-set so two requests cannot both take the last use.
"""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..models.promo_code import PromoCode
from ..models.run import Run, RunSource, RunStatus
from ..schemas.runs import RunInput

logger = logging.getLogger(__name__)

INVALID_CODE = "Invalid code"
EXPIRED_CODE = "Code has expired"
CODE_USED_UP = "Code has reached maximum uses"
REDEEM_CONFLICT = "Failed to redeem code. Please try again."


class PromoCodeRejected(Exception):
    """The code cannot be used; carries the HTTP status to return."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def code_credits(promo: PromoCode) -> int:
    return promo.credits if promo.credits is not None else 1


def check_promo_code(db: Session, code: str) -> PromoCode:
    """Look up a usable code or raise PromoCodeRejected with the reason."""
    promo = db.query(PromoCode).filter(PromoCode.code == normalize_code(code)).first()
    if not promo:
        raise PromoCodeRejected(INVALID_CODE)
    if promo.expires_at is not None and promo.expires_at < utcnow():
        raise PromoCodeRejected(EXPIRED_CODE)
    if promo.max_uses is not None and (promo.used_count or 0) >= promo.max_uses:
        raise PromoCodeRejected(CODE_USED_UP)
    return promo


def redeem_promo_code(
    db: Session,
    code: str,
    run_input: RunInput,
    user_id: UUID | None = None,
) -> Run:
    """
    Spend one use of `code` on a new pending PROMO run.

    The use and the run are committed together. A lost race on the use
    counter raises PromoCodeRejected with status 500.
    """
    promo = check_promo_code(db, code)
    current = promo.used_count or 0

    claimed = (
        db.query(PromoCode)
        .filter(PromoCode.id == promo.id, PromoCode.used_count == current)
        .update({PromoCode.used_count: current + 1}, synchronize_session=False)
    )
    if claimed != 1:
        db.rollback()
        logger.warning("Promo code redemption lost a race", extra={"step": "promo_code"})
        raise PromoCodeRejected(REDEEM_CONFLICT, status_code=500)

    run = Run(
        user_id=user_id,
        input=run_input.model_dump(),
        status=RunStatus.PENDING,
        source=RunSource.PROMO,
    )
    db.add(run)
    db.commit()
    db.refresh(run)

    logger.info(
        "Promo code redeemed",
        extra={"run_id": str(run.id), "step": "promo_code"},
    )
    return run
