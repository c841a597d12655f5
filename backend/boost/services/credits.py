from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.run import Run, RunSource
from ..models.run_credit import RunCredit
from ..models.user import User

# Runs paid for out of the credit balance; refinements and promo runs are free
CREDIT_CONSUMING_SOURCES = (RunSource.STRIPE, RunSource.CREDITS)


def remaining_credits(grants: Iterable[int | None] | None, runs_used: int | None) -> int:
    """
    Balance = sum of grants minus consumed runs, never negative.

    `None` grants (or a `None` grant amount) count as zero, as does a `None`
    usage count.
    """
    total = sum(g or 0 for g in (grants or []))
    return max(0, total - (runs_used or 0))


def get_remaining_credits(db: Session, user_id: UUID) -> int:
    grants = [
        row.credits
        for row in db.query(RunCredit.credits).filter(RunCredit.user_id == user_id).all()
    ]
    used = (
        db.query(func.count(Run.id))
        .filter(Run.user_id == user_id, Run.source.in_(CREDIT_CONSUMING_SOURCES))
        .scalar()
    )
    return remaining_credits(grants, used)


def has_credits(db: Session, user_id: UUID) -> bool:
    return get_remaining_credits(db, user_id) > 0


def lock_user_for_spend(db: Session, user_id: UUID) -> User | None:
    """
    Take a row lock on the user for the rest of the transaction.

    Concurrent spends for one user queue here, so the balance check and the
    run insert that follows see each other's runs.
    """
    return db.query(User).filter(User.id == user_id).with_for_update().one_or_none()
