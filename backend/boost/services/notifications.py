from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..models.user import User
from .validation import mask_email

settings = get_settings()
logger = logging.getLogger(__name__)

# Email kinds handed to the delivery provider
RUN_READY = "run_ready"
RUN_FAILED = "run_failed"
FEEDBACK_REQUEST = "feedback_request"
FREE_AUDIT_READY = "free_audit_ready"


def get_email_for_user(db: Session, user_id: UUID | None) -> str | None:
    if user_id is None:
        return None
    user = db.query(User).filter(User.id == user_id).first()
    return user.email if user else None


def run_url(run_id: UUID | str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/results/{run_id}"


def send_email(kind: str, to: str, **payload) -> None:
    """
    Hand a transactional email to the delivery provider.

    Delivery itself lives outside this service; the handoff is recorded as a
    structured log line the provider integration consumes.
    """
    logger.info(
        "Email handoff: %s to %s",
        kind,
        mask_email(to),
        extra={"step": "email", **{k: str(v) for k, v in payload.items() if k in ("run_id", "audit_id")}},
    )


def notify_run_finished(db: Session, run_id: UUID, user_id: UUID | None, success: bool) -> None:
    """Best-effort "your strategy is ready" / "generation failed" email."""
    try:
        email = get_email_for_user(db, user_id)
        if email:
            send_email(RUN_READY if success else RUN_FAILED, email, run_id=run_id, url=run_url(run_id))
    except Exception:
        logger.exception("Run notification failed", extra={"run_id": str(run_id), "step": "email"})
