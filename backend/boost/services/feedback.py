from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import SessionLocal, utcnow
from ..models.run import Run, RunStatus
from .notifications import FEEDBACK_REQUEST, get_email_for_user, run_url, send_email

settings = get_settings()
logger = logging.getLogger(__name__)

# The hourly schedule sees each completed run exactly once
WINDOW = timedelta(hours=1)


def find_feedback_candidates(db: Session, now: datetime | None = None) -> List[Run]:
    """Complete runs without a feedback email, finished 48 to 49 hours ago."""
    now = now or utcnow()
    newest = now - timedelta(hours=settings.FEEDBACK_EMAIL_DELAY_HOURS)
    oldest = newest - WINDOW
    return (
        db.query(Run)
        .filter(
            Run.status == RunStatus.COMPLETE,
            Run.feedback_email_sent.is_(None),
            Run.completed_at >= oldest,
            Run.completed_at <= newest,
        )
        .all()
    )


def process_feedback_emails(db: Session, now: datetime | None = None) -> Dict[str, Any]:
    runs = find_feedback_candidates(db, now)
    sent = 0
    errors: List[str] = []

    for run in runs:
        email = get_email_for_user(db, run.user_id)
        if not email:
            continue
        try:
            send_email(FEEDBACK_REQUEST, email, run_id=run.id, url=run_url(run.id))
            run.feedback_email_sent = utcnow()
            db.commit()
            sent += 1
        except Exception as exc:
            db.rollback()
            logger.exception("Feedback email failed", extra={"run_id": str(run.id), "step": "feedback_email"})
            errors.append(f"Run {run.id}: {exc}")

    logger.info("Feedback emails sent: %d of %d", sent, len(runs), extra={"step": "feedback_email"})
    return {"sent": sent, "total": len(runs), "errors": errors}


@celery_app.task(name="boost.services.feedback.send_feedback_emails", bind=True)
def send_feedback_emails(self):
    db: Session = SessionLocal()
    try:
        return process_feedback_emails(db)
    finally:
        db.close()
