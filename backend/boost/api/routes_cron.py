import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.security import verify_cron_secret
from ..services.feedback import process_feedback_emails

router = APIRouter(tags=["cron"])

logger = logging.getLogger(__name__)


@router.get("/cron/feedback-emails", dependencies=[Depends(verify_cron_secret)])
def feedback_emails(db: Session = Depends(get_db)):
    """Manual trigger for the hourly beat job."""
    return process_feedback_emails(db)
