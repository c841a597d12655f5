from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..models.run import Run, RunSource, RunStatus
from ..models.run_credit import RunCredit
from ..models.user import User
from ..schemas.runs import RunInput
from .business import get_or_create_default_business
from .jobs import enqueue_strategy_run

logger = logging.getLogger(__name__)

# Stripe metadata key -> RunInput field
FORM_METADATA_FIELDS = {
    "form_product": "product_description",
    "form_traction": "current_traction",
    "form_tried": "what_you_tried",
    "form_working": "whats_working",
    "form_focus": "focus_area",
    "form_website": "website_url",
    "form_analytics": "analytics_summary",
    "form_constraints": "constraints",
}


def _parse_credits(value: Any) -> int:
    try:
        credits = int(value)
    except (TypeError, ValueError):
        return 1
    return credits if credits > 0 else 1


def run_input_from_metadata(metadata: Mapping[str, Any]) -> RunInput:
    """Rebuild the form the buyer filled in before checkout."""
    data: Dict[str, Any] = {
        field: metadata.get(key) or "" for key, field in FORM_METADATA_FIELDS.items()
    }
    data["focus_area"] = data["focus_area"] or "acquisition"
    try:
        competitors = json.loads(metadata.get("form_competitors") or "[]")
    except json.JSONDecodeError:
        competitors = []
    data["competitor_urls"] = [c for c in competitors if c] if isinstance(competitors, list) else []
    return RunInput.model_validate(data)


def get_or_create_user(db: Session, email: str) -> User:
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email)
    db.add(user)
    db.flush()
    return user


def handle_checkout_completed(db: Session, session: Mapping[str, Any]) -> Run | None:
    """
    Grant credits for a paid checkout and start the purchased run.

    Replays of the same checkout session are no-ops. A form that no longer
    validates still grants the credits; the buyer can spend them later.
    """
    session_id = session.get("id")
    if not session_id:
        raise ValueError("Missing Stripe session ID")

    if db.query(RunCredit.id).filter(RunCredit.stripe_checkout_session_id == session_id).first():
        logger.info("Checkout session already processed", extra={"step": "checkout"})
        return db.query(Run).filter(Run.stripe_session_id == session_id).first()

    metadata = session.get("metadata") or {}
    email = (session.get("customer_details") or {}).get("email") or session.get("customer_email")
    if not email:
        logger.error("Checkout session has no customer email", extra={"step": "checkout"})
        return None

    user = get_or_create_user(db, email)
    db.add(
        RunCredit(
            user_id=user.id,
            credits=_parse_credits(metadata.get("credits")),
            source="stripe",
            stripe_checkout_session_id=session_id,
        )
    )

    try:
        run_input = run_input_from_metadata(metadata)
    except ValidationError:
        db.commit()
        logger.warning("Checkout form metadata is invalid; credits granted without a run", extra={"step": "checkout"})
        return None

    business = get_or_create_default_business(db, user.id, run_input)
    run = Run(
        user_id=user.id,
        business_id=business.id,
        input=run_input.model_dump(),
        status=RunStatus.PENDING,
        source=RunSource.STRIPE,
        stripe_session_id=session_id,
    )
    db.add(run)
    db.commit()
    db.refresh(run)

    logger.info("Created run for checkout", extra={"run_id": str(run.id), "step": "checkout"})
    enqueue_strategy_run(run.id)
    return run
