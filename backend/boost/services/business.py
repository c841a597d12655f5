from __future__ import annotations

import logging
import re
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.business import Business, DEFAULT_BUSINESS_NAME
from ..schemas.runs import RunInput

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50


def generate_business_name(product_description: str) -> str:
    first_sentence = re.split(r"[.!?]", product_description, maxsplit=1)[0].strip()
    if first_sentence and len(first_sentence) <= MAX_NAME_LENGTH:
        return first_sentence
    if len(product_description) <= MAX_NAME_LENGTH:
        return product_description
    return product_description[: MAX_NAME_LENGTH - 3] + "..."


def get_or_create_default_business(
    db: Session,
    user_id: UUID,
    run_input: RunInput | None = None,
) -> Business:
    """The user's oldest business, created on first use."""
    business = (
        db.query(Business)
        .filter(Business.user_id == user_id)
        .order_by(Business.created_at.asc())
        .first()
    )
    if business:
        return business

    name = (
        generate_business_name(run_input.product_description)
        if run_input is not None
        else DEFAULT_BUSINESS_NAME
    )
    business = Business(user_id=user_id, name=name)
    db.add(business)
    db.flush()
    logger.info("Created business", extra={"step": "create_business"})
    return business


def get_owned_business(db: Session, business_id: UUID, user_id: UUID) -> Business | None:
    return (
        db.query(Business)
        .filter(Business.id == business_id, Business.user_id == user_id)
        .first()
    )


def update_business_name(business: Business, product_description: str) -> bool:
    """Rename a business still carrying the default name. Caller commits."""
    if business.name != DEFAULT_BUSINESS_NAME or not product_description:
        return False
    business.name = generate_business_name(product_description)
    return True
