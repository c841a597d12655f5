from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.subscription import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

WEEKS_PER_CYCLE = 4
LIVE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING, SubscriptionStatus.PAST_DUE)


def _from_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def _parse_status(value: str | None) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(value or "active")
    except ValueError:
        # Stripe statuses outside ours (incomplete, unpaid, ...) are not live
        return SubscriptionStatus.PAUSED


def get_active_subscription(db: Session, user_id: UUID) -> Subscription | None:
    """Newest live (active, trialing or past due) subscription."""
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status.in_(LIVE_STATUSES))
        .order_by(Subscription.created_at.desc())
        .first()
    )


def is_subscriber(db: Session, user_id: UUID) -> bool:
    sub = get_active_subscription(db, user_id)
    return sub is not None and sub.status != SubscriptionStatus.PAST_DUE


def upsert_subscription(db: Session, obj: Mapping[str, Any], deleted: bool = False) -> Subscription | None:
    """
    Mirror a Stripe subscription object.

    New rows need a valid `metadata.user_id`; without one the event is
    ignored.
    """
    stripe_id = obj.get("id")
    if not stripe_id:
        return None

    sub = db.query(Subscription).filter(Subscription.stripe_subscription_id == stripe_id).first()
    metadata = obj.get("metadata") or {}

    if sub is None:
        user_id = metadata.get("user_id")
        if not user_id:
            logger.warning("Subscription event without user_id metadata", extra={"step": "subscription"})
            return None
        business_id = metadata.get("business_id")
        try:
            user_uuid = UUID(str(user_id))
            business_uuid = UUID(str(business_id)) if business_id else None
        except ValueError:
            logger.warning(
                "Subscription %s has malformed metadata ids",
                stripe_id,
                extra={"step": "subscription"},
            )
            return None
        sub = Subscription(
            user_id=user_uuid,
            business_id=business_uuid,
            stripe_subscription_id=stripe_id,
            stripe_customer_id=obj.get("customer") or "",
            current_week=1,
        )
        db.add(sub)

    sub.status = SubscriptionStatus.CANCELED if deleted else _parse_status(obj.get("status"))
    sub.current_period_start = _from_timestamp(obj.get("current_period_start")) or sub.current_period_start
    sub.current_period_end = _from_timestamp(obj.get("current_period_end")) or sub.current_period_end
    sub.cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
    db.commit()
    db.refresh(sub)

    logger.info(
        "Subscription %s is %s",
        stripe_id,
        sub.status.value,
        extra={"step": "subscription"},
    )
    return sub


def advance_subscription_week(
    db: Session,
    sub: Subscription,
    strategy_context: Dict[str, Any] | None = None,
) -> int:
    """Move to the next week of the 4-week cycle, folding in new strategy context."""
    sub.current_week = (sub.current_week or 0) % WEEKS_PER_CYCLE + 1
    if strategy_context:
        sub.strategy_context = {**(sub.strategy_context or {}), **strategy_context}
    db.commit()
    return sub.current_week
