import json
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.db import get_db
from ..services.checkout import handle_checkout_completed
from ..services.subscriptions import upsert_subscription

router = APIRouter(tags=["webhooks"])

settings = get_settings()
logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise HTTPException(status_code=500, detail="Stripe webhook secret not configured.")

    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing Stripe signature header.")

    try:
        stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid payload.") from exc
    except stripe.SignatureVerificationError as exc:
        raise HTTPException(status_code=400, detail="Invalid signature.") from exc

    # Verified above; handlers take plain dicts
    body = json.loads(payload)
    event_type = body.get("type")
    obj = (body.get("data") or {}).get("object") or {}
    logger.info("Stripe event %s", event_type, extra={"step": "webhook"})

    try:
        if event_type == "checkout.session.completed":
            try:
                handle_checkout_completed(db, obj)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        elif event_type in SUBSCRIPTION_EVENTS:
            upsert_subscription(db, obj, deleted=event_type == "customer.subscription.deleted")
    except IntegrityError:
        # A concurrent delivery of the same event already wrote the rows
        db.rollback()
        logger.warning(
            "Stripe event %s conflicted with existing rows; acknowledging",
            event_type,
            extra={"step": "webhook"},
        )

    return {"received": True}
