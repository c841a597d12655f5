"""
Tests for Stripe-driven state: checkout fulfilment and subscription mirroring.
"""
import json
import uuid

from boost.models import Run, RunCredit, RunSource, RunStatus, User
from boost.models.subscription import Subscription, SubscriptionStatus
from boost.services.checkout import handle_checkout_completed, run_input_from_metadata
from boost.services.credits import get_remaining_credits
from boost.services.jobs import STRATEGY_TASK
from boost.services.subscriptions import (
    advance_subscription_week,
    get_active_subscription,
    is_subscriber,
    upsert_subscription,
)

from tests.fixtures.boost_fixtures import make_user

METADATA = {
    "form_product": "Invoice automation for freelance designers.",
    "form_traction": "40 paying users",
    "form_tried": "Twitter threads",
    "form_working": "",
    "form_focus": "retention",
    "form_competitors": json.dumps(["https://bonsai.com", ""]),
    "credits": "1",
}


def checkout_session(session_id="cs_test_123", metadata=None, email="Buyer@Example.com"):
    return {
        "id": session_id,
        "customer_details": {"email": email},
        "metadata": METADATA if metadata is None else metadata,
    }


class TestRunInputFromMetadata:
    def test_maps_form_fields(self):
        run_input = run_input_from_metadata(METADATA)
        assert run_input.product_description == "Invoice automation for freelance designers."
        assert run_input.focus_area == "retention"
        assert run_input.what_you_tried == "Twitter threads"
        assert run_input.competitor_urls == ["https://bonsai.com"]

    def test_bad_competitor_json_is_ignored(self):
        run_input = run_input_from_metadata({**METADATA, "form_competitors": "{not json"})
        assert run_input.competitor_urls == []


class TestHandleCheckoutCompleted:
    """Tests for handle_checkout_completed."""

    def test_grants_credit_and_starts_run(self, db, no_background_jobs):
        run = handle_checkout_completed(db, checkout_session())

        user = db.query(User).one()
        assert user.email == "buyer@example.com"
        assert run.source == RunSource.STRIPE
        assert run.status == RunStatus.PENDING
        assert run.business_id is not None
        assert no_background_jobs == [(STRATEGY_TASK, [str(run.id)])]
        # The purchased run consumes the purchased credit
        assert get_remaining_credits(db, user.id) == 0

    def test_replay_is_a_no_op(self, db, no_background_jobs):
        first = handle_checkout_completed(db, checkout_session())
        again = handle_checkout_completed(db, checkout_session())

        assert again.id == first.id
        assert db.query(RunCredit).count() == 1
        assert db.query(Run).count() == 1
        assert len(no_background_jobs) == 1

    def test_existing_user_is_reused(self, db):
        user = make_user(db, email="buyer@example.com")
        run = handle_checkout_completed(db, checkout_session())
        assert run.user_id == user.id

    def test_invalid_form_still_grants_credit(self, db, no_background_jobs):
        run = handle_checkout_completed(db, checkout_session(metadata={"credits": "3"}))

        user = db.query(User).one()
        assert run is None
        assert get_remaining_credits(db, user.id) == 3
        assert no_background_jobs == []

    def test_missing_email(self, db):
        assert handle_checkout_completed(db, checkout_session(email=None)) is None
        assert db.query(RunCredit).count() == 0


def subscription_obj(user_id, status="active", **extra):
    return {
        "id": "sub_123",
        "customer": "cus_123",
        "status": status,
        "current_period_start": 1767225600,
        "current_period_end": 1769904000,
        "metadata": {"user_id": str(user_id)},
        **extra,
    }


class TestSubscriptions:
    """Tests for upsert_subscription and the weekly cycle."""

    def test_created_and_updated(self, db):
        user = make_user(db)
        sub = upsert_subscription(db, subscription_obj(user.id))
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.current_week == 1
        assert sub.current_period_start.year == 2026
        assert is_subscriber(db, user.id)

        upsert_subscription(db, subscription_obj(user.id, status="past_due", cancel_at_period_end=True))
        db.refresh(sub)
        assert db.query(Subscription).count() == 1
        assert sub.status == SubscriptionStatus.PAST_DUE
        assert sub.cancel_at_period_end is True
        assert get_active_subscription(db, user.id) is not None
        assert not is_subscriber(db, user.id)

    def test_deleted_is_canceled(self, db):
        user = make_user(db)
        upsert_subscription(db, subscription_obj(user.id))
        sub = upsert_subscription(db, subscription_obj(user.id), deleted=True)
        assert sub.status == SubscriptionStatus.CANCELED
        assert get_active_subscription(db, user.id) is None

    def test_unknown_status_is_paused(self, db):
        user = make_user(db)
        sub = upsert_subscription(db, subscription_obj(user.id, status="incomplete_expired"))
        assert sub.status == SubscriptionStatus.PAUSED

    def test_new_subscription_needs_user_metadata(self, db):
        obj = subscription_obj(uuid.uuid4())
        obj["metadata"] = {}
        assert upsert_subscription(db, obj) is None

    def test_malformed_user_id_is_ignored(self, db):
        obj = subscription_obj("not-a-uuid")
        assert upsert_subscription(db, obj) is None
        assert db.query(Subscription).count() == 0

    def test_malformed_business_id_is_ignored(self, db):
        user = make_user(db)
        obj = subscription_obj(user.id)
        obj["metadata"]["business_id"] = "biz_123"
        assert upsert_subscription(db, obj) is None

    def test_week_wraps_after_four(self, db):
        user = make_user(db)
        sub = upsert_subscription(db, subscription_obj(user.id))
        weeks = [advance_subscription_week(db, sub) for _ in range(4)]
        assert weeks == [2, 3, 4, 1]

        advance_subscription_week(db, sub, {"focus": "retention"})
        assert sub.strategy_context == {"focus": "retention"}
