"""
Tests for promo codes - validation, redemption and the two endpoints.
"""
from datetime import timedelta
import uuid

import pytest

from boost.core.db import utcnow
from boost.models import PromoCode, Run, RunSource, RunStatus
from boost.schemas.runs import RunInput
from boost.services.credits import get_remaining_credits
from boost.services.jobs import STRATEGY_TASK
from boost.services.promo_codes import (
    CODE_USED_UP,
    EXPIRED_CODE,
    INVALID_CODE,
    PromoCodeRejected,
    check_promo_code,
    normalize_code,
    redeem_promo_code,
)

from tests.fixtures.boost_fixtures import login, make_promo_code, make_user, run_input_data


def _input() -> RunInput:
    return RunInput.model_validate(run_input_data())


class TestCheckPromoCode:
    def test_normalizes_case_and_whitespace(self, db):
        make_promo_code(db, "LAUNCH")
        assert normalize_code("  launch ") == "LAUNCH"
        assert check_promo_code(db, " launch ").code == "LAUNCH"

    @pytest.mark.parametrize("fields,message", [
        ({"expires_at": utcnow() - timedelta(days=1)}, EXPIRED_CODE),
        ({"max_uses": 2, "used_count": 2}, CODE_USED_UP),
    ])
    def test_unusable(self, db, fields, message):
        make_promo_code(db, **fields)
        with pytest.raises(PromoCodeRejected) as exc:
            check_promo_code(db, "LAUNCH")
        assert exc.value.message == message

    def test_unknown(self, db):
        with pytest.raises(PromoCodeRejected) as exc:
            check_promo_code(db, "NOPE")
        assert exc.value.message == INVALID_CODE

    def test_future_expiry_and_spare_uses_are_fine(self, db):
        make_promo_code(db, expires_at=utcnow() + timedelta(days=1), max_uses=2, used_count=1)
        assert check_promo_code(db, "LAUNCH").used_count == 1


class TestRedeemPromoCode:
    def test_creates_free_pending_run(self, db):
        user = make_user(db)
        promo = make_promo_code(db, max_uses=1)

        run = redeem_promo_code(db, "launch", _input(), user_id=user.id)

        assert run.source == RunSource.PROMO
        assert run.status == RunStatus.PENDING
        assert run.user_id == user.id
        db.refresh(promo)
        assert promo.used_count == 1
        # Promo runs never touch the credit balance
        assert get_remaining_credits(db, user.id) == 0

    def test_last_use_cannot_be_taken_twice(self, db):
        make_promo_code(db, max_uses=1)
        redeem_promo_code(db, "LAUNCH", _input())
        with pytest.raises(PromoCodeRejected) as exc:
            redeem_promo_code(db, "LAUNCH", _input())
        assert exc.value.message == CODE_USED_UP
        assert db.query(Run).count() == 1

    def test_lost_race_is_rejected(self, db, monkeypatch):
        """A concurrent redemption bumped the counter between read and update."""
        from boost.services import promo_codes

        make_promo_code(db, max_uses=5)
        real_check = promo_codes.check_promo_code

        def stale_check(session, code):
            promo = real_check(session, code)
            session.query(PromoCode).filter(PromoCode.id == promo.id).update(
                {PromoCode.used_count: PromoCode.used_count + 1}, synchronize_session=False
            )
            return promo

        monkeypatch.setattr(promo_codes, "check_promo_code", stale_check)
        with pytest.raises(PromoCodeRejected) as exc:
            redeem_promo_code(db, "LAUNCH", _input())
        assert exc.value.status_code == 500
        assert db.query(Run).count() == 0


class TestValidateEndpoint:
    """Tests for POST /codes/validate."""

    def test_valid_code(self, client, db):
        make_promo_code(db, credits=3)
        resp = client.post("/api/codes/validate", json={"code": "launch"})
        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "credits": 3}

    def test_credits_default_to_one(self, client, db):
        make_promo_code(db)
        assert client.post("/api/codes/validate", json={"code": "LAUNCH"}).json()["credits"] == 1

    def test_invalid_code_is_200(self, client):
        resp = client.post("/api/codes/validate", json={"code": "NOPE"})
        assert resp.status_code == 200
        assert resp.json() == {"valid": False, "error": INVALID_CODE}

    def test_missing_code_is_400(self, client):
        resp = client.post("/api/codes/validate", json={"code": "  "})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Code is required"}


class TestCreateRunWithCode:
    """Tests for POST /runs/with-code."""

    def test_anonymous_run(self, client, db, no_background_jobs):
        make_promo_code(db)
        resp = client.post("/api/runs/with-code", json={"code": "launch", "input": run_input_data()})
        assert resp.status_code == 201

        run = db.query(Run).filter(Run.id == uuid.UUID(resp.json()["run_id"])).one()
        assert run.source == RunSource.PROMO
        assert run.user_id is None
        assert no_background_jobs == [(STRATEGY_TASK, [str(run.id)])]

    def test_signed_in_user_owns_the_run(self, client, db):
        user = make_user(db)
        make_promo_code(db)
        login(client, user)
        resp = client.post("/api/runs/with-code", json={"code": "LAUNCH", "input": run_input_data()})
        run = db.query(Run).filter(Run.id == uuid.UUID(resp.json()["run_id"])).one()
        assert run.user_id == user.id

    def test_requires_code_and_input(self, client, db):
        make_promo_code(db)
        resp = client.post("/api/runs/with-code", json={"input": run_input_data()})
        assert resp.json() == {"error": "Code is required"}
        resp = client.post("/api/runs/with-code", json={"code": "LAUNCH"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Form input is required"}

    def test_expired_code_is_400(self, client, db, no_background_jobs):
        make_promo_code(db, expires_at=utcnow() - timedelta(hours=1))
        resp = client.post("/api/runs/with-code", json={"code": "LAUNCH", "input": run_input_data()})
        assert resp.status_code == 400
        assert resp.json() == {"error": EXPIRED_CODE}
        assert no_background_jobs == []
