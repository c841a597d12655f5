"""
Tests for credits.py - balances derived from grants and consuming runs.
"""
import pytest

from boost.models import RunSource, RunStatus
from boost.services.credits import get_remaining_credits, has_credits, remaining_credits

from tests.fixtures.boost_fixtures import grant_credits, make_run, make_user


class TestRemainingCredits:
    """Tests for the pure balance calculation."""

    @pytest.mark.parametrize("grants,used,expected", [
        ([3, 2], 1, 4),
        ([1], 5, 0),
        ([], 0, 0),
        (None, None, 0),
        ([None, 2], None, 2),
    ])
    def test_balance(self, grants, used, expected):
        assert remaining_credits(grants, used) == expected


class TestGetRemainingCredits:
    """Tests for the database-backed balance."""

    def test_only_paid_sources_consume(self, db):
        """Refinement and promo runs are free."""
        user = make_user(db)
        grant_credits(db, user, credits=2)
        make_run(db, user, status=RunStatus.COMPLETE, source=RunSource.CREDITS)
        make_run(db, user, status=RunStatus.COMPLETE, source=RunSource.REFINEMENT)
        make_run(db, user, status=RunStatus.COMPLETE, source=RunSource.PROMO)

        assert get_remaining_credits(db, user.id) == 1
        assert has_credits(db, user.id) is True

    def test_stripe_runs_consume_their_grant(self, db):
        user = make_user(db)
        grant_credits(db, user, credits=1, session_id="cs_test_1")
        make_run(db, user, source=RunSource.STRIPE)

        assert get_remaining_credits(db, user.id) == 0
        assert has_credits(db, user.id) is False

    def test_other_users_do_not_count(self, db):
        user = make_user(db)
        other = make_user(db, "other@example.com")
        grant_credits(db, user, credits=1)
        make_run(db, other, source=RunSource.CREDITS)

        assert get_remaining_credits(db, user.id) == 1

    def test_no_grants(self, db):
        user = make_user(db)
        assert get_remaining_credits(db, user.id) == 0
