"""
Tests for refinement.py - chain walking and refinement limits.
"""
from uuid import uuid4

import pytest

from boost.models import Run, RunSource, RunStatus
from boost.services.refinement import (
    RefinementRejected,
    create_refinement,
    find_root_run_id,
)

from tests.fixtures.boost_fixtures import make_run, make_user

CONTEXT = "We tried the referral idea; designers want a Figma plugin instead."


class TestFindRootRunId:
    """Tests for find_root_run_id."""

    def test_run_without_parent_is_root(self, db):
        run = make_run(db, make_user(db))
        assert find_root_run_id(db, run) == run.id

    def test_walks_to_root(self, db):
        user = make_user(db)
        root = make_run(db, user)
        child = make_run(db, user, parent_run_id=root.id)
        grandchild = make_run(db, user, parent_run_id=child.id)
        assert find_root_run_id(db, grandchild) == root.id

    def test_cycle_stops(self, db):
        user = make_user(db)
        a = make_run(db, user)
        b = make_run(db, user, parent_run_id=a.id)
        a.parent_run_id = b.id
        db.commit()
        assert find_root_run_id(db, a) == b.id

    def test_missing_parent_stops(self, db):
        run = make_run(db, make_user(db), parent_run_id=uuid4())
        assert find_root_run_id(db, run) == run.id

    def test_depth_capped_at_ten(self, db):
        user = make_user(db)
        chain = [make_run(db, user)]
        for _ in range(11):
            chain.append(make_run(db, user, parent_run_id=chain[-1].id))
        # 10 hops up from the last of 12 runs
        assert find_root_run_id(db, chain[-1]) == chain[1].id


class TestCreateRefinement:
    """Tests for create_refinement."""

    def _complete_run(self, db, user):
        return make_run(db, user, status=RunStatus.COMPLETE, output="# Strategy")

    def test_creates_refinement_under_root(self, db):
        user = make_user(db)
        root = self._complete_run(db, user)

        created = create_refinement(db, root, user.id, CONTEXT)

        assert created.run.parent_run_id == root.id
        assert created.run.source == RunSource.REFINEMENT
        assert created.run.status == RunStatus.PENDING
        assert created.run.additional_context == CONTEXT
        assert created.refinements_remaining == 1
        assert db.query(Run.refinements_used).filter(Run.id == root.id).scalar() == 1

    def test_refining_a_refinement_points_at_root(self, db):
        user = make_user(db)
        root = self._complete_run(db, user)
        child = make_run(
            db, user, status=RunStatus.COMPLETE, source=RunSource.REFINEMENT,
            parent_run_id=root.id, output="# Refined",
        )
        created = create_refinement(db, child, user.id, CONTEXT)
        assert created.root_run_id == root.id
        assert created.run.parent_run_id == root.id
        assert created.refinements_remaining == 0

    @pytest.mark.parametrize("text", [None, "", "too short", "x" * 10001])
    def test_context_length_bounds(self, db, text):
        user = make_user(db)
        with pytest.raises(RefinementRejected) as exc:
            create_refinement(db, self._complete_run(db, user), user.id, text)
        assert exc.value.status_code == 400

    def test_other_users_run_forbidden(self, db):
        owner = make_user(db)
        other = make_user(db, "other@example.com")
        with pytest.raises(RefinementRejected) as exc:
            create_refinement(db, self._complete_run(db, owner), other.id, CONTEXT)
        assert exc.value.status_code == 403

    def test_incomplete_run_rejected(self, db):
        user = make_user(db)
        run = make_run(db, user, status=RunStatus.PROCESSING)
        with pytest.raises(RefinementRejected) as exc:
            create_refinement(db, run, user.id, CONTEXT)
        assert exc.value.status_code == 400

    def test_in_flight_refinement_blocks(self, db):
        user = make_user(db)
        root = self._complete_run(db, user)
        create_refinement(db, root, user.id, CONTEXT)

        with pytest.raises(RefinementRejected) as exc:
            create_refinement(db, root, user.id, CONTEXT)
        assert exc.value.status_code == 429
        assert "in progress" in exc.value.message

    def test_limit_counts_completed_refinements(self, db):
        user = make_user(db)
        root = self._complete_run(db, user)
        for _ in range(2):
            make_run(
                db, user, status=RunStatus.COMPLETE, source=RunSource.REFINEMENT,
                parent_run_id=root.id,
            )

        with pytest.raises(RefinementRejected) as exc:
            create_refinement(db, root, user.id, CONTEXT)
        assert exc.value.status_code == 429
        assert exc.value.refinements_remaining == 0

    def test_failed_refinements_do_not_count(self, db):
        user = make_user(db)
        root = self._complete_run(db, user)
        make_run(
            db, user, status=RunStatus.FAILED, source=RunSource.REFINEMENT,
            parent_run_id=root.id,
        )
        created = create_refinement(db, root, user.id, CONTEXT)
        assert created.refinements_remaining == 1
