"""
Tests for tasks.py - dashboard tasks derived from structured output.
"""
import pytest

from boost.models import RunStatus, TaskCompletion
from boost.services.formatter import extract_structured_output_fallback
from boost.services.tasks import extract_tasks, list_tasks_with_completions, set_task_completion

from tests.fixtures.boost_fixtures import STRATEGY_MARKDOWN, make_run, make_user


class TestExtractTasks:
    """Tests for the task source order."""

    def test_weeks_preferred(self):
        tasks = extract_tasks(extract_structured_output_fallback(STRATEGY_MARKDOWN))
        assert [t["title"] for t in tasks] == [
            "Draft referral offer",
            "Build referral landing page",
            "Email existing users",
            "Publish three invoice templates",
        ]
        assert tasks[3]["week"] == 2
        assert tasks[3]["day"] == 8
        assert all(t["track"] == "sprint" for t in tasks)

    def test_this_week_when_no_weeks(self):
        data = {"thisWeek": {"days": [{"day": 1, "action": "Post", "successMetric": "5 likes"}]}}
        assert extract_tasks(data) == [
            {
                "title": "Post",
                "description": "5 likes",
                "why": None,
                "how": None,
                "track": "sprint",
                "day": 1,
                "week": 1,
            }
        ]

    def test_flat_task_list(self):
        data = {"tasks": [{"title": "Build widget", "track": "build"}, {"title": "Tweet"}, "junk"]}
        tasks = extract_tasks(data)
        assert [t["track"] for t in tasks] == ["build", "sprint"]

    @pytest.mark.parametrize("data", [None, {}, {"weeks": []}, {"thisWeek": {"days": []}}])
    def test_nothing_to_extract(self, data):
        assert extract_tasks(data) == []


class TestTaskCompletion:
    """Tests for completion upserts."""

    def _run(self, db):
        return make_run(
            db,
            make_user(db),
            status=RunStatus.COMPLETE,
            structured_output=extract_structured_output_fallback(STRATEGY_MARKDOWN),
        )

    def test_complete_and_list(self, db):
        run = self._run(db)
        set_task_completion(db, run, 1, note="Went live on Tuesday", outcome="12 signups")

        tasks = list_tasks_with_completions(db, run)
        assert len(tasks) == 4
        assert tasks[1].completed is True
        assert tasks[1].completed_at is not None
        assert tasks[1].note == "Went live on Tuesday"
        assert tasks[0].completed is False

    def test_upsert_single_row(self, db):
        run = self._run(db)
        set_task_completion(db, run, 0)
        row = set_task_completion(db, run, 0, completed=False)

        assert row.completed is False
        assert row.completed_at is None
        assert db.query(TaskCompletion).filter(TaskCompletion.run_id == run.id).count() == 1

    @pytest.mark.parametrize("index", [-1, 4, 99])
    def test_index_out_of_range(self, db, index):
        with pytest.raises(ValueError):
            set_task_completion(db, self._run(db), index)
