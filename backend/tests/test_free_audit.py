"""
Tests for the free audit - one per email, processed in the background and
polled with a signed token.
"""
import uuid

import pytest

from boost.core.security import sign_audit_token, verify_audit_token
from boost.models.free_audit import FreeAudit
from boost.schemas.runs import RunInput
from boost.services.connectors import ConnectorRunner
from boost.services.connectors.base import BaseConnector, ConnectorResult
from boost.services.free_audit import (
    FreeAuditExists,
    build_audit_plan,
    create_free_audit,
    execute_free_audit,
)
from boost.services.jobs import FREE_AUDIT_TASK

from tests.fixtures.boost_fixtures import STRATEGY_MARKDOWN, run_input_data


class FakeTavily(BaseConnector):
    name = "fake"

    async def fetch(self, **params):
        if params.get("mode") == "extract":
            return ConnectorResult({"content": "Invoicely: get paid faster."})
        return ConnectorResult({"results": [{"title": "Bonsai", "url": "https://bonsai.com", "content": "Suite"}]})


class FakeWriter:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def positioning_brief(self, run_input, page_content, research):
        self.calls.append((page_content, research))
        if self.error:
            raise self.error
        return STRATEGY_MARKDOWN


def _input(**overrides) -> RunInput:
    return RunInput.model_validate(run_input_data(**overrides))


class TestCreateFreeAudit:
    """Tests for create_free_audit."""

    def test_creates_pending_audit_and_enqueues(self, db, no_background_jobs):
        audit, token = create_free_audit(db, "Jane@Example.com", _input())

        assert audit.status == "pending"
        assert audit.email == "jane@example.com"
        assert verify_audit_token(audit.id, token)
        assert no_background_jobs == [(FREE_AUDIT_TASK, [str(audit.id)])]

    def test_one_audit_per_email(self, db):
        create_free_audit(db, "jane.doe@gmail.com", _input())
        with pytest.raises(FreeAuditExists):
            create_free_audit(db, "janedoe+x@gmail.com", _input())


class TestBuildAuditPlan:
    def test_homepage_extract_only_with_a_website(self):
        assert [s["name"] for s in build_audit_plan(_input())] == ["competitors", "page"]
        assert [s["name"] for s in build_audit_plan(_input(website_url=""))] == ["competitors"]


class TestExecuteFreeAudit:
    """Tests for execute_free_audit."""

    def test_completes(self, db):
        audit, _ = create_free_audit(db, "jane@example.com", _input())
        writer = FakeWriter()

        execute_free_audit(db, audit, writer=writer, runner=ConnectorRunner({"tavily": FakeTavily()}))
        db.refresh(audit)

        page_content, research = writer.calls[0]
        assert page_content == "Invoicely: get paid faster."
        assert research["competitor_insights"][0]["title"] == "Bonsai"
        assert audit.status == "complete"
        assert audit.output == STRATEGY_MARKDOWN
        assert audit.structured_output is not None
        assert audit.completed_at is not None

    def test_writer_failure_marks_failed(self, db):
        audit, _ = create_free_audit(db, "jane@example.com", _input())

        with pytest.raises(RuntimeError):
            execute_free_audit(
                db,
                audit,
                writer=FakeWriter(error=RuntimeError("model down")),
                runner=ConnectorRunner({"tavily": FakeTavily()}),
            )
        db.refresh(audit)
        assert audit.status == "failed"


class TestFreeAuditRoutes:
    """Tests for the free audit endpoints."""

    def test_create_then_poll(self, client):
        resp = client.post(
            "/api/free-audit",
            json={"email": "jane@example.com", "input": run_input_data()},
        )
        assert resp.status_code == 201
        created = resp.json()

        resp = client.get(f"/api/free-audit/{created['id']}", params={"token": created["token"]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "ja***@example.com"
        assert body["status"] == "pending"

    def test_duplicate_is_409(self, client):
        payload = {"email": "jane@example.com", "input": run_input_data()}
        client.post("/api/free-audit", json=payload)
        resp = client.post("/api/free-audit", json=payload)
        assert resp.status_code == 409
        assert "already received a free audit" in resp.json()["error"]

    def test_token_is_required(self, client, db):
        audit = FreeAudit(email="jane@example.com", input=run_input_data())
        db.add(audit)
        db.commit()

        assert client.get(f"/api/free-audit/{audit.id}").status_code == 403
        resp = client.get(f"/api/free-audit/{audit.id}", params={"token": sign_audit_token(uuid.uuid4())})
        assert resp.status_code == 403
        assert resp.json() == {"error": "Invalid or missing access token"}

    def test_unknown_audit(self, client):
        missing = uuid.uuid4()
        resp = client.get(f"/api/free-audit/{missing}", params={"token": sign_audit_token(missing)})
        assert resp.status_code == 404

    def test_malformed_id(self, client):
        assert client.get("/api/free-audit/not-a-uuid", params={"token": "x"}).status_code == 400

    def test_disposable_email(self, client):
        resp = client.post(
            "/api/free-audit",
            json={"email": "x@mailinator.com", "input": run_input_data()},
        )
        assert resp.status_code == 400
