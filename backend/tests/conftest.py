"""
Test environment.

Settings are read once at import time, so the environment is fixed here
before any `boost` module loads. External API keys are cleared so nothing
reaches a real provider; LLM and search calls are stubbed per test.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["SESSION_SECRET"] = "test-session-secret-with-enough-entropy-0123"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["ENV"] = "test"
for key in (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "TAVILY_API_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "TURNSTILE_SECRET",
    "FRONTEND_ORIGIN",
):
    os.environ.pop(key, None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from boost.core.db import Base
import boost.models  # noqa: F401  (registers every table)


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def no_background_jobs(monkeypatch):
    """Record enqueued jobs instead of talking to a broker."""
    sent = []

    def fake_send_task(name, args=None, **kwargs):
        sent.append((name, args))

    from boost.core.celery_app import celery_app

    monkeypatch.setattr(celery_app, "send_task", fake_send_task)
    return sent


@pytest.fixture(autouse=True)
def no_stage_writes(monkeypatch):
    """Stage updates open their own session on the app engine; skip them."""
    monkeypatch.setattr("boost.services.pipeline.set_run_stage", lambda run_id, stage: None)


@pytest.fixture
def client(db):
    """TestClient bound to the per-test database."""
    from fastapi.testclient import TestClient

    from boost.core.db import get_db
    from boost.main import app
    from boost.services.guards import free_tool_limiter

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    free_tool_limiter.reset()
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        free_tool_limiter.reset()
