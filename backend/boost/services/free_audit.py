from __future__ import annotations

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.db import SessionLocal, utcnow
from ..core.security import sign_audit_token
from ..models.free_audit import FreeAudit
from ..schemas.runs import RunInput
from .connectors import ConnectorRunner, get_connectors
from .formatter import extract_structured_output
from .jobs import enqueue_free_audit
from .notifications import FREE_AUDIT_READY, send_email
from .research import build_competitor_query, empty_research
from .slugs import is_unique_violation
from .strategy import StrategyWriter
from .validation import normalize_email, normalize_url

logger = logging.getLogger(__name__)

ABANDONED_CHECKOUT_EMAIL = "abandoned_checkout"
DUPLICATE_MESSAGE = "You've already received a free audit. Get the full version for deeper insights!"


class FreeAuditExists(Exception):
    """One free audit per normalized email."""


def create_free_audit(
    db: Session,
    email: str,
    run_input: RunInput,
    source: str = "organic",
) -> tuple[FreeAudit, str]:
    """Insert a pending audit, queue it, and return it with its access token."""
    normalized = normalize_email(email)
    if db.query(FreeAudit.id).filter(FreeAudit.email == normalized).first():
        raise FreeAuditExists(DUPLICATE_MESSAGE)

    audit = FreeAudit(
        email=normalized,
        input=run_input.model_dump(),
        status="pending",
        source=source,
    )
    db.add(audit)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_unique_violation(exc):
            raise FreeAuditExists(DUPLICATE_MESSAGE) from exc
        raise
    db.refresh(audit)

    logger.info("Free audit created", extra={"audit_id": str(audit.id), "step": "create"})
    enqueue_free_audit(audit.id)
    return audit, sign_audit_token(str(audit.id))


def build_audit_plan(run_input: RunInput) -> List[Dict[str, Any]]:
    plan: List[Dict[str, Any]] = [
        {
            "name": "competitors",
            "connector": "tavily",
            "params": {"query": build_competitor_query(run_input)},
        }
    ]
    if run_input.website_url:
        plan.append(
            {
                "name": "page",
                "connector": "tavily",
                "params": {"mode": "extract", "url": normalize_url(run_input.website_url)},
            }
        )
    return plan


def gather_audit_research(
    run_input: RunInput,
    runner: ConnectorRunner | None = None,
) -> tuple[str | None, Dict[str, Any]]:
    """Homepage text and competitor search; either may come back empty."""
    runner = runner or get_connectors()
    try:
        results, errors = runner.execute_plan(build_audit_plan(run_input))
    except (ValueError, RuntimeError) as exc:
        logger.warning("Free audit research unavailable: %s", exc, extra={"step": "research"})
        return None, empty_research([str(exc)])

    research = empty_research(errors)
    research["competitor_insights"] = results.get("competitors", {}).get("results") or []
    page_content = results.get("page", {}).get("content")
    return page_content, research


def execute_free_audit(
    db: Session,
    audit: FreeAudit,
    writer: StrategyWriter | None = None,
    runner: ConnectorRunner | None = None,
) -> None:
    audit_id = str(audit.id)
    writer = writer or StrategyWriter()

    audit.status = "processing"
    db.commit()

    try:
        run_input = RunInput.model_validate(audit.input)
        page_content, research = gather_audit_research(run_input, runner)
        output = writer.positioning_brief(run_input, page_content, research)

        try:
            structured = extract_structured_output(output, research)
        except Exception:
            logger.exception("Free audit extraction failed", extra={"audit_id": audit_id, "step": "formatter"})
            structured = None

        audit.output = output
        audit.structured_output = structured
        audit.status = "complete"
        audit.completed_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        audit.status = "failed"
        db.commit()
        logger.exception("Free audit failed", extra={"audit_id": audit_id, "step": "failed"})
        raise

    kind = ABANDONED_CHECKOUT_EMAIL if audit.source == "abandoned_checkout" else FREE_AUDIT_READY
    try:
        send_email(kind, audit.email, audit_id=audit_id)
    except Exception:
        logger.exception("Free audit email failed", extra={"audit_id": audit_id, "step": "email"})
    logger.info("Free audit complete", extra={"audit_id": audit_id, "step": "complete"})


@celery_app.task(name="boost.services.free_audit.run_free_audit", bind=True, queue="pipeline")
def run_free_audit(self, audit_id: str):
    db: Session = SessionLocal()
    try:
        audit = db.query(FreeAudit).filter(FreeAudit.id == UUID(audit_id)).first()
        if not audit:
            logger.warning("Free audit not found", extra={"audit_id": audit_id})
            return
        if audit.status in ("complete", "failed"):
            return
        execute_free_audit(db, audit)
    finally:
        db.close()
