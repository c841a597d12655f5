"""
Business context accumulation.

Each completed run folds its form input into the business's `context` JSON
so later runs can be personalised:

- product description: replaced with the latest
- website: replaced when provided
- competitors: merged and de-duplicated by domain (latest URL wins, max 10)
- traction: appended to a dated history (one snapshot per day, last 10)
- tactics: appended to a history list (exact-match dedupe, last 50)
- constraints: replaced when provided

Context shape:

    {
      "product": {"description": str, "website_url": str, "competitors": [url]},
      "traction": {"latest": str, "history": [{"date": "YYYY-MM-DD", "summary": str}]},
      "tactics": {"history": [str], "tried": [...], "working": [...], "not_working": [...]},
      "constraints": str,
      "last_run_id": str,
      "total_runs": int,
    }

`tried`, `working` and `not_working` only survive from older contexts.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..models.business import Business
from ..schemas.context import ContextDelta
from ..schemas.runs import RunInput
from .business import update_business_name
from .validation import extract_domain

logger = logging.getLogger(__name__)

MAX_TRACTION_HISTORY = 10
MAX_TACTICS = 50
MAX_COMPETITORS = 10

DEFAULT_QUESTIONS = [
    "What's changed since your last strategy?",
    "Any new wins or learnings to share?",
]


def _compact(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def _today(today: date | None) -> str:
    return (today or utcnow().date()).isoformat()


def merge_competitors(existing: list[str] | None, new: list[str] | None) -> list[str]:
    """De-duplicate by domain; a later URL for a known domain replaces the earlier one."""
    seen: dict[str, str] = {}
    for url in [*(existing or []), *[u for u in (new or []) if u]]:
        if "://" not in url:
            # Only absolute URLs are kept
            continue
        domain = extract_domain(url)
        if not domain:
            continue
        seen[domain] = url
    return list(seen.values())[:MAX_COMPETITORS]


def append_traction_snapshot(
    history: list[dict[str, str]] | None,
    snapshot: dict[str, str],
) -> list[dict[str, str]]:
    """Append, replacing any snapshot from the same day."""
    kept = [s for s in (history or []) if s.get("date") != snapshot["date"]]
    return [*kept, snapshot][-MAX_TRACTION_HISTORY:]


def merge_string_list(existing: list[str] | None, new_items: list[str] | None) -> list[str]:
    if not new_items:
        return list(existing or [])
    merged = list(dict.fromkeys([*(existing or []), *new_items]))
    return merged[-MAX_TACTICS:]


def tactics_from_input(run_input: RunInput) -> list[str]:
    if run_input.tactics_and_results:
        return [run_input.tactics_and_results]
    parts = [p for p in (run_input.what_you_tried, run_input.whats_working) if p]
    return [" | ".join(parts)] if parts else []


def merge_run_into_context(
    existing: dict[str, Any] | None,
    run_input: RunInput,
    run_id: UUID | str,
    today: date | None = None,
) -> dict[str, Any]:
    existing = existing or {}
    product = existing.get("product") or {}
    traction = existing.get("traction") or {}
    tactics = existing.get("tactics") or {}

    return _compact(
        {
            "product": _compact(
                {
                    "description": run_input.product_description,
                    "website_url": run_input.website_url or product.get("website_url"),
                    "competitors": merge_competitors(
                        product.get("competitors"), run_input.competitor_urls
                    ),
                }
            ),
            "traction": {
                "latest": run_input.current_traction,
                "history": append_traction_snapshot(
                    traction.get("history"),
                    {"date": _today(today), "summary": run_input.current_traction},
                ),
            },
            "tactics": _compact(
                {
                    # Older contexts kept tactics under `tried`
                    "history": merge_string_list(
                        tactics.get("history") or tactics.get("tried"),
                        tactics_from_input(run_input),
                    ),
                    "tried": tactics.get("tried"),
                    "working": tactics.get("working"),
                    "not_working": tactics.get("not_working"),
                }
            ),
            "constraints": run_input.constraints or existing.get("constraints"),
            "last_run_id": str(run_id),
            "total_runs": (existing.get("total_runs") or 0) + 1,
        }
    )


def merge_context_delta(
    existing: dict[str, Any] | None,
    delta: ContextDelta,
    today: date | None = None,
) -> dict[str, Any]:
    existing = existing or {}
    product = existing.get("product")
    traction = existing.get("traction")
    tactics = existing.get("tactics") or {}

    if delta.product is not None:
        current = product or {}
        product = _compact(
            {
                "description": delta.product.description or current.get("description") or "",
                "website_url": delta.product.website_url or current.get("website_url"),
                "competitors": merge_competitors(
                    current.get("competitors"), delta.product.competitors
                ),
            }
        )

    if delta.traction_delta:
        traction = {
            "latest": delta.traction_delta,
            "history": append_traction_snapshot(
                (traction or {}).get("history"),
                {"date": _today(today), "summary": delta.traction_delta},
            ),
        }

    if delta.tactics_update:
        history = merge_string_list(tactics.get("history"), [delta.tactics_update])
    elif delta.new_tactics:
        history = merge_string_list(
            tactics.get("history") or tactics.get("tried"), delta.new_tactics
        )
    else:
        history = list(tactics.get("history") or [])

    working = tactics.get("working")
    if delta.working_update:
        working = [*(working or []), delta.working_update][-MAX_TACTICS:]
    not_working = tactics.get("not_working")
    if delta.not_working_update:
        not_working = [*(not_working or []), delta.not_working_update][-MAX_TACTICS:]

    total_runs = existing.get("total_runs")
    if delta.increment_runs:
        total_runs = (total_runs or 0) + 1

    return _compact(
        {
            "product": product,
            "traction": traction,
            "tactics": _compact(
                {
                    "history": history,
                    "tried": tactics.get("tried"),
                    "working": working,
                    "not_working": not_working,
                }
            ),
            "constraints": delta.constraints or existing.get("constraints"),
            "last_run_id": existing.get("last_run_id"),
            "total_runs": total_runs,
        }
    )


def has_user_context(context: dict[str, Any] | None) -> bool:
    if not context:
        return False
    return bool(
        (context.get("product") or {}).get("description")
        or (context.get("traction") or {}).get("latest")
        or (context.get("total_runs") or 0) > 0
    )


def get_context_summary(context: dict[str, Any] | None) -> dict[str, Any]:
    context = context or {}
    traction = context.get("traction") or {}
    history = traction.get("history") or []
    description = (context.get("product") or {}).get("description")
    return {
        "product_name": description[:100] if description else "Your product",
        "last_traction": traction.get("latest") or None,
        "total_runs": context.get("total_runs") or 0,
        "last_run_date": history[-1].get("date") if history else None,
    }


def get_suggested_questions(context: dict[str, Any] | None) -> list[str]:
    context = context or {}
    tactics = context.get("tactics") or {}
    questions: list[str] = []

    if (context.get("traction") or {}).get("latest"):
        questions.append("Has your traction changed since last time?")
    if tactics.get("history") or tactics.get("tried"):
        questions.append("Any updates on what's working or not?")
    if context.get("constraints"):
        questions.append("Have your constraints changed?")

    if not questions:
        questions.extend(DEFAULT_QUESTIONS)
    return questions[:3]


def build_history_context(context: dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Slice of a business context passed to the strategy prompt for returning
    users: last 5 traction snapshots and last 15 tactics.
    """
    if not context or not (context.get("total_runs") or 0):
        return None
    tactics = context.get("tactics") or {}
    return {
        "total_runs": context.get("total_runs") or 0,
        "traction_history": ((context.get("traction") or {}).get("history") or [])[-5:],
        "tactics_tried": (tactics.get("history") or tactics.get("tried") or [])[-15:],
        "constraints": context.get("constraints"),
    }


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def accumulate_business_context(
    db: Session,
    business_id: UUID,
    run_id: UUID,
    run_input: RunInput,
) -> dict[str, Any]:
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise ValueError(f"Business {business_id} not found")

    updated = merge_run_into_context(business.context, run_input, run_id)
    business.context = updated
    business.context_updated_at = utcnow()
    update_business_name(business, run_input.product_description)
    db.commit()

    logger.info(
        "Business context updated",
        extra={"run_id": str(run_id), "step": "accumulate_context"},
    )
    return updated


def apply_context_delta(
    db: Session,
    business: Business,
    delta: ContextDelta,
) -> dict[str, Any]:
    updated = merge_context_delta(business.context, delta)
    business.context = updated
    business.context_updated_at = utcnow()
    db.commit()
    return updated


def apply_context_delta_to_business(
    db: Session,
    business_id: UUID,
    delta_text: str,
) -> tuple[bool, str | None]:
    """Record free-text "what's new" as a traction update."""
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        return False, f"Business {business_id} not found"
    apply_context_delta(db, business, ContextDelta(traction_delta=delta_text))
    return True, None
