from __future__ import annotations

import logging
from uuid import UUID

from ..core.celery_app import celery_app

logger = logging.getLogger(__name__)

STRATEGY_TASK = "boost.services.pipeline.run_strategy_pipeline"
REFINEMENT_TASK = "boost.services.pipeline.run_refinement_pipeline"
FREE_AUDIT_TASK = "boost.services.free_audit.run_free_audit"


def _enqueue(task_name: str, object_id: UUID, log_key: str) -> bool:
    """
    Queue a background task by name.

    A broker failure leaves the row pending; the request that created it
    still succeeds.
    """
    try:
        celery_app.send_task(task_name, args=[str(object_id)], queue="pipeline")
    except Exception:
        logger.exception("Failed to enqueue %s", task_name, extra={log_key: str(object_id), "step": "enqueue"})
        return False
    logger.info("Enqueued %s", task_name, extra={log_key: str(object_id), "step": "enqueue"})
    return True


def enqueue_strategy_run(run_id: UUID) -> bool:
    return _enqueue(STRATEGY_TASK, run_id, "run_id")


def enqueue_refinement_run(run_id: UUID) -> bool:
    return _enqueue(REFINEMENT_TASK, run_id, "run_id")


def enqueue_free_audit(audit_id: UUID) -> bool:
    return _enqueue(FREE_AUDIT_TASK, audit_id, "audit_id")
