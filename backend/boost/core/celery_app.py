from celery import Celery
from celery.schedules import crontab

from .config import get_settings
from .logging import configure_logging

settings = get_settings()
configure_logging()

celery_app = Celery(
    "boost",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_routes={
        "boost.services.pipeline.run_strategy_pipeline": {"queue": "pipeline"},
        "boost.services.pipeline.run_refinement_pipeline": {"queue": "pipeline"},
        "boost.services.free_audit.run_free_audit": {"queue": "pipeline"},
    },
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    imports=(
        "boost.services.pipeline",
        "boost.services.free_audit",
        "boost.services.feedback",
    ),
    beat_schedule={
        # Feedback request for runs completed 48h ago; the window is one hour wide
        "send-feedback-emails": {
            "task": "boost.services.feedback.send_feedback_emails",
            "schedule": crontab(minute=0),
        },
    },
)
