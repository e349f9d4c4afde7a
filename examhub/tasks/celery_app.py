from celery import Celery

from examhub.core.config import get_settings

settings = get_settings()

celery = Celery(
    "examhub",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["examhub.tasks.tasks"],
)
celery.conf.update(
    timezone="UTC",
    task_track_started=True,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    beat_schedule={
        "attempts-expire-overdue": {
            "task": "examhub.tasks.tasks.expire_overdue_attempts",
            "schedule": settings.attempt_expiry_interval_seconds,
        },
        "outbox-relay": {
            "task": "examhub.tasks.tasks.relay_outbox_events",
            "schedule": 30,
        },
    },
)
