import asyncio

import structlog

from examhub.core.config import get_settings
from examhub.db.session import build_engine, build_sessionmaker
from examhub.events.outbox import mark_dispatched, pending_events
from examhub.services.attempt_service import AttemptService
from examhub.tasks.celery_app import celery

logger = structlog.get_logger()


async def _with_session(work):
    # Each task run gets its own event loop, so pooled connections cannot be shared across runs.
    engine = build_engine(get_settings().async_database_url)
    try:
        async with build_sessionmaker(engine)() as db:
            return await work(db)
    finally:
        await engine.dispose()


async def _expire_overdue_attempts(db) -> int:
    return await AttemptService(db).expire_overdue_attempts()


async def _relay_outbox_events(db, limit: int = 100) -> int:
    rows = await pending_events(db, limit=limit)
    for row in rows:
        logger.info("outbox_event", event_id=row.id, event_type=row.event_type, payload=row.payload_json)
        mark_dispatched(row)
    await db.commit()
    return len(rows)


@celery.task(name="examhub.tasks.tasks.expire_overdue_attempts")
def expire_overdue_attempts() -> dict:
    expired = asyncio.run(_with_session(_expire_overdue_attempts))
    return {"ok": True, "expired": expired}


@celery.task(name="examhub.tasks.tasks.relay_outbox_events")
def relay_outbox_events(limit: int = 100) -> dict:
    relayed = asyncio.run(_with_session(lambda db: _relay_outbox_events(db, limit)))
    return {"ok": True, "relayed": relayed}
