from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.models.domain import OutboxEvent
from examhub.utils.clock import utcnow

ATTEMPT_SUBMITTED = "attempt.submitted"
EXAM_STATUS_CHANGED = "exam.status_changed"


async def push_event(db: AsyncSession, event_type: str, payload: dict) -> OutboxEvent:
    row = OutboxEvent(event_type=event_type, payload_json=payload, status="pending")
    db.add(row)
    await db.flush()
    return row


async def pending_events(db: AsyncSession, limit: int = 100) -> list[OutboxEvent]:
    res = await db.execute(
        select(OutboxEvent)
        .where(OutboxEvent.status == "pending")
        .order_by(OutboxEvent.id)
        .limit(limit)
    )
    return list(res.scalars().all())


def mark_dispatched(row: OutboxEvent) -> None:
    row.status = "dispatched"
    row.dispatched_at = utcnow()
