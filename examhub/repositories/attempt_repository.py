from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.models.domain import Answer, Attempt, Exam


class AttemptRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, attempt_id: UUID) -> Attempt | None:
        res = await self.db.execute(
            select(Attempt).where(Attempt.id == attempt_id).execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def lock(self, attempt_id: UUID) -> Attempt | None:
        """Re-read the attempt holding its row lock until the transaction ends."""
        res = await self.db.execute(
            select(Attempt)
            .where(Attempt.id == attempt_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def list_for_student(self, exam_id: UUID, student_id: UUID) -> list[Attempt]:
        res = await self.db.execute(
            select(Attempt)
            .where(Attempt.exam_id == exam_id, Attempt.student_id == student_id)
            .order_by(Attempt.attempt_number.desc())
            .execution_options(populate_existing=True)
        )
        return list(res.scalars().all())

    async def list_for_exam(self, exam_id: UUID) -> list[Attempt]:
        res = await self.db.execute(
            select(Attempt)
            .where(Attempt.exam_id == exam_id)
            .order_by(Attempt.started_at.desc(), Attempt.attempt_number.desc())
        )
        return list(res.scalars().all())

    async def list_in_progress_timed(self) -> list[tuple[Attempt, Exam]]:
        res = await self.db.execute(
            select(Attempt, Exam)
            .join(Exam, Exam.id == Attempt.exam_id)
            .where(Attempt.completed_at.is_(None), Exam.time_limit.is_not(None))
        )
        return [(attempt, exam) for attempt, exam in res.all()]

    async def add(self, row: Attempt) -> Attempt:
        self.db.add(row)
        await self.db.flush()
        return row

    async def complete_if_open(
        self, attempt_id: UUID, completed_at: datetime, score: float, total_points: float
    ) -> bool:
        """Finalize the attempt unless someone else already did. Returns True if this call won."""
        res = await self.db.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.completed_at.is_(None))
            .values(completed_at=completed_at, score=score, total_points=total_points)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def list_answers(self, attempt_id: UUID) -> list[Answer]:
        res = await self.db.execute(
            select(Answer)
            .where(Answer.attempt_id == attempt_id)
            .execution_options(populate_existing=True)
        )
        return list(res.scalars().all())

    async def get_answer(self, attempt_id: UUID, question_id: UUID) -> Answer | None:
        res = await self.db.execute(
            select(Answer)
            .where(Answer.attempt_id == attempt_id, Answer.question_id == question_id)
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def insert_answer(self, attempt_id: UUID, question_id: UUID, value: Any) -> Answer:
        row = Answer(attempt_id=attempt_id, question_id=question_id, answer_value=value)
        self.db.add(row)
        await self.db.flush()
        return row
