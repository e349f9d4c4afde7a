from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from examhub.core.constants import ExamStatus
from examhub.models.domain import Attempt, Exam, Question

QUESTION_FIELDS = ("question_text", "question_type", "points", "options", "correct_answer", "image_url")


def build_question(item: dict[str, Any], order_index: int) -> Question:
    return Question(order_index=order_index, **{field: item.get(field) for field in QUESTION_FIELDS})


class ExamRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, exam_id: UUID) -> Exam | None:
        res = await self.db.execute(
            select(Exam)
            .where(Exam.id == exam_id)
            .options(selectinload(Exam.questions))
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def get_active_by_code(self, access_code: str) -> Exam | None:
        res = await self.db.execute(
            select(Exam)
            .where(Exam.access_code == access_code, Exam.status == ExamStatus.ACTIVE)
            .options(selectinload(Exam.questions))
        )
        return res.scalar_one_or_none()

    async def code_exists(self, access_code: str) -> bool:
        res = await self.db.execute(select(func.count(Exam.id)).where(Exam.access_code == access_code))
        return int(res.scalar() or 0) > 0

    async def list_creator_exams(self, creator_id: UUID) -> list[Exam]:
        res = await self.db.execute(
            select(Exam).where(Exam.creator_id == creator_id).order_by(Exam.updated_at.desc())
        )
        return list(res.scalars().all())

    async def add(self, row: Exam) -> Exam:
        self.db.add(row)
        await self.db.flush()
        return row

    async def delete(self, row: Exam) -> None:
        await self.db.delete(row)
        await self.db.flush()

    async def sync_questions(self, exam: Exam, items: list[dict[str, Any]]) -> None:
        """Make the exam's questions match ``items`` in order.

        Items carrying the id of an existing question update it in place so its
        identity survives. Other items are inserted and leftover questions deleted.
        """
        current = {q.id: q for q in exam.questions}
        kept = list(dict.fromkeys(item["id"] for item in items if item.get("id") in current))
        for q in current.values():
            if q.id not in kept:
                await self.db.delete(q)
        # Park survivors on negative indexes so the (exam_id, order_index) constraint holds mid-way.
        for offset, question_id in enumerate(kept):
            current[question_id].order_index = -(offset + 1)
        await self.db.flush()

        claimed: set = set()
        for position, item in enumerate(items):
            question_id = item.get("id")
            if question_id in current and question_id not in claimed:
                claimed.add(question_id)
                row = current[question_id]
                for field in QUESTION_FIELDS:
                    setattr(row, field, item.get(field))
                row.order_index = position
            else:
                row = build_question(item, position)
                row.exam_id = exam.id
                self.db.add(row)
        await self.db.flush()

    async def question_counts_bulk(self, exam_ids: list[UUID]) -> dict[UUID, int]:
        if not exam_ids:
            return {}
        res = await self.db.execute(
            select(Question.exam_id, func.count(Question.id))
            .where(Question.exam_id.in_(exam_ids))
            .group_by(Question.exam_id)
        )
        return {exam_id: int(count) for exam_id, count in res.all()}

    async def attempt_counts_bulk(self, exam_ids: list[UUID]) -> dict[UUID, int]:
        if not exam_ids:
            return {}
        res = await self.db.execute(
            select(Attempt.exam_id, func.count(Attempt.id))
            .where(Attempt.exam_id.in_(exam_ids))
            .group_by(Attempt.exam_id)
        )
        return {exam_id: int(count) for exam_id, count in res.all()}

    async def has_attempts(self, exam_id: UUID) -> bool:
        counts = await self.attempt_counts_bulk([exam_id])
        return counts.get(exam_id, 0) > 0
