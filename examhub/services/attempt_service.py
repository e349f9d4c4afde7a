import math
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.config import get_settings
from examhub.core.constants import (
    DEFAULT_FULL_NAME,
    MANUAL_GRADED_TYPES,
    UNLIMITED_ATTEMPTS,
    AttemptState,
    ExamStatus,
    QuestionType,
)
from examhub.core.errors import (
    AlreadyCompleted,
    LimitReached,
    NotAvailable,
    NotFound,
    PersistenceConflict,
    Unauthorized,
    ValidationFailed,
)
from examhub.core.metrics import ATTEMPTS_STARTED, ATTEMPTS_SUBMITTED
from examhub.core.policies import (
    Caller,
    can_manage_attempt,
    can_manage_exam,
    can_read_attempt,
    can_read_exam,
)
from examhub.events.hooks import touch
from examhub.events.outbox import ATTEMPT_SUBMITTED, push_event
from examhub.models.domain import Answer, Attempt, Exam, Question
from examhub.repositories.attempt_repository import AttemptRepository
from examhub.repositories.exam_repository import ExamRepository
from examhub.repositories.user_repository import UserRepository
from examhub.services.scoring_service import score_attempt
from examhub.utils.clock import as_utc, utcnow

logger = structlog.get_logger()

# Concurrent starts may race for the same attempt_number; a lost race re-reads and tries again.
START_RETRIES = 3
UPSERT_RETRIES = 2
MAX_OPEN_ANSWER_LENGTH = 10_000


def remaining_seconds(time_limit: int | None, started_at: datetime, now: datetime) -> int | None:
    """Whole seconds left on the clock, never negative. None for untimed exams."""
    if time_limit is None:
        return None
    elapsed = (as_utc(now) - as_utc(started_at)).total_seconds()
    return max(0, math.ceil(time_limit * 60 - elapsed))


def deadline_passed(time_limit: int | None, started_at: datetime, now: datetime, grace_seconds: int = 0) -> bool:
    if time_limit is None:
        return False
    deadline = as_utc(started_at) + timedelta(minutes=time_limit, seconds=grace_seconds)
    return as_utc(now) > deadline


def validate_answer_value(question: Question, value: Any) -> Any:
    if value is None:
        raise ValidationFailed("Answer value is required", entity="answer", constraint="value_required")
    question_type = question.question_type
    if question_type == QuestionType.MULTIPLE_CHOICE:
        size = len(question.options or [])
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < size:
            raise ValidationFailed("Pick one of the listed options", entity="answer", constraint="option_index")
    elif question_type == QuestionType.TRUE_FALSE:
        if not isinstance(value, bool):
            raise ValidationFailed("Answer must be true or false", entity="answer", constraint="boolean_value")
    elif question_type == QuestionType.OPEN_ANSWER:
        if not isinstance(value, str):
            raise ValidationFailed("Answer must be text", entity="answer", constraint="text_value")
        if len(value) > MAX_OPEN_ANSWER_LENGTH:
            raise ValidationFailed("Answer is too long", entity="answer", constraint="text_length")
    elif not isinstance(value, (dict, list, str)):
        raise ValidationFailed("Matching answer must be structured", entity="answer", constraint="matching_value")
    return value


def serialize_attempt(attempt: Attempt, exam: Exam, now: datetime | None = None, show_score: bool = True) -> dict:
    now = now or utcnow()
    completed = attempt.completed_at is not None
    return {
        "id": attempt.id,
        "exam_id": attempt.exam_id,
        "student_id": attempt.student_id,
        "attempt_number": attempt.attempt_number,
        "state": (AttemptState.COMPLETED if completed else AttemptState.IN_PROGRESS).value,
        "started_at": as_utc(attempt.started_at),
        "completed_at": as_utc(attempt.completed_at) if completed else None,
        "score": attempt.score if show_score else None,
        "total_points": attempt.total_points if show_score else None,
        "remaining_seconds": None if completed else remaining_seconds(exam.time_limit, attempt.started_at, now),
    }


def serialize_answer(row: Answer, show_grading: bool = True) -> dict:
    return {
        "question_id": row.question_id,
        "answer_value": row.answer_value,
        "is_correct": row.is_correct if show_grading else None,
        "points_earned": row.points_earned if show_grading else None,
        "updated_at": as_utc(row.updated_at),
    }


def serialize_result_answer(row: Answer, question: Question, show_grading: bool) -> dict:
    """An answer next to the question it answers, as shown on the result page."""
    selected = None
    if question.question_type == QuestionType.MULTIPLE_CHOICE and isinstance(row.answer_value, int):
        options = question.options or []
        if 0 <= row.answer_value < len(options):
            selected = options[row.answer_value]
    return {
        **serialize_answer(row, show_grading),
        "question_text": question.question_text,
        "question_type": question.question_type.value,
        "points": question.points,
        "order_index": question.order_index,
        "options": question.options,
        "image_url": question.image_url,
        "selected_option": selected,
        "correct_answer": question.correct_answer if show_grading else None,
    }


class AttemptService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = AttemptRepository(db)
        self.exams = ExamRepository(db)
        self.users = UserRepository(db)
        self.settings = get_settings()

    async def start_or_resume_attempt(self, caller: Caller, exam_id: UUID) -> tuple[Attempt, Exam]:
        for _ in range(START_RETRIES):
            exam = await self.exams.get_by_id(exam_id)
            if not exam or not can_read_exam(caller, exam):
                raise NotFound("Exam not found", entity="exam")
            if exam.status != ExamStatus.ACTIVE:
                raise NotAvailable("Exam is not open for attempts", entity="exam", constraint="exam_active")

            attempts = await self.repo.list_for_student(exam.id, caller.identity_id)
            open_attempt = next((row for row in attempts if row.completed_at is None), None)
            if open_attempt is not None:
                if remaining_seconds(exam.time_limit, open_attempt.started_at, utcnow()) == 0:
                    finished = await self._finalize(exam, open_attempt, forced=True)
                    return finished, exam
                return open_attempt, exam

            if exam.max_attempts < UNLIMITED_ATTEMPTS and len(attempts) >= exam.max_attempts:
                raise LimitReached(
                    f"All {exam.max_attempts} attempts have been used", entity="attempt", constraint="max_attempts"
                )

            row = Attempt(
                exam_id=exam.id,
                student_id=caller.identity_id,
                attempt_number=len(attempts) + 1,
                started_at=utcnow(),
            )
            try:
                await self.repo.add(row)
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning("attempt_start_conflict", exam_id=str(exam_id), student_id=str(caller.identity_id))
                continue
            ATTEMPTS_STARTED.inc()
            logger.info(
                "attempt_started",
                attempt_id=str(row.id),
                exam_id=str(exam_id),
                attempt_number=row.attempt_number,
            )
            return row, exam
        raise PersistenceConflict("Could not start the attempt", entity="attempt", constraint="attempt_number")

    async def get_attempt(self, caller: Caller, attempt_id: UUID) -> tuple[Attempt, Exam]:
        attempt = await self.repo.get(attempt_id)
        if not attempt:
            raise NotFound("Attempt not found", entity="attempt")
        exam = await self.exams.get_by_id(attempt.exam_id)
        if not exam or not can_read_attempt(caller, attempt, exam):
            raise NotFound("Attempt not found", entity="attempt")
        return attempt, exam

    async def _get_own_attempt(self, caller: Caller, attempt_id: UUID) -> tuple[Attempt, Exam]:
        attempt, exam = await self.get_attempt(caller, attempt_id)
        if not can_manage_attempt(caller, attempt):
            raise Unauthorized("Only the student who owns the attempt can change it", entity="attempt")
        return attempt, exam

    async def save_answer(self, caller: Caller, attempt_id: UUID, question_id: UUID, value: Any) -> Answer:
        attempt, exam = await self._get_own_attempt(caller, attempt_id)
        if attempt.completed_at is not None:
            raise AlreadyCompleted("Attempt already submitted", entity="attempt", constraint="single_submission")
        if deadline_passed(exam.time_limit, attempt.started_at, utcnow(), self.settings.attempt_grace_seconds):
            await self._finalize(exam, attempt, forced=True)
            raise NotAvailable("Time limit exceeded", entity="attempt", constraint="time_limit")
        if exam.status != ExamStatus.ACTIVE:
            raise NotAvailable("Exam is not open for answers", entity="exam", constraint="exam_active")

        question = next((q for q in exam.questions if q.id == question_id), None)
        if question is None:
            raise NotFound("Question not found", entity="question")
        validate_answer_value(question, value)

        attempt_key = attempt.id
        for _ in range(UPSERT_RETRIES):
            # Holding the attempt row keeps a concurrent submit from grading around this write.
            locked = await self.repo.lock(attempt_key)
            if locked is None or locked.completed_at is not None:
                await self.db.rollback()
                raise AlreadyCompleted("Attempt already submitted", entity="attempt", constraint="single_submission")
            existing = await self.repo.get_answer(attempt_key, question_id)
            if existing is not None:
                existing.answer_value = value
                touch(existing)
                await self.db.commit()
                return existing
            try:
                row = await self.repo.insert_answer(attempt_key, question_id, value)
                await self.db.commit()
                return row
            except IntegrityError:
                # Another request inserted the same answer first; retry as an update.
                await self.db.rollback()
        raise PersistenceConflict("Could not save the answer", entity="answer", constraint="one_answer_per_question")

    async def list_answers(self, caller: Caller, attempt_id: UUID) -> list[dict]:
        attempt, exam = await self.get_attempt(caller, attempt_id)
        show_grading = self.results_visible(caller, attempt, exam)
        rows = await self.repo.list_answers(attempt.id)
        order = {q.id: q.order_index for q in exam.questions}
        rows.sort(key=lambda row: order.get(row.question_id, 0))
        return [serialize_answer(row, show_grading) for row in rows]

    async def submit_attempt(self, caller: Caller, attempt_id: UUID) -> tuple[Attempt, Exam]:
        attempt, exam = await self._get_own_attempt(caller, attempt_id)
        if attempt.completed_at is not None:
            raise AlreadyCompleted("Attempt already submitted", entity="attempt", constraint="single_submission")
        # A submission arriving after the deadline still grades, but counts as forced.
        forced = deadline_passed(exam.time_limit, attempt.started_at, utcnow(), self.settings.attempt_grace_seconds)
        finished = await self._finalize(exam, attempt, forced=forced)
        return finished, exam

    async def _finalize(self, exam: Exam, attempt: Attempt, forced: bool) -> Attempt:
        """Score and close an attempt in one transaction.

        The attempt row is locked before the answers are read, so no answer
        can land between grading and completion. The completion itself is a
        conditional update on ``completed_at IS NULL`` so only one of several
        concurrent submissions can win.
        """
        attempt_id = attempt.id
        try:
            locked = await self.repo.lock(attempt_id)
            if locked is None or locked.completed_at is not None:
                await self.db.rollback()
                raise AlreadyCompleted("Attempt already submitted", entity="attempt", constraint="single_submission")
            answers = await self.repo.list_answers(attempt_id)
            by_question = {row.question_id: row for row in answers}
            grades, score, total_points = score_attempt(
                exam.questions, {question_id: row.answer_value for question_id, row in by_question.items()}
            )

            if not await self.repo.complete_if_open(attempt_id, utcnow(), score, total_points):
                await self.db.rollback()
                raise AlreadyCompleted("Attempt already submitted", entity="attempt", constraint="single_submission")
            for question_id, result in grades.items():
                row = by_question.get(question_id)
                if row is None:
                    continue
                row.is_correct = result.is_correct
                row.points_earned = result.points_earned
            await push_event(
                self.db,
                ATTEMPT_SUBMITTED,
                {
                    "attempt_id": str(attempt_id),
                    "exam_id": str(exam.id),
                    "score": score,
                    "total_points": total_points,
                    "forced": forced,
                },
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        ATTEMPTS_SUBMITTED.labels(forced=str(forced).lower()).inc()
        logger.info(
            "attempt_force_submitted" if forced else "attempt_submitted",
            attempt_id=str(attempt_id),
            score=score,
            total_points=total_points,
        )
        return await self.repo.get(attempt_id)

    async def expire_overdue_attempts(self, now: datetime | None = None) -> int:
        """Force-submit timed attempts whose deadline plus grace has passed."""
        now = now or utcnow()
        grace = self.settings.attempt_grace_seconds
        overdue = [
            (attempt.id, exam.id)
            for attempt, exam in await self.repo.list_in_progress_timed()
            if deadline_passed(exam.time_limit, attempt.started_at, now, grace)
        ]
        expired = 0
        for attempt_id, exam_id in overdue:
            attempt = await self.repo.get(attempt_id)
            exam = await self.exams.get_by_id(exam_id)
            if attempt is None or exam is None or attempt.completed_at is not None:
                continue
            try:
                await self._finalize(exam, attempt, forced=True)
            except AlreadyCompleted:
                logger.info("attempt_expiry_skipped", attempt_id=str(attempt_id))
                continue
            expired += 1
        if expired:
            logger.info("attempts_expired", count=expired)
        return expired

    async def list_exam_attempts(self, caller: Caller, exam_id: UUID) -> list[dict]:
        exam = await self.exams.get_by_id(exam_id)
        if not exam:
            raise NotFound("Exam not found", entity="exam")
        if can_manage_exam(caller, exam):
            rows = await self.repo.list_for_exam(exam.id)
        else:
            rows = await self.repo.list_for_student(exam.id, caller.identity_id)
            if not rows and not can_read_exam(caller, exam):
                raise NotFound("Exam not found", entity="exam")
        now = utcnow()
        return [serialize_attempt(row, exam, now, self.results_visible(caller, row, exam)) for row in rows]

    async def get_attempt_result(self, caller: Caller, attempt_id: UUID) -> dict:
        attempt, exam = await self.get_attempt(caller, attempt_id)
        visible = self.results_visible(caller, attempt, exam)
        rows = await self.repo.list_answers(attempt.id)
        questions = {q.id: q for q in exam.questions}
        rows = sorted(
            (row for row in rows if row.question_id in questions),
            key=lambda row: questions[row.question_id].order_index,
        )
        profile = await self.users.get_profile(attempt.student_id)

        manual_points = 0.0
        pending_review = 0
        for row in rows:
            if questions[row.question_id].question_type not in MANUAL_GRADED_TYPES:
                continue
            if row.points_earned is None:
                pending_review += 1
            else:
                manual_points += row.points_earned
        return {
            "attempt": serialize_attempt(attempt, exam, show_score=visible),
            "exam_title": exam.title,
            "student_name": profile.full_name if profile else DEFAULT_FULL_NAME,
            "results_visible": visible,
            "answers": [serialize_result_answer(row, questions[row.question_id], visible) for row in rows],
            "manual_points": manual_points if visible else 0.0,
            "pending_review": pending_review if attempt.completed_at is not None else 0,
        }

    async def grade_answer_manually(
        self, caller: Caller, attempt_id: UUID, question_id: UUID, points: float
    ) -> Answer:
        attempt, exam = await self.get_attempt(caller, attempt_id)
        if not can_manage_exam(caller, exam):
            raise Unauthorized("Only the exam creator can grade answers", entity="answer", constraint="exam_owner")
        if attempt.completed_at is None:
            raise ValidationFailed(
                "Attempt must be submitted before grading", entity="attempt", constraint="attempt_completed"
            )
        question = next((q for q in exam.questions if q.id == question_id), None)
        if question is None:
            raise NotFound("Question not found", entity="question")
        if question.question_type not in MANUAL_GRADED_TYPES:
            raise ValidationFailed(
                "Only open answer and matching questions are graded by hand",
                entity="answer",
                constraint="manual_grading_only",
            )
        answer = await self.repo.get_answer(attempt.id, question.id)
        if answer is None:
            raise NotFound("Answer not found", entity="answer")

        awarded = min(max(float(points), 0.0), float(question.points))
        answer.points_earned = awarded
        answer.is_correct = awarded >= float(question.points)
        answer.graded_by = caller.identity_id
        answer.graded_at = utcnow()
        touch(answer)
        await self.db.commit()
        logger.info("answer_graded", attempt_id=str(attempt_id), question_id=str(question_id), points=awarded)
        return answer

    @staticmethod
    def results_visible(caller: Caller, attempt: Attempt, exam: Exam) -> bool:
        if can_manage_exam(caller, exam):
            return True
        return attempt.completed_at is not None and exam.show_results_immediately
