from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.constants import (
    MIN_CHOICE_OPTIONS,
    STATUS_TRANSITIONS,
    UNLIMITED_ATTEMPTS,
    ExamStatus,
    QuestionType,
)
from examhub.core.errors import NotFound, PersistenceConflict, Unauthorized, ValidationFailed
from examhub.core.policies import Caller, can_manage_exam, can_read_exam, can_read_question
from examhub.events.hooks import touch
from examhub.events.outbox import EXAM_STATUS_CHANGED, push_event
from examhub.models.domain import Exam
from examhub.repositories.exam_repository import ExamRepository, build_question
from examhub.services.access_code import generate_access_code, normalize_code

logger = structlog.get_logger()

EXAM_FIELDS = ("title", "description", "time_limit", "max_attempts", "show_results_immediately")
# Attempts to insert a new exam when a concurrent insert takes the same access code.
CREATE_RETRIES = 2


def _invalid(message: str, constraint: str, entity: str = "exam") -> ValidationFailed:
    return ValidationFailed(message, entity=entity, constraint=constraint)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_exam_fields(data: dict[str, Any]) -> dict[str, Any]:
    cleaned = dict(data)
    if "title" in cleaned:
        title = (cleaned["title"] or "").strip()
        if not title:
            raise _invalid("Title is required", "title_required")
        cleaned["title"] = title
    if "description" in cleaned and cleaned["description"] is not None:
        cleaned["description"] = cleaned["description"].strip() or None
    if cleaned.get("time_limit") is not None and int(cleaned["time_limit"]) < 1:
        raise _invalid("Time limit must be at least one minute", "time_limit_positive")
    if "max_attempts" in cleaned:
        max_attempts = cleaned["max_attempts"]
        if max_attempts is None or not 1 <= int(max_attempts) <= UNLIMITED_ATTEMPTS:
            raise _invalid(f"Max attempts must be between 1 and {UNLIMITED_ATTEMPTS}", "max_attempts_range")
    if "show_results_immediately" in cleaned:
        if cleaned["show_results_immediately"] is None:
            raise _invalid("Show results setting must be true or false", "show_results_boolean")
        cleaned["show_results_immediately"] = bool(cleaned["show_results_immediately"])
    return cleaned


def validate_question(position: int, item: dict[str, Any]) -> dict[str, Any]:
    label = f"Question {position + 1}"
    text = (item.get("question_text") or "").strip()
    if not text:
        raise _invalid(f"{label}: text is required", "question_text_required", entity="question")
    question_type = QuestionType(item["question_type"])
    points = float(item.get("points") if item.get("points") is not None else 1.0)
    if points <= 0:
        raise _invalid(f"{label}: points must be positive", "points_positive", entity="question")

    options = item.get("options")
    correct = item.get("correct_answer")
    if question_type == QuestionType.MULTIPLE_CHOICE:
        options = [str(option).strip() for option in (options or [])]
        if len(options) < MIN_CHOICE_OPTIONS or any(not option for option in options):
            raise _invalid(
                f"{label}: multiple choice needs at least {MIN_CHOICE_OPTIONS} non-empty options",
                "options_required",
                entity="question",
            )
        if not _is_index(correct) or not 0 <= correct < len(options):
            raise _invalid(f"{label}: correct answer must be an option index", "correct_answer_index", entity="question")
    elif question_type == QuestionType.TRUE_FALSE:
        options = None
        if not isinstance(correct, bool):
            raise _invalid(f"{label}: correct answer must be true or false", "correct_answer_boolean", entity="question")
    elif question_type == QuestionType.OPEN_ANSWER:
        options = None
        if correct is not None and not isinstance(correct, str):
            raise _invalid(f"{label}: reference answer must be text", "reference_answer_text", entity="question")
    else:
        options = [str(option).strip() for option in options] if options else None

    return {
        "id": item.get("id"),
        "question_text": text,
        "question_type": question_type,
        "points": points,
        "options": options,
        "correct_answer": correct,
        "image_url": item.get("image_url") or None,
    }


def validate_questions(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    if not items:
        raise _invalid("An exam needs at least one question", "questions_required")
    return [validate_question(position, item) for position, item in enumerate(items)]


class ExamService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ExamRepository(db)

    async def get_readable_exam(self, caller: Caller | None, exam_id: UUID) -> Exam:
        row = await self.repo.get_by_id(exam_id)
        if not row or not can_read_exam(caller, row):
            raise NotFound("Exam not found", entity="exam")
        return row

    async def get_managed_exam(self, caller: Caller | None, exam_id: UUID) -> Exam:
        row = await self.get_readable_exam(caller, exam_id)
        if not can_manage_exam(caller, row):
            raise Unauthorized("Only the exam creator can change it", entity="exam", constraint="exam_owner")
        return row

    async def list_exams(self, caller: Caller) -> list[dict]:
        rows = await self.repo.list_creator_exams(caller.identity_id)
        exam_ids = [row.id for row in rows]
        question_counts = await self.repo.question_counts_bulk(exam_ids)
        attempt_counts = await self.repo.attempt_counts_bulk(exam_ids)
        return [
            {
                **self._exam_data(row),
                "access_code": row.access_code,
                "question_count": question_counts.get(row.id, 0),
                "attempt_count": attempt_counts.get(row.id, 0),
            }
            for row in rows
        ]

    async def create_exam(self, caller: Caller, payload: dict) -> dict:
        if not caller.is_manager:
            raise Unauthorized("Only teachers can create exams", entity="exam", constraint="teacher_role")
        defaults = {"max_attempts": 1, "show_results_immediately": False}
        fields = validate_exam_fields({key: payload.get(key, defaults.get(key)) for key in EXAM_FIELDS})
        questions = validate_questions(payload.get("questions") or [])
        initial_status = ExamStatus(payload.get("status") or ExamStatus.DRAFT)
        if initial_status not in (ExamStatus.DRAFT, ExamStatus.ACTIVE):
            raise _invalid("New exams start as draft or active", "initial_status")

        for _ in range(CREATE_RETRIES):
            access_code = await generate_access_code(self.repo.code_exists)
            row = Exam(
                creator_id=caller.identity_id,
                access_code=access_code,
                status=initial_status,
                title=fields["title"],
                description=fields.get("description"),
                time_limit=fields.get("time_limit"),
                max_attempts=int(fields["max_attempts"]),
                show_results_immediately=bool(fields.get("show_results_immediately")),
                questions=[build_question(item, position) for position, item in enumerate(questions)],
            )
            try:
                await self.repo.add(row)
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning("exam_create_conflict", access_code=access_code)
                continue
            logger.info("exam_created", exam_id=str(row.id), creator_id=str(caller.identity_id))
            created = await self.get_managed_exam(caller, row.id)
            return self.serialize_exam_detail(created, caller)
        raise PersistenceConflict(
            "Could not allocate a unique access code", entity="exam", constraint="unique_access_code"
        )

    async def get_exam(self, caller: Caller | None, exam_id: UUID) -> dict:
        row = await self.get_readable_exam(caller, exam_id)
        return self.serialize_exam_detail(row, caller)

    async def lookup_by_access_code(self, caller: Caller | None, access_code: str) -> dict:
        code = normalize_code(access_code)
        row = await self.repo.get_active_by_code(code) if code else None
        if not row:
            raise NotFound("No active exam matches this access code", entity="exam")
        return self.serialize_exam_detail(row, caller)

    async def update_exam(self, caller: Caller, exam_id: UUID, payload: dict) -> dict:
        row = await self.get_managed_exam(caller, exam_id)
        if row.status == ExamStatus.COMPLETED:
            raise _invalid("Completed exams cannot be edited", "exam_completed")

        fields = validate_exam_fields({key: payload[key] for key in EXAM_FIELDS if key in payload})
        questions = payload.get("questions")
        if questions is not None:
            if await self.repo.has_attempts(row.id):
                raise _invalid("Questions cannot change once the exam has attempts", "questions_locked")
            validated = validate_questions(questions)
            await self.repo.sync_questions(row, validated)

        for key, value in fields.items():
            setattr(row, key, value)
        touch(row)
        await self.db.commit()
        updated = await self.get_managed_exam(caller, exam_id)
        return self.serialize_exam_detail(updated, caller)

    async def change_status(self, caller: Caller, exam_id: UUID, new_status: ExamStatus) -> dict:
        row = await self.get_managed_exam(caller, exam_id)
        current = row.status
        if new_status == current:
            return self.serialize_exam_detail(row, caller)
        if new_status not in STATUS_TRANSITIONS[current]:
            raise _invalid(f"Cannot move exam from {current.value} to {new_status.value}", "status_transition")
        if new_status == ExamStatus.ACTIVE and not row.questions:
            raise _invalid("An exam needs at least one question", "questions_required")

        row.status = new_status
        touch(row)
        await push_event(
            self.db,
            EXAM_STATUS_CHANGED,
            {"exam_id": str(row.id), "from": current.value, "to": new_status.value},
        )
        await self.db.commit()
        logger.info("exam_status_changed", exam_id=str(exam_id), old=current.value, new=new_status.value)
        updated = await self.get_managed_exam(caller, exam_id)
        return self.serialize_exam_detail(updated, caller)

    async def delete_exam(self, caller: Caller, exam_id: UUID) -> None:
        row = await self.get_managed_exam(caller, exam_id)
        await self.repo.delete(row)
        await self.db.commit()
        logger.info("exam_deleted", exam_id=str(exam_id))

    def serialize_exam_detail(self, row: Exam, caller: Caller | None) -> dict:
        include_secrets = can_manage_exam(caller, row)
        questions = []
        for q in sorted(row.questions, key=lambda item: item.order_index):
            if not can_read_question(caller, q, row):
                continue
            questions.append(
                {
                    "id": q.id,
                    "question_text": q.question_text,
                    "question_type": q.question_type.value,
                    "points": q.points,
                    "order_index": q.order_index,
                    "options": q.options,
                    "correct_answer": q.correct_answer if include_secrets else None,
                    "image_url": q.image_url,
                }
            )
        return {
            **self._exam_data(row),
            "access_code": row.access_code if include_secrets else None,
            "questions": questions,
            "total_points": sum(float(q["points"]) for q in questions),
        }

    @staticmethod
    def _exam_data(row: Exam) -> dict:
        return {
            "id": row.id,
            "title": row.title,
            "description": row.description,
            "status": row.status.value,
            "time_limit": row.time_limit,
            "max_attempts": row.max_attempts,
            "unlimited_attempts": row.max_attempts >= UNLIMITED_ATTEMPTS,
            "show_results_immediately": row.show_results_immediately,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }
