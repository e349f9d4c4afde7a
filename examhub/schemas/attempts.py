from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class AttemptOut(BaseModel):
    id: UUID
    exam_id: UUID
    student_id: UUID
    attempt_number: int
    state: str
    started_at: datetime
    completed_at: datetime | None
    score: float | None
    total_points: float | None
    remaining_seconds: int | None


class AnswerIn(BaseModel):
    value: Any


class AnswerOut(BaseModel):
    question_id: UUID
    answer_value: Any
    is_correct: bool | None
    points_earned: float | None
    updated_at: datetime


class AnswerResultOut(AnswerOut):
    question_text: str
    question_type: str
    points: float
    order_index: int
    options: list[str] | None
    image_url: str | None
    selected_option: str | None
    correct_answer: Any = None


class ManualGradeRequest(BaseModel):
    points: float = Field(ge=0)


class AttemptResultOut(BaseModel):
    attempt: AttemptOut
    exam_title: str
    student_name: str
    results_visible: bool
    answers: list[AnswerResultOut]
    manual_points: float
    pending_review: int
