from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from examhub.core.constants import ExamStatus, QuestionType


class QuestionIn(BaseModel):
    id: UUID | None = None
    question_text: str
    question_type: QuestionType
    points: float = 1.0
    options: list[str] | None = None
    correct_answer: Any = None
    image_url: str | None = Field(default=None, max_length=1024)


class ExamCreateRequest(BaseModel):
    title: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    time_limit: int | None = None
    max_attempts: int = 1
    show_results_immediately: bool = False
    status: Literal["draft", "active"] = "draft"
    questions: list[QuestionIn] = Field(default_factory=list)


class ExamPatchRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    time_limit: int | None = None
    max_attempts: int | None = None
    show_results_immediately: bool | None = None
    questions: list[QuestionIn] | None = None


class ExamStatusRequest(BaseModel):
    status: ExamStatus


class QuestionOut(BaseModel):
    id: UUID
    question_text: str
    question_type: str
    points: float
    order_index: int
    options: list[str] | None
    correct_answer: Any = None
    image_url: str | None


class ExamSummaryOut(BaseModel):
    id: UUID
    title: str
    description: str | None
    access_code: str
    status: str
    time_limit: int | None
    max_attempts: int
    unlimited_attempts: bool
    show_results_immediately: bool
    question_count: int
    attempt_count: int
    created_at: datetime
    updated_at: datetime


class ExamDetailOut(BaseModel):
    id: UUID
    title: str
    description: str | None
    access_code: str | None
    status: str
    time_limit: int | None
    max_attempts: int
    unlimited_attempts: bool
    show_results_immediately: bool
    questions: list[QuestionOut]
    total_points: float
    created_at: datetime
    updated_at: datetime
