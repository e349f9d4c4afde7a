from dataclasses import dataclass
from typing import Any
from uuid import UUID

from examhub.core.constants import AUTO_GRADED_TYPES, QuestionType
from examhub.models.domain import Question


@dataclass(frozen=True)
class Grade:
    is_correct: bool | None
    points_earned: float | None

    @property
    def needs_review(self) -> bool:
        return self.is_correct is None


PENDING_REVIEW = Grade(is_correct=None, points_earned=None)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _matches(question_type: QuestionType, submitted: Any, correct: Any) -> bool:
    if question_type == QuestionType.MULTIPLE_CHOICE:
        return _is_index(submitted) and _is_index(correct) and submitted == correct
    if question_type == QuestionType.TRUE_FALSE:
        return isinstance(submitted, bool) and isinstance(correct, bool) and submitted is correct
    return False


def grade(question_type: QuestionType, submitted_value: Any, correct_answer: Any, points: float) -> Grade:
    """Grade one question. ``submitted_value`` is None when it was left unanswered."""
    if question_type not in AUTO_GRADED_TYPES:
        return PENDING_REVIEW
    if submitted_value is not None and _matches(question_type, submitted_value, correct_answer):
        return Grade(is_correct=True, points_earned=float(points))
    return Grade(is_correct=False, points_earned=0.0)


def score_attempt(
    questions: list[Question], answers_by_question: dict[UUID, Any]
) -> tuple[dict[UUID, Grade], float, float]:
    grades: dict[UUID, Grade] = {}
    score = 0.0
    total_points = 0.0
    for q in sorted(questions, key=lambda item: item.order_index):
        total_points += float(q.points)
        result = grade(q.question_type, answers_by_question.get(q.id), q.correct_answer, q.points)
        grades[q.id] = result
        if result.points_earned is not None:
            score += result.points_earned
    return grades, score, total_points
