"""Row-level access predicates.

Each predicate mirrors one per-record rule and is evaluated against an
explicit ``Caller``. A ``None`` caller is an unauthenticated request.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from examhub.core.constants import MANAGER_ROLES, ExamStatus, Role

if TYPE_CHECKING:
    from examhub.models.domain import Answer, Attempt, Exam, Profile, Question


@dataclass(frozen=True)
class Caller:
    identity_id: UUID
    role: Role
    display_name: str = ""

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


def can_access_profile(caller: Caller | None, profile: "Profile") -> bool:
    return caller is not None and profile.user_id == caller.identity_id


def can_manage_exam(caller: Caller | None, exam: "Exam") -> bool:
    return caller is not None and caller.is_manager and exam.creator_id == caller.identity_id


def can_read_exam(caller: Caller | None, exam: "Exam") -> bool:
    return exam.status == ExamStatus.ACTIVE or can_manage_exam(caller, exam)


def can_manage_question(caller: Caller | None, question: "Question", exam: "Exam") -> bool:
    return question.exam_id == exam.id and can_manage_exam(caller, exam)


def can_read_question(caller: Caller | None, question: "Question", exam: "Exam") -> bool:
    return question.exam_id == exam.id and can_read_exam(caller, exam)


def can_manage_attempt(caller: Caller | None, attempt: "Attempt") -> bool:
    return caller is not None and attempt.student_id == caller.identity_id


def can_read_attempt(caller: Caller | None, attempt: "Attempt", exam: "Exam") -> bool:
    return can_manage_attempt(caller, attempt) or (
        attempt.exam_id == exam.id and can_manage_exam(caller, exam)
    )


def can_manage_answer(caller: Caller | None, answer: "Answer", attempt: "Attempt") -> bool:
    return answer.attempt_id == attempt.id and can_manage_attempt(caller, attempt)


def can_read_answer(caller: Caller | None, answer: "Answer", attempt: "Attempt", exam: "Exam") -> bool:
    return answer.attempt_id == attempt.id and can_read_attempt(caller, attempt, exam)
