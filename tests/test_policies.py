from types import SimpleNamespace
from uuid import uuid4

from examhub.core.constants import ExamStatus, Role
from examhub.core.policies import (
    Caller,
    can_access_profile,
    can_manage_answer,
    can_manage_attempt,
    can_manage_exam,
    can_read_answer,
    can_read_attempt,
    can_read_exam,
    can_read_question,
)

teacher = Caller(identity_id=uuid4(), role=Role.TEACHER)
other_teacher = Caller(identity_id=uuid4(), role=Role.TEACHER)
student = Caller(identity_id=uuid4(), role=Role.STUDENT)


def make_exam(status=ExamStatus.ACTIVE, creator=teacher):
    return SimpleNamespace(id=uuid4(), creator_id=creator.identity_id, status=status)


def test_profile_is_owner_only():
    profile = SimpleNamespace(user_id=student.identity_id)
    assert can_access_profile(student, profile)
    assert not can_access_profile(teacher, profile)
    assert not can_access_profile(None, profile)


def test_exam_management_needs_teacher_role_and_ownership():
    exam = make_exam()
    assert can_manage_exam(teacher, exam)
    assert not can_manage_exam(other_teacher, exam)

    demoted = Caller(identity_id=teacher.identity_id, role=Role.STUDENT)
    assert not can_manage_exam(demoted, exam)


def test_only_active_exams_are_public():
    draft = make_exam(ExamStatus.DRAFT)
    active = make_exam(ExamStatus.ACTIVE)
    assert can_read_exam(None, active)
    assert can_read_exam(student, active)
    assert not can_read_exam(student, draft)
    assert not can_read_exam(other_teacher, draft)
    assert can_read_exam(teacher, draft)


def test_questions_follow_their_exam():
    exam = make_exam(ExamStatus.INACTIVE)
    question = SimpleNamespace(exam_id=exam.id)
    assert can_read_question(teacher, question, exam)
    assert not can_read_question(student, question, exam)


def test_attempts_are_visible_to_owner_and_exam_creator():
    exam = make_exam()
    attempt = SimpleNamespace(id=uuid4(), exam_id=exam.id, student_id=student.identity_id)
    assert can_manage_attempt(student, attempt)
    assert not can_manage_attempt(teacher, attempt)
    assert can_read_attempt(teacher, attempt, exam)
    assert not can_read_attempt(other_teacher, attempt, exam)


def test_answers_follow_their_attempt():
    exam = make_exam()
    attempt = SimpleNamespace(id=uuid4(), exam_id=exam.id, student_id=student.identity_id)
    answer = SimpleNamespace(attempt_id=attempt.id)
    assert can_manage_answer(student, answer, attempt)
    assert not can_manage_answer(teacher, answer, attempt)
    assert can_read_answer(teacher, answer, attempt, exam)
    assert not can_read_answer(other_teacher, answer, attempt, exam)
