from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class ExamStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


class QuestionType(StrEnum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    OPEN_ANSWER = "open_answer"
    MATCHING = "matching"


class AttemptState(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


AUTO_GRADED_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})
MANUAL_GRADED_TYPES = frozenset({QuestionType.OPEN_ANSWER, QuestionType.MATCHING})

MANAGER_ROLES = frozenset({Role.TEACHER, Role.ADMIN})
SIGNUP_ROLES = frozenset({Role.TEACHER, Role.STUDENT})

# max_attempts value meaning "no limit".
UNLIMITED_ATTEMPTS = 999

DEFAULT_FULL_NAME = "User"
MIN_CHOICE_OPTIONS = 2

# Allowed exam status changes; completed is terminal.
STATUS_TRANSITIONS: dict[ExamStatus, frozenset[ExamStatus]] = {
    ExamStatus.DRAFT: frozenset({ExamStatus.ACTIVE}),
    ExamStatus.ACTIVE: frozenset({ExamStatus.INACTIVE, ExamStatus.COMPLETED}),
    ExamStatus.INACTIVE: frozenset({ExamStatus.ACTIVE, ExamStatus.COMPLETED}),
    ExamStatus.COMPLETED: frozenset(),
}
