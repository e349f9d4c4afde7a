from uuid import uuid4

from examhub.core.constants import QuestionType
from examhub.models.domain import Question
from examhub.services.scoring_service import grade, score_attempt


def make_question(q_type: QuestionType, correct=None, points: float = 1, order_index: int = 0) -> Question:
    q = Question(
        question_type=q_type,
        question_text="q",
        points=points,
        correct_answer=correct,
        options=["a", "b", "c"] if q_type == QuestionType.MULTIPLE_CHOICE else None,
        order_index=order_index,
    )
    q.id = uuid4()
    return q


def test_multiple_choice_exact_index():
    assert grade(QuestionType.MULTIPLE_CHOICE, 1, 1, 2).points_earned == 2.0
    wrong = grade(QuestionType.MULTIPLE_CHOICE, 0, 1, 2)
    assert wrong.is_correct is False
    assert wrong.points_earned == 0.0


def test_multiple_choice_rejects_bool_and_string_indexes():
    assert grade(QuestionType.MULTIPLE_CHOICE, True, 1, 1).is_correct is False
    assert grade(QuestionType.MULTIPLE_CHOICE, "1", 1, 1).is_correct is False


def test_true_false_needs_real_booleans():
    assert grade(QuestionType.TRUE_FALSE, False, True, 1).points_earned == 0.0
    assert grade(QuestionType.TRUE_FALSE, True, True, 1).is_correct is True
    assert grade(QuestionType.TRUE_FALSE, 1, True, 1).is_correct is False


def test_manual_types_wait_for_review():
    for q_type in (QuestionType.OPEN_ANSWER, QuestionType.MATCHING):
        result = grade(q_type, "anything", None, 5)
        assert result.needs_review
        assert result.points_earned is None


def test_unanswered_auto_question_scores_zero():
    result = grade(QuestionType.TRUE_FALSE, None, True, 1)
    assert result.is_correct is False
    assert result.points_earned == 0.0


def test_score_attempt_counts_every_question_in_total():
    mc = make_question(QuestionType.MULTIPLE_CHOICE, correct=1, points=2, order_index=0)
    essay = make_question(QuestionType.OPEN_ANSWER, points=3, order_index=1)
    tf = make_question(QuestionType.TRUE_FALSE, correct=True, points=1, order_index=2)

    grades, score, total = score_attempt([tf, essay, mc], {mc.id: 1, essay.id: "text"})

    assert score == 2.0
    assert total == 6.0
    assert grades[tf.id].points_earned == 0.0
    assert grades[essay.id].needs_review
    assert list(grades) == [mc.id, essay.id, tf.id]
