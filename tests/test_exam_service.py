import pytest

from conftest import MC_QUESTION, OPEN_QUESTION, TF_QUESTION
from examhub.core.constants import ExamStatus, Role
from examhub.core.errors import NotFound, Unauthorized, ValidationFailed
from examhub.events.outbox import EXAM_STATUS_CHANGED, pending_events
from examhub.services import access_code
from examhub.services.attempt_service import AttemptService
from examhub.services.exam_service import ExamService


@pytest.mark.asyncio
async def test_create_exam_assigns_code_and_orders_questions(teacher, make_exam):
    exam = await make_exam(teacher, questions=[MC_QUESTION, OPEN_QUESTION, TF_QUESTION])

    assert len(exam["access_code"]) == 8
    assert exam["access_code"] == exam["access_code"].upper()
    assert [q["order_index"] for q in exam["questions"]] == [0, 1, 2]
    assert exam["total_points"] == 6.0
    assert exam["questions"][0]["correct_answer"] == 1


@pytest.mark.asyncio
async def test_students_cannot_create_exams(student, make_exam):
    with pytest.raises(Unauthorized):
        await make_exam(student)


@pytest.mark.asyncio
async def test_multiple_choice_needs_two_options(teacher, make_exam):
    broken = {**MC_QUESTION, "options": ["only one"], "correct_answer": 0}
    with pytest.raises(ValidationFailed) as exc:
        await make_exam(teacher, questions=[broken])
    assert exc.value.constraint == "options_required"


@pytest.mark.asyncio
async def test_exam_field_validation(teacher, make_exam):
    with pytest.raises(ValidationFailed):
        await make_exam(teacher, title="   ")
    with pytest.raises(ValidationFailed):
        await make_exam(teacher, max_attempts=1000)
    with pytest.raises(ValidationFailed):
        await make_exam(teacher, time_limit=0)
    with pytest.raises(ValidationFailed):
        await make_exam(teacher, questions=[])


@pytest.mark.asyncio
async def test_access_code_collision_draws_a_new_code(db, teacher, make_exam, monkeypatch):
    draws = iter(["ABCD1234", "ABCD1234", "EFGH5678"])
    monkeypatch.setattr(access_code, "random_code", lambda length: next(draws))

    first = await make_exam(teacher)
    second = await make_exam(teacher)

    assert first["access_code"] == "ABCD1234"
    assert second["access_code"] == "EFGH5678"


@pytest.mark.asyncio
async def test_lookup_only_finds_active_exams(db, teacher, student, make_exam):
    service = ExamService(db)
    exam = await make_exam(teacher, status="draft")
    code = exam["access_code"]

    with pytest.raises(NotFound):
        await service.lookup_by_access_code(student, code)

    await service.change_status(teacher, exam["id"], ExamStatus.ACTIVE)
    found = await service.lookup_by_access_code(student, f" {code.lower()} ")
    assert found["id"] == exam["id"]

    await service.change_status(teacher, exam["id"], ExamStatus.INACTIVE)
    with pytest.raises(NotFound):
        await service.lookup_by_access_code(student, code)


@pytest.mark.asyncio
async def test_students_do_not_see_answers_or_code(db, teacher, student, make_exam):
    exam = await make_exam(teacher)
    seen = await ExamService(db).lookup_by_access_code(None, exam["access_code"])

    assert seen["access_code"] is None
    assert all(q["correct_answer"] is None for q in seen["questions"])
    assert seen["questions"][0]["options"] == ["3", "4", "5"]

    by_id = await ExamService(db).get_exam(student, exam["id"])
    assert all(q["correct_answer"] is None for q in by_id["questions"])


@pytest.mark.asyncio
async def test_draft_exams_are_hidden_from_others(db, teacher, make_caller, make_exam):
    other = await make_caller(Role.TEACHER)
    draft = await make_exam(teacher, status="draft")
    active = await make_exam(teacher)
    service = ExamService(db)

    with pytest.raises(NotFound):
        await service.get_exam(other, draft["id"])
    with pytest.raises(Unauthorized):
        await service.update_exam(other, active["id"], {"title": "Mine now"})


@pytest.mark.asyncio
async def test_status_transitions(db, teacher, make_exam):
    service = ExamService(db)
    exam = await make_exam(teacher, status="draft")

    with pytest.raises(ValidationFailed):
        await service.change_status(teacher, exam["id"], ExamStatus.INACTIVE)

    await service.change_status(teacher, exam["id"], ExamStatus.ACTIVE)
    done = await service.change_status(teacher, exam["id"], ExamStatus.COMPLETED)
    assert done["status"] == "completed"

    with pytest.raises(ValidationFailed):
        await service.change_status(teacher, exam["id"], ExamStatus.ACTIVE)
    with pytest.raises(ValidationFailed):
        await service.update_exam(teacher, exam["id"], {"title": "Renamed"})

    events = [row for row in await pending_events(db) if row.event_type == EXAM_STATUS_CHANGED]
    assert [row.payload_json["to"] for row in events] == ["active", "completed"]


@pytest.mark.asyncio
async def test_update_keeps_question_identity(db, teacher, make_exam):
    exam = await make_exam(teacher, questions=[MC_QUESTION, OPEN_QUESTION])
    first, second = exam["questions"]

    updated = await ExamService(db).update_exam(
        teacher,
        exam["id"],
        {
            "title": "Arithmetic II",
            "questions": [
                {**OPEN_QUESTION, "id": second["id"], "points": 4},
                {**MC_QUESTION, "id": first["id"]},
                TF_QUESTION,
            ],
        },
    )

    assert updated["title"] == "Arithmetic II"
    ids = [q["id"] for q in updated["questions"]]
    assert ids[:2] == [second["id"], first["id"]]
    assert updated["questions"][0]["points"] == 4
    assert [q["order_index"] for q in updated["questions"]] == [0, 1, 2]


@pytest.mark.asyncio
async def test_questions_lock_once_attempted(db, teacher, student, make_exam):
    exam = await make_exam(teacher)
    await AttemptService(db).start_or_resume_attempt(student, exam["id"])

    with pytest.raises(ValidationFailed) as exc:
        await ExamService(db).update_exam(teacher, exam["id"], {"questions": [TF_QUESTION]})
    assert exc.value.constraint == "questions_locked"

    updated = await ExamService(db).update_exam(teacher, exam["id"], {"show_results_immediately": True})
    assert updated["show_results_immediately"] is True


@pytest.mark.asyncio
async def test_list_and_delete(db, teacher, student, make_exam):
    service = ExamService(db)
    exam = await make_exam(teacher)
    await AttemptService(db).start_or_resume_attempt(student, exam["id"])

    listed = await service.list_exams(teacher)
    assert [(row["id"], row["question_count"], row["attempt_count"]) for row in listed] == [(exam["id"], 2, 1)]
    assert await service.list_exams(student) == []

    await service.delete_exam(teacher, exam["id"])
    with pytest.raises(NotFound):
        await service.get_exam(teacher, exam["id"])


@pytest.mark.asyncio
async def test_show_results_cannot_be_cleared(db, teacher, make_exam):
    exam = await make_exam(teacher, show_results_immediately=True)
    service = ExamService(db)

    with pytest.raises(ValidationFailed):
        await service.update_exam(teacher, exam["id"], {"show_results_immediately": None})

    current = await service.get_exam(teacher, exam["id"])
    assert current["show_results_immediately"] is True
