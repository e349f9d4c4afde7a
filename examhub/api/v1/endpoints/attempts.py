from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.api.deps import db_session, get_caller
from examhub.core.policies import Caller
from examhub.schemas.attempts import AnswerIn, AnswerOut, AttemptOut, AttemptResultOut, ManualGradeRequest
from examhub.services.attempt_service import AttemptService, serialize_answer, serialize_attempt

router = APIRouter(prefix="/attempts", tags=["attempts"])


@router.get("/{attempt_id}", response_model=AttemptResultOut)
async def get_attempt(attempt_id: UUID, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = AttemptService(db)
    return await service.get_attempt_result(caller, attempt_id)


@router.get("/{attempt_id}/answers", response_model=list[AnswerOut])
async def list_answers(attempt_id: UUID, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = AttemptService(db)
    return await service.list_answers(caller, attempt_id)


@router.put("/{attempt_id}/answers/{question_id}", response_model=AnswerOut)
async def save_answer(
    attempt_id: UUID,
    question_id: UUID,
    payload: AnswerIn,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(db_session),
):
    service = AttemptService(db)
    row = await service.save_answer(caller, attempt_id, question_id, payload.value)
    return serialize_answer(row, show_grading=False)


@router.post("/{attempt_id}/submit", response_model=AttemptOut)
async def submit_attempt(attempt_id: UUID, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = AttemptService(db)
    attempt, exam = await service.submit_attempt(caller, attempt_id)
    return serialize_attempt(attempt, exam, show_score=service.results_visible(caller, attempt, exam))


@router.patch("/{attempt_id}/answers/{question_id}/grade", response_model=AnswerOut)
async def grade_answer(
    attempt_id: UUID,
    question_id: UUID,
    payload: ManualGradeRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(db_session),
):
    service = AttemptService(db)
    row = await service.grade_answer_manually(caller, attempt_id, question_id, payload.points)
    return serialize_answer(row)
