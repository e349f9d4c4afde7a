from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.api.deps import db_session, get_caller, get_caller_optional
from examhub.core.config import get_settings
from examhub.core.policies import Caller
from examhub.core.ratelimit import limit_client
from examhub.schemas.attempts import AttemptOut
from examhub.schemas.common import APIMessage
from examhub.schemas.exams import (
    ExamCreateRequest,
    ExamDetailOut,
    ExamPatchRequest,
    ExamStatusRequest,
    ExamSummaryOut,
)
from examhub.services.attempt_service import AttemptService, serialize_attempt
from examhub.services.exam_service import ExamService

router = APIRouter(prefix="/exams", tags=["exams"])


@router.get("", response_model=list[ExamSummaryOut])
async def list_exams(caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = ExamService(db)
    return await service.list_exams(caller)


@router.post("", response_model=ExamDetailOut, status_code=201)
async def create_exam(
    payload: ExamCreateRequest, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)
):
    service = ExamService(db)
    return await service.create_exam(caller, payload.model_dump())


@router.get("/by-code/{access_code}", response_model=ExamDetailOut)
async def lookup_exam(
    access_code: str,
    request: Request,
    caller: Caller | None = Depends(get_caller_optional),
    db: AsyncSession = Depends(db_session),
):
    settings = get_settings()
    limit_client(
        request,
        "access_code",
        limit=settings.access_code_lookup_limit,
        window_seconds=settings.access_code_lookup_window_seconds,
    )
    service = ExamService(db)
    return await service.lookup_by_access_code(caller, access_code)


@router.get("/{exam_id}", response_model=ExamDetailOut)
async def get_exam(
    exam_id: UUID, caller: Caller | None = Depends(get_caller_optional), db: AsyncSession = Depends(db_session)
):
    service = ExamService(db)
    return await service.get_exam(caller, exam_id)


@router.patch("/{exam_id}", response_model=ExamDetailOut)
async def update_exam(
    exam_id: UUID,
    payload: ExamPatchRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(db_session),
):
    service = ExamService(db)
    return await service.update_exam(caller, exam_id, payload.model_dump(exclude_unset=True))


@router.post("/{exam_id}/status", response_model=ExamDetailOut)
async def change_exam_status(
    exam_id: UUID,
    payload: ExamStatusRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(db_session),
):
    service = ExamService(db)
    return await service.change_status(caller, exam_id, payload.status)


@router.delete("/{exam_id}", response_model=APIMessage)
async def delete_exam(exam_id: UUID, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = ExamService(db)
    await service.delete_exam(caller, exam_id)
    return APIMessage(message="Exam deleted")


@router.post("/{exam_id}/attempts", response_model=AttemptOut)
async def start_attempt(exam_id: UUID, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = AttemptService(db)
    attempt, exam = await service.start_or_resume_attempt(caller, exam_id)
    return serialize_attempt(attempt, exam, show_score=service.results_visible(caller, attempt, exam))


@router.get("/{exam_id}/attempts", response_model=list[AttemptOut])
async def list_attempts(exam_id: UUID, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = AttemptService(db)
    return await service.list_exam_attempts(caller, exam_id)
