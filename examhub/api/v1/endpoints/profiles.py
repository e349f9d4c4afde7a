from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.api.deps import db_session, get_caller
from examhub.core.policies import Caller
from examhub.schemas.profiles import ProfileOut, ProfileUpdateRequest
from examhub.services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileOut)
async def get_my_profile(caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)):
    service = ProfileService(db)
    return await service.get_profile(caller, caller.identity_id)


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(
    payload: ProfileUpdateRequest, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)
):
    service = ProfileService(db)
    return await service.update_profile(caller, caller.identity_id, payload.full_name)
