from collections.abc import AsyncIterator

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.policies import Caller
from examhub.core.security import ACCESS_TOKEN, decode_token
from examhub.db.session import get_db
from examhub.repositories.user_repository import UserRepository

bearer = HTTPBearer(auto_error=False)


async def db_session() -> AsyncIterator[AsyncSession]:
    async for s in get_db():
        yield s


async def _load_caller(token: str, db: AsyncSession) -> Caller | None:
    try:
        user_id = decode_token(token, ACCESS_TOKEN)
    except jwt.InvalidTokenError:
        return None
    repo = UserRepository(db)
    user = await repo.get_by_id(user_id)
    if not user or not user.is_active:
        return None
    profile = await repo.get_profile(user.id)
    if not profile:
        return None
    return Caller(identity_id=user.id, role=profile.role, display_name=profile.full_name)


async def get_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(db_session),
) -> Caller:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing auth token")
    caller = await _load_caller(credentials.credentials, db)
    if caller is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth token")
    return caller


async def get_caller_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(db_session),
) -> Caller | None:
    if not credentials:
        return None
    return await _load_caller(credentials.credentials, db)
