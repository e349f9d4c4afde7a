from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.api.deps import db_session
from examhub.core.ratelimit import limit_client
from examhub.schemas.auth import (
    AuthResponse,
    AuthTokens,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
)
from examhub.schemas.common import APIMessage
from examhub.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse)
async def register(payload: RegisterRequest, request: Request, db: AsyncSession = Depends(db_session)):
    limit_client(request, "register", limit=20, window_seconds=60)
    service = AuthService(db)
    return await service.register(
        email=payload.email, password=payload.password, full_name=payload.full_name, role=payload.role
    )


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, request: Request, db: AsyncSession = Depends(db_session)):
    limit_client(request, "login", limit=30, window_seconds=60)
    service = AuthService(db)
    return await service.login(email=payload.email, password=payload.password)


@router.post("/refresh", response_model=AuthTokens)
async def refresh(payload: RefreshRequest, db: AsyncSession = Depends(db_session)):
    service = AuthService(db)
    return await service.refresh(payload.refresh_token)


@router.post("/logout", response_model=APIMessage)
async def logout(payload: LogoutRequest, db: AsyncSession = Depends(db_session)):
    service = AuthService(db)
    await service.logout(payload.refresh_token)
    return APIMessage(message="Logged out")
