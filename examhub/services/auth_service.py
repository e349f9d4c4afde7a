from datetime import timedelta
from uuid import UUID

import jwt
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.config import get_settings
from examhub.core.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from examhub.events.hooks import on_identity_created
from examhub.models.domain import Profile, User
from examhub.repositories.user_repository import UserRepository
from examhub.schemas.auth import AuthResponse, AuthTokens, UserOut
from examhub.utils.clock import utcnow


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = UserRepository(db)
        self.settings = get_settings()

    async def register(
        self, email: str, password: str, full_name: str | None = None, role: str | None = None
    ) -> AuthResponse:
        normalized = email.strip().lower()
        if await self.repo.get_by_email(normalized):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

        user = User(email=normalized, password_hash=hash_password(password))
        try:
            await self.repo.create(user)
            profile = await on_identity_created(self.db, user, {"full_name": full_name, "role": role})
            tokens = await self._issue_tokens(user.id, user.email)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists") from exc
        return AuthResponse(user=self._user_out(user, profile), tokens=tokens)

    async def login(self, email: str, password: str) -> AuthResponse:
        normalized = email.strip().lower()
        user = await self.repo.get_by_email(normalized)
        if not user or not user.is_active or not verify_password(password, user.password_hash):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
        profile = await self.repo.get_profile(user.id)
        if not profile:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Profile missing")
        tokens = await self._issue_tokens(user.id, user.email)
        await self.db.commit()
        return AuthResponse(user=self._user_out(user, profile), tokens=tokens)

    async def refresh(self, refresh_token: str) -> AuthTokens:
        try:
            user_id = decode_token(refresh_token, REFRESH_TOKEN)
        except jwt.InvalidTokenError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token") from exc
        if not await self.repo.is_refresh_active(refresh_token):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token revoked")
        user = await self.repo.get_by_id(user_id)
        if not user or not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
        await self.repo.revoke_refresh(refresh_token)
        tokens = await self._issue_tokens(user.id, user.email)
        await self.db.commit()
        return tokens

    async def logout(self, refresh_token: str) -> None:
        await self.repo.revoke_refresh(refresh_token)
        await self.db.commit()

    async def _issue_tokens(self, user_id: UUID, email: str) -> AuthTokens:
        access = create_access_token(user_id=user_id, email=email)
        refresh = create_refresh_token(user_id=user_id)
        expires = utcnow() + timedelta(days=self.settings.jwt_refresh_ttl_days)
        await self.repo.store_refresh(user_id=user_id, token=refresh, expires_at=expires)
        return AuthTokens(
            access_token=access,
            refresh_token=refresh,
            token_type="bearer",
            expires_in=self.settings.jwt_access_ttl_min * 60,
        )

    @staticmethod
    def _user_out(user: User, profile: Profile) -> UserOut:
        return UserOut(id=user.id, email=user.email, full_name=profile.full_name, role=profile.role.value)
