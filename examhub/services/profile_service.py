from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.errors import NotFound, ValidationFailed
from examhub.core.policies import Caller, can_access_profile
from examhub.events.hooks import touch
from examhub.models.domain import Profile
from examhub.repositories.user_repository import UserRepository


class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = UserRepository(db)

    async def get_profile(self, caller: Caller, user_id: UUID) -> Profile:
        profile = await self.repo.get_profile(user_id)
        if not profile or not can_access_profile(caller, profile):
            raise NotFound("Profile not found", entity="profile")
        return profile

    async def update_profile(self, caller: Caller, user_id: UUID, full_name: str) -> Profile:
        profile = await self.get_profile(caller, user_id)
        name = full_name.strip()
        if not name:
            raise ValidationFailed("Full name is required", entity="profile", constraint="full_name_required")
        profile.full_name = name
        touch(profile)
        await self.db.commit()
        return profile
