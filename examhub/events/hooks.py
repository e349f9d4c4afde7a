"""Side effects run synchronously after identity creation and row updates."""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.constants import DEFAULT_FULL_NAME, SIGNUP_ROLES, Role
from examhub.core.errors import PersistenceConflict
from examhub.models.domain import Profile, User
from examhub.utils.clock import utcnow

logger = structlog.get_logger()


def resolve_signup_role(raw: Any) -> Role:
    try:
        role = Role(str(raw).strip().lower())
    except ValueError:
        return Role.STUDENT
    return role if role in SIGNUP_ROLES else Role.STUDENT


def resolve_full_name(raw: Any) -> str:
    name = str(raw or "").strip()
    return name[:200] if name else DEFAULT_FULL_NAME


async def on_identity_created(db: AsyncSession, user: User, metadata: dict[str, Any] | None = None) -> Profile:
    """Create the one profile belonging to a freshly created identity."""
    metadata = metadata or {}
    existing = await db.execute(select(Profile.id).where(Profile.user_id == user.id))
    if existing.scalar_one_or_none() is not None:
        raise PersistenceConflict("Profile already exists", entity="profile", constraint="one_profile_per_identity")

    profile = Profile(
        user_id=user.id,
        full_name=resolve_full_name(metadata.get("full_name")),
        role=resolve_signup_role(metadata.get("role")),
    )
    db.add(profile)
    await db.flush()
    logger.info("profile_created", user_id=str(user.id), role=profile.role.value)
    return profile


def touch(row: Any) -> None:
    row.updated_at = utcnow()
