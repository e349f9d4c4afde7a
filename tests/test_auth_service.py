import pytest
from fastapi import HTTPException

from examhub.core.constants import Role
from examhub.core.errors import PersistenceConflict
from examhub.core.policies import Caller
from examhub.events.hooks import on_identity_created
from examhub.services.auth_service import AuthService
from examhub.services.profile_service import ProfileService


@pytest.mark.asyncio
async def test_register_creates_profile_with_defaults(db):
    result = await AuthService(db).register(email="Ann@Example.com", password="secret123")

    assert result.user.email == "ann@example.com"
    assert result.user.full_name == "User"
    assert result.user.role == "student"
    assert result.tokens.access_token


@pytest.mark.asyncio
async def test_register_keeps_requested_teacher_role(db):
    result = await AuthService(db).register(
        email="t@example.com", password="secret123", full_name="  Ms Teacher ", role="teacher"
    )
    assert result.user.role == "teacher"
    assert result.user.full_name == "Ms Teacher"


@pytest.mark.asyncio
async def test_admin_role_cannot_be_self_assigned(db):
    service = AuthService(db)
    result = await service.register(email="boss@example.com", password="secret123", role="admin")
    profile = await service.repo.get_profile(result.user.id)
    assert profile.role == Role.STUDENT

    user = await service.repo.get_by_id(result.user.id)
    with pytest.raises(PersistenceConflict):
        await on_identity_created(db, user, {"role": "admin"})


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(db):
    service = AuthService(db)
    await service.register(email="dup@example.com", password="secret123")
    with pytest.raises(HTTPException) as exc:
        await service.register(email="DUP@example.com", password="secret123")
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_login_rejects_wrong_password(db):
    service = AuthService(db)
    await service.register(email="l@example.com", password="secret123")
    assert (await service.login("l@example.com", "secret123")).user.email == "l@example.com"
    with pytest.raises(HTTPException) as exc:
        await service.login("l@example.com", "wrong-password")
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(db):
    service = AuthService(db)
    registered = await service.register(email="r@example.com", password="secret123")
    old_refresh = registered.tokens.refresh_token

    rotated = await service.refresh(old_refresh)
    assert rotated.refresh_token != old_refresh
    with pytest.raises(HTTPException) as exc:
        await service.refresh(old_refresh)
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_profile_update_is_owner_only(db):
    auth = AuthService(db)
    ann = (await auth.register(email="ann@example.com", password="secret123", full_name="Ann")).user
    bob = (await auth.register(email="bob@example.com", password="secret123", full_name="Bob")).user
    ann_caller = Caller(identity_id=ann.id, role=Role.STUDENT)

    service = ProfileService(db)
    updated = await service.update_profile(ann_caller, ann.id, "Ann Lee")
    assert updated.full_name == "Ann Lee"
    with pytest.raises(HTTPException) as exc:
        await service.get_profile(ann_caller, bob.id)
    assert exc.value.status_code == 404
