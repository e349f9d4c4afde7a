import pytest

from examhub.core.config import get_settings
from examhub.core.constants import Role
from examhub.core.errors import NotFound, Unauthorized, ValidationFailed
from examhub.integrations.storage.local import LocalStorageProvider
from examhub.services.storage_service import StorageService


@pytest.fixture
def local_storage(tmp_path, monkeypatch):
    monkeypatch.setenv("STORAGE_PROVIDER", "local")
    monkeypatch.setenv("STORAGE_LOCAL_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_teacher_uploads_question_image(db, local_storage, teacher, make_exam):
    exam = await make_exam(teacher)
    service = StorageService(db)

    row, signed = await service.sign_upload(teacher, "diagram.PNG", "image/png", 1024, exam_id=exam["id"])
    assert signed["method"] == "PUT"
    assert signed["upload_url"].startswith("/api/v1/storage/local-upload/questions/")
    assert row.object_key.endswith(".png")
    assert row.is_completed is False

    done = await service.complete_upload(teacher, row.id)
    assert done.is_completed is True


@pytest.mark.asyncio
async def test_upload_rules(db, local_storage, teacher, student, make_caller, make_exam):
    service = StorageService(db)

    with pytest.raises(Unauthorized):
        await service.sign_upload(student, "a.png", "image/png", 10)
    with pytest.raises(ValidationFailed):
        await service.sign_upload(teacher, "a.pdf", "application/pdf", 10)
    with pytest.raises(ValidationFailed):
        await service.sign_upload(teacher, "a.png", "image/png", 50 * 1024 * 1024)

    other = await make_caller(Role.TEACHER)
    exam = await make_exam(teacher)
    with pytest.raises(NotFound):
        await service.sign_upload(other, "a.png", "image/png", 10, exam_id=exam["id"])

    row, _ = await service.sign_upload(teacher, "a.png", "image/png", 10)
    with pytest.raises(NotFound):
        await service.complete_upload(other, row.id)


def test_local_paths_stay_inside_storage_dir(local_storage):
    provider = LocalStorageProvider()
    assert provider.resolve("questions/a.png") == (local_storage / "questions" / "a.png").resolve()
    assert provider.resolve("../escape.png") is None
