from pathlib import Path
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.core.config import get_settings
from examhub.core.errors import NotFound, Unauthorized, ValidationFailed
from examhub.core.policies import Caller, can_manage_exam
from examhub.integrations.storage.factory import get_storage_provider
from examhub.models.domain import MediaAsset
from examhub.repositories.exam_repository import ExamRepository

logger = structlog.get_logger()


class StorageService:
    """Signed uploads for question images."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.provider = get_storage_provider()
        self.allowed_mimes = {m.strip() for m in self.settings.storage_allowed_mime.split(",") if m.strip()}

    async def sign_upload(
        self,
        caller: Caller,
        file_name: str,
        mime_type: str,
        size_bytes: int,
        exam_id: UUID | None = None,
    ) -> tuple[MediaAsset, dict]:
        if not caller.is_manager:
            raise Unauthorized("Only teachers can upload question images", entity="asset", constraint="teacher_role")
        if mime_type not in self.allowed_mimes:
            raise ValidationFailed("Only image uploads are allowed", entity="asset", constraint="mime_type")
        if size_bytes > self.settings.storage_max_file_size:
            raise ValidationFailed("File is too large", entity="asset", constraint="max_file_size")
        if exam_id is not None:
            exam = await ExamRepository(self.db).get_by_id(exam_id)
            if not exam or not can_manage_exam(caller, exam):
                raise NotFound("Exam not found", entity="exam")

        ext = Path(file_name).suffix.lower()
        scope = exam_id.hex if exam_id else "unassigned"
        object_key = f"questions/{caller.identity_id.hex}/{scope}/{uuid4().hex}{ext}"
        signed = self.provider.sign_upload(object_key=object_key, mime_type=mime_type, size_bytes=size_bytes)
        row = MediaAsset(
            owner_id=caller.identity_id,
            exam_id=exam_id,
            provider=self.provider.name,
            bucket=signed.bucket,
            object_key=signed.object_key,
            public_url=signed.public_url,
            mime_type=mime_type,
            size_bytes=size_bytes,
            is_completed=False,
        )
        self.db.add(row)
        await self.db.flush()
        logger.info("upload_signed", asset_id=str(row.id), provider=row.provider)
        return row, {
            "upload_url": signed.upload_url,
            "method": signed.method,
            "headers": signed.headers,
            "fields": signed.fields,
            "asset_id": row.id,
            "public_url": row.public_url,
        }

    async def complete_upload(self, caller: Caller, asset_id: UUID) -> MediaAsset:
        res = await self.db.execute(select(MediaAsset).where(MediaAsset.id == asset_id))
        row = res.scalar_one_or_none()
        if not row or row.owner_id != caller.identity_id:
            raise NotFound("Asset not found", entity="asset")
        row.is_completed = True
        await self.db.flush()
        return row
