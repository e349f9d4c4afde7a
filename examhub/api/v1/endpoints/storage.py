from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from examhub.api.deps import db_session, get_caller
from examhub.core.config import get_settings
from examhub.core.policies import Caller
from examhub.integrations.storage.local import LocalStorageProvider
from examhub.schemas.storage import AssetOut, CompleteUploadRequest, SignedUploadResponse, SignUploadRequest
from examhub.services.storage_service import StorageService

router = APIRouter(prefix="/storage", tags=["storage"])


def _local_provider() -> LocalStorageProvider:
    if get_settings().storage_provider != "local":
        raise HTTPException(status_code=404, detail="Not found")
    return LocalStorageProvider()


@router.post("/uploads/sign", response_model=SignedUploadResponse)
async def sign_upload(
    payload: SignUploadRequest, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)
):
    service = StorageService(db)
    _, data = await service.sign_upload(
        caller,
        file_name=payload.file_name,
        mime_type=payload.mime_type,
        size_bytes=payload.size_bytes,
        exam_id=payload.exam_id,
    )
    await db.commit()
    return SignedUploadResponse(**data)


@router.post("/uploads/complete", response_model=AssetOut)
async def complete_upload(
    payload: CompleteUploadRequest, caller: Caller = Depends(get_caller), db: AsyncSession = Depends(db_session)
):
    service = StorageService(db)
    row = await service.complete_upload(caller, payload.asset_id)
    await db.commit()
    return AssetOut(
        id=row.id,
        exam_id=row.exam_id,
        public_url=row.public_url,
        mime_type=row.mime_type,
        size_bytes=row.size_bytes,
        provider=row.provider,
    )


@router.put("/local-upload/{object_key:path}")
async def local_upload(object_key: str, request: Request, provider: LocalStorageProvider = Depends(_local_provider)):
    target = provider.resolve(object_key)
    if target is None:
        raise HTTPException(status_code=400, detail="Invalid path")
    body = await request.body()
    if len(body) > get_settings().storage_max_file_size:
        raise HTTPException(status_code=413, detail="File too large")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(body)
    return {"ok": True}


@router.get("/public/{object_key:path}")
async def local_public(object_key: str, provider: LocalStorageProvider = Depends(_local_provider)):
    target = provider.resolve(object_key)
    if target is None or not target.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(target)
