from uuid import UUID

from pydantic import BaseModel, Field


class SignUploadRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str
    size_bytes: int = Field(gt=0)
    exam_id: UUID | None = None


class SignedUploadResponse(BaseModel):
    upload_url: str
    method: str
    headers: dict[str, str]
    fields: dict[str, str]
    asset_id: UUID
    public_url: str


class CompleteUploadRequest(BaseModel):
    asset_id: UUID


class AssetOut(BaseModel):
    id: UUID
    exam_id: UUID | None
    public_url: str
    mime_type: str
    size_bytes: int
    provider: str
