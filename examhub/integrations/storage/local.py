from pathlib import Path
from urllib.parse import quote

from examhub.core.config import get_settings
from examhub.integrations.storage.base import SignedUpload, StorageProvider


class LocalStorageProvider(StorageProvider):
    """Stores uploads on disk and serves them through the storage routes."""

    name = "local"
    bucket = "local"

    def __init__(self) -> None:
        self.settings = get_settings()
        self.base_dir = Path(self.settings.storage_local_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def sign_upload(self, object_key: str, mime_type: str, size_bytes: int) -> SignedUpload:
        encoded_key = quote(object_key, safe="/")
        prefix = f"{self.settings.api_prefix}/storage"
        return SignedUpload(
            upload_url=f"{prefix}/local-upload/{encoded_key}",
            method="PUT",
            headers={"Content-Type": mime_type},
            public_url=f"{prefix}/public/{encoded_key}",
            object_key=object_key,
            bucket=self.bucket,
        )

    def resolve(self, object_key: str) -> Path | None:
        """Map an object key to a path under the storage dir, or None if it escapes it."""
        target = (self.base_dir / object_key).resolve()
        if not target.is_relative_to(self.base_dir):
            return None
        return target
