from examhub.core.config import get_settings
from examhub.integrations.storage.base import StorageProvider
from examhub.integrations.storage.local import LocalStorageProvider
from examhub.integrations.storage.s3 import S3StorageProvider


def get_storage_provider() -> StorageProvider:
    if get_settings().storage_provider == "local":
        return LocalStorageProvider()
    return S3StorageProvider()
