from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class SignedUpload:
    upload_url: str
    method: str
    public_url: str
    object_key: str
    bucket: str
    headers: dict[str, str] = field(default_factory=dict)
    # Form fields for POST policy uploads; empty for plain PUT uploads.
    fields: dict[str, str] = field(default_factory=dict)


class StorageProvider(ABC):
    name: str = "base"

    @abstractmethod
    def sign_upload(self, object_key: str, mime_type: str, size_bytes: int) -> SignedUpload: ...
