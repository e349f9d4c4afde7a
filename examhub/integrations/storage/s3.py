import boto3
from botocore.config import Config

from examhub.core.config import get_settings
from examhub.integrations.storage.base import SignedUpload, StorageProvider


class S3StorageProvider(StorageProvider):
    """S3 compatible storage (MinIO, Supabase). Uploads use a POST policy so the size cap is enforced remotely."""

    name = "s3"

    def __init__(self) -> None:
        self.settings = get_settings()
        self.bucket = self.settings.s3_bucket
        self.client = boto3.client(
            "s3",
            endpoint_url=self.settings.s3_endpoint or None,
            region_name=self.settings.s3_region,
            aws_access_key_id=self.settings.s3_access_key or None,
            aws_secret_access_key=self.settings.s3_secret_key or None,
            config=Config(signature_version="s3v4"),
        )

    def sign_upload(self, object_key: str, mime_type: str, size_bytes: int) -> SignedUpload:
        post = self.client.generate_presigned_post(
            Bucket=self.bucket,
            Key=object_key,
            Fields={"Content-Type": mime_type},
            Conditions=[
                {"Content-Type": mime_type},
                ["content-length-range", 1, min(size_bytes, self.settings.storage_max_file_size)],
            ],
            ExpiresIn=self.settings.storage_sign_ttl_seconds,
        )
        return SignedUpload(
            upload_url=post["url"],
            method="POST",
            public_url=self.public_url(object_key),
            object_key=object_key,
            bucket=self.bucket,
            fields={key: str(value) for key, value in post["fields"].items()},
        )

    def public_url(self, object_key: str) -> str:
        base = self.settings.s3_public_base_url.rstrip("/")
        if base:
            return f"{base}/{object_key}"
        endpoint = (self.settings.s3_endpoint or f"https://s3.{self.settings.s3_region}.amazonaws.com").rstrip("/")
        return f"{endpoint}/{self.bucket}/{object_key}"
