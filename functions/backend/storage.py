"""
Storage abstraction for Firebase Storage, S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

import boto3
from botocore.config import Config


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def presign_put(
        self, path: str, content_type: str, expires_in: int = 900
    ) -> str:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def delete(self, path: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    deleted_paths: list = field(default_factory=list)

    def presign_put(
        self, path: str, content_type: str, expires_in: int = 900
    ) -> str:
        return f"{self.base_url}/{path}?op=put&expires={expires_in}"

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def delete(self, path: str) -> None:
        self.deleted_paths.append(path)


@dataclass
class FirebaseStorageClient:
    """Firebase Storage (Google Cloud Storage) via the Admin SDK."""

    bucket_name: str | None = None
    _bucket: Any = field(default=None, init=False, repr=False)

    @property
    def bucket(self):
        if self._bucket is None:
            from firebase_admin import storage

            self._bucket = storage.bucket(self.bucket_name)
        return self._bucket

    def presign_put(
        self, path: str, content_type: str, expires_in: int = 900
    ) -> str:
        blob = self.bucket.blob(path)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=expires_in),
            method="PUT",
            content_type=content_type,
        )

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        blob = self.bucket.blob(path)
        return blob.generate_signed_url(
            version="v4", expiration=timedelta(seconds=expires_in), method="GET"
        )

    def delete(self, path: str) -> None:
        self.bucket.blob(path).delete()


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, MinIO, Tencent COS, ...).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def presign_put(
        self, path: str, content_type: str, expires_in: int = 900
    ) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": self.bucket,
                "Key": path,
                "ContentType": content_type,
            },
            ExpiresIn=expires_in,
        )

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def delete(self, path: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=path)
