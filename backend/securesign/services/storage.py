from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

import boto3
from botocore.client import Config as BotoConfig

from securesign.core.config import settings

ORIGINALS_ROOT = "originals"
SIGNED_ROOT = "signed"


def resolve_storage_root() -> Path:
    """
    Directory where local blobs live. ``SECURESIGN_STORAGE`` wins over settings
    so tests can redirect storage to a temporary directory.
    """
    raw = os.getenv("SECURESIGN_STORAGE") or settings.securesign_storage or "_storage"
    return Path(raw).expanduser().resolve()


def build_blob_name(filename: str | None, suffix: str = ".pdf") -> str:
    """Unique blob name; blobs are never overwritten."""
    stem = Path(filename or "document").stem.replace("\\", "_").replace("/", "_") or "document"
    return f"{uuid4().hex}-{stem}{suffix}"


class StorageBackend(Protocol):
    def save_bytes(self, *, root: str, name: str, data: bytes) -> str:  # returns blob reference
        ...

    def presigned_url(self, *, path: str, expires_seconds: int = 3600) -> str | None:
        ...

    def load_bytes(self, path: str) -> bytes:
        ...

    def delete(self, path: str) -> None:
        ...


@dataclass
class LocalStorage:
    base_dir: Path

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / path
        return candidate.resolve()

    def save_bytes(self, *, root: str, name: str, data: bytes) -> str:
        target_dir = self.base_dir / root
        target_dir.mkdir(parents=True, exist_ok=True)
        file_path = target_dir / name
        if file_path.exists():
            raise FileExistsError(f"Blob {root}/{name} already exists.")
        file_path.write_bytes(data)
        return f"{root}/{name}"

    def presigned_url(self, *, path: str, expires_seconds: int = 3600) -> str | None:  # noqa: ARG002
        return None

    def load_bytes(self, path: str) -> bytes:
        file_path = self._resolve(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Blob {path!r} was not found in the configured storage.")
        return file_path.read_bytes()

    def delete(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)


@dataclass
class S3Storage:
    bucket: str
    client: Any

    @staticmethod
    def _split(path: str) -> tuple[str, str]:
        if not path.startswith("s3://"):
            raise ValueError("Expected s3:// path for S3 storage")
        _, rest = path.split("s3://", 1)
        bucket, key = rest.split("/", 1)
        return bucket, key

    def save_bytes(self, *, root: str, name: str, data: bytes) -> str:
        key = f"{root.strip('/')}/{name}"
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType="application/pdf")
        return f"s3://{self.bucket}/{key}"

    def presigned_url(self, *, path: str, expires_seconds: int = 3600) -> str | None:
        if not path.startswith("s3://"):
            return None
        bucket, key = self._split(path)
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_seconds,
        )

    def load_bytes(self, path: str) -> bytes:
        bucket, key = self._split(path)
        response = self.client.get_object(Bucket=bucket, Key=key)
        body = response.get("Body")
        return body.read() if body else b""

    def delete(self, path: str) -> None:
        bucket, key = self._split(path)
        self.client.delete_object(Bucket=bucket, Key=key)


def get_storage() -> StorageBackend:
    # Tests and explicit local paths always use the filesystem
    if os.getenv("PYTEST_CURRENT_TEST") or os.getenv("SECURESIGN_STORAGE"):
        return LocalStorage(base_dir=resolve_storage_root())

    if settings.s3_endpoint_url and settings.s3_access_key and settings.s3_secret_key and settings.s3_bucket_documents:
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            config=BotoConfig(signature_version="s3v4"),
            region_name=settings.s3_region,
        )
        return S3Storage(bucket=settings.s3_bucket_documents, client=client)

    return LocalStorage(base_dir=resolve_storage_root())
