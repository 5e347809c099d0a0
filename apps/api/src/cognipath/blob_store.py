from __future__ import annotations

from pathlib import Path
import re
import time
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cognipath.errors import DocumentNotFound, PersistenceFailure

# SigV4 presigned URLs are capped at seven days.
MAX_PRESIGNED_TTL_SECONDS = 7 * 24 * 3600

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def owner_key_prefix(owner_id: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", owner_id).strip("._") or "owner"


def build_document_key(owner_id: str, filename: str, *, now_ms: int | None = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    safe_owner = owner_key_prefix(owner_id)
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", Path(filename).name).strip("._") or "document.pdf"
    return f"{safe_owner}/{stamp}-{safe_name}"


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, *, content_type: str) -> None: ...

    def link_for(self, key: str) -> str: ...

    def delete(self, key: str) -> None: ...


class LocalBlobStore:
    def __init__(self, *, root_dir: Path, base_url: str) -> None:
        self._root_dir = root_dir
        self._base_url = base_url.rstrip("/")

    def _resolve(self, key: str) -> Path:
        target = (self._root_dir / key).resolve()
        if not target.is_relative_to(self._root_dir.resolve()):
            raise PersistenceFailure(f"invalid document key: {key}")
        return target

    def put(self, key: str, data: bytes, *, content_type: str) -> None:
        target = self._resolve(key)
        if target.exists():
            raise PersistenceFailure(f"document already exists: {key}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise PersistenceFailure(f"failed to store document: {exc}") from exc

    def link_for(self, key: str) -> str:
        if not self._resolve(key).exists():
            raise PersistenceFailure(f"document not found: {key}")
        return f"{self._base_url}/{key}"

    def document_path(self, key: str, *, owner_id: str) -> Path:
        """Resolve a stored document for its owner; anything else is not found."""
        owner_dir = (self._root_dir / owner_key_prefix(owner_id)).resolve()
        target = (self._root_dir / key).resolve()
        if not target.is_relative_to(owner_dir) or not target.is_file():
            raise DocumentNotFound(key)
        return target

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceFailure(f"failed to delete document: {exc}") from exc


class S3BlobStore:
    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        link_ttl_seconds: int = MAX_PRESIGNED_TTL_SECONDS,
        client: Any | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket must not be empty")
        self._bucket = bucket
        self._link_ttl_seconds = max(1, min(link_ttl_seconds, MAX_PRESIGNED_TTL_SECONDS))
        self._s3_client = client if client is not None else boto3.client("s3", region_name=region)

    def put(self, key: str, data: bytes, *, content_type: str) -> None:
        try:
            self._s3_client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise PersistenceFailure(f"failed to upload document: {exc}") from exc

    def link_for(self, key: str) -> str:
        try:
            return self._s3_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=self._link_ttl_seconds,
            )
        except (ClientError, BotoCoreError) as exc:
            raise PersistenceFailure(f"failed to create document link: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._s3_client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise PersistenceFailure(f"failed to delete document: {exc}") from exc


def create_blob_store(
    *,
    backend: str,
    blob_dir: str,
    base_url: str,
    s3_bucket: str,
    s3_region: str,
    link_ttl_seconds: int,
) -> BlobStore:
    if backend == "s3":
        return S3BlobStore(bucket=s3_bucket, region=s3_region, link_ttl_seconds=link_ttl_seconds)
    if backend == "local":
        return LocalBlobStore(root_dir=Path(blob_dir), base_url=base_url)
    raise ValueError(f"Unsupported blob backend: {backend}")
