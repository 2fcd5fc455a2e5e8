"""Blob storage for engagement attachments.

Two backends share one small interface: a directory on local disk (development
and tests) and an S3-compatible bucket. Callers normally go through
:func:`store_upload`, which names the object, hashes it and writes it in one step.
"""
from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping

from werkzeug.utils import secure_filename


class StorageError(RuntimeError):
    """Raised when a blob cannot be written, read or located."""


class BlobStore:
    def write(self, key: str, payload: bytes, content_type: str | None = None) -> None:
        raise NotImplementedError

    def read_stream(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def has(self, key: str) -> bool:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class DiskBlobStore(BlobStore):
    base_dir: Path

    def _resolve(self, key: str) -> Path:
        base = self.base_dir.resolve()
        target = base.joinpath(*key.replace("\\", "/").strip("/").split("/")).resolve()
        if base != target and base not in target.parents:
            raise StorageError(f"Key {key!r} points outside the storage directory")
        return target

    def write(self, key: str, payload: bytes, content_type: str | None = None) -> None:
        target = self._resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as fh:
            fh.write(payload)

    def read_stream(self, key: str) -> BinaryIO:
        target = self._resolve(key)
        if not target.is_file():
            raise StorageError(f"No blob stored under {key!r}")
        return open(target, "rb")

    def has(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def remove(self, key: str) -> None:
        self._resolve(key).unlink(missing_ok=True)


@dataclass(frozen=True)
class BucketBlobStore(BlobStore):
    bucket: str
    endpoint: str = ""
    region: str = ""
    key_id: str = ""
    secret: str = ""

    def _s3(self):
        import boto3

        endpoint_url = None
        if self.endpoint:
            endpoint_url = self.endpoint if "://" in self.endpoint else f"https://{self.endpoint}"
        return boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=self.region or None,
            aws_access_key_id=self.key_id or None,
            aws_secret_access_key=self.secret or None,
        )

    def write(self, key: str, payload: bytes, content_type: str | None = None) -> None:
        params = {"Bucket": self.bucket, "Key": key, "Body": payload}
        if content_type:
            params["ContentType"] = content_type
        self._s3().put_object(**params)

    def read_stream(self, key: str) -> BinaryIO:
        from botocore.exceptions import ClientError

        try:
            response = self._s3().get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise StorageError(f"Could not fetch {key!r} from bucket {self.bucket}: {e}") from e
        return response["Body"]  # type: ignore[return-value]

    def has(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._s3().head_object(Bucket=self.bucket, Key=key)
        except ClientError:
            return False
        return True

    def remove(self, key: str) -> None:
        self._s3().delete_object(Bucket=self.bucket, Key=key)


def storage_from_config(config: Mapping) -> BlobStore:
    def opt(name: str) -> str:
        return str(config.get(name) or "").strip()

    if opt("STORAGE_BACKEND").lower() == "s3":
        return BucketBlobStore(
            bucket=opt("S3_BUCKET"),
            endpoint=opt("S3_ENDPOINT"),
            region=opt("S3_REGION"),
            key_id=opt("S3_ACCESS_KEY_ID"),
            secret=opt("S3_SECRET_ACCESS_KEY"),
        )
    return DiskBlobStore(base_dir=Path(opt("STORAGE_ROOT") or "storage"))


@dataclass(frozen=True)
class StoredUpload:
    key: str
    sha256: str
    size_bytes: int


def attachment_key(entity_type: str, entity_id: int, filename: str) -> str:
    """``pocs/<id>/<hex>/<name>`` or ``projects/<id>/<hex>/<name>``."""
    name = secure_filename(filename) or "attachment.bin"
    return "/".join((f"{entity_type}s", str(entity_id), uuid.uuid4().hex, name))


def store_upload(
    config: Mapping,
    entity_type: str,
    entity_id: int,
    filename: str,
    payload: bytes,
    content_type: str | None = None,
) -> StoredUpload:
    key = attachment_key(entity_type, entity_id, filename)
    storage_from_config(config).write(key, payload, content_type)
    return StoredUpload(key=key, sha256=hashlib.sha256(payload).hexdigest(), size_bytes=len(payload))
