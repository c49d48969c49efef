# Overview: Object storage gateway; bucket-scoped upload/download/remove keyed by path.

"""
Object storage for attachments.

Every attachment owner type has its own bucket (see constants.BUCKETS). Objects
are addressed by a relative ``path`` inside the bucket, e.g.
``reviews/12/1718000000000-proposal.pdf``.

Two backends are available:
- LocalBucketStore: files under ``STORAGE_ROOT/<bucket>/<path>`` (dev/tests)
- S3BucketStore: one S3 bucket per logical bucket, optionally prefixed
"""

from __future__ import annotations

import os
from functools import cached_property
from pathlib import Path, PurePosixPath

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .constants import BUCKETS


class StorageError(ValueError):
    """Raised when an object storage call fails."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when the requested object does not exist."""
    pass


def _clean_path(path: str) -> str:
    raw = (path or "").strip().replace("\\", "/")
    parts = PurePosixPath(raw).parts
    if not parts or raw.startswith("/") or any(p in ("..", ".") for p in parts):
        raise StorageError(f"Invalid object path: {path!r}")
    return "/".join(parts)


class LocalBucketStore:
    def __init__(self, root: str | os.PathLike):
        self.root = Path(root)

    def _target(self, bucket: str, path: str) -> Path:
        return self.root / bucket / _clean_path(path)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> None:
        target = self._target(bucket, path)
        if target.exists():
            raise StorageError(f"Object already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {bucket}/{path}: {exc}") from exc

    def download(self, bucket: str, path: str) -> bytes:
        target = self._target(bucket, path)
        if not target.is_file():
            raise ObjectNotFoundError(f"Object not found: {bucket}/{path}")
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {bucket}/{path}: {exc}") from exc

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            target = self._target(bucket, path)
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"Failed to remove {bucket}/{path}: {exc}") from exc

    def exists(self, bucket: str, path: str) -> bool:
        return self._target(bucket, path).is_file()


class S3BucketStore:
    def __init__(self, *, region: str | None = None, bucket_prefix: str = ""):
        self.region = region
        self.bucket_prefix = bucket_prefix or ""

    @cached_property
    def client(self):
        return boto3.client("s3", region_name=self.region)

    def _bucket(self, bucket: str) -> str:
        return f"{self.bucket_prefix}{bucket}"

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> None:
        kwargs = {"Bucket": self._bucket(bucket), "Key": _clean_path(path), "Body": data or b""}
        if content_type:
            kwargs["ContentType"] = str(content_type)
        try:
            self.client.put_object(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload {bucket}/{path}: {exc}") from exc

    def download(self, bucket: str, path: str) -> bytes:
        try:
            resp = self.client.get_object(Bucket=self._bucket(bucket), Key=_clean_path(path))
            return resp["Body"].read()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                raise ObjectNotFoundError(f"Object not found: {bucket}/{path}") from exc
            raise StorageError(f"Failed to download {bucket}/{path}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to download {bucket}/{path}: {exc}") from exc

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        try:
            resp = self.client.delete_objects(
                Bucket=self._bucket(bucket),
                Delete={"Objects": [{"Key": _clean_path(p)} for p in paths]},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to remove objects from {bucket}: {exc}") from exc
        # delete_objects reports per-key failures in the response body
        errors = resp.get("Errors") or []
        if errors:
            failed = ", ".join(f"{e.get('Key')} ({e.get('Code')})" for e in errors)
            raise StorageError(f"Failed to remove objects from {bucket}: {failed}")

    def exists(self, bucket: str, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self._bucket(bucket), Key=_clean_path(path))
            return True
        except ClientError:
            return False


class ObjectStorage:
    """
    Flask extension wrapping the configured bucket store.

    Bucket names are validated here so a typo never silently creates a new
    bucket directory or hits the wrong S3 bucket.
    """

    def __init__(self, app=None):
        self.backend = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        kind = app.config.get("STORAGE_BACKEND", "local")
        if kind == "local":
            root = app.config.get("STORAGE_ROOT") or "storage"
            if not os.path.isabs(root):
                root = os.path.join(app.instance_path, root)
            self.backend = LocalBucketStore(root)
        elif kind == "s3":
            self.backend = S3BucketStore(
                region=app.config.get("STORAGE_S3_REGION"),
                bucket_prefix=app.config.get("STORAGE_BUCKET_PREFIX", ""),
            )
        else:
            raise RuntimeError(f"Unknown STORAGE_BACKEND: {kind}")
        app.extensions["object_storage"] = self

    def _require(self, bucket: str):
        if bucket not in BUCKETS:
            raise StorageError(f"Unknown bucket: {bucket}")
        if self.backend is None:
            raise RuntimeError("Object storage is not initialized")
        return self.backend

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> None:
        self._require(bucket).upload(bucket, path, data, content_type)

    def download(self, bucket: str, path: str) -> bytes:
        return self._require(bucket).download(bucket, path)

    def remove(self, bucket: str, paths: list[str]) -> None:
        self._require(bucket).remove(bucket, list(paths))

    def exists(self, bucket: str, path: str) -> bool:
        return self._require(bucket).exists(bucket, path)
