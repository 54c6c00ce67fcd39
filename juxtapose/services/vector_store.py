from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from juxtapose.core.errors import CompressionError, ErrorKind, SyncError
from juxtapose.schemas.vectors import VectorObject
from juxtapose.services.compression import compress_gzip, decompress_gzip

CONTENT_TYPE = "application/gzip"


class BlobStore(Protocol):
    def get_bytes(self, key: str) -> bytes | None:
        ...

    def put_bytes(self, key: str, payload: bytes, content_type: str = "application/octet-stream") -> str:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass(frozen=True)
class LoadResult:
    vector_object: VectorObject | None = None
    error: SyncError | None = None


@dataclass(frozen=True)
class SaveResult:
    uri: str | None = None
    size_bytes: int = 0
    error: SyncError | None = None


def object_key(full_name: str) -> str:
    owner, repo = full_name.split("/", 1)
    return f"{owner}/{repo}.json.gz"


class VectorObjectStore:
    """One gzip-compressed JSON artifact per repository; always written whole."""

    def __init__(self, blobs: BlobStore):
        self.blobs = blobs

    def load(self, full_name: str) -> LoadResult:
        key = object_key(full_name)
        try:
            payload = self.blobs.get_bytes(key)
        except (BotoCoreError, ClientError, OSError) as exc:
            return LoadResult(error=SyncError(ErrorKind.STORAGE, "STORAGE_READ_FAILED", str(exc), retryable=True))
        if payload is None:
            return LoadResult()
        try:
            vector_object = VectorObject.from_json(decompress_gzip(payload))
        except (CompressionError, ValidationError) as exc:
            return LoadResult(error=SyncError(ErrorKind.STORAGE, "ARTIFACT_CORRUPT", f"{key}: {exc}"))
        if vector_object.repo != full_name:
            return LoadResult(
                error=SyncError(ErrorKind.STORAGE, "ARTIFACT_CORRUPT", f"{key} belongs to {vector_object.repo}")
            )
        return LoadResult(vector_object=vector_object)

    def save(self, vector_object: VectorObject) -> SaveResult:
        key = object_key(vector_object.repo)
        payload = compress_gzip(vector_object.to_json())
        try:
            uri = self.blobs.put_bytes(key, payload, content_type=CONTENT_TYPE)
        except (BotoCoreError, ClientError, OSError) as exc:
            return SaveResult(error=SyncError(ErrorKind.STORAGE, "STORAGE_WRITE_FAILED", str(exc), retryable=True))
        return SaveResult(uri=uri, size_bytes=len(payload))

    def delete(self, full_name: str) -> SyncError | None:
        try:
            self.blobs.delete(object_key(full_name))
        except (BotoCoreError, ClientError, OSError) as exc:
            return SyncError(ErrorKind.STORAGE, "STORAGE_WRITE_FAILED", str(exc), retryable=True)
        return None
