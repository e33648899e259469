from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

DEFAULT_FILE_NAME = "upload.bin"


class ObjectStorageError(Exception):
    pass


class ObjectStorageNotFoundError(ObjectStorageError):
    pass


@dataclass(frozen=True)
class StoredDocument:
    object_key: str
    size_bytes: int
    checksum: str
    path: Path


class DocumentStorage:
    """Document bodies on the local filesystem under ``<root>/<bucket>/<entity_type>/<entity_id>/``."""

    def __init__(self, root_dir: Path | None = None, bucket: str | None = None) -> None:
        backend = os.getenv("DOCUMENT_STORAGE_BACKEND", "local").strip().lower()
        if backend != "local":
            raise ObjectStorageError(f"unsupported storage backend: {backend}")
        self.bucket = (bucket or os.getenv("DOCUMENT_STORAGE_BUCKET", "documents")).strip()
        if not self.bucket:
            raise ObjectStorageError("document bucket is empty")
        self._base = (root_dir or Path(os.getenv("DOCUMENT_STORAGE_ROOT", "data/uploads"))) / self.bucket
        self._base.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def clean_file_name(file_name: str) -> str:
        name = PurePosixPath(file_name.replace("\\", "/")).name.strip()
        return name or DEFAULT_FILE_NAME

    def build_object_key(self, *, entity_type: str, entity_id: int, unique_id: str, file_name: str) -> str:
        return f"{entity_type}/{entity_id}/{unique_id}-{self.clean_file_name(file_name)}"

    def _resolve(self, object_key: str) -> Path:
        key = PurePosixPath(object_key)
        if not key.parts or key.is_absolute() or ".." in key.parts:
            raise ObjectStorageError(f"invalid object key: {object_key!r}")
        return self._base.joinpath(*key.parts)

    def save(self, *, object_key: str, content: bytes) -> StoredDocument:
        path = self._resolve(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return StoredDocument(
            object_key=object_key,
            size_bytes=len(content),
            checksum=hashlib.sha256(content).hexdigest(),
            path=path,
        )

    def path_for(self, object_key: str) -> Path:
        path = self._resolve(object_key)
        if not path.is_file():
            raise ObjectStorageNotFoundError(object_key)
        return path

    def remove(self, object_key: str) -> bool:
        path = self._resolve(object_key)
        if not path.is_file():
            return False
        path.unlink()
        return True
