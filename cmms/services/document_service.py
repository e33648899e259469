from __future__ import annotations

import logging
from pathlib import Path
from uuid import uuid4

from sqlmodel import Session, SQLModel, select

from cmms.domain.errors import InvalidStateError, NotFoundError
from cmms.domain.models import Asset, Document, InventoryItem, PreventiveMaintenance, WorkOrder, WorkRequest
from cmms.infra.db import get_engine
from cmms.infra.object_storage import DocumentStorage, ObjectStorageError, ObjectStorageNotFoundError
from cmms.services.references import require_row

logger = logging.getLogger(__name__)

DOCUMENT_ENTITY_TYPES: dict[str, type[SQLModel]] = {
    "asset": Asset,
    "inventory_item": InventoryItem,
    "work_order": WorkOrder,
    "work_request": WorkRequest,
    "preventive_maintenance": PreventiveMaintenance,
}


class DocumentService:
    def __init__(self, storage: DocumentStorage | None = None) -> None:
        self._storage = storage or DocumentStorage()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _check_entity(self, session: Session, entity_type: str, entity_id: int) -> None:
        model = DOCUMENT_ENTITY_TYPES.get(entity_type)
        if model is None:
            raise InvalidStateError(
                f"unsupported document entity type: {entity_type}",
                detail={"allowed": sorted(DOCUMENT_ENTITY_TYPES)},
            )
        require_row(session, model, entity_id, entity_type.replace("_", " "))

    def list_documents(self, entity_type: str, entity_id: int) -> list[Document]:
        with self._session() as session:
            self._check_entity(session, entity_type, entity_id)
            statement = (
                select(Document)
                .where(Document.entity_type == entity_type)
                .where(Document.entity_id == entity_id)
                .order_by(Document.upload_date.desc(), Document.id.desc())
            )
            return list(session.exec(statement).all())

    def upload(
        self,
        entity_type: str,
        entity_id: int,
        *,
        file_name: str,
        content: bytes,
        content_type: str,
    ) -> Document:
        if not content:
            raise InvalidStateError("uploaded document is empty")
        with self._session() as session:
            self._check_entity(session, entity_type, entity_id)
            object_key = self._storage.build_object_key(
                entity_type=entity_type,
                entity_id=entity_id,
                unique_id=uuid4().hex,
                file_name=file_name,
            )
            try:
                stored = self._storage.save(object_key=object_key, content=content)
            except ObjectStorageError as exc:
                raise InvalidStateError(str(exc)) from exc
            document = Document(
                filename=self._storage.clean_file_name(file_name),
                filesize=stored.size_bytes,
                content_type=content_type,
                entity_type=entity_type,
                entity_id=entity_id,
                object_key=object_key,
            )
            session.add(document)
            try:
                session.commit()
            except Exception:
                self._storage.remove(object_key)
                raise
            session.refresh(document)
        logger.info("stored document %s for %s %s sha256=%s", document.id, entity_type, entity_id, stored.checksum)
        return document

    def get_document(self, document_id: int) -> Document:
        with self._session() as session:
            return require_row(session, Document, document_id, "document")

    def get_download_path(self, document_id: int) -> tuple[Document, Path]:
        document = self.get_document(document_id)
        try:
            return document, self._storage.path_for(document.object_key)
        except ObjectStorageNotFoundError as exc:
            raise NotFoundError("document content", document_id) from exc

    def delete_document(self, document_id: int) -> None:
        with self._session() as session:
            document = require_row(session, Document, document_id, "document")
            object_key = document.object_key
            session.delete(document)
            session.commit()
        if not self._storage.remove(object_key):
            logger.warning("document %s had no stored object at %s", document_id, object_key)
