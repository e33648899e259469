from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import FileResponse

from cmms.api.deps import MAINTENANCE_ERRORS, http_error, require_perm
from cmms.domain.models import DocumentRead
from cmms.domain.permissions import PERM_DOCUMENTS_READ, PERM_DOCUMENTS_WRITE
from cmms.infra.audit import set_audit_context
from cmms.services.document_service import DocumentService

router = APIRouter()


def get_document_service() -> DocumentService:
    return DocumentService()


Service = Annotated[DocumentService, Depends(get_document_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "/{document_id}/download",
    dependencies=[Depends(require_perm(PERM_DOCUMENTS_READ))],
)
def download_document(document_id: int, service: Service) -> FileResponse:
    try:
        document, path = service.get_download_path(document_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
    return FileResponse(path=path, filename=document.filename, media_type=document.content_type)


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=list[DocumentRead],
    dependencies=[Depends(require_perm(PERM_DOCUMENTS_READ))],
)
def list_documents(entity_type: str, entity_id: int, service: Service) -> list[DocumentRead]:
    try:
        return [DocumentRead.model_validate(item) for item in service.list_documents(entity_type, entity_id)]
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post(
    "/{entity_type}/{entity_id}/upload",
    response_model=DocumentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_DOCUMENTS_WRITE))],
)
async def upload_document(
    entity_type: str,
    entity_id: int,
    request: Request,
    service: Service,
    file_name: Annotated[str, Header(alias="X-File-Name")] = "upload.bin",
) -> DocumentRead:
    set_audit_context(
        request,
        action="document.upload",
        detail={"what": {"entity_type": entity_type, "entity_id": entity_id, "file_name": file_name}},
    )
    content = await request.body()
    content_type = request.headers.get("content-type") or "application/octet-stream"
    try:
        row = service.upload(
            entity_type,
            entity_id,
            file_name=file_name,
            content=content,
            content_type=content_type,
        )
        return DocumentRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_DOCUMENTS_WRITE))],
)
def delete_document(document_id: int, request: Request, service: Service) -> Response:
    set_audit_context(request, action="document.delete", detail={"what": {"document_id": document_id}})
    try:
        service.delete_document(document_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
