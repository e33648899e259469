from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, claims_user_id, get_current_claims, http_error, require_perm
from cmms.domain.models import (
    WorkOrderRead,
    WorkRequestConvertRequest,
    WorkRequestCreate,
    WorkRequestDetailRead,
    WorkRequestRead,
    WorkRequestUpdate,
)
from cmms.domain.permissions import PERM_WORK_REQUESTS_CONVERT, PERM_WORK_REQUESTS_READ, PERM_WORK_REQUESTS_WRITE
from cmms.domain.state_machine import WorkOrderStatus
from cmms.infra.audit import set_audit_context
from cmms.services.work_request_service import WorkRequestService

router = APIRouter()


def get_work_request_service() -> WorkRequestService:
    return WorkRequestService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[WorkRequestService, Depends(get_work_request_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "",
    response_model=list[WorkRequestRead],
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_READ))],
)
def list_work_requests(
    service: Service,
    status: WorkOrderStatus | None = None,
    requested_by_id: int | None = None,
    converted: bool | None = None,
) -> list[WorkRequestRead]:
    rows = service.list_requests(status=status, requested_by_id=requested_by_id, converted=converted)
    return [WorkRequestRead.model_validate(item) for item in rows]


@router.post(
    "",
    response_model=WorkRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_WRITE))],
)
def create_work_request(
    payload: WorkRequestCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> WorkRequestRead:
    set_audit_context(request, action="work_request.create", detail={"what": {"title": payload.title}})
    try:
        return WorkRequestRead.model_validate(service.create_request(claims_user_id(claims), payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/details",
    response_model=list[WorkRequestDetailRead],
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_READ))],
)
def list_work_request_details(service: Service) -> list[WorkRequestDetailRead]:
    return service.list_request_details()


@router.get(
    "/{request_id}",
    response_model=WorkRequestRead,
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_READ))],
)
def get_work_request(request_id: int, service: Service) -> WorkRequestRead:
    try:
        return WorkRequestRead.model_validate(service.get_request(request_id))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{request_id}/details",
    response_model=WorkRequestDetailRead,
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_READ))],
)
def get_work_request_details(request_id: int, service: Service) -> WorkRequestDetailRead:
    try:
        return service.get_request_details(request_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.patch(
    "/{request_id}",
    response_model=WorkRequestRead,
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_WRITE))],
)
def update_work_request(
    request_id: int,
    payload: WorkRequestUpdate,
    request: Request,
    service: Service,
) -> WorkRequestRead:
    set_audit_context(
        request,
        action="work_request.update",
        detail={"what": {"work_request_id": request_id, "fields": sorted(payload.model_dump(exclude_unset=True))}},
    )
    try:
        return WorkRequestRead.model_validate(service.update_request(request_id, payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post(
    "/{request_id}/convert",
    response_model=WorkOrderRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_WORK_REQUESTS_CONVERT))],
)
def convert_work_request(
    request_id: int,
    request: Request,
    claims: Claims,
    service: Service,
    payload: Annotated[WorkRequestConvertRequest | None, Body()] = None,
) -> WorkOrderRead:
    set_audit_context(
        request,
        action="work_request.convert",
        detail={
            "what": {
                "work_request_id": request_id,
                "overrides": sorted(payload.model_dump(exclude_none=True)) if payload is not None else [],
            }
        },
    )
    try:
        work_order = service.convert(request_id, payload, actor_id=claims_user_id(claims))
        return WorkOrderRead.model_validate(work_order)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
