from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, claims_user_id, get_current_claims, http_error, require_perm
from cmms.domain.models import (
    WorkOrderCreate,
    WorkOrderDetailRead,
    WorkOrderLaborCreate,
    WorkOrderLaborRead,
    WorkOrderPartCreate,
    WorkOrderPartRead,
    WorkOrderRead,
    WorkOrderUpdate,
)
from cmms.domain.permissions import PERM_WORK_ORDERS_READ, PERM_WORK_ORDERS_WRITE
from cmms.domain.state_machine import WorkOrderStatus
from cmms.infra.audit import set_audit_context
from cmms.services.work_order_service import WorkOrderService

router = APIRouter()


def get_work_order_service() -> WorkOrderService:
    return WorkOrderService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[WorkOrderService, Depends(get_work_order_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "",
    response_model=list[WorkOrderRead],
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def list_work_orders(
    service: Service,
    status: WorkOrderStatus | None = None,
    asset_id: int | None = None,
    assigned_to_id: int | None = None,
) -> list[WorkOrderRead]:
    rows = service.list_work_orders(status=status, asset_id=asset_id, assigned_to_id=assigned_to_id)
    return [WorkOrderRead.model_validate(item) for item in rows]


@router.post(
    "",
    response_model=WorkOrderRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_WRITE))],
)
def create_work_order(payload: WorkOrderCreate, request: Request, claims: Claims, service: Service) -> WorkOrderRead:
    set_audit_context(request, action="work_order.create", detail={"what": {"title": payload.title}})
    try:
        return WorkOrderRead.model_validate(service.create_work_order(claims_user_id(claims), payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/details",
    response_model=list[WorkOrderDetailRead],
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def list_work_order_details(service: Service) -> list[WorkOrderDetailRead]:
    return service.list_work_order_details()


@router.get(
    "/by-number/{work_order_number}",
    response_model=WorkOrderRead,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def get_work_order_by_number(work_order_number: str, service: Service) -> WorkOrderRead:
    try:
        return WorkOrderRead.model_validate(service.get_work_order_by_number(work_order_number))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{work_order_id}",
    response_model=WorkOrderRead,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def get_work_order(work_order_id: int, service: Service) -> WorkOrderRead:
    try:
        return WorkOrderRead.model_validate(service.get_work_order(work_order_id))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{work_order_id}/details",
    response_model=WorkOrderDetailRead,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def get_work_order_details(work_order_id: int, service: Service) -> WorkOrderDetailRead:
    try:
        return service.get_work_order_details(work_order_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.patch(
    "/{work_order_id}",
    response_model=WorkOrderRead,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_WRITE))],
)
def update_work_order(
    work_order_id: int,
    payload: WorkOrderUpdate,
    request: Request,
    claims: Claims,
    service: Service,
) -> WorkOrderRead:
    set_audit_context(
        request,
        action="work_order.update",
        detail={
            "what": {
                "work_order_id": work_order_id,
                "fields": sorted(payload.model_dump(exclude_unset=True)),
                "target_status": payload.status,
            }
        },
    )
    try:
        row = service.update_work_order(work_order_id, claims_user_id(claims), payload)
        return WorkOrderRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{work_order_id}/labor",
    response_model=list[WorkOrderLaborRead],
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def list_labor(work_order_id: int, service: Service) -> list[WorkOrderLaborRead]:
    try:
        return [WorkOrderLaborRead.model_validate(item) for item in service.list_labor(work_order_id)]
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post(
    "/{work_order_id}/labor",
    response_model=WorkOrderLaborRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_WRITE))],
)
def add_labor(
    work_order_id: int,
    payload: WorkOrderLaborCreate,
    request: Request,
    service: Service,
) -> WorkOrderLaborRead:
    set_audit_context(
        request,
        action="work_order.labor.add",
        detail={"what": {"work_order_id": work_order_id, "user_id": payload.user_id, "hours": payload.hours}},
    )
    try:
        return WorkOrderLaborRead.model_validate(service.add_labor(work_order_id, payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{work_order_id}/parts",
    response_model=list[WorkOrderPartRead],
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def list_parts(work_order_id: int, service: Service) -> list[WorkOrderPartRead]:
    try:
        return [WorkOrderPartRead.model_validate(item) for item in service.list_parts(work_order_id)]
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post(
    "/{work_order_id}/parts",
    response_model=WorkOrderPartRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_WRITE))],
)
def issue_part(
    work_order_id: int,
    payload: WorkOrderPartCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> WorkOrderPartRead:
    set_audit_context(
        request,
        action="work_order.part.issue",
        detail={
            "what": {
                "work_order_id": work_order_id,
                "inventory_item_id": payload.inventory_item_id,
                "quantity": payload.quantity,
            }
        },
    )
    try:
        row = service.issue_part(work_order_id, claims_user_id(claims), payload)
        return WorkOrderPartRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
