from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, http_error, require_perm
from cmms.domain.models import InventoryItemCreate, InventoryItemDetailRead, InventoryItemRead, InventoryItemUpdate
from cmms.domain.permissions import PERM_INVENTORY_READ, PERM_INVENTORY_WRITE
from cmms.infra.audit import set_audit_context
from cmms.services.inventory_service import InventoryService

router = APIRouter()


def get_inventory_service() -> InventoryService:
    return InventoryService()


Service = Annotated[InventoryService, Depends(get_inventory_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "",
    response_model=list[InventoryItemRead],
    dependencies=[Depends(require_perm(PERM_INVENTORY_READ))],
)
def list_items(service: Service, low_stock: bool = False) -> list[InventoryItemRead]:
    return [InventoryItemRead.model_validate(item) for item in service.list_items(low_stock_only=low_stock)]


@router.post(
    "",
    response_model=InventoryItemRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_INVENTORY_WRITE))],
)
def create_item(payload: InventoryItemCreate, request: Request, service: Service) -> InventoryItemRead:
    set_audit_context(request, action="inventory_item.create", detail={"what": {"part_number": payload.part_number}})
    try:
        return InventoryItemRead.model_validate(service.create_item(payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/details",
    response_model=list[InventoryItemDetailRead],
    dependencies=[Depends(require_perm(PERM_INVENTORY_READ))],
)
def list_item_details(service: Service) -> list[InventoryItemDetailRead]:
    return service.list_item_details()


@router.get(
    "/by-part-number/{part_number}",
    response_model=InventoryItemRead,
    dependencies=[Depends(require_perm(PERM_INVENTORY_READ))],
)
def get_item_by_part_number(part_number: str, service: Service) -> InventoryItemRead:
    try:
        return InventoryItemRead.model_validate(service.get_item_by_part_number(part_number))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{item_id}",
    response_model=InventoryItemRead,
    dependencies=[Depends(require_perm(PERM_INVENTORY_READ))],
)
def get_item(item_id: int, service: Service) -> InventoryItemRead:
    try:
        return InventoryItemRead.model_validate(service.get_item(item_id))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{item_id}/details",
    response_model=InventoryItemDetailRead,
    dependencies=[Depends(require_perm(PERM_INVENTORY_READ))],
)
def get_item_details(item_id: int, service: Service) -> InventoryItemDetailRead:
    try:
        return service.get_item_details(item_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.patch(
    "/{item_id}",
    response_model=InventoryItemRead,
    dependencies=[Depends(require_perm(PERM_INVENTORY_WRITE))],
)
def update_item(item_id: int, payload: InventoryItemUpdate, request: Request, service: Service) -> InventoryItemRead:
    set_audit_context(
        request,
        action="inventory_item.update",
        detail={"what": {"inventory_item_id": item_id, "fields": sorted(payload.model_dump(exclude_unset=True))}},
    )
    try:
        return InventoryItemRead.model_validate(service.update_item(item_id, payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
