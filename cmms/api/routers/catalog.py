from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, http_error, require_perm
from cmms.domain.models import (
    AssetTypeCreate,
    AssetTypeRead,
    InventoryCategoryCreate,
    InventoryCategoryRead,
    WorkOrderTypeCreate,
    WorkOrderTypeRead,
)
from cmms.domain.permissions import (
    PERM_ASSETS_READ,
    PERM_ASSETS_WRITE,
    PERM_INVENTORY_READ,
    PERM_INVENTORY_WRITE,
    PERM_WORK_ORDERS_READ,
    PERM_WORK_ORDERS_WRITE,
)
from cmms.infra.audit import set_audit_context
from cmms.services.catalog_service import CatalogService

router = APIRouter()


def get_catalog_service() -> CatalogService:
    return CatalogService()


Service = Annotated[CatalogService, Depends(get_catalog_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "/asset-types",
    response_model=list[AssetTypeRead],
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def list_asset_types(service: Service) -> list[AssetTypeRead]:
    return [AssetTypeRead.model_validate(item) for item in service.list_asset_types()]


@router.post(
    "/asset-types",
    response_model=AssetTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ASSETS_WRITE))],
)
def create_asset_type(payload: AssetTypeCreate, request: Request, service: Service) -> AssetTypeRead:
    set_audit_context(request, action="asset_type.create", detail={"what": {"name": payload.name}})
    try:
        return AssetTypeRead.model_validate(service.create_asset_type(payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/inventory-categories",
    response_model=list[InventoryCategoryRead],
    dependencies=[Depends(require_perm(PERM_INVENTORY_READ))],
)
def list_inventory_categories(service: Service) -> list[InventoryCategoryRead]:
    return [InventoryCategoryRead.model_validate(item) for item in service.list_inventory_categories()]


@router.post(
    "/inventory-categories",
    response_model=InventoryCategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_INVENTORY_WRITE))],
)
def create_inventory_category(
    payload: InventoryCategoryCreate,
    request: Request,
    service: Service,
) -> InventoryCategoryRead:
    set_audit_context(request, action="inventory_category.create", detail={"what": {"name": payload.name}})
    try:
        return InventoryCategoryRead.model_validate(service.create_inventory_category(payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/work-order-types",
    response_model=list[WorkOrderTypeRead],
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_READ))],
)
def list_work_order_types(service: Service) -> list[WorkOrderTypeRead]:
    return [WorkOrderTypeRead.model_validate(item) for item in service.list_work_order_types()]


@router.post(
    "/work-order-types",
    response_model=WorkOrderTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_WORK_ORDERS_WRITE))],
)
def create_work_order_type(payload: WorkOrderTypeCreate, request: Request, service: Service) -> WorkOrderTypeRead:
    set_audit_context(request, action="work_order_type.create", detail={"what": {"name": payload.name}})
    try:
        return WorkOrderTypeRead.model_validate(service.create_work_order_type(payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
