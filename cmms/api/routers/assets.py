from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, http_error, require_perm
from cmms.domain.models import AssetCreate, AssetDetailRead, AssetRead, AssetUpdate
from cmms.domain.permissions import PERM_ASSETS_READ, PERM_ASSETS_WRITE
from cmms.infra.audit import set_audit_context
from cmms.services.asset_service import AssetService

router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


Service = Annotated[AssetService, Depends(get_asset_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "",
    response_model=list[AssetRead],
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def list_assets(service: Service) -> list[AssetRead]:
    return [AssetRead.model_validate(item) for item in service.list_assets()]


@router.post(
    "",
    response_model=AssetRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ASSETS_WRITE))],
)
def create_asset(payload: AssetCreate, request: Request, service: Service) -> AssetRead:
    set_audit_context(request, action="asset.create", detail={"what": {"asset_number": payload.asset_number}})
    try:
        return AssetRead.model_validate(service.create_asset(payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/details",
    response_model=list[AssetDetailRead],
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def list_asset_details(service: Service) -> list[AssetDetailRead]:
    return service.list_asset_details()


@router.get(
    "/by-number/{asset_number}",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def get_asset_by_number(asset_number: str, service: Service) -> AssetRead:
    try:
        return AssetRead.model_validate(service.get_asset_by_number(asset_number))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{asset_id}",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def get_asset(asset_id: int, service: Service) -> AssetRead:
    try:
        return AssetRead.model_validate(service.get_asset(asset_id))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{asset_id}/details",
    response_model=AssetDetailRead,
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def get_asset_details(asset_id: int, service: Service) -> AssetDetailRead:
    try:
        return service.get_asset_details(asset_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.patch(
    "/{asset_id}",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSETS_WRITE))],
)
def update_asset(asset_id: int, payload: AssetUpdate, request: Request, service: Service) -> AssetRead:
    set_audit_context(
        request,
        action="asset.update",
        detail={"what": {"asset_id": asset_id, "fields": sorted(payload.model_dump(exclude_unset=True))}},
    )
    try:
        return AssetRead.model_validate(service.update_asset(asset_id, payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
