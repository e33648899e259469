from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status

from cmms.api.deps import MAINTENANCE_ERRORS, claims_user_id, get_current_claims, http_error, require_perm
from cmms.domain.models import (
    PmTechnicianRead,
    PmWorkOrderRead,
    PreventiveMaintenanceCreate,
    PreventiveMaintenanceDetailRead,
    PreventiveMaintenanceRead,
    PreventiveMaintenanceUpdate,
    TechnicianAssignRequest,
    UserRead,
)
from cmms.domain.permissions import PERM_PM_READ, PERM_PM_WRITE
from cmms.infra.audit import set_audit_context
from cmms.services.preventive_maintenance_service import PreventiveMaintenanceService

router = APIRouter()


def get_preventive_maintenance_service() -> PreventiveMaintenanceService:
    return PreventiveMaintenanceService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[PreventiveMaintenanceService, Depends(get_preventive_maintenance_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "",
    response_model=list[PreventiveMaintenanceRead],
    dependencies=[Depends(require_perm(PERM_PM_READ))],
)
def list_schedules(
    service: Service,
    asset_id: int | None = None,
    active: bool | None = None,
) -> list[PreventiveMaintenanceRead]:
    rows = service.list_schedules(asset_id=asset_id, active=active)
    return [PreventiveMaintenanceRead.model_validate(item) for item in rows]


@router.post(
    "",
    response_model=PreventiveMaintenanceRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PM_WRITE))],
)
def create_schedule(
    payload: PreventiveMaintenanceCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> PreventiveMaintenanceRead:
    set_audit_context(
        request,
        action="preventive_maintenance.create",
        detail={
            "what": {
                "title": payload.title,
                "technician_ids": payload.technician_ids or [],
                "generate_work_orders_immediately": payload.generate_work_orders_immediately,
            }
        },
    )
    try:
        row = service.create_schedule(claims_user_id(claims), payload)
        return PreventiveMaintenanceRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/details",
    response_model=list[PreventiveMaintenanceDetailRead],
    dependencies=[Depends(require_perm(PERM_PM_READ))],
)
def list_schedule_details(service: Service) -> list[PreventiveMaintenanceDetailRead]:
    return service.list_schedule_details()


@router.get(
    "/{pm_id}",
    response_model=PreventiveMaintenanceRead,
    dependencies=[Depends(require_perm(PERM_PM_READ))],
)
def get_schedule(pm_id: int, service: Service) -> PreventiveMaintenanceRead:
    try:
        return PreventiveMaintenanceRead.model_validate(service.get_schedule(pm_id))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{pm_id}/details",
    response_model=PreventiveMaintenanceDetailRead,
    dependencies=[Depends(require_perm(PERM_PM_READ))],
)
def get_schedule_details(pm_id: int, service: Service) -> PreventiveMaintenanceDetailRead:
    try:
        return service.get_schedule_details(pm_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.patch(
    "/{pm_id}",
    response_model=PreventiveMaintenanceRead,
    dependencies=[Depends(require_perm(PERM_PM_WRITE))],
)
def update_schedule(
    pm_id: int,
    payload: PreventiveMaintenanceUpdate,
    request: Request,
    service: Service,
) -> PreventiveMaintenanceRead:
    set_audit_context(
        request,
        action="preventive_maintenance.update",
        detail={"what": {"pm_id": pm_id, "fields": sorted(payload.model_dump(exclude_unset=True))}},
    )
    try:
        return PreventiveMaintenanceRead.model_validate(service.update_schedule(pm_id, payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{pm_id}/technicians",
    response_model=list[UserRead],
    dependencies=[Depends(require_perm(PERM_PM_READ))],
)
def list_technicians(pm_id: int, service: Service) -> list[UserRead]:
    try:
        return service.list_technicians(pm_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post(
    "/{pm_id}/technicians",
    response_model=list[PmTechnicianRead],
    dependencies=[Depends(require_perm(PERM_PM_WRITE))],
)
def assign_technicians(
    pm_id: int,
    payload: TechnicianAssignRequest,
    request: Request,
    service: Service,
) -> list[PmTechnicianRead]:
    set_audit_context(
        request,
        action="preventive_maintenance.technicians.assign",
        detail={"what": {"pm_id": pm_id, "technician_ids": payload.technician_ids}},
    )
    try:
        rows = service.assign_technicians(pm_id, payload.technician_ids)
        return [PmTechnicianRead.model_validate(item) for item in rows]
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.delete(
    "/{pm_id}/technicians/{technician_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PM_WRITE))],
)
def remove_technician(pm_id: int, technician_id: int, request: Request, service: Service) -> Response:
    set_audit_context(
        request,
        action="preventive_maintenance.technicians.remove",
        detail={"what": {"pm_id": pm_id, "technician_id": technician_id}},
    )
    try:
        service.remove_technician(pm_id, technician_id)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{pm_id}/generate",
    response_model=list[PmWorkOrderRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PM_WRITE))],
)
def generate_work_orders(
    pm_id: int,
    request: Request,
    claims: Claims,
    service: Service,
    force: bool = False,
) -> list[PmWorkOrderRead]:
    set_audit_context(
        request,
        action="preventive_maintenance.generate",
        detail={"what": {"pm_id": pm_id, "force": force}},
    )
    try:
        rows = service.generate_work_orders(pm_id, force=force, actor_id=claims_user_id(claims))
        return [PmWorkOrderRead.model_validate(item) for item in rows]
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{pm_id}/work-orders",
    response_model=list[PmWorkOrderRead],
    dependencies=[Depends(require_perm(PERM_PM_READ))],
)
def list_generated_work_orders(pm_id: int, service: Service) -> list[PmWorkOrderRead]:
    try:
        return [PmWorkOrderRead.model_validate(item) for item in service.list_generated_work_orders(pm_id)]
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
