from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status

from cmms.api.deps import MAINTENANCE_ERRORS, claims_user_id, get_current_claims, http_error
from cmms.domain.models import NotificationCountRead, NotificationCreate, NotificationRead, NotificationStatus
from cmms.domain.permissions import PERM_NOTIFICATIONS_MANAGE, has_permission
from cmms.infra.audit import set_audit_context
from cmms.services.notification_service import NotificationService

router = APIRouter()


def get_notification_service() -> NotificationService:
    return NotificationService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[NotificationService, Depends(get_notification_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


def _can_manage(claims: dict[str, Any]) -> bool:
    return has_permission(claims, PERM_NOTIFICATIONS_MANAGE)


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    claims: Claims,
    service: Service,
    status: NotificationStatus | None = None,
) -> list[NotificationRead]:
    rows = service.list_notifications(claims_user_id(claims), status=status)
    return [NotificationRead.model_validate(item) for item in rows]


@router.get("/count", response_model=NotificationCountRead)
def count_unread(claims: Claims, service: Service) -> NotificationCountRead:
    return NotificationCountRead(count=service.count_unread(claims_user_id(claims)))


@router.post("/read-all", response_model=NotificationCountRead)
def mark_all_read(request: Request, claims: Claims, service: Service) -> NotificationCountRead:
    set_audit_context(request, action="notification.read_all")
    return NotificationCountRead(count=service.mark_all_read(claims_user_id(claims)))


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> NotificationRead:
    set_audit_context(request, action="notification.create", detail={"what": {"user_id": payload.user_id}})
    try:
        row = service.create_notification(claims_user_id(claims), payload, can_manage=_can_manage(claims))
        return NotificationRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(notification_id: int, claims: Claims, service: Service) -> NotificationRead:
    try:
        row = service.get_notification(notification_id, claims_user_id(claims), can_manage=_can_manage(claims))
        return NotificationRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: int, request: Request, claims: Claims, service: Service) -> NotificationRead:
    set_audit_context(request, action="notification.read", detail={"what": {"notification_id": notification_id}})
    try:
        row = service.mark_read(notification_id, claims_user_id(claims), can_manage=_can_manage(claims))
        return NotificationRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post("/{notification_id}/dismiss", response_model=NotificationRead)
def dismiss(notification_id: int, request: Request, claims: Claims, service: Service) -> NotificationRead:
    set_audit_context(request, action="notification.dismiss", detail={"what": {"notification_id": notification_id}})
    try:
        row = service.dismiss(notification_id, claims_user_id(claims), can_manage=_can_manage(claims))
        return NotificationRead.model_validate(row)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: int, request: Request, claims: Claims, service: Service) -> Response:
    set_audit_context(request, action="notification.delete", detail={"what": {"notification_id": notification_id}})
    try:
        service.delete_notification(notification_id, claims_user_id(claims), can_manage=_can_manage(claims))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
