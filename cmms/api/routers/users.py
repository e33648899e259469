from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, http_error, require_perm
from cmms.domain.models import UserCreate, UserRead, UserRole, UserUpdate
from cmms.domain.permissions import PERM_USERS_READ, PERM_USERS_WRITE
from cmms.infra.audit import set_audit_context
from cmms.services.user_service import UserService

router = APIRouter()


def get_user_service() -> UserService:
    return UserService()


Service = Annotated[UserService, Depends(get_user_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.get(
    "",
    response_model=list[UserRead],
    dependencies=[Depends(require_perm(PERM_USERS_READ))],
)
def list_users(service: Service, role: UserRole | None = None) -> list[UserRead]:
    return [UserRead.model_validate(item) for item in service.list_users(role=role)]


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_USERS_WRITE))],
)
def create_user(payload: UserCreate, request: Request, service: Service) -> UserRead:
    set_audit_context(
        request,
        action="user.create",
        detail={"what": {"username": payload.username, "role": payload.role}},
    )
    try:
        user = service.create_user(payload)
        return UserRead.model_validate(user)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.get(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_USERS_READ))],
)
def get_user(user_id: int, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(user_id))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_USERS_WRITE))],
)
def update_user(user_id: int, payload: UserUpdate, request: Request, service: Service) -> UserRead:
    set_audit_context(
        request,
        action="user.update",
        detail={"what": {"user_id": user_id, "fields": sorted(payload.model_dump(exclude_unset=True))}},
    )
    try:
        return UserRead.model_validate(service.update_user(user_id, payload))
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
