from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from cmms.api.deps import MAINTENANCE_ERRORS, claims_user_id, get_current_claims, http_error
from cmms.domain.models import BootstrapAdminRequest, LoginRequest, TokenResponse, UserRead
from cmms.infra.audit import set_audit_context
from cmms.infra.auth import create_access_token
from cmms.services.user_service import UserService

router = APIRouter()


def get_user_service() -> UserService:
    return UserService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[UserService, Depends(get_user_service)]


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, MAINTENANCE_ERRORS):
        raise http_error(exc) from exc
    raise exc


@router.post("/bootstrap-admin", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, request: Request, service: Service) -> UserRead:
    set_audit_context(request, action="auth.bootstrap_admin", detail={"what": {"username": payload.username}})
    try:
        user = service.bootstrap_admin(payload)
        return UserRead.model_validate(user)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, service: Service) -> TokenResponse:
    set_audit_context(request, action="auth.login", detail={"what": {"username": payload.username}})
    try:
        user, permissions = service.login(payload.username, payload.password)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
    token = create_access_token(user_id=user.id, role=user.role, permissions=permissions)
    return TokenResponse(access_token=token, user=UserRead.model_validate(user), permissions=permissions)


@router.get("/me", response_model=UserRead)
def me(claims: Claims, service: Service) -> UserRead:
    try:
        user = service.get_user(claims_user_id(claims))
        return UserRead.model_validate(user)
    except MAINTENANCE_ERRORS as exc:
        _handle_error(exc)
        raise
