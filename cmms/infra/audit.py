"""Request audit trail.

Every write request, plus downloads, leaves one ``audit_logs`` row describing
who acted, on which resource, and with what outcome. Routers enrich the row
through :func:`set_audit_context`, typically with a ``what`` section naming the
fields they touched.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cmms.domain.models import AuditLog, now_utc
from cmms.infra.db import get_engine

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
AUDITED_READ_SUFFIXES = ("/download",)
UNAUDITED_PATHS = frozenset({"/healthz", "/readyz"})
API_PREFIX = "/api/"
CONTEXT_KEY = "_audit_context"


def write_audit_log(
    *,
    actor_id: int | None,
    action: str,
    resource: str,
    method: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> None:
    with Session(get_engine()) as session:
        session.add(
            AuditLog(
                actor_id=actor_id,
                action=action,
                resource=resource,
                method=method,
                status_code=status_code,
                detail=detail or {},
            )
        )
        session.commit()


def merge_detail(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        current = merged.get(key)
        merged[key] = merge_detail(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def outcome_for(status_code: int) -> str:
    if status_code < 400:
        return "success"
    if status_code in (401, 403, 404):
        return "denied"
    return "error" if status_code >= 500 else "rejected"


def is_audited(method: str, path: str) -> bool:
    if path in UNAUDITED_PATHS:
        return False
    return method in WRITE_METHODS or path.endswith(AUDITED_READ_SUFFIXES)


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    context = dict(getattr(request.state, CONTEXT_KEY, None) or {})
    if action is not None:
        context["action"] = action
    if resource is not None:
        context["resource"] = resource
    if detail:
        context["detail"] = merge_detail(context.get("detail") or {}, detail)
    setattr(request.state, CONTEXT_KEY, context)


def _actor_id(claims: dict[str, Any]) -> int | None:
    subject = claims.get("sub")
    return int(subject) if isinstance(subject, str) and subject.isdigit() else None


def _default_resource(path: str, path_params: dict[str, Any]) -> str:
    """``/api/work-orders/7/parts`` with ``{"work_order_id": 7}`` becomes ``work-orders:7``."""
    if not path.startswith(API_PREFIX):
        return path
    collection = path[len(API_PREFIX) :].split("/", 1)[0]
    ids = [str(value) for key, value in path_params.items() if key.endswith("_id")]
    return f"{collection}:{ids[0]}" if ids else collection


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        method = request.method
        path = request.url.path
        context = getattr(request.state, CONTEXT_KEY, None) or {}
        if not context and not is_audited(method, path):
            return response

        claims = getattr(request.state, "claims", None) or {}
        actor_id = _actor_id(claims)
        route = request.scope.get("route")
        route_path = getattr(route, "path", path)
        action = context.get("action") or f"{method} {route_path}"
        resource = context.get("resource") or _default_resource(path, request.scope.get("path_params") or {})

        detail = {
            "who": {"actor_id": actor_id, "role": claims.get("role")},
            "when": {"request_ts": now_utc().isoformat()},
            "where": {
                "path": path,
                "route": route_path,
                "query": request.url.query,
                "client_ip": request.client.host if request.client else None,
            },
            "what": {"action": action, "resource": resource, "method": method},
            "result": {"status_code": response.status_code, "outcome": outcome_for(response.status_code)},
        }
        if context.get("detail"):
            detail = merge_detail(detail, context["detail"])

        try:
            write_audit_log(
                actor_id=actor_id,
                action=action,
                resource=resource,
                method=method,
                status_code=response.status_code,
                detail=detail,
            )
        except Exception:
            logger.exception("failed to write audit log for %s %s", method, path)
        return response
