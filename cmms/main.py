from __future__ import annotations

from fastapi import FastAPI, HTTPException

from cmms.api.routers import (
    assets,
    auth,
    catalog,
    documents,
    inventory,
    notifications,
    preventive_maintenance,
    scan,
    users,
    work_orders,
    work_requests,
)
from cmms.infra.audit import AuditMiddleware
from cmms.infra.db import check_db_ready
from cmms.infra.events import event_bus
from cmms.infra.log_config import configure_logging
from cmms.services.notification_service import register_notification_handlers

configure_logging()
register_notification_handlers(event_bus)

app = FastAPI(
    title="cmms",
    description="Maintenance management: assets, work requests, work orders, preventive maintenance and inventory.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(catalog.router, prefix="/api", tags=["catalog"])
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])
app.include_router(inventory.router, prefix="/api/inventory-items", tags=["inventory"])
app.include_router(work_orders.router, prefix="/api/work-orders", tags=["work-orders"])
app.include_router(work_requests.router, prefix="/api/work-requests", tags=["work-requests"])
app.include_router(
    preventive_maintenance.router,
    prefix="/api/preventive-maintenance",
    tags=["preventive-maintenance"],
)
app.include_router(scan.router, prefix="/api/scan", tags=["scan"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
app.include_router(documents.router, prefix="/api/documents", tags=["documents"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
