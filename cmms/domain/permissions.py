from __future__ import annotations

from typing import Any

from cmms.domain.models import UserRole

PERM_WILDCARD = "*"
PERM_USERS_READ = "users.read"
PERM_USERS_WRITE = "users.write"
PERM_ASSETS_READ = "assets.read"
PERM_ASSETS_WRITE = "assets.write"
PERM_INVENTORY_READ = "inventory.read"
PERM_INVENTORY_WRITE = "inventory.write"
PERM_WORK_ORDERS_READ = "work_orders.read"
PERM_WORK_ORDERS_WRITE = "work_orders.write"
PERM_WORK_REQUESTS_READ = "work_requests.read"
PERM_WORK_REQUESTS_WRITE = "work_requests.write"
PERM_WORK_REQUESTS_CONVERT = "work_requests.convert"
PERM_PM_READ = "preventive_maintenance.read"
PERM_PM_WRITE = "preventive_maintenance.write"
PERM_DOCUMENTS_READ = "documents.read"
PERM_DOCUMENTS_WRITE = "documents.write"
PERM_NOTIFICATIONS_MANAGE = "notifications.manage"

ROLE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.ADMIN: [PERM_WILDCARD],
    UserRole.MANAGER: [
        PERM_USERS_READ,
        PERM_ASSETS_READ,
        PERM_ASSETS_WRITE,
        PERM_INVENTORY_READ,
        PERM_INVENTORY_WRITE,
        PERM_WORK_ORDERS_READ,
        PERM_WORK_ORDERS_WRITE,
        PERM_WORK_REQUESTS_READ,
        PERM_WORK_REQUESTS_WRITE,
        PERM_WORK_REQUESTS_CONVERT,
        PERM_PM_READ,
        PERM_PM_WRITE,
        PERM_DOCUMENTS_READ,
        PERM_DOCUMENTS_WRITE,
        PERM_NOTIFICATIONS_MANAGE,
    ],
    UserRole.TECHNICIAN: [
        PERM_USERS_READ,
        PERM_ASSETS_READ,
        PERM_INVENTORY_READ,
        PERM_WORK_ORDERS_READ,
        PERM_WORK_ORDERS_WRITE,
        PERM_WORK_REQUESTS_READ,
        PERM_WORK_REQUESTS_WRITE,
        PERM_PM_READ,
        PERM_DOCUMENTS_READ,
        PERM_DOCUMENTS_WRITE,
    ],
    UserRole.REQUESTER: [
        PERM_ASSETS_READ,
        PERM_INVENTORY_READ,
        PERM_WORK_REQUESTS_READ,
        PERM_WORK_REQUESTS_WRITE,
        PERM_DOCUMENTS_READ,
    ],
}


def permissions_for_role(role: UserRole | str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(UserRole(role), []))


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
