from __future__ import annotations

from typing import Any


class MaintenanceError(Exception):
    pass


class NotFoundError(MaintenanceError):
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidStateError(MaintenanceError):
    def __init__(self, reason: str, detail: dict[str, Any] | None = None) -> None:
        self.reason = reason
        self.detail = detail or {}
        super().__init__(reason)


class ConflictError(MaintenanceError):
    pass


class AuthError(MaintenanceError):
    pass


class PermissionDeniedError(MaintenanceError):
    pass
