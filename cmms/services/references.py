from __future__ import annotations

from typing import TypeVar

from sqlmodel import Session, SQLModel

from cmms.domain.errors import NotFoundError

RowT = TypeVar("RowT", bound=SQLModel)


def require_row(session: Session, model: type[RowT], row_id: int, entity_type: str) -> RowT:
    row = session.get(model, row_id)
    if row is None:
        raise NotFoundError(entity_type, row_id)
    return row


def require_reference(session: Session, model: type[RowT], row_id: int | None, entity_type: str) -> RowT | None:
    if row_id is None:
        return None
    return require_row(session, model, row_id, entity_type)
