from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from cmms.domain.errors import ConflictError, NotFoundError
from cmms.domain.models import (
    InventoryCategory,
    InventoryItem,
    InventoryItemCreate,
    InventoryItemDetailRead,
    InventoryItemUpdate,
)
from cmms.infra.db import get_engine
from cmms.services.detail_composer import DetailComposer
from cmms.services.references import require_reference, require_row

# Columns that cannot be cleared through a partial update.
NON_NULLABLE_FIELDS = {"part_number", "name", "quantity_in_stock", "is_active"}


def is_below_reorder_point(item: InventoryItem) -> bool:
    return item.reorder_point is not None and item.quantity_in_stock <= item.reorder_point


class InventoryService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_item(self, payload: InventoryItemCreate) -> InventoryItem:
        with self._session() as session:
            require_reference(session, InventoryCategory, payload.category_id, "inventory category")
            item = InventoryItem(**payload.model_dump())
            session.add(item)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("part number already exists") from exc
            session.refresh(item)
            return item

    def list_items(self, *, low_stock_only: bool = False) -> list[InventoryItem]:
        with self._session() as session:
            items = list(session.exec(select(InventoryItem).order_by(InventoryItem.id)).all())
        if low_stock_only:
            return [item for item in items if is_below_reorder_point(item)]
        return items

    def get_item(self, item_id: int) -> InventoryItem:
        with self._session() as session:
            return require_row(session, InventoryItem, item_id, "inventory item")

    def get_item_by_part_number(self, part_number: str) -> InventoryItem:
        with self._session() as session:
            item = session.exec(select(InventoryItem).where(InventoryItem.part_number == part_number)).first()
            if item is None:
                raise NotFoundError("inventory item", part_number)
            return item

    def get_item_details(self, item_id: int) -> InventoryItemDetailRead:
        with self._session() as session:
            item = require_row(session, InventoryItem, item_id, "inventory item")
            return DetailComposer(session).inventory_item(item)

    def list_item_details(self) -> list[InventoryItemDetailRead]:
        with self._session() as session:
            items = session.exec(select(InventoryItem).order_by(InventoryItem.id)).all()
            return DetailComposer(session).inventory_items(items)

    def update_item(self, item_id: int, payload: InventoryItemUpdate) -> InventoryItem:
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        with self._session() as session:
            item = require_row(session, InventoryItem, item_id, "inventory item")
            if "category_id" in changes:
                require_reference(session, InventoryCategory, changes["category_id"], "inventory category")
            for key, value in changes.items():
                setattr(item, key, value)
            session.add(item)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("part number already exists") from exc
            session.refresh(item)
            return item

    def find_by_barcode(self, barcode: str) -> InventoryItem | None:
        with self._session() as session:
            statement = select(InventoryItem).where(InventoryItem.barcode == barcode).order_by(InventoryItem.id)
            return session.exec(statement).first()
