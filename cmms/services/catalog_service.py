from __future__ import annotations

from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from cmms.domain.errors import ConflictError
from cmms.domain.models import (
    AssetType,
    AssetTypeCreate,
    InventoryCategory,
    InventoryCategoryCreate,
    WorkOrderType,
    WorkOrderTypeCreate,
)
from cmms.infra.db import get_engine

LookupT = TypeVar("LookupT", AssetType, InventoryCategory, WorkOrderType)


class CatalogService:
    """Name/description lookup tables: asset types, inventory categories, work order types."""

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _list(self, model: type[SQLModel]) -> list:
        with self._session() as session:
            return list(session.exec(select(model).order_by(model.id)).all())  # type: ignore[attr-defined]

    def _create(self, row: LookupT, label: str) -> LookupT:
        with self._session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError(f"{label} name already exists") from exc
            session.refresh(row)
            return row

    def list_asset_types(self) -> list[AssetType]:
        return self._list(AssetType)

    def create_asset_type(self, payload: AssetTypeCreate) -> AssetType:
        return self._create(AssetType(name=payload.name, description=payload.description), "asset type")

    def list_inventory_categories(self) -> list[InventoryCategory]:
        return self._list(InventoryCategory)

    def create_inventory_category(self, payload: InventoryCategoryCreate) -> InventoryCategory:
        return self._create(
            InventoryCategory(name=payload.name, description=payload.description),
            "inventory category",
        )

    def list_work_order_types(self) -> list[WorkOrderType]:
        return self._list(WorkOrderType)

    def create_work_order_type(self, payload: WorkOrderTypeCreate) -> WorkOrderType:
        return self._create(WorkOrderType(name=payload.name, description=payload.description), "work order type")
