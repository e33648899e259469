"""Read-side composition of entities with their referenced rows.

Lookups run one foreign key at a time through ``Session.get``, which serves
repeated ids from the session identity map. List variants skip rows that
cannot be composed rather than failing the whole list.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from sqlmodel import Session, SQLModel, select

from cmms.domain.models import (
    Asset,
    AssetDetailRead,
    AssetRead,
    AssetType,
    AssetTypeRead,
    InventoryCategory,
    InventoryCategoryRead,
    InventoryItem,
    InventoryItemDetailRead,
    InventoryItemRead,
    PmTechnician,
    PmWorkOrder,
    PmWorkOrderDetailRead,
    PmWorkOrderRead,
    PreventiveMaintenance,
    PreventiveMaintenanceDetailRead,
    PreventiveMaintenanceRead,
    User,
    UserRead,
    WorkOrder,
    WorkOrderDetailRead,
    WorkOrderLabor,
    WorkOrderLaborRead,
    WorkOrderPart,
    WorkOrderPartDetailRead,
    WorkOrderPartRead,
    WorkOrderRead,
    WorkOrderType,
    WorkOrderTypeRead,
    WorkRequest,
    WorkRequestDetailRead,
    WorkRequestRead,
)

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")
ReadT = TypeVar("ReadT")


class DetailComposer:
    def __init__(self, session: Session) -> None:
        self._session = session

    def _lookup(self, model: type[SQLModel], row_id: int | None, read_model: Any) -> Any:
        if row_id is None:
            return None
        row = self._session.get(model, row_id)
        if row is None:
            logger.warning("%s %s is referenced but missing", model.__name__, row_id)
            return None
        return read_model.model_validate(row)

    def _compose_all(self, rows: Iterable[RowT], compose: Callable[[RowT], ReadT]) -> list[ReadT]:
        composed: list[ReadT] = []
        for row in rows:
            try:
                composed.append(compose(row))
            except Exception:
                logger.exception("skipping row that could not be composed: %r", row)
        return composed

    def user(self, user_id: int | None) -> UserRead | None:
        return self._lookup(User, user_id, UserRead)

    def asset(self, asset: Asset) -> AssetDetailRead:
        work_orders = self._session.exec(select(WorkOrder).where(WorkOrder.asset_id == asset.id)).all()
        return AssetDetailRead(
            **AssetRead.model_validate(asset).model_dump(),
            type=self._lookup(AssetType, asset.type_id, AssetTypeRead),
            parent=self._lookup(Asset, asset.parent_id, AssetRead),
            work_orders=[WorkOrderRead.model_validate(item) for item in work_orders],
        )

    def assets(self, assets: Iterable[Asset]) -> list[AssetDetailRead]:
        return self._compose_all(assets, self.asset)

    def inventory_item(self, item: InventoryItem) -> InventoryItemDetailRead:
        return InventoryItemDetailRead(
            **InventoryItemRead.model_validate(item).model_dump(),
            category=self._lookup(InventoryCategory, item.category_id, InventoryCategoryRead),
        )

    def inventory_items(self, items: Iterable[InventoryItem]) -> list[InventoryItemDetailRead]:
        return self._compose_all(items, self.inventory_item)

    def work_order(self, work_order: WorkOrder) -> WorkOrderDetailRead:
        labor = self._session.exec(select(WorkOrderLabor).where(WorkOrderLabor.work_order_id == work_order.id)).all()
        parts = self._session.exec(select(WorkOrderPart).where(WorkOrderPart.work_order_id == work_order.id)).all()
        return WorkOrderDetailRead(
            **WorkOrderRead.model_validate(work_order).model_dump(),
            asset=self._lookup(Asset, work_order.asset_id, AssetRead),
            requested_by=self.user(work_order.requested_by_id),
            assigned_to=self.user(work_order.assigned_to_id),
            type=self._lookup(WorkOrderType, work_order.type_id, WorkOrderTypeRead),
            labor_entries=[WorkOrderLaborRead.model_validate(item) for item in labor],
            parts=[
                WorkOrderPartDetailRead(
                    **WorkOrderPartRead.model_validate(part).model_dump(),
                    inventory_item=self._lookup(InventoryItem, part.inventory_item_id, InventoryItemRead),
                )
                for part in parts
            ],
        )

    def work_orders(self, work_orders: Iterable[WorkOrder]) -> list[WorkOrderDetailRead]:
        return self._compose_all(work_orders, self.work_order)

    def work_request(self, work_request: WorkRequest) -> WorkRequestDetailRead:
        return WorkRequestDetailRead(
            **WorkRequestRead.model_validate(work_request).model_dump(),
            asset=self._lookup(Asset, work_request.asset_id, AssetRead),
            requested_by=self.user(work_request.requested_by_id),
            converted_to_work_order=self._lookup(
                WorkOrder,
                work_request.converted_to_work_order_id,
                WorkOrderRead,
            ),
        )

    def work_requests(self, work_requests: Iterable[WorkRequest]) -> list[WorkRequestDetailRead]:
        return self._compose_all(work_requests, self.work_request)

    def technicians(self, pm_id: int) -> list[UserRead]:
        assignments = self._session.exec(
            select(PmTechnician).where(PmTechnician.pm_id == pm_id).order_by(PmTechnician.id)
        ).all()
        technicians = [self.user(item.technician_id) for item in assignments]
        return [item for item in technicians if item is not None]

    def generated_work_orders(self, pm_id: int) -> list[PmWorkOrderDetailRead]:
        links = self._session.exec(
            select(PmWorkOrder).where(PmWorkOrder.pm_id == pm_id).order_by(PmWorkOrder.id)
        ).all()
        generated: list[PmWorkOrderDetailRead] = []
        for link in links:
            work_order = self._lookup(WorkOrder, link.work_order_id, WorkOrderRead)
            if work_order is None:
                continue
            generated.append(
                PmWorkOrderDetailRead(**PmWorkOrderRead.model_validate(link).model_dump(), work_order=work_order)
            )
        return generated

    def preventive_maintenance(self, pm: PreventiveMaintenance) -> PreventiveMaintenanceDetailRead:
        return PreventiveMaintenanceDetailRead(
            **PreventiveMaintenanceRead.model_validate(pm).model_dump(),
            asset=self._lookup(Asset, pm.asset_id, AssetRead),
            created_by=self.user(pm.created_by_id),
            technicians=self.technicians(pm.id),
            generated_work_orders=self.generated_work_orders(pm.id),
        )

    def preventive_maintenances(
        self,
        schedules: Iterable[PreventiveMaintenance],
    ) -> list[PreventiveMaintenanceDetailRead]:
        return self._compose_all(schedules, self.preventive_maintenance)
