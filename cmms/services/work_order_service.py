from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlmodel import Session, select

from cmms.domain.errors import ConflictError, InvalidStateError, NotFoundError
from cmms.domain.models import (
    Asset,
    InventoryItem,
    User,
    WorkOrder,
    WorkOrderCreate,
    WorkOrderDetailRead,
    WorkOrderLabor,
    WorkOrderLaborCreate,
    WorkOrderPart,
    WorkOrderPartCreate,
    WorkOrderType,
    WorkOrderUpdate,
    as_utc,
    now_utc,
)
from cmms.domain.state_machine import WorkOrderStatus, can_transition
from cmms.infra.db import get_engine
from cmms.infra.events import event_bus
from cmms.services.detail_composer import DetailComposer
from cmms.services.inventory_service import is_below_reorder_point
from cmms.services.numbering import WORK_ORDER_PREFIX, next_number, retry_on_conflict
from cmms.services.references import require_reference, require_row

logger = logging.getLogger(__name__)

# Columns that cannot be cleared through a partial update.
NON_NULLABLE_FIELDS = {"work_order_number", "title", "priority", "status", "date_requested"}


def next_work_order_number(session: Session) -> str:
    return next_number(session, WorkOrder, WorkOrder.work_order_number, WORK_ORDER_PREFIX)


def _check_references(session: Session, values: dict[str, Any]) -> None:
    require_reference(session, WorkOrderType, values.get("type_id"), "work order type")
    require_reference(session, Asset, values.get("asset_id"), "asset")
    require_reference(session, User, values.get("requested_by_id"), "user")
    require_reference(session, User, values.get("assigned_to_id"), "user")


def _check_number_free(session: Session, number: str, *, exclude_id: int | None = None) -> None:
    statement = select(WorkOrder.id).where(WorkOrder.work_order_number == number)
    existing = session.exec(statement).first()
    if existing is not None and existing != exclude_id:
        raise ConflictError(f"work order number {number} already exists")


def insert_work_order(session: Session, values: dict[str, Any]) -> WorkOrder:
    """Add a work order to ``session`` and flush it, numbering it when no number is given.

    Explicit nulls clear nullable columns; nulls for the rest fall back to
    the column defaults. The caller owns the transaction.
    """
    fields = {
        key: as_utc(value) if isinstance(value, datetime) else value
        for key, value in values.items()
        if value is not None or key not in NON_NULLABLE_FIELDS
    }
    _check_references(session, fields)
    if "work_order_number" in fields:
        _check_number_free(session, fields["work_order_number"])
    else:
        fields["work_order_number"] = next_work_order_number(session)
    work_order = WorkOrder(**fields)
    session.add(work_order)
    session.flush()
    return work_order


def publish_work_order_created(work_order: WorkOrder, *, actor_id: int | None, source: str) -> None:
    event_bus.publish_dict(
        "work_order.created",
        {
            "work_order_id": work_order.id,
            "work_order_number": work_order.work_order_number,
            "status": work_order.status,
            "source": source,
        },
        actor_id=actor_id,
    )
    if work_order.assigned_to_id is not None:
        publish_work_order_assigned(work_order, actor_id=actor_id)


def publish_work_order_assigned(work_order: WorkOrder, *, actor_id: int | None) -> None:
    event_bus.publish_dict(
        "work_order.assigned",
        {
            "work_order_id": work_order.id,
            "work_order_number": work_order.work_order_number,
            "title": work_order.title,
            "assigned_to_id": work_order.assigned_to_id,
        },
        actor_id=actor_id,
    )


class WorkOrderService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_work_order(self, actor_id: int | None, payload: WorkOrderCreate) -> WorkOrder:
        values = payload.model_dump(exclude_none=True)
        if actor_id is not None:
            values.setdefault("requested_by_id", actor_id)

        def _create() -> WorkOrder:
            with self._session() as session:
                work_order = insert_work_order(session, values)
                session.commit()
                session.refresh(work_order)
                return work_order

        work_order = retry_on_conflict(_create, what="work order creation")
        logger.info("created work order %s", work_order.work_order_number)
        publish_work_order_created(work_order, actor_id=actor_id, source="direct")
        return work_order

    def list_work_orders(
        self,
        *,
        status: WorkOrderStatus | None = None,
        asset_id: int | None = None,
        assigned_to_id: int | None = None,
    ) -> list[WorkOrder]:
        with self._session() as session:
            statement = select(WorkOrder).order_by(WorkOrder.id)
            if status is not None:
                statement = statement.where(WorkOrder.status == status)
            if asset_id is not None:
                statement = statement.where(WorkOrder.asset_id == asset_id)
            if assigned_to_id is not None:
                statement = statement.where(WorkOrder.assigned_to_id == assigned_to_id)
            return list(session.exec(statement).all())

    def get_work_order(self, work_order_id: int) -> WorkOrder:
        with self._session() as session:
            return require_row(session, WorkOrder, work_order_id, "work order")

    def get_work_order_by_number(self, work_order_number: str) -> WorkOrder:
        with self._session() as session:
            statement = select(WorkOrder).where(WorkOrder.work_order_number == work_order_number)
            work_order = session.exec(statement).first()
            if work_order is None:
                raise NotFoundError("work order", work_order_number)
            return work_order

    def get_work_order_details(self, work_order_id: int) -> WorkOrderDetailRead:
        with self._session() as session:
            work_order = require_row(session, WorkOrder, work_order_id, "work order")
            return DetailComposer(session).work_order(work_order)

    def list_work_order_details(self) -> list[WorkOrderDetailRead]:
        with self._session() as session:
            work_orders = session.exec(select(WorkOrder).order_by(WorkOrder.id)).all()
            return DetailComposer(session).work_orders(work_orders)

    def update_work_order(self, work_order_id: int, actor_id: int | None, payload: WorkOrderUpdate) -> WorkOrder:
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        with self._session() as session:
            work_order = require_row(session, WorkOrder, work_order_id, "work order")
            previous_status = work_order.status
            previous_assignee = work_order.assigned_to_id
            _check_references(session, changes)
            if "work_order_number" in changes:
                _check_number_free(session, changes["work_order_number"], exclude_id=work_order.id)

            target_status = changes.get("status")
            if target_status is not None and target_status != previous_status:
                if not can_transition(previous_status, target_status):
                    raise InvalidStateError(f"work order cannot move from {previous_status} to {target_status}")
                if target_status == WorkOrderStatus.IN_PROGRESS and "date_started" not in changes:
                    changes.setdefault("date_started", work_order.date_started or now_utc())
                if target_status == WorkOrderStatus.COMPLETED and "date_completed" not in changes:
                    changes["date_completed"] = now_utc()

            for key, value in changes.items():
                setattr(work_order, key, value)
            session.add(work_order)
            session.commit()
            session.refresh(work_order)

        event_bus.publish_dict(
            "work_order.updated",
            {
                "work_order_id": work_order.id,
                "from_status": previous_status,
                "to_status": work_order.status,
                "fields": sorted(changes),
            },
            actor_id=actor_id,
        )
        if work_order.assigned_to_id is not None and work_order.assigned_to_id != previous_assignee:
            publish_work_order_assigned(work_order, actor_id=actor_id)
        return work_order

    def list_labor(self, work_order_id: int) -> list[WorkOrderLabor]:
        with self._session() as session:
            require_row(session, WorkOrder, work_order_id, "work order")
            statement = (
                select(WorkOrderLabor).where(WorkOrderLabor.work_order_id == work_order_id).order_by(WorkOrderLabor.id)
            )
            return list(session.exec(statement).all())

    def add_labor(self, work_order_id: int, payload: WorkOrderLaborCreate) -> WorkOrderLabor:
        with self._session() as session:
            require_row(session, WorkOrder, work_order_id, "work order")
            require_row(session, User, payload.user_id, "user")
            labor = WorkOrderLabor(work_order_id=work_order_id, **payload.model_dump())
            session.add(labor)
            session.commit()
            session.refresh(labor)
            return labor

    def list_parts(self, work_order_id: int) -> list[WorkOrderPart]:
        with self._session() as session:
            require_row(session, WorkOrder, work_order_id, "work order")
            statement = (
                select(WorkOrderPart).where(WorkOrderPart.work_order_id == work_order_id).order_by(WorkOrderPart.id)
            )
            return list(session.exec(statement).all())

    def issue_part(self, work_order_id: int, actor_id: int | None, payload: WorkOrderPartCreate) -> WorkOrderPart:
        with self._session() as session:
            require_row(session, WorkOrder, work_order_id, "work order")
            item = require_row(session, InventoryItem, payload.inventory_item_id, "inventory item")
            if item.quantity_in_stock < payload.quantity:
                raise InvalidStateError(
                    "insufficient quantity in stock",
                    detail={"available": item.quantity_in_stock, "requested": payload.quantity},
                )
            unit_cost = item.unit_cost or 0.0
            part = WorkOrderPart(
                work_order_id=work_order_id,
                inventory_item_id=item.id,
                quantity=payload.quantity,
                unit_cost=unit_cost,
                total_cost=unit_cost * payload.quantity,
                date_issued=payload.date_issued or now_utc(),
            )
            item.quantity_in_stock -= payload.quantity
            session.add(part)
            session.add(item)
            session.commit()
            session.refresh(part)
            session.refresh(item)

        if is_below_reorder_point(item):
            logger.info("inventory item %s reached its reorder point", item.part_number)
            event_bus.publish_dict(
                "inventory_item.low_stock",
                {
                    "inventory_item_id": item.id,
                    "part_number": item.part_number,
                    "quantity_in_stock": item.quantity_in_stock,
                    "reorder_point": item.reorder_point,
                },
                actor_id=actor_id,
            )
        return part
