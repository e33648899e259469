from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from cmms.domain.errors import InvalidStateError, NotFoundError
from cmms.domain.models import (
    Asset,
    PmTechnician,
    PmWorkOrder,
    PreventiveMaintenance,
    PreventiveMaintenanceCreate,
    PreventiveMaintenanceDetailRead,
    PreventiveMaintenanceUpdate,
    User,
    UserRead,
    WorkOrder,
    as_utc,
    now_utc,
)
from cmms.domain.recurrence import occurrence_dates
from cmms.domain.state_machine import WorkOrderStatus
from cmms.infra.db import get_engine
from cmms.infra.events import event_bus
from cmms.services.detail_composer import DetailComposer
from cmms.services.numbering import retry_on_conflict
from cmms.services.references import require_reference, require_row
from cmms.services.work_order_service import insert_work_order, publish_work_order_created

logger = logging.getLogger(__name__)

# Columns that cannot be cleared through a partial update.
NON_NULLABLE_FIELDS = {"title", "description", "maintenance_type", "priority", "start_date", "duration", "is_active"}


def _dedupe(ids: list[int]) -> list[int]:
    return list(dict.fromkeys(ids))


def planned_occurrences(pm: PreventiveMaintenance) -> list[tuple[int, datetime, str]]:
    """Return ``(occurrence_number, scheduled_date, title)`` for every order a schedule expands to.

    A one-off schedule yields its start date once. A recurring schedule yields
    one entry per occurrence, stepping from the start date by the recurring
    period and numbering titles ``"<title> (i/n)"``. A recurring schedule that
    lacks a period or an occurrence count yields nothing.
    """
    start = as_utc(pm.start_date)
    if not pm.is_recurring:
        return [(1, start, pm.title)]
    if pm.recurring_period is None or not pm.occurrences:
        return []
    dates = occurrence_dates(start, pm.recurring_period, pm.occurrences)
    return [
        (index + 1, scheduled_date, f"{pm.title} ({index + 1}/{pm.occurrences})")
        for index, scheduled_date in enumerate(dates)
    ]


class PreventiveMaintenanceService:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine or get_engine(), expire_on_commit=False)

    def _replace_technicians(self, session: Session, pm_id: int, technician_ids: list[int]) -> list[PmTechnician]:
        ordered = _dedupe(technician_ids)
        for technician_id in ordered:
            require_row(session, User, technician_id, "user")
        for existing in session.exec(select(PmTechnician).where(PmTechnician.pm_id == pm_id)).all():
            session.delete(existing)
        session.flush()
        assignments = [PmTechnician(pm_id=pm_id, technician_id=technician_id) for technician_id in ordered]
        for assignment in assignments:
            session.add(assignment)
            session.flush()
        return assignments

    def _technician_ids(self, session: Session, pm_id: int) -> list[int]:
        statement = select(PmTechnician.technician_id).where(PmTechnician.pm_id == pm_id).order_by(PmTechnician.id)
        return list(session.exec(statement).all())

    def create_schedule(self, actor_id: int | None, payload: PreventiveMaintenanceCreate) -> PreventiveMaintenance:
        values = payload.model_dump(exclude={"technician_ids", "generate_work_orders_immediately"}, exclude_none=True)
        created_by_id = values.pop("created_by_id", actor_id)
        if created_by_id is None:
            raise InvalidStateError("preventive maintenance needs a creator")
        with self._session() as session:
            require_row(session, User, created_by_id, "user")
            require_reference(session, Asset, values.get("asset_id"), "asset")
            pm = PreventiveMaintenance(created_by_id=created_by_id, **values)
            session.add(pm)
            session.flush()
            if payload.technician_ids:
                self._replace_technicians(session, pm.id, payload.technician_ids)
            session.commit()
            session.refresh(pm)
        logger.info("created preventive maintenance %s", pm.id)

        if payload.generate_work_orders_immediately:
            self.generate_work_orders(pm.id, actor_id=actor_id)
            return self.get_schedule(pm.id)
        return pm

    def list_schedules(self, *, asset_id: int | None = None, active: bool | None = None) -> list[PreventiveMaintenance]:
        with self._session() as session:
            statement = select(PreventiveMaintenance).order_by(PreventiveMaintenance.id)
            if asset_id is not None:
                statement = statement.where(PreventiveMaintenance.asset_id == asset_id)
            if active is not None:
                statement = statement.where(PreventiveMaintenance.is_active == active)
            return list(session.exec(statement).all())

    def get_schedule(self, pm_id: int) -> PreventiveMaintenance:
        with self._session() as session:
            return require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")

    def get_schedule_details(self, pm_id: int) -> PreventiveMaintenanceDetailRead:
        with self._session() as session:
            pm = require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
            return DetailComposer(session).preventive_maintenance(pm)

    def list_schedule_details(self) -> list[PreventiveMaintenanceDetailRead]:
        with self._session() as session:
            schedules = session.exec(select(PreventiveMaintenance).order_by(PreventiveMaintenance.id)).all()
            return DetailComposer(session).preventive_maintenances(schedules)

    def update_schedule(self, pm_id: int, payload: PreventiveMaintenanceUpdate) -> PreventiveMaintenance:
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True, exclude={"technician_ids"}).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        with self._session() as session:
            pm = require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
            if "asset_id" in changes:
                require_reference(session, Asset, changes["asset_id"], "asset")
            for key, value in changes.items():
                setattr(pm, key, value)
            session.add(pm)
            if payload.technician_ids is not None:
                self._replace_technicians(session, pm_id, payload.technician_ids)
            session.commit()
            session.refresh(pm)
            return pm

    def list_technicians(self, pm_id: int) -> list[UserRead]:
        with self._session() as session:
            require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
            return DetailComposer(session).technicians(pm_id)

    def assign_technicians(self, pm_id: int, technician_ids: list[int]) -> list[PmTechnician]:
        """Replace the schedule's technicians with ``technician_ids``.

        Input order is kept and the first technician becomes the assignee of
        generated work orders. Repeated ids are collapsed to their first
        position.
        """
        with self._session() as session:
            require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
            assignments = self._replace_technicians(session, pm_id, technician_ids)
            session.commit()
            for assignment in assignments:
                session.refresh(assignment)
        logger.info("assigned %d technician(s) to preventive maintenance %s", len(assignments), pm_id)
        return assignments

    def remove_technician(self, pm_id: int, technician_id: int) -> None:
        with self._session() as session:
            require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
            assignment = session.exec(
                select(PmTechnician).where(PmTechnician.pm_id == pm_id, PmTechnician.technician_id == technician_id)
            ).first()
            if assignment is None:
                raise NotFoundError("technician assignment", f"{pm_id}/{technician_id}")
            session.delete(assignment)
            session.commit()

    def list_generated_work_orders(self, pm_id: int) -> list[PmWorkOrder]:
        with self._session() as session:
            require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
            statement = select(PmWorkOrder).where(PmWorkOrder.pm_id == pm_id).order_by(PmWorkOrder.id)
            return list(session.exec(statement).all())

    def generate_work_orders(
        self,
        pm_id: int,
        *,
        force: bool = False,
        actor_id: int | None = None,
    ) -> list[PmWorkOrder]:
        """Expand a schedule into ``scheduled`` work orders and return the link rows.

        Every order is assigned to the schedule's first technician, if any.
        All orders and links are written in one transaction and the schedule's
        ``last_generated_at`` is stamped; a second expansion is rejected unless
        ``force`` is set.
        """

        def _generate() -> tuple[list[PmWorkOrder], list[WorkOrder]]:
            with self._session() as session:
                pm = require_row(session, PreventiveMaintenance, pm_id, "preventive maintenance")
                if pm.last_generated_at is not None and not force:
                    raise InvalidStateError(
                        f"preventive maintenance {pm_id} was already expanded",
                        detail={"last_generated_at": as_utc(pm.last_generated_at).isoformat()},
                    )
                plan = planned_occurrences(pm)
                if not plan:
                    logger.warning(
                        "preventive maintenance %s is recurring but has no period or occurrence count", pm_id
                    )
                    return [], []

                technician_ids = self._technician_ids(session, pm_id)
                assignee_id = technician_ids[0] if technician_ids else None
                requested_at = now_utc()
                links: list[PmWorkOrder] = []
                work_orders: list[WorkOrder] = []
                for occurrence_number, scheduled_date, title in plan:
                    work_order = insert_work_order(
                        session,
                        {
                            "title": title,
                            "description": pm.description,
                            "asset_id": pm.asset_id,
                            "priority": pm.priority,
                            "status": WorkOrderStatus.SCHEDULED,
                            "requested_by_id": pm.created_by_id,
                            "assigned_to_id": assignee_id,
                            "date_requested": requested_at,
                            "date_scheduled": scheduled_date,
                            "estimated_hours": pm.duration,
                        },
                    )
                    link = PmWorkOrder(
                        pm_id=pm_id,
                        work_order_id=work_order.id,
                        scheduled_date=scheduled_date,
                        occurrence_number=occurrence_number,
                    )
                    session.add(link)
                    session.flush()
                    work_orders.append(work_order)
                    links.append(link)

                pm.last_generated_at = requested_at
                session.add(pm)
                session.commit()
                for row in [*work_orders, *links]:
                    session.refresh(row)
                return links, work_orders

        links, work_orders = retry_on_conflict(_generate, what="preventive maintenance expansion")
        if not links:
            return links
        logger.info("generated %d work order(s) from preventive maintenance %s", len(links), pm_id)
        for work_order in work_orders:
            publish_work_order_created(work_order, actor_id=actor_id, source="preventive_maintenance")
        event_bus.publish_dict(
            "preventive_maintenance.generated",
            {
                "pm_id": pm_id,
                "work_order_ids": [work_order.id for work_order in work_orders],
                "forced": force,
            },
            actor_id=actor_id,
        )
        return links
