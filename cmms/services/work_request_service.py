from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from cmms.domain.errors import ConflictError, InvalidStateError
from cmms.domain.models import (
    Asset,
    User,
    WorkOrder,
    WorkRequest,
    WorkRequestConvertRequest,
    WorkRequestCreate,
    WorkRequestDetailRead,
    WorkRequestUpdate,
)
from cmms.domain.state_machine import WorkOrderStatus
from cmms.infra.db import get_engine
from cmms.infra.events import event_bus
from cmms.services.detail_composer import DetailComposer
from cmms.services.numbering import WORK_REQUEST_PREFIX, next_number, retry_on_conflict
from cmms.services.references import require_reference, require_row
from cmms.services.work_order_service import NON_NULLABLE_FIELDS, insert_work_order, publish_work_order_created

logger = logging.getLogger(__name__)

# Request fields carried onto the work order created by conversion.
CONVERTED_FIELDS = (
    "title",
    "description",
    "asset_id",
    "priority",
    "requested_by_id",
    "date_requested",
    "date_needed",
)


class WorkRequestService:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine or get_engine(), expire_on_commit=False)

    def create_request(self, actor_id: int | None, payload: WorkRequestCreate) -> WorkRequest:
        values = payload.model_dump(exclude_none=True)
        requested_by_id = values.pop("requested_by_id", actor_id)
        if requested_by_id is None:
            raise InvalidStateError("work request needs a requester")

        def _create() -> WorkRequest:
            with self._session() as session:
                require_row(session, User, requested_by_id, "user")
                require_reference(session, Asset, values.get("asset_id"), "asset")
                fields = dict(values)
                if "request_number" in fields:
                    taken = session.exec(
                        select(WorkRequest.id).where(WorkRequest.request_number == fields["request_number"])
                    ).first()
                    if taken is not None:
                        raise ConflictError(f"request number {fields['request_number']} already exists")
                else:
                    fields["request_number"] = next_number(
                        session, WorkRequest, WorkRequest.request_number, WORK_REQUEST_PREFIX
                    )
                request = WorkRequest(requested_by_id=requested_by_id, **fields)
                session.add(request)
                session.commit()
                session.refresh(request)
                return request

        request = retry_on_conflict(_create, what="work request creation")
        event_bus.publish_dict(
            "work_request.created",
            {"work_request_id": request.id, "request_number": request.request_number},
            actor_id=actor_id,
        )
        return request

    def list_requests(
        self,
        *,
        status: WorkOrderStatus | None = None,
        requested_by_id: int | None = None,
        converted: bool | None = None,
    ) -> list[WorkRequest]:
        with self._session() as session:
            statement = select(WorkRequest).order_by(WorkRequest.id)
            if status is not None:
                statement = statement.where(WorkRequest.status == status)
            if requested_by_id is not None:
                statement = statement.where(WorkRequest.requested_by_id == requested_by_id)
            if converted is not None:
                statement = statement.where(WorkRequest.is_converted == converted)
            return list(session.exec(statement).all())

    def get_request(self, request_id: int) -> WorkRequest:
        with self._session() as session:
            return require_row(session, WorkRequest, request_id, "work request")

    def get_request_details(self, request_id: int) -> WorkRequestDetailRead:
        with self._session() as session:
            request = require_row(session, WorkRequest, request_id, "work request")
            return DetailComposer(session).work_request(request)

    def list_request_details(self) -> list[WorkRequestDetailRead]:
        with self._session() as session:
            requests = session.exec(select(WorkRequest).order_by(WorkRequest.id)).all()
            return DetailComposer(session).work_requests(requests)

    def update_request(self, request_id: int, payload: WorkRequestUpdate) -> WorkRequest:
        changes = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            request = require_row(session, WorkRequest, request_id, "work request")
            if request.is_converted:
                raise InvalidStateError(f"work request {request.request_number} is already converted")
            if "asset_id" in changes:
                require_reference(session, Asset, changes["asset_id"], "asset")
            for key, value in changes.items():
                if value is None and key in {"title", "description", "priority", "status"}:
                    continue
                setattr(request, key, value)
            session.add(request)
            session.commit()
            session.refresh(request)
            return request

    def convert(
        self,
        request_id: int,
        overrides: WorkRequestConvertRequest | None = None,
        *,
        actor_id: int | None = None,
    ) -> WorkOrder:
        """Turn a work request into an ``approved`` work order.

        The request's own fields seed the new order and any explicitly set
        override wins, status and number included. An explicit null clears a
        nullable field such as the asset. Creating the order and
        marking the request converted share one transaction, so a failure
        leaves neither behind. Converting a request twice is rejected.
        """
        override_values = {
            key: value
            for key, value in (overrides.model_dump(exclude_unset=True) if overrides is not None else {}).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }

        def _convert() -> tuple[WorkRequest, WorkOrder]:
            with self._session() as session:
                request = require_row(session, WorkRequest, request_id, "work request")
                if request.is_converted:
                    raise InvalidStateError(
                        f"work request {request.request_number} is already converted",
                        detail={"converted_to_work_order_id": request.converted_to_work_order_id},
                    )
                values = {field: getattr(request, field) for field in CONVERTED_FIELDS}
                values["status"] = WorkOrderStatus.APPROVED
                values.update(override_values)
                work_order = insert_work_order(session, values)

                request.is_converted = True
                request.converted_to_work_order_id = work_order.id
                request.status = WorkOrderStatus.COMPLETED
                session.add(request)
                session.commit()
                session.refresh(work_order)
                session.refresh(request)
                return request, work_order

        request, work_order = retry_on_conflict(_convert, what="work request conversion")
        logger.info("converted work request %s into %s", request.request_number, work_order.work_order_number)
        publish_work_order_created(work_order, actor_id=actor_id, source="work_request")
        event_bus.publish_dict(
            "work_request.converted",
            {
                "work_request_id": request.id,
                "request_number": request.request_number,
                "requested_by_id": request.requested_by_id,
                "work_order_id": work_order.id,
                "work_order_number": work_order.work_order_number,
            },
            actor_id=actor_id,
        )
        return work_order
