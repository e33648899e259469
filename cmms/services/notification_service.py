from __future__ import annotations

import logging

from sqlalchemy import func
from sqlmodel import Session, select

from cmms.domain.errors import NotFoundError, PermissionDeniedError
from cmms.domain.models import EventEnvelope, Notification, NotificationCreate, NotificationStatus, User, now_utc
from cmms.infra.db import get_engine
from cmms.infra.events import EventBus
from cmms.services.references import require_row

logger = logging.getLogger(__name__)


class NotificationService:
    """Per-user notifications.

    Callers pass their own user id. ``can_manage`` lifts the ownership check
    for operators who may act on other users' notifications.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_owned(self, session: Session, notification_id: int, user_id: int, *, can_manage: bool) -> Notification:
        notification = session.get(Notification, notification_id)
        # Hide other users' notifications behind the same 404.
        if notification is None or (notification.user_id != user_id and not can_manage):
            raise NotFoundError("notification", notification_id)
        return notification

    def list_notifications(self, user_id: int, *, status: NotificationStatus | None = None) -> list[Notification]:
        with self._session() as session:
            statement = select(Notification).where(Notification.user_id == user_id)
            if status is not None:
                statement = statement.where(Notification.status == status)
            statement = statement.order_by(Notification.created_at.desc(), Notification.id.desc())
            return list(session.exec(statement).all())

    def count_unread(self, user_id: int) -> int:
        with self._session() as session:
            statement = (
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user_id)
                .where(Notification.status == NotificationStatus.UNREAD)
            )
            return int(session.exec(statement).one())

    def get_notification(self, notification_id: int, user_id: int, *, can_manage: bool = False) -> Notification:
        with self._session() as session:
            return self._get_owned(session, notification_id, user_id, can_manage=can_manage)

    def create_notification(
        self,
        user_id: int,
        payload: NotificationCreate,
        *,
        can_manage: bool = False,
    ) -> Notification:
        if payload.user_id != user_id and not can_manage:
            raise PermissionDeniedError("cannot create notifications for another user")
        with self._session() as session:
            require_row(session, User, payload.user_id, "user")
            notification = Notification(**payload.model_dump())
            session.add(notification)
            session.commit()
            session.refresh(notification)
            return notification

    def mark_read(self, notification_id: int, user_id: int, *, can_manage: bool = False) -> Notification:
        with self._session() as session:
            notification = self._get_owned(session, notification_id, user_id, can_manage=can_manage)
            if notification.status == NotificationStatus.UNREAD:
                notification.status = NotificationStatus.READ
                notification.read_at = now_utc()
                session.add(notification)
                session.commit()
                session.refresh(notification)
            return notification

    def dismiss(self, notification_id: int, user_id: int, *, can_manage: bool = False) -> Notification:
        with self._session() as session:
            notification = self._get_owned(session, notification_id, user_id, can_manage=can_manage)
            if notification.status != NotificationStatus.DISMISSED:
                notification.status = NotificationStatus.DISMISSED
                notification.dismissed_at = now_utc()
                session.add(notification)
                session.commit()
                session.refresh(notification)
            return notification

    def mark_all_read(self, user_id: int) -> int:
        with self._session() as session:
            unread = session.exec(
                select(Notification)
                .where(Notification.user_id == user_id)
                .where(Notification.status == NotificationStatus.UNREAD)
            ).all()
            read_at = now_utc()
            for notification in unread:
                notification.status = NotificationStatus.READ
                notification.read_at = read_at
                session.add(notification)
            session.commit()
            return len(unread)

    def delete_notification(self, notification_id: int, user_id: int, *, can_manage: bool = False) -> None:
        with self._session() as session:
            notification = self._get_owned(session, notification_id, user_id, can_manage=can_manage)
            session.delete(notification)
            session.commit()

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        *,
        type_: str = "info",
        related_item_type: str | None = None,
        related_item_id: int | None = None,
    ) -> Notification | None:
        with self._session() as session:
            if session.get(User, user_id) is None:
                logger.warning("not notifying missing user %s", user_id)
                return None
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=type_,
                related_item_type=related_item_type,
                related_item_id=related_item_id,
            )
            session.add(notification)
            session.commit()
            session.refresh(notification)
            return notification


def _on_work_order_assigned(event: EventEnvelope) -> None:
    payload = event.payload
    assignee_id = payload.get("assigned_to_id")
    if assignee_id is None:
        return
    NotificationService().notify(
        int(assignee_id),
        "Work order assigned",
        f"{payload.get('work_order_number')}: {payload.get('title')} has been assigned to you",
        type_="work_order",
        related_item_type="work_order",
        related_item_id=payload.get("work_order_id"),
    )


def _on_work_request_converted(event: EventEnvelope) -> None:
    payload = event.payload
    requester_id = payload.get("requested_by_id")
    if requester_id is None:
        return
    NotificationService().notify(
        int(requester_id),
        "Work request converted",
        f"Request {payload.get('request_number')} is now work order {payload.get('work_order_number')}",
        type_="work_request",
        related_item_type="work_order",
        related_item_id=payload.get("work_order_id"),
    )


def register_notification_handlers(bus: EventBus) -> None:
    bus.subscribe("work_order.assigned", _on_work_order_assigned)
    bus.subscribe("work_request.converted", _on_work_request_converted)
