from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from cmms.domain.errors import AuthError, ConflictError, NotFoundError
from cmms.domain.models import BootstrapAdminRequest, User, UserCreate, UserRole, UserUpdate
from cmms.domain.permissions import permissions_for_role
from cmms.infra.auth import hash_password
from cmms.infra.db import get_engine

logger = logging.getLogger(__name__)


class UserService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_user(self, session: Session, user_id: int) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        with self._session() as session:
            existing = session.exec(select(User.id)).first()
            if existing is not None:
                raise ConflictError("users already initialized")
            admin = User(
                username=payload.username,
                password_hash=hash_password(payload.password),
                full_name=payload.full_name,
                email=payload.email,
                role=UserRole.ADMIN,
                is_active=True,
            )
            session.add(admin)
            session.commit()
            session.refresh(admin)
        logger.info("bootstrapped admin user %s", admin.username)
        return admin

    def create_user(self, payload: UserCreate) -> User:
        with self._session() as session:
            user = User(
                username=payload.username,
                password_hash=hash_password(payload.password),
                full_name=payload.full_name,
                email=payload.email,
                role=payload.role,
                is_active=payload.is_active,
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("username already exists") from exc
            session.refresh(user)
            return user

    def list_users(self, *, role: UserRole | None = None) -> list[User]:
        with self._session() as session:
            statement = select(User).order_by(User.id)
            if role is not None:
                statement = statement.where(User.role == role)
            return list(session.exec(statement).all())

    def get_user(self, user_id: int) -> User:
        with self._session() as session:
            return self._get_user(session, user_id)

    def update_user(self, user_id: int, payload: UserUpdate) -> User:
        with self._session() as session:
            user = self._get_user(session, user_id)
            if payload.password is not None:
                user.password_hash = hash_password(payload.password)
            if payload.full_name is not None:
                user.full_name = payload.full_name
            if payload.email is not None:
                user.email = payload.email
            if payload.role is not None:
                user.role = payload.role
            if payload.is_active is not None:
                user.is_active = payload.is_active
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def login(self, username: str, password: str) -> tuple[User, list[str]]:
        with self._session() as session:
            user = session.exec(select(User).where(User.username == username)).first()
            if user is None:
                raise AuthError("invalid username or password")
            if not user.is_active:
                raise AuthError("user disabled")
            if user.password_hash != hash_password(password):
                raise AuthError("invalid username or password")
        return user, permissions_for_role(user.role)
