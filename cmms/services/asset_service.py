from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from cmms.domain.errors import ConflictError, InvalidStateError, NotFoundError
from cmms.domain.models import Asset, AssetCreate, AssetDetailRead, AssetType, AssetUpdate
from cmms.infra.db import get_engine
from cmms.services.detail_composer import DetailComposer
from cmms.services.references import require_reference, require_row

# Columns that cannot be cleared through a partial update.
NON_NULLABLE_FIELDS = {"asset_number", "description", "status"}


class AssetService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _check_parent(self, session: Session, asset_id: int | None, parent_id: int | None) -> None:
        if parent_id is None:
            return
        if asset_id is not None and parent_id == asset_id:
            raise InvalidStateError("asset cannot be its own parent")
        seen: set[int] = set()
        cursor: int | None = parent_id
        while cursor is not None:
            if cursor in seen or (asset_id is not None and cursor == asset_id):
                raise InvalidStateError("asset hierarchy cannot contain a cycle")
            seen.add(cursor)
            cursor = require_row(session, Asset, cursor, "asset").parent_id

    def create_asset(self, payload: AssetCreate) -> Asset:
        with self._session() as session:
            require_reference(session, AssetType, payload.type_id, "asset type")
            self._check_parent(session, None, payload.parent_id)
            asset = Asset(**payload.model_dump())
            session.add(asset)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("asset number already exists") from exc
            session.refresh(asset)
            return asset

    def list_assets(self) -> list[Asset]:
        with self._session() as session:
            return list(session.exec(select(Asset).order_by(Asset.id)).all())

    def get_asset(self, asset_id: int) -> Asset:
        with self._session() as session:
            return require_row(session, Asset, asset_id, "asset")

    def get_asset_by_number(self, asset_number: str) -> Asset:
        with self._session() as session:
            asset = session.exec(select(Asset).where(Asset.asset_number == asset_number)).first()
            if asset is None:
                raise NotFoundError("asset", asset_number)
            return asset

    def get_asset_details(self, asset_id: int) -> AssetDetailRead:
        with self._session() as session:
            asset = require_row(session, Asset, asset_id, "asset")
            return DetailComposer(session).asset(asset)

    def list_asset_details(self) -> list[AssetDetailRead]:
        with self._session() as session:
            assets = session.exec(select(Asset).order_by(Asset.id)).all()
            return DetailComposer(session).assets(assets)

    def update_asset(self, asset_id: int, payload: AssetUpdate) -> Asset:
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        with self._session() as session:
            asset = require_row(session, Asset, asset_id, "asset")
            if "type_id" in changes:
                require_reference(session, AssetType, changes["type_id"], "asset type")
            if "parent_id" in changes:
                self._check_parent(session, asset_id, changes["parent_id"])
            for key, value in changes.items():
                setattr(asset, key, value)
            session.add(asset)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("asset number already exists") from exc
            session.refresh(asset)
            return asset

    def find_by_barcode(self, barcode: str) -> Asset | None:
        with self._session() as session:
            return session.exec(select(Asset).where(Asset.barcode == barcode).order_by(Asset.id)).first()
