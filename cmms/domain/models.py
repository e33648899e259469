from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from cmms.domain.state_machine import WorkOrderStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC; aware ones are converted to it."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: int | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: int | None = Field(default=None, primary_key=True)
    actor_id: int | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class UserRole(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    REQUESTER = "requester"


class WorkPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AssetStatus(StrEnum):
    OPERATIONAL = "operational"
    NON_OPERATIONAL = "non_operational"
    MAINTENANCE_REQUIRED = "maintenance_required"
    RETIRED = "retired"


class RecurringPeriod(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUALLY = "semiannually"
    ANNUALLY = "annually"


class NotificationStatus(StrEnum):
    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_hash: str
    full_name: str
    email: str
    role: UserRole = Field(default=UserRole.REQUESTER, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class AssetType(SQLModel, table=True):
    __tablename__ = "asset_types"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: str | None = None


class Asset(SQLModel, table=True):
    __tablename__ = "assets"

    id: int | None = Field(default=None, primary_key=True)
    asset_number: str = Field(index=True, unique=True)
    description: str
    type_id: int | None = Field(default=None, foreign_key="asset_types.id", index=True)
    status: AssetStatus = Field(default=AssetStatus.OPERATIONAL, index=True)
    parent_id: int | None = Field(default=None, foreign_key="assets.id", index=True)
    location: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    install_date: datetime | None = None
    warranty_expiration: datetime | None = None
    replacement_cost: float | None = None
    criticality_rating: int | None = None
    last_service_date: datetime | None = None
    barcode: str | None = Field(default=None, index=True)


class InventoryCategory(SQLModel, table=True):
    __tablename__ = "inventory_categories"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: str | None = None


class InventoryItem(SQLModel, table=True):
    __tablename__ = "inventory_items"

    id: int | None = Field(default=None, primary_key=True)
    part_number: str = Field(index=True, unique=True)
    name: str
    description: str | None = None
    category_id: int | None = Field(default=None, foreign_key="inventory_categories.id", index=True)
    unit_cost: float | None = None
    quantity_in_stock: int = Field(default=0)
    reorder_point: int | None = None
    location: str | None = None
    barcode: str | None = Field(default=None, index=True)
    is_active: bool = Field(default=True)


class WorkOrderType(SQLModel, table=True):
    __tablename__ = "work_order_types"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: str | None = None


class WorkOrder(SQLModel, table=True):
    __tablename__ = "work_orders"
    __table_args__ = (Index("ix_work_orders_status_priority", "status", "priority"),)

    id: int | None = Field(default=None, primary_key=True)
    work_order_number: str = Field(index=True, unique=True)
    title: str
    description: str | None = None
    type_id: int | None = Field(default=None, foreign_key="work_order_types.id", index=True)
    asset_id: int | None = Field(default=None, foreign_key="assets.id", index=True)
    priority: WorkPriority = Field(default=WorkPriority.MEDIUM)
    status: WorkOrderStatus = Field(default=WorkOrderStatus.REQUESTED)
    requested_by_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    assigned_to_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    date_requested: datetime = Field(default_factory=now_utc)
    date_needed: datetime | None = None
    date_scheduled: datetime | None = Field(default=None, index=True)
    date_started: datetime | None = None
    date_completed: datetime | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    estimated_cost: float | None = None
    actual_cost: float | None = None
    completion_notes: str | None = None


class WorkOrderLabor(SQLModel, table=True):
    __tablename__ = "work_order_labor"

    id: int | None = Field(default=None, primary_key=True)
    work_order_id: int = Field(foreign_key="work_orders.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    hours: float
    labor_cost: float | None = None
    date_performed: datetime
    notes: str | None = None


class WorkOrderPart(SQLModel, table=True):
    __tablename__ = "work_order_parts"

    id: int | None = Field(default=None, primary_key=True)
    work_order_id: int = Field(foreign_key="work_orders.id", index=True)
    inventory_item_id: int = Field(foreign_key="inventory_items.id", index=True)
    quantity: int
    unit_cost: float | None = None
    total_cost: float | None = None
    date_issued: datetime = Field(default_factory=now_utc)


class WorkRequest(SQLModel, table=True):
    __tablename__ = "work_requests"

    id: int | None = Field(default=None, primary_key=True)
    request_number: str = Field(index=True, unique=True)
    title: str
    description: str
    asset_id: int | None = Field(default=None, foreign_key="assets.id", index=True)
    priority: WorkPriority = Field(default=WorkPriority.MEDIUM)
    status: WorkOrderStatus = Field(default=WorkOrderStatus.REQUESTED, index=True)
    requested_by_id: int = Field(foreign_key="users.id", index=True)
    date_requested: datetime = Field(default_factory=now_utc)
    date_needed: datetime | None = None
    location: str | None = None
    notes: str | None = None
    is_converted: bool = Field(default=False, index=True)
    converted_to_work_order_id: int | None = Field(default=None, foreign_key="work_orders.id")


class PreventiveMaintenance(SQLModel, table=True):
    __tablename__ = "preventive_maintenance"

    id: int | None = Field(default=None, primary_key=True)
    title: str
    description: str
    asset_id: int | None = Field(default=None, foreign_key="assets.id", index=True)
    maintenance_type: str
    priority: WorkPriority = Field(default=WorkPriority.MEDIUM)
    start_date: datetime
    duration: float
    created_by_id: int = Field(foreign_key="users.id", index=True)
    is_recurring: bool = Field(default=False)
    recurring_period: RecurringPeriod | None = None
    occurrences: int | None = None
    is_active: bool = Field(default=True, index=True)
    notes: str | None = None
    date_created: datetime = Field(default_factory=now_utc)
    last_generated_at: datetime | None = None


class PmTechnician(SQLModel, table=True):
    __tablename__ = "pm_technicians"
    __table_args__ = (UniqueConstraint("pm_id", "technician_id", name="uq_pm_technicians_pm_technician"),)

    id: int | None = Field(default=None, primary_key=True)
    pm_id: int = Field(foreign_key="preventive_maintenance.id", index=True)
    technician_id: int = Field(foreign_key="users.id", index=True)


class PmWorkOrder(SQLModel, table=True):
    __tablename__ = "pm_work_orders"

    id: int | None = Field(default=None, primary_key=True)
    pm_id: int = Field(foreign_key="preventive_maintenance.id", index=True)
    work_order_id: int = Field(foreign_key="work_orders.id", index=True)
    scheduled_date: datetime
    occurrence_number: int


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_status", "user_id", "status"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    title: str
    message: str
    type: str = Field(default="info")
    status: NotificationStatus = Field(default=NotificationStatus.UNREAD)
    related_item_type: str | None = None
    related_item_id: int | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    read_at: datetime | None = None
    dismissed_at: datetime | None = None


class Document(SQLModel, table=True):
    __tablename__ = "documents"
    __table_args__ = (Index("ix_documents_entity", "entity_type", "entity_id"),)

    id: int | None = Field(default=None, primary_key=True)
    filename: str
    filesize: int
    content_type: str
    entity_type: str = Field(max_length=50)
    entity_id: int
    object_key: str
    upload_date: datetime = Field(default_factory=now_utc, index=True)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: int | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Users and auth


class UserCreate(BaseModel):
    username: str
    password: str
    full_name: str
    email: str
    role: UserRole = UserRole.REQUESTER
    is_active: bool = True


class UserUpdate(BaseModel):
    password: str | None = None
    full_name: str | None = None
    email: str | None = None
    role: UserRole | None = None
    is_active: bool | None = None


class UserRead(ORMReadModel):
    id: int
    username: str
    full_name: str
    email: str
    role: UserRole
    is_active: bool
    created_at: UtcDatetime


class LoginRequest(BaseModel):
    username: str
    password: str


class BootstrapAdminRequest(BaseModel):
    username: str
    password: str
    full_name: str
    email: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
    permissions: list[str]


# Lookup tables


class AssetTypeCreate(BaseModel):
    name: str
    description: str | None = None


class AssetTypeRead(ORMReadModel):
    id: int
    name: str
    description: str | None = None


class InventoryCategoryCreate(BaseModel):
    name: str
    description: str | None = None


class InventoryCategoryRead(ORMReadModel):
    id: int
    name: str
    description: str | None = None


class WorkOrderTypeCreate(BaseModel):
    name: str
    description: str | None = None


class WorkOrderTypeRead(ORMReadModel):
    id: int
    name: str
    description: str | None = None


# Assets


class AssetCreate(BaseModel):
    asset_number: str
    description: str
    type_id: int | None = None
    status: AssetStatus = AssetStatus.OPERATIONAL
    parent_id: int | None = None
    location: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    install_date: UtcDatetime | None = None
    warranty_expiration: UtcDatetime | None = None
    replacement_cost: float | None = None
    criticality_rating: int | None = PydanticField(default=None, ge=1, le=10)
    last_service_date: UtcDatetime | None = None
    barcode: str | None = None


class AssetUpdate(BaseModel):
    asset_number: str | None = None
    description: str | None = None
    type_id: int | None = None
    status: AssetStatus | None = None
    parent_id: int | None = None
    location: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    install_date: UtcDatetime | None = None
    warranty_expiration: UtcDatetime | None = None
    replacement_cost: float | None = None
    criticality_rating: int | None = PydanticField(default=None, ge=1, le=10)
    last_service_date: UtcDatetime | None = None
    barcode: str | None = None


class AssetRead(ORMReadModel):
    id: int
    asset_number: str
    description: str
    type_id: int | None = None
    status: AssetStatus
    parent_id: int | None = None
    location: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    install_date: UtcDatetime | None = None
    warranty_expiration: UtcDatetime | None = None
    replacement_cost: float | None = None
    criticality_rating: int | None = None
    last_service_date: UtcDatetime | None = None
    barcode: str | None = None


# Inventory


class InventoryItemCreate(BaseModel):
    part_number: str
    name: str
    description: str | None = None
    category_id: int | None = None
    unit_cost: float | None = PydanticField(default=None, ge=0)
    quantity_in_stock: int = PydanticField(default=0, ge=0)
    reorder_point: int | None = PydanticField(default=None, ge=0)
    location: str | None = None
    barcode: str | None = None
    is_active: bool = True


class InventoryItemUpdate(BaseModel):
    part_number: str | None = None
    name: str | None = None
    description: str | None = None
    category_id: int | None = None
    unit_cost: float | None = PydanticField(default=None, ge=0)
    quantity_in_stock: int | None = PydanticField(default=None, ge=0)
    reorder_point: int | None = PydanticField(default=None, ge=0)
    location: str | None = None
    barcode: str | None = None
    is_active: bool | None = None


class InventoryItemRead(ORMReadModel):
    id: int
    part_number: str
    name: str
    description: str | None = None
    category_id: int | None = None
    unit_cost: float | None = None
    quantity_in_stock: int
    reorder_point: int | None = None
    location: str | None = None
    barcode: str | None = None
    is_active: bool


# Work orders


class WorkOrderFields(BaseModel):
    """Optional work order fields shared by create, update and conversion overrides."""

    work_order_number: str | None = None
    title: str | None = None
    description: str | None = None
    type_id: int | None = None
    asset_id: int | None = None
    priority: WorkPriority | None = None
    status: WorkOrderStatus | None = None
    requested_by_id: int | None = None
    assigned_to_id: int | None = None
    date_requested: UtcDatetime | None = None
    date_needed: UtcDatetime | None = None
    date_scheduled: UtcDatetime | None = None
    date_started: UtcDatetime | None = None
    date_completed: UtcDatetime | None = None
    estimated_hours: float | None = PydanticField(default=None, ge=0)
    actual_hours: float | None = PydanticField(default=None, ge=0)
    estimated_cost: float | None = PydanticField(default=None, ge=0)
    actual_cost: float | None = PydanticField(default=None, ge=0)
    completion_notes: str | None = None


class WorkOrderCreate(WorkOrderFields):
    title: str


class WorkOrderUpdate(WorkOrderFields):
    pass


class WorkRequestConvertRequest(WorkOrderFields):
    pass


class WorkOrderRead(ORMReadModel):
    id: int
    work_order_number: str
    title: str
    description: str | None = None
    type_id: int | None = None
    asset_id: int | None = None
    priority: WorkPriority
    status: WorkOrderStatus
    requested_by_id: int | None = None
    assigned_to_id: int | None = None
    date_requested: UtcDatetime
    date_needed: UtcDatetime | None = None
    date_scheduled: UtcDatetime | None = None
    date_started: UtcDatetime | None = None
    date_completed: UtcDatetime | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    estimated_cost: float | None = None
    actual_cost: float | None = None
    completion_notes: str | None = None


class WorkOrderLaborCreate(BaseModel):
    user_id: int
    hours: float = PydanticField(gt=0)
    labor_cost: float | None = PydanticField(default=None, ge=0)
    date_performed: UtcDatetime
    notes: str | None = None


class WorkOrderLaborRead(ORMReadModel):
    id: int
    work_order_id: int
    user_id: int
    hours: float
    labor_cost: float | None = None
    date_performed: UtcDatetime
    notes: str | None = None


class WorkOrderPartCreate(BaseModel):
    inventory_item_id: int
    quantity: int = PydanticField(gt=0)
    date_issued: UtcDatetime | None = None


class WorkOrderPartRead(ORMReadModel):
    id: int
    work_order_id: int
    inventory_item_id: int
    quantity: int
    unit_cost: float | None = None
    total_cost: float | None = None
    date_issued: UtcDatetime


# Work requests


class WorkRequestCreate(BaseModel):
    request_number: str | None = None
    title: str
    description: str
    asset_id: int | None = None
    priority: WorkPriority = WorkPriority.MEDIUM
    requested_by_id: int | None = None
    date_requested: UtcDatetime | None = None
    date_needed: UtcDatetime | None = None
    location: str | None = None
    notes: str | None = None


class WorkRequestUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    asset_id: int | None = None
    priority: WorkPriority | None = None
    status: WorkOrderStatus | None = None
    date_needed: UtcDatetime | None = None
    location: str | None = None
    notes: str | None = None


class WorkRequestRead(ORMReadModel):
    id: int
    request_number: str
    title: str
    description: str
    asset_id: int | None = None
    priority: WorkPriority
    status: WorkOrderStatus
    requested_by_id: int
    date_requested: UtcDatetime
    date_needed: UtcDatetime | None = None
    location: str | None = None
    notes: str | None = None
    is_converted: bool
    converted_to_work_order_id: int | None = None


# Preventive maintenance


class PreventiveMaintenanceCreate(BaseModel):
    title: str
    description: str
    asset_id: int | None = None
    maintenance_type: str
    priority: WorkPriority = WorkPriority.MEDIUM
    start_date: UtcDatetime
    duration: float = PydanticField(gt=0)
    created_by_id: int | None = None
    is_recurring: bool = False
    recurring_period: RecurringPeriod | None = None
    occurrences: int | None = PydanticField(default=None, ge=1)
    is_active: bool = True
    notes: str | None = None
    technician_ids: list[int] | None = None
    generate_work_orders_immediately: bool = False


class PreventiveMaintenanceUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    asset_id: int | None = None
    maintenance_type: str | None = None
    priority: WorkPriority | None = None
    start_date: UtcDatetime | None = None
    duration: float | None = PydanticField(default=None, gt=0)
    is_recurring: bool | None = None
    recurring_period: RecurringPeriod | None = None
    occurrences: int | None = PydanticField(default=None, ge=1)
    is_active: bool | None = None
    notes: str | None = None
    technician_ids: list[int] | None = None


class PreventiveMaintenanceRead(ORMReadModel):
    id: int
    title: str
    description: str
    asset_id: int | None = None
    maintenance_type: str
    priority: WorkPriority
    start_date: UtcDatetime
    duration: float
    created_by_id: int
    is_recurring: bool
    recurring_period: RecurringPeriod | None = None
    occurrences: int | None = None
    is_active: bool
    notes: str | None = None
    date_created: UtcDatetime
    last_generated_at: UtcDatetime | None = None


class TechnicianAssignRequest(BaseModel):
    technician_ids: list[int]


class PmTechnicianRead(ORMReadModel):
    id: int
    pm_id: int
    technician_id: int


class PmWorkOrderRead(ORMReadModel):
    id: int
    pm_id: int
    work_order_id: int
    scheduled_date: UtcDatetime
    occurrence_number: int


# Read models composed from related rows


class WorkOrderPartDetailRead(WorkOrderPartRead):
    inventory_item: InventoryItemRead | None = None


class WorkOrderDetailRead(WorkOrderRead):
    asset: AssetRead | None = None
    requested_by: UserRead | None = None
    assigned_to: UserRead | None = None
    type: WorkOrderTypeRead | None = None
    labor_entries: list[WorkOrderLaborRead] = PydanticField(default_factory=list)
    parts: list[WorkOrderPartDetailRead] = PydanticField(default_factory=list)


class AssetDetailRead(AssetRead):
    type: AssetTypeRead | None = None
    parent: AssetRead | None = None
    work_orders: list[WorkOrderRead] = PydanticField(default_factory=list)


class InventoryItemDetailRead(InventoryItemRead):
    category: InventoryCategoryRead | None = None


class WorkRequestDetailRead(WorkRequestRead):
    asset: AssetRead | None = None
    requested_by: UserRead | None = None
    converted_to_work_order: WorkOrderRead | None = None


class PmWorkOrderDetailRead(PmWorkOrderRead):
    work_order: WorkOrderRead


class PreventiveMaintenanceDetailRead(PreventiveMaintenanceRead):
    asset: AssetRead | None = None
    created_by: UserRead | None = None
    technicians: list[UserRead] = PydanticField(default_factory=list)
    generated_work_orders: list[PmWorkOrderDetailRead] = PydanticField(default_factory=list)


# Barcode scan


class ScanRequest(BaseModel):
    barcode: str = PydanticField(min_length=1)


class ScanResultType(StrEnum):
    ASSET = "asset"
    INVENTORY_ITEM = "inventory_item"


class ScanResultRead(BaseModel):
    type: ScanResultType
    item: AssetRead | InventoryItemRead


# Notifications


class NotificationCreate(BaseModel):
    user_id: int
    title: str
    message: str
    type: str = "info"
    related_item_type: str | None = None
    related_item_id: int | None = None


class NotificationRead(ORMReadModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    status: NotificationStatus
    related_item_type: str | None = None
    related_item_id: int | None = None
    created_at: UtcDatetime
    read_at: UtcDatetime | None = None
    dismissed_at: UtcDatetime | None = None


class NotificationCountRead(BaseModel):
    count: int


# Documents


class DocumentRead(ORMReadModel):
    id: int
    filename: str
    filesize: int
    content_type: str
    entity_type: str
    entity_id: int
    upload_date: UtcDatetime
