"""initial maintenance schema

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("correlation_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_correlation_id", "events", ["correlation_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="REQUESTER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "asset_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_asset_types_name", "asset_types", ["name"], unique=True)

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("asset_number", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("type_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="OPERATIONAL"),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("manufacturer", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("serial_number", sa.String(), nullable=True),
        sa.Column("install_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("warranty_expiration", sa.DateTime(timezone=True), nullable=True),
        sa.Column("replacement_cost", sa.Float(), nullable=True),
        sa.Column("criticality_rating", sa.Integer(), nullable=True),
        sa.Column("last_service_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("barcode", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["type_id"], ["asset_types.id"]),
        sa.ForeignKeyConstraint(["parent_id"], ["assets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_asset_number", "assets", ["asset_number"], unique=True)
    op.create_index("ix_assets_type_id", "assets", ["type_id"])
    op.create_index("ix_assets_status", "assets", ["status"])
    op.create_index("ix_assets_parent_id", "assets", ["parent_id"])
    op.create_index("ix_assets_barcode", "assets", ["barcode"])

    op.create_table(
        "inventory_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_inventory_categories_name", "inventory_categories", ["name"], unique=True)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_number", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("unit_cost", sa.Float(), nullable=True),
        sa.Column("quantity_in_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("barcode", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["category_id"], ["inventory_categories.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_inventory_items_part_number", "inventory_items", ["part_number"], unique=True)
    op.create_index("ix_inventory_items_category_id", "inventory_items", ["category_id"])
    op.create_index("ix_inventory_items_barcode", "inventory_items", ["barcode"])

    op.create_table(
        "work_order_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_order_types_name", "work_order_types", ["name"], unique=True)

    op.create_table(
        "work_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_order_number", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("type_id", sa.Integer(), nullable=True),
        sa.Column("asset_id", sa.Integer(), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="MEDIUM"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="REQUESTED"),
        sa.Column("requested_by_id", sa.Integer(), nullable=True),
        sa.Column("assigned_to_id", sa.Integer(), nullable=True),
        sa.Column("date_requested", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_needed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_scheduled", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_started", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_completed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("estimated_cost", sa.Float(), nullable=True),
        sa.Column("actual_cost", sa.Float(), nullable=True),
        sa.Column("completion_notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["type_id"], ["work_order_types.id"]),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["requested_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_orders_work_order_number", "work_orders", ["work_order_number"], unique=True)
    op.create_index("ix_work_orders_type_id", "work_orders", ["type_id"])
    op.create_index("ix_work_orders_asset_id", "work_orders", ["asset_id"])
    op.create_index("ix_work_orders_requested_by_id", "work_orders", ["requested_by_id"])
    op.create_index("ix_work_orders_assigned_to_id", "work_orders", ["assigned_to_id"])
    op.create_index("ix_work_orders_date_scheduled", "work_orders", ["date_scheduled"])
    op.create_index("ix_work_orders_status_priority", "work_orders", ["status", "priority"])

    op.create_table(
        "work_order_labor",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("labor_cost", sa.Float(), nullable=True),
        sa.Column("date_performed", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_order_labor_work_order_id", "work_order_labor", ["work_order_id"])
    op.create_index("ix_work_order_labor_user_id", "work_order_labor", ["user_id"])

    op.create_table(
        "work_order_parts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=False),
        sa.Column("inventory_item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Float(), nullable=True),
        sa.Column("total_cost", sa.Float(), nullable=True),
        sa.Column("date_issued", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"]),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_order_parts_work_order_id", "work_order_parts", ["work_order_id"])
    op.create_index("ix_work_order_parts_inventory_item_id", "work_order_parts", ["inventory_item_id"])

    op.create_table(
        "work_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_number", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("asset_id", sa.Integer(), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="MEDIUM"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="REQUESTED"),
        sa.Column("requested_by_id", sa.Integer(), nullable=False),
        sa.Column("date_requested", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_needed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("is_converted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("converted_to_work_order_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["requested_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["converted_to_work_order_id"], ["work_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_requests_request_number", "work_requests", ["request_number"], unique=True)
    op.create_index("ix_work_requests_asset_id", "work_requests", ["asset_id"])
    op.create_index("ix_work_requests_status", "work_requests", ["status"])
    op.create_index("ix_work_requests_requested_by_id", "work_requests", ["requested_by_id"])
    op.create_index("ix_work_requests_is_converted", "work_requests", ["is_converted"])

    op.create_table(
        "preventive_maintenance",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("asset_id", sa.Integer(), nullable=True),
        sa.Column("maintenance_type", sa.String(), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="MEDIUM"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurring_period", sa.String(length=20), nullable=True),
        sa.Column("occurrences", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_preventive_maintenance_asset_id", "preventive_maintenance", ["asset_id"])
    op.create_index("ix_preventive_maintenance_created_by_id", "preventive_maintenance", ["created_by_id"])
    op.create_index("ix_preventive_maintenance_is_active", "preventive_maintenance", ["is_active"])

    op.create_table(
        "pm_technicians",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pm_id", sa.Integer(), nullable=False),
        sa.Column("technician_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["pm_id"], ["preventive_maintenance.id"]),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("pm_id", "technician_id", name="uq_pm_technicians_pm_technician"),
    )
    op.create_index("ix_pm_technicians_pm_id", "pm_technicians", ["pm_id"])
    op.create_index("ix_pm_technicians_technician_id", "pm_technicians", ["technician_id"])

    op.create_table(
        "pm_work_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pm_id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("occurrence_number", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["pm_id"], ["preventive_maintenance.id"]),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pm_work_orders_pm_id", "pm_work_orders", ["pm_id"])
    op.create_index("ix_pm_work_orders_work_order_id", "pm_work_orders", ["work_order_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="info"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="UNREAD"),
        sa.Column("related_item_type", sa.String(), nullable=True),
        sa.Column("related_item_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_user_status", "notifications", ["user_id", "status"])

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("filesize", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("object_key", sa.String(), nullable=False),
        sa.Column("upload_date", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_documents_upload_date", "documents", ["upload_date"])
    op.create_index("ix_documents_entity", "documents", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_documents_entity", table_name="documents")
    op.drop_index("ix_documents_upload_date", table_name="documents")
    op.drop_table("documents")

    op.drop_index("ix_notifications_user_status", table_name="notifications")
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_pm_work_orders_work_order_id", table_name="pm_work_orders")
    op.drop_index("ix_pm_work_orders_pm_id", table_name="pm_work_orders")
    op.drop_table("pm_work_orders")

    op.drop_index("ix_pm_technicians_technician_id", table_name="pm_technicians")
    op.drop_index("ix_pm_technicians_pm_id", table_name="pm_technicians")
    op.drop_table("pm_technicians")

    op.drop_index("ix_preventive_maintenance_is_active", table_name="preventive_maintenance")
    op.drop_index("ix_preventive_maintenance_created_by_id", table_name="preventive_maintenance")
    op.drop_index("ix_preventive_maintenance_asset_id", table_name="preventive_maintenance")
    op.drop_table("preventive_maintenance")

    op.drop_index("ix_work_requests_is_converted", table_name="work_requests")
    op.drop_index("ix_work_requests_requested_by_id", table_name="work_requests")
    op.drop_index("ix_work_requests_status", table_name="work_requests")
    op.drop_index("ix_work_requests_asset_id", table_name="work_requests")
    op.drop_index("ix_work_requests_request_number", table_name="work_requests")
    op.drop_table("work_requests")

    op.drop_index("ix_work_order_parts_inventory_item_id", table_name="work_order_parts")
    op.drop_index("ix_work_order_parts_work_order_id", table_name="work_order_parts")
    op.drop_table("work_order_parts")

    op.drop_index("ix_work_order_labor_user_id", table_name="work_order_labor")
    op.drop_index("ix_work_order_labor_work_order_id", table_name="work_order_labor")
    op.drop_table("work_order_labor")

    op.drop_index("ix_work_orders_status_priority", table_name="work_orders")
    op.drop_index("ix_work_orders_date_scheduled", table_name="work_orders")
    op.drop_index("ix_work_orders_assigned_to_id", table_name="work_orders")
    op.drop_index("ix_work_orders_requested_by_id", table_name="work_orders")
    op.drop_index("ix_work_orders_asset_id", table_name="work_orders")
    op.drop_index("ix_work_orders_type_id", table_name="work_orders")
    op.drop_index("ix_work_orders_work_order_number", table_name="work_orders")
    op.drop_table("work_orders")

    op.drop_index("ix_work_order_types_name", table_name="work_order_types")
    op.drop_table("work_order_types")

    op.drop_index("ix_inventory_items_barcode", table_name="inventory_items")
    op.drop_index("ix_inventory_items_category_id", table_name="inventory_items")
    op.drop_index("ix_inventory_items_part_number", table_name="inventory_items")
    op.drop_table("inventory_items")

    op.drop_index("ix_inventory_categories_name", table_name="inventory_categories")
    op.drop_table("inventory_categories")

    op.drop_index("ix_assets_barcode", table_name="assets")
    op.drop_index("ix_assets_parent_id", table_name="assets")
    op.drop_index("ix_assets_status", table_name="assets")
    op.drop_index("ix_assets_type_id", table_name="assets")
    op.drop_index("ix_assets_asset_number", table_name="assets")
    op.drop_table("assets")

    op.drop_index("ix_asset_types_name", table_name="asset_types")
    op.drop_table("asset_types")

    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_audit_logs_ts", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_events_correlation_id", table_name="events")
    op.drop_index("ix_events_actor_id", table_name="events")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")
