"""Initial marketplace schema: users, warehouses, rate tables, bookings.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Users ────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "WAREHOUSE_OWNER", "WAREHOUSE_STAFF", "CUSTOMER", name="userrole"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("company_id", sa.String(36)),
        sa.Column("custom_permissions", sa.JSON(), nullable=True),
        sa.Column("membership_tier", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"])

    # ── Warehouses ───────────────────────────────────────────

    op.create_table(
        "warehouses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_company_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text()),
        sa.Column("city", sa.String(100)),
        sa.Column("total_pallet_storage", sa.Integer()),
        sa.Column("available_pallet_storage", sa.Integer()),
        sa.Column("total_sq_ft", sa.Float()),
        sa.Column("available_sq_ft", sa.Float()),
        sa.Column("working_days", sa.JSON(), server_default="[]"),
        sa.Column("operating_open", sa.String(5)),
        sa.Column("operating_close", sa.String(5)),
        sa.Column("product_acceptance_start", sa.String(5)),
        sa.Column("product_acceptance_end", sa.String(5)),
        sa.Column("free_storage_rules", sa.JSON(), server_default="[]"),
        sa.Column("volume_discounts", sa.JSON(), server_default="[]"),
        sa.Column("accepted_goods_types", sa.JSON(), server_default="[]"),
        sa.Column("area_rate", sa.Float()),
        sa.Column("area_rate_unit", sa.String(30), server_default="per_sqft_per_month"),
        sa.Column("area_min_sq_ft", sa.Float(), server_default="0"),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_warehouses_owner_company_id", "warehouses", ["owner_company_id"])
    op.create_index("ix_warehouses_city", "warehouses", ["city"])

    op.create_table(
        "warehouse_staff",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("role", sa.String(20), server_default="staff"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "warehouse_id"),
    )
    op.create_index("ix_warehouse_staff_user_id", "warehouse_staff", ["user_id"])
    op.create_index("ix_warehouse_staff_warehouse_id", "warehouse_staff", ["warehouse_id"])

    op.create_table(
        "warehouse_availability",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("available_pallets", sa.Integer()),
        sa.Column("available_sq_ft", sa.Float()),
        sa.Column("is_blocked", sa.Boolean(), server_default="false"),
        sa.Column("notes", sa.Text()),
        sa.UniqueConstraint("warehouse_id", "date"),
    )
    op.create_index(
        "ix_warehouse_availability_warehouse_id", "warehouse_availability", ["warehouse_id"]
    )
    op.create_index("ix_warehouse_availability_date", "warehouse_availability", ["date"])

    # ── Rate tables ──────────────────────────────────────────

    op.create_table(
        "pallet_pricing",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "warehouse_id", sa.String(36),
            sa.ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("goods_type", sa.String(50), nullable=False, server_default="general"),
        sa.Column("pallet_type", sa.String(20), nullable=False),
        sa.Column("pricing_period", sa.String(10), nullable=False),
        sa.Column("stackable_adjustment_type", sa.String(20), server_default="plus_per_unit"),
        sa.Column("stackable_adjustment_value", sa.Float(), server_default="0"),
        sa.Column("unstackable_adjustment_type", sa.String(20), server_default="plus_per_unit"),
        sa.Column("unstackable_adjustment_value", sa.Float(), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("warehouse_id", "goods_type", "pallet_type", "pricing_period"),
    )
    op.create_index("ix_pallet_pricing_warehouse_id", "pallet_pricing", ["warehouse_id"])

    op.create_table(
        "custom_pallet_sizes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "pallet_pricing_id", sa.String(36),
            sa.ForeignKey("pallet_pricing.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("position", sa.Integer(), server_default="0"),
        sa.Column("length_min_cm", sa.Float(), nullable=False),
        sa.Column("length_max_cm", sa.Float(), nullable=False),
        sa.Column("width_min_cm", sa.Float(), nullable=False),
        sa.Column("width_max_cm", sa.Float(), nullable=False),
        sa.Column("stackable_adjustment_type", sa.String(20), server_default="plus_per_unit"),
        sa.Column("stackable_adjustment_value", sa.Float(), server_default="0"),
        sa.Column("unstackable_adjustment_type", sa.String(20), server_default="plus_per_unit"),
        sa.Column("unstackable_adjustment_value", sa.Float(), server_default="0"),
    )
    op.create_index(
        "ix_custom_pallet_sizes_pallet_pricing_id", "custom_pallet_sizes", ["pallet_pricing_id"]
    )

    op.create_table(
        "pallet_height_ranges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "pallet_pricing_id", sa.String(36),
            sa.ForeignKey("pallet_pricing.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column(
            "custom_size_id", sa.String(36),
            sa.ForeignKey("custom_pallet_sizes.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("position", sa.Integer(), server_default="0"),
        sa.Column("height_min_cm", sa.Float(), nullable=False),
        sa.Column("height_max_cm", sa.Float()),
        sa.Column("price_per_unit", sa.Float(), nullable=False),
    )
    op.create_index(
        "ix_pallet_height_ranges_pallet_pricing_id", "pallet_height_ranges", ["pallet_pricing_id"]
    )
    op.create_index(
        "ix_pallet_height_ranges_custom_size_id", "pallet_height_ranges", ["custom_size_id"]
    )

    op.create_table(
        "pallet_weight_ranges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "pallet_pricing_id", sa.String(36),
            sa.ForeignKey("pallet_pricing.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("position", sa.Integer(), server_default="0"),
        sa.Column("weight_min_kg", sa.Float(), nullable=False),
        sa.Column("weight_max_kg", sa.Float()),
        sa.Column("price_per_pallet", sa.Float(), nullable=False),
    )
    op.create_index(
        "ix_pallet_weight_ranges_pallet_pricing_id", "pallet_weight_ranges", ["pallet_pricing_id"]
    )

    # ── Bookings ─────────────────────────────────────────────

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_code", sa.String(50), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(30), server_default="pre_order"),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("pallet_count", sa.Integer()),
        sa.Column("area_sq_ft", sa.Float()),
        sa.Column("goods_type", sa.String(50), server_default="general"),
        sa.Column("pallet_details", sa.JSON(), nullable=True),
        sa.Column("total_amount", sa.Float(), server_default="0"),
        sa.Column("scheduled_dropoff_at", sa.DateTime()),
        sa.Column("proposed_start_date", sa.Date()),
        sa.Column("proposed_start_time", sa.String(5)),
        sa.Column("date_change_requested_at", sa.DateTime()),
        sa.Column("date_change_requested_by", sa.String(36)),
        sa.Column("capacity_reserved", sa.Boolean(), server_default="false"),
        sa.Column("cancel_processed_at", sa.DateTime()),
        sa.Column("cancel_processed_by", sa.String(36)),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_bookings_booking_code", "bookings", ["booking_code"], unique=True)
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_warehouse_id", "bookings", ["warehouse_id"])
    op.create_index("ix_bookings_start_date", "bookings", ["start_date"])
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])

    op.create_table(
        "booking_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("from_status", sa.String(30)),
        sa.Column("to_status", sa.String(30)),
        sa.Column("event_data", sa.JSON(), nullable=True),
        sa.Column("recorded_by", sa.String(36)),
        sa.Column("recorded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_booking_events_booking_id", "booking_events", ["booking_id"])
    op.create_index("ix_booking_events_event_type", "booking_events", ["event_type"])
    op.create_index("ix_booking_events_recorded_at", "booking_events", ["recorded_at"])

    op.create_table(
        "warehouse_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("assigned_to", sa.String(36)),
        sa.Column("due_at", sa.DateTime()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_warehouse_tasks_warehouse_id", "warehouse_tasks", ["warehouse_id"])
    op.create_index("ix_warehouse_tasks_type", "warehouse_tasks", ["type"])
    op.create_index("ix_warehouse_tasks_status", "warehouse_tasks", ["status"])
    op.create_index("ix_warehouse_tasks_due_at", "warehouse_tasks", ["due_at"])

    # ── Activity log ─────────────────────────────────────────

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("warehouse_id", sa.String(36)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_warehouse_id", "activity_logs", ["warehouse_id"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("warehouse_tasks")
    op.drop_table("booking_events")
    op.drop_table("bookings")
    op.drop_table("pallet_weight_ranges")
    op.drop_table("pallet_height_ranges")
    op.drop_table("custom_pallet_sizes")
    op.drop_table("pallet_pricing")
    op.drop_table("warehouse_availability")
    op.drop_table("warehouse_staff")
    op.drop_table("warehouses")
    op.drop_table("users")
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
