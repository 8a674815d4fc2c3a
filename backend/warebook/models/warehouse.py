"""Warehouse listing plus the operational tables the availability gate reads.

Warehouse:             capacity, working days, acceptance hours, and the
                       warehouse-level pricing settings (free storage rules,
                       volume discounts, area rental rate)
WarehouseStaff:        which users operate which warehouse
WarehouseTask:         staff tasks; receiving/putaway occupy drop-off slots
WarehouseAvailability: per-date capacity override / closure
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean, Date, DateTime, Float, ForeignKey,
    Integer, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warebook.database import Base


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_company_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str | None] = mapped_column(String(100), index=True)

    # ── Capacity ─────────────────────────────────────────────
    total_pallet_storage: Mapped[int | None] = mapped_column(Integer)
    available_pallet_storage: Mapped[int | None] = mapped_column(Integer)
    total_sq_ft: Mapped[float | None] = mapped_column(Float)
    available_sq_ft: Mapped[float | None] = mapped_column(Float)

    # ── Schedule ─────────────────────────────────────────────
    # Day names ("Monday", ...).  Empty / null = open every day.
    working_days: Mapped[list | None] = mapped_column(JSON, default=list)
    operating_open: Mapped[str | None] = mapped_column(String(5))    # "HH:MM"
    operating_close: Mapped[str | None] = mapped_column(String(5))
    product_acceptance_start: Mapped[str | None] = mapped_column(String(5))
    product_acceptance_end: Mapped[str | None] = mapped_column(String(5))

    # ── Pricing settings ─────────────────────────────────────
    # [{"min_duration": 30, "max_duration": 60, "duration_unit": "day",
    #   "free_amount": 7, "free_unit": "day"}, ...]
    free_storage_rules: Mapped[list | None] = mapped_column(JSON, default=list)
    # [{"threshold": 100, "percent": 10}, ...]
    volume_discounts: Mapped[list | None] = mapped_column(JSON, default=list)
    accepted_goods_types: Mapped[list | None] = mapped_column(JSON, default=list)
    area_rate: Mapped[float | None] = mapped_column(Float)
    area_rate_unit: Mapped[str] = mapped_column(String(30), default="per_sqft_per_month")
    area_min_sq_ft: Mapped[float] = mapped_column(Float, default=0)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    pallet_pricing = relationship(
        "PalletPricing", back_populates="warehouse", cascade="all, delete-orphan"
    )
    staff = relationship("WarehouseStaff", back_populates="warehouse")


class WarehouseStaff(Base):
    __tablename__ = "warehouse_staff"
    __table_args__ = (UniqueConstraint("user_id", "warehouse_id"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), default="staff")  # manager | staff
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    warehouse = relationship("Warehouse", back_populates="staff")


class WarehouseTask(Base):
    __tablename__ = "warehouse_tasks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )
    booking_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("bookings.id"))
    # receiving | putaway | picking | packing | shipping | inventory-check
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    # pending | assigned | in-progress | completed | cancelled
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    assigned_to: Mapped[str | None] = mapped_column(String(36))
    due_at: Mapped[datetime | None] = mapped_column(DateTime, index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class WarehouseAvailability(Base):
    __tablename__ = "warehouse_availability"
    __table_args__ = (UniqueConstraint("warehouse_id", "date"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    available_pallets: Mapped[int | None] = mapped_column(Integer)
    available_sq_ft: Mapped[float | None] = mapped_column(Float)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text)
