"""Pallet rate tables.

One PalletPricing row per (warehouse, goods_type, pallet_type, pricing_period).
Height and weight brackets hang off it ordered by ``position``; custom
pallet entries carry CustomPalletSize rows whose own height brackets
replace the entry's height brackets.

Bracket bounds: min inclusive, max exclusive; ``max`` may be null on the
last bracket only (open-ended).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey,
    Integer, String, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warebook.database import Base


class PalletPricing(Base):
    __tablename__ = "pallet_pricing"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "goods_type", "pallet_type", "pricing_period"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    goods_type: Mapped[str] = mapped_column(String(50), default="general", nullable=False)
    # standard | euro | custom
    pallet_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # day | week | month
    pricing_period: Mapped[str] = mapped_column(String(10), nullable=False)

    # rate | plus_per_unit
    stackable_adjustment_type: Mapped[str] = mapped_column(String(20), default="plus_per_unit")
    stackable_adjustment_value: Mapped[float] = mapped_column(Float, default=0)
    unstackable_adjustment_type: Mapped[str] = mapped_column(String(20), default="plus_per_unit")
    unstackable_adjustment_value: Mapped[float] = mapped_column(Float, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    warehouse = relationship("Warehouse", back_populates="pallet_pricing")
    height_ranges = relationship(
        "PalletHeightRange",
        primaryjoin="PalletPricing.id == PalletHeightRange.pallet_pricing_id",
        order_by="PalletHeightRange.position",
        cascade="all, delete-orphan",
    )
    weight_ranges = relationship(
        "PalletWeightRange",
        order_by="PalletWeightRange.position",
        cascade="all, delete-orphan",
    )
    custom_sizes = relationship(
        "CustomPalletSize",
        back_populates="pallet_pricing",
        order_by="CustomPalletSize.position",
        cascade="all, delete-orphan",
    )


class CustomPalletSize(Base):
    __tablename__ = "custom_pallet_sizes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    pallet_pricing_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pallet_pricing.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    length_min_cm: Mapped[float] = mapped_column(Float, nullable=False)
    length_max_cm: Mapped[float] = mapped_column(Float, nullable=False)
    width_min_cm: Mapped[float] = mapped_column(Float, nullable=False)
    width_max_cm: Mapped[float] = mapped_column(Float, nullable=False)

    stackable_adjustment_type: Mapped[str] = mapped_column(String(20), default="plus_per_unit")
    stackable_adjustment_value: Mapped[float] = mapped_column(Float, default=0)
    unstackable_adjustment_type: Mapped[str] = mapped_column(String(20), default="plus_per_unit")
    unstackable_adjustment_value: Mapped[float] = mapped_column(Float, default=0)

    pallet_pricing = relationship("PalletPricing", back_populates="custom_sizes")
    height_ranges = relationship(
        "PalletHeightRange",
        primaryjoin="CustomPalletSize.id == PalletHeightRange.custom_size_id",
        order_by="PalletHeightRange.position",
        cascade="all, delete-orphan",
    )


class PalletHeightRange(Base):
    """Height bracket owned by either a pricing entry or a custom size."""
    __tablename__ = "pallet_height_ranges"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    pallet_pricing_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("pallet_pricing.id", ondelete="CASCADE"), index=True
    )
    custom_size_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("custom_pallet_sizes.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    height_min_cm: Mapped[float] = mapped_column(Float, nullable=False)
    height_max_cm: Mapped[float | None] = mapped_column(Float)
    price_per_unit: Mapped[float] = mapped_column(Float, nullable=False)


class PalletWeightRange(Base):
    __tablename__ = "pallet_weight_ranges"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    pallet_pricing_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pallet_pricing.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    weight_min_kg: Mapped[float] = mapped_column(Float, nullable=False)
    weight_max_kg: Mapped[float | None] = mapped_column(Float)
    price_per_pallet: Mapped[float] = mapped_column(Float, nullable=False)
