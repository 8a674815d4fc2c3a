"""Pydantic schemas for price calculation and warehouse rate configuration."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from warebook.schemas.validators import validate_goods_type
from warebook.services.booking_draft import DimensionUnit, LineItemInput
from warebook.services.pricing import AreaRateUnit, BookingType, MembershipTier, WarehousePricing
from warebook.services.rates import (
    AdjustmentType,
    CustomSize,
    PalletKind,
    PriceRange,
    PricingEntry,
    PricingPeriod,
)


# ── Pallet line items (shared with bookings) ─────────────────

class LineItemIn(BaseModel):
    """One pallet line as entered on the booking form."""
    pallet_type: str | None = None
    quantity: int | None = None
    height_range_id: str | None = None
    weight_range_id: str | None = None
    goods_type: str | None = None
    stackable: bool = True
    length: float | None = None
    width: float | None = None
    unit: DimensionUnit = DimensionUnit.CM

    def to_input(self) -> LineItemInput:
        return LineItemInput(
            pallet_type=self.pallet_type,
            quantity=self.quantity,
            height_range_id=self.height_range_id,
            weight_range_id=self.weight_range_id,
            goods_type=self.goods_type,
            stackable=self.stackable,
            length=self.length,
            width=self.width,
            unit=self.unit.value,
        )


class PalletDetailsIn(BaseModel):
    goods_type: str | None = None
    line_items: list[LineItemIn] = Field(default_factory=list)


# ── Calculate ────────────────────────────────────────────────

class PriceCalculateRequest(BaseModel):
    """Payload for POST /api/v1/pricing/calculate.

    Quantity and date checks happen in the calculator so they come back
    as field errors rather than schema errors.
    """
    warehouse_id: str
    type: BookingType = BookingType.PALLET
    quantity: float
    start_date: date
    end_date: date
    pallet_details: PalletDetailsIn | None = None
    area_sq_ft: float | None = None
    membership_tier: MembershipTier | None = None
    # Pallets the customer already stores here, counted toward volume tiers
    existing_pallet_count: int = Field(0, ge=0)


class LineItemPriceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pallet_type: str
    goods_type: str
    quantity: int
    stackable: bool
    period_rate: float
    daily_rate: float
    amount: float


class PriceBreakdownOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pricing_period: PricingPeriod
    days: int
    base_price: float
    free_days: int
    billable_days: int
    quantity: float
    subtotal: float
    discount_percent: float
    volume_discount: float
    membership_tier: MembershipTier | None = None
    membership_discount_percent: float = 0
    membership_discount: float = 0
    total: float
    line_items: list[LineItemPriceOut] = Field(default_factory=list)


class PriceCalculateResponse(BaseModel):
    success: bool = True
    breakdown: PriceBreakdownOut


# ── Rate configuration ───────────────────────────────────────

class AdjustmentIn(BaseModel):
    type: AdjustmentType = AdjustmentType.PLUS_PER_UNIT
    value: float = 0


class PriceRangeIn(BaseModel):
    """A bracket.  ``max`` may be omitted on the last bracket only."""
    id: str | None = None
    min: float = Field(..., ge=0)
    max: float | None = None
    price: float = Field(..., ge=0)

    @classmethod
    def from_engine(cls, price_range: PriceRange) -> "PriceRangeIn":
        return cls(id=price_range.id, min=price_range.min, max=price_range.max, price=price_range.price)


class CustomSizeIn(BaseModel):
    id: str | None = None
    length_min_cm: float = Field(..., ge=0)
    length_max_cm: float = Field(..., gt=0)
    width_min_cm: float = Field(..., ge=0)
    width_max_cm: float = Field(..., gt=0)
    height_ranges: list[PriceRangeIn] = Field(default_factory=list)
    stackable_adjustment: AdjustmentIn = Field(default_factory=AdjustmentIn)
    unstackable_adjustment: AdjustmentIn = Field(default_factory=AdjustmentIn)

    @classmethod
    def from_engine(cls, size: CustomSize) -> "CustomSizeIn":
        return cls(
            id=size.id,
            length_min_cm=size.length_min_cm,
            length_max_cm=size.length_max_cm,
            width_min_cm=size.width_min_cm,
            width_max_cm=size.width_max_cm,
            height_ranges=[PriceRangeIn.from_engine(r) for r in size.height_ranges],
            stackable_adjustment=AdjustmentIn(type=size.stackable.type, value=size.stackable.value),
            unstackable_adjustment=AdjustmentIn(type=size.unstackable.type, value=size.unstackable.value),
        )


class PricingEntryIn(BaseModel):
    id: str | None = None
    goods_type: str = "general"
    pallet_type: PalletKind
    pricing_period: PricingPeriod
    height_ranges: list[PriceRangeIn] = Field(default_factory=list)
    weight_ranges: list[PriceRangeIn] = Field(default_factory=list)
    custom_sizes: list[CustomSizeIn] = Field(default_factory=list)
    stackable_adjustment: AdjustmentIn = Field(default_factory=AdjustmentIn)
    unstackable_adjustment: AdjustmentIn = Field(default_factory=AdjustmentIn)

    @field_validator("goods_type", mode="before")
    @classmethod
    def _goods(cls, v: str | None) -> str:
        return validate_goods_type(v)

    @classmethod
    def from_engine(cls, entry: PricingEntry) -> "PricingEntryIn":
        return cls(
            id=entry.id,
            goods_type=entry.goods_type,
            pallet_type=entry.pallet_type,
            pricing_period=entry.period,
            height_ranges=[PriceRangeIn.from_engine(r) for r in entry.height_ranges],
            weight_ranges=[PriceRangeIn.from_engine(r) for r in entry.weight_ranges],
            custom_sizes=[CustomSizeIn.from_engine(s) for s in entry.custom_sizes],
            stackable_adjustment=AdjustmentIn(type=entry.stackable.type, value=entry.stackable.value),
            unstackable_adjustment=AdjustmentIn(type=entry.unstackable.type, value=entry.unstackable.value),
        )


class FreeStorageRuleIn(BaseModel):
    min_duration: int = Field(..., ge=1)
    max_duration: int | None = Field(None, ge=1)
    duration_unit: PricingPeriod = PricingPeriod.DAY
    free_amount: int = Field(..., ge=0)
    free_unit: PricingPeriod = PricingPeriod.DAY


class VolumeDiscountIn(BaseModel):
    threshold: int = Field(..., ge=1)
    percent: float = Field(..., ge=0, le=100)


class AreaRateIn(BaseModel):
    rate: float = Field(..., ge=0)
    unit: AreaRateUnit = AreaRateUnit.PER_SQFT_PER_MONTH
    min_sq_ft: float = Field(0, ge=0)


class WarehousePricingConfig(BaseModel):
    """Payload for PUT /api/v1/warehouses/{id}/pricing (and its GET)."""
    entries: list[PricingEntryIn] = Field(default_factory=list)
    free_storage_rules: list[FreeStorageRuleIn] = Field(default_factory=list)
    volume_discounts: list[VolumeDiscountIn] = Field(default_factory=list)
    area_rate: AreaRateIn | None = None
    accepted_goods_types: list[str] = Field(default_factory=list)

    @field_validator("accepted_goods_types")
    @classmethod
    def _goods_types(cls, v: list[str]) -> list[str]:
        return sorted({validate_goods_type(g) for g in v})


class WarehousePricingOut(WarehousePricingConfig):
    warehouse_id: str
    currency: str = "USD"

    @classmethod
    def from_engine(
        cls,
        pricing: WarehousePricing,
        accepted_goods_types: list[str] | None = None,
        currency: str = "USD",
    ) -> "WarehousePricingOut":
        area = pricing.area_rate
        return cls(
            warehouse_id=pricing.warehouse_id,
            currency=currency,
            entries=[PricingEntryIn.from_engine(e) for e in pricing.entries],
            free_storage_rules=[
                FreeStorageRuleIn(
                    min_duration=r.min_duration,
                    max_duration=r.max_duration,
                    duration_unit=r.duration_unit,
                    free_amount=r.free_amount,
                    free_unit=r.free_unit,
                )
                for r in pricing.free_storage_rules
            ],
            volume_discounts=[
                VolumeDiscountIn(threshold=t.threshold, percent=t.percent)
                for t in pricing.volume_discounts
            ],
            area_rate=AreaRateIn(rate=area.rate, unit=area.unit, min_sq_ft=area.min_sq_ft) if area else None,
            accepted_goods_types=accepted_goods_types or [],
        )

