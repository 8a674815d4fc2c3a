"""Price breakdown calculator.

Pricing steps for a booking request:

  1. duration = ceil((end - start) / 1 day), minimum 1
  2. period bucket: < 7 days → day, < 30 days → week, otherwise month
     (the bucket picks the whole rate table; nothing is interpolated)
  3. free storage: the rule whose [min, max] contains the duration grants
     free days; billable = max(0, duration - free)
  4. each pallet line is priced at its bracket rate (height + weight, then
     the stacking adjustment), converted to a daily rate
  5. subtotal = Σ daily_rate × quantity × billable days
     (area rental: sq ft × monthly rate × ceil(days / 30); free storage
     days do not shorten an area rental)
  6. volume discount: highest tier threshold ≤ pallet count, counting the
     customer's pallets already in storage (pallet bookings only)
  7. membership discount: the customer tier's percent of what is left
     after the volume discount
  8. total = subtotal - volume discount - membership discount

A missing rate is reported as ``PricingUnavailableError``; a zero price is
only ever the result of a genuinely zero rate or zero billable days.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime

from warebook.middleware.exceptions import BookingValidationError, PricingUnavailableError
from warebook.services.booking_draft import DraftLineItem, PalletBookingDetails
from warebook.services.rates import (
    PERIOD_DAYS,
    PricingEntry,
    PricingPeriod,
    bracket_position,
    resolve_rates,
    select_bracket,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class BookingType(str, enum.Enum):
    PALLET = "pallet"
    AREA_RENTAL = "area-rental"


class AreaRateUnit(str, enum.Enum):
    PER_SQFT_PER_MONTH = "per_sqft_per_month"
    PER_SQFT_PER_YEAR = "per_sqft_per_year"


class MembershipTier(str, enum.Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


# ── Warehouse pricing configuration ─────────────────────────


@dataclass(frozen=True)
class FreeStorageRule:
    min_duration: int
    max_duration: int | None
    duration_unit: PricingPeriod
    free_amount: int
    free_unit: PricingPeriod

    @property
    def min_days(self) -> int:
        return self.min_duration * PERIOD_DAYS[self.duration_unit]

    @property
    def max_days(self) -> int | None:
        if self.max_duration is None:
            return None
        return self.max_duration * PERIOD_DAYS[self.duration_unit]

    @property
    def free_days(self) -> int:
        return self.free_amount * PERIOD_DAYS[self.free_unit]

    def applies_to(self, days: int) -> bool:
        return days >= self.min_days and (self.max_days is None or days <= self.max_days)


@dataclass(frozen=True)
class VolumeDiscountTier:
    threshold: int
    percent: float


@dataclass(frozen=True)
class MembershipDiscount:
    tier: MembershipTier
    percent: float


@dataclass(frozen=True)
class AreaRate:
    rate: float
    unit: AreaRateUnit = AreaRateUnit.PER_SQFT_PER_MONTH
    min_sq_ft: float = 0

    @property
    def monthly_rate(self) -> float:
        if self.unit is AreaRateUnit.PER_SQFT_PER_YEAR:
            return self.rate / 12
        return self.rate


@dataclass(frozen=True)
class WarehousePricing:
    warehouse_id: str
    entries: tuple[PricingEntry, ...] = ()
    free_storage_rules: tuple[FreeStorageRule, ...] = ()
    volume_discounts: tuple[VolumeDiscountTier, ...] = ()
    area_rate: AreaRate | None = None
    membership_discounts: tuple[MembershipDiscount, ...] = ()


def validate_free_storage_rules(rules: list[FreeStorageRule]) -> list[str]:
    """Configuration-time checks.  Rules are expected ordered by min duration."""
    errors: list[str] = []
    last = len(rules) - 1
    for i, rule in enumerate(rules):
        n = i + 1
        if rule.min_duration <= 0 or rule.free_amount < 0:
            errors.append(f"Rule {n}: durations must be positive and free amount non-negative")
        if rule.free_days > rule.min_days:
            errors.append(
                f"Rule {n}: grants {rule.free_days} free days but qualifies from "
                f"{rule.min_days} days"
            )
        if rule.max_days is None and i != last:
            errors.append(f"Rule {n}: only the last rule may be open-ended")
        if rule.max_days is not None and rule.max_days < rule.min_days:
            errors.append(f"Rule {n}: max duration is below min duration")
        if i > 0:
            previous = rules[i - 1]
            if previous.max_days is not None and rule.min_days <= previous.max_days:
                errors.append(f"Rules {i} and {n} overlap")
    return errors


def validate_volume_discounts(tiers: list[VolumeDiscountTier]) -> list[str]:
    errors: list[str] = []
    seen: set[int] = set()
    for i, tier in enumerate(tiers, start=1):
        if tier.threshold < 1:
            errors.append(f"Tier {i}: threshold must be at least 1 pallet")
        if not 0 <= tier.percent <= 100:
            errors.append(f"Tier {i}: percent must be between 0 and 100")
        if tier.threshold in seen:
            errors.append(f"Tier {i}: duplicate threshold {tier.threshold}")
        seen.add(tier.threshold)
    return errors


# ── Request / result ────────────────────────────────────────


@dataclass(frozen=True)
class PriceRequest:
    warehouse_id: str
    type: BookingType
    quantity: float
    start_date: date | datetime
    end_date: date | datetime
    pallet_details: PalletBookingDetails | None = None
    area_sq_ft: float | None = None
    membership_tier: MembershipTier | None = None
    # Pallets the customer already has in storage; they count toward the
    # volume discount threshold but are not priced again
    existing_pallet_count: int = 0


@dataclass(frozen=True)
class LineItemPrice:
    pallet_type: str
    goods_type: str
    quantity: int
    stackable: bool
    period_rate: float
    daily_rate: float
    amount: float


@dataclass(frozen=True)
class PriceBreakdown:
    pricing_period: PricingPeriod
    days: int
    base_price: float
    free_days: int
    billable_days: int
    quantity: float
    subtotal: float
    discount_percent: float
    volume_discount: float
    total: float
    line_items: tuple[LineItemPrice, ...] = ()
    membership_tier: MembershipTier | None = None
    membership_discount_percent: float = 0.0
    membership_discount: float = 0.0


# ── Steps ───────────────────────────────────────────────────


def duration_days(start: date | datetime, end: date | datetime) -> int:
    if end < start:
        raise BookingValidationError(
            "End date must be on or after the start date",
            field_errors={"end_date": "End date is before start date"},
        )
    delta = end - start
    return max(1, math.ceil(delta.total_seconds() / SECONDS_PER_DAY))


def pricing_period_for(days: int) -> PricingPeriod:
    if days < 7:
        return PricingPeriod.DAY
    if days < 30:
        return PricingPeriod.WEEK
    return PricingPeriod.MONTH


def free_days_for(rules: tuple[FreeStorageRule, ...], days: int) -> int:
    matching = [rule for rule in rules if rule.applies_to(days)]
    if not matching:
        return 0
    # Most specific rule wins when ranges touch
    return max(matching, key=lambda rule: rule.min_days).free_days


def discount_percent_for(tiers: tuple[VolumeDiscountTier, ...], quantity: float) -> float:
    eligible = [tier for tier in tiers if tier.threshold <= quantity]
    if not eligible:
        return 0.0
    return max(eligible, key=lambda tier: tier.threshold).percent


def membership_tier_from(value: str | None) -> MembershipTier | None:
    try:
        return MembershipTier(value) if value else None
    except ValueError:
        logger.warning("Ignoring unknown membership tier %r", value)
        return None


def membership_percent_for(
    discounts: tuple[MembershipDiscount, ...], tier: MembershipTier | str | None
) -> float:
    """Percent for a tier; unknown or missing tiers get nothing."""
    tier = getattr(tier, "value", tier)
    for discount in discounts:
        if discount.tier.value == tier:
            return discount.percent
    return 0.0


def price_line_item(
    pricing: WarehousePricing,
    item: DraftLineItem,
    period: PricingPeriod,
    billable_days: int,
) -> LineItemPrice:
    resolved = resolve_rates(pricing.entries, item.goods_type, item.pallet_type, period)
    if resolved.is_empty:
        raise PricingUnavailableError(
            f"No {period.value} pricing for {item.kind.value} pallets ({item.goods_type})"
        )

    height_pos = bracket_position(pricing.entries, resolved, item.height_range_id, "height")
    weight_pos = bracket_position(pricing.entries, resolved, item.weight_range_id, "weight")
    height = select_bracket(resolved.height_ranges, height_pos) if height_pos is not None else None
    weight = select_bracket(resolved.weight_ranges, weight_pos) if weight_pos is not None else None
    if height is None:
        raise PricingUnavailableError(
            f"Height range {item.height_range_id} has no {period.value} rate for "
            f"{item.kind.value} pallets ({item.goods_type})"
        )
    if weight is None:
        raise PricingUnavailableError(
            f"Weight range {item.weight_range_id} has no {period.value} rate for "
            f"{item.kind.value} pallets ({item.goods_type})"
        )

    period_rate = round(resolved.adjustment(item.stackable).apply(height.price + weight.price), 2)
    daily_rate = period_rate / period.days
    return LineItemPrice(
        pallet_type=item.kind.value,
        goods_type=item.goods_type,
        quantity=item.quantity,
        stackable=item.stackable,
        period_rate=period_rate,
        daily_rate=round(daily_rate, 4),
        amount=round(daily_rate * item.quantity * billable_days, 2),
    )


def calculate_price(request: PriceRequest, pricing: WarehousePricing) -> PriceBreakdown:
    """Compute the price breakdown for a booking request.

    Raises:
        BookingValidationError: non-positive quantity, inverted dates,
            missing or mismatched pallet details, area below minimum.
        PricingUnavailableError: no rate applies.
    """
    if request.quantity is None or request.quantity <= 0:
        raise BookingValidationError(
            "Quantity must be greater than zero",
            field_errors={"quantity": "Quantity must be greater than zero"},
        )

    days = duration_days(request.start_date, request.end_date)
    period = pricing_period_for(days)
    free_days = min(free_days_for(pricing.free_storage_rules, days), days)
    billable_days = max(0, days - free_days)

    if BookingType(request.type) is BookingType.AREA_RENTAL:
        return _price_area(request, pricing, period, days, free_days, billable_days)
    return _price_pallets(request, pricing, period, days, free_days, billable_days)


def _price_pallets(
    request: PriceRequest,
    pricing: WarehousePricing,
    period: PricingPeriod,
    days: int,
    free_days: int,
    billable_days: int,
) -> PriceBreakdown:
    details = request.pallet_details
    if details is None or not details.line_items:
        raise BookingValidationError(
            "Pallet details are required to price a pallet booking",
            field_errors={"pallet_details": "Configure at least one pallet line item"},
        )
    if details.total_quantity != request.quantity:
        raise BookingValidationError(
            "Pallet line items do not add up to the requested quantity",
            field_errors={
                "quantity": f"Line items total {details.total_quantity}, requested {request.quantity:g}"
            },
        )

    lines = [price_line_item(pricing, item, period, billable_days) for item in details.line_items]

    daily_total = sum(line.period_rate / period.days * line.quantity for line in lines)
    quantity = details.total_quantity
    subtotal = round(daily_total * billable_days, 2)
    discount_percent = discount_percent_for(
        pricing.volume_discounts, quantity + max(0, request.existing_pallet_count)
    )
    volume_discount = round(subtotal * discount_percent / 100, 2)
    membership_percent = membership_percent_for(pricing.membership_discounts, request.membership_tier)
    membership_discount = round((subtotal - volume_discount) * membership_percent / 100, 2)

    breakdown = PriceBreakdown(
        pricing_period=period,
        days=days,
        base_price=round(daily_total / quantity, 4),
        free_days=free_days,
        billable_days=billable_days,
        quantity=quantity,
        subtotal=subtotal,
        discount_percent=discount_percent,
        volume_discount=volume_discount,
        total=round(subtotal - volume_discount - membership_discount, 2),
        line_items=tuple(lines),
        membership_tier=request.membership_tier,
        membership_discount_percent=membership_percent,
        membership_discount=membership_discount,
    )
    logger.debug(
        f"Priced {quantity} pallets at warehouse {request.warehouse_id}: {breakdown.total}",
        extra={"period": period.value, "billable_days": billable_days},
    )
    return breakdown


def _price_area(
    request: PriceRequest,
    pricing: WarehousePricing,
    period: PricingPeriod,
    days: int,
    free_days: int,
    billable_days: int,
) -> PriceBreakdown:
    area_rate = pricing.area_rate
    if area_rate is None or area_rate.rate <= 0:
        raise PricingUnavailableError("This warehouse has no area rental rate")

    sq_ft = request.area_sq_ft if request.area_sq_ft is not None else request.quantity
    if sq_ft < area_rate.min_sq_ft:
        raise BookingValidationError(
            f"Minimum area rental is {area_rate.min_sq_ft:g} sq ft",
            field_errors={"area_sq_ft": f"Minimum is {area_rate.min_sq_ft:g} sq ft"},
        )

    months = math.ceil(days / PERIOD_DAYS[PricingPeriod.MONTH])
    subtotal = round(sq_ft * area_rate.monthly_rate * months, 2)
    # No volume discount on area rentals
    membership_percent = membership_percent_for(pricing.membership_discounts, request.membership_tier)
    membership_discount = round(subtotal * membership_percent / 100, 2)

    return PriceBreakdown(
        pricing_period=period,
        days=days,
        base_price=round(area_rate.monthly_rate, 4),
        free_days=free_days,
        billable_days=billable_days,
        quantity=sq_ft,
        subtotal=subtotal,
        discount_percent=0.0,
        volume_discount=0.0,
        total=round(subtotal - membership_discount, 2),
        membership_tier=request.membership_tier,
        membership_discount_percent=membership_percent,
        membership_discount=membership_discount,
    )
