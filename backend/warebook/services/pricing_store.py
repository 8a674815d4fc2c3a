"""Load and save warehouse rate tables.

``load_pricing`` turns PalletPricing rows and the warehouse's JSON settings
into the calculator's ``WarehousePricing``.  ``save_pricing`` validates an
owner's configuration and replaces the stored tables in one go; bracket
ids are regenerated on every save.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from warebook.config import settings
from warebook.middleware.exceptions import BookingValidationError, ResourceNotFoundError
from warebook.models.pricing import (
    CustomPalletSize,
    PalletHeightRange,
    PalletPricing,
    PalletWeightRange,
)
from warebook.models.warehouse import Warehouse
from warebook.schemas.pricing import (
    AdjustmentIn,
    PriceRangeIn,
    WarehousePricingConfig,
)
from warebook.services.pricing import (
    AreaRate,
    AreaRateUnit,
    FreeStorageRule,
    MembershipDiscount,
    MembershipTier,
    VolumeDiscountTier,
    WarehousePricing,
    validate_free_storage_rules,
    validate_volume_discounts,
)
from warebook.services.rates import (
    Adjustment,
    AdjustmentType,
    CustomSize,
    PalletKind,
    PriceRange,
    PricingEntry,
    PricingPeriod,
    normalize_goods_type,
    validate_ranges,
)

logger = logging.getLogger(__name__)


async def get_warehouse(db: AsyncSession, warehouse_id: str) -> Warehouse:
    warehouse = await db.get(Warehouse, warehouse_id)
    if warehouse is None or not warehouse.is_active:
        raise ResourceNotFoundError("Warehouse", warehouse_id)
    return warehouse


# ── Rows → engine ───────────────────────────────────────────


def _adjustment(type_: str | None, value: float | None) -> Adjustment:
    return Adjustment(
        type=AdjustmentType(type_ or AdjustmentType.PLUS_PER_UNIT.value),
        value=float(value or 0),
    )


def _height(row: PalletHeightRange) -> PriceRange:
    return PriceRange(id=row.id, min=row.height_min_cm, max=row.height_max_cm, price=row.price_per_unit)


def _weight(row: PalletWeightRange) -> PriceRange:
    return PriceRange(id=row.id, min=row.weight_min_kg, max=row.weight_max_kg, price=row.price_per_pallet)


def entry_from_row(row: PalletPricing) -> PricingEntry:
    return PricingEntry(
        id=row.id,
        goods_type=normalize_goods_type(row.goods_type),
        pallet_type=PalletKind(row.pallet_type),
        period=PricingPeriod(row.pricing_period),
        height_ranges=tuple(_height(h) for h in row.height_ranges),
        weight_ranges=tuple(_weight(w) for w in row.weight_ranges),
        custom_sizes=tuple(
            CustomSize(
                id=size.id,
                length_min_cm=size.length_min_cm,
                length_max_cm=size.length_max_cm,
                width_min_cm=size.width_min_cm,
                width_max_cm=size.width_max_cm,
                height_ranges=tuple(_height(h) for h in size.height_ranges),
                stackable=_adjustment(size.stackable_adjustment_type, size.stackable_adjustment_value),
                unstackable=_adjustment(size.unstackable_adjustment_type, size.unstackable_adjustment_value),
            )
            for size in row.custom_sizes
        ),
        stackable=_adjustment(row.stackable_adjustment_type, row.stackable_adjustment_value),
        unstackable=_adjustment(row.unstackable_adjustment_type, row.unstackable_adjustment_value),
    )


def free_storage_rules_from(raw_rules: list | None) -> tuple[FreeStorageRule, ...]:
    rules = [
        FreeStorageRule(
            min_duration=int(raw["min_duration"]),
            max_duration=int(raw["max_duration"]) if raw.get("max_duration") is not None else None,
            duration_unit=PricingPeriod(raw.get("duration_unit") or "day"),
            free_amount=int(raw.get("free_amount") or 0),
            free_unit=PricingPeriod(raw.get("free_unit") or "day"),
        )
        for raw in raw_rules or []
    ]
    return tuple(sorted(rules, key=lambda rule: rule.min_days))


def volume_discounts_from(raw_tiers: list | None) -> tuple[VolumeDiscountTier, ...]:
    tiers = [
        VolumeDiscountTier(threshold=int(raw["threshold"]), percent=float(raw["percent"]))
        for raw in raw_tiers or []
    ]
    return tuple(sorted(tiers, key=lambda tier: tier.threshold))


def membership_discounts_from(raw: dict[str, float] | None) -> tuple[MembershipDiscount, ...]:
    return tuple(
        MembershipDiscount(tier=MembershipTier(tier), percent=float(percent))
        for tier, percent in (raw or {}).items()
    )


def area_rate_from(warehouse: Warehouse) -> AreaRate | None:
    if warehouse.area_rate is None:
        return None
    return AreaRate(
        rate=float(warehouse.area_rate),
        unit=AreaRateUnit(warehouse.area_rate_unit or AreaRateUnit.PER_SQFT_PER_MONTH.value),
        min_sq_ft=float(warehouse.area_min_sq_ft or 0),
    )


async def load_pricing(db: AsyncSession, warehouse_id: str) -> WarehousePricing:
    """Everything the calculator needs for one warehouse."""
    warehouse = await get_warehouse(db, warehouse_id)

    result = await db.execute(
        select(PalletPricing)
        .where(
            PalletPricing.warehouse_id == warehouse_id,
            PalletPricing.is_active == True,  # noqa: E712
        )
        .options(
            selectinload(PalletPricing.height_ranges),
            selectinload(PalletPricing.weight_ranges),
            selectinload(PalletPricing.custom_sizes).selectinload(CustomPalletSize.height_ranges),
        )
        .order_by(PalletPricing.created_at)
    )
    rows = result.scalars().all()

    return WarehousePricing(
        warehouse_id=warehouse_id,
        entries=tuple(entry_from_row(row) for row in rows),
        free_storage_rules=free_storage_rules_from(warehouse.free_storage_rules),
        volume_discounts=volume_discounts_from(warehouse.volume_discounts),
        area_rate=area_rate_from(warehouse),
        membership_discounts=membership_discounts_from(settings.membership_discounts),
    )


# ── Config → rows ───────────────────────────────────────────


def _engine_ranges(ranges: list[PriceRangeIn]) -> list[PriceRange]:
    return [PriceRange(id=r.id or "", min=r.min, max=r.max, price=r.price) for r in ranges]


def validate_config(config: WarehousePricingConfig) -> dict[str, str]:
    """Field path → message for everything wrong with a configuration."""
    errors: dict[str, str] = {}
    seen: dict[tuple, int] = {}

    for i, entry in enumerate(config.entries):
        prefix = f"entries.{i}"
        key = (entry.goods_type, entry.pallet_type, entry.pricing_period)
        if key in seen:
            errors[prefix] = (
                f"Duplicate {entry.pricing_period.value} pricing for {entry.pallet_type.value} "
                f"pallets ({entry.goods_type}); see entry {seen[key] + 1}"
            )
        seen.setdefault(key, i)

        if entry.pallet_type is PalletKind.CUSTOM:
            if not entry.custom_sizes:
                errors[f"{prefix}.custom_sizes"] = "Custom pallet pricing needs at least one size"
            for j, size in enumerate(entry.custom_sizes):
                size_prefix = f"{prefix}.custom_sizes.{j}"
                if size.length_max_cm <= size.length_min_cm or size.width_max_cm <= size.width_min_cm:
                    errors[size_prefix] = "Size max must be greater than min"
                if not size.height_ranges:
                    errors[f"{size_prefix}.height_ranges"] = "Add at least one height range"
                problems = validate_ranges(_engine_ranges(size.height_ranges), "height")
                if problems:
                    errors[f"{size_prefix}.height_ranges"] = "; ".join(problems)
        else:
            if not entry.height_ranges:
                errors[f"{prefix}.height_ranges"] = "Add at least one height range"
            problems = validate_ranges(_engine_ranges(entry.height_ranges), "height")
            if problems:
                errors[f"{prefix}.height_ranges"] = "; ".join(problems)

        if not entry.weight_ranges:
            errors[f"{prefix}.weight_ranges"] = "Add at least one weight range"
        problems = validate_ranges(_engine_ranges(entry.weight_ranges), "weight")
        if problems:
            errors[f"{prefix}.weight_ranges"] = "; ".join(problems)

    rules = free_storage_rules_from([r.model_dump(mode="json") for r in config.free_storage_rules])
    problems = validate_free_storage_rules(list(rules))
    if problems:
        errors["free_storage_rules"] = "; ".join(problems)

    tiers = [VolumeDiscountTier(threshold=t.threshold, percent=t.percent) for t in config.volume_discounts]
    problems = validate_volume_discounts(tiers)
    if problems:
        errors["volume_discounts"] = "; ".join(problems)

    return errors


def _adjustment_columns(prefix: str, adjustment: AdjustmentIn) -> dict:
    return {
        f"{prefix}_adjustment_type": adjustment.type.value,
        f"{prefix}_adjustment_value": adjustment.value,
    }


def _height_rows(ranges: list[PriceRangeIn]) -> list[PalletHeightRange]:
    return [
        PalletHeightRange(position=n, height_min_cm=r.min, height_max_cm=r.max, price_per_unit=r.price)
        for n, r in enumerate(ranges)
    ]


async def save_pricing(
    db: AsyncSession,
    warehouse: Warehouse,
    config: WarehousePricingConfig,
) -> WarehousePricing:
    """Validate and replace a warehouse's pricing configuration.

    Raises:
        BookingValidationError: with one entry per invalid field; nothing
            is written in that case.
    """
    errors = validate_config(config)
    if errors:
        raise BookingValidationError("Pricing configuration is invalid", field_errors=errors)

    pricing_ids = select(PalletPricing.id).where(PalletPricing.warehouse_id == warehouse.id)
    size_ids = select(CustomPalletSize.id).where(CustomPalletSize.pallet_pricing_id.in_(pricing_ids))
    for stmt in (
        delete(PalletHeightRange).where(
            or_(
                PalletHeightRange.pallet_pricing_id.in_(pricing_ids),
                PalletHeightRange.custom_size_id.in_(size_ids),
            )
        ),
        delete(PalletWeightRange).where(PalletWeightRange.pallet_pricing_id.in_(pricing_ids)),
        delete(CustomPalletSize).where(CustomPalletSize.pallet_pricing_id.in_(pricing_ids)),
        delete(PalletPricing).where(PalletPricing.warehouse_id == warehouse.id),
    ):
        await db.execute(stmt.execution_options(synchronize_session=False))

    for entry in config.entries:
        db.add(PalletPricing(
            warehouse_id=warehouse.id,
            goods_type=entry.goods_type,
            pallet_type=entry.pallet_type.value,
            pricing_period=entry.pricing_period.value,
            **_adjustment_columns("stackable", entry.stackable_adjustment),
            **_adjustment_columns("unstackable", entry.unstackable_adjustment),
            height_ranges=[] if entry.pallet_type is PalletKind.CUSTOM else _height_rows(entry.height_ranges),
            weight_ranges=[
                PalletWeightRange(position=n, weight_min_kg=r.min, weight_max_kg=r.max, price_per_pallet=r.price)
                for n, r in enumerate(entry.weight_ranges)
            ],
            custom_sizes=[
                CustomPalletSize(
                    position=n,
                    length_min_cm=size.length_min_cm,
                    length_max_cm=size.length_max_cm,
                    width_min_cm=size.width_min_cm,
                    width_max_cm=size.width_max_cm,
                    **_adjustment_columns("stackable", size.stackable_adjustment),
                    **_adjustment_columns("unstackable", size.unstackable_adjustment),
                    height_ranges=_height_rows(size.height_ranges),
                )
                for n, size in enumerate(entry.custom_sizes)
            ],
        ))

    # JSON columns are replaced wholesale so the change is always flushed
    warehouse.free_storage_rules = [r.model_dump(mode="json") for r in config.free_storage_rules]
    warehouse.volume_discounts = [t.model_dump(mode="json") for t in config.volume_discounts]
    warehouse.accepted_goods_types = list(config.accepted_goods_types)
    if config.area_rate is not None:
        warehouse.area_rate = config.area_rate.rate
        warehouse.area_rate_unit = config.area_rate.unit.value
        warehouse.area_min_sq_ft = config.area_rate.min_sq_ft
    else:
        warehouse.area_rate = None

    await db.flush()
    logger.info(
        f"Saved pricing for warehouse {warehouse.id}: {len(config.entries)} rate tables",
        extra={"warehouse_id": warehouse.id},
    )
    return await load_pricing(db, warehouse.id)
