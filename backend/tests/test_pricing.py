"""Tests for the price breakdown calculator."""

from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from warebook.middleware.exceptions import BookingValidationError, PricingUnavailableError
from warebook.services.booking_draft import LineItemInput, build_draft
from warebook.services.pricing import (
    AreaRate,
    AreaRateUnit,
    BookingType,
    FreeStorageRule,
    MembershipDiscount,
    MembershipTier,
    PriceRequest,
    VolumeDiscountTier,
    calculate_price,
    duration_days,
    membership_percent_for,
    membership_tier_from,
    pricing_period_for,
    validate_free_storage_rules,
    validate_volume_discounts,
)
from warebook.services.rates import PricingPeriod

START = date(2026, 3, 2)
MEMBERSHIP = (
    MembershipDiscount(MembershipTier.BRONZE, 0),
    MembershipDiscount(MembershipTier.SILVER, 5),
    MembershipDiscount(MembershipTier.GOLD, 10),
)


def pallets(*lines: LineItemInput):
    return build_draft(lines, sum(line.quantity for line in lines))


def standard(quantity=2, height="day-h0", weight="day-w0", stackable=True) -> LineItemInput:
    return LineItemInput(
        pallet_type="standard",
        quantity=quantity,
        height_range_id=height,
        weight_range_id=weight,
        stackable=stackable,
    )


def request(days: int, *lines: LineItemInput, **overrides) -> PriceRequest:
    lines = lines or (standard(),)
    details = pallets(*lines)
    fields = dict(
        warehouse_id="wh-1",
        type=BookingType.PALLET,
        quantity=details.total_quantity,
        start_date=START,
        end_date=START + timedelta(days=days),
        pallet_details=details,
    )
    fields.update(overrides)
    return PriceRequest(**fields)


@pytest.mark.unit
class TestDuration:

    def test_partial_days_round_up(self):
        start = datetime(2026, 3, 2, 9, 0)
        assert duration_days(start, start + timedelta(days=2, hours=1)) == 3

    def test_same_day_is_one_day(self):
        assert duration_days(START, START) == 1

    def test_end_before_start(self):
        with pytest.raises(BookingValidationError) as exc:
            duration_days(START, START - timedelta(days=1))
        assert "end_date" in exc.value.field_errors

    @pytest.mark.parametrize("days,period", [
        (1, PricingPeriod.DAY),
        (6, PricingPeriod.DAY),
        (7, PricingPeriod.WEEK),
        (29, PricingPeriod.WEEK),
        (30, PricingPeriod.MONTH),
        (400, PricingPeriod.MONTH),
    ])
    def test_period_buckets(self, days, period):
        assert pricing_period_for(days) is period


@pytest.mark.unit
class TestPalletPricing:

    def test_day_rate(self, warehouse_pricing):
        breakdown = calculate_price(request(3), warehouse_pricing)

        assert breakdown.pricing_period is PricingPeriod.DAY
        assert breakdown.days == 3
        assert breakdown.billable_days == 3
        assert breakdown.base_price == 10
        assert breakdown.subtotal == 60
        assert breakdown.total == 60

    def test_week_table_matched_by_position(self, warehouse_pricing):
        # day-h0 / day-w0 select the first brackets of the week table
        breakdown = calculate_price(request(7), warehouse_pricing)

        assert breakdown.pricing_period is PricingPeriod.WEEK
        assert breakdown.line_items[0].period_rate == 56
        assert breakdown.line_items[0].daily_rate == 8
        assert breakdown.subtotal == 112

    def test_29_days_still_weekly(self, warehouse_pricing):
        breakdown = calculate_price(request(29), warehouse_pricing)
        assert breakdown.pricing_period is PricingPeriod.WEEK
        assert breakdown.subtotal == 8 * 2 * 29

    def test_30_days_monthly_with_free_week(self, warehouse_pricing):
        breakdown = calculate_price(request(30), warehouse_pricing)

        assert breakdown.pricing_period is PricingPeriod.MONTH
        assert breakdown.free_days == 7
        assert breakdown.billable_days == 23
        assert breakdown.subtotal == 6 * 2 * 23

    def test_35_days_bills_28(self, warehouse_pricing):
        breakdown = calculate_price(request(35), warehouse_pricing)

        assert breakdown.free_days == 7
        assert breakdown.billable_days == 28
        assert breakdown.subtotal == 336

    def test_free_days_never_exceed_duration(self, warehouse_pricing):
        generous = replace(
            warehouse_pricing,
            free_storage_rules=(FreeStorageRule(1, 5, PricingPeriod.DAY, 1, PricingPeriod.WEEK),),
        )
        breakdown = calculate_price(request(3), generous)

        assert breakdown.free_days == 3
        assert breakdown.billable_days == 0
        assert breakdown.total == 0

    def test_volume_discount(self, warehouse_pricing):
        breakdown = calculate_price(request(3, standard(quantity=150)), warehouse_pricing)

        assert breakdown.subtotal == 4500
        assert breakdown.discount_percent == 10
        assert breakdown.volume_discount == 450
        assert breakdown.total == 4050

    def test_below_discount_threshold(self, warehouse_pricing):
        breakdown = calculate_price(request(3, standard(quantity=99)), warehouse_pricing)
        assert breakdown.discount_percent == 0
        assert breakdown.total == breakdown.subtotal

    def test_highest_eligible_tier_wins(self, warehouse_pricing):
        tiered = replace(
            warehouse_pricing,
            volume_discounts=(VolumeDiscountTier(50, 5), VolumeDiscountTier(100, 10)),
        )
        breakdown = calculate_price(request(3, standard(quantity=75)), tiered)
        assert breakdown.discount_percent == 5

    def test_unstackable_surcharge(self, warehouse_pricing):
        breakdown = calculate_price(request(3, standard(stackable=False)), warehouse_pricing)
        assert breakdown.line_items[0].period_rate == 12
        assert breakdown.subtotal == 72

    def test_mixed_lines_weighted_base_price(self, warehouse_pricing):
        lines = (standard(quantity=1), standard(quantity=1, height="day-h1", weight="day-w1"))
        breakdown = calculate_price(request(3, *lines), warehouse_pricing)

        assert [line.period_rate for line in breakdown.line_items] == [10, 16]
        assert breakdown.base_price == 13
        assert breakdown.subtotal == 78

    def test_custom_pallet(self, warehouse_pricing):
        line = LineItemInput(
            pallet_type="custom", quantity=1,
            height_range_id="custom-h0", weight_range_id="custom-w0",
            length=120, width=100,
        )
        breakdown = calculate_price(request(2, line), warehouse_pricing)
        assert breakdown.subtotal == 40

    def test_custom_pallet_outside_sizes(self, warehouse_pricing):
        line = LineItemInput(
            pallet_type="custom", quantity=1,
            height_range_id="custom-h0", weight_range_id="custom-w0",
            length=300, width=300,
        )
        with pytest.raises(PricingUnavailableError):
            calculate_price(request(2, line), warehouse_pricing)

    def test_missing_rate_is_unavailable_not_zero(self, warehouse_pricing):
        euro = LineItemInput(
            pallet_type="euro", quantity=2, height_range_id="day-h0", weight_range_id="day-w0",
        )
        with pytest.raises(PricingUnavailableError):
            calculate_price(request(3, euro), warehouse_pricing)

    def test_unknown_bracket(self, warehouse_pricing):
        with pytest.raises(PricingUnavailableError):
            calculate_price(request(3, standard(height="missing")), warehouse_pricing)

    def test_bracket_from_another_pallet_type(self, warehouse_pricing):
        # custom-size ids never price a standard pallet
        line = standard(height="custom-h0", weight="custom-w0")
        with pytest.raises(PricingUnavailableError):
            calculate_price(request(3, line), warehouse_pricing)

    def test_custom_pallet_with_standard_bracket(self, warehouse_pricing):
        line = LineItemInput(
            pallet_type="custom", quantity=1,
            height_range_id="day-h0", weight_range_id="custom-w0",
            length=120, width=100,
        )
        with pytest.raises(PricingUnavailableError):
            calculate_price(request(2, line), warehouse_pricing)

    def test_requires_pallet_details(self, warehouse_pricing):
        with pytest.raises(BookingValidationError) as exc:
            calculate_price(request(3, pallet_details=None), warehouse_pricing)
        assert "pallet_details" in exc.value.field_errors

    def test_quantity_must_match_line_items(self, warehouse_pricing):
        with pytest.raises(BookingValidationError) as exc:
            calculate_price(request(3, quantity=5), warehouse_pricing)
        assert "quantity" in exc.value.field_errors

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, warehouse_pricing, quantity):
        with pytest.raises(BookingValidationError):
            calculate_price(request(3, quantity=quantity), warehouse_pricing)

    def test_repeatable(self, warehouse_pricing):
        req = request(35, standard(quantity=120, stackable=False))
        first = calculate_price(req, warehouse_pricing)
        assert calculate_price(req, warehouse_pricing) == first
        assert first.total == pytest.approx(first.subtotal - first.volume_discount)


@pytest.mark.unit
class TestMembershipDiscount:

    def test_applied_after_volume_discount(self, warehouse_pricing):
        members = replace(warehouse_pricing, membership_discounts=MEMBERSHIP)
        req = request(3, standard(quantity=150), membership_tier=MembershipTier.GOLD)
        breakdown = calculate_price(req, members)

        assert breakdown.volume_discount == 450
        assert breakdown.membership_tier is MembershipTier.GOLD
        assert breakdown.membership_discount_percent == 10
        assert breakdown.membership_discount == 405
        assert breakdown.total == 3645

    def test_without_tier(self, warehouse_pricing):
        members = replace(warehouse_pricing, membership_discounts=MEMBERSHIP)
        breakdown = calculate_price(request(3), members)

        assert breakdown.membership_tier is None
        assert breakdown.membership_discount == 0
        assert breakdown.total == 60

    def test_tier_without_configured_percent(self, warehouse_pricing):
        breakdown = calculate_price(request(3, membership_tier=MembershipTier.PLATINUM), warehouse_pricing)
        assert breakdown.membership_discount_percent == 0
        assert breakdown.total == 60

    def test_percent_lookup(self):
        assert membership_percent_for(MEMBERSHIP, "silver") == 5
        assert membership_percent_for(MEMBERSHIP, MembershipTier.GOLD) == 10
        assert membership_percent_for(MEMBERSHIP, "diamond") == 0
        assert membership_percent_for(MEMBERSHIP, None) == 0

    def test_tier_parsing(self):
        assert membership_tier_from("gold") is MembershipTier.GOLD
        assert membership_tier_from("diamond") is None
        assert membership_tier_from(None) is None


@pytest.mark.unit
class TestExistingPallets:

    def test_existing_pallets_reach_discount_tier(self, warehouse_pricing):
        breakdown = calculate_price(request(3, existing_pallet_count=100), warehouse_pricing)

        assert breakdown.quantity == 2
        assert breakdown.discount_percent == 10
        assert breakdown.volume_discount == 6
        assert breakdown.total == 54

    def test_new_pallets_alone_below_threshold(self, warehouse_pricing):
        breakdown = calculate_price(request(3, existing_pallet_count=97), warehouse_pricing)
        assert breakdown.discount_percent == 0


@pytest.mark.unit
class TestAreaRental:

    def area_request(self, days: int, sq_ft: float) -> PriceRequest:
        return PriceRequest(
            warehouse_id="wh-1",
            type=BookingType.AREA_RENTAL,
            quantity=sq_ft,
            start_date=START,
            end_date=START + timedelta(days=days),
            area_sq_ft=sq_ft,
        )

    def test_months_from_rental_days(self, warehouse_pricing):
        # free days show on the breakdown but don't shorten the rental
        breakdown = calculate_price(self.area_request(35, 500), warehouse_pricing)

        assert breakdown.days == 35
        assert breakdown.billable_days == 28
        assert breakdown.subtotal == 500 * 2.0 * 2
        assert breakdown.volume_discount == 0

    def test_45_days_is_two_months(self, warehouse_pricing):
        breakdown = calculate_price(self.area_request(45, 500), warehouse_pricing)
        assert breakdown.subtotal == 2000

    def test_membership_discount(self, warehouse_pricing):
        members = replace(warehouse_pricing, membership_discounts=MEMBERSHIP)
        req = replace(self.area_request(35, 500), membership_tier=MembershipTier.GOLD)
        breakdown = calculate_price(req, members)

        assert breakdown.membership_discount_percent == 10
        assert breakdown.membership_discount == 200
        assert breakdown.total == 1800

    def test_yearly_rate(self, warehouse_pricing):
        yearly = replace(warehouse_pricing, area_rate=AreaRate(24.0, AreaRateUnit.PER_SQFT_PER_YEAR))
        breakdown = calculate_price(self.area_request(10, 200), yearly)
        assert breakdown.base_price == 2
        assert breakdown.subtotal == 400

    def test_below_minimum_area(self, warehouse_pricing):
        with pytest.raises(BookingValidationError) as exc:
            calculate_price(self.area_request(10, 50), warehouse_pricing)
        assert "area_sq_ft" in exc.value.field_errors

    def test_no_area_rate(self, warehouse_pricing):
        with pytest.raises(PricingUnavailableError):
            calculate_price(self.area_request(10, 500), replace(warehouse_pricing, area_rate=None))


@pytest.mark.unit
class TestConfigurationChecks:

    def test_valid_rules(self):
        rules = [
            FreeStorageRule(30, 60, PricingPeriod.DAY, 7, PricingPeriod.DAY),
            FreeStorageRule(3, None, PricingPeriod.MONTH, 1, PricingPeriod.MONTH),
        ]
        assert validate_free_storage_rules(rules) == []

    def test_free_days_above_minimum(self):
        rules = [FreeStorageRule(5, 10, PricingPeriod.DAY, 1, PricingPeriod.WEEK)]
        assert "free days" in validate_free_storage_rules(rules)[0]

    def test_overlapping_rules(self):
        rules = [
            FreeStorageRule(30, 60, PricingPeriod.DAY, 7, PricingPeriod.DAY),
            FreeStorageRule(50, 90, PricingPeriod.DAY, 7, PricingPeriod.DAY),
        ]
        assert any("overlap" in e for e in validate_free_storage_rules(rules))

    def test_discount_tiers(self):
        assert validate_volume_discounts([VolumeDiscountTier(100, 10)]) == []
        errors = validate_volume_discounts([
            VolumeDiscountTier(100, 10), VolumeDiscountTier(100, 120),
        ])
        assert any("duplicate" in e for e in errors)
        assert any("between 0 and 100" in e for e in errors)
