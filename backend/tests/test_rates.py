"""Tests for rate table resolution and bracket checks."""

import pytest

from warebook.middleware.exceptions import PricingUnavailableError
from warebook.services.rates import (
    Adjustment,
    AdjustmentType,
    Custom,
    Euro,
    PalletKind,
    PriceRange,
    PricingEntry,
    PricingPeriod,
    ResolvedRates,
    Standard,
    bracket_position,
    normalize_goods_type,
    pallet_type_from,
    resolve_rates,
    validate_ranges,
)


@pytest.mark.unit
class TestPalletTypes:

    def test_custom_requires_dimensions(self):
        with pytest.raises(ValueError):
            pallet_type_from("custom", length_cm=120)

    def test_wire_values(self):
        assert pallet_type_from("standard") == Standard()
        assert pallet_type_from(PalletKind.EURO) == Euro()
        assert pallet_type_from("custom", 120, 100) == Custom(120.0, 100.0)

    def test_goods_type_normalized(self):
        assert normalize_goods_type("  Frozen ") == "frozen"
        assert normalize_goods_type("") == "general"
        assert normalize_goods_type(None) == "general"


@pytest.mark.unit
class TestAdjustment:

    def test_rate_is_percent(self):
        assert Adjustment(AdjustmentType.RATE, 20).apply(10) == pytest.approx(12)

    def test_plus_per_unit_is_flat(self):
        assert Adjustment(AdjustmentType.PLUS_PER_UNIT, 3).apply(10) == 13


@pytest.mark.unit
class TestResolveRates:

    def test_exact_goods_type_beats_general(self, warehouse_pricing):
        frozen = PricingEntry(
            id="frozen-day",
            goods_type="frozen",
            pallet_type=PalletKind.STANDARD,
            period=PricingPeriod.DAY,
            height_ranges=(PriceRange("fz-h0", 0, None, 25),),
            weight_ranges=(PriceRange("fz-w0", 0, None, 0),),
        )
        entries = warehouse_pricing.entries + (frozen,)

        resolved = resolve_rates(entries, "Frozen", Standard(), PricingPeriod.DAY)
        assert resolved.entry.id == "frozen-day"

        resolved = resolve_rates(entries, "ambient", Standard(), PricingPeriod.DAY)
        assert resolved.entry.id == "std-day"

    def test_missing_pallet_type_is_empty(self, warehouse_pricing):
        resolved = resolve_rates(warehouse_pricing.entries, "general", Euro(), PricingPeriod.DAY)
        assert resolved.is_empty
        assert resolved.entry is None

    def test_custom_size_supplies_height_brackets(self, warehouse_pricing):
        resolved = resolve_rates(
            warehouse_pricing.entries, "general", Custom(120, 100), PricingPeriod.DAY
        )
        assert resolved.custom_size.id == "size-0"
        assert [r.id for r in resolved.height_ranges] == ["custom-h0"]

    def test_custom_size_without_match_raises(self, warehouse_pricing):
        with pytest.raises(PricingUnavailableError):
            resolve_rates(warehouse_pricing.entries, "general", Custom(200, 200), PricingPeriod.DAY)


@pytest.mark.unit
class TestBracketPosition:

    def resolve(self, warehouse_pricing, pallet_type=Standard()):
        return resolve_rates(warehouse_pricing.entries, "general", pallet_type, PricingPeriod.DAY)

    def test_position_is_shared_across_periods(self, warehouse_pricing):
        resolved = self.resolve(warehouse_pricing)
        assert bracket_position(warehouse_pricing.entries, resolved, "day-h1", "height") == 1
        assert bracket_position(warehouse_pricing.entries, resolved, "month-w1", "weight") == 1

    def test_custom_size_brackets_are_found(self, warehouse_pricing):
        resolved = self.resolve(warehouse_pricing, Custom(120, 100))
        assert bracket_position(warehouse_pricing.entries, resolved, "custom-h0", "height") == 0
        assert bracket_position(warehouse_pricing.entries, resolved, "custom-w0", "weight") == 0

    def test_other_pallet_type_ids_are_ignored(self, warehouse_pricing):
        resolved = self.resolve(warehouse_pricing)
        assert bracket_position(warehouse_pricing.entries, resolved, "custom-h0", "height") is None
        assert bracket_position(warehouse_pricing.entries, resolved, "custom-w0", "weight") is None

    def test_standard_ids_not_found_for_custom(self, warehouse_pricing):
        resolved = self.resolve(warehouse_pricing, Custom(120, 100))
        assert bracket_position(warehouse_pricing.entries, resolved, "day-h0", "height") is None

    def test_unknown_id(self, warehouse_pricing):
        resolved = self.resolve(warehouse_pricing)
        assert bracket_position(warehouse_pricing.entries, resolved, "nope", "height") is None

    def test_empty_resolution(self, warehouse_pricing):
        assert bracket_position(warehouse_pricing.entries, ResolvedRates(), "day-h0", "height") is None


@pytest.mark.unit
class TestValidateRanges:

    def test_contiguous_ranges_pass(self):
        ranges = [PriceRange("a", 0, 100, 1), PriceRange("b", 100, 200, 2), PriceRange("c", 200, None, 3)]
        assert validate_ranges(ranges) == []

    def test_one_unit_gap_allowed(self):
        ranges = [PriceRange("a", 0, 99, 1), PriceRange("b", 100, None, 2)]
        assert validate_ranges(ranges) == []

    def test_overlap_and_gap_reported(self):
        overlapping = [PriceRange("a", 0, 120, 1), PriceRange("b", 100, None, 2)]
        gapped = [PriceRange("a", 0, 100, 1), PriceRange("b", 150, None, 2)]
        assert "overlap" in validate_ranges(overlapping, "height")[0]
        assert "gap" in validate_ranges(gapped, "height")[0]

    def test_only_last_may_be_open(self):
        ranges = [PriceRange("a", 0, None, 1), PriceRange("b", 100, 200, 2)]
        errors = validate_ranges(ranges, "weight")
        assert any("open-ended" in e for e in errors)

    def test_inverted_bounds(self):
        errors = validate_ranges([PriceRange("a", 100, 50, 1)])
        assert "greater than min" in errors[0]
