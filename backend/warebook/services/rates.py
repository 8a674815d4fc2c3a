"""Rate table resolution for pallet storage pricing.

A warehouse owner configures one pricing entry per
(goods_type, pallet_type, pricing_period).  Each entry owns ordered
height brackets (price per pallet) and weight brackets (surcharge per
pallet).  Custom pallet entries nest their height brackets under custom
sizes, each covering a length range and a width range.

Line items reference brackets by id.  Brackets are matched across pricing
periods by ordinal position: the second height bracket of the ``day``
table corresponds to the second height bracket of the ``month`` table.
An id only counts when it belongs to a sibling of the resolved table
(same goods type and pallet type, and for custom pallets the same size
slot); ids from any other table are not priced.

Everything here is pure; loading entries from the database lives in
``warebook.services.pricing_store``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Iterable, Iterator, Union

from warebook.middleware.exceptions import PricingUnavailableError

GENERAL_GOODS = "general"


class PricingPeriod(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def days(self) -> int:
        return PERIOD_DAYS[self]


PERIOD_DAYS = {
    PricingPeriod.DAY: 1,
    PricingPeriod.WEEK: 7,
    PricingPeriod.MONTH: 30,
}


class PalletKind(str, enum.Enum):
    STANDARD = "standard"
    EURO = "euro"
    CUSTOM = "custom"


class AdjustmentType(str, enum.Enum):
    RATE = "rate"                    # percent of the per-pallet rate
    PLUS_PER_UNIT = "plus_per_unit"  # flat amount per pallet


# ── Pallet type variant ─────────────────────────────────────


@dataclass(frozen=True)
class Standard:
    kind: ClassVar[PalletKind] = PalletKind.STANDARD


@dataclass(frozen=True)
class Euro:
    kind: ClassVar[PalletKind] = PalletKind.EURO


@dataclass(frozen=True)
class Custom:
    length_cm: float
    width_cm: float
    kind: ClassVar[PalletKind] = PalletKind.CUSTOM


PalletType = Union[Standard, Euro, Custom]


def pallet_type_from(
    kind: str | PalletKind,
    length_cm: float | None = None,
    width_cm: float | None = None,
) -> PalletType:
    """Build the pallet type variant from its wire representation."""
    kind = PalletKind(kind)
    if kind is PalletKind.STANDARD:
        return Standard()
    if kind is PalletKind.EURO:
        return Euro()
    if length_cm is None or width_cm is None:
        raise ValueError("Custom pallets require length and width")
    return Custom(length_cm=float(length_cm), width_cm=float(width_cm))


# ── Rate table structures ───────────────────────────────────


@dataclass(frozen=True)
class Adjustment:
    type: AdjustmentType = AdjustmentType.PLUS_PER_UNIT
    value: float = 0.0

    def apply(self, amount: float) -> float:
        if self.type is AdjustmentType.RATE:
            return amount * (1 + self.value / 100)
        return amount + self.value


@dataclass(frozen=True)
class PriceRange:
    """A priced bracket.  ``max=None`` means open-ended (last bracket only)."""
    id: str
    min: float
    max: float | None
    price: float


@dataclass(frozen=True)
class CustomSize:
    id: str
    length_min_cm: float
    length_max_cm: float
    width_min_cm: float
    width_max_cm: float
    height_ranges: tuple[PriceRange, ...] = ()
    stackable: Adjustment = Adjustment()
    unstackable: Adjustment = Adjustment()

    def fits(self, length_cm: float, width_cm: float) -> bool:
        return (
            self.length_min_cm <= length_cm <= self.length_max_cm
            and self.width_min_cm <= width_cm <= self.width_max_cm
        )


@dataclass(frozen=True)
class PricingEntry:
    id: str
    goods_type: str
    pallet_type: PalletKind
    period: PricingPeriod
    height_ranges: tuple[PriceRange, ...] = ()
    weight_ranges: tuple[PriceRange, ...] = ()
    custom_sizes: tuple[CustomSize, ...] = ()
    stackable: Adjustment = Adjustment()
    unstackable: Adjustment = Adjustment()


@dataclass(frozen=True)
class ResolvedRates:
    entry: PricingEntry | None = None
    height_ranges: tuple[PriceRange, ...] = ()
    weight_ranges: tuple[PriceRange, ...] = ()
    custom_sizes: tuple[CustomSize, ...] = ()
    custom_size: CustomSize | None = None

    @property
    def is_empty(self) -> bool:
        return not self.height_ranges or not self.weight_ranges

    def adjustment(self, stackable: bool) -> Adjustment:
        source = self.custom_size or self.entry
        if source is None:
            return Adjustment()
        return source.stackable if stackable else source.unstackable


# ── Resolution ──────────────────────────────────────────────


def normalize_goods_type(value: str | None) -> str:
    value = (value or "").strip().lower()
    return value or GENERAL_GOODS


def match_custom_size(
    sizes: Iterable[CustomSize], length_cm: float, width_cm: float
) -> CustomSize | None:
    for size in sizes:
        if size.fits(length_cm, width_cm):
            return size
    return None


def resolve_rates(
    entries: Iterable[PricingEntry],
    goods_type: str | None,
    pallet_type: PalletType,
    period: PricingPeriod,
) -> ResolvedRates:
    """Pick the rate table for a pallet configuration.

    An entry for the exact goods type wins over a ``general`` entry.  When
    nothing matches, the returned ``ResolvedRates`` is empty and the caller
    must report pricing as unavailable.

    Raises:
        PricingUnavailableError: custom pallet dimensions fall outside every
            configured custom size.
    """
    goods = normalize_goods_type(goods_type)
    candidates = [
        e for e in entries
        if e.pallet_type is pallet_type.kind and e.period is period
    ]
    exact = [e for e in candidates if normalize_goods_type(e.goods_type) == goods]
    fallback = [e for e in candidates if normalize_goods_type(e.goods_type) == GENERAL_GOODS]
    chosen = (exact or fallback or [None])[0]
    if chosen is None:
        return ResolvedRates()

    if isinstance(pallet_type, Custom):
        size = match_custom_size(chosen.custom_sizes, pallet_type.length_cm, pallet_type.width_cm)
        if size is None:
            raise PricingUnavailableError(
                f"No custom pallet size covers {pallet_type.length_cm:g} x "
                f"{pallet_type.width_cm:g} cm"
            )
        return ResolvedRates(
            entry=chosen,
            height_ranges=size.height_ranges,
            weight_ranges=chosen.weight_ranges,
            custom_sizes=chosen.custom_sizes,
            custom_size=size,
        )

    return ResolvedRates(
        entry=chosen,
        height_ranges=chosen.height_ranges,
        weight_ranges=chosen.weight_ranges,
    )


def _sibling_tables(
    entries: Iterable[PricingEntry], resolved: ResolvedRates, dimension: str
) -> Iterator[tuple[PriceRange, ...]]:
    """The resolved bracket table as configured for every pricing period."""
    chosen = resolved.entry
    if chosen is None:
        return
    goods = normalize_goods_type(chosen.goods_type)
    slot = None
    if resolved.custom_size is not None:
        slot = resolved.custom_sizes.index(resolved.custom_size)

    for entry in entries:
        if entry.pallet_type is not chosen.pallet_type:
            continue
        if normalize_goods_type(entry.goods_type) != goods:
            continue
        if dimension == "weight":
            yield entry.weight_ranges
        elif slot is None:
            yield entry.height_ranges
        elif slot < len(entry.custom_sizes):
            yield entry.custom_sizes[slot].height_ranges


def bracket_position(
    entries: Iterable[PricingEntry],
    resolved: ResolvedRates,
    range_id: str,
    dimension: str,
) -> int | None:
    """Ordinal position of a height/weight bracket id within the resolved table.

    ``None`` when the id belongs to no period of that table, including ids
    of other pallet types, goods types or custom sizes.
    """
    for table in _sibling_tables(entries, resolved, dimension):
        for position, price_range in enumerate(table):
            if price_range.id == range_id:
                return position
    return None


def select_bracket(ranges: tuple[PriceRange, ...], position: int) -> PriceRange | None:
    if 0 <= position < len(ranges):
        return ranges[position]
    return None


# ── Configuration checks ────────────────────────────────────


def validate_ranges(ranges: list[PriceRange], label: str = "range") -> list[str]:
    """Return the problems with an ordered bracket list (empty when valid).

    Brackets must not overlap, must leave no gap wider than one unit, and
    only the last bracket may omit its upper bound.
    """
    errors: list[str] = []
    last = len(ranges) - 1
    for i, current in enumerate(ranges):
        if current.max is None:
            if i != last:
                errors.append(f"Only the last {label} range may be open-ended (range {i + 1})")
        elif current.max <= current.min:
            errors.append(f"{label.capitalize()} range {i + 1}: max must be greater than min")

        if i == 0:
            continue
        previous = ranges[i - 1]
        if previous.max is None:
            continue
        gap = current.min - previous.max
        if gap < 0:
            errors.append(f"{label.capitalize()} ranges {i} and {i + 1} overlap")
        elif gap > 1:
            errors.append(f"{label.capitalize()} ranges {i} and {i + 1} leave a gap")
    return errors
