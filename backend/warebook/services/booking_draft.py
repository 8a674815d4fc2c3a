"""Booking draft builder: turns pallet form input into canonical pallet details.

Validation errors are collected per field (``line_items.<i>.<field>``) so
the caller can show every problem at once instead of the first one.
Dimensions are normalized to centimeters; the entered values and unit are
kept only for display.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from warebook.middleware.exceptions import BookingValidationError
from warebook.services.rates import (
    Custom,
    PalletKind,
    PalletType,
    normalize_goods_type,
    pallet_type_from,
)

CM_PER_INCH = 2.54


class DimensionUnit(str, enum.Enum):
    CM = "cm"
    IN = "in"


def to_cm(value: float, unit: DimensionUnit | str) -> float:
    if DimensionUnit(unit) is DimensionUnit.IN:
        return round(value * CM_PER_INCH, 2)
    return round(value, 2)


@dataclass
class LineItemInput:
    """Raw line item as entered; anything may be missing."""
    pallet_type: str | None
    quantity: int | None
    height_range_id: str | None = None
    weight_range_id: str | None = None
    goods_type: str | None = None
    stackable: bool = True
    length: float | None = None
    width: float | None = None
    unit: str = DimensionUnit.CM.value


@dataclass(frozen=True)
class DraftLineItem:
    pallet_type: PalletType
    quantity: int
    height_range_id: str
    weight_range_id: str
    goods_type: str
    stackable: bool = True
    display_length: float | None = None
    display_width: float | None = None
    display_unit: str | None = None

    @property
    def kind(self) -> PalletKind:
        return self.pallet_type.kind

    def to_payload(self) -> dict:
        payload = {
            "pallet_type": self.kind.value,
            "quantity": self.quantity,
            "height_range_id": self.height_range_id,
            "weight_range_id": self.weight_range_id,
            "goods_type": self.goods_type,
            "stackable": self.stackable,
        }
        if isinstance(self.pallet_type, Custom):
            payload.update(
                length_cm=self.pallet_type.length_cm,
                width_cm=self.pallet_type.width_cm,
                display_length=self.display_length,
                display_width=self.display_width,
                display_unit=self.display_unit,
            )
        return payload


@dataclass(frozen=True)
class PalletBookingDetails:
    goods_type: str
    line_items: tuple[DraftLineItem, ...]

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.line_items)

    def to_payload(self) -> dict:
        return {
            "goods_type": self.goods_type,
            "line_items": [item.to_payload() for item in self.line_items],
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "PalletBookingDetails":
        """Rebuild details stored on a booking (already canonical cm)."""
        items = []
        for raw in payload.get("line_items", []):
            items.append(DraftLineItem(
                pallet_type=pallet_type_from(raw["pallet_type"], raw.get("length_cm"), raw.get("width_cm")),
                quantity=int(raw["quantity"]),
                height_range_id=raw["height_range_id"],
                weight_range_id=raw["weight_range_id"],
                goods_type=normalize_goods_type(raw.get("goods_type")),
                stackable=bool(raw.get("stackable", True)),
                display_length=raw.get("display_length"),
                display_width=raw.get("display_width"),
                display_unit=raw.get("display_unit"),
            ))
        return cls(goods_type=normalize_goods_type(payload.get("goods_type")), line_items=tuple(items))


def build_draft(
    line_items: Iterable[LineItemInput],
    total_quantity: int,
    goods_type_options: Iterable[str] | None = None,
    goods_type: str | None = None,
) -> PalletBookingDetails:
    """Validate pallet line items and return canonical booking details.

    Raises:
        BookingValidationError: with one entry per offending field.
    """
    items = list(line_items)
    options = {normalize_goods_type(o) for o in goods_type_options} if goods_type_options else None
    booking_goods = normalize_goods_type(goods_type or (items[0].goods_type if items else None))
    errors: dict[str, str] = {}
    built: list[DraftLineItem] = []

    if not items:
        errors["line_items"] = "Add at least one pallet line item"

    for i, item in enumerate(items):
        prefix = f"line_items.{i}"
        item_errors = len(errors)

        try:
            kind = PalletKind(item.pallet_type or "")
        except ValueError:
            errors[f"{prefix}.pallet_type"] = "Select a pallet type"
            kind = None

        if item.quantity is None or item.quantity <= 0:
            errors[f"{prefix}.quantity"] = "Quantity must be greater than zero"
        if not item.height_range_id:
            errors[f"{prefix}.height_range_id"] = "Select a height range"
        if not item.weight_range_id:
            errors[f"{prefix}.weight_range_id"] = "Select a weight range"

        goods = normalize_goods_type(item.goods_type or booking_goods)
        if options is not None and goods not in options:
            errors[f"{prefix}.goods_type"] = f"Goods type '{goods}' is not accepted by this warehouse"

        unit = item.unit or DimensionUnit.CM.value
        if kind is PalletKind.CUSTOM:
            if item.length is None or item.length <= 0:
                errors[f"{prefix}.length"] = "Length is required for custom pallets"
            if item.width is None or item.width <= 0:
                errors[f"{prefix}.width"] = "Width is required for custom pallets"
            if unit not in {u.value for u in DimensionUnit}:
                errors[f"{prefix}.unit"] = "Unit must be cm or in"

        if len(errors) > item_errors:
            continue

        if kind is PalletKind.CUSTOM:
            pallet_type = pallet_type_from(kind, to_cm(item.length, unit), to_cm(item.width, unit))
            display = dict(display_length=item.length, display_width=item.width, display_unit=unit)
        else:
            pallet_type = pallet_type_from(kind)
            display = {}

        built.append(DraftLineItem(
            pallet_type=pallet_type,
            quantity=item.quantity,
            height_range_id=item.height_range_id,
            weight_range_id=item.weight_range_id,
            goods_type=goods,
            stackable=item.stackable,
            **display,
        ))

    entered = sum(item.quantity or 0 for item in items)
    if items and entered != total_quantity:
        errors["quantity"] = (
            f"Line item quantities add up to {entered} but the booking is for {total_quantity} pallets"
        )

    if errors:
        raise BookingValidationError("Pallet configuration is incomplete", field_errors=errors)

    return PalletBookingDetails(goods_type=booking_goods, line_items=tuple(built))
