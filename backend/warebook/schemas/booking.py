"""Pydantic schemas for bookings and their status actions."""

from datetime import date, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from warebook.schemas.pricing import PalletDetailsIn, PriceBreakdownOut
from warebook.schemas.validators import sanitize_string, validate_clock_time
from warebook.services import booking_status
from warebook.services.pricing import BookingType


# ── Create ───────────────────────────────────────────────────

class BookingCreate(BaseModel):
    """Payload for POST /api/v1/bookings.

    A requested drop-in date starts the marketplace flow (pre_order);
    without one the booking enters the legacy approve flow (pending).
    """
    warehouse_id: str
    type: BookingType = BookingType.PALLET
    start_date: date
    end_date: date
    pallet_count: int | None = None
    area_sq_ft: float | None = None
    goods_type: str | None = None
    pallet_details: PalletDetailsIn | None = None
    requested_drop_in_date: date | None = None
    requested_drop_in_time: str | None = None
    notes: str | None = None

    @field_validator("requested_drop_in_time")
    @classmethod
    def _time(cls, v: str | None) -> str | None:
        return validate_clock_time(v)

    @field_validator("notes")
    @classmethod
    def _notes(cls, v: str | None) -> str | None:
        return sanitize_string(v, max_length=2000) if v is not None else None


# ── Actions ──────────────────────────────────────────────────

class ProposeDateChange(BaseModel):
    """Staff counter-proposal; replaces any earlier proposal."""
    proposed_start_date: date
    proposed_start_time: str

    @field_validator("proposed_start_time")
    @classmethod
    def _time(cls, v: str) -> str:
        return validate_clock_time(v)


class ProcessCancelRequest(BaseModel):
    approve: bool
    reason: str | None = None

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str | None) -> str | None:
        return sanitize_string(v, max_length=500) if v is not None else None


class ActionNote(BaseModel):
    """Optional reason attached to a status action."""
    reason: str | None = None

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str | None) -> str | None:
        return sanitize_string(v, max_length=500) if v is not None else None


# ── Output ───────────────────────────────────────────────────

class BookingEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_type: str
    from_status: str | None = None
    to_status: str | None = None
    event_data: dict | None = None
    recorded_by: str | None = None
    recorded_at: datetime


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_code: str
    type: str
    status: str
    customer_id: str
    customer_name: str
    customer_email: str
    warehouse_id: str
    start_date: date
    end_date: date
    pallet_count: int | None = None
    area_sq_ft: float | None = None
    goods_type: str
    pallet_details: dict | None = None
    total_amount: float
    scheduled_dropoff_at: datetime | None = None
    proposed_start_date: date | None = None
    proposed_start_time: str | None = None
    date_change_requested_at: datetime | None = None
    capacity_reserved: bool = False
    metadata: dict | None = Field(
        None, validation_alias=AliasChoices("booking_metadata", "metadata")
    )
    notes: str | None = None
    allowed_actions: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_booking(cls, booking, actor: booking_status.Actor) -> "BookingOut":
        out = cls.model_validate(booking)
        out.allowed_actions = [a.value for a in booking_status.allowed_actions(booking.status, actor)]
        return out


class BookingDetailOut(BookingOut):
    events: list[BookingEventOut] = Field(default_factory=list)


class BookingCreatedOut(BaseModel):
    booking: BookingOut
    breakdown: PriceBreakdownOut
