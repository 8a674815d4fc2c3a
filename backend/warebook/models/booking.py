"""Booking: a customer's reservation of pallet slots or floor area.

Lifecycle (see ``warebook.services.booking_status``):

    pre_order → awaiting_time_slot → (payment_pending →) confirmed → active → completed
    pending → confirmed  (legacy approve flow)
    any open status → cancel_request → cancelled

``metadata`` (attribute ``booking_metadata``) keeps the customer's
requested drop-in slot and cancel-request bookkeeping:

    {"requestedDropInDate": "2026-03-02", "requestedDropInTime": "09:30",
     "previousStatus": "confirmed"}
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean, Date, DateTime, Float, ForeignKey,
    Integer, JSON, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warebook.database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    booking_code: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    # pallet | area-rental
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="pre_order", index=True)

    # ── Parties ──────────────────────────────────────────────
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )

    # ── What & when ──────────────────────────────────────────
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pallet_count: Mapped[int | None] = mapped_column(Integer)
    area_sq_ft: Mapped[float | None] = mapped_column(Float)
    goods_type: Mapped[str] = mapped_column(String(50), default="general")
    # Canonical (cm) line items from the draft builder
    pallet_details: Mapped[dict | None] = mapped_column(JSON)
    total_amount: Mapped[float] = mapped_column(Float, default=0)

    # ── Scheduling ───────────────────────────────────────────
    scheduled_dropoff_at: Mapped[datetime | None] = mapped_column(DateTime)
    # Staff counter-proposal; at most one at a time
    proposed_start_date: Mapped[date | None] = mapped_column(Date)
    proposed_start_time: Mapped[str | None] = mapped_column(String(5))
    date_change_requested_at: Mapped[datetime | None] = mapped_column(DateTime)
    date_change_requested_by: Mapped[str | None] = mapped_column(String(36))

    # ── Capacity & cancellation ──────────────────────────────
    capacity_reserved: Mapped[bool] = mapped_column(Boolean, default=False)
    cancel_processed_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancel_processed_by: Mapped[str | None] = mapped_column(String(36))

    booking_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, default=dict)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    events = relationship(
        "BookingEvent",
        back_populates="booking",
        order_by="BookingEvent.recorded_at",
        cascade="all, delete-orphan",
    )

    @property
    def requested_drop_in_date(self) -> str | None:
        return (self.booking_metadata or {}).get("requestedDropInDate")

    @property
    def requested_drop_in_time(self) -> str | None:
        return (self.booking_metadata or {}).get("requestedDropInTime")

    @property
    def has_proposal(self) -> bool:
        return self.proposed_start_date is not None


class BookingEvent(Base):
    """Immutable log of status transitions and scheduling changes."""
    __tablename__ = "booking_events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    booking_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bookings.id"), nullable=False, index=True
    )
    # created | set_awaiting_time_slot | propose_date_change | approve | ...
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    from_status: Mapped[str | None] = mapped_column(String(30))
    to_status: Mapped[str | None] = mapped_column(String(30))
    #   propose_date_change: {"proposedStartDate": "2026-03-04", "proposedStartTime": "10:00"}
    #   process_cancel_request: {"approved": false}
    event_data: Mapped[dict | None] = mapped_column(JSON)
    recorded_by: Mapped[str | None] = mapped_column(String(36))  # user_id
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    booking = relationship("Booking", back_populates="events")
