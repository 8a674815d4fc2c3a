"""Database-backed availability provider.

Reads the warehouse schedule, per-date capacity overrides, bookings that
hold a drop-off time and open receiving/putaway tasks, then hands them to
the pure gate in ``warebook.services.availability``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.config import settings
from warebook.middleware.exceptions import BookingValidationError, ResourceNotFoundError
from warebook.models.booking import Booking
from warebook.models.warehouse import Warehouse, WarehouseAvailability, WarehouseTask
from warebook.services.availability import (
    CalendarStatus,
    Capacity,
    DayAvailability,
    WarehouseSchedule,
    build_day_availability,
    classify_day,
    date_range,
    is_working_day,
)
from warebook.services.booking_status import BookingStatus

logger = logging.getLogger(__name__)

# Bookings in these statuses hold their drop-off time
SLOT_HOLDING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.ACTIVE.value,
    BookingStatus.AWAITING_TIME_SLOT.value,
)
SLOT_TASK_TYPES = ("receiving", "putaway")
OPEN_TASK_STATUSES = ("pending", "assigned", "in-progress")

MAX_CALENDAR_DAYS = 93


@dataclass(frozen=True)
class CalendarDay:
    date: date
    status: CalendarStatus
    capacity: Capacity | None = None


def schedule_for(warehouse: Warehouse) -> WarehouseSchedule:
    return WarehouseSchedule(
        working_days=tuple(warehouse.working_days or ()),
        acceptance_start=warehouse.product_acceptance_start,
        acceptance_end=warehouse.product_acceptance_end,
        operating_open=warehouse.operating_open,
        operating_close=warehouse.operating_close,
    )


def _capacity(warehouse: Warehouse, override: WarehouseAvailability | None) -> Capacity:
    if override is None:
        return Capacity(
            available_pallets=warehouse.available_pallet_storage,
            available_sq_ft=warehouse.available_sq_ft,
        )
    return Capacity(
        available_pallets=(
            override.available_pallets
            if override.available_pallets is not None
            else warehouse.available_pallet_storage
        ),
        available_sq_ft=(
            override.available_sq_ft
            if override.available_sq_ft is not None
            else warehouse.available_sq_ft
        ),
        is_blocked=bool(override.is_blocked),
    )


class DatabaseAvailabilityProvider:
    """``AvailabilityProvider`` over the request's database session."""

    def __init__(self, db: AsyncSession, interval: int | None = None):
        self.db = db
        self.interval = interval or settings.slot_interval_minutes

    async def _warehouse(self, warehouse_id: str) -> Warehouse:
        warehouse = await self.db.get(Warehouse, warehouse_id)
        if warehouse is None or not warehouse.is_active:
            raise ResourceNotFoundError("Warehouse", warehouse_id)
        return warehouse

    async def capacity_for(self, warehouse: Warehouse, day: date) -> Capacity:
        result = await self.db.execute(
            select(WarehouseAvailability).where(
                WarehouseAvailability.warehouse_id == warehouse.id,
                WarehouseAvailability.day == day,
            )
        )
        return _capacity(warehouse, result.scalar_one_or_none())

    async def occupied_times(
        self,
        warehouse_id: str,
        day: date,
        exclude_booking_id: str | None = None,
    ) -> list[str]:
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        occupied: list[str] = []

        stmt = select(Booking).where(
            Booking.warehouse_id == warehouse_id,
            Booking.status.in_(SLOT_HOLDING_STATUSES),
            or_(
                and_(Booking.start_date <= day, Booking.end_date >= day),
                and_(Booking.scheduled_dropoff_at >= day_start, Booking.scheduled_dropoff_at < day_end),
            ),
        )
        if exclude_booking_id:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        for booking in (await self.db.execute(stmt)).scalars().all():
            if booking.scheduled_dropoff_at and day_start <= booking.scheduled_dropoff_at < day_end:
                occupied.append(booking.scheduled_dropoff_at.strftime("%H:%M"))
            if booking.requested_drop_in_date == day.isoformat() and booking.requested_drop_in_time:
                occupied.append(booking.requested_drop_in_time)

        result = await self.db.execute(
            select(WarehouseTask.due_at).where(
                WarehouseTask.warehouse_id == warehouse_id,
                WarehouseTask.type.in_(SLOT_TASK_TYPES),
                WarehouseTask.status.in_(OPEN_TASK_STATUSES),
                WarehouseTask.due_at >= day_start,
                WarehouseTask.due_at < day_end,
            )
        )
        occupied.extend(due_at.strftime("%H:%M") for due_at in result.scalars().all())
        return occupied

    async def get_day(
        self,
        warehouse_id: str,
        day: date,
        exclude_booking_id: str | None = None,
    ) -> DayAvailability:
        warehouse = await self._warehouse(warehouse_id)
        capacity = await self.capacity_for(warehouse, day)
        occupied = await self.occupied_times(warehouse_id, day, exclude_booking_id)
        availability = build_day_availability(
            day, schedule_for(warehouse), occupied, capacity, self.interval
        )
        logger.debug(
            f"Availability for {warehouse_id} on {day}: {len(availability.open_times)} open slots",
            extra={"warehouse_id": warehouse_id, "date": day.isoformat()},
        )
        return availability

    async def get_calendar(
        self,
        warehouse_id: str,
        start: date,
        end: date,
        today: date | None = None,
    ) -> list[CalendarDay]:
        """Classify every day in [start, end] for the booking calendar."""
        if end < start:
            raise BookingValidationError(
                "Calendar end must not be before its start",
                field_errors={"end": "End date is before start date"},
            )
        if (end - start).days + 1 > MAX_CALENDAR_DAYS:
            raise BookingValidationError(
                f"Calendar range is limited to {MAX_CALENDAR_DAYS} days",
                field_errors={"end": f"At most {MAX_CALENDAR_DAYS} days"},
            )

        warehouse = await self._warehouse(warehouse_id)
        result = await self.db.execute(
            select(WarehouseAvailability).where(
                WarehouseAvailability.warehouse_id == warehouse_id,
                WarehouseAvailability.day >= start,
                WarehouseAvailability.day <= end,
            )
        )
        overrides = {row.day: row for row in result.scalars().all()}
        today = today or date.today()
        working_days = warehouse.working_days or ()

        days: list[CalendarDay] = []
        for day in date_range(start, end):
            capacity = _capacity(warehouse, overrides.get(day))
            if not is_working_day(day, working_days):
                capacity = Capacity(is_blocked=True)
            days.append(CalendarDay(day, classify_day(day, today, capacity), capacity))
        return days
