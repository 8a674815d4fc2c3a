"""Tests for drop-off slots and calendar classification."""

from datetime import date, datetime, timedelta

import pytest

from warebook.middleware.exceptions import BookingValidationError
from warebook.models.booking import Booking
from warebook.models.warehouse import WarehouseAvailability, WarehouseTask
from warebook.services.availability import (
    BLOCKED_REASON,
    NO_CAPACITY_REASON,
    NOT_WORKING_DAY_REASON,
    CalendarStatus,
    Capacity,
    WarehouseSchedule,
    build_day_availability,
    classify_day,
    generate_time_slots,
    is_working_day,
)
from warebook.services.availability_store import MAX_CALENDAR_DAYS, DatabaseAvailabilityProvider

from conftest import days_ahead

MONDAY = date(2026, 3, 2)
SCHEDULE = WarehouseSchedule(
    working_days=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday"),
    acceptance_start="09:00",
    acceptance_end="11:00",
)


@pytest.mark.unit
class TestSlots:

    def test_half_hour_slots_end_exclusive(self):
        assert generate_time_slots("09:00", "11:00", 30) == ["09:00", "09:30", "10:00", "10:30"]

    def test_seconds_are_tolerated(self):
        assert generate_time_slots("09:00:00", "10:00:00", 30) == ["09:00", "09:30"]

    def test_malformed_window(self):
        assert generate_time_slots("nine", "10:00") == []

    def test_operating_hours_fallback(self):
        schedule = WarehouseSchedule(operating_open="07:00", operating_close="08:00")
        assert schedule.window() == ("07:00", "08:00")

    def test_working_days(self):
        assert is_working_day(MONDAY, ["monday"])
        assert not is_working_day(MONDAY + timedelta(days=5), SCHEDULE.working_days)
        assert is_working_day(MONDAY + timedelta(days=6), [])


@pytest.mark.unit
class TestDayAvailability:

    def test_occupied_slots_marked(self):
        day = build_day_availability(MONDAY, SCHEDULE, ["09:30", "10:00:00"], interval=30)

        assert day.open_times == ["09:00", "10:30"]
        assert day.has_open_slot
        assert day.is_open_at("09:00")
        assert not day.is_open_at("09:30")

    def test_weekend_has_no_slots(self):
        day = build_day_availability(MONDAY + timedelta(days=5), SCHEDULE)
        assert day.time_slots == ()
        assert day.reason == NOT_WORKING_DAY_REASON

    def test_blocked_date(self):
        day = build_day_availability(MONDAY, SCHEDULE, capacity=Capacity(is_blocked=True))
        assert not day.has_open_slot
        assert day.reason == BLOCKED_REASON

    def test_no_capacity_closes_every_slot(self):
        day = build_day_availability(MONDAY, SCHEDULE, capacity=Capacity(available_pallets=0), interval=30)
        assert len(day.time_slots) == 4
        assert not day.has_open_slot
        assert day.reason == NO_CAPACITY_REASON


@pytest.mark.unit
class TestClassifyDay:

    @pytest.mark.parametrize("capacity,expected", [
        (None, CalendarStatus.UNKNOWN),
        (Capacity(), CalendarStatus.UNKNOWN),
        (Capacity(available_pallets=0, available_sq_ft=0), CalendarStatus.BOOKED),
        (Capacity(is_blocked=True), CalendarStatus.BOOKED),
        (Capacity(available_sq_ft=500), CalendarStatus.LIMITED),
        (Capacity(available_pallets=5), CalendarStatus.LIMITED),
        (Capacity(available_pallets=40, available_sq_ft=4000), CalendarStatus.AVAILABLE),
    ])
    def test_classification(self, capacity, expected):
        assert classify_day(MONDAY, MONDAY, capacity, low_sq_ft=1000, low_pallets=10) is expected

    def test_past_wins(self):
        assert classify_day(MONDAY, MONDAY + timedelta(days=1), Capacity(available_pallets=40)) is CalendarStatus.PAST


@pytest.mark.integration
@pytest.mark.asyncio
class TestDatabaseProvider:

    async def test_open_day(self, db_session, warehouse):
        day = await DatabaseAvailabilityProvider(db_session).get_day(warehouse.id, days_ahead(3))
        assert day.open_times == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]

    async def test_bookings_and_tasks_occupy_slots(self, db_session, warehouse, customer_user):
        target = days_ahead(3)
        db_session.add(Booking(
            booking_code="BK-TEST-001",
            type="pallet",
            status="awaiting_time_slot",
            customer_id=customer_user.id,
            customer_name=customer_user.full_name,
            customer_email=customer_user.email,
            warehouse_id=warehouse.id,
            start_date=target,
            end_date=target + timedelta(days=3),
            pallet_count=2,
            booking_metadata={"requestedDropInDate": target.isoformat(), "requestedDropInTime": "09:00"},
        ))
        db_session.add(WarehouseTask(
            warehouse_id=warehouse.id,
            type="receiving",
            status="assigned",
            due_at=datetime.combine(target, datetime.min.time()).replace(hour=10, minute=30),
        ))
        # Completed and non-receiving tasks leave the slot open
        db_session.add(WarehouseTask(
            warehouse_id=warehouse.id,
            type="picking",
            due_at=datetime.combine(target, datetime.min.time()).replace(hour=11),
        ))
        await db_session.flush()

        day = await DatabaseAvailabilityProvider(db_session).get_day(warehouse.id, target)
        assert day.open_times == ["09:30", "10:00", "11:00", "11:30"]

    async def test_override_blocks_date(self, db_session, warehouse):
        target = days_ahead(4)
        db_session.add(WarehouseAvailability(warehouse_id=warehouse.id, day=target, is_blocked=True))
        await db_session.flush()

        day = await DatabaseAvailabilityProvider(db_session).get_day(warehouse.id, target)
        assert not day.has_open_slot

    async def test_calendar(self, db_session, warehouse):
        today = days_ahead(0)
        db_session.add(WarehouseAvailability(
            warehouse_id=warehouse.id, day=days_ahead(2), available_pallets=3,
        ))
        await db_session.flush()

        days = await DatabaseAvailabilityProvider(db_session).get_calendar(
            warehouse.id, days_ahead(-1), days_ahead(3), today=today,
        )
        statuses = [d.status for d in days]
        assert statuses == [
            CalendarStatus.PAST,
            CalendarStatus.AVAILABLE,
            CalendarStatus.AVAILABLE,
            CalendarStatus.LIMITED,
            CalendarStatus.AVAILABLE,
        ]

    async def test_non_working_days_show_booked(self, db_session, other_warehouse):
        # other_warehouse works Monday-Friday
        start = days_ahead(7)
        days = await DatabaseAvailabilityProvider(db_session).get_calendar(
            other_warehouse.id, start, start + timedelta(days=6), today=days_ahead(0),
        )
        weekend = [d for d in days if d.date.weekday() >= 5]
        assert len(weekend) == 2
        assert all(d.status is CalendarStatus.BOOKED for d in weekend)

    async def test_calendar_range_checks(self, db_session, warehouse):
        provider = DatabaseAvailabilityProvider(db_session)
        with pytest.raises(BookingValidationError):
            await provider.get_calendar(warehouse.id, days_ahead(5), days_ahead(1))
        with pytest.raises(BookingValidationError):
            await provider.get_calendar(warehouse.id, days_ahead(0), days_ahead(MAX_CALENDAR_DAYS))
