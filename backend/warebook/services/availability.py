"""Availability gate: drop-off time slots and calendar classification.

Slots are generated every ``slot_interval_minutes`` from the warehouse's
product acceptance start (inclusive) to its end (exclusive).  A slot is
taken when a booking requested or was scheduled for it, or when a
receiving/putaway task is due at that time.  Non-working days have no
slots; an empty working-day list means the warehouse works every day.

The database-backed provider lives in
``warebook.services.availability_store``; this module is pure.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Protocol

from warebook.config import settings

logger = logging.getLogger(__name__)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
TIME_RE = re.compile(r"^(\d{2}):(\d{2})(?::\d{2})?$")

OCCUPIED_REASON = "Time slot is occupied by another booking or warehouse task"
NO_CAPACITY_REASON = "No remaining capacity"
NOT_WORKING_DAY_REASON = "Date is not a working day"
BLOCKED_REASON = "Warehouse is closed on this date"


class CalendarStatus(str, enum.Enum):
    AVAILABLE = "available"
    LIMITED = "limited"
    BOOKED = "booked"
    UNKNOWN = "unknown"
    PAST = "past"


@dataclass(frozen=True)
class TimeSlot:
    time: str
    available: bool
    reason: str | None = None


@dataclass(frozen=True)
class DayAvailability:
    date: date
    time_slots: tuple[TimeSlot, ...] = ()
    reason: str | None = None

    @property
    def has_open_slot(self) -> bool:
        return any(slot.available for slot in self.time_slots)

    @property
    def open_times(self) -> list[str]:
        return [slot.time for slot in self.time_slots if slot.available]

    def is_open_at(self, time: str) -> bool:
        return time in self.open_times


@dataclass(frozen=True)
class WarehouseSchedule:
    working_days: tuple[str, ...] = ()
    acceptance_start: str | None = None
    acceptance_end: str | None = None
    operating_open: str | None = None
    operating_close: str | None = None

    def window(self) -> tuple[str, str]:
        """Acceptance hours, falling back to operating hours, then defaults."""
        start = _hhmm(self.acceptance_start) or _hhmm(self.operating_open)
        end = _hhmm(self.acceptance_end) or _hhmm(self.operating_close)
        if start is None or end is None:
            return settings.default_acceptance_start, settings.default_acceptance_end
        return start, end


@dataclass(frozen=True)
class Capacity:
    """Remaining capacity for a date.  ``None`` means the dimension is not offered."""
    available_pallets: int | None = None
    available_sq_ft: float | None = None
    is_blocked: bool = False

    @property
    def known(self) -> bool:
        return self.available_pallets is not None or self.available_sq_ft is not None

    @property
    def exhausted(self) -> bool:
        values = [v for v in (self.available_pallets, self.available_sq_ft) if v is not None]
        return self.is_blocked or (bool(values) and all(v <= 0 for v in values))


class AvailabilityProvider(Protocol):
    async def get_day(self, warehouse_id: str, day: date) -> DayAvailability:
        ...


# ── Helpers ─────────────────────────────────────────────────


def _hhmm(value: str | None) -> str | None:
    """Normalize ``HH:MM`` / ``HH:MM:SS`` to ``HH:MM``; None when malformed."""
    if not value:
        return None
    match = TIME_RE.match(str(value).strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_working_day(day: date, working_days: Iterable[str]) -> bool:
    names = {d.strip().lower() for d in working_days if d and d.strip()}
    if not names:
        return True
    return DAY_NAMES[day.weekday()].lower() in names


def generate_time_slots(start: str, end: str, interval: int | None = None) -> list[str]:
    interval = interval or settings.slot_interval_minutes
    start_hhmm, end_hhmm = _hhmm(start), _hhmm(end)
    if start_hhmm is None or end_hhmm is None:
        logger.warning(f"Invalid slot window {start!r}-{end!r}")
        return []

    slots = []
    current, stop = _minutes(start_hhmm), _minutes(end_hhmm)
    while current < stop:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += interval
    return slots


# ── Gate ────────────────────────────────────────────────────


def build_day_availability(
    day: date,
    schedule: WarehouseSchedule,
    occupied_times: Iterable[str] = (),
    capacity: Capacity | None = None,
    interval: int | None = None,
) -> DayAvailability:
    if not is_working_day(day, schedule.working_days):
        return DayAvailability(date=day, reason=NOT_WORKING_DAY_REASON)
    if capacity is not None and capacity.is_blocked:
        return DayAvailability(date=day, reason=BLOCKED_REASON)

    occupied = {t for t in (_hhmm(o) for o in occupied_times) if t}
    no_capacity = capacity is not None and capacity.exhausted
    start, end = schedule.window()

    slots = []
    for time in generate_time_slots(start, end, interval):
        if no_capacity:
            slots.append(TimeSlot(time=time, available=False, reason=NO_CAPACITY_REASON))
        elif time in occupied:
            slots.append(TimeSlot(time=time, available=False, reason=OCCUPIED_REASON))
        else:
            slots.append(TimeSlot(time=time, available=True))

    return DayAvailability(
        date=day,
        time_slots=tuple(slots),
        reason=NO_CAPACITY_REASON if no_capacity else None,
    )


def classify_day(
    day: date,
    today: date,
    capacity: Capacity | None,
    low_sq_ft: float | None = None,
    low_pallets: int | None = None,
) -> CalendarStatus:
    """Calendar colour for a day: past, unknown, booked, limited or available."""
    if day < today:
        return CalendarStatus.PAST
    if capacity is not None and capacity.is_blocked:
        return CalendarStatus.BOOKED
    if capacity is None or not capacity.known:
        return CalendarStatus.UNKNOWN
    if capacity.exhausted:
        return CalendarStatus.BOOKED

    low_sq_ft = settings.low_capacity_sq_ft if low_sq_ft is None else low_sq_ft
    low_pallets = settings.low_capacity_pallets if low_pallets is None else low_pallets
    if capacity.available_sq_ft is not None and capacity.available_sq_ft < low_sq_ft:
        return CalendarStatus.LIMITED
    if capacity.available_pallets is not None and capacity.available_pallets < low_pallets:
        return CalendarStatus.LIMITED
    return CalendarStatus.AVAILABLE


def date_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=n) for n in range((end - start).days + 1)]
