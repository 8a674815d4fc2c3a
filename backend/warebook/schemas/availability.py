"""Availability and calendar responses.

Keys are camelCase on the wire (``timeSlots``, ``availablePallets``) to
match what the booking calendar already consumes.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from warebook.services.availability import CalendarStatus, DayAvailability


class TimeSlotOut(BaseModel):
    time: str
    available: bool
    reason: str | None = None


class DayAvailabilityOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(..., alias="date")
    time_slots: list[TimeSlotOut] = Field(default_factory=list, alias="timeSlots")
    reason: str | None = None

    @classmethod
    def from_engine(cls, availability: DayAvailability) -> "DayAvailabilityOut":
        return cls(
            day=availability.date,
            time_slots=[
                TimeSlotOut(time=s.time, available=s.available, reason=s.reason)
                for s in availability.time_slots
            ],
            reason=availability.reason,
        )


class CalendarDayOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(..., alias="date")
    status: CalendarStatus
    available_pallets: int | None = Field(None, alias="availablePallets")
    available_sq_ft: float | None = Field(None, alias="availableSqFt")
