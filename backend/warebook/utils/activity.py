"""Helpers for the activity feed and the booking event log.

Both add rows to the current session; they are committed with the
enclosing request transaction, no extra flush.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from warebook.models.activity_log import ActivityLog
from warebook.models.booking import Booking, BookingEvent
from warebook.models.user import User


async def log_activity(
    db: AsyncSession,
    user: User,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    warehouse_id: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    db.add(ActivityLog(
        user_id=user.id,
        user_name=user.full_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        warehouse_id=warehouse_id,
        summary=summary,
        details=details,
    ))


async def record_booking_event(
    db: AsyncSession,
    booking: Booking,
    *,
    event_type: str,
    from_status: str | None,
    to_status: str | None,
    recorded_by: str | None,
    event_data: dict | None = None,
) -> BookingEvent:
    event = BookingEvent(
        booking_id=booking.id,
        event_type=event_type,
        from_status=from_status,
        to_status=to_status,
        recorded_by=recorded_by,
        event_data=event_data,
    )
    db.add(event)
    return event
