"""Booking creation, status actions and the staff booking list.

The state machine in ``booking_status`` decides what may happen; this
module applies the plan to the Booking row: capacity bookkeeping on the
warehouse, the staff date proposal, cancel-request bookkeeping, the event
log and the activity feed.  Everything runs inside the request session,
so a failure anywhere leaves the booking untouched.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from warebook.auth.deps import actor_for
from warebook.middleware.exceptions import (
    BookingValidationError,
    BusinessLogicError,
    ResourceNotFoundError,
    SlotUnavailableError,
)
from warebook.models.booking import Booking
from warebook.models.user import User
from warebook.models.warehouse import Warehouse
from warebook.schemas.booking import BookingCreate, ProposeDateChange
from warebook.services.availability import AvailabilityProvider
from warebook.services.booking_draft import build_draft
from warebook.services.booking_status import (
    BookingAction,
    BookingStatus,
    SideEffect,
    TransitionResult,
    initial_status,
    plan_transition,
)
from warebook.services.pricing import (
    BookingType,
    PriceBreakdown,
    PriceRequest,
    calculate_price,
    membership_tier_from,
)
from warebook.services.pricing_store import get_warehouse, load_pricing
from warebook.services.rates import normalize_goods_type
from warebook.utils.activity import log_activity, record_booking_event
from warebook.utils.numbering import generate_booking_code

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Booking.created_at,
    "start_date": Booking.start_date,
    "end_date": Booking.end_date,
    "total_amount": Booking.total_amount,
    "status": Booking.status,
    "booking_code": Booking.booking_code,
    "customer_name": Booking.customer_name,
}


# ── Lookup ──────────────────────────────────────────────────


async def get_booking(db: AsyncSession, booking_id: str, with_events: bool = False) -> Booking:
    stmt = select(Booking).where(Booking.id == booking_id)
    if with_events:
        stmt = stmt.options(selectinload(Booking.events)).execution_options(populate_existing=True)
    booking = (await db.execute(stmt)).scalar_one_or_none()
    if booking is None:
        raise ResourceNotFoundError("Booking", booking_id)
    return booking


def requested_date(booking: Booking) -> date:
    """The customer's requested drop-in date, else the start date."""
    raw = booking.requested_drop_in_date
    return date.fromisoformat(raw) if raw else booking.start_date


# ── Create ──────────────────────────────────────────────────


async def active_pallet_count(db: AsyncSession, customer_id: str, warehouse_id: str) -> int:
    """Pallets the customer currently stores at the warehouse."""
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.pallet_count), 0)).where(
            Booking.customer_id == customer_id,
            Booking.warehouse_id == warehouse_id,
            Booking.type == BookingType.PALLET.value,
            Booking.status == BookingStatus.ACTIVE.value,
        )
    )
    return int(result.scalar_one())


async def create_booking(
    db: AsyncSession, user: User, data: BookingCreate
) -> tuple[Booking, PriceBreakdown]:
    """Validate, price and store a new booking.

    Raises:
        BookingValidationError: incomplete pallet configuration, bad dates.
        PricingUnavailableError: the warehouse has no rate for the request.
    """
    warehouse = await get_warehouse(db, data.warehouse_id)
    booking_type = BookingType(data.type)

    details = None
    if booking_type is BookingType.PALLET:
        quantity = data.pallet_count
        if quantity is None or quantity <= 0:
            raise BookingValidationError(
                "Pallet count must be greater than zero",
                field_errors={"pallet_count": "Pallet count must be greater than zero"},
            )
        pallet_input = data.pallet_details
        details = build_draft(
            [item.to_input() for item in (pallet_input.line_items if pallet_input else [])],
            quantity,
            goods_type_options=warehouse.accepted_goods_types or None,
            goods_type=(pallet_input.goods_type if pallet_input else None) or data.goods_type,
        )
        goods_type = details.goods_type
    else:
        quantity = data.area_sq_ft
        goods_type = normalize_goods_type(data.goods_type)

    drop_in_date = data.requested_drop_in_date
    if drop_in_date is None and data.requested_drop_in_time:
        drop_in_date = data.start_date
    if drop_in_date is not None and not data.start_date <= drop_in_date <= data.end_date:
        raise BookingValidationError(
            "Requested drop-in date must fall within the booking period",
            field_errors={"requested_drop_in_date": "Outside the booking period"},
        )

    existing = 0
    if booking_type is BookingType.PALLET:
        existing = await active_pallet_count(db, user.id, warehouse.id)

    pricing = await load_pricing(db, warehouse.id)
    breakdown = calculate_price(
        PriceRequest(
            warehouse_id=warehouse.id,
            type=booking_type,
            quantity=quantity,
            start_date=data.start_date,
            end_date=data.end_date,
            pallet_details=details,
            area_sq_ft=data.area_sq_ft,
            membership_tier=membership_tier_from(user.membership_tier),
            existing_pallet_count=existing,
        ),
        pricing,
    )

    metadata: dict = {}
    if drop_in_date is not None:
        metadata["requestedDropInDate"] = drop_in_date.isoformat()
        if data.requested_drop_in_time:
            metadata["requestedDropInTime"] = data.requested_drop_in_time

    status = initial_status(has_requested_slot=drop_in_date is not None)
    booking = Booking(
        booking_code=await generate_booking_code(db),
        type=booking_type.value,
        status=status.value,
        customer_id=user.id,
        customer_name=user.full_name,
        customer_email=user.email,
        warehouse_id=warehouse.id,
        start_date=data.start_date,
        end_date=data.end_date,
        pallet_count=int(quantity) if booking_type is BookingType.PALLET else None,
        area_sq_ft=breakdown.quantity if booking_type is BookingType.AREA_RENTAL else None,
        goods_type=goods_type,
        pallet_details=details.to_payload() if details else None,
        total_amount=breakdown.total,
        booking_metadata=metadata,
        notes=data.notes,
    )
    db.add(booking)
    await db.flush()

    await record_booking_event(
        db, booking,
        event_type="created",
        from_status=None,
        to_status=status.value,
        recorded_by=user.id,
        event_data={"total": breakdown.total, "pricingPeriod": breakdown.pricing_period.value},
    )
    await log_activity(
        db, user,
        action="created",
        entity_type="booking",
        entity_id=booking.id,
        entity_code=booking.booking_code,
        warehouse_id=warehouse.id,
        summary=f"Booked {breakdown.quantity:g} {'pallets' if details else 'sq ft'} at {warehouse.name}",
    )
    logger.info(
        f"Booking {booking.booking_code} created as {status.value}",
        extra={"booking_id": booking.id, "warehouse_id": warehouse.id},
    )
    return booking, breakdown


# ── Side effects ────────────────────────────────────────────


async def _reserve_capacity(db: AsyncSession, booking: Booking) -> None:
    if booking.capacity_reserved:
        return
    warehouse = await db.get(Warehouse, booking.warehouse_id)
    if booking.type == BookingType.AREA_RENTAL.value:
        needed = booking.area_sq_ft or 0
        if warehouse.available_sq_ft is not None:
            if warehouse.available_sq_ft < needed:
                raise BusinessLogicError(
                    f"Only {warehouse.available_sq_ft:g} sq ft available, {needed:g} requested",
                    error_code="INSUFFICIENT_CAPACITY",
                )
            warehouse.available_sq_ft -= needed
    else:
        needed = booking.pallet_count or 0
        if warehouse.available_pallet_storage is not None:
            if warehouse.available_pallet_storage < needed:
                raise BusinessLogicError(
                    f"Only {warehouse.available_pallet_storage} pallet slots available, {needed} requested",
                    error_code="INSUFFICIENT_CAPACITY",
                )
            warehouse.available_pallet_storage -= needed
    booking.capacity_reserved = True


async def _release_capacity(db: AsyncSession, booking: Booking) -> None:
    if not booking.capacity_reserved:
        return
    warehouse = await db.get(Warehouse, booking.warehouse_id)
    if booking.type == BookingType.AREA_RENTAL.value:
        if warehouse.available_sq_ft is not None:
            released = warehouse.available_sq_ft + (booking.area_sq_ft or 0)
            if warehouse.total_sq_ft is not None:
                released = min(released, warehouse.total_sq_ft)
            warehouse.available_sq_ft = released
    else:
        if warehouse.available_pallet_storage is not None:
            released = warehouse.available_pallet_storage + (booking.pallet_count or 0)
            if warehouse.total_pallet_storage is not None:
                released = min(released, warehouse.total_pallet_storage)
            warehouse.available_pallet_storage = released
    booking.capacity_reserved = False


def _apply_proposal(booking: Booking) -> None:
    """Move the booking to the accepted slot, keeping its length."""
    if booking.has_proposal:
        length = booking.end_date - booking.start_date
        booking.start_date = booking.proposed_start_date
        booking.end_date = booking.proposed_start_date + length
        drop_time = booking.proposed_start_time or "00:00"
        booking.scheduled_dropoff_at = datetime.combine(
            booking.proposed_start_date, time.fromisoformat(drop_time)
        )
        booking.proposed_start_date = None
        booking.proposed_start_time = None
    elif booking.requested_drop_in_time:
        booking.scheduled_dropoff_at = datetime.combine(
            requested_date(booking), time.fromisoformat(booking.requested_drop_in_time)
        )


async def _record_proposal(
    booking: Booking,
    user: User,
    proposal: ProposeDateChange | None,
    availability_provider: AvailabilityProvider | None,
) -> dict:
    if proposal is None:
        raise BookingValidationError(
            "A proposed date and time are required",
            field_errors={"proposed_start_date": "Required", "proposed_start_time": "Required"},
        )
    if proposal.proposed_start_date < date.today():
        raise BookingValidationError(
            "Proposed date is in the past",
            field_errors={"proposed_start_date": "Choose today or a later date"},
        )
    if availability_provider is not None:
        day = await availability_provider.get_day(booking.warehouse_id, proposal.proposed_start_date)
        if not day.is_open_at(proposal.proposed_start_time):
            raise SlotUnavailableError(
                f"{proposal.proposed_start_time} on {proposal.proposed_start_date.isoformat()} "
                f"is not an open drop-off slot"
            )

    booking.proposed_start_date = proposal.proposed_start_date
    booking.proposed_start_time = proposal.proposed_start_time
    booking.date_change_requested_at = datetime.utcnow()
    booking.date_change_requested_by = user.id
    return {
        "proposedStartDate": proposal.proposed_start_date.isoformat(),
        "proposedStartTime": proposal.proposed_start_time,
    }


def _update_metadata(booking: Booking, **changes) -> None:
    # JSON columns are not mutation-tracked; assign a new dict
    metadata = dict(booking.booking_metadata or {})
    for key, value in changes.items():
        if value is None:
            metadata.pop(key, None)
        else:
            metadata[key] = value
    booking.booking_metadata = metadata


# ── Transitions ─────────────────────────────────────────────


async def apply_transition(
    db: AsyncSession,
    booking: Booking,
    action: BookingAction | str,
    user: User,
    *,
    availability_provider: AvailabilityProvider | None = None,
    proposal: ProposeDateChange | None = None,
    approve: bool = True,
    reason: str | None = None,
) -> TransitionResult:
    """Run one status action against a booking.

    Raises:
        InvalidTransitionError: action not allowed in the current status.
        PermissionDeniedError: the user's role may not perform it.
        SlotUnavailableError: no open slot on the requested/proposed date.
        BusinessLogicError: not enough warehouse capacity to confirm.
    """
    action = BookingAction(action)
    availability = None
    requested = None
    if action is BookingAction.SET_AWAITING_TIME_SLOT and booking.status == BookingStatus.PRE_ORDER.value:
        if availability_provider is None:
            raise BusinessLogicError("Availability check is not configured")
        requested = requested_date(booking)
        availability = await availability_provider.get_day(booking.warehouse_id, requested)

    metadata = booking.booking_metadata or {}
    result = plan_transition(
        booking.status,
        action,
        actor_for(user),
        requested_date=requested,
        availability=availability,
        has_proposal=booking.has_proposal,
        approve=approve,
        previous_status=metadata.get("previousStatus"),
    )

    event_data: dict = {}
    for effect in result.effects:
        if effect is SideEffect.RECORD_PROPOSAL:
            event_data.update(await _record_proposal(booking, user, proposal, availability_provider))
        elif effect is SideEffect.APPLY_PROPOSAL:
            _apply_proposal(booking)
        elif effect is SideEffect.RESERVE_CAPACITY:
            await _reserve_capacity(db, booking)
        elif effect is SideEffect.RELEASE_CAPACITY:
            await _release_capacity(db, booking)
        elif effect is SideEffect.REMEMBER_PREVIOUS_STATUS:
            _update_metadata(booking, previousStatus=result.from_status.value)

    if action is BookingAction.PROCESS_CANCEL_REQUEST:
        booking.cancel_processed_at = datetime.utcnow()
        booking.cancel_processed_by = user.id
        _update_metadata(booking, previousStatus=None)
        event_data["approved"] = approve
    if availability is not None:
        event_data["openSlots"] = len(availability.open_times)
    if reason:
        event_data["reason"] = reason

    booking.status = result.to_status.value
    await record_booking_event(
        db, booking,
        event_type=action.value,
        from_status=result.from_status.value,
        to_status=result.to_status.value,
        recorded_by=user.id,
        event_data=event_data or None,
    )
    await log_activity(
        db, user,
        action="date_proposed" if action is BookingAction.PROPOSE_DATE_CHANGE else "status_changed",
        entity_type="booking",
        entity_id=booking.id,
        entity_code=booking.booking_code,
        warehouse_id=booking.warehouse_id,
        summary=f"{action.value.replace('_', ' ').capitalize()}: {result.from_status.value} → {result.to_status.value}",
        details=event_data or None,
    )
    await db.flush()

    logger.info(
        f"Booking {booking.booking_code}: {action.value} {result.from_status.value} → {result.to_status.value}",
        extra={"booking_id": booking.id, "user_id": user.id},
    )
    return result


# ── Staff list ──────────────────────────────────────────────


async def list_bookings(
    db: AsyncSession,
    *,
    warehouse_ids: list[str] | None,
    statuses: list[str] | None = None,
    warehouse_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    customer_search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Booking], int]:
    """Filtered, sorted page of bookings plus the unpaged total.

    ``warehouse_ids`` limits the result to warehouses the caller operates
    (``None`` means unrestricted).  The date filter keeps bookings whose
    period overlaps [start_date, end_date].
    """
    if sort_by not in SORTABLE_FIELDS:
        raise BookingValidationError(
            f"Cannot sort by '{sort_by}'",
            field_errors={"sortBy": f"One of: {', '.join(sorted(SORTABLE_FIELDS))}"},
        )
    if start_date and end_date and end_date < start_date:
        raise BookingValidationError(
            "End date is before start date",
            field_errors={"endDate": "End date is before start date"},
        )

    filters = []
    if warehouse_ids is not None:
        filters.append(Booking.warehouse_id.in_(warehouse_ids))
    if warehouse_id:
        filters.append(Booking.warehouse_id == warehouse_id)
    if statuses:
        filters.append(Booking.status.in_(statuses))
    if start_date:
        filters.append(Booking.end_date >= start_date)
    if end_date:
        filters.append(Booking.start_date <= end_date)
    if customer_search:
        pattern = f"%{customer_search.lower()}%"
        filters.append(or_(
            func.lower(Booking.customer_name).like(pattern),
            func.lower(Booking.customer_email).like(pattern),
            func.lower(Booking.booking_code).like(pattern),
        ))

    total = (await db.execute(select(func.count(Booking.id)).where(*filters))).scalar() or 0

    column = SORTABLE_FIELDS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    result = await db.execute(
        select(Booking)
        .where(*filters)
        .order_by(ordering, Booking.id)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total
