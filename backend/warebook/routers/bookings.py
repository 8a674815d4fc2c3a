"""Booking router.

Endpoints:
    POST  /api/v1/bookings                                  Create (customer)
    GET   /api/v1/bookings/{booking_id}                     Detail with event log
    POST  /api/v1/bookings/{booking_id}/approve             pending → confirmed
    POST  /api/v1/bookings/{booking_id}/set-awaiting-time-slot
    POST  /api/v1/bookings/{booking_id}/propose-date-change
    POST  /api/v1/bookings/{booking_id}/accept-proposed-time
    POST  /api/v1/bookings/{booking_id}/request-payment
    POST  /api/v1/bookings/{booking_id}/record-payment      (admin)
    POST  /api/v1/bookings/{booking_id}/activate            check-in
    POST  /api/v1/bookings/{booking_id}/complete            check-out
    POST  /api/v1/bookings/{booking_id}/cancel-request      (customer)
    POST  /api/v1/bookings/{booking_id}/process-cancel-request
    POST  /api/v1/bookings/{booking_id}/cancel

Status actions return the updated booking.  Whether an action is allowed
is decided by the booking state machine; routes only check that the user
may see the booking at all.
"""

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.auth.deps import (
    actor_for,
    ensure_booking_access,
    require_permission,
    require_role,
)
from warebook.database import get_db
from warebook.models.user import User, UserRole
from warebook.schemas.booking import (
    ActionNote,
    BookingCreate,
    BookingCreatedOut,
    BookingDetailOut,
    BookingOut,
    ProcessCancelRequest,
    ProposeDateChange,
)
from warebook.schemas.common import ApiResponse
from warebook.schemas.pricing import PriceBreakdownOut
from warebook.services.availability_store import DatabaseAvailabilityProvider
from warebook.services.booking_status import BookingAction
from warebook.services.bookings import apply_transition, create_booking, get_booking

router = APIRouter()


async def _run_action(
    db: AsyncSession,
    user: User,
    booking_id: str,
    action: BookingAction,
    **kwargs,
) -> ApiResponse[BookingOut]:
    booking = await get_booking(db, booking_id)
    await ensure_booking_access(db, user, booking)
    await apply_transition(
        db, booking, action, user,
        availability_provider=DatabaseAvailabilityProvider(db),
        **kwargs,
    )
    return ApiResponse(data=BookingOut.from_booking(booking, actor_for(user)))


# ── POST /api/v1/bookings ────────────────────────────────────

@router.post("", response_model=ApiResponse[BookingCreatedOut], status_code=201)
async def create(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.create")),
):
    booking, breakdown = await create_booking(db, user, body)
    return ApiResponse(data=BookingCreatedOut(
        booking=BookingOut.from_booking(booking, actor_for(user)),
        breakdown=PriceBreakdownOut.model_validate(breakdown),
    ))


# ── GET /api/v1/bookings/{id} ────────────────────────────────

@router.get("/{booking_id}", response_model=ApiResponse[BookingDetailOut])
async def get_detail(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.read")),
):
    booking = await get_booking(db, booking_id, with_events=True)
    await ensure_booking_access(db, user, booking)
    return ApiResponse(data=BookingDetailOut.from_booking(booking, actor_for(user)))


# ── Staff actions ────────────────────────────────────────────

@router.post("/{booking_id}/approve", response_model=ApiResponse[BookingOut])
async def approve(
    booking_id: str,
    body: ActionNote | None = Body(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(
        db, user, booking_id, BookingAction.APPROVE, reason=body.reason if body else None
    )


@router.post("/{booking_id}/set-awaiting-time-slot", response_model=ApiResponse[BookingOut])
async def set_awaiting_time_slot(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    """Accept the customer's requested date; rejected when it has no open slot."""
    return await _run_action(db, user, booking_id, BookingAction.SET_AWAITING_TIME_SLOT)


@router.post("/{booking_id}/propose-date-change", response_model=ApiResponse[BookingOut])
async def propose_date_change(
    booking_id: str,
    body: ProposeDateChange,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(
        db, user, booking_id, BookingAction.PROPOSE_DATE_CHANGE, proposal=body
    )


@router.post("/{booking_id}/request-payment", response_model=ApiResponse[BookingOut])
async def request_payment(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(db, user, booking_id, BookingAction.REQUEST_PAYMENT)


@router.post("/{booking_id}/record-payment", response_model=ApiResponse[BookingOut])
async def record_payment(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(UserRole.ADMIN)),
):
    return await _run_action(db, user, booking_id, BookingAction.RECORD_PAYMENT)


@router.post("/{booking_id}/activate", response_model=ApiResponse[BookingOut])
async def activate(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(db, user, booking_id, BookingAction.ACTIVATE)


@router.post("/{booking_id}/complete", response_model=ApiResponse[BookingOut])
async def complete(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(db, user, booking_id, BookingAction.COMPLETE)


@router.post("/{booking_id}/process-cancel-request", response_model=ApiResponse[BookingOut])
async def process_cancel_request(
    booking_id: str,
    body: ProcessCancelRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(
        db, user, booking_id, BookingAction.PROCESS_CANCEL_REQUEST,
        approve=body.approve, reason=body.reason,
    )


@router.post("/{booking_id}/cancel", response_model=ApiResponse[BookingOut])
async def cancel(
    booking_id: str,
    body: ActionNote | None = Body(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.manage")),
):
    return await _run_action(
        db, user, booking_id, BookingAction.CANCEL, reason=body.reason if body else None
    )


# ── Customer actions ─────────────────────────────────────────

@router.post("/{booking_id}/accept-proposed-time", response_model=ApiResponse[BookingOut])
async def accept_proposed_time(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.read")),
):
    return await _run_action(db, user, booking_id, BookingAction.ACCEPT_PROPOSED_TIME)


@router.post("/{booking_id}/cancel-request", response_model=ApiResponse[BookingOut])
async def request_cancel(
    booking_id: str,
    body: ActionNote | None = Body(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("booking.read")),
):
    return await _run_action(
        db, user, booking_id, BookingAction.REQUEST_CANCEL, reason=body.reason if body else None
    )
