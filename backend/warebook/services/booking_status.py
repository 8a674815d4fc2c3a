"""Booking status state machine.

Two entry flows share one machine:

    marketplace:  pre_order → awaiting_time_slot → (payment_pending →) confirmed
    legacy:       pending → confirmed  (staff "approve")

then confirmed → active (check-in) → completed (check-out).  Any
non-terminal booking can go to cancel_request, which staff either approve
(cancelled) or reject (back to the status it had before).  completed and
cancelled are terminal.

``plan_transition`` decides the next status and the side effects; it never
touches the database.  ``warebook.services.bookings`` applies the plan.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date

from warebook.middleware.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    SlotUnavailableError,
)
from warebook.services.availability import DayAvailability


class BookingStatus(str, enum.Enum):
    PRE_ORDER = "pre_order"
    AWAITING_TIME_SLOT = "awaiting_time_slot"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CANCEL_REQUEST = "cancel_request"
    PENDING = "pending"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})
NON_TERMINAL_STATUSES = frozenset(BookingStatus) - TERMINAL_STATUSES


class Actor(str, enum.Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"
    SYSTEM = "system"


class BookingAction(str, enum.Enum):
    SET_AWAITING_TIME_SLOT = "set_awaiting_time_slot"
    PROPOSE_DATE_CHANGE = "propose_date_change"
    APPROVE = "approve"
    ACCEPT_PROPOSED_TIME = "accept_proposed_time"
    REQUEST_PAYMENT = "request_payment"
    RECORD_PAYMENT = "record_payment"
    ACTIVATE = "activate"
    COMPLETE = "complete"
    REQUEST_CANCEL = "request_cancel"
    PROCESS_CANCEL_REQUEST = "process_cancel_request"
    CANCEL = "cancel"


class SideEffect(str, enum.Enum):
    CHECK_AVAILABILITY = "check_availability"
    RECORD_PROPOSAL = "record_proposal"
    APPLY_PROPOSAL = "apply_proposal"
    RESERVE_CAPACITY = "reserve_capacity"
    RELEASE_CAPACITY = "release_capacity"
    REMEMBER_PREVIOUS_STATUS = "remember_previous_status"


@dataclass(frozen=True)
class Transition:
    sources: frozenset[BookingStatus]
    target: BookingStatus | None  # None: status unchanged or decided at plan time
    actors: frozenset[Actor]
    effects: tuple[SideEffect, ...] = ()


@dataclass(frozen=True)
class TransitionResult:
    action: BookingAction
    from_status: BookingStatus
    to_status: BookingStatus
    effects: tuple[SideEffect, ...] = ()

    @property
    def changed(self) -> bool:
        return self.from_status is not self.to_status


_S = BookingStatus
_OPERATORS = frozenset({Actor.STAFF, Actor.ADMIN})

TRANSITIONS: dict[BookingAction, Transition] = {
    BookingAction.SET_AWAITING_TIME_SLOT: Transition(
        sources=frozenset({_S.PRE_ORDER}),
        target=_S.AWAITING_TIME_SLOT,
        actors=_OPERATORS,
        effects=(SideEffect.CHECK_AVAILABILITY,),
    ),
    BookingAction.PROPOSE_DATE_CHANGE: Transition(
        sources=frozenset({_S.PRE_ORDER, _S.AWAITING_TIME_SLOT}),
        target=None,
        actors=_OPERATORS,
        effects=(SideEffect.RECORD_PROPOSAL,),
    ),
    BookingAction.APPROVE: Transition(
        sources=frozenset({_S.PENDING}),
        target=_S.CONFIRMED,
        actors=_OPERATORS,
        effects=(SideEffect.RESERVE_CAPACITY,),
    ),
    BookingAction.ACCEPT_PROPOSED_TIME: Transition(
        sources=frozenset({_S.AWAITING_TIME_SLOT, _S.PRE_ORDER}),
        target=_S.CONFIRMED,
        actors=frozenset({Actor.CUSTOMER}),
        effects=(SideEffect.APPLY_PROPOSAL, SideEffect.RESERVE_CAPACITY),
    ),
    BookingAction.REQUEST_PAYMENT: Transition(
        sources=frozenset({_S.AWAITING_TIME_SLOT}),
        target=_S.PAYMENT_PENDING,
        actors=_OPERATORS | {Actor.SYSTEM},
    ),
    BookingAction.RECORD_PAYMENT: Transition(
        sources=frozenset({_S.PENDING, _S.PAYMENT_PENDING, _S.AWAITING_TIME_SLOT}),
        target=_S.CONFIRMED,
        actors=frozenset({Actor.SYSTEM, Actor.ADMIN}),
        effects=(SideEffect.RESERVE_CAPACITY,),
    ),
    BookingAction.ACTIVATE: Transition(
        sources=frozenset({_S.CONFIRMED}),
        target=_S.ACTIVE,
        actors=_OPERATORS,
    ),
    BookingAction.COMPLETE: Transition(
        sources=frozenset({_S.ACTIVE}),
        target=_S.COMPLETED,
        actors=_OPERATORS,
        effects=(SideEffect.RELEASE_CAPACITY,),
    ),
    BookingAction.REQUEST_CANCEL: Transition(
        sources=NON_TERMINAL_STATUSES - {_S.CANCEL_REQUEST},
        target=_S.CANCEL_REQUEST,
        actors=frozenset({Actor.CUSTOMER}),
        effects=(SideEffect.REMEMBER_PREVIOUS_STATUS,),
    ),
    BookingAction.PROCESS_CANCEL_REQUEST: Transition(
        sources=frozenset({_S.CANCEL_REQUEST}),
        target=None,
        actors=_OPERATORS,
    ),
    BookingAction.CANCEL: Transition(
        sources=NON_TERMINAL_STATUSES,
        target=_S.CANCELLED,
        actors=_OPERATORS,
        effects=(SideEffect.RELEASE_CAPACITY,),
    ),
}


def initial_status(has_requested_slot: bool) -> BookingStatus:
    """Marketplace bookings with a requested drop-in slot start as pre-orders."""
    return BookingStatus.PRE_ORDER if has_requested_slot else BookingStatus.PENDING


def allowed_actions(status: BookingStatus | str, actor: Actor) -> list[BookingAction]:
    status = BookingStatus(status)
    return [
        action for action, transition in TRANSITIONS.items()
        if status in transition.sources and actor in transition.actors
    ]


def plan_transition(
    status: BookingStatus | str,
    action: BookingAction | str,
    actor: Actor,
    *,
    requested_date: date | None = None,
    availability: DayAvailability | None = None,
    has_proposal: bool = False,
    approve: bool = True,
    previous_status: BookingStatus | str | None = None,
) -> TransitionResult:
    """Validate an action against the current status and plan its effects.

    ``availability`` must be the gate's answer for the customer's requested
    drop-in date when moving a pre-order to awaiting_time_slot.  For
    ``process_cancel_request``, ``approve`` chooses between cancelling and
    restoring ``previous_status``.

    Raises:
        InvalidTransitionError: action not allowed from this status.
        PermissionDeniedError: actor may not perform the action.
        SlotUnavailableError: requested date has no open slot.
    """
    status = BookingStatus(status)
    action = BookingAction(action)
    transition = TRANSITIONS[action]

    if status in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            status.value, action.value,
            f"Booking is {status.value}; no further changes are allowed",
        )
    if status not in transition.sources:
        raise InvalidTransitionError(status.value, action.value)
    if actor not in transition.actors:
        raise PermissionDeniedError(f"A {actor.value} cannot {action.value.replace('_', ' ')}")

    if action is BookingAction.SET_AWAITING_TIME_SLOT:
        if availability is None or not availability.has_open_slot:
            day = requested_date or (availability.date if availability else None)
            raise SlotUnavailableError(
                f"No open time slot on {day.isoformat() if day else 'the requested date'}; "
                f"propose a different date instead"
            )

    if action is BookingAction.ACCEPT_PROPOSED_TIME and status is BookingStatus.PRE_ORDER and not has_proposal:
        raise InvalidTransitionError(
            status.value, action.value, "There is no proposed time to accept",
        )

    if action is BookingAction.PROCESS_CANCEL_REQUEST:
        if approve:
            return TransitionResult(
                action, status, BookingStatus.CANCELLED, (SideEffect.RELEASE_CAPACITY,),
            )
        restored = BookingStatus(previous_status) if previous_status else BookingStatus.CONFIRMED
        return TransitionResult(action, status, restored)

    target = transition.target or status
    return TransitionResult(action, status, target, transition.effects)
