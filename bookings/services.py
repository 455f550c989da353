"""
Booking state machine.

    AWAITING_APPROVAL --approve--> APPROVED
    AWAITING_APPROVAL --reject---> CANCELLED
    APPROVED ----------reject---> CANCELLED

A booking occupies stock while it is awaiting approval or approved. Admission
is decided under a per-vehicle lock: the capacity check and the insert happen
in one transaction that holds both the in-process mutex and the vehicle row
lock. Notifications are dispatched only after the approval has committed.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from django.db import models, transaction
from django.utils import timezone

from common.exceptions import SoldOut, VehicleNotOffered, InvalidTransition
from vehicles.store import get_vehicle
from .availability import has_capacity
from .locks import vehicle_admission_locks
from .models import BookingModel, BookingStateChoices
from .notifications import BookingEvent, DeliveryOutcome, NotificationDispatcher
from .registry import get_booking
from .utils import parse_date_range, calculate_days, calculate_total_cost, calculate_advance_amount

logger = logging.getLogger(__name__)

BOOKING_DETAIL_FIELDS = (
    'customer_name',
    'customer_phone',
    'email',
    'alt_phone',
    'aadhar_phone',
    'user_location',
    'pickup_location',
    'transaction_id',
    'total_cost',
    'advance_amount',
    'security_deposit_type',
    'security_deposit_transaction_id',
)


class ApprovalOutcome(models.TextChoices):
    APPROVED = 'approved', 'Approved'
    ALREADY_APPROVED = 'already_approved', 'Already approved'


@dataclass
class ApprovalResult:
    outcome: str
    booking: BookingModel
    delivery: Optional[DeliveryOutcome] = None
    warnings: list = field(default_factory=list)


def check_availability(vehicle_id, start_date, end_date):
    """
    Advisory read for clients. The authoritative check happens again inside
    ``create_booking``.
    """
    start, end = parse_date_range(start_date, end_date)
    vehicle = get_vehicle(vehicle_id)
    capacity = has_capacity(vehicle.pk, start, end, vehicle=vehicle)
    return {
        'available': capacity.available and vehicle.is_offered,
        'remaining': capacity.remaining if vehicle.is_offered else 0,
        'committed': capacity.committed,
        'total_stock': capacity.total_stock,
    }


def create_booking(vehicle_id, start_date, end_date, details=None, client=None):
    """
    Admit a booking request against the vehicle's stock.
    :param details: Opaque booking payload; unknown keys are ignored
    :param client: Authenticated customer placing the request, if any
    :raises InvalidRange, NotFound, VehicleNotOffered, SoldOut
    """
    start, end = parse_date_range(start_date, end_date)
    details = {key: value for key, value in (details or {}).items() if key in BOOKING_DETAIL_FIELDS}

    # Only ids of existing vehicles get a lock
    vehicle_pk = get_vehicle(vehicle_id).pk

    with vehicle_admission_locks.hold(vehicle_pk):
        with transaction.atomic():
            vehicle = get_vehicle(vehicle_pk, for_update=True)
            if not vehicle.is_offered:
                raise VehicleNotOffered()

            capacity = has_capacity(vehicle.pk, start, end, vehicle=vehicle)
            if not capacity.available:
                logger.warning(
                    "Sold out: vehicle %s %s..%s (%s/%s booked)",
                    vehicle.pk, start, end, capacity.committed, capacity.total_stock
                )
                raise SoldOut(capacity.committed, capacity.total_stock)

            days = calculate_days(start, end)
            if details.get('total_cost') is None:
                details['total_cost'] = calculate_total_cost(vehicle.daily_price, days)
            if details.get('advance_amount') is None:
                details['advance_amount'] = calculate_advance_amount(details['total_cost'])

            booking = BookingModel.objects.create(
                vehicle=vehicle,
                vehicle_name=vehicle.name,
                client=client,
                start_date=start,
                end_date=end,
                days=days,
                **details
            )

    logger.info(
        "Booking %s created for vehicle %s %s..%s (%s/%s booked before)",
        booking.pk, vehicle.pk, start, end, capacity.committed, capacity.total_stock
    )
    return booking


def _apply_transition(booking, target, **changes):
    """
    Compare-and-set on the booking's current state. Returns False when another
    caller moved the booking first; the row is then left untouched.
    """
    changes['updated_at'] = timezone.now()
    updated = BookingModel.objects.filter(pk=booking.pk, state=booking.state).update(state=target, **changes)
    if not updated:
        return False
    booking.state = target
    for name, value in changes.items():
        setattr(booking, name, value)
    return True


def approve_booking(booking_id, dispatcher=None):
    """
    Owner sign-off. Repeating it is a no-op reported as ``already_approved``
    and does not notify again.
    :raises NotFound, InvalidTransition
    """
    with transaction.atomic():
        booking = get_booking(booking_id, for_update=True)
        approved = (
            booking.can_transition_to(BookingStateChoices.APPROVED)
            and _apply_transition(booking, BookingStateChoices.APPROVED, approved_at=timezone.now())
        )
        if not approved:
            booking.refresh_from_db()
            if booking.state == BookingStateChoices.APPROVED:
                logger.debug("Booking %s already approved", booking.pk)
                return ApprovalResult(outcome=ApprovalOutcome.ALREADY_APPROVED, booking=booking)
            raise InvalidTransition(booking.state, BookingStateChoices.APPROVED)

    logger.info("Booking %s approved", booking.pk)

    dispatcher = dispatcher if dispatcher is not None else NotificationDispatcher()
    delivery = dispatcher.dispatch(BookingEvent.APPROVED, booking)
    warnings = delivery.warnings
    return ApprovalResult(
        outcome=ApprovalOutcome.APPROVED,
        booking=booking,
        delivery=delivery,
        warnings=warnings,
    )


def reject_booking(booking_id):
    """
    Cancel a booking and release its stock. Cancelling twice is harmless, and
    an approved booking may be cancelled: it keeps its approval timestamp.
    :raises NotFound
    """
    with transaction.atomic():
        booking = get_booking(booking_id, for_update=True)
        cancelled = (
            booking.can_transition_to(BookingStateChoices.CANCELLED)
            and _apply_transition(booking, BookingStateChoices.CANCELLED, cancelled_at=timezone.now())
        )
        if not cancelled:
            # Either already cancelled or cancelled concurrently
            booking.refresh_from_db()
            logger.debug("Booking %s already cancelled", booking.pk)
            return booking

    logger.info("Booking %s cancelled", booking.pk)
    return booking


def resend_approval_notification(booking_id, dispatcher=None):
    """
    Retry the approval notification, e.g. after a relay failure. An email that
    already went out in this process is skipped.
    :raises NotFound, InvalidTransition
    """
    booking = get_booking(booking_id)
    if booking.state != BookingStateChoices.APPROVED:
        raise InvalidTransition(
            booking.state, BookingStateChoices.APPROVED,
            message="Only approved bookings can be notified."
        )
    dispatcher = dispatcher if dispatcher is not None else NotificationDispatcher()
    return dispatcher.dispatch(BookingEvent.APPROVED, booking)
