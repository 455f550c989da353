from django.core.exceptions import ValidationError
from django.db.models import Q

from common.exceptions import NotFound
from .models import BookingModel, BookingStatus, BookingStateChoices, OCCUPYING_STATES
from .utils import parse_date_range


def overlap_q(start, end, prefix=''):
    """
    Inclusive overlap with ``[start, end]``: ``booking.start <= end AND start <= booking.end``.
    Queryset form of ``availability.overlaps``.
    :param prefix: Lookup prefix when filtering through a relation, e.g. ``'bookings__'``
    """
    return Q(**{f'{prefix}start_date__lte': end, f'{prefix}end_date__gte': start})


def status_q(status, prefix=''):
    if status == BookingStatus.CONFIRMED:
        return Q(**{f'{prefix}state__in': OCCUPYING_STATES})
    if status == BookingStatus.CANCELLED:
        return Q(**{f'{prefix}state': BookingStateChoices.CANCELLED})
    raise ValueError(f"Unknown booking status: {status}")


def get_booking(booking_id, for_update=False):
    queryset = BookingModel.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=booking_id)
    except (BookingModel.DoesNotExist, ValidationError, ValueError, TypeError):
        raise NotFound('Booking', booking_id)


def find_overlapping(vehicle_id, start_date, end_date):
    """
    Every booking of the vehicle whose range overlaps ``[start_date, end_date]``,
    whatever its state, most recently created first.
    """
    start, end = parse_date_range(start_date, end_date)
    return BookingModel.objects.filter(overlap_q(start, end), vehicle_id=vehicle_id).order_by('-created_at')


def list_bookings(vehicle_id=None, start_date=None, end_date=None, status=None, queryset=None):
    """
    Filtered listing for reporting views. A date filter needs both ends.
    :param queryset: Narrowed base queryset, e.g. a customer's own bookings
    """
    bookings = BookingModel.objects.all() if queryset is None else queryset
    if vehicle_id is not None:
        bookings = bookings.filter(vehicle_id=vehicle_id)
    if start_date is not None or end_date is not None:
        start, end = parse_date_range(start_date, end_date)
        bookings = bookings.filter(overlap_q(start, end))
    if status:
        bookings = bookings.filter(status_q(status))
    return bookings.order_by('-created_at')
