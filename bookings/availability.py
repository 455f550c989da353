from typing import NamedTuple

from django.db.models import Count

from vehicles.store import get_vehicle
from .models import BookingStatus, OCCUPYING_STATES
from .registry import find_overlapping, overlap_q, status_q
from .utils import parse_date_range


class Capacity(NamedTuple):
    available: bool
    remaining: int
    committed: int
    total_stock: int


def overlaps(start1, end1, start2, end2):
    """
    Two inclusive ranges share at least one calendar day.
    ``registry.overlap_q`` is the same rule expressed as a queryset filter.
    """
    return start1 <= end2 and start2 <= end1


def committed_units(vehicle_id, start_date, end_date):
    """
    Number of confirmed bookings of the vehicle overlapping the range.
    Approval does not matter: an unapproved booking still holds its unit.
    """
    return find_overlapping(vehicle_id, start_date, end_date).filter(state__in=OCCUPYING_STATES).count()


def has_capacity(vehicle_id, start_date, end_date, vehicle=None):
    """
    :param vehicle: Already fetched (and possibly locked) vehicle row
    :raises InvalidRange: for missing, malformed or inverted dates
    :raises NotFound: for an unknown vehicle
    """
    start, end = parse_date_range(start_date, end_date)
    if vehicle is None:
        vehicle = get_vehicle(vehicle_id)
    committed = committed_units(vehicle.pk, start, end)
    # Stock may have been lowered below what is already committed
    remaining = max(vehicle.total_stock - committed, 0)
    return Capacity(
        available=remaining > 0,
        remaining=remaining,
        committed=committed,
        total_stock=vehicle.total_stock,
    )


def annotate_committed_units(queryset, start_date, end_date):
    """Add ``booked_count`` to a vehicle queryset for the given range."""
    start, end = parse_date_range(start_date, end_date)
    return queryset.annotate(
        booked_count=Count(
            'bookings',
            filter=overlap_q(start, end, prefix='bookings__') & status_q(BookingStatus.CONFIRMED, prefix='bookings__'),
        )
    )