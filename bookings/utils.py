import datetime
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.utils.dateparse import parse_date

from common.exceptions import InvalidRange


def parse_booking_date(value):
    """
    Accept a ``date`` or an ISO ``YYYY-MM-DD`` string.
    :return: ``datetime.date`` or None when the value is missing or malformed
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return parse_date(value.strip())
    except ValueError:
        # Well formed but impossible, e.g. 2024-02-30
        return None


def parse_date_range(start_date, end_date):
    """
    Normalise an inclusive calendar range.
    :raises InvalidRange: if either end is missing, malformed or the range is inverted
    """
    start = parse_booking_date(start_date)
    end = parse_booking_date(end_date)
    if start is None or end is None:
        raise InvalidRange()
    if start > end:
        raise InvalidRange("start_date must be on or before end_date.")
    return start, end


def calculate_days(start, end):
    """Billable days: the gap between the dates, never less than one."""
    return max(1, (end - start).days)


def calculate_total_cost(daily_price, days):
    return Decimal(daily_price) * days


def calculate_advance_amount(total_cost, rate=None):
    """Advance due at booking time, a fixed share of the total."""
    rate = settings.ADVANCE_RATE if rate is None else rate
    return (Decimal(total_cost) * Decimal(str(rate))).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
