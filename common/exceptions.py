"""
Domain errors raised by the inventory store, the availability calculator and
the booking state machine. Views translate them into error responses; none of
them is ever persisted.
"""


class BookingError(Exception):
    """Base class for every admission or state-machine failure."""
    default_message = "Booking request failed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRange(BookingError):
    default_message = "A valid start_date and end_date (YYYY-MM-DD, start <= end) are required."


class SoldOut(BookingError):
    """Capacity was exhausted when the booking was about to be committed."""

    def __init__(self, committed, total_stock):
        self.committed = committed
        self.total_stock = total_stock
        super().__init__(f"Sold out for selected dates. ({committed}/{total_stock} booked)")


class NotFound(BookingError):
    def __init__(self, kind, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found.")


class VehicleNotOffered(BookingError):
    default_message = "This vehicle is not currently offered for booking."


class InvalidTransition(BookingError):
    def __init__(self, current, target, message=None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot transition booking from {current} to {target}.")


class NotificationDeliveryFailed(BookingError):
    """
    Advisory only: carried on a delivery outcome, logged, and never raised out
    of the dispatcher.
    """
    default_message = "Notification could not be delivered."
