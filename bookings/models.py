import uuid

from django.conf import settings
from django.db import models

from vehicles.models import VehicleModel


class BookingStateChoices(models.TextChoices):
    AWAITING_APPROVAL = 'AWAITING_APPROVAL', 'Awaiting approval'
    APPROVED = 'APPROVED', 'Approved'
    CANCELLED = 'CANCELLED', 'Cancelled'


class BookingStatus(models.TextChoices):
    """Inventory view of a booking: does it occupy stock or not."""
    CONFIRMED = 'confirmed', 'Confirmed'
    CANCELLED = 'cancelled', 'Cancelled'


# States that hold one unit of stock for every day of the booking
OCCUPYING_STATES = (BookingStateChoices.AWAITING_APPROVAL, BookingStateChoices.APPROVED)

VALID_TRANSITIONS = {
    BookingStateChoices.AWAITING_APPROVAL: [BookingStateChoices.APPROVED, BookingStateChoices.CANCELLED],
    BookingStateChoices.APPROVED: [BookingStateChoices.CANCELLED],
    BookingStateChoices.CANCELLED: [],
}


class BookingModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Soft reference: deleting a vehicle leaves its bookings intact
    vehicle = models.ForeignKey(
        VehicleModel,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='bookings',
        db_index=True
    )
    vehicle_name = models.CharField(max_length=100, blank=True, default='')
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='bookings',
        null=True,
        blank=True
    )
    start_date = models.DateField(db_index=True)
    end_date = models.DateField(db_index=True)
    days = models.PositiveIntegerField(default=1)
    state = models.CharField(
        max_length=20,
        choices=BookingStateChoices.choices,
        default=BookingStateChoices.AWAITING_APPROVAL,
        db_index=True
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Opaque payload: stored and forwarded, never interpreted
    customer_name = models.CharField(max_length=100, blank=True, default='')
    customer_phone = models.CharField(max_length=20, blank=True, default='', db_index=True)
    email = models.EmailField(blank=True, default='', db_index=True)
    alt_phone = models.CharField(max_length=20, blank=True, default='')
    aadhar_phone = models.CharField(max_length=20, blank=True, default='')
    user_location = models.CharField(max_length=255, blank=True, default='')
    pickup_location = models.CharField(max_length=255, blank=True, default='')
    transaction_id = models.CharField(max_length=100, blank=True, default='')
    total_cost = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    advance_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    security_deposit_type = models.CharField(max_length=100, blank=True, default='')
    security_deposit_transaction_id = models.CharField(max_length=100, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['vehicle', 'start_date', 'end_date'], name='booking_vehicle_range_idx'),
            models.Index(fields=['vehicle', 'state'], name='booking_vehicle_state_idx'),
        ]

    def __str__(self):
        return f"Booking {self.id} - {self.vehicle_name or self.vehicle_id} ({self.start_date} to {self.end_date})"

    @property
    def status(self):
        if self.state == BookingStateChoices.CANCELLED:
            return BookingStatus.CANCELLED
        return BookingStatus.CONFIRMED

    @property
    def is_approved(self):
        # Survives cancellation: a rejected approved booking still reads as approved
        return self.approved_at is not None

    def can_transition_to(self, new_state):
        return new_state in VALID_TRANSITIONS.get(self.state, [])
