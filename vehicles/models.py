import uuid

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


class VehicleStatusChoices(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    SOLD = 'sold', 'Sold'


class VehicleCategoryChoices(models.TextChoices):
    SUV = 'SUV', 'SUV'
    SEDAN = 'Sedan', 'Sedan'
    HATCHBACK = 'Hatchback', 'Hatchback'


class FuelTypeChoices(models.TextChoices):
    PETROL = 'Petrol', 'Petrol'
    DIESEL = 'Diesel', 'Diesel'
    ELECTRIC = 'Electric', 'Electric'
    HYBRID = 'Hybrid', 'Hybrid'


class TransmissionChoices(models.TextChoices):
    AUTOMATIC = 'Automatic', 'Automatic'
    MANUAL = 'Manual', 'Manual'


class VehicleModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, db_index=True)
    category = models.CharField(
        max_length=20, choices=VehicleCategoryChoices.choices, default=VehicleCategoryChoices.SEDAN, db_index=True
    )
    fuel_type = models.CharField(max_length=20, choices=FuelTypeChoices.choices, default=FuelTypeChoices.PETROL)
    transmission = models.CharField(
        max_length=20, choices=TransmissionChoices.choices, default=TransmissionChoices.MANUAL
    )
    seats = models.PositiveSmallIntegerField(default=5)
    rating = models.DecimalField(
        max_digits=2,
        decimal_places=1,
        default=4.5,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    daily_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_stock = models.PositiveIntegerField(default=1)
    status = models.CharField(
        max_length=10,
        choices=VehicleStatusChoices.choices,
        default=VehicleStatusChoices.AVAILABLE,
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'total_stock'], name='vehicle_status_stock_idx'),
            models.Index(fields=['category'], name='vehicle_category_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_offered(self):
        """A vehicle is bookable only while it is marked available and has stock."""
        return self.status == VehicleStatusChoices.AVAILABLE and self.total_stock > 0
