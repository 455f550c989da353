import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from common.exceptions import NotFound
from .models import VehicleModel, VehicleStatusChoices

logger = logging.getLogger(__name__)


def get_vehicle(vehicle_id, for_update=False):
    """
    Fetch a vehicle or raise ``NotFound``.
    :param vehicle_id: Vehicle identifier
    :param for_update: Lock the row; only meaningful inside a transaction
    """
    queryset = VehicleModel.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=vehicle_id)
    except (VehicleModel.DoesNotExist, ValidationError, ValueError, TypeError):
        # A malformed UUID resolves to nothing rather than a server error
        raise NotFound('Vehicle', vehicle_id)


def offered_vehicles():
    """Vehicles a customer may book: marked available and with stock left."""
    return VehicleModel.objects.filter(status=VehicleStatusChoices.AVAILABLE, total_stock__gt=0)


def set_total_stock(vehicle_id, total_stock):
    """
    Replace the stock count of a vehicle. Zero withdraws it from offer.
    Existing bookings are not touched.
    """
    if total_stock is None or int(total_stock) < 0:
        raise ValueError("Total stock cannot be negative.")
    with transaction.atomic():
        vehicle = get_vehicle(vehicle_id, for_update=True)
        vehicle.total_stock = int(total_stock)
        vehicle.save(update_fields=['total_stock', 'updated_at'])
    logger.info("Vehicle %s stock set to %s", vehicle.pk, vehicle.total_stock)
    return vehicle


def set_status(vehicle_id, status):
    if status not in VehicleStatusChoices.values:
        raise ValueError(f"Unknown vehicle status: {status}")
    with transaction.atomic():
        vehicle = get_vehicle(vehicle_id, for_update=True)
        vehicle.status = status
        vehicle.save(update_fields=['status', 'updated_at'])
    logger.info("Vehicle %s marked %s", vehicle.pk, vehicle.status)
    return vehicle
