from rest_framework import status
from rest_framework.response import Response

from .exceptions import InvalidRange, SoldOut, NotFound, VehicleNotOffered, InvalidTransition


def booking_error_response(exc):
    """
    Turn a booking-engine error into the API's ``{"error": ...}`` response.
    """
    if isinstance(exc, InvalidRange):
        return Response({"error": exc.message}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, NotFound):
        return Response({"error": exc.message}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, SoldOut):
        return Response({
            "error": exc.message,
            "committed": exc.committed,
            "total_stock": exc.total_stock,
        }, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, (VehicleNotOffered, InvalidTransition)):
        return Response({"error": exc.message}, status=status.HTTP_409_CONFLICT)
    return Response({"error": exc.message}, status=status.HTTP_400_BAD_REQUEST)
