from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views.decorators.gzip import gzip_page
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from bookings.availability import annotate_committed_units
from bookings.services import check_availability
from common.exceptions import BookingError
from common.permissions import IsOwner, IsAuthenticatedCustomerOrOwner
from common.responses import booking_error_response
from users.models import UserChoice
from .models import VehicleModel
from .serializers import VehicleSerializer, VehicleStatusSerializer, VehicleStockSerializer, AvailabilitySerializer
from . import store

date_parameters = [
    openapi.Parameter('start_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
    openapi.Parameter('end_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
]


@method_decorator(gzip_page, name='dispatch')
class VehicleViewSet(viewsets.ModelViewSet):
    """
    A viewset for viewing and editing the fleet.
    """
    serializer_class = VehicleSerializer
    permission_classes = [IsAuthenticatedCustomerOrOwner]
    queryset = VehicleModel.objects.all()

    def get_queryset(self):
        """
        The owner sees the whole fleet; customers only see vehicles on offer,
        optionally narrowed by category, seats and fuel type.
        """
        if getattr(self, 'swagger_fake_view', False):
            return VehicleModel.objects.none()
        user = self.request.user
        if user.is_owner:
            return self.queryset.all()
        if user.role != UserChoice.CUSTOMER:
            return VehicleModel.objects.none()

        queryset = store.offered_vehicles()
        params = self.request.query_params
        if params.get('category'):
            queryset = queryset.filter(category=params['category'])
        if params.get('fuel_type'):
            queryset = queryset.filter(fuel_type=params['fuel_type'])
        if params.get('seats', '').isdigit():
            queryset = queryset.filter(seats=int(params['seats']))
        return queryset

    @swagger_auto_schema(
        manual_parameters=date_parameters + [
            openapi.Parameter('category', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('fuel_type', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('seats', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: VehicleSerializer(many=True)}
    )
    def list(self, request, *args, **kwargs):
        """
        Each vehicle carries ``booked_count`` for the requested dates
        (default: today).
        """
        start_date = request.query_params.get('start_date') or timezone.localdate().isoformat()
        end_date = request.query_params.get('end_date') or start_date
        try:
            queryset = annotate_committed_units(self.get_queryset(), start_date, end_date)
        except BookingError as exc:
            return booking_error_response(exc)
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def perform_create(self, serializer):
        """
        Restrict creation to the owner.
        """
        if not self.request.user.is_owner:
            raise PermissionDenied("You do not have permission to create a vehicle.")
        serializer.save()

    def perform_update(self, serializer):
        """
        Restrict updates to the owner.
        """
        if not self.request.user.is_owner:
            raise PermissionDenied("You do not have permission to update a vehicle.")
        serializer.save()

    def perform_destroy(self, instance):
        """
        Remove a vehicle from the fleet. Its bookings stay on record.
        """
        if not self.request.user.is_owner:
            raise PermissionDenied("You do not have permission to delete a vehicle.")
        instance.delete()

    @swagger_auto_schema(
        operation_id="set_vehicle_status",
        operation_summary="Set vehicle status",
        operation_description="Mark a vehicle available or sold",
        request_body=VehicleStatusSerializer,
        responses={
            200: VehicleStatusSerializer(),
            400: 'Bad Request',
            403: 'Forbidden'
        }
    )
    @action(detail=True, methods=['post'], url_path='set-status', permission_classes=[IsOwner])
    def set_status(self, request, pk=None):
        """
        Custom action to set the status of a vehicle. Accessible only by the owner.
        """
        serializer = VehicleStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            vehicle = store.set_status(pk, serializer.validated_data['status'])
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(VehicleStatusSerializer(vehicle).data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        operation_id="set_vehicle_stock",
        operation_summary="Set vehicle stock",
        operation_description="Replace the number of interchangeable units of a vehicle",
        request_body=VehicleStockSerializer,
        responses={
            200: VehicleSerializer(),
            400: 'Bad Request',
            403: 'Forbidden',
            404: 'Not Found'
        }
    )
    @action(detail=True, methods=['post'], url_path='set-stock', permission_classes=[IsOwner])
    def set_stock(self, request, pk=None):
        serializer = VehicleStockSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            vehicle = store.set_total_stock(pk, serializer.validated_data['total_stock'])
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(VehicleSerializer(vehicle).data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        operation_id="check_vehicle_availability",
        operation_summary="Check availability",
        operation_description="Remaining units of a vehicle for an inclusive date range",
        manual_parameters=date_parameters,
        responses={
            200: AvailabilitySerializer(),
            400: 'Invalid range',
            404: 'Not Found'
        }
    )
    @action(detail=True, methods=['get'], url_path='availability')
    def availability(self, request, pk=None):
        try:
            result = check_availability(
                pk,
                request.query_params.get('start_date'),
                request.query_params.get('end_date'),
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(AvailabilitySerializer(result).data, status=status.HTTP_200_OK)
