from django.db.models import Q
from django.utils.decorators import method_decorator
from django.views.decorators.gzip import gzip_page
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema, no_body
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.exceptions import BookingError
from common.permissions import IsOwner, IsBookingHolderOrOwner
from common.responses import booking_error_response
from users.models import UserChoice
from .models import BookingModel
from .registry import find_overlapping, list_bookings
from .serializers import (
    BookingSerializer,
    BookingRequestSerializer,
    BookingFilterSerializer,
    OverlapQuerySerializer,
)
from . import services


@method_decorator(gzip_page, name='dispatch')
class BookingViewSet(viewsets.ModelViewSet):
    """
    Booking requests, owner approval and rejection.
    Bookings are never edited or deleted through the API.
    """
    serializer_class = BookingSerializer
    permission_classes = [IsAuthenticated, IsBookingHolderOrOwner]
    queryset = BookingModel.objects.all()
    http_method_names = ['get', 'post']

    def get_queryset(self):
        """
        The owner sees every booking; a customer sees the ones placed from
        their account, email address or phone number.
        """
        user = self.request.user
        if not user.is_authenticated:
            return BookingModel.objects.none()
        if user.is_owner:
            return BookingModel.objects.all()
        # Blank contact fields match every guest booking
        holder = Q(client=user)
        if user.email:
            holder |= Q(email=user.email)
        if user.phone:
            holder |= Q(customer_phone=user.phone)
        return BookingModel.objects.filter(holder)

    @swagger_auto_schema(
        manual_parameters=[
            openapi.Parameter('vehicle', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('start_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('end_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING, enum=['confirmed', 'cancelled']),
        ],
        responses={200: BookingSerializer(many=True)}
    )
    def list(self, request, *args, **kwargs):
        filters = BookingFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data
        try:
            bookings = list_bookings(
                vehicle_id=params.get('vehicle'),
                start_date=params.get('start_date'),
                end_date=params.get('end_date'),
                status=params.get('status'),
                queryset=self.get_queryset(),
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(bookings, many=True).data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        request_body=BookingRequestSerializer,
        responses={201: BookingSerializer(), 400: 'Invalid range', 404: 'Vehicle not found', 409: 'Sold out'}
    )
    def create(self, request, *args, **kwargs):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = request.user
        try:
            booking = services.create_booking(
                serializer.validated_data['vehicle'],
                serializer.validated_data.get('start_date'),
                serializer.validated_data.get('end_date'),
                details=serializer.get_details(),
                client=user if user.role == UserChoice.CUSTOMER else None,
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(
        methods=['post'],
        request_body=no_body,
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT), 404: 'Not found', 409: 'Cancelled booking'}
    )
    @action(detail=True, methods=['post'], url_path='approve', permission_classes=[IsOwner])
    def approve(self, request, pk=None):
        """
        Owner approves a booking. Notifications follow the approval; their
        failure is reported as a warning and never undoes it.
        """
        try:
            result = services.approve_booking(pk)
        except BookingError as exc:
            return booking_error_response(exc)
        return Response({
            "result": result.outcome,
            "booking": BookingSerializer(result.booking).data,
            "notification": result.delivery.as_dict() if result.delivery else None,
            "warnings": result.warnings,
        }, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        methods=['post'],
        responses={200: BookingSerializer(), 404: 'Not found'}
    )
    @action(detail=True, methods=['post'], url_path='reject', permission_classes=[IsOwner])
    def reject(self, request, pk=None):
        """
        Owner rejects a booking; its vehicle unit becomes available again.
        """
        try:
            booking = services.reject_booking(pk)
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        methods=['post'],
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT), 404: 'Not found', 409: 'Not approved'}
    )
    @action(detail=True, methods=['post'], url_path='notify', permission_classes=[IsOwner])
    def notify(self, request, pk=None):
        """
        Retry the approval notification of an approved booking.
        """
        try:
            delivery = services.resend_approval_notification(pk)
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(delivery.as_dict(), status=status.HTTP_200_OK)

    @swagger_auto_schema(
        methods=['get'],
        query_serializer=OverlapQuerySerializer,
        responses={200: BookingSerializer(many=True)}
    )
    @action(detail=False, methods=['get'], url_path='overlapping', permission_classes=[IsOwner])
    def overlapping(self, request):
        """
        Every booking of a vehicle overlapping a date range, in any status.
        """
        query = OverlapQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            bookings = find_overlapping(
                query.validated_data['vehicle'],
                query.validated_data.get('start_date'),
                query.validated_data.get('end_date'),
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(bookings, many=True).data, status=status.HTTP_200_OK)
