from rest_framework import serializers

from .models import BookingModel, BookingStatus


class BookingSerializer(serializers.ModelSerializer):
    vehicle = serializers.UUIDField(source='vehicle_id', read_only=True)
    status = serializers.CharField(read_only=True)
    is_approved = serializers.BooleanField(read_only=True)

    class Meta:
        model = BookingModel
        fields = [
            'id', 'vehicle', 'vehicle_name', 'client', 'start_date', 'end_date', 'days',
            'status', 'is_approved', 'state', 'approved_at', 'cancelled_at',
            'customer_name', 'customer_phone', 'email', 'alt_phone', 'aadhar_phone', 'user_location',
            'pickup_location', 'transaction_id', 'total_cost', 'advance_amount',
            'security_deposit_type', 'security_deposit_transaction_id',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class BookingRequestSerializer(serializers.Serializer):
    """
    Incoming booking request. Dates are passed through untouched so the
    booking engine can report a malformed range itself.
    """
    vehicle = serializers.UUIDField()
    start_date = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    end_date = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    customer_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    alt_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    aadhar_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    user_location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    pickup_location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    total_cost = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    advance_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    security_deposit_type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    security_deposit_transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def get_details(self):
        excluded = {'vehicle', 'start_date', 'end_date'}
        return {key: value for key, value in self.validated_data.items() if key not in excluded}


class BookingFilterSerializer(serializers.Serializer):
    vehicle = serializers.UUIDField(required=False)
    start_date = serializers.CharField(required=False)
    end_date = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=BookingStatus.choices, required=False)


class OverlapQuerySerializer(serializers.Serializer):
    vehicle = serializers.UUIDField()
    start_date = serializers.CharField(required=False)
    end_date = serializers.CharField(required=False)
