from rest_framework import serializers
from .models import VehicleModel, VehicleStatusChoices


class VehicleSerializer(serializers.ModelSerializer):
    booked_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = VehicleModel
        fields = [
            'id',
            'name',
            'category',
            'fuel_type',
            'transmission',
            'seats',
            'rating',
            'daily_price',
            'total_stock',
            'status',
            'booked_count',
            'created_at',
            'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        extra_kwargs = {
            'status': {'required': False},
        }

    def validate_daily_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Daily price must be a positive number.")
        return value

    def validate_total_stock(self, value):
        # A new listing must offer at least one unit; edits may withdraw it
        if self.instance is None and value < 1:
            raise serializers.ValidationError("Total stock must be at least 1.")
        return value


class VehicleStatusSerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=VehicleStatusChoices.choices)

    class Meta:
        model = VehicleModel
        fields = ['id', 'status']
        read_only_fields = ['id']


class VehicleStockSerializer(serializers.Serializer):
    total_stock = serializers.IntegerField(min_value=0)


class AvailabilitySerializer(serializers.Serializer):
    available = serializers.BooleanField()
    remaining = serializers.IntegerField()
    committed = serializers.IntegerField()
    total_stock = serializers.IntegerField()
