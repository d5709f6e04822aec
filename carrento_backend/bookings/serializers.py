from rest_framework import serializers

from .models import Booking


class DeliveryAddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    zipCode = serializers.CharField(max_length=20)


class BookingSerializer(serializers.ModelSerializer):
    car_name = serializers.SerializerMethodField()
    customer_email = serializers.EmailField(source='customer.email', read_only=True)
    rental_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'car', 'car_name', 'customer', 'customer_email', 'rental_period', 'start_date', 'end_date',
            'rental_days', 'delivery_option', 'delivery_address', 'delivery_fee', 'deposit', 'total_price',
            'special_requests', 'status', 'payment_status', 'incident_reported', 'incident_details',
            'incident_photos', 'incident_timestamp', 'incident_status', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_car_name(self, obj):
        return f"{obj.car.make} {obj.car.model}"


class BookingCreateSerializer(serializers.Serializer):
    car = serializers.IntegerField()
    rental_period = serializers.ChoiceField(choices=Booking.RENTAL_PERIOD_CHOICES)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    delivery_option = serializers.ChoiceField(choices=Booking.DELIVERY_OPTION_CHOICES, default=Booking.SELF_PICKUP)
    delivery_address = DeliveryAddressSerializer(required=False, allow_null=True)
    delivery_time = serializers.DateTimeField(required=False, allow_null=True)
    special_requests = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, data):
        if data['end_date'] < data['start_date']:
            raise serializers.ValidationError("End date cannot be before start date.")
        if data['delivery_option'] == Booking.DELIVERY and not data.get('delivery_address'):
            raise serializers.ValidationError("Delivery address is required for delivery option.")
        return data


class PriceQuoteSerializer(serializers.Serializer):
    car = serializers.IntegerField()
    rental_period = serializers.ChoiceField(choices=Booking.RENTAL_PERIOD_CHOICES)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    delivery_option = serializers.ChoiceField(choices=Booking.DELIVERY_OPTION_CHOICES, default=Booking.SELF_PICKUP)
    delivery_time = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, data):
        if data['end_date'] < data['start_date']:
            raise serializers.ValidationError("End date cannot be before start date.")
        return data


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.STATUS_CHOICES)
    strict = serializers.BooleanField(required=False, allow_null=True, default=None)


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=Booking.PAYMENT_STATUS_CHOICES)


class IncidentReportSerializer(serializers.Serializer):
    details = serializers.CharField()
    photos = serializers.ListField(child=serializers.URLField(), required=False, default=list)
