import datetime

from rest_framework import serializers

from .models import Car, CarPricing, CarSpecification


class CarPricingSerializer(serializers.ModelSerializer):
    class Meta:
        model = CarPricing
        fields = ['short_term', 'long_term']

    def validate_short_term(self, value):
        if value <= 0:
            raise serializers.ValidationError("Short-term rate must be greater than 0.")
        return value

    def validate_long_term(self, value):
        if value <= 0:
            raise serializers.ValidationError("Long-term rate must be greater than 0.")
        return value


class CarSpecificationSerializer(serializers.ModelSerializer):
    features = serializers.ListField(child=serializers.CharField(max_length=100), required=False)

    class Meta:
        model = CarSpecification
        fields = ['seats', 'doors', 'transmission', 'fuel_type', 'fuel_efficiency', 'features']

    def validate_seats(self, value):
        if value <= 0:
            raise serializers.ValidationError("Seats must be greater than 0.")
        return value


class CarSerializer(serializers.ModelSerializer):
    pricing = CarPricingSerializer(allow_null=True)
    specification = CarSpecificationSerializer(required=False)
    photos = serializers.ListField(child=serializers.URLField(), required=False)

    class Meta:
        model = Car
        fields = [
            'id', 'owner', 'make', 'model', 'year', 'car_type', 'color', 'description', 'photos',
            'status', 'available_from', 'available_until', 'pricing', 'specification',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['owner', 'status', 'created_at', 'updated_at']

    def validate_year(self, value):
        current_year = datetime.datetime.now().year
        if value < 1900 or value > current_year + 1:
            raise serializers.ValidationError("Year must be between 1900 and next year.")
        return value

    def validate(self, data):
        start, end = data.get('available_from'), data.get('available_until')
        if start and end and end < start:
            raise serializers.ValidationError("available_until cannot be before available_from.")
        return data
