import re

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .permissions import CAPABILITIES


User = get_user_model()


class RegisterSerializer(serializers.ModelSerializer):
    role = serializers.ChoiceField(choices=User.SELF_SERVICE_ROLES, default=User.CUSTOMER)

    class Meta:
        model = User
        fields = ['id', 'email', 'phone_number', 'first_name', 'last_name', 'role', 'date_joined', 'password']
        extra_kwargs = {'password': {'write_only': True}}

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email is already registered.")
        if not re.match(r"[^@]+@[^@]+\.[^@]+", value):
            raise serializers.ValidationError("Enter a valid email address.")
        return value

    def validate_phone_number(self, value):
        if value and not value.lstrip('+').isdigit():
            raise serializers.ValidationError("Phone number must contain digits only.")
        return value

    def validate_first_name(self, value):
        if len(value.strip()) < 2:
            raise serializers.ValidationError("First name must be at least 2 characters long.")
        return value

    def validate_password(self, value):
        if len(value) < 8:
            raise serializers.ValidationError("Password must be at least 8 characters long.")
        if not any(char.isdigit() for char in value):
            raise serializers.ValidationError("Password must contain at least one number.")
        if not any(char.isalpha() for char in value):
            raise serializers.ValidationError("Password must contain at least one letter.")
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        email = validated_data.pop('email')
        return User.objects.create_user(email=email, password=password, **validated_data)


class ProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'first_name', 'last_name', 'role', 'phone_number', 'address', 'date_joined', 'updated_at']
        read_only_fields = ['id', 'email', 'role', 'date_joined', 'updated_at']


class RoleChangeSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.ROLES)


class AccessCheckSerializer(serializers.Serializer):
    capability = serializers.ChoiceField(choices=CAPABILITIES)
    decision = serializers.CharField()
    redirect_to = serializers.CharField(allow_null=True)
