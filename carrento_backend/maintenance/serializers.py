from rest_framework import serializers

from .models import MaintenanceRecord


class MaintenanceRecordSerializer(serializers.ModelSerializer):
    car_name = serializers.SerializerMethodField()
    performed_by_name = serializers.CharField(source='performed_by.full_name', read_only=True, default=None)

    class Meta:
        model = MaintenanceRecord
        fields = [
            'id', 'car', 'car_name', 'maintenance_type', 'description', 'cost', 'date', 'status',
            'performed_by', 'performed_by_name', 'notes', 'photos', 'next_service_date',
            'invoice_number', 'invoice_date', 'invoice_status', 'invoice_amount', 'invoice_details',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_car_name(self, obj):
        return f"{obj.car.year} {obj.car.make} {obj.car.model}"


class ScheduleMaintenanceSerializer(serializers.Serializer):
    car = serializers.IntegerField()
    maintenance_type = serializers.ChoiceField(choices=MaintenanceRecord.TYPE_CHOICES)
    description = serializers.CharField()
    date = serializers.DateTimeField()
    estimated_cost = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    assigned_staff = serializers.IntegerField(required=False, allow_null=True)
    next_service_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class LogServiceSerializer(serializers.Serializer):
    maintenance_id = serializers.IntegerField(required=False, allow_null=True)
    status = serializers.ChoiceField(
        choices=[MaintenanceRecord.IN_PROGRESS, MaintenanceRecord.COMPLETED, MaintenanceRecord.CANCELLED],
        default=MaintenanceRecord.COMPLETED,
    )
    cost = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    photos = serializers.ListField(child=serializers.URLField(), required=False, allow_null=True)
    car = serializers.IntegerField(required=False, allow_null=True)
    maintenance_type = serializers.ChoiceField(choices=MaintenanceRecord.TYPE_CHOICES, required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    performed_by = serializers.IntegerField(required=False, allow_null=True)
    strict = serializers.BooleanField(required=False, allow_null=True, default=None)

    def validate(self, data):
        if not data.get('maintenance_id'):
            missing = [name for name in ('car', 'maintenance_type', 'description') if not data.get(name)]
            if missing:
                raise serializers.ValidationError(f"Required for a new service record: {', '.join(missing)}.")
        return data


class GenerateInvoiceSerializer(serializers.Serializer):
    maintenance_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    invoice_date = serializers.DateField()
    due_date = serializers.DateField(required=False, allow_null=True)
    invoice_number = serializers.RegexField(r'^INV-\d{6}-\d{4}$', required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, data):
        due_date = data.get('due_date')
        if due_date and due_date < data['invoice_date']:
            raise serializers.ValidationError("Due date cannot be before the invoice date.")
        return data
