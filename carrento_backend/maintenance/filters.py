import django_filters

from .models import MaintenanceRecord


class MaintenanceRecordFilter(django_filters.FilterSet):
    car = django_filters.NumberFilter(field_name='car_id')
    type = django_filters.ChoiceFilter(field_name='maintenance_type', choices=MaintenanceRecord.TYPE_CHOICES)
    status = django_filters.ChoiceFilter(choices=MaintenanceRecord.STATUS_CHOICES)
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='date__lte')

    class Meta:
        model = MaintenanceRecord
        fields = ['car', 'type', 'status']
