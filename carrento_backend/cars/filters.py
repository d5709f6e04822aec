import django_filters

from .models import Car


class CarFilter(django_filters.FilterSet):
    make = django_filters.CharFilter(lookup_expr='icontains')
    min_year = django_filters.NumberFilter(field_name='year', lookup_expr='gte')
    max_year = django_filters.NumberFilter(field_name='year', lookup_expr='lte')
    max_short_term = django_filters.NumberFilter(field_name='pricing__short_term', lookup_expr='lte')
    max_long_term = django_filters.NumberFilter(field_name='pricing__long_term', lookup_expr='lte')

    class Meta:
        model = Car
        fields = ['car_type', 'color', 'make', 'min_year', 'max_year', 'max_short_term', 'max_long_term']
