from django.contrib import admin

from .models import Car, CarPricing, CarSpecification


class CarPricingInline(admin.StackedInline):
    model = CarPricing
    can_delete = False


class CarSpecificationInline(admin.StackedInline):
    model = CarSpecification
    can_delete = False


@admin.register(Car)
class CarAdmin(admin.ModelAdmin):
    list_display = ['id', 'make', 'model', 'year', 'car_type', 'status', 'owner', 'created_at']
    list_filter = ['status', 'car_type']
    search_fields = ['make', 'model', 'owner__email']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']
    inlines = [CarPricingInline, CarSpecificationInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('owner')
