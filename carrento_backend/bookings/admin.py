from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'car', 'customer', 'rental_period', 'start_date', 'end_date', 'status', 'payment_status', 'total_price']
    list_filter = ['status', 'payment_status', 'rental_period', 'delivery_option', 'incident_reported']
    search_fields = ['customer__email', 'car__make', 'car__model']
    readonly_fields = ['created_at', 'updated_at', 'incident_timestamp']
    ordering = ['-created_at']

    fieldsets = (
        ('Booking', {
            'fields': ('car', 'customer', 'rental_period', 'start_date', 'end_date', 'special_requests')
        }),
        ('Delivery', {
            'fields': ('delivery_option', 'delivery_address', 'delivery_fee')
        }),
        ('Money', {
            'fields': ('deposit', 'total_price', 'payment_status')
        }),
        ('Status', {
            'fields': ('status',)
        }),
        ('Incident', {
            'fields': ('incident_reported', 'incident_details', 'incident_photos', 'incident_timestamp', 'incident_status'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('car', 'customer')
