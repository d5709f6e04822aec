from django.contrib import admin

from .models import MaintenanceRecord


@admin.register(MaintenanceRecord)
class MaintenanceRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'car', 'maintenance_type', 'status', 'date', 'cost', 'invoice_number', 'invoice_status']
    list_filter = ['maintenance_type', 'status', 'invoice_status']
    search_fields = ['car__make', 'car__model', 'invoice_number', 'description']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-date']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('car', 'performed_by')
