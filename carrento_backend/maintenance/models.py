from django.db import models
from django.contrib.auth import get_user_model

from cars.models import Car

User = get_user_model()


class MaintenanceRecord(models.Model):
    REGULAR = 'Regular'
    REPAIR = 'Repair'
    INSPECTION = 'Inspection'

    TYPE_CHOICES = [
        (REGULAR, 'Regular'),
        (REPAIR, 'Repair'),
        (INSPECTION, 'Inspection'),
    ]

    SCHEDULED = 'Scheduled'
    IN_PROGRESS = 'InProgress'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'

    STATUS_CHOICES = [
        (SCHEDULED, 'Scheduled'),
        (IN_PROGRESS, 'In progress'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    # only checked when strict transitions are on
    TRANSITIONS = {
        SCHEDULED: {IN_PROGRESS, COMPLETED, CANCELLED},
        IN_PROGRESS: {COMPLETED, CANCELLED},
        COMPLETED: set(),
        CANCELLED: set(),
    }

    INVOICE_PENDING = 'Pending'
    INVOICE_PAID = 'Paid'

    INVOICE_STATUS_CHOICES = [
        (INVOICE_PENDING, 'Pending'),
        (INVOICE_PAID, 'Paid'),
    ]

    car = models.ForeignKey(Car, on_delete=models.CASCADE, related_name='maintenance_records')
    maintenance_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    description = models.TextField()
    cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    date = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=SCHEDULED)
    performed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='maintenance_records')
    notes = models.TextField(blank=True, default='')
    photos = models.JSONField(default=list, blank=True)
    next_service_date = models.DateField(null=True, blank=True)

    # invoice group membership; every member of a group carries the same values
    invoice_number = models.CharField(max_length=20, null=True, blank=True, db_index=True)
    invoice_date = models.DateField(null=True, blank=True)
    invoice_status = models.CharField(max_length=10, choices=INVOICE_STATUS_CHOICES, null=True, blank=True)
    invoice_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    # {"due_date", "notes", "maintenance_ids"}
    invoice_details = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date']

    def __str__(self):
        return f"{self.maintenance_type} for car #{self.car_id} - {self.status}"

    @property
    def is_invoiced(self):
        return bool(self.invoice_number)
