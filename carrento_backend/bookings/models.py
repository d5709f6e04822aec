from django.db import models
from django.contrib.auth import get_user_model

from cars.models import Car

User = get_user_model()


class Booking(models.Model):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    ACTIVE = 'Active'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (ACTIVE, 'Active'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    # declared flow; only checked when strict transitions are on
    TRANSITIONS = {
        PENDING: {APPROVED, CANCELLED},
        APPROVED: {ACTIVE, CANCELLED},
        ACTIVE: {COMPLETED},
        COMPLETED: set(),
        CANCELLED: set(),
    }

    # statuses that keep the car Booked
    HOLDING = (PENDING, APPROVED, ACTIVE)
    FINISHED = (COMPLETED, CANCELLED)

    PAYMENT_PENDING = 'Pending'
    PAYMENT_PAID = 'Paid'
    PAYMENT_REFUNDED = 'Refunded'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_PAID, 'Paid'),
        (PAYMENT_REFUNDED, 'Refunded'),
    ]

    SHORT_TERM = 'ShortTerm'
    LONG_TERM = 'LongTerm'

    RENTAL_PERIOD_CHOICES = [
        (SHORT_TERM, 'Short term (2 weeks to 3 months)'),
        (LONG_TERM, 'Long term (3 months and more)'),
    ]

    SELF_PICKUP = 'SelfPickup'
    DELIVERY = 'Delivery'

    DELIVERY_OPTION_CHOICES = [
        (SELF_PICKUP, 'Self pickup'),
        (DELIVERY, 'Delivery'),
    ]

    INCIDENT_PENDING = 'Pending'

    car = models.ForeignKey(Car, on_delete=models.CASCADE, related_name='bookings')
    customer = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bookings')
    rental_period = models.CharField(max_length=10, choices=RENTAL_PERIOD_CHOICES)
    start_date = models.DateField()
    end_date = models.DateField()
    delivery_option = models.CharField(max_length=10, choices=DELIVERY_OPTION_CHOICES, default=SELF_PICKUP)
    # {"street", "city", "state", "zipCode"}; only set for Delivery
    delivery_address = models.JSONField(null=True, blank=True)
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    deposit = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    special_requests = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING)

    incident_reported = models.BooleanField(default=False)
    incident_details = models.TextField(null=True, blank=True)
    incident_photos = models.JSONField(default=list, blank=True)
    incident_timestamp = models.DateTimeField(null=True, blank=True)
    incident_status = models.CharField(max_length=20, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Booking #{self.id} - Car {self.car_id} - Customer {self.customer_id} - Status {self.status}"

    @property
    def rental_days(self):
        return (self.end_date - self.start_date).days + 1
